"""Manifest parsers: auto-registered on import."""

from nugsentinel.engines.reference_scanner.parsers import (
    central_packages,  # noqa: F401
    packages_config,  # noqa: F401
    project_file,  # noqa: F401
)
