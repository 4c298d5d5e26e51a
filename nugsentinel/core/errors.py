"""Custom exceptions for nugsentinel.

Version strings that fail to parse are never an error; the engines return
``None``/``False`` for them.  These exceptions cover genuinely unusable input.
"""


class NugSentinelError(Exception):
    """Base exception for all nugsentinel errors."""


class ConfigurationError(NugSentinelError):
    """Raised when the configuration file is missing, malformed or inconsistent."""


class PackageExtractionError(NugSentinelError):
    """Raised when a project file cannot be parsed by either XML or regex extraction."""

    def __init__(self, project_path: str, message: str):
        self.project_path = project_path
        super().__init__(f"{project_path}: {message}")


class FeedError(NugSentinelError):
    """Raised when a package feed cannot be used (bad service index, auth failure)."""

    def __init__(self, feed_name: str, message: str):
        self.feed_name = feed_name
        super().__init__(f"feed {feed_name!r}: {message}")
