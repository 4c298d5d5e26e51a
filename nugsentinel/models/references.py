"""Data models for package references and their registry metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SourceKind(Enum):
    """Which on-disk declaration mechanism produced a reference."""

    PROJECT_FILE = "project-file"  # inline <PackageReference Version=...>
    CENTRAL_PACKAGE_MANAGEMENT = "central-package-management"  # Directory.Packages.props
    PACKAGES_CONFIG = "packages-config"  # legacy packages.config


@dataclass
class SourceProjectCandidate:
    """A scanned project that probably builds an unresolved package."""

    project_name: str
    repository_name: str
    project_path: str
    match_confidence: float  # (0, 1]


@dataclass
class RegistryInfo:
    """Metadata resolved from a package feed for one package name.

    ``resolved_used_version`` and ``is_outdated`` are filled in by the engine
    (see :func:`nugsentinel.engines.versioning.mark_outdated`), not by the
    feed.
    """

    package_name: str
    exists_on_primary_registry: bool = False
    latest_stable_version: str | None = None
    available_stable_versions: list[str] = field(default_factory=list)  # ascending
    is_deprecated: bool = False
    is_vulnerable: bool = False
    resolved_used_version: str | None = None
    is_outdated: bool = False
    source_project_candidates: list[SourceProjectCandidate] = field(default_factory=list)
    feed_name: str | None = None
    package_url: str | None = None
    description: str | None = None
    vulnerabilities: list[str] = field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return self.feed_name is not None


@dataclass
class PackageReference:
    """A single package reference found in a project, central or legacy file.

    *project_path* is repository-relative and ``/``-prefixed.  Identity
    within a project is ``(project_path, name)`` compared case-insensitively.
    """

    name: str
    declared_version: str | None
    project_path: str
    repository_name: str
    project_name: str
    source_kind: SourceKind = SourceKind.PROJECT_FILE
    cpm_file_path: str | None = None  # governing Directory.Packages.props
    packages_config_path: str | None = None  # the packages.config a legacy reference came from
    registry_info: RegistryInfo | None = None
    line_number: int = 0

    @property
    def identity(self) -> tuple[str, str]:
        return (self.project_path.casefold(), self.name.casefold())
