"""Data models for the reference scanner engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from nugsentinel.models import PackageReference


@dataclass
class CentralParseResult:
    """Content of one ``Directory.Packages.props``."""

    manage_centrally: bool
    package_versions: dict[str, str] = field(default_factory=dict)
    file_path: str | None = None

    def version_for(self, package_name: str) -> str | None:
        folded = package_name.casefold()
        for name, version in self.package_versions.items():
            if name.casefold() == folded:
                return version
        return None


@dataclass
class ManifestParseResult:
    """What one parser extracted from one file."""

    path: str  # repository-relative, "/"-prefixed
    detection_method: str
    references: list[PackageReference] = field(default_factory=list)
    central: CentralParseResult | None = None


@dataclass
class RepositoryScan:
    """References and raw project file contents of one repository."""

    repository_name: str
    root: Path
    references: list[PackageReference] = field(default_factory=list)
    project_contents: dict[str, str] = field(default_factory=dict)


@dataclass
class WorkspaceScan:
    repositories: list[RepositoryScan] = field(default_factory=list)

    @property
    def references(self) -> list[PackageReference]:
        return [ref for repo in self.repositories for ref in repo.references]

    @property
    def project_contents(self) -> dict[str, dict[str, str]]:
        return {repo.repository_name: repo.project_contents for repo in self.repositories}

    def repository(self, name: str) -> RepositoryScan | None:
        return next((r for r in self.repositories if r.repository_name == name), None)
