"""Data models for the update plan builder."""

from __future__ import annotations

from dataclasses import dataclass, field

from nugsentinel.models import SourceKind

DEFAULT_CPM_PATH = "/Directory.Packages.props"


@dataclass
class PackageUpdate:
    """An atomic, already-decided version change."""

    name: str
    old_version: str
    new_version: str


@dataclass
class FileUpdate:
    """Updates to apply to one file.

    *dependency_count* is the number of references originally found in the
    governed file(s) and only drives ordering.
    """

    target_path: str
    dependency_count: int
    updates: list[PackageUpdate] = field(default_factory=list)
    source_kind: SourceKind = SourceKind.PROJECT_FILE


@dataclass
class RepositoryUpdatePlan:
    """Ordered file updates for one repository."""

    repository_name: str
    file_updates: list[FileUpdate] = field(default_factory=list)

    @property
    def update_count(self) -> int:
        return sum(len(f.updates) for f in self.file_updates)


@dataclass
class PlanSummary:
    """Totals across a set of repository plans."""

    repositories: int = 0
    files: int = 0
    updates: int = 0
    packages: int = 0


@dataclass
class SyncPlan:
    """Every file change needed to force one package to one version.

    *up_to_date* lists repositories that reference the package and already
    declare the target everywhere.
    """

    package_name: str
    target_version: str
    plans: list[RepositoryUpdatePlan] = field(default_factory=list)
    up_to_date: list[str] = field(default_factory=list)
