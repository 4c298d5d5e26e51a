"""Data models for the central package management migration planner."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CpmFileChange:
    """A file the migration creates or rewrites."""

    path: str
    content: str
    is_new_file: bool


@dataclass
class CpmConflict:
    """A project whose pinned version differs from the chosen central version.

    The project keeps its version through ``VersionOverride``.
    """

    package_name: str
    project_path: str
    override_version: str
    central_version: str


@dataclass
class CpmMigrationResult:
    file_changes: list[CpmFileChange] = field(default_factory=list)
    conflicts: list[CpmConflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)
