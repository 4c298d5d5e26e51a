"""Source-control access for scanned repositories.

Only the local working-tree adapter ships; it reads and writes files in
place.  Branch, push and pull-request operations belong to hosted providers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from nugsentinel.core.errors import NugSentinelError
from nugsentinel.engines.reference_scanner.scanner import discover_repositories

log = structlog.get_logger("nugsentinel.engine")


@runtime_checkable
class RepositoryStore(Protocol):
    """List repositories and read or write files inside them."""

    def list_repositories(self) -> list[str]: ...

    def read_file(self, repository: str, path: str) -> str | None: ...

    def write_file(self, repository: str, path: str, content: str) -> None: ...


class LocalWorkspace:
    """Repositories checked out side by side under one directory."""

    def __init__(
        self,
        root: Path,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
    ) -> None:
        self.root = Path(root)
        self._include = include or []
        self._exclude = exclude or []

    def repository_path(self, repository: str) -> Path:
        if self.root.resolve().name == repository and not (self.root / repository).is_dir():
            return self.root
        return self.root / repository

    def list_repositories(self) -> list[str]:
        return [
            p.resolve().name
            for p in discover_repositories(self.root, self._include, self._exclude)
        ]

    def _resolve(self, repository: str, path: str) -> Path:
        repo_root = self.repository_path(repository).resolve()
        target = (repo_root / path.lstrip("/")).resolve()
        if not target.is_relative_to(repo_root):
            raise NugSentinelError(f"path {path!r} escapes repository {repository!r}")
        return target

    def read_file(self, repository: str, path: str) -> str | None:
        target = self._resolve(repository, path)
        if not target.is_file():
            return None
        return target.read_text(encoding="utf-8-sig")

    def write_file(self, repository: str, path: str, content: str) -> None:
        target = self._resolve(repository, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        log.info("workspace.file_written", repository=repository, path=path)
