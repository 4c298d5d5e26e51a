"""Package-name and project-path exclusion rules."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

log = structlog.get_logger("nugsentinel.engine")


def _add_unique(target: list[str], value: str) -> None:
    if value and value.strip() and value not in target:
        target.append(value)


@dataclass
class ExclusionList:
    """Decides which package names are left out of a scan.

    A name is excluded when it starts with an excluded prefix, equals an
    excluded name, or matches an excluded regex.  Invalid regexes are logged
    once and otherwise ignored.
    """

    prefixes: list[str] = field(default_factory=list)
    packages: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)
    case_sensitive: bool = False

    def __post_init__(self) -> None:
        self._compiled: dict[str, re.Pattern[str] | None] = {}

    def add_prefix(self, prefix: str) -> None:
        _add_unique(self.prefixes, prefix)

    def add_package(self, package_name: str) -> None:
        _add_unique(self.packages, package_name)

    def add_pattern(self, pattern: str) -> None:
        _add_unique(self.patterns, pattern)

    def _pattern(self, pattern: str) -> re.Pattern[str] | None:
        if pattern not in self._compiled:
            flags = 0 if self.case_sensitive else re.IGNORECASE
            try:
                self._compiled[pattern] = re.compile(pattern, flags)
            except re.error as exc:
                log.warning("exclusions.invalid_pattern", pattern=pattern, error=str(exc))
                self._compiled[pattern] = None
        return self._compiled[pattern]

    def should_exclude(self, package_name: str | None) -> bool:
        if not package_name or not package_name.strip():
            return True

        if self.case_sensitive:
            name = package_name
            prefixes = self.prefixes
            packages = self.packages
        else:
            name = package_name.casefold()
            prefixes = [p.casefold() for p in self.prefixes]
            packages = [p.casefold() for p in self.packages]

        if any(name.startswith(prefix) for prefix in prefixes):
            return True
        if name in packages:
            return True
        for pattern in self.patterns:
            compiled = self._pattern(pattern)
            if compiled is not None and compiled.search(package_name):
                return True
        return False

    @property
    def is_empty(self) -> bool:
        return not (self.prefixes or self.packages or self.patterns)


class ProjectPathFilter:
    """Regex patterns over repository-relative project paths."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns: list[re.Pattern[str]] = []
        for pattern in patterns:
            try:
                self._patterns.append(re.compile(pattern, re.IGNORECASE))
            except re.error as exc:
                log.warning("exclusions.invalid_project_pattern", pattern=pattern, error=str(exc))

    def is_excluded(self, project_path: str) -> bool:
        return any(p.search(project_path) for p in self._patterns)


def repository_selected(
    name: str, include: Iterable[str] = (), exclude: Iterable[str] = ()
) -> bool:
    """Apply include then exclude regexes to a repository name.

    An empty include list selects every repository.
    """
    include = list(include)
    if include and not any(_safe_search(p, name) for p in include):
        return False
    return not any(_safe_search(p, name) for p in exclude)


def _safe_search(pattern: str, value: str) -> bool:
    try:
        return re.search(pattern, value, re.IGNORECASE) is not None
    except re.error as exc:
        log.warning("exclusions.invalid_repository_pattern", pattern=pattern, error=str(exc))
        return False
