"""Fuzzy matching of unresolved package names to scanned source projects.

Packages that no feed knows about (or that only a private feed knows about)
are often built in-house.  Each scanned project contributes one *potential
package name*; an unresolved package is matched against all of them and the
best candidate above :data:`MIN_CONFIDENCE` is kept.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath

from nugsentinel.models import PackageReference, SourceProjectCandidate

MIN_CONFIDENCE = 0.7
PREFIX_WEIGHT = 0.9
SUBSTRING_CONFIDENCE = 0.8

# Placeholder project name used when the scanner could not derive one.
UNKNOWN_PROJECT = "Unknown"

_GENERIC_DIRECTORIES = frozenset({"src", "lib"})


@dataclass
class CatalogEntry:
    """One scanned project with the package name it would most likely publish."""

    potential_name: str
    project_name: str
    repository_name: str
    project_path: str


def extract_potential_package_name(project_path: str, project_name: str | None) -> str | None:
    """Derive the package name a project would publish, if any.

    Order: the project file's base name when it differs from the logical
    project name, then the logical name unless it is the placeholder, then
    the parent directory unless it is a generic one like ``src``.
    """
    normalized = project_path.replace("\\", "/")
    file_stem = PurePosixPath(normalized).stem

    if file_stem and file_stem != project_name:
        return file_stem

    if project_name and project_name != UNKNOWN_PROJECT:
        return project_name

    segments = [s for s in normalized.split("/") if s]
    if len(segments) >= 2:
        parent = segments[-2]
        if parent and parent not in _GENERIC_DIRECTORIES:
            return parent

    return None


def levenshtein_distance(source: str, target: str) -> int:
    """Minimum number of single-character edits turning *source* into *target*."""
    if not source:
        return len(target)
    if not target:
        return len(source)

    previous = list(range(len(target) + 1))
    for i, s_char in enumerate(source, start=1):
        current = [i]
        for j, t_char in enumerate(target, start=1):
            cost = 0 if s_char == t_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def match_confidence(package_name: str, project_name: str | None) -> float:
    """Confidence in ``[0, 1]`` that *project_name* builds *package_name*.

    Symmetric in its arguments.
    """
    if not package_name or not project_name:
        return 0.0

    a = package_name.casefold()
    b = project_name.casefold()

    if a == b:
        return 1.0

    if a.startswith(b) or b.startswith(a):
        shorter = min(len(a), len(b))
        longer = max(len(a), len(b))
        return shorter / longer * PREFIX_WEIGHT

    if a in b or b in a:
        return SUBSTRING_CONFIDENCE

    distance = levenshtein_distance(a, b)
    similarity = 1.0 - distance / max(len(a), len(b))
    return similarity if similarity > MIN_CONFIDENCE else 0.0


def build_catalog(references: Iterable[PackageReference]) -> list[CatalogEntry]:
    """One catalog entry per distinct scanned project, in first-seen order."""
    seen: set[tuple[str, str, str]] = set()
    catalog: list[CatalogEntry] = []
    for ref in references:
        key = (ref.repository_name, ref.project_path, ref.project_name)
        if key in seen:
            continue
        seen.add(key)
        potential = extract_potential_package_name(ref.project_path, ref.project_name)
        if not potential:
            continue
        catalog.append(
            CatalogEntry(
                potential_name=potential,
                project_name=ref.project_name,
                repository_name=ref.repository_name,
                project_path=ref.project_path,
            )
        )
    return catalog


def find_source_project(
    package_name: str, catalog: Iterable[CatalogEntry]
) -> SourceProjectCandidate | None:
    """Best catalog match above :data:`MIN_CONFIDENCE`; first-seen wins ties."""
    best: SourceProjectCandidate | None = None
    for entry in catalog:
        confidence = match_confidence(package_name, entry.potential_name)
        if confidence <= MIN_CONFIDENCE:
            continue
        if best is None or confidence > best.match_confidence:
            best = SourceProjectCandidate(
                project_name=entry.potential_name,
                repository_name=entry.repository_name,
                project_path=entry.project_path,
                match_confidence=confidence,
            )
    return best
