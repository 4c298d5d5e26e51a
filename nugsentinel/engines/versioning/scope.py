"""Version scope engine: pure functions over version strings, no I/O.

Two families live here and must not be mixed up:

* update scope (cumulative, :class:`UpdateScope`): may an upgrade be applied?
* warning granularity (exact, :class:`VersionWarningLevel`): how do two
  versions differ, for diagnostics?

Unparsable versions never raise; every function answers ``None``/``False``
(or ``"unknown"``) for them.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence

from nugsentinel.engines.versioning.models import UpdateScope, VersionWarningLevel
from nugsentinel.engines.versioning.nuget_version import NuGetVersion, parse_version
from nugsentinel.models import PackageReference, RegistryInfo

# ── update scope (cumulative) ────────────────────────────────────────────


def _within_scope(current: NuGetVersion, candidate: NuGetVersion, scope: UpdateScope) -> bool:
    if current >= candidate:
        return False
    if scope is UpdateScope.PATCH:
        return current.major == candidate.major and current.minor == candidate.minor
    if scope is UpdateScope.MINOR:
        return current.major == candidate.major
    return scope is UpdateScope.MAJOR


def is_update_within_scope(current: str | None, latest: str | None, scope: UpdateScope) -> bool:
    """True when moving *current* → *latest* is an upgrade allowed by *scope*."""
    cur = parse_version(current)
    lat = parse_version(latest)
    if cur is None or lat is None:
        return False
    return _within_scope(cur, lat, scope)


def get_target_version(
    current: str | None,
    latest: str | None,
    scope: UpdateScope,
    available: Sequence[str] | None = None,
) -> str | None:
    """Pick the version *current* should move to, or ``None``.

    *latest* wins when it is in scope.  Otherwise the highest in-scope
    version from *available* is used, so a package several majors behind
    still gets its best same-band upgrade instead of being skipped.
    """
    if not current or not latest:
        return None

    if is_update_within_scope(current, latest, scope):
        return latest

    return find_latest_in_scope(current, available, scope.as_warning_level())


# ── warning granularity (exact level) ────────────────────────────────────


def versions_differ(
    version1: str | None, version2: str | None, level: VersionWarningLevel
) -> bool:
    """Exact-level difference check.

    ``MAJOR`` reports only major differences, ``MINOR`` only minor
    differences within the same major, ``PATCH`` only patch differences
    within the same major.minor.  ``NONE`` never reports.
    """
    v1 = parse_version(version1)
    v2 = parse_version(version2)
    if v1 is None or v2 is None:
        return False

    if level is VersionWarningLevel.MAJOR:
        return v1.major != v2.major
    if level is VersionWarningLevel.MINOR:
        return v1.major == v2.major and v1.minor != v2.minor
    if level is VersionWarningLevel.PATCH:
        return v1.major == v2.major and v1.minor == v2.minor and v1.patch != v2.patch
    return False


def get_version_difference(version1: str | None, version2: str | None) -> str:
    """Classify the difference as ``major``/``minor``/``patch``/``none``/``unknown``."""
    v1 = parse_version(version1)
    v2 = parse_version(version2)
    if v1 is None or v2 is None:
        return "unknown"
    if v1.major != v2.major:
        return "major"
    if v1.minor != v2.minor:
        return "minor"
    if v1.patch != v2.patch:
        return "patch"
    return "none"


def _in_band(current: NuGetVersion, candidate: NuGetVersion, level: VersionWarningLevel) -> bool:
    if level is VersionWarningLevel.PATCH:
        return candidate.major == current.major and candidate.minor == current.minor
    if level is VersionWarningLevel.MINOR:
        return candidate.major == current.major
    return level is VersionWarningLevel.MAJOR


def _latest_in_scope(
    current: NuGetVersion, available: Iterable[str], level: VersionWarningLevel
) -> tuple[NuGetVersion, str] | None:
    best: tuple[NuGetVersion, str] | None = None
    for raw in available:
        candidate = parse_version(raw)
        if candidate is None or candidate <= current:
            continue
        if not _in_band(current, candidate, level):
            continue
        if best is None or candidate > best[0]:
            best = (candidate, raw)
    return best


def find_latest_in_scope(
    current: str | None,
    available: Sequence[str] | None,
    level: VersionWarningLevel,
) -> str | None:
    """Highest available version above *current* that stays inside *level*'s band.

    ``PATCH`` keeps major.minor, ``MINOR`` keeps major, ``MAJOR`` is
    unconstrained.  Never returns a version ``<= current``.
    """
    if not available:
        return None
    cur = parse_version(current)
    if cur is None:
        return None
    best = _latest_in_scope(cur, available, level)
    return best[1] if best is not None else None


def find_all_in_scope_versions(
    used_versions: Iterable[str],
    available: Sequence[str] | None,
    level: VersionWarningLevel,
    latest_version: str | None,
) -> list[str]:
    """In-scope upgrade per major band actually in use.

    When a package is pinned to several majors across a solution (say 9.x
    and 10.x), each band gets its own best upgrade.  The lowest used version
    of each band represents it.  With a single band, a result equal to
    *latest_version* is dropped because the caller already shows it.
    """
    if not available:
        return []

    representatives: dict[int, NuGetVersion] = {}
    for raw in used_versions:
        parsed = parse_version(raw)
        if parsed is None:
            continue
        lowest = representatives.get(parsed.major)
        if lowest is None or parsed < lowest:
            representatives[parsed.major] = parsed

    found: dict[NuGetVersion, str] = {}
    for representative in representatives.values():
        best = _latest_in_scope(representative, available, level)
        if best is not None:
            found.setdefault(best[0], best[1])

    if len(representatives) <= 1:
        latest = parse_version(latest_version)
        if latest is not None:
            found.pop(latest, None)

    return [found[v] for v in sorted(found)]


# ── outdated detection ───────────────────────────────────────────────────


def detect_outdated(latest: str | None, used_versions: Iterable[str | None]) -> str | None:
    """Oldest used version strictly below *latest*, or ``None``.

    The *oldest* outdated version is reported (not the newest one) so the
    package is classified by its worst straggler.
    """
    lat = parse_version(latest)
    if lat is None:
        return None

    oldest: tuple[NuGetVersion, str] | None = None
    for raw in used_versions:
        parsed = parse_version(raw)
        if parsed is None or parsed >= lat:
            continue
        if oldest is None or parsed < oldest[0]:
            oldest = (parsed, str(raw))
    return oldest[1] if oldest is not None else None


def mark_outdated(
    infos: Mapping[str, RegistryInfo], references: Iterable[PackageReference]
) -> dict[str, RegistryInfo]:
    """Set ``resolved_used_version``/``is_outdated`` on every resolved package.

    *infos* is keyed by package name; keys of the result are casefolded.
    Inputs are not mutated.
    """
    used: dict[str, list[str | None]] = {}
    for ref in references:
        used.setdefault(ref.name.casefold(), []).append(ref.declared_version)

    marked: dict[str, RegistryInfo] = {}
    for name, info in infos.items():
        key = name.casefold()
        oldest = detect_outdated(info.latest_stable_version, used.get(key, []))
        if oldest is not None:
            info = dataclasses.replace(info, resolved_used_version=oldest, is_outdated=True)
        marked[key] = info
    return marked


def is_updateable_only(
    resolved_used_version: str | None,
    available: Sequence[str] | None,
    level: VersionWarningLevel,
) -> bool:
    """True when every available upgrade crosses the configured warning band.

    Such a package is outdated, but only "updateable" by opting into a
    wider scope.  ``NONE`` and ``MAJOR`` bands never qualify.
    """
    if level in (VersionWarningLevel.NONE, VersionWarningLevel.MAJOR):
        return False
    if not resolved_used_version:
        return False
    return find_latest_in_scope(resolved_used_version, available, level) is None
