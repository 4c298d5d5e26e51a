"""NuGet version parsing and comparison strategies.

``semver`` does the parsing, so release labels follow SemVer 2.0 precedence
(``1.0.0-preview < 1.0.0-rc < 1.0.0``, dotted labels such as
``8.0.0-preview.7.23375.6`` compare part by part).  NuGet additions on top of
SemVer:

* a fourth numeric ``revision`` segment (``4.5.6.7``), ordered after patch
  and before the release label;
* one- and two-part versions (``1``, ``1.0``) padded with zeros;
* leading zeros in numeric segments (``1.01``) and case-insensitive labels.

Anything ``semver`` rejects (floating ``1.*``, ranges ``[1.0,2.0)``, MSBuild
properties ``$(Ver)``) is non-comparable: callers get ``None`` back and treat
the package as non-actionable.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable

import semver


@functools.total_ordering
class NuGetVersion:
    """A parsed NuGet version: SemVer core, optional revision, release label."""

    __slots__ = ("_semver", "revision")

    def __init__(self, version: semver.Version, revision: int = 0) -> None:
        self._semver = version
        self.revision = revision

    @property
    def major(self) -> int:
        return self._semver.major

    @property
    def minor(self) -> int:
        return self._semver.minor

    @property
    def patch(self) -> int:
        return self._semver.patch

    @property
    def prerelease(self) -> str | None:
        return self._semver.prerelease

    @property
    def is_prerelease(self) -> bool:
        return self._semver.prerelease is not None

    def _numeric(self) -> tuple[int, int, int, int]:
        return (self.major, self.minor, self.patch, self.revision)

    def compare(self, other: NuGetVersion) -> int:
        a, b = self._numeric(), other._numeric()
        if a != b:
            return (a > b) - (a < b)
        # Same numbers: semver decides on the release label alone.
        return self._semver.compare(other._semver)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: NuGetVersion) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self._numeric(), self.prerelease))

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            core += f".{self.revision}"
        return f"{core}-{self.prerelease}" if self.prerelease else core

    def __repr__(self) -> str:
        return f"NuGetVersion('{self}')"


def _split(value: str) -> tuple[list[str], str | None, str | None]:
    rest, plus, build = value.partition("+")
    core, dash, label = rest.partition("-")
    return core.split("."), (label if dash else None), (build if plus else None)


def parse_version(value: str | None) -> NuGetVersion | None:
    """Parse *value*, returning ``None`` for empty or unparsable input."""
    if not value or not value.strip():
        return None

    parts, label, build = _split(value.strip())
    if not 1 <= len(parts) <= 4 or not all(p.isascii() and p.isdigit() for p in parts):
        return None
    if label == "" or build == "":
        return None

    numbers = [int(p) for p in parts]
    revision = numbers[3] if len(numbers) == 4 else 0
    text = ".".join(str(n) for n in numbers[:3])
    if label is not None:
        text += f"-{label.lower()}"
    if build is not None:
        text += f"+{build}"

    try:
        parsed = semver.Version.parse(text, optional_minor_and_patch=True)
    except ValueError:
        return None
    return NuGetVersion(parsed, revision)


def compare_versions(a: str, b: str) -> int:
    """Three-way compare two version strings.

    Semantic ordering when both sides parse.  Otherwise falls back to a
    case-insensitive ordinal string comparison: a best-effort degradation
    that keeps the caller deterministic, not a correctness guarantee
    (``"10.0"`` sorts below ``"9.0"`` lexically).
    """
    va = parse_version(a)
    vb = parse_version(b)
    if va is not None and vb is not None:
        return va.compare(vb)
    return _ordinal_compare(a, b)


def _ordinal_compare(a: str, b: str) -> int:
    ka = a.casefold()
    kb = b.casefold()
    return (ka > kb) - (ka < kb)


def highest_version(versions: Iterable[str]) -> str:
    """Return the highest of *versions* under :func:`compare_versions`.

    The first occurrence wins among equals.  Raises ``ValueError`` when
    *versions* is empty.
    """
    iterator = iter(versions)
    try:
        highest = next(iterator)
    except StopIteration:
        raise ValueError("highest_version() requires at least one version") from None
    for candidate in iterator:
        if compare_versions(candidate, highest) > 0:
            highest = candidate
    return highest
