"""Scope and warning-level enums for the version engine.

The two enums look alike but mean different things:

* :class:`UpdateScope` is *cumulative*: ``MINOR`` also allows patch moves.
* :class:`VersionWarningLevel` is *exact*: ``MINOR`` only reports a minor
  difference within the same major.

Keep them apart; never pass one where the other is expected.
"""

from __future__ import annotations

from enum import Enum


class UpdateScope(Enum):
    """Maximum magnitude of version change an update run may apply."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _SCOPE_RANK[self]

    def __lt__(self, other: UpdateScope) -> bool:
        if not isinstance(other, UpdateScope):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: UpdateScope) -> bool:
        if not isinstance(other, UpdateScope):
            return NotImplemented
        return self.rank <= other.rank

    @classmethod
    def parse(cls, value: str | UpdateScope) -> UpdateScope:
        """Case-insensitive lookup by name (``"Minor"``, ``"minor"``)."""
        if isinstance(value, UpdateScope):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"invalid update scope {value!r}, expected one of: patch, minor, major"
            ) from None

    def as_warning_level(self) -> VersionWarningLevel:
        """Warning level whose in-band check matches this scope's ceiling.

        Used for the fallback search over available versions: a ``MINOR``
        scope accepts exactly the versions that share the current major,
        which is what ``find_latest_in_scope(..., MINOR)`` selects.
        """
        return VersionWarningLevel(self.value)


class VersionWarningLevel(Enum):
    """Exact granularity at which two versions count as different."""

    NONE = "none"
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    def __lt__(self, other: VersionWarningLevel) -> bool:
        if not isinstance(other, VersionWarningLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: VersionWarningLevel) -> bool:
        if not isinstance(other, VersionWarningLevel):
            return NotImplemented
        return self.rank <= other.rank

    @classmethod
    def parse(cls, value: str | VersionWarningLevel) -> VersionWarningLevel:
        if isinstance(value, VersionWarningLevel):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"invalid warning level {value!r}, expected one of: none, major, minor, patch"
            ) from None


_SCOPE_RANK = {UpdateScope.PATCH: 1, UpdateScope.MINOR: 2, UpdateScope.MAJOR: 3}
_LEVEL_RANK = {
    VersionWarningLevel.NONE: 0,
    VersionWarningLevel.MAJOR: 1,
    VersionWarningLevel.MINOR: 2,
    VersionWarningLevel.PATCH: 3,
}
