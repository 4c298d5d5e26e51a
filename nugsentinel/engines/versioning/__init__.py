"""Version scope engine: scope checks, target selection, warning granularity."""

from nugsentinel.engines.versioning.models import UpdateScope, VersionWarningLevel
from nugsentinel.engines.versioning.nuget_version import (
    NuGetVersion,
    compare_versions,
    highest_version,
    parse_version,
)
from nugsentinel.engines.versioning.scope import (
    detect_outdated,
    find_all_in_scope_versions,
    find_latest_in_scope,
    get_target_version,
    get_version_difference,
    is_update_within_scope,
    is_updateable_only,
    mark_outdated,
    versions_differ,
)

__all__ = [
    "NuGetVersion",
    "UpdateScope",
    "VersionWarningLevel",
    "compare_versions",
    "detect_outdated",
    "find_all_in_scope_versions",
    "find_latest_in_scope",
    "get_target_version",
    "get_version_difference",
    "highest_version",
    "is_update_within_scope",
    "is_updateable_only",
    "mark_outdated",
    "parse_version",
    "versions_differ",
]
