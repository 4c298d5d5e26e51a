"""Reference scanner: discover .NET manifests and extract package references."""

from nugsentinel.engines.reference_scanner.exclusions import (
    ExclusionList,
    ProjectPathFilter,
    repository_selected,
)
from nugsentinel.engines.reference_scanner.models import (
    CentralParseResult,
    ManifestParseResult,
    RepositoryScan,
    WorkspaceScan,
)
from nugsentinel.engines.reference_scanner.parsers.central_packages import parse_central_props
from nugsentinel.engines.reference_scanner.parsers.packages_config import (
    extract_packages_config,
    find_colocated_project,
)
from nugsentinel.engines.reference_scanner.parsers.project_file import (
    extract_package_references,
)
from nugsentinel.engines.reference_scanner.renovate import (
    RENOVATE_CONFIG_PATHS,
    RenovateOverrides,
    filter_renovate_exclusions,
    merge_reviewers,
    parse_renovate_config,
    read_renovate_config,
)
from nugsentinel.engines.reference_scanner.scanner import (
    discover_repositories,
    merge_central_versions,
    scan_repository,
    scan_workspace,
)
from nugsentinel.engines.reference_scanner.workspace import (
    LocalWorkspace,
    RepositoryStore,
)

__all__ = [
    "CentralParseResult",
    "ExclusionList",
    "LocalWorkspace",
    "ManifestParseResult",
    "ProjectPathFilter",
    "RENOVATE_CONFIG_PATHS",
    "RenovateOverrides",
    "RepositoryScan",
    "RepositoryStore",
    "WorkspaceScan",
    "discover_repositories",
    "extract_package_references",
    "extract_packages_config",
    "filter_renovate_exclusions",
    "find_colocated_project",
    "merge_central_versions",
    "merge_reviewers",
    "parse_central_props",
    "parse_renovate_config",
    "read_renovate_config",
    "repository_selected",
    "scan_repository",
    "scan_workspace",
]
