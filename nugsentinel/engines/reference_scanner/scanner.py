"""Reference scanner: walk local repositories and collect package references."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath

import structlog

# Ensure parsers are registered before any scan runs.
import nugsentinel.engines.reference_scanner.parsers  # noqa: F401
from nugsentinel.core.errors import PackageExtractionError
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
from nugsentinel.engines.reference_scanner.parsers.packages_config import find_colocated_project
from nugsentinel.engines.reference_scanner.registry import discover_manifests, relative_path
from nugsentinel.models import PackageReference, SourceKind

log = structlog.get_logger("nugsentinel.engine")

PROJECT_FILE_GLOBS = ("*.csproj", "*.vbproj", "*.fsproj")


def merge_central_versions(
    references: Iterable[PackageReference],
    versions: Mapping[str, str],
    cpm_path: str | None = None,
) -> list[PackageReference]:
    """Fill version-less project references from central *versions*.

    Filled references become :attr:`SourceKind.CENTRAL_PACKAGE_MANAGEMENT`
    and remember *cpm_path*.  References that carry their own version
    (``VersionOverride``) or have no central entry are returned unchanged.
    """
    references = list(references)
    if not versions:
        return references

    folded = {name.casefold(): version for name, version in versions.items()}
    merged: list[PackageReference] = []
    for ref in references:
        central = folded.get(ref.name.casefold())
        if ref.declared_version is not None or central is None:
            merged.append(ref)
            continue
        merged.append(
            dataclasses.replace(
                ref,
                declared_version=central,
                source_kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT,
                cpm_file_path=cpm_path,
            )
        )
    return merged


def _nearest_central(
    project_path: str, central_by_dir: Mapping[str, CentralParseResult]
) -> CentralParseResult | None:
    directory = PurePosixPath(project_path).parent
    while True:
        found = central_by_dir.get(str(directory).casefold())
        if found is not None:
            return found
        if directory == directory.parent:
            return None
        directory = directory.parent


def _parse_all(repo_path: Path, repository_name: str) -> list[tuple[ManifestParseResult, str]]:
    results: list[tuple[ManifestParseResult, str]] = []
    for parser, file_path in discover_manifests(repo_path):
        rel = relative_path(repo_path, file_path)
        content = file_path.read_text(encoding="utf-8-sig", errors="replace")
        try:
            parsed = parser.parse(rel, content, repository_name)
        except PackageExtractionError as exc:
            log.warning("scanner.extraction_failed", path=rel, error=str(exc))
            continue
        results.append((parsed, content))
    return results


def scan_repository(
    repo_path: Path,
    repository_name: str | None = None,
    exclusions: ExclusionList | None = None,
    project_filter: ProjectPathFilter | None = None,
    include_packages_config: bool = True,
) -> RepositoryScan:
    """Scan one local repository (no network required).

    Paths in the result are repository-relative and ``/``-prefixed.
    """
    repo_path = Path(repo_path)
    repository_name = repository_name or repo_path.resolve().name
    exclusions = exclusions or ExclusionList()
    project_filter = project_filter or ProjectPathFilter()

    scan = RepositoryScan(repository_name=repository_name, root=repo_path)

    project_results: list[ManifestParseResult] = []
    config_results: list[ManifestParseResult] = []
    central_by_dir: dict[str, CentralParseResult] = {}

    for parsed, content in _parse_all(repo_path, repository_name):
        if parsed.central is not None:
            if parsed.central.manage_centrally:
                directory = str(PurePosixPath(parsed.path).parent).casefold()
                central_by_dir[directory] = parsed.central
            else:
                log.debug("scanner.central_not_enabled", path=parsed.path)
        elif parsed.detection_method == "packages-config":
            config_results.append(parsed)
        else:
            if project_filter.is_excluded(parsed.path):
                log.debug("scanner.project_excluded", project=parsed.path)
                continue
            project_results.append(parsed)
            scan.project_contents[parsed.path] = content

    references: list[PackageReference] = []
    for parsed in project_results:
        refs = parsed.references
        central = _nearest_central(parsed.path, central_by_dir)
        if central is not None:
            refs = merge_central_versions(refs, central.package_versions, central.file_path)
        references.extend(refs)

    if include_packages_config:
        project_paths = [p.path for p in project_results]
        for parsed in config_results:
            project = find_colocated_project(parsed.path, project_paths)
            if project is None:
                log.debug("scanner.packages_config_orphaned", path=parsed.path)
                continue
            references.extend(
                dataclasses.replace(
                    ref, project_path=project, project_name=PurePosixPath(project).stem
                )
                for ref in parsed.references
            )

    scan.references = [r for r in references if not exclusions.should_exclude(r.name)]

    log.info(
        "scanner.repository_scanned",
        repository=repository_name,
        projects=len(project_results),
        references=len(scan.references),
        excluded=len(references) - len(scan.references),
        central_files=len(central_by_dir),
    )
    return scan


def _holds_projects(path: Path) -> bool:
    return any(hit.is_file() for pattern in PROJECT_FILE_GLOBS for hit in path.glob(pattern))


def discover_repositories(
    root: Path, include: Iterable[str] = (), exclude: Iterable[str] = ()
) -> list[Path]:
    """Each immediate subdirectory of *root* is a repository.

    When *root* holds project files directly, it is the only repository.
    """
    root = Path(root)
    if _holds_projects(root):
        return [root]
    include = list(include)
    exclude = list(exclude)
    return [
        child
        for child in sorted(root.iterdir())
        if child.is_dir()
        and not child.name.startswith(".")
        and repository_selected(child.name, include, exclude)
    ]


def scan_workspace(
    root: Path,
    exclusions: ExclusionList | None = None,
    project_filter: ProjectPathFilter | None = None,
    include_repositories: Iterable[str] = (),
    exclude_repositories: Iterable[str] = (),
    include_packages_config: bool = True,
) -> WorkspaceScan:
    """Scan every repository under *root*, in ascending name order."""
    workspace = WorkspaceScan()
    for repo_path in discover_repositories(root, include_repositories, exclude_repositories):
        workspace.repositories.append(
            scan_repository(
                repo_path,
                repo_path.resolve().name,
                exclusions=exclusions,
                project_filter=project_filter,
                include_packages_config=include_packages_config,
            )
        )
    return workspace
