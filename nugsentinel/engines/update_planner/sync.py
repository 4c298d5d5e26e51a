"""Force one package to one version across every repository.

Unlike the update plan builder, sync ignores scope and pinning and may move a
reference down as well as up.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from nugsentinel.engines.update_planner.models import (
    DEFAULT_CPM_PATH,
    FileUpdate,
    PackageUpdate,
    RepositoryUpdatePlan,
    SyncPlan,
)
from nugsentinel.models import PackageReference, SourceKind

log = structlog.get_logger("nugsentinel.engine")

_KIND_ORDER = {
    SourceKind.CENTRAL_PACKAGE_MANAGEMENT: 0,
    SourceKind.PACKAGES_CONFIG: 1,
    SourceKind.PROJECT_FILE: 2,
}


def _target_path(ref: PackageReference) -> str:
    if ref.source_kind is SourceKind.CENTRAL_PACKAGE_MANAGEMENT:
        return ref.cpm_file_path or DEFAULT_CPM_PATH
    if ref.source_kind is SourceKind.PACKAGES_CONFIG:
        return ref.packages_config_path or ref.project_path
    return ref.project_path


def plan_sync(
    references: Iterable[PackageReference], package_name: str, target_version: str
) -> SyncPlan:
    """Plan the rewrite of every declaration of *package_name* to *target_version*.

    Names and versions compare case-insensitively.  References without a
    declared version are skipped.
    """
    if references is None:
        raise TypeError("references must not be None")
    if not package_name or not target_version:
        raise ValueError("package_name and target_version are required")

    wanted = package_name.casefold()
    target = target_version.strip()

    matching: dict[str, list[PackageReference]] = {}
    for ref in references:
        if ref.name.casefold() == wanted and ref.declared_version:
            matching.setdefault(ref.repository_name, []).append(ref)

    result = SyncPlan(package_name=package_name, target_version=target)
    for repo_name in sorted(matching):
        files: dict[tuple[str, SourceKind], FileUpdate] = {}
        for ref in matching[repo_name]:
            if ref.declared_version.strip().casefold() == target.casefold():
                continue
            key = (_target_path(ref), ref.source_kind)
            file_update = files.get(key)
            if file_update is None:
                file_update = files[key] = FileUpdate(
                    target_path=key[0], dependency_count=0, source_kind=ref.source_kind
                )
            file_update.dependency_count += 1
            if not any(u.old_version == ref.declared_version for u in file_update.updates):
                update = PackageUpdate(ref.name, ref.declared_version, target)
                file_update.updates.append(update)

        if not files:
            result.up_to_date.append(repo_name)
            continue
        ordered = sorted(files.values(), key=lambda f: (_KIND_ORDER[f.source_kind], f.target_path))
        result.plans.append(RepositoryUpdatePlan(repository_name=repo_name, file_updates=ordered))

    log.info(
        "sync.planned",
        package=package_name,
        target=target,
        repositories=len(result.plans),
        up_to_date=len(result.up_to_date),
    )
    return result
