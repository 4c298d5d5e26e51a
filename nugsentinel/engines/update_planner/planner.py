"""Update plan builder: decide per reference whether and where it moves.

The builder is pure.  Given references already enriched with registry
metadata, it produces one :class:`RepositoryUpdatePlan` per repository with
file updates ordered so that the shared central version file moves first
and, after it, low fan-out files go before high fan-out ones.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog

from nugsentinel.engines.update_planner.models import (
    DEFAULT_CPM_PATH,
    FileUpdate,
    PackageUpdate,
    PlanSummary,
    RepositoryUpdatePlan,
)
from nugsentinel.engines.versioning import UpdateScope, get_target_version
from nugsentinel.models import PackageReference, SourceKind

log = structlog.get_logger("nugsentinel.engine")


def _group_by(
    references: Iterable[PackageReference], key
) -> dict[str, list[PackageReference]]:
    groups: dict[str, list[PackageReference]] = {}
    for ref in references:
        groups.setdefault(key(ref), []).append(ref)
    return groups


class UpdatePlanBuilder:
    """Builds ordered update plans under a scope and pinning rules."""

    def __init__(
        self,
        scope: UpdateScope = UpdateScope.PATCH,
        pinned_packages: Mapping[str, str | None] | Iterable[str] | None = None,
        source_packages_only: bool = False,
    ) -> None:
        self.scope = scope
        self.source_packages_only = source_packages_only
        pinned = pinned_packages or {}
        names = pinned.keys() if isinstance(pinned, Mapping) else pinned
        self._pinned = {name.casefold() for name in names}
        self.skipped_pinned: set[str] = set()
        self.skipped_no_source: set[str] = set()

    def is_pinned(self, package_name: str) -> bool:
        return package_name.casefold() in self._pinned

    # ── per reference ────────────────────────────────────────────────────

    def try_create_update(self, ref: PackageReference) -> PackageUpdate | None:
        """Return the update for *ref*, or ``None`` when it should not move."""
        info = ref.registry_info
        if not ref.declared_version or info is None:
            return None

        key = ref.name.casefold()

        if self.source_packages_only and not info.source_project_candidates:
            if key not in self.skipped_no_source:
                self.skipped_no_source.add(key)
                log.debug("planner.skip_no_source", package=ref.name)
            return None

        if self.is_pinned(ref.name):
            if key not in self.skipped_pinned:
                self.skipped_pinned.add(key)
                log.debug("planner.skip_pinned", package=ref.name)
            return None

        target = get_target_version(
            ref.declared_version,
            info.latest_stable_version,
            self.scope,
            info.available_stable_versions,
        )
        if target is None:
            return None

        return PackageUpdate(name=ref.name, old_version=ref.declared_version, new_version=target)

    # ── plans ────────────────────────────────────────────────────────────

    def build_plans(self, references: Iterable[PackageReference]) -> list[RepositoryUpdatePlan]:
        """Build plans for every repository, in ascending repository name order.

        Repositories without a single applicable update are omitted.
        """
        if references is None:
            raise TypeError("references must not be None")

        self.skipped_pinned.clear()
        self.skipped_no_source.clear()

        by_repo = _group_by(references, lambda r: r.repository_name)
        plans: list[RepositoryUpdatePlan] = []
        for repo_name in sorted(by_repo):
            plan = self._build_repository_plan(repo_name, by_repo[repo_name])
            if plan is not None:
                plans.append(plan)

        log.info(
            "planner.plans_built",
            repositories=len(plans),
            updates=sum(p.update_count for p in plans),
            scope=self.scope.value,
            skipped_pinned=len(self.skipped_pinned),
            skipped_no_source=len(self.skipped_no_source),
        )
        return plans

    def _build_repository_plan(
        self, repo_name: str, references: list[PackageReference]
    ) -> RepositoryUpdatePlan | None:
        cpm_refs = [r for r in references if r.source_kind is SourceKind.CENTRAL_PACKAGE_MANAGEMENT]
        config_refs = [r for r in references if r.source_kind is SourceKind.PACKAGES_CONFIG]
        project_refs = [r for r in references if r.source_kind is SourceKind.PROJECT_FILE]

        file_updates: list[FileUpdate] = []

        if cpm_refs:
            cpm_update = self._build_cpm_file_update(cpm_refs)
            if cpm_update is not None:
                file_updates.append(cpm_update)

        config_groups = _group_by(config_refs, lambda r: r.packages_config_path or r.project_path)
        file_updates.extend(self._build_file_updates(config_groups, SourceKind.PACKAGES_CONFIG))

        project_groups = _group_by(project_refs, lambda r: r.project_path)
        file_updates.extend(self._build_file_updates(project_groups, SourceKind.PROJECT_FILE))

        if not file_updates:
            return None
        return RepositoryUpdatePlan(repository_name=repo_name, file_updates=file_updates)

    def _build_file_updates(
        self, groups: dict[str, list[PackageReference]], source_kind: SourceKind
    ) -> list[FileUpdate]:
        updates: list[FileUpdate] = []
        for path in sorted(groups):
            file_update = self._build_file_update(path, groups[path], source_kind)
            if file_update is not None:
                updates.append(file_update)
        # Stable sort: equal fan-out keeps path order.
        updates.sort(key=lambda f: f.dependency_count)
        return updates

    def _build_file_update(
        self, path: str, references: list[PackageReference], source_kind: SourceKind
    ) -> FileUpdate | None:
        updates = [u for u in map(self.try_create_update, references) if u is not None]
        if not updates:
            return None
        return FileUpdate(
            target_path=path,
            dependency_count=len(references),
            updates=updates,
            source_kind=source_kind,
        )

    def _build_cpm_file_update(self, references: list[PackageReference]) -> FileUpdate | None:
        """One update for the central version file, packages deduplicated by name."""
        seen: set[str] = set()
        updates: list[PackageUpdate] = []
        for ref in references:
            key = ref.name.casefold()
            if key in seen:
                continue
            seen.add(key)
            update = self.try_create_update(ref)
            if update is not None:
                updates.append(update)

        if not updates:
            return None

        cpm_path = next((r.cpm_file_path for r in references if r.cpm_file_path), DEFAULT_CPM_PATH)
        return FileUpdate(
            target_path=cpm_path,
            dependency_count=len(references),
            updates=updates,
            source_kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT,
        )


def summarize(plans: Iterable[RepositoryUpdatePlan]) -> PlanSummary:
    """Totals for printing under an update plan."""
    summary = PlanSummary()
    packages: set[str] = set()
    for plan in plans:
        summary.repositories += 1
        summary.files += len(plan.file_updates)
        for file_update in plan.file_updates:
            summary.updates += len(file_update.updates)
            packages.update(u.name.casefold() for u in file_update.updates)
    summary.packages = len(packages)
    return summary
