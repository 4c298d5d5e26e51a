"""Tests for the update plan builder."""

from __future__ import annotations

import pytest

from nugsentinel.engines.update_planner import (
    DEFAULT_CPM_PATH,
    UpdatePlanBuilder,
    plan_sync,
    summarize,
)
from nugsentinel.engines.versioning import UpdateScope
from nugsentinel.models import (
    PackageReference,
    RegistryInfo,
    SourceKind,
    SourceProjectCandidate,
)

AVAILABLE = ["1.2.3", "1.2.9", "1.3.0", "2.0.0"]


def _ref(
    name: str,
    version: str | None = "1.2.3",
    project_path: str = "/src/App/App.csproj",
    repo: str = "repo",
    *,
    kind: SourceKind = SourceKind.PROJECT_FILE,
    latest: str | None = "2.0.0",
    available: list[str] | None = None,
    cpm_file_path: str | None = None,
    packages_config_path: str | None = None,
    sources: list[SourceProjectCandidate] | None = None,
    resolved: bool = True,
) -> PackageReference:
    info = None
    if resolved:
        info = RegistryInfo(
            package_name=name,
            exists_on_primary_registry=True,
            latest_stable_version=latest,
            available_stable_versions=list(AVAILABLE if available is None else available),
            source_project_candidates=sources or [],
            feed_name="nuget.org",
        )
    return PackageReference(
        name=name,
        declared_version=version,
        project_path=project_path,
        repository_name=repo,
        project_name=project_path.rsplit("/", 1)[-1].split(".")[0],
        source_kind=kind,
        cpm_file_path=cpm_file_path,
        packages_config_path=packages_config_path,
        registry_info=info,
    )


# ── per reference decisions ──────────────────────────────────────────────


class TestTryCreateUpdate:
    def test_patch_scope_uses_in_scope_available_version(self):
        builder = UpdatePlanBuilder(UpdateScope.PATCH)
        update = builder.try_create_update(_ref("PkgA"))
        assert update is not None
        assert (update.old_version, update.new_version) == ("1.2.3", "1.2.9")

    def test_major_scope_moves_to_latest(self):
        update = UpdatePlanBuilder(UpdateScope.MAJOR).try_create_update(_ref("PkgA"))
        assert update.new_version == "2.0.0"

    def test_no_registry_info(self):
        builder = UpdatePlanBuilder(UpdateScope.MAJOR)
        assert builder.try_create_update(_ref("PkgA", resolved=False)) is None

    def test_no_declared_version(self):
        builder = UpdatePlanBuilder(UpdateScope.MAJOR)
        assert builder.try_create_update(_ref("PkgA", version=None)) is None

    def test_already_current(self):
        builder = UpdatePlanBuilder(UpdateScope.MAJOR)
        assert builder.try_create_update(_ref("PkgA", version="2.0.0")) is None

    def test_pinned_is_case_insensitive(self):
        builder = UpdatePlanBuilder(UpdateScope.MAJOR, pinned_packages={"serilog": "2.0.0"})
        assert builder.try_create_update(_ref("Serilog")) is None
        assert builder.skipped_pinned == {"serilog"}

    def test_pinned_accepts_plain_names(self):
        builder = UpdatePlanBuilder(UpdateScope.MAJOR, pinned_packages=["Serilog"])
        assert builder.is_pinned("SERILOG")

    def test_source_only_requires_candidates(self):
        builder = UpdatePlanBuilder(UpdateScope.MAJOR, source_packages_only=True)
        assert builder.try_create_update(_ref("PkgA")) is None
        assert builder.skipped_no_source == {"pkga"}

        candidate = SourceProjectCandidate("PkgA", "libs", "/src/PkgA/PkgA.csproj", 1.0)
        assert builder.try_create_update(_ref("PkgA", sources=[candidate])) is not None


# ── plans ────────────────────────────────────────────────────────────────


class TestBuildPlans:
    def test_none_is_rejected(self):
        with pytest.raises(TypeError):
            UpdatePlanBuilder().build_plans(None)

    def test_empty(self):
        assert UpdatePlanBuilder().build_plans([]) == []

    def test_central_package_updated_once(self):
        refs = [
            _ref(
                "PkgA",
                project_path=path,
                kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT,
                cpm_file_path="/Directory.Packages.props",
            )
            for path in ("/src/One/One.csproj", "/src/Two/Two.csproj")
        ]
        plans = UpdatePlanBuilder(UpdateScope.PATCH).build_plans(refs)

        assert len(plans) == 1
        [file_update] = plans[0].file_updates
        assert file_update.target_path == "/Directory.Packages.props"
        assert file_update.source_kind is SourceKind.CENTRAL_PACKAGE_MANAGEMENT
        assert file_update.dependency_count == 2
        assert [(u.name, u.new_version) for u in file_update.updates] == [("PkgA", "1.2.9")]

    def test_central_path_defaults(self):
        refs = [_ref("PkgA", kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT)]
        [plan] = UpdatePlanBuilder().build_plans(refs)
        assert plan.file_updates[0].target_path == DEFAULT_CPM_PATH

    def test_pinned_package_never_planned(self):
        refs = [
            _ref("Serilog", project_path="/src/A/A.csproj"),
            _ref("Serilog", project_path="/src/B/B.csproj"),
            _ref("Dapper", project_path="/src/B/B.csproj"),
        ]
        builder = UpdatePlanBuilder(UpdateScope.MAJOR, pinned_packages={"Serilog": None})
        plans = builder.build_plans(refs)

        names = [u.name for p in plans for f in p.file_updates for u in f.updates]
        assert names == ["Dapper"]
        assert builder.skipped_pinned == {"serilog"}

    def test_file_ordering(self):
        refs = [
            _ref("PkgA", project_path="/src/Big/Big.csproj"),
            _ref("PkgB", project_path="/src/Big/Big.csproj"),
            _ref("PkgC", project_path="/src/Small/Small.csproj"),
            _ref("PkgD", project_path="/src/Alpha/Alpha.csproj"),
            _ref(
                "PkgE",
                project_path="/src/Legacy/Legacy.csproj",
                kind=SourceKind.PACKAGES_CONFIG,
                packages_config_path="/src/Legacy/packages.config",
            ),
            _ref("PkgF", kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT),
        ]
        [plan] = UpdatePlanBuilder().build_plans(refs)

        assert [f.target_path for f in plan.file_updates] == [
            DEFAULT_CPM_PATH,
            "/src/Legacy/packages.config",
            "/src/Alpha/Alpha.csproj",
            "/src/Small/Small.csproj",
            "/src/Big/Big.csproj",
        ]

    def test_dependency_count_includes_unchanged_references(self):
        refs = [
            _ref("PkgA", project_path="/src/A/A.csproj"),
            _ref("PkgB", version="2.0.0", project_path="/src/A/A.csproj"),
        ]
        [plan] = UpdatePlanBuilder().build_plans(refs)
        [file_update] = plan.file_updates
        assert file_update.dependency_count == 2
        assert [u.name for u in file_update.updates] == ["PkgA"]

    def test_repositories_sorted_and_empty_ones_omitted(self):
        refs = [
            _ref("PkgA", repo="zeta"),
            _ref("PkgA", repo="alpha"),
            _ref("PkgA", version="2.0.0", repo="middle"),
        ]
        plans = UpdatePlanBuilder(UpdateScope.MAJOR).build_plans(refs)
        assert [p.repository_name for p in plans] == ["alpha", "zeta"]

    def test_skip_sets_reset_between_runs(self):
        builder = UpdatePlanBuilder(pinned_packages=["PkgA"])
        builder.build_plans([_ref("PkgA")])
        builder.build_plans([_ref("PkgB")])
        assert builder.skipped_pinned == set()


class TestSummarize:
    def test_totals(self):
        refs = [
            _ref("PkgA", project_path="/src/A/A.csproj"),
            _ref("pkga", project_path="/src/B/B.csproj"),
            _ref("PkgB", project_path="/src/B/B.csproj", repo="other"),
        ]
        summary = summarize(UpdatePlanBuilder().build_plans(refs))
        assert summary.repositories == 2
        assert summary.files == 3
        assert summary.updates == 3
        assert summary.packages == 2


# ── sync ─────────────────────────────────────────────────────────────────


class TestPlanSync:
    def test_upgrades_and_downgrades(self):
        refs = [
            _ref("Serilog", "3.0.0", "/Billing.csproj", repo="billing"),
            _ref("Serilog", "4.0.0", "/Orders.csproj", repo="orders"),
        ]
        result = plan_sync(refs, "Serilog", "3.1.0")

        assert [p.repository_name for p in result.plans] == ["billing", "orders"]
        moves = [
            (u.old_version, u.new_version)
            for p in result.plans
            for f in p.file_updates
            for u in f.updates
        ]
        assert moves == [("3.0.0", "3.1.0"), ("4.0.0", "3.1.0")]

    def test_repositories_already_at_target(self):
        refs = [
            _ref("Serilog", "3.1.0", repo="shop"),
            _ref("serilog", "3.0.0", repo="billing"),
        ]
        result = plan_sync(refs, "SERILOG", "3.1.0")
        assert result.up_to_date == ["shop"]
        assert [p.repository_name for p in result.plans] == ["billing"]

    def test_other_packages_and_unversioned_references_ignored(self):
        refs = [
            _ref("Dapper", "1.0.0"),
            _ref("Serilog", None),
        ]
        result = plan_sync(refs, "Serilog", "3.1.0")
        assert result.plans == []
        assert result.up_to_date == []

    def test_central_file_updated_once(self):
        refs = [
            _ref("Serilog", "3.0.0", "/a/A.csproj", kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT),
            _ref("Serilog", "3.0.0", "/b/B.csproj", kind=SourceKind.CENTRAL_PACKAGE_MANAGEMENT),
            _ref("Serilog", "2.0.0", "/c/C.csproj"),
        ]
        [plan] = plan_sync(refs, "Serilog", "3.1.0").plans

        cpm, project = plan.file_updates
        assert cpm.target_path == DEFAULT_CPM_PATH
        assert cpm.source_kind is SourceKind.CENTRAL_PACKAGE_MANAGEMENT
        assert cpm.dependency_count == 2
        assert len(cpm.updates) == 1
        assert project.target_path == "/c/C.csproj"

    def test_packages_config_path(self):
        ref = _ref(
            "EntityFramework",
            "6.4.0",
            "/Legacy/Legacy.csproj",
            kind=SourceKind.PACKAGES_CONFIG,
            packages_config_path="/Legacy/packages.config",
        )
        [plan] = plan_sync([ref], "EntityFramework", "6.4.4").plans
        assert plan.file_updates[0].target_path == "/Legacy/packages.config"

    def test_registry_data_not_needed(self):
        result = plan_sync([_ref("Serilog", "3.0.0", resolved=False)], "Serilog", "3.1.0")
        assert result.plans[0].update_count == 1

    def test_invalid_arguments(self):
        with pytest.raises(TypeError):
            plan_sync(None, "Serilog", "1.0.0")
        with pytest.raises(ValueError):
            plan_sync([], "Serilog", "")
