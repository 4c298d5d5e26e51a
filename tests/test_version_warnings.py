"""Tests for version drift warnings and upgrade recommendations."""

from __future__ import annotations

from nugsentinel.core.config import PackageWarningRule, VersionWarningConfig
from nugsentinel.engines.version_warnings import (
    LATEST_AVAILABLE,
    LATEST_USED,
    PINNED_VERSION_MISMATCH,
    VERSION_MISMATCH_AVAILABLE,
    VERSION_MISMATCH_USED,
    VersionWarningAnalyzer,
)
from nugsentinel.engines.versioning import VersionWarningLevel
from nugsentinel.models import PackageReference, RegistryInfo


def _ref(
    name: str, version: str | None, repo: str, latest: str | None = None
) -> PackageReference:
    info = None
    if latest is not None:
        info = RegistryInfo(
            package_name=name,
            exists_on_primary_registry=True,
            latest_stable_version=latest,
            available_stable_versions=[latest],
            feed_name="nuget.org",
        )
    return PackageReference(
        name=name,
        declared_version=version,
        project_path=f"/src/{repo}/{repo}.csproj",
        repository_name=repo,
        project_name=repo,
        registry_info=info,
    )


def _config(level: str = "minor", **rules: str) -> VersionWarningConfig:
    return VersionWarningConfig(
        default_level=level,
        package_rules=[PackageWarningRule(package_name=n, level=lv) for n, lv in rules.items()],
    )


DRIFTED = [
    _ref("Serilog", "3.0.0", "billing", latest="3.2.0"),
    _ref("Serilog", "3.1.0", "orders", latest="3.2.0"),
]


# ── warnings ─────────────────────────────────────────────────────────────


class TestAnalyze:
    def test_used_and_available_mismatches(self):
        warnings = VersionWarningAnalyzer(_config()).analyze(DRIFTED)

        assert [(w.repository, w.warning_type, w.reference_version) for w in warnings] == [
            ("billing", VERSION_MISMATCH_USED, "3.1.0"),
            ("billing", VERSION_MISMATCH_AVAILABLE, "3.2.0"),
            ("orders", VERSION_MISMATCH_AVAILABLE, "3.2.0"),
        ]
        assert warnings[0].description == (
            "Package version 3.0.0 differs from latest used version 3.1.0 "
            "(minor version difference)"
        )
        assert all(w.level is VersionWarningLevel.MINOR for w in warnings)

    def test_level_none_is_silent(self):
        assert VersionWarningAnalyzer(_config("none")).analyze(DRIFTED) == []
        assert VersionWarningAnalyzer().analyze(DRIFTED) == []

    def test_package_rule_overrides_default(self):
        analyzer = VersionWarningAnalyzer(_config("minor", serilog="none"))
        assert analyzer.analyze(DRIFTED) == []

    def test_level_is_exact(self):
        refs = [_ref("Dapper", "1.0.0", "a"), _ref("Dapper", "2.0.0", "b")]
        assert VersionWarningAnalyzer(_config("minor")).analyze(refs) == []
        [warning] = VersionWarningAnalyzer(_config("major")).analyze(refs)
        assert warning.repository == "a"

    def test_references_without_version_are_ignored(self):
        refs = [_ref("Dapper", None, "a"), _ref("Dapper", "1.1.0", "b")]
        assert VersionWarningAnalyzer(_config("minor")).analyze(refs) == []

    def test_pinned_mismatch(self):
        analyzer = VersionWarningAnalyzer(_config(), pinned_packages={"serilog": "3.0.0"})
        [warning] = analyzer.analyze(DRIFTED)

        assert warning.warning_type == PINNED_VERSION_MISMATCH
        assert warning.repository == "orders"
        assert warning.description == "Package version 3.1.0 differs from pinned version 3.0.0"

    def test_pinned_without_version_never_warns(self):
        analyzer = VersionWarningAnalyzer(_config(), pinned_packages={"Serilog": None})
        assert analyzer.analyze(DRIFTED) == []


# ── recommendations ──────────────────────────────────────────────────────


class TestRecommend:
    def test_latest_available(self):
        recommendations = VersionWarningAnalyzer(_config()).recommend(DRIFTED)

        assert [(r.repository, r.recommended_version) for r in recommendations] == [
            ("billing", "3.2.0"),
            ("orders", "3.2.0"),
        ]
        assert all(r.recommendation_type == LATEST_AVAILABLE for r in recommendations)
        assert recommendations[0].reason == (
            "Upgrade to latest available version (currently minor version behind)"
        )

    def test_latest_used_without_registry(self):
        refs = [_ref("Dapper", "2.0.0", "a"), _ref("Dapper", "2.1.0", "b")]
        [rec] = VersionWarningAnalyzer(_config()).recommend(refs)
        assert rec.recommendation_type == LATEST_USED
        assert (rec.current_version, rec.recommended_version) == ("2.0.0", "2.1.0")

    def test_pinned_packages_excluded(self):
        analyzer = VersionWarningAnalyzer(_config(), pinned_packages={"Serilog": "3.0.0"})
        assert analyzer.recommend(DRIFTED) == []


# ── aggregates ───────────────────────────────────────────────────────────


class TestStats:
    def test_warning_stats(self):
        analyzer = VersionWarningAnalyzer(_config())
        stats = analyzer.warning_stats(analyzer.analyze(DRIFTED))
        assert stats.total_warnings == 3
        assert stats.packages_with_warnings == 1
        assert (stats.major_warnings, stats.minor_warnings, stats.patch_warnings) == (0, 3, 0)

    def test_recommendation_stats(self):
        analyzer = VersionWarningAnalyzer(_config())
        stats = analyzer.recommendation_stats(analyzer.recommend(DRIFTED))
        assert stats.total_recommendations == 2
        assert stats.packages_needing_update == 1
        assert stats.projects_affected == 2

    def test_group_by_package(self):
        refs = DRIFTED + [_ref("Dapper", "1.0.0", "a"), _ref("Dapper", "1.1.0", "b")]
        analyzer = VersionWarningAnalyzer(_config())
        grouped = analyzer.group_by_package(analyzer.analyze(refs))
        assert list(grouped) == ["Dapper", "Serilog"]
        assert len(grouped["Serilog"]) == 3
