"""Version drift diagnostics across repositories.

Warnings compare each reference with the highest version used anywhere and
with the latest registry version, at the exact granularity configured for
the package.  Pinned packages only warn when they drift from their pin.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TypeVar

import structlog

from nugsentinel.core.config import VersionWarningConfig
from nugsentinel.engines.version_warnings.models import (
    LATEST_AVAILABLE,
    LATEST_USED,
    PINNED_VERSION_MISMATCH,
    VERSION_MISMATCH_AVAILABLE,
    VERSION_MISMATCH_USED,
    PackageRecommendation,
    RecommendationStats,
    VersionWarning,
    WarningStats,
)
from nugsentinel.engines.versioning import (
    VersionWarningLevel,
    get_version_difference,
    parse_version,
    versions_differ,
)
from nugsentinel.models import PackageReference

log = structlog.get_logger("nugsentinel.engine")

_T = TypeVar("_T", VersionWarning, PackageRecommendation)


def _latest_used(references: Iterable[PackageReference]) -> str | None:
    best = None
    best_raw: str | None = None
    for ref in references:
        parsed = parse_version(ref.declared_version)
        if parsed is not None and (best is None or parsed > best):
            best, best_raw = parsed, ref.declared_version
    return best_raw


def _latest_available(references: Iterable[PackageReference]) -> str | None:
    return next(
        (
            r.registry_info.latest_stable_version
            for r in references
            if r.registry_info is not None and r.registry_info.latest_stable_version
        ),
        None,
    )


def _sort_key(record: VersionWarning | PackageRecommendation) -> tuple[str, str, str]:
    return (record.package_name, record.repository, record.project_path)


class VersionWarningAnalyzer:
    """Warnings and upgrade recommendations under a :class:`VersionWarningConfig`."""

    def __init__(
        self,
        config: VersionWarningConfig | None = None,
        pinned_packages: Mapping[str, str | None] | None = None,
    ) -> None:
        self.config = config or VersionWarningConfig()
        self._pinned = {
            name.casefold(): version for name, version in (pinned_packages or {}).items()
        }

    def _groups(self, references: Iterable[PackageReference]) -> dict[str, list[PackageReference]]:
        groups: dict[str, list[PackageReference]] = {}
        for ref in references:
            if ref.declared_version:
                groups.setdefault(ref.name.casefold(), []).append(ref)
        return groups

    # ── warnings ───────────────────────────────────────────────────────────

    def analyze(self, references: Iterable[PackageReference]) -> list[VersionWarning]:
        warnings: list[VersionWarning] = []
        for key, group in self._groups(references).items():
            package_name = group[0].name
            level = self.config.level_for(package_name)
            if level is VersionWarningLevel.NONE:
                continue
            if key in self._pinned:
                pinned = self._pinned[key]
                warnings.extend(self._pinned_warnings(package_name, level, pinned, group))
            else:
                warnings.extend(self._unpinned_warnings(package_name, level, group))

        warnings.sort(key=_sort_key)
        log.debug("warnings.analyzed", warnings=len(warnings))
        return warnings

    @staticmethod
    def _pinned_warnings(
        package_name: str,
        level: VersionWarningLevel,
        pinned_version: str | None,
        references: list[PackageReference],
    ) -> list[VersionWarning]:
        if not pinned_version:
            return []
        return [
            VersionWarning(
                package_name=package_name,
                repository=ref.repository_name,
                project_path=ref.project_path,
                current_version=ref.declared_version,
                reference_version=pinned_version,
                warning_type=PINNED_VERSION_MISMATCH,
                level=level,
                description=(
                    f"Package version {ref.declared_version} differs from pinned version "
                    f"{pinned_version}"
                ),
            )
            for ref in references
            if ref.declared_version.casefold() != pinned_version.casefold()
        ]

    @staticmethod
    def _mismatch(
        package_name: str,
        level: VersionWarningLevel,
        ref: PackageReference,
        reference_version: str | None,
        warning_type: str,
    ) -> VersionWarning | None:
        if not reference_version:
            return None
        if ref.declared_version.casefold() == reference_version.casefold():
            return None
        if not versions_differ(ref.declared_version, reference_version, level):
            return None

        diff = get_version_difference(ref.declared_version, reference_version)
        label = (
            "latest available version"
            if warning_type == VERSION_MISMATCH_AVAILABLE
            else "latest used version"
        )
        return VersionWarning(
            package_name=package_name,
            repository=ref.repository_name,
            project_path=ref.project_path,
            current_version=ref.declared_version,
            reference_version=reference_version,
            warning_type=warning_type,
            level=level,
            description=(
                f"Package version {ref.declared_version} differs from {label} "
                f"{reference_version} ({diff} version difference)"
            ),
        )

    def _unpinned_warnings(
        self, package_name: str, level: VersionWarningLevel, references: list[PackageReference]
    ) -> list[VersionWarning]:
        latest_used = _latest_used(references)
        latest_available = _latest_available(references)
        warnings: list[VersionWarning] = []
        for ref in references:
            for reference_version, warning_type in (
                (latest_used, VERSION_MISMATCH_USED),
                (latest_available, VERSION_MISMATCH_AVAILABLE),
            ):
                warning = self._mismatch(package_name, level, ref, reference_version, warning_type)
                if warning is not None:
                    warnings.append(warning)
        return warnings

    # ── recommendations ────────────────────────────────────────────────────

    def recommend(self, references: Iterable[PackageReference]) -> list[PackageRecommendation]:
        """Upgrade targets per reference; pinned packages never get one."""
        recommendations: list[PackageRecommendation] = []
        for key, group in self._groups(references).items():
            package_name = group[0].name
            level = self.config.level_for(package_name)
            if level is VersionWarningLevel.NONE or key in self._pinned:
                continue

            latest_available = _latest_available(group)
            recommended = latest_available or _latest_used(group)
            if not recommended:
                continue

            for ref in group:
                if ref.declared_version.casefold() == recommended.casefold():
                    continue
                if not versions_differ(ref.declared_version, recommended, level):
                    continue
                diff = get_version_difference(ref.declared_version, recommended)
                if latest_available is not None:
                    kind = LATEST_AVAILABLE
                    reason = (
                        f"Upgrade to latest available version (currently {diff} version behind)"
                    )
                else:
                    kind = LATEST_USED
                    reason = (
                        "Align with latest version used in solution "
                        f"(currently {diff} version behind)"
                    )
                recommendations.append(
                    PackageRecommendation(
                        package_name=package_name,
                        repository=ref.repository_name,
                        project_path=ref.project_path,
                        current_version=ref.declared_version,
                        recommended_version=recommended,
                        recommendation_type=kind,
                        reason=reason,
                    )
                )

        recommendations.sort(key=_sort_key)
        return recommendations

    # ── aggregates ─────────────────────────────────────────────────────────

    @staticmethod
    def warning_stats(warnings: Iterable[VersionWarning]) -> WarningStats:
        warnings = list(warnings)
        stats = WarningStats(
            total_warnings=len(warnings),
            packages_with_warnings=len({w.package_name for w in warnings}),
        )
        for w in warnings:
            diff = get_version_difference(w.current_version, w.reference_version)
            if diff == "major" and w.level.rank >= VersionWarningLevel.MAJOR.rank:
                stats.major_warnings += 1
            elif diff == "minor" and w.level.rank >= VersionWarningLevel.MINOR.rank:
                stats.minor_warnings += 1
            elif diff == "patch" and w.level.rank >= VersionWarningLevel.PATCH.rank:
                stats.patch_warnings += 1
        return stats

    @staticmethod
    def recommendation_stats(
        recommendations: Iterable[PackageRecommendation],
    ) -> RecommendationStats:
        recommendations = list(recommendations)
        return RecommendationStats(
            total_recommendations=len(recommendations),
            packages_needing_update=len({r.package_name for r in recommendations}),
            projects_affected=len({(r.repository, r.project_path) for r in recommendations}),
        )

    @staticmethod
    def group_by_package(records: Iterable[_T]) -> dict[str, list[_T]]:
        """Warnings or recommendations keyed by package name, order preserved."""
        grouped: dict[str, list[_T]] = {}
        for record in records:
            grouped.setdefault(record.package_name, []).append(record)
        return grouped
