"""Records produced by the version warning analyzer."""

from __future__ import annotations

from dataclasses import dataclass

from nugsentinel.engines.versioning import VersionWarningLevel

PINNED_VERSION_MISMATCH = "pinned-version-mismatch"
VERSION_MISMATCH_USED = "version-mismatch-used"
VERSION_MISMATCH_AVAILABLE = "version-mismatch-available"

LATEST_AVAILABLE = "latest-available"
LATEST_USED = "latest-used"


@dataclass
class VersionWarning:
    package_name: str
    repository: str
    project_path: str
    current_version: str
    reference_version: str
    warning_type: str
    level: VersionWarningLevel
    description: str


@dataclass
class PackageRecommendation:
    package_name: str
    repository: str
    project_path: str
    current_version: str
    recommended_version: str
    recommendation_type: str
    reason: str


@dataclass
class WarningStats:
    total_warnings: int = 0
    packages_with_warnings: int = 0
    major_warnings: int = 0
    minor_warnings: int = 0
    patch_warnings: int = 0


@dataclass
class RecommendationStats:
    total_recommendations: int = 0
    packages_needing_update: int = 0
    projects_affected: int = 0
