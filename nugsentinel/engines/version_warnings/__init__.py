"""Version warnings: drift diagnostics and upgrade recommendations."""

from nugsentinel.engines.version_warnings.analyzer import VersionWarningAnalyzer
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

__all__ = [
    "LATEST_AVAILABLE",
    "LATEST_USED",
    "PINNED_VERSION_MISMATCH",
    "VERSION_MISMATCH_AVAILABLE",
    "VERSION_MISMATCH_USED",
    "PackageRecommendation",
    "RecommendationStats",
    "VersionWarning",
    "VersionWarningAnalyzer",
    "WarningStats",
]
