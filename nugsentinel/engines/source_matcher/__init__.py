"""Source-project matcher: guess which scanned project builds an internal package."""

from nugsentinel.engines.source_matcher.matcher import (
    CatalogEntry,
    build_catalog,
    extract_potential_package_name,
    find_source_project,
    levenshtein_distance,
    match_confidence,
)

__all__ = [
    "CatalogEntry",
    "build_catalog",
    "extract_potential_package_name",
    "find_source_project",
    "levenshtein_distance",
    "match_confidence",
]
