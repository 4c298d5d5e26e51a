"""Central package management migration planner."""

from nugsentinel.engines.cpm_migration.migrator import (
    PROPS_FILE_NAME,
    generate_central_props,
    migrate,
    migrate_by_repository,
    per_project_props_path,
    remove_version_attributes,
)
from nugsentinel.engines.cpm_migration.models import CpmConflict, CpmFileChange, CpmMigrationResult

__all__ = [
    "PROPS_FILE_NAME",
    "CpmConflict",
    "CpmFileChange",
    "CpmMigrationResult",
    "generate_central_props",
    "migrate",
    "migrate_by_repository",
    "per_project_props_path",
    "remove_version_attributes",
]
