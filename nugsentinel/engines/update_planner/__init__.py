"""Update plan builder and the content rewriters that apply its plans."""

from nugsentinel.engines.update_planner.models import (
    DEFAULT_CPM_PATH,
    FileUpdate,
    PackageUpdate,
    PlanSummary,
    RepositoryUpdatePlan,
    SyncPlan,
)
from nugsentinel.engines.update_planner.planner import UpdatePlanBuilder, summarize
from nugsentinel.engines.update_planner.rewriter import (
    apply_cpm_updates,
    apply_packages_config_updates,
    apply_project_updates,
    apply_updates,
)
from nugsentinel.engines.update_planner.sync import plan_sync
from nugsentinel.engines.update_planner.version_incrementer import (
    VERSION_PROPERTIES,
    apply_version_increments,
    increment_property,
    increment_version,
)

__all__ = [
    "DEFAULT_CPM_PATH",
    "FileUpdate",
    "PackageUpdate",
    "PlanSummary",
    "RepositoryUpdatePlan",
    "SyncPlan",
    "UpdatePlanBuilder",
    "VERSION_PROPERTIES",
    "apply_cpm_updates",
    "apply_packages_config_updates",
    "apply_project_updates",
    "apply_updates",
    "apply_version_increments",
    "increment_property",
    "increment_version",
    "plan_sync",
    "summarize",
]
