"""Feature branches, specs and plans."""

from technocrat.features.create import (
    FeatureInfo,
    branch_name_for,
    create_feature,
    highest_feature_number,
)
from technocrat.features.paths import (
    FeatureError,
    FeaturePaths,
    check_feature_branch,
    get_current_branch,
    get_feature_paths,
    get_repo_root,
    latest_feature_dir,
)
from technocrat.features.plan import PlanSetup, setup_plan
from technocrat.features.prerequisites import (
    DocStatus,
    PrerequisiteReport,
    check_prerequisites,
    document_status,
    path_variables,
    validate_prerequisites,
)

__all__ = [
    "DocStatus",
    "FeatureError",
    "FeatureInfo",
    "FeaturePaths",
    "PlanSetup",
    "PrerequisiteReport",
    "branch_name_for",
    "check_feature_branch",
    "check_prerequisites",
    "create_feature",
    "document_status",
    "get_current_branch",
    "get_feature_paths",
    "get_repo_root",
    "highest_feature_number",
    "latest_feature_dir",
    "path_variables",
    "setup_plan",
    "validate_prerequisites",
]
