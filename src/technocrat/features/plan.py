"""Implementation plan setup for the current feature."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from technocrat.features.paths import (
    FeaturePaths,
    check_feature_branch,
    get_feature_paths,
)
from technocrat.templates import get_project_template

logger = logging.getLogger(__name__)

PLAN_TEMPLATE = "plan-template.md"


@dataclass(frozen=True)
class PlanSetup:
    """Result of :func:`setup_plan`."""

    paths: FeaturePaths
    created: bool

    def to_dict(self) -> dict[str, str]:
        return {
            "FEATURE_SPEC": str(self.paths.feature_spec),
            "IMPL_PLAN": str(self.paths.impl_plan),
            "SPECS_DIR": str(self.paths.feature_dir),
            "BRANCH": self.paths.current_branch,
            "HAS_GIT": "true" if self.paths.has_git else "false",
        }


def setup_plan(cwd: Path | None = None) -> PlanSetup:
    """Ensure the feature directory and its ``plan.md`` exist.

    An existing plan is left untouched. A new plan is copied from the
    project's plan template, or created empty when there is none.

    Raises:
        FeatureError: If not on a feature branch.
    """
    paths = get_feature_paths(cwd)
    check_feature_branch(paths.current_branch, paths.has_git)
    paths.feature_dir.mkdir(parents=True, exist_ok=True)

    if paths.impl_plan.exists():
        logger.debug("Plan already exists at %s", paths.impl_plan)
        return PlanSetup(paths=paths, created=False)

    template = get_project_template(paths.repo_root, PLAN_TEMPLATE)
    if template is None:
        logger.warning("Plan template not found; creating empty %s", paths.impl_plan)
    paths.impl_plan.write_text(template or "", encoding="utf-8")
    return PlanSetup(paths=paths, created=True)
