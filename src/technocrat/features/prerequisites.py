"""Prerequisite checks before planning, tasking and implementing."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from technocrat.features.paths import (
    FeatureError,
    FeaturePaths,
    check_feature_branch,
    dir_has_files,
    file_exists,
    get_feature_paths,
)


@dataclass(frozen=True)
class DocStatus:
    """Whether an optional feature document is present."""

    name: str
    available: bool


@dataclass(frozen=True)
class PrerequisiteReport:
    """Result of :func:`check_prerequisites`."""

    paths: FeaturePaths
    docs: tuple[DocStatus, ...]

    @property
    def available_docs(self) -> list[str]:
        return [doc.name for doc in self.docs if doc.available]

    def to_dict(self) -> dict[str, object]:
        return {
            "FEATURE_DIR": str(self.paths.feature_dir),
            "AVAILABLE_DOCS": self.available_docs,
        }


def path_variables(paths: FeaturePaths) -> dict[str, str]:
    """The path set printed by ``check-prerequisites --paths-only``."""
    return {
        "REPO_ROOT": str(paths.repo_root),
        "BRANCH": paths.current_branch,
        "FEATURE_DIR": str(paths.feature_dir),
        "FEATURE_SPEC": str(paths.feature_spec),
        "IMPL_PLAN": str(paths.impl_plan),
        "TASKS": str(paths.tasks),
    }


def validate_prerequisites(paths: FeaturePaths, require_tasks: bool = False) -> None:
    """Check that the feature directory and required documents exist.

    Raises:
        FeatureError: Naming the first missing item and the command that
            creates it.
    """
    if not paths.feature_dir.is_dir():
        raise FeatureError(
            f"Feature directory not found: {paths.feature_dir}\n"
            "Run /tchncrt.spec first to create the feature structure"
        )
    if not paths.impl_plan.exists():
        raise FeatureError(
            f"plan.md not found in {paths.feature_dir}\n"
            "Run /tchncrt.plan first to create the implementation plan"
        )
    if require_tasks and not paths.tasks.exists():
        raise FeatureError(
            f"tasks.md not found in {paths.feature_dir}\n"
            "Run /tchncrt.tasks first to create the task list"
        )


def document_status(paths: FeaturePaths, include_tasks: bool = False) -> tuple[DocStatus, ...]:
    """Presence of the optional design documents, in display order."""
    docs = [
        DocStatus("research.md", file_exists(paths.research)),
        DocStatus("data-model.md", file_exists(paths.data_model)),
        DocStatus("contracts/", dir_has_files(paths.contracts_dir)),
        DocStatus("quickstart.md", file_exists(paths.quickstart)),
    ]
    if include_tasks:
        docs.append(DocStatus("tasks.md", file_exists(paths.tasks)))
    return tuple(docs)


def check_prerequisites(
    require_tasks: bool = False,
    include_tasks: bool = False,
    cwd: Path | None = None,
) -> PrerequisiteReport:
    """Validate the current feature and list its available documents.

    Raises:
        FeatureError: If not on a feature branch or a required file is missing.
    """
    paths = get_feature_paths(cwd)
    check_feature_branch(paths.current_branch, paths.has_git)
    validate_prerequisites(paths, require_tasks=require_tasks)
    return PrerequisiteReport(paths=paths, docs=document_status(paths, include_tasks))
