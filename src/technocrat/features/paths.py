"""Repository and feature path resolution.

A *feature* is a directory ``specs/NNN-short-name`` whose name doubles as
the git branch it is developed on. When git is unavailable the feature is
taken from ``TCHNCRT_FEATURE`` or the highest-numbered specs directory.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from technocrat import git

logger = logging.getLogger(__name__)

FEATURE_ENV_VAR = "TCHNCRT_FEATURE"
SPECS_DIRNAME = "specs"
DEFAULT_BRANCH = "main"
REPO_MARKERS: tuple[str, ...] = (".git", ".tchncrt")

FEATURE_DIR_RE = re.compile(r"^(\d{3})-")
FEATURE_BRANCH_RE = re.compile(r"^\d{3}-")


class FeatureError(Exception):
    """Raised when the current branch or feature files are not usable."""


@dataclass(frozen=True)
class FeaturePaths:
    """Paths of the documents belonging to the current feature."""

    repo_root: Path
    current_branch: str
    has_git: bool
    feature_dir: Path
    feature_spec: Path
    impl_plan: Path
    tasks: Path
    research: Path
    data_model: Path
    quickstart: Path
    contracts_dir: Path

    @classmethod
    def for_branch(cls, repo_root: Path, branch: str, has_git: bool) -> FeaturePaths:
        feature_dir = repo_root / SPECS_DIRNAME / branch
        return cls(
            repo_root=repo_root,
            current_branch=branch,
            has_git=has_git,
            feature_dir=feature_dir,
            feature_spec=feature_dir / "spec.md",
            impl_plan=feature_dir / "plan.md",
            tasks=feature_dir / "tasks.md",
            research=feature_dir / "research.md",
            data_model=feature_dir / "data-model.md",
            quickstart=feature_dir / "quickstart.md",
            contracts_dir=feature_dir / "contracts",
        )


def get_repo_root(cwd: Path | None = None) -> Path:
    """Locate the repository root.

    Uses ``git rev-parse --show-toplevel`` when available, otherwise the
    nearest ancestor holding ``.git`` or ``.tchncrt``, otherwise *cwd*.
    """
    start = (cwd or Path.cwd()).resolve()
    toplevel = git.get_toplevel(start)
    if toplevel is not None:
        return toplevel

    for directory in (start, *start.parents):
        if any((directory / marker).exists() for marker in REPO_MARKERS):
            return directory
    return start


def latest_feature_dir(repo_root: Path) -> str | None:
    """Name of the highest-numbered ``specs/NNN-*`` directory, if any."""
    specs_dir = repo_root / SPECS_DIRNAME
    if not specs_dir.is_dir():
        return None

    latest: str | None = None
    highest = 0
    for entry in specs_dir.iterdir():
        if not entry.is_dir():
            continue
        match = FEATURE_DIR_RE.match(entry.name)
        if match and int(match.group(1)) > highest:
            highest = int(match.group(1))
            latest = entry.name
    return latest


def get_current_branch(repo_root: Path) -> str:
    """Resolve the current feature branch name.

    Order: ``TCHNCRT_FEATURE``, the git branch, the latest feature
    directory, then ``main``.
    """
    override = os.environ.get(FEATURE_ENV_VAR)
    if override:
        return override

    branch = git.get_current_branch(repo_root)
    if branch:
        return branch

    return latest_feature_dir(repo_root) or DEFAULT_BRANCH


def get_feature_paths(cwd: Path | None = None) -> FeaturePaths:
    """Build the :class:`FeaturePaths` for the current feature."""
    repo_root = get_repo_root(cwd)
    branch = get_current_branch(repo_root)
    has_git = git.is_git_repo(repo_root)
    logger.debug("Feature %s in %s (git=%s)", branch, repo_root, has_git)
    return FeaturePaths.for_branch(repo_root, branch, has_git)


def check_feature_branch(branch: str, has_git: bool) -> None:
    """Validate that *branch* follows the ``NNN-name`` convention.

    Outside git the check is skipped with a warning.

    Raises:
        FeatureError: If the branch is not a feature branch.
    """
    if not has_git:
        logger.warning("Git repository not detected; skipped branch validation")
        return

    if not FEATURE_BRANCH_RE.match(branch):
        raise FeatureError(
            f"Not on a feature branch. Current branch: {branch}\n"
            "Feature branches should be named like: 001-feature-name"
        )


def file_exists(path: Path) -> bool:
    return path.is_file()


def dir_has_files(path: Path) -> bool:
    """True when *path* is a directory with at least one entry."""
    return path.is_dir() and any(path.iterdir())
