"""Creation of a new numbered feature and its branch."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from technocrat import git
from technocrat.features.paths import SPECS_DIRNAME, FeatureError, get_repo_root
from technocrat.templates import get_project_template

logger = logging.getLogger(__name__)

SPEC_TEMPLATE = "spec-template.md"
MAX_BRANCH_WORDS = 3

_LEADING_NUMBER_RE = re.compile(r"^(\d+)")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class FeatureInfo:
    """Result of :func:`create_feature`."""

    branch_name: str
    spec_file: Path
    feature_num: str
    feature_dir: Path
    has_git: bool

    def to_dict(self) -> dict[str, str]:
        return {
            "BRANCH_NAME": self.branch_name,
            "SPEC_FILE": str(self.spec_file),
            "FEATURE_NUM": self.feature_num,
            "FEATURE_DIR": str(self.feature_dir),
        }


def highest_feature_number(specs_dir: Path) -> int:
    """Highest leading number among directories in *specs_dir* (0 if none)."""
    if not specs_dir.is_dir():
        return 0
    highest = 0
    for entry in specs_dir.iterdir():
        if not entry.is_dir():
            continue
        match = _LEADING_NUMBER_RE.match(entry.name)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def branch_name_for(description: str, feature_num: str) -> str:
    """Build ``NNN-first-three-words`` from a free-text description."""
    slug = _NON_ALNUM_RE.sub("-", description.lower()).strip("-")
    words = slug.split("-")[:MAX_BRANCH_WORDS]
    return f"{feature_num}-{'-'.join(words)}"


def create_feature(description: str, cwd: Path | None = None) -> FeatureInfo:
    """Create ``specs/NNN-name/spec.md`` and, inside git, branch ``NNN-name``.

    The spec is seeded from the project's spec template when present and
    is left empty otherwise.

    Raises:
        FeatureError: If the description is empty or branch creation fails.
    """
    if not description.strip():
        raise FeatureError("Feature description must not be empty")

    repo_root = get_repo_root(cwd)
    has_git = git.is_git_repo(repo_root)

    specs_dir = repo_root / SPECS_DIRNAME
    specs_dir.mkdir(parents=True, exist_ok=True)

    feature_num = f"{highest_feature_number(specs_dir) + 1:03d}"
    branch_name = branch_name_for(description, feature_num)
    feature_dir = specs_dir / branch_name
    feature_dir.mkdir(parents=True, exist_ok=True)

    if has_git:
        try:
            git.create_branch(branch_name, repo_root)
        except git.GitError as e:
            raise FeatureError(str(e)) from e
    else:
        logger.warning(
            "Git repository not detected; skipped branch creation for %s", branch_name
        )

    spec_file = feature_dir / "spec.md"
    template = get_project_template(repo_root, SPEC_TEMPLATE)
    spec_file.write_text(template or "", encoding="utf-8")

    return FeatureInfo(
        branch_name=branch_name,
        spec_file=spec_file,
        feature_num=feature_num,
        feature_dir=feature_dir,
        has_git=has_git,
    )
