"""Thin wrappers around the git CLI."""

import logging
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when a git command fails."""


def git_available() -> bool:
    """Check whether the ``git`` executable is on PATH."""
    return shutil.which("git") is not None


def _run(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
    )


def is_git_repo(path: Path | None = None) -> bool:
    """Check if *path* (default: cwd) is inside a git work tree."""
    if not git_available():
        return False
    return _run(["rev-parse", "--is-inside-work-tree"], cwd=path).returncode == 0


def get_toplevel(path: Path | None = None) -> Path | None:
    """Return the top-level directory of the repository, or None."""
    if not git_available():
        return None
    result = _run(["rev-parse", "--show-toplevel"], cwd=path)
    if result.returncode != 0:
        return None
    return Path(result.stdout.strip())


def get_current_branch(path: Path | None = None) -> str | None:
    """Return the checked-out branch name, or None outside a repository."""
    if not git_available():
        return None
    result = _run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=path)
    if result.returncode != 0:
        return None
    branch = result.stdout.strip()
    return branch or None


def create_branch(name: str, path: Path | None = None) -> None:
    """Create and check out branch *name*.

    Raises:
        GitError: If git refuses to create the branch.
    """
    result = _run(["checkout", "-b", name], cwd=path)
    if result.returncode != 0:
        raise GitError(f"Failed to create branch {name}: {result.stderr.strip()}")
    logger.debug("Created branch %s", name)


def init_repo(path: Path) -> None:
    """Initialise a repository at *path* with an initial commit.

    Raises:
        GitError: If ``git init`` fails. A failed initial commit (for
            example, no author identity configured) is logged and ignored.
    """
    result = _run(["init"], cwd=path)
    if result.returncode != 0:
        raise GitError(f"git init failed: {result.stderr.strip()}")

    _run(["add", "."], cwd=path)
    commit = _run(["commit", "-m", "Initial commit from Technocrat template"], cwd=path)
    if commit.returncode != 0:
        logger.warning("Initial commit skipped: %s", commit.stderr.strip())
