"""Git operations for Technocrat."""

from technocrat.git.operations import (
    GitError,
    create_branch,
    get_current_branch,
    get_toplevel,
    git_available,
    init_repo,
    is_git_repo,
)

__all__ = [
    "GitError",
    "create_branch",
    "get_current_branch",
    "get_toplevel",
    "git_available",
    "init_repo",
    "is_git_repo",
]
