"""Project scaffolding for ``technocrat init``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from technocrat import git
from technocrat.config.loader import CONFIG_DIRNAME, CONFIG_FILENAME, save_config
from technocrat.config.schema import DEFAULT_CONFIG
from technocrat.templates import copy_templates_to_project, get_template

logger = logging.getLogger(__name__)

CONSTITUTION_TEMPLATE = "constitution-template.md"
PROJECT_NAME_PLACEHOLDER = "[PROJECT_NAME]"


class InitError(Exception):
    """Raised when a project cannot be scaffolded."""


@dataclass
class InitResult:
    """What :func:`init_project` created."""

    project_path: Path
    created: list[str] = field(default_factory=list)
    templates: list[str] = field(default_factory=list)
    git_initialized: bool = False


def is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())


def ensure_constitution(project_path: Path, project_name: str, overwrite: bool) -> bool:
    """Write ``memory/constitution.md`` with *project_name* filled in.

    Returns True if the file was written.
    """
    constitution = project_path / "memory" / "constitution.md"
    if constitution.exists() and not overwrite:
        return False
    template = get_template(CONSTITUTION_TEMPLATE) or f"# {PROJECT_NAME_PLACEHOLDER}\n"
    constitution.parent.mkdir(parents=True, exist_ok=True)
    constitution.write_text(
        template.replace(PROJECT_NAME_PLACEHOLDER, project_name), encoding="utf-8"
    )
    return True


def ensure_project_config(project_path: Path) -> bool:
    """Create ``.tchncrt/config.yaml`` with default settings if missing.

    Returns True if the file was created.
    """
    config_path = project_path / CONFIG_DIRNAME / CONFIG_FILENAME
    if config_path.exists():
        return False
    save_config(DEFAULT_CONFIG, config_path)
    return True


def init_project(
    project_path: Path,
    project_name: str | None = None,
    init_git: bool = True,
    force: bool = False,
) -> InitResult:
    """Scaffold a spec-driven project at *project_path*.

    Creates::

        memory/constitution.md
        specs/
        .tchncrt/templates/*.md
        .tchncrt/config.yaml

    and runs ``git init`` unless *init_git* is False or the directory is
    already inside a repository.

    Raises:
        InitError: If *project_path* is a non-empty directory and *force*
            is not set, or if ``git init`` fails.
    """
    if project_path.exists() and not is_empty_dir(project_path) and not force:
        raise InitError(
            f"Directory '{project_path}' is not empty. Use --force to merge "
            "the templates into it."
        )

    project_path.mkdir(parents=True, exist_ok=True)
    name = project_name or project_path.name
    result = InitResult(project_path=project_path)

    if ensure_constitution(project_path, name, overwrite=force):
        result.created.append("memory/constitution.md")

    specs = project_path / "specs"
    if not specs.exists():
        specs.mkdir()
        result.created.append("specs/")

    result.templates = copy_templates_to_project(project_path, overwrite=force)

    if ensure_project_config(project_path):
        result.created.append(f"{CONFIG_DIRNAME}/{CONFIG_FILENAME}")

    if init_git and git.git_available() and not git.is_git_repo(project_path):
        try:
            git.init_repo(project_path)
        except git.GitError as e:
            raise InitError(str(e)) from e
        result.git_initialized = True
    elif init_git:
        logger.info("Skipping git init for %s", project_path)

    return result
