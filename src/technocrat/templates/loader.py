"""Access to the templates bundled with the package."""

from __future__ import annotations

import shutil
from pathlib import Path

# Constants
DATA_DIRNAME = "data"
COMMANDS_DIRNAME = "commands"
TEMPLATE_SUFFIX = ".md"
PROJECT_TEMPLATES_DIR = Path(".tchncrt") / "templates"


def get_package_templates_path() -> Path:
    """Get path to package-bundled document templates."""
    return Path(__file__).parent / DATA_DIRNAME


def get_commands_path() -> Path:
    """Get path to package-bundled command (workflow) templates."""
    return get_package_templates_path() / COMMANDS_DIRNAME


def get_project_templates_path(repo_root: Path) -> Path:
    """Get path to a project's template copies: <root>/.tchncrt/templates/."""
    return repo_root / PROJECT_TEMPLATES_DIR


def _read(path: Path) -> str | None:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def get_template(name: str) -> str | None:
    """Return the bundled document template *name* (e.g. ``spec-template.md``).

    Returns None if no such template is bundled.
    """
    return _read(get_package_templates_path() / name)


def get_command_template(name: str) -> str | None:
    """Return the bundled command template *name*.

    The ``.md`` suffix is optional. Returns None if the command is unknown.
    """
    if not name.endswith(TEMPLATE_SUFFIX):
        name += TEMPLATE_SUFFIX
    return _read(get_commands_path() / name)


def list_commands() -> list[str]:
    """List bundled command names (without suffix), sorted."""
    return sorted(
        path.stem
        for path in get_commands_path().glob(f"*{TEMPLATE_SUFFIX}")
        if path.is_file()
    )


def list_templates() -> list[str]:
    """List bundled document template file names, sorted."""
    return sorted(
        path.name
        for path in get_package_templates_path().glob(f"*{TEMPLATE_SUFFIX}")
        if path.is_file()
    )


def get_project_template(repo_root: Path, name: str) -> str | None:
    """Return the project's own copy of template *name*, or None."""
    return _read(get_project_templates_path(repo_root) / name)


def resolve_project_template(repo_root: Path, name: str) -> str | None:
    """Return a template, preferring the project's copy over the bundled one.

    Resolution order:
    1. Project templates (<root>/.tchncrt/templates/<name>)
    2. Package templates
    """
    local = get_project_template(repo_root, name)
    if local is not None:
        return local
    return get_template(name)


def copy_templates_to_project(repo_root: Path, overwrite: bool = False) -> list[str]:
    """Copy bundled document templates into <root>/.tchncrt/templates/.

    Args:
        repo_root: Project root directory.
        overwrite: If True, overwrite existing templates. If False, skip existing.

    Returns:
        List of template names that were copied.
    """
    target = get_project_templates_path(repo_root)
    target.mkdir(parents=True, exist_ok=True)

    copied: list[str] = []
    for name in list_templates():
        dest = target / name
        if dest.exists() and not overwrite:
            continue
        shutil.copyfile(get_package_templates_path() / name, dest)
        copied.append(name)

    return copied
