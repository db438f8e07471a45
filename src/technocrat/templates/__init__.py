"""Bundled workflow and document templates."""

from technocrat.templates.loader import (
    copy_templates_to_project,
    get_command_template,
    get_commands_path,
    get_package_templates_path,
    get_project_template,
    get_project_templates_path,
    get_template,
    list_commands,
    list_templates,
    resolve_project_template,
)

__all__ = [
    "copy_templates_to_project",
    "get_command_template",
    "get_commands_path",
    "get_package_templates_path",
    "get_project_template",
    "get_project_templates_path",
    "get_template",
    "list_commands",
    "list_templates",
    "resolve_project_template",
]
