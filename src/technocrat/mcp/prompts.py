"""Command template parsing and prompt message assembly."""

from __future__ import annotations

from technocrat.mcp.context import WorkspaceContext, detect_workspace_context
from technocrat.mcp.template_processor import (
    TemplateData,
    Timestamp,
    prepare_template_content,
    process_template_with_context,
    title_case,
)

DEFAULT_DESCRIPTION = "Execute workflow command"
FRONT_MATTER_DELIMITER = "---"


def parse_command_template(content: str) -> tuple[str, str]:
    """Split a command template into ``(description, workflow)``.

    Front matter is recognised only when the very first line is ``---``;
    only its ``description:`` key is read (surrounding quotes stripped).
    The workflow is everything after the front matter, starting at the
    first non-blank line.
    """
    description = ""
    workflow_lines: list[str] = []
    in_front_matter = False
    in_workflow = False

    for index, line in enumerate(content.split("\n")):
        stripped = line.strip()
        if index == 0 and stripped == FRONT_MATTER_DELIMITER:
            in_front_matter = True
            continue
        if in_front_matter:
            if stripped == FRONT_MATTER_DELIMITER:
                in_front_matter = False
            elif line.startswith("description:"):
                description = line[len("description:") :].strip().strip('"')
            continue
        if not in_workflow and stripped:
            in_workflow = True
        if in_workflow:
            workflow_lines.append(line)

    return description or DEFAULT_DESCRIPTION, "\n".join(workflow_lines)


def build_prompt_message(
    command_name: str,
    workflow: str,
    user_input: str,
    workspace: WorkspaceContext | None = None,
) -> str:
    """Assemble the message returned for a command prompt.

    The workflow is rendered with ``Arguments`` set to *user_input* and
    the workspace metadata of *workspace* (detected from the working
    directory when omitted).

    Raises:
        TemplateError: If the workflow fails to parse or render.
    """
    if workspace is None:
        workspace = detect_workspace_context()

    data = TemplateData(
        arguments=user_input,
        command_name=command_name,
        timestamp=Timestamp.current(),
        project_name=workspace.project_name,
        feature_name=workspace.feature_name,
        workspace_root=workspace.root,
    )
    body = process_template_with_context(prepare_template_content(workflow), data)

    parts = [f"# Technocrat {title_case(command_name)} Workflow\n\n"]
    if user_input:
        parts.append(f"## User Input\n\n{user_input}\n\n---\n\n")
    parts.append("## Workflow Instructions\n\n")
    parts.append(body)
    return "".join(parts)
