"""Create and update agent context files from a feature's plan.md.

The context file is built from ``agent-file-template.md`` the first time
and afterwards edited in place: new technologies are appended to
"Active Technologies", the newest change is prepended to "Recent
Changes" (keeping two earlier entries) and the "Last updated" date is
refreshed. Everything else, including manual additions, is preserved.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from technocrat.agents.base import AGENTS, CLAUDE, Agent
from technocrat.features.paths import FeaturePaths
from technocrat.templates import resolve_project_template

logger = logging.getLogger(__name__)

AGENT_TEMPLATE = "agent-file-template.md"
PLACEHOLDER_VALUES = ("NEEDS CLARIFICATION", "N/A")
MAX_PREVIOUS_CHANGES = 2

_PLAN_FIELDS = {
    "**Language/Version**: ": "language",
    "**Primary Dependencies**: ": "framework",
    "**Storage**: ": "database",
    "**Project Type**: ": "project_type",
}
_LAST_UPDATED_RE = re.compile(r"\*\*Last updated\*\*:.*(\d{4}-\d{2}-\d{2})")


class AgentContextError(Exception):
    """Raised when an agent context file cannot be created or updated."""


@dataclass(frozen=True)
class PlanData:
    """Technology facts extracted from plan.md (empty when unknown)."""

    language: str = ""
    framework: str = ""
    database: str = ""
    project_type: str = ""

    @property
    def tech_stack(self) -> str:
        return " + ".join(part for part in (self.language, self.framework) if part)


@dataclass(frozen=True)
class AgentUpdate:
    """Outcome for one context file."""

    agent: Agent
    path: Path
    created: bool


def parse_plan_data(text: str) -> PlanData:
    """Extract :class:`PlanData` from plan.md text.

    Placeholder values (``NEEDS CLARIFICATION``, ``N/A``) count as unknown.
    """
    values: dict[str, str] = {}
    for line in text.splitlines():
        for prefix, key in _PLAN_FIELDS.items():
            if line.startswith(prefix):
                value = line[len(prefix) :].strip()
                if value not in PLACEHOLDER_VALUES:
                    values[key] = value
                break
    return PlanData(**values)


def project_structure(project_type: str) -> str:
    if "web" in project_type.lower():
        return "backend/\nfrontend/\ntests/"
    return "src/\ntests/"


def language_commands(language: str) -> str:
    """Suggested test and lint commands for *language*."""
    lower = language.lower()
    if "python" in lower:
        return "cd src && pytest && ruff check ."
    if "rust" in lower:
        return "cargo test && cargo clippy"
    if "javascript" in lower or "typescript" in lower:
        return "npm test && npm run lint"
    if "go" in lower:
        return "go test ./... && go vet ./..."
    return f"# Add commands for {language}"


def language_conventions(language: str) -> str:
    if not language:
        return ""
    return f"{language}: Follow standard conventions"


def render_new_agent_file(
    template: str,
    project_name: str,
    branch: str,
    plan: PlanData,
    today: date,
) -> str:
    """Fill the placeholders of the agent file template."""
    stack = plan.tech_stack
    tech_entry = f"- {stack} ({branch})" if stack else f"- ({branch})"
    change_entry = f"- {branch}: Added {stack}" if stack else f"- {branch}: Added"

    replacements = {
        "[PROJECT NAME]": project_name,
        "[DATE]": today.isoformat(),
        "[EXTRACTED FROM ALL PLAN.MD FILES]": tech_entry,
        "[ACTUAL STRUCTURE FROM PLANS]": project_structure(plan.project_type),
        "[ONLY COMMANDS FOR ACTIVE TECHNOLOGIES]": language_commands(plan.language),
        "[LANGUAGE-SPECIFIC, ONLY FOR LANGUAGES IN USE]": language_conventions(
            plan.language
        ),
        "[LAST 3 FEATURES AND WHAT THEY ADDED]": change_entry,
    }
    for placeholder, value in replacements.items():
        template = template.replace(placeholder, value)
    return template


def update_existing_content(
    content: str, branch: str, plan: PlanData, today: date
) -> str:
    """Merge new plan facts into existing agent file *content*."""
    stack = plan.tech_stack
    new_tech: list[str] = []
    if stack and stack not in content:
        new_tech.append(f"- {stack} ({branch})")
    if plan.database and plan.database not in content:
        new_tech.append(f"- {plan.database} ({branch})")

    change_entry = ""
    if stack:
        change_entry = f"- {branch}: Added {stack}"
    elif plan.database:
        change_entry = f"- {branch}: Added {plan.database}"

    result: list[str] = []
    in_tech = False
    in_changes = False
    previous_changes = 0

    def flush_tech() -> None:
        result.extend(new_tech)
        new_tech.clear()

    for line in content.split("\n"):
        if in_tech:
            if line == "":
                flush_tech()
                result.append(line)
                continue
            if line.startswith("## "):
                flush_tech()
                in_tech = False

        if in_changes:
            if line.startswith("- "):
                if previous_changes < MAX_PREVIOUS_CHANGES:
                    result.append(line)
                    previous_changes += 1
                continue
            # The change list ends at the first non-entry line.
            in_changes = False

        if line.startswith("## Active Technologies"):
            result.append(line)
            in_tech = True
        elif line.startswith("## Recent Changes"):
            result.append(line)
            if change_entry:
                result.append(change_entry)
            in_changes = True
        else:
            result.append(
                _LAST_UPDATED_RE.sub(f"**Last updated**: {today.isoformat()}", line)
            )

    if in_tech:
        flush_tech()

    return "\n".join(result)


def atomic_write(path: Path, content: str) -> None:
    """Write *content* to *path* via a temporary file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".agent-update-", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def update_agent_file(
    agent: Agent,
    paths: FeaturePaths,
    plan: PlanData,
    today: date | None = None,
) -> AgentUpdate:
    """Create or update the context file of *agent*.

    Raises:
        AgentContextError: If the template is missing or the file cannot be
            read or written.
    """
    today = today or date.today()
    target = agent.context_path(paths.repo_root)
    logger.info("Updating %s context file: %s", agent.name, target)

    try:
        if target.exists():
            content = update_existing_content(
                target.read_text(encoding="utf-8"), paths.current_branch, plan, today
            )
            created = False
        else:
            template = resolve_project_template(paths.repo_root, AGENT_TEMPLATE)
            if template is None:
                raise AgentContextError(f"Template not found: {AGENT_TEMPLATE}")
            content = render_new_agent_file(
                template, paths.repo_root.name, paths.current_branch, plan, today
            )
            created = True
        atomic_write(target, content)
    except (OSError, UnicodeDecodeError) as e:
        raise AgentContextError(f"Failed to update {agent.name}: {e}") from e

    return AgentUpdate(agent=agent, path=target, created=created)


def update_agent_context(
    paths: FeaturePaths,
    agent: Agent | None = None,
    today: date | None = None,
) -> tuple[PlanData, list[AgentUpdate]]:
    """Refresh agent context files from the current feature's plan.md.

    With *agent*, only that agent's file is written. Otherwise every
    existing context file is updated once (several agents share
    ``AGENTS.md``) and ``CLAUDE.md`` is created when none exist.

    Raises:
        AgentContextError: If plan.md is missing or a file update fails.
    """
    if not paths.impl_plan.is_file():
        raise AgentContextError(
            f"No plan.md found at {paths.impl_plan}\n"
            "Run 'technocrat setup-plan' first"
        )
    try:
        plan_text = paths.impl_plan.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise AgentContextError(f"Cannot read {paths.impl_plan}: {e}") from e
    plan = parse_plan_data(plan_text)

    if agent is not None:
        return plan, [update_agent_file(agent, paths, plan, today)]

    updates: list[AgentUpdate] = []
    seen: set[Path] = set()
    for candidate in AGENTS:
        target = candidate.context_path(paths.repo_root)
        if target in seen or not target.exists():
            continue
        seen.add(target)
        updates.append(update_agent_file(candidate, paths, plan, today))

    if not updates:
        logger.info("No existing agent files found, creating default Claude file")
        updates.append(update_agent_file(CLAUDE, paths, plan, today))

    return plan, updates
