"""AI agent definitions and their context-file locations."""

from dataclasses import dataclass
from pathlib import Path

RULES_FILENAME = "tchncrt-rules.md"


@dataclass(frozen=True)
class Agent:
    """An AI coding agent that reads a project context file."""

    key: str
    name: str
    context_file: str  # relative to the repository root

    def context_path(self, repo_root: Path) -> Path:
        """Absolute location of this agent's context file."""
        return repo_root / self.context_file


CLAUDE = Agent("claude", "Claude Code", "CLAUDE.md")

AGENTS: tuple[Agent, ...] = (
    CLAUDE,
    Agent("gemini", "Gemini CLI", "GEMINI.md"),
    Agent("copilot", "GitHub Copilot", ".github/copilot-instructions.md"),
    Agent("cursor", "Cursor IDE", ".cursor/rules/tchncrt-rules.mdc"),
    Agent("qwen", "Qwen Code", "QWEN.md"),
    Agent("opencode", "opencode", "AGENTS.md"),
    Agent("codex", "Codex CLI", "AGENTS.md"),
    Agent("windsurf", "Windsurf", f".windsurf/rules/{RULES_FILENAME}"),
    Agent("kilocode", "Kilo Code", f".kilocode/rules/{RULES_FILENAME}"),
    Agent("auggie", "Auggie CLI", f".augment/rules/{RULES_FILENAME}"),
    Agent("roo", "Roo Code", f".roo/rules/{RULES_FILENAME}"),
    Agent("codebuddy", "CodeBuddy", f".codebuddy/rules/{RULES_FILENAME}"),
    Agent("q", "Amazon Q Developer CLI", "AGENTS.md"),
)

AGENT_KEYS: tuple[str, ...] = tuple(agent.key for agent in AGENTS)


def get_agent_by_name(name: str) -> Agent | None:
    """Find an agent by key or display name (case-insensitive)."""
    name_lower = name.lower()
    for agent in AGENTS:
        if agent.key == name_lower or agent.name.lower() == name_lower:
            return agent
    return None
