"""Preflight checks to validate the development environment."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from technocrat.console import console
from technocrat.editors import detect_editors

logger = logging.getLogger(__name__)

VERSION_ARGS: tuple[str, ...] = ("--version", "-v", "version")
MAX_VERSION_LENGTH = 50
VERSION_TIMEOUT = 10


@dataclass(frozen=True)
class Tool:
    """A command-line tool the workflow can use."""

    name: str
    command: str
    install_info: str
    required: bool = False
    special_path: str | None = None  # checked before PATH, ~ expanded

    def executable(self) -> str | None:
        """Path of the executable, or None when not installed."""
        if self.special_path is not None:
            special = Path(self.special_path).expanduser()
            if special.exists():
                return str(special)
        return shutil.which(self.command)

    def is_installed(self) -> bool:
        return self.executable() is not None


TOOLS: tuple[Tool, ...] = (
    Tool("Git", "git", "https://git-scm.com/downloads", required=True),
    Tool(
        "Claude CLI",
        "claude",
        "https://docs.anthropic.com/en/docs/claude-code/setup",
        special_path="~/.claude/local/claude",
    ),
    Tool("Gemini CLI", "gemini", "https://github.com/google-gemini/gemini-cli"),
    Tool("Qwen Code", "qwen", "https://github.com/QwenLM/qwen-code"),
    Tool("OpenCode CLI", "opencode", "https://opencode.ai"),
    Tool("Codex CLI", "codex", "https://github.com/openai/codex"),
    Tool("VS Code", "code", "https://code.visualstudio.com/download"),
    Tool("VS Code Insiders", "code-insiders", "https://code.visualstudio.com/insiders"),
    Tool("Cursor", "cursor", "https://cursor.sh"),
    Tool("Windsurf", "windsurf", "https://codeium.com/windsurf"),
)


def get_tool_version(executable: str) -> str | None:
    """Probe *executable* for a version string.

    Tries ``--version``, ``-v`` and ``version`` in turn and returns the
    first line of the first successful output, truncated to 50 characters.
    """
    for arg in VERSION_ARGS:
        try:
            result = subprocess.run(
                [executable, arg],
                capture_output=True,
                text=True,
                timeout=VERSION_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired):
            logger.debug("Version probe %s %s failed", executable, arg, exc_info=True)
            continue
        if result.returncode != 0:
            continue
        output = (result.stdout or result.stderr).strip()
        if not output:
            return None
        first_line = output.splitlines()[0]
        if len(first_line) > MAX_VERSION_LENGTH:
            return first_line[:MAX_VERSION_LENGTH] + "..."
        return first_line
    return None


def check_tools() -> bool:
    """Report installed tools; fails only when a required tool is missing."""
    console.print("[bold]Tools:[/bold]")

    missing: list[Tool] = []
    for tool in TOOLS:
        executable = tool.executable()
        if executable is None:
            missing.append(tool)
            if tool.required:
                console.print(f"  [red]✗[/red] {tool.name}: not found")
            else:
                console.print(f"  [dim]○ {tool.name}: not installed[/dim]")
            continue
        version = get_tool_version(executable) or "installed"
        console.print(f"  [green]✓[/green] {tool.name}: [cyan]{version}[/cyan]")

    if missing:
        console.print("\n[bold]Installation tips:[/bold]")
        for tool in sorted(missing, key=lambda t: t.name):
            console.print(f"  • {tool.name} - [dim]{tool.install_info}[/dim]")

    missing_required = [tool for tool in missing if tool.required]
    if missing_required:
        names = ", ".join(tool.name for tool in missing_required)
        console.print(f"\n[red]✗[/red] Missing required tools: {names}")
        return False
    return True


def check_editors() -> bool:
    """Report MCP-capable editors; informational only."""
    console.print("\n[bold]Editors:[/bold]")

    editors = detect_editors()
    if not editors:
        console.print("  [dim]No supported editors detected.[/dim]")
        return True

    for editor in editors:
        console.print(
            f"  [green]✓[/green] {editor.name} "
            f"([cyan]{editor.transport}[/cyan]) [dim]{editor.config_dir}[/dim]"
        )
    return True


CHECKS = [
    check_tools,
    check_editors,
]


def run_all_checks() -> bool:
    """Run all preflight checks."""
    console.print("[bold]Checking tool availability...[/bold]\n")

    results = [check() for check in CHECKS]
    all_passed = all(results)

    if all_passed:
        console.print("\n[bold green]All required tools are installed![/bold green]")
    else:
        console.print("\n[bold red]Some required tools are missing.[/bold red]")

    return all_passed
