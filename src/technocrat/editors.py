"""Detection of MCP-capable editors and desktop clients."""

from __future__ import annotations

import shutil
import sys
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Editor:
    """An editor that can host the Technocrat MCP server."""

    key: str
    name: str
    config_dir: Path
    transport: str  # "stdio" or "http"
    command: str | None = None
    marker: str | None = None  # file under config_dir proving installation

    def is_installed(self) -> bool:
        """Check the PATH command, or the marker file for GUI-only clients."""
        if self.command is not None:
            return shutil.which(self.command) is not None
        if self.marker is not None:
            return (self.config_dir / self.marker).exists()
        return False


def _app_config_dir(darwin: str, windows: str, linux: str) -> Path:
    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / darwin
    if sys.platform == "win32":
        return home / "AppData" / "Roaming" / windows
    return home / ".config" / linux


def known_editors() -> tuple[Editor, ...]:
    """All editors Technocrat knows how to detect, for this platform."""
    home = Path.home()
    return (
        Editor(
            key="vscode",
            name="VS Code",
            config_dir=_app_config_dir("Code/User", "Code/User", "Code/User"),
            transport="stdio",
            command="code",
        ),
        Editor(
            key="claude",
            name="Claude Desktop",
            config_dir=_app_config_dir("Claude", "Claude", "claude"),
            transport="stdio",
            marker="claude_desktop_config.json",
        ),
        Editor(
            key="cursor",
            name="Cursor",
            config_dir=home / ".cursor",
            transport="stdio",
            command="cursor",
        ),
        Editor(
            key="amazonq",
            name="Amazon Q",
            config_dir=home / ".aws" / "q",
            transport="http",
            command="q",
        ),
        Editor(
            key="windsurf",
            name="Windsurf",
            config_dir=_app_config_dir("Windsurf", "Windsurf", "windsurf"),
            transport="stdio",
            command="windsurf",
        ),
    )


def detect_editors() -> list[Editor]:
    """Return the editors that appear to be installed."""
    return [editor for editor in known_editors() if editor.is_installed()]


def get_editor(key: str) -> Editor | None:
    """Return the installed editor with *key*, or None."""
    for editor in detect_editors():
        if editor.key == key:
            return editor
    return None
