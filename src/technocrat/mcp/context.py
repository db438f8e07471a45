"""Workspace context detection for template rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ROOT_MARKERS: tuple[str, ...] = ("memory", ".git")
GENERIC_HEADINGS: tuple[str, ...] = ("constitution", "about", "overview")


@dataclass(frozen=True)
class WorkspaceContext:
    """Filesystem-derived identity of the current workspace.

    Any field may be empty. ``root`` is empty when no workspace marker was
    found above the working directory.
    """

    root: str = ""
    project_name: str = ""
    feature_name: str = ""


def find_workspace_root(start: Path) -> Path | None:
    """Walk upward from *start* to the first directory holding a marker.

    A workspace root contains a ``memory/`` or ``.git/`` directory.  A
    directory that cannot be inspected counts as holding no marker.
    Returns None when the filesystem root is reached without a match.
    """
    for directory in (start, *start.parents):
        try:
            if any((directory / marker).is_dir() for marker in ROOT_MARKERS):
                return directory
        except OSError:
            logger.debug("Cannot inspect %s", directory, exc_info=True)
            continue
    return None


def extract_feature_name(cwd: str | Path, root: str | Path) -> str:
    """Return ``X`` when *cwd* is ``<root>/specs/X`` or below, else ``""``."""
    if not root:
        return ""
    try:
        parts = Path(cwd).relative_to(Path(root)).parts
    except ValueError:
        return ""
    if len(parts) >= 2 and parts[0] == "specs":
        return parts[1]
    return ""


def project_name_from_constitution(text: str) -> str:
    """Extract a project name from constitution Markdown.

    A ``## Project Name`` section wins: its first non-empty, non-heading
    line is the name. Otherwise the first ``# `` heading is used unless
    it is a generic title such as "Constitution".
    """
    lines = [line.strip() for line in text.splitlines()]

    for index, line in enumerate(lines):
        if line.startswith("## Project") or line.lower() == "## project name":
            for candidate in lines[index + 1 :]:
                if candidate and not candidate.startswith("#"):
                    return candidate

    for line in lines:
        if line.startswith("# "):
            heading = line[2:].strip()
            lower = heading.lower()
            if any(word in lower for word in GENERIC_HEADINGS):
                return ""
            return heading
    return ""


def get_project_name(base: Path) -> str:
    """Project display name for *base*: constitution name or directory name."""
    constitution = base / "memory" / "constitution.md"
    try:
        text = constitution.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return base.name
    return project_name_from_constitution(text) or base.name


def detect_workspace_context(cwd: Path | None = None) -> WorkspaceContext:
    """Detect the workspace around *cwd* (default: the working directory).

    Never raises; any filesystem failure yields empty or default fields.
    """
    try:
        start = (cwd or Path.cwd()).resolve()
    except OSError:
        logger.debug("Cannot determine working directory", exc_info=True)
        return WorkspaceContext()

    root = find_workspace_root(start)
    base = root if root is not None else start
    return WorkspaceContext(
        root=str(root) if root is not None else "",
        project_name=get_project_name(base),
        feature_name=extract_feature_name(start, root) if root is not None else "",
    )
