"""Shared console output and logging setup."""

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def configure_logging(debug: bool = False) -> None:
    """Route log records through rich on stderr.

    Stdout is kept free of log output so the stdio MCP transport and
    ``--json`` command output stay machine readable.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=err_console,
                rich_tracebacks=True,
                show_path=False,
            )
        ],
        force=True,
    )
