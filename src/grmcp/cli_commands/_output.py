"""Shared CLI output helpers.

``console`` is for interactive commands. ``err_console`` and the logging
setup write to stderr, because ``grmcp serve`` owns stdout for the protocol.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from grmcp.config import ADDRESS_ENV, DIAL_TIMEOUT_ENV, Settings
from grmcp.errors import ConfigurationError

if TYPE_CHECKING:
    from grmcp.mcp.models import MCPToolDef

console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = ["debug", "info", "warning", "error"]


def configure_logging(level: str) -> None:
    """Route log records to stderr through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def load_settings(address: str | None, dial_timeout: float) -> Settings:
    """Build settings from CLI values, exiting with status 1 if they are invalid."""
    environ = {ADDRESS_ENV: address or "", DIAL_TIMEOUT_ENV: str(dial_timeout)}
    try:
        return Settings.from_env(environ)
    except ConfigurationError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}", highlight=False)
        sys.exit(1)


def print_tools_table(tools: list[MCPToolDef]) -> None:
    """Pretty-print the advertised tools as a table."""
    table = Table(title="Reflection Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Arguments")
    table.add_column("Description")

    for tool in tools:
        properties = tool.input_schema.get("properties", {})
        required = set(tool.input_schema.get("required", []))
        args = ", ".join(name + ("" if name in required else "?") for name in properties) or "-"
        table.add_row(tool.name, args, _truncate(tool.description.splitlines()[0]))

    console.print(table)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
