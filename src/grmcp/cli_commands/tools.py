"""``grmcp tools`` — show the tools advertised to MCP hosts."""

from __future__ import annotations

import click

from grmcp.cli_commands._output import print_tools_table


@click.command()
def tools() -> None:
    """List the tools this server advertises."""
    from grmcp.tools.dispatcher import TOOL_DEFINITIONS

    print_tools_table(TOOL_DEFINITIONS)
