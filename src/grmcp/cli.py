"""grmcp CLI entrypoint."""

from __future__ import annotations

import click

from grmcp import __version__


@click.group()
@click.version_option(version=__version__, prog_name="grmcp")
def main() -> None:
    """grmcp — gRPC server reflection as MCP tools."""


# Register subcommands
from grmcp.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
