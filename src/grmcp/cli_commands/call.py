"""``grmcp call`` — run one tool call against the target and print the result."""

from __future__ import annotations

import asyncio
import json
import sys

import click

from grmcp.cli_commands._output import console, load_settings
from grmcp.config import DEFAULT_DIAL_TIMEOUT


@click.command()
@click.argument("tool", type=click.Choice(["invoke", "list", "describe"]))
@click.option(
    "--arguments",
    "-a",
    "arguments_json",
    default="{}",
    help='Tool arguments as a JSON object, e.g. \'{"entities": ["pkg.Service"]}\'.',
)
@click.option("--address", envvar="ADDRESS", default=None, help="gRPC target host:port [env: ADDRESS].")
@click.option("--dial-timeout", type=float, default=DEFAULT_DIAL_TIMEOUT, show_default=True)
def call(tool: str, arguments_json: str, address: str | None, dial_timeout: float) -> None:
    """Call TOOL once, exactly as an MCP host would."""
    from grmcp.tools.dispatcher import ReflectionToolDispatcher

    try:
        arguments = json.loads(arguments_json)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid arguments JSON:[/red] {exc}", highlight=False)
        sys.exit(1)
    if not isinstance(arguments, dict):
        console.print("[red]Invalid arguments JSON:[/red] expected an object")
        sys.exit(1)

    settings = load_settings(address, dial_timeout)
    result = asyncio.run(ReflectionToolDispatcher(settings).call(tool, arguments))

    if result.is_error:
        console.print("[red]Error:[/red] ", end="")
        click.echo(result.text)
        sys.exit(1)
    click.echo(result.text, nl=False)
