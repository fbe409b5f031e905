"""``grmcp serve`` — serve the reflection tools over MCP stdio."""

from __future__ import annotations

import asyncio
import logging

import click

from grmcp.cli_commands._output import LOG_LEVELS, configure_logging, err_console, load_settings
from grmcp.config import DEFAULT_DIAL_TIMEOUT

logger = logging.getLogger(__name__)


@click.command()
@click.option("--address", envvar="ADDRESS", default=None, help="gRPC target host:port [env: ADDRESS].")
@click.option(
    "--dial-timeout",
    type=float,
    envvar="GRPC_DIAL_TIMEOUT",
    default=DEFAULT_DIAL_TIMEOUT,
    show_default=True,
    help="Seconds to wait for the connection on each tool call.",
)
@click.option("--log-level", type=click.Choice(LOG_LEVELS), default="warning", show_default=True)
@click.option("--otlp-endpoint", default=None, help="Export traces via OTLP/gRPC to this endpoint.")
def serve(
    address: str | None,
    dial_timeout: float,
    log_level: str,
    otlp_endpoint: str | None,
) -> None:
    """Serve invoke, list and describe over MCP on stdin/stdout."""
    from grmcp.mcp.server import MCPServer
    from grmcp.mcp.transport import StdioTransport
    from grmcp.tools.dispatcher import ReflectionToolDispatcher

    configure_logging(log_level)
    settings = load_settings(address, dial_timeout)

    if otlp_endpoint:
        from grmcp.utils.telemetry import configure_telemetry

        try:
            configure_telemetry(service_name=settings.server_name, otlp_endpoint=otlp_endpoint)
        except ImportError as exc:
            err_console.print(f"[red]Telemetry error:[/red] {exc}", highlight=False)
            raise SystemExit(1) from exc

    logger.info("Serving reflection tools for %s", settings.address)
    server = MCPServer(
        ReflectionToolDispatcher(settings),
        StdioTransport(),
        name=settings.server_name,
        version=settings.server_version,
    )
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logger.info("Interrupted")
