"""ReflectionToolDispatcher — the ``invoke``, ``list`` and ``describe`` tools.

Each call dials the configured target, builds its own descriptor source,
and tears both down before returning. Nothing is shared between calls
except the immutable :class:`~grmcp.config.Settings`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace

from grmcp.errors import BridgeError, ReflectionError, RpcFailedError
from grmcp.mcp.models import MCPToolDef, ToolResult
from grmcp.reflection.client import ReflectionClient
from grmcp.reflection.printer import render
from grmcp.reflection.resolver import DescriptorSource, classify, full_name
from grmcp.rpc.codec import SingleMessageSupplier, render_responses
from grmcp.rpc.invoker import RpcInvoker, dial, format_headers, metadata_from_headers
from grmcp.tools.arguments import (
    DescribeArguments,
    InvokeArguments,
    ListArguments,
    validate_arguments,
)
from grmcp.utils.telemetry import (
    ATTR_ENTITY_COUNT,
    ATTR_RESPONSE_COUNT,
    ATTR_RPC_METHOD,
    ATTR_RPC_STATUS,
    ATTR_TARGET,
    ATTR_TOOL_ERROR,
    ATTR_TOOL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import grpc

    from grmcp.config import Settings
    from grmcp.rpc.models import InvocationRequest

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

INVOKE_DESCRIPTION = """Invokes a gRPC method using reflection.
Parameters:
 - "method": Fully-qualified method name (e.g., package.Service/Method).
 - "request": JSON payload for the request.
 - "headers": (Optional) JSON object for custom gRPC headers, e.g. {"Authorization": "Bearer <token>"}."""

LIST_DESCRIPTION = "Lists all available gRPC services on the target server using reflection."

DESCRIBE_DESCRIPTION = """Describes a gRPC service or message type.
Provide the target entity using dot notation.
Examples:
 - "mypackage.MyService" to describe the service.
 - "mypackage.MyService.MyRpc" to describe a specific RPC method.
 - "mypackage.MyMessage" to describe a message type.
Note: Slash notation (e.g., "mypackage.MyService/MyMethod") is used for invoking RPCs, not for describing symbols."""

TOOL_DEFINITIONS = [
    MCPToolDef(
        name="invoke",
        description=INVOKE_DESCRIPTION,
        input_schema={
            "type": "object",
            "properties": {
                "method": {
                    "type": "string",
                    "description": "Fully-qualified method name (e.g., package.Service/Method)",
                },
                "request": {"type": "string", "description": "JSON request payload"},
                "headers": {
                    "type": "string",
                    "description": "Optional JSON object for custom gRPC headers",
                },
            },
            "required": ["method", "request"],
        },
    ),
    MCPToolDef(
        name="list",
        description=LIST_DESCRIPTION,
        input_schema={"type": "object", "properties": {}},
    ),
    MCPToolDef(
        name="describe",
        description=DESCRIBE_DESCRIPTION,
        input_schema={
            "type": "object",
            "properties": {
                "entities": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "The services or messages type to describe (use dot notation)",
                },
            },
            "required": ["entities"],
        },
    ),
]


class ReflectionToolDispatcher:
    """Maps tool calls onto reflection, encoding, and invocation.

    Usage::

        dispatcher = ReflectionToolDispatcher(Settings(address="localhost:50051"))
        result = await dispatcher.call("list", {})
        print(result.text)
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings

    def tool_definitions(self) -> list[MCPToolDef]:
        """Return the advertised tool definitions."""
        return list(TOOL_DEFINITIONS)

    async def call(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Run a tool by name. Failures come back as error results, never as exceptions."""
        with _tracer.start_as_current_span(f"grmcp.tool.{name}") as span:
            span.set_attribute(ATTR_TOOL_NAME, name)
            span.set_attribute(ATTR_TARGET, self._settings.address)
            try:
                text = await self._run(name, arguments)
            except BridgeError as exc:
                logger.warning("Tool %s failed: %s", name, exc)
                span.set_attribute(ATTR_TOOL_ERROR, True)
                return ToolResult.error(str(exc))
            except Exception as exc:
                logger.exception("Tool %s raised unexpectedly", name)
                span.set_attribute(ATTR_TOOL_ERROR, True)
                return ToolResult.error(f"Internal error: {exc}")
        return ToolResult.success(text)

    async def _run(self, name: str, arguments: dict[str, Any] | None) -> str:
        if name == "invoke":
            return await self.invoke(validate_arguments(InvokeArguments, name, arguments))
        if name == "list":
            return await self.list_services(validate_arguments(ListArguments, name, arguments))
        if name == "describe":
            return await self.describe(validate_arguments(DescribeArguments, name, arguments))
        raise BridgeError(f"Unknown tool: {name}")

    async def invoke(self, args: InvocationRequest) -> str:
        """Resolve, encode, call, and render. Raises on a non-OK status."""
        span = trace.get_current_span()
        span.set_attribute(ATTR_RPC_METHOD, args.method)
        metadata = metadata_from_headers(format_headers(args.headers))

        async with self._connect() as (channel, source):
            method = await source.find_method(args.method)
            supplier = SingleMessageSupplier(args.request, method.input_type, source.pool)
            result = await RpcInvoker(channel).invoke(method, supplier, metadata)
            output = render_responses(result.responses, source.pool)

        span.set_attribute(ATTR_RESPONSE_COUNT, len(result.responses))
        span.set_attribute(ATTR_RPC_STATUS, result.status.code.name)
        if not result.status.ok:
            raise RpcFailedError(result.status, output)
        return output

    async def list_services(self, args: ListArguments | None = None) -> str:
        """Return advertised service names, one per line."""
        async with self._connect() as (_, source):
            try:
                services = await source.list_services()
            except ReflectionError as exc:
                raise ReflectionError(f"Failed to list services: {exc.detail}", code=exc.code) from exc
        return "".join(f"{service}\n" for service in services)

    async def describe(self, args: DescribeArguments) -> str:
        """Describe each entity; the first failure aborts the whole batch."""
        if not args.entities:
            raise BridgeError("No entities provided")
        trace.get_current_span().set_attribute(ATTR_ENTITY_COUNT, len(args.entities))

        results: list[str] = []
        async with self._connect() as (_, source):
            for entity in args.entities:
                desc = await source.find_symbol(entity)
                kind, target = classify(desc)
                results.append(f"{full_name(desc)} is {kind}:\n{render(target)}")
        return "\n\n".join(results)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[tuple[grpc.aio.Channel, DescriptorSource]]:
        """Dial the target and open a reflection-backed descriptor source."""
        async with dial(self._settings.address, timeout=self._settings.dial_timeout) as channel:
            client = ReflectionClient(channel)
            try:
                yield channel, DescriptorSource(client)
            finally:
                client.close()
