"""MCPServer — serves the reflection tools over an :class:`MCPTransport`.

Handles the ``initialize`` handshake, ``ping``, ``tools/list``,
``tools/call`` and ``logging/setLevel``, plus the ``notifications/initialized``
and ``notifications/cancelled`` notifications. Each ``tools/call`` runs in
its own task so a slow RPC never blocks other requests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from grmcp.mcp.models import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
)

if TYPE_CHECKING:
    from grmcp.mcp.transport import MCPTransport
    from grmcp.tools.dispatcher import ReflectionToolDispatcher

logger = logging.getLogger(__name__)

SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}


class MCPServer:
    """Reads JSON-RPC requests from a transport and dispatches them.

    Usage::

        server = MCPServer(ReflectionToolDispatcher(settings), StdioTransport())
        await server.serve()   # returns when stdin closes
    """

    def __init__(
        self,
        dispatcher: ReflectionToolDispatcher,
        transport: MCPTransport,
        *,
        name: str = "grpcReflectionServer",
        version: str = "1.0.0",
    ) -> None:
        self._dispatcher = dispatcher
        self._transport = transport
        self._name = name
        self._version = version
        self._in_flight: dict[int | str, asyncio.Task[None]] = {}

    async def serve(self) -> None:
        """Serve until the transport reaches end of input."""
        await self._transport.connect()
        logger.info("MCP server %s %s ready", self._name, self._version)
        try:
            while True:
                try:
                    raw = await self._transport.receive()
                except json.JSONDecodeError as exc:
                    await self._send_error(None, PARSE_ERROR, f"Parse error: {exc}")
                    continue
                if raw is None:
                    break
                await self.handle(raw)

            if self._in_flight:
                await asyncio.gather(*self._in_flight.values(), return_exceptions=True)
        finally:
            for task in self._in_flight.values():
                task.cancel()
            await self._transport.close()
            logger.info("MCP server stopped")

    async def handle(self, raw: Any) -> None:
        """Handle one decoded JSON-RPC message."""
        if not isinstance(raw, dict):
            await self._send_error(None, INVALID_REQUEST, "Invalid request: expected a JSON object")
            return

        try:
            request = JsonRpcRequest.model_validate(raw)
        except ValidationError as exc:
            await self._send_error(raw.get("id"), INVALID_REQUEST, f"Invalid request: {exc}")
            return

        if request.is_notification:
            self._handle_notification(request)
            return

        try:
            if request.method == "tools/call":
                self._start_tool_call(request)
                return
            result = self._handle_request(request)
        except _RequestError as exc:
            await self._send_error(request.id, exc.code, exc.message)
            return
        except Exception as exc:
            logger.exception("Request %s (%s) failed", request.id, request.method)
            await self._send_error(request.id, INTERNAL_ERROR, f"Internal error: {exc}")
            return
        await self._send(JsonRpcResponse(id=request.id, result=result))

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _handle_request(self, request: JsonRpcRequest) -> dict[str, Any]:
        if request.method == "initialize":
            return self._initialize(request.params)
        if request.method == "ping":
            return {}
        if request.method == "tools/list":
            return {
                "tools": [
                    tool.model_dump(by_alias=True) for tool in self._dispatcher.tool_definitions()
                ]
            }
        if request.method == "logging/setLevel":
            level = _LOG_LEVELS.get(str(request.params.get("level", "")).lower())
            if level is None:
                raise _RequestError(INVALID_PARAMS, f"Unknown log level: {request.params.get('level')}")
            logging.getLogger("grmcp").setLevel(level)
            return {}
        raise _RequestError(METHOD_NOT_FOUND, f"Method not found: {request.method}")

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else SUPPORTED_PROTOCOL_VERSIONS[0]
        client = params.get("clientInfo")
        client_name = client.get("name") if isinstance(client, dict) else None
        logger.info("Initialize from %s (protocol %s)", client_name or "unknown client", version)
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}, "logging": {}},
            "serverInfo": {"name": self._name, "version": self._version},
        }

    def _start_tool_call(self, request: JsonRpcRequest) -> None:
        request_id = request.id
        if request_id is None:
            raise _RequestError(INVALID_REQUEST, "tools/call requires an id")
        if request_id in self._in_flight:
            raise _RequestError(INVALID_REQUEST, f"Request id {request_id!r} is already in flight")

        task = asyncio.create_task(self._run_tool_call(request))
        self._in_flight[request_id] = task

        def _done(finished: asyncio.Task[None]) -> None:
            if self._in_flight.get(request_id) is finished:
                del self._in_flight[request_id]

        task.add_done_callback(_done)

    async def _run_tool_call(self, request: JsonRpcRequest) -> None:
        name = request.params.get("name")
        if not isinstance(name, str) or not name:
            await self._send_error(request.id, INVALID_PARAMS, "tools/call requires a tool 'name'")
            return

        arguments = request.params.get("arguments") or {}
        if not isinstance(arguments, dict):
            await self._send_error(request.id, INVALID_PARAMS, "tools/call 'arguments' must be an object")
            return

        try:
            result = await self._dispatcher.call(name, arguments)
        except asyncio.CancelledError:
            logger.info("Tool call %s (%s) cancelled", request.id, name)
            raise
        except Exception as exc:
            logger.exception("Tool call %s failed", request.id)
            await self._send_error(request.id, INTERNAL_ERROR, str(exc))
            return

        await self._send(
            JsonRpcResponse(id=request.id, result=result.model_dump(by_alias=True))
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _handle_notification(self, request: JsonRpcRequest) -> None:
        if request.method == "notifications/cancelled":
            request_id = request.params.get("requestId")
            task = self._in_flight.get(request_id) if isinstance(request_id, (int, str)) else None
            if task is not None:
                logger.debug("Cancelling tool call %s", request_id)
                task.cancel()
            return
        logger.debug("Notification %s", request.method)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    async def _send(self, response: JsonRpcResponse) -> None:
        await self._transport.send(response.to_wire())

    async def _send_error(self, request_id: Any, code: int, message: str) -> None:
        if not isinstance(request_id, (int, str)):
            request_id = None
        await self._send(
            JsonRpcResponse(id=request_id, error=JsonRpcError(code=code, message=message))
        )


class _RequestError(Exception):
    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)
