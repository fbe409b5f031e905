"""MCP transports — the server side of the stdio communication layer.

Each transport satisfies the :class:`MCPTransport` protocol, providing
``connect``, ``send``, ``receive``, and ``close`` methods.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MCPTransport(Protocol):
    """Abstract transport for MCP JSON-RPC communication."""

    async def connect(self) -> None: ...
    async def send(self, data: dict[str, Any]) -> None: ...
    async def receive(self) -> dict[str, Any] | None: ...
    async def close(self) -> None: ...


class StdioTransport:
    """Serves MCP over this process's stdin/stdout.

    Reads and writes newline-delimited JSON. ``reader`` and ``writer`` may be
    injected; otherwise the process's standard streams are attached on
    :meth:`connect`.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: asyncio.StreamWriter | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer

    async def connect(self) -> None:
        """Attach asyncio streams to stdin and stdout."""
        loop = asyncio.get_running_loop()
        if self._reader is None:
            reader = asyncio.StreamReader(limit=2**24)
            await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
            self._reader = reader
        if self._writer is None:
            transport, protocol = await loop.connect_write_pipe(
                asyncio.streams.FlowControlMixin, sys.stdout
            )
            self._writer = asyncio.StreamWriter(transport, protocol, self._reader, loop)

    async def send(self, data: dict[str, Any]) -> None:
        """Write a JSON line to stdout."""
        if self._writer is None:
            msg = "Transport not connected"
            raise RuntimeError(msg)
        line = json.dumps(data, ensure_ascii=False) + "\n"
        self._writer.write(line.encode())
        await self._writer.drain()

    async def receive(self) -> dict[str, Any] | None:
        """Read the next JSON line from stdin; ``None`` once stdin is closed.

        Blank lines are skipped. Raises :class:`json.JSONDecodeError` for a
        line that is not JSON.
        """
        if self._reader is None:
            msg = "Transport not connected"
            raise RuntimeError(msg)
        while True:
            line = await self._reader.readline()
            if not line:
                return None
            if line.strip():
                return json.loads(line)  # type: ignore[no-any-return]

    async def close(self) -> None:
        """Flush and close stdout."""
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        self._reader = None
