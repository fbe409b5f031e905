"""gRPC Reflection MCP — exposes gRPC server reflection and invocation as MCP tools."""

from __future__ import annotations

__version__ = "0.1.0"
