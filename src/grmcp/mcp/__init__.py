"""MCP protocol — stdio tool host for the reflection tools."""

from grmcp.mcp.models import JsonRpcError, JsonRpcRequest, JsonRpcResponse, MCPToolDef, TextContent, ToolResult
from grmcp.mcp.server import MCPServer
from grmcp.mcp.transport import MCPTransport, StdioTransport

__all__ = [
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPServer",
    "MCPToolDef",
    "MCPTransport",
    "StdioTransport",
    "TextContent",
    "ToolResult",
]
