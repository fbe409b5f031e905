"""Tool layer — the invoke, list and describe tools."""

from grmcp.tools.arguments import DescribeArguments, InvokeArguments, ListArguments
from grmcp.tools.dispatcher import TOOL_DEFINITIONS, ReflectionToolDispatcher

__all__ = [
    "TOOL_DEFINITIONS",
    "DescribeArguments",
    "InvokeArguments",
    "ListArguments",
    "ReflectionToolDispatcher",
]
