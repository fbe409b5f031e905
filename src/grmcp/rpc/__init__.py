"""Dynamic RPC — message codec and invoker."""

from grmcp.rpc.codec import SingleMessageSupplier, SupplierState, decode, encode, render_responses
from grmcp.rpc.invoker import RpcInvoker, dial, format_headers, metadata_from_headers
from grmcp.rpc.models import InvocationRequest, InvocationResult, RpcStatus

__all__ = [
    "InvocationRequest",
    "InvocationResult",
    "RpcInvoker",
    "RpcStatus",
    "SingleMessageSupplier",
    "SupplierState",
    "decode",
    "dial",
    "encode",
    "format_headers",
    "metadata_from_headers",
    "render_responses",
]
