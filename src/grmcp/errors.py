"""Shared error types for the reflection bridge.

Every error except :class:`ConfigurationError` is recoverable: the tool
dispatcher turns it into an error payload for the calling host.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from grmcp.rpc.models import RpcStatus


class BridgeError(Exception):
    """Base error for all bridge failures."""


class ConfigurationError(BridgeError):
    """Process configuration is missing or invalid. Fatal at startup."""


class DialError(BridgeError):
    """Failed to establish a connection to the gRPC target."""

    def __init__(self, target: str, detail: str = "") -> None:
        self.target = target
        self.detail = detail
        super().__init__(
            "Failed to create gRPC connection" + (f": {detail}" if detail else "")
        )


class ReflectionError(BridgeError):
    """The server reflection exchange failed.

    ``code`` carries the numeric gRPC status code reported by the server,
    when there is one.
    """

    def __init__(self, detail: str, code: int | None = None) -> None:
        self.detail = detail
        self.code = code
        super().__init__(detail)


class ResolutionError(BridgeError):
    """A symbol or method name could not be resolved to a descriptor."""

    def __init__(self, symbol: str, detail: str = "") -> None:
        self.symbol = symbol
        self.detail = detail
        super().__init__(
            f"Failed to resolve symbol {symbol!r}" + (f": {detail}" if detail else "")
        )


class EncodingError(BridgeError):
    """A caller-supplied payload could not be converted into a message."""


class RequestExhaustedError(BridgeError):
    """The single-message request supplier has already been consumed."""

    def __init__(self) -> None:
        super().__init__("end of input: request message already supplied")


class UnrecognizedDescriptorError(BridgeError):
    """A descriptor kind the describe operation does not know how to classify."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"descriptor has unrecognized type {type_name}")


class ArgumentError(BridgeError):
    """Tool arguments failed validation."""

    def __init__(self, tool: str, detail: str) -> None:
        self.tool = tool
        self.detail = detail
        super().__init__(f"Invalid arguments for {tool!r}: {detail}")


class RpcFailedError(BridgeError):
    """The RPC finished with a non-OK status.

    ``output`` holds whatever responses were rendered before the status
    arrived; they precede the status text in the error message.
    """

    def __init__(self, status: RpcStatus, output: str = "") -> None:
        self.status = status
        self.output = output
        super().__init__(f"{output}RPC failed: {status}")
