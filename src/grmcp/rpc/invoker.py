"""RPC invoker — dials the target and performs one dynamic gRPC call.

Every call is single-attempt: no retries, backoff, or connection reuse.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import grpc

from grmcp.config import DEFAULT_DIAL_TIMEOUT
from grmcp.errors import DialError
from grmcp.rpc.codec import message_class
from grmcp.rpc.models import InvocationResult, RpcStatus

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Mapping

    from google.protobuf.descriptor import MethodDescriptor
    from google.protobuf.message import Message

    from grmcp.rpc.codec import SingleMessageSupplier

logger = logging.getLogger(__name__)

Metadata = list[tuple[str, str | bytes]]


@asynccontextmanager
async def dial(target: str, *, timeout: float = DEFAULT_DIAL_TIMEOUT) -> AsyncIterator[grpc.aio.Channel]:
    """Open a plaintext channel to *target*, blocking until it is ready.

    The channel is closed when the context exits, on success or failure.

    Raises:
        DialError: If the channel is not ready within *timeout* seconds.
    """
    logger.debug("Dialing %s (timeout %ss)", target, timeout)
    channel = grpc.aio.insecure_channel(target)
    try:
        try:
            await asyncio.wait_for(channel.channel_ready(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise DialError(
                target, f"context deadline exceeded after {timeout}s dialing {target}"
            ) from exc
        yield channel
    finally:
        await channel.close()


def format_headers(headers: Mapping[str, str]) -> list[str]:
    """Turn a header mapping into ``name: value`` lines."""
    return [f"{name}: {value}" for name, value in headers.items()]


def metadata_from_headers(lines: Iterable[str]) -> Metadata:
    """Convert ``name: value`` lines into call metadata.

    Only the first colon separates name from value. Names are lower-cased as
    gRPC requires; values of ``-bin`` headers are base64-decoded when possible.
    """
    metadata: Metadata = []
    for line in lines:
        name, _, value = line.partition(":")
        key = name.strip().lower()
        value = value.lstrip()
        if key.endswith("-bin"):
            metadata.append((key, _decode_binary(value)))
        else:
            metadata.append((key, value))
    return metadata


def _decode_binary(value: str) -> bytes:
    for decoder in (base64.b64decode, base64.urlsafe_b64decode):
        try:
            return decoder(value + "=" * (-len(value) % 4))
        except (binascii.Error, ValueError):
            continue
    return value.encode()


class RpcInvoker:
    """Performs a dynamic call of any cardinality on an open channel."""

    def __init__(self, channel: grpc.aio.Channel) -> None:
        self._channel = channel

    async def invoke(
        self,
        method: MethodDescriptor,
        supplier: SingleMessageSupplier,
        metadata: Metadata | None = None,
    ) -> InvocationResult:
        """Call *method* with the supplier's message and collect the outcome.

        Request bodies are encoded before anything is sent. A non-OK status is
        recorded on the result; responses received before it are kept.
        """
        path = f"/{method.containing_service.full_name}/{method.name}"
        requests = list(supplier)
        response_cls = message_class(method.output_type)
        options: dict[str, Any] = {
            "request_serializer": _serialize,
            "response_deserializer": response_cls.FromString,
        }
        result = InvocationResult(method=path)

        logger.info("Invoking %s", path)
        try:
            if method.client_streaming and method.server_streaming:
                call = self._channel.stream_stream(path, **options)(iter(requests), metadata=metadata)
                await self._collect(call, result.responses)
            elif method.client_streaming:
                call = self._channel.stream_unary(path, **options)(iter(requests), metadata=metadata)
                result.responses.append(await call)
            elif method.server_streaming:
                call = self._channel.unary_stream(path, **options)(requests[0], metadata=metadata)
                await self._collect(call, result.responses)
            else:
                call = self._channel.unary_unary(path, **options)(requests[0], metadata=metadata)
                result.responses.append(await call)
        except grpc.aio.AioRpcError as exc:
            result.status = RpcStatus(code=exc.code(), details=exc.details() or "")

        logger.debug(
            "%s finished with %s after %d response(s)",
            path,
            result.status.code.name,
            len(result.responses),
        )
        return result

    @staticmethod
    async def _collect(call: Any, responses: list[Message]) -> None:
        async for response in call:
            responses.append(response)


def _serialize(message: Message) -> bytes:
    return message.SerializeToString()
