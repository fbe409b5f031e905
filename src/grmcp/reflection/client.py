"""ReflectionClient — speaks the gRPC server reflection protocol.

All requests of one client share a single ``ServerReflectionInfo``
bidirectional stream, opened on first use and cancelled by :meth:`close`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import grpc
from google.protobuf import descriptor_pb2
from grpc_reflection.v1alpha import reflection_pb2, reflection_pb2_grpc

from grmcp.errors import ReflectionError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

REFLECTION_SERVICES = frozenset({
    "grpc.reflection.v1alpha.ServerReflection",
    "grpc.reflection.v1.ServerReflection",
})

NOT_FOUND = grpc.StatusCode.NOT_FOUND.value[0]


class ReflectionClient:
    """Issues reflection requests against a connected ``grpc.aio`` channel.

    Usage::

        client = ReflectionClient(channel)
        try:
            names = await client.list_services()
            files = await client.file_containing_symbol("greet.Greeter")
        finally:
            client.close()
    """

    def __init__(self, channel: grpc.aio.Channel) -> None:
        self._stub = reflection_pb2_grpc.ServerReflectionStub(channel)
        self._call: Any = None

    async def list_services(self) -> list[str]:
        """Return every service name the server advertises."""
        response = await self._roundtrip(
            reflection_pb2.ServerReflectionRequest(list_services="")
        )
        if response.WhichOneof("message_response") != "list_services_response":
            msg = "unexpected response to list_services request"
            raise ReflectionError(msg)
        return [svc.name for svc in response.list_services_response.service]

    async def file_containing_symbol(self, symbol: str) -> list[descriptor_pb2.FileDescriptorProto]:
        """Return the file that defines *symbol*, plus any files the server sends along."""
        logger.debug("Reflection: file containing symbol %s", symbol)
        response = await self._roundtrip(
            reflection_pb2.ServerReflectionRequest(file_containing_symbol=symbol)
        )
        return self._file_protos(response)

    async def file_by_filename(self, filename: str) -> list[descriptor_pb2.FileDescriptorProto]:
        """Return the file registered under *filename*, plus any files the server sends along."""
        logger.debug("Reflection: file by name %s", filename)
        response = await self._roundtrip(
            reflection_pb2.ServerReflectionRequest(file_by_filename=filename)
        )
        return self._file_protos(response)

    def close(self) -> None:
        """Cancel the reflection stream, if one was opened."""
        if self._call is not None:
            self._call.cancel()
            self._call = None

    async def _roundtrip(
        self, request: reflection_pb2.ServerReflectionRequest
    ) -> reflection_pb2.ServerReflectionResponse:
        """Write one request to the stream and read its response."""
        if self._call is None:
            self._call = self._stub.ServerReflectionInfo()

        try:
            await self._call.write(request)
            response = await self._call.read()
        except grpc.aio.AioRpcError as exc:
            self._call = None
            if exc.code() == grpc.StatusCode.UNIMPLEMENTED:
                msg = "server does not support the reflection API"
                raise ReflectionError(msg, code=exc.code().value[0]) from exc
            raise ReflectionError(
                f"reflection stream failed: {exc.details()}", code=exc.code().value[0]
            ) from exc

        if response is grpc.aio.EOF:
            self._call = None
            msg = "reflection stream closed by server"
            raise ReflectionError(msg)

        if response.WhichOneof("message_response") == "error_response":
            err = response.error_response
            raise ReflectionError(err.error_message, code=err.error_code)
        return response  # type: ignore[no-any-return]

    @staticmethod
    def _file_protos(
        response: reflection_pb2.ServerReflectionResponse,
    ) -> list[descriptor_pb2.FileDescriptorProto]:
        if response.WhichOneof("message_response") != "file_descriptor_response":
            msg = "unexpected response to file request"
            raise ReflectionError(msg)
        return _parse_files(response.file_descriptor_response.file_descriptor_proto)


def _parse_files(raw_files: Iterable[bytes]) -> list[descriptor_pb2.FileDescriptorProto]:
    protos: list[descriptor_pb2.FileDescriptorProto] = []
    for raw in raw_files:
        proto = descriptor_pb2.FileDescriptorProto()
        proto.ParseFromString(raw)
        protos.append(proto)
    return protos
