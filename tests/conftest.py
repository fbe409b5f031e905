"""Shared fixtures: schemas built from descriptor protos and a live Greeter server."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import grpc
import pytest
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from grpc_reflection.v1alpha import reflection

_F = descriptor_pb2.FieldDescriptorProto


def greet_file() -> descriptor_pb2.FileDescriptorProto:
    """``greet/greet.proto``: proto3 messages with a map and a oneof, plus the Greeter service."""
    fdp = descriptor_pb2.FileDescriptorProto(name="greet/greet.proto", package="greet", syntax="proto3")

    req = fdp.message_type.add(name="HelloRequest")
    req.field.add(name="name", number=1, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL)
    req.field.add(name="times", number=2, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL)

    reply = fdp.message_type.add(name="HelloReply")
    reply.field.add(name="message", number=1, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL)

    inv = fdp.message_type.add(name="Inventory")
    entry = inv.nested_type.add(name="CountsEntry")
    entry.options.map_entry = True
    entry.field.add(name="key", number=1, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL)
    entry.field.add(name="value", number=2, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL)
    kind = inv.enum_type.add(name="Kind")
    kind.value.add(name="KIND_UNSPECIFIED", number=0)
    kind.value.add(name="KIND_BOX", number=1)
    inv.oneof_decl.add(name="choice")
    inv.field.add(
        name="counts",
        number=1,
        type=_F.TYPE_MESSAGE,
        label=_F.LABEL_REPEATED,
        type_name=".greet.Inventory.CountsEntry",
    )
    inv.field.add(
        name="kind", number=2, type=_F.TYPE_ENUM, label=_F.LABEL_OPTIONAL, type_name=".greet.Inventory.Kind"
    )
    inv.field.add(name="label", number=3, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL, oneof_index=0)
    inv.field.add(name="code", number=4, type=_F.TYPE_INT64, label=_F.LABEL_OPTIONAL, oneof_index=0)
    inv.field.add(name="tags", number=5, type=_F.TYPE_STRING, label=_F.LABEL_REPEATED)

    mood = fdp.enum_type.add(name="Mood")
    mood.value.add(name="MOOD_UNSPECIFIED", number=0)
    mood.value.add(name="MOOD_HAPPY", number=1)

    svc = fdp.service.add(name="Greeter")
    svc.method.add(name="SayHello", input_type=".greet.HelloRequest", output_type=".greet.HelloReply")
    svc.method.add(
        name="SayHelloStream",
        input_type=".greet.HelloRequest",
        output_type=".greet.HelloReply",
        server_streaming=True,
    )
    svc.method.add(
        name="CollectNames",
        input_type=".greet.HelloRequest",
        output_type=".greet.HelloReply",
        client_streaming=True,
    )
    svc.method.add(name="WhoAmI", input_type=".greet.HelloRequest", output_type=".greet.HelloReply")
    return fdp


def envelope_file() -> descriptor_pb2.FileDescriptorProto:
    """``greet/envelope.proto``, which imports ``greet/greet.proto``."""
    fdp = descriptor_pb2.FileDescriptorProto(
        name="greet/envelope.proto",
        package="greet",
        syntax="proto3",
        dependency=["greet/greet.proto"],
    )
    env = fdp.message_type.add(name="Envelope")
    env.field.add(
        name="request", number=1, type=_F.TYPE_MESSAGE, label=_F.LABEL_OPTIONAL, type_name=".greet.HelloRequest"
    )
    return fdp


def legacy_file() -> descriptor_pb2.FileDescriptorProto:
    """``legacy/legacy.proto``: proto2 with a group and an extension."""
    fdp = descriptor_pb2.FileDescriptorProto(name="legacy/legacy.proto", package="legacy", syntax="proto2")
    order = fdp.message_type.add(name="Order")
    item = order.nested_type.add(name="Item")
    item.field.add(name="sku", number=2, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL)
    order.field.add(
        name="item", number=1, type=_F.TYPE_GROUP, label=_F.LABEL_OPTIONAL, type_name=".legacy.Order.Item"
    )
    order.field.add(name="id", number=3, type=_F.TYPE_INT32, label=_F.LABEL_REQUIRED, default_value="7")
    order.extension_range.add(start=100, end=200)
    fdp.extension.add(
        name="note", number=100, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL, extendee=".legacy.Order"
    )
    return fdp


def build_pool(*files: descriptor_pb2.FileDescriptorProto) -> descriptor_pool.DescriptorPool:
    pool = descriptor_pool.DescriptorPool()
    for fdp in files or (greet_file(),):
        pool.AddSerializedFile(fdp.SerializeToString())
    return pool


@pytest.fixture
def greet_pool() -> descriptor_pool.DescriptorPool:
    return build_pool(greet_file(), envelope_file(), legacy_file())


@pytest.fixture
def make_pool() -> Callable[..., descriptor_pool.DescriptorPool]:
    return build_pool


@pytest.fixture
def greet_file_proto() -> descriptor_pb2.FileDescriptorProto:
    return greet_file()


@pytest.fixture
def envelope_file_proto() -> descriptor_pb2.FileDescriptorProto:
    return envelope_file()


@pytest.fixture
def legacy_file_proto() -> descriptor_pb2.FileDescriptorProto:
    return legacy_file()


# ---------------------------------------------------------------------------
# Live server
# ---------------------------------------------------------------------------


def _greeter_handler(pool: descriptor_pool.DescriptorPool) -> grpc.GenericRpcHandler:
    request_cls: Any = message_factory.GetMessageClass(pool.FindMessageTypeByName("greet.HelloRequest"))
    reply_cls: Any = message_factory.GetMessageClass(pool.FindMessageTypeByName("greet.HelloReply"))
    codec: dict[str, Callable[..., Any]] = {
        "request_deserializer": request_cls.FromString,
        "response_serializer": reply_cls.SerializeToString,
    }

    async def say_hello(request: Any, context: grpc.aio.ServicerContext) -> Any:
        if request.name == "nobody":
            await context.abort(grpc.StatusCode.NOT_FOUND, "no such person")
        return reply_cls(message=f"Hello, {request.name}")

    async def say_hello_stream(request: Any, context: grpc.aio.ServicerContext) -> AsyncIterator[Any]:
        for i in range(max(request.times, 1)):
            yield reply_cls(message=f"Hello #{i + 1}, {request.name}")
        if request.name == "fail":
            await context.abort(grpc.StatusCode.FAILED_PRECONDITION, "out of greetings")

    async def collect_names(request_iterator: AsyncIterator[Any], context: grpc.aio.ServicerContext) -> Any:
        names = [request.name async for request in request_iterator]
        return reply_cls(message=",".join(names))

    async def who_am_i(request: Any, context: grpc.aio.ServicerContext) -> Any:
        metadata = dict(context.invocation_metadata() or ())
        return reply_cls(message=str(metadata.get("authorization", "")))

    return grpc.method_handlers_generic_handler(
        "greet.Greeter",
        {
            "SayHello": grpc.unary_unary_rpc_method_handler(say_hello, **codec),
            "SayHelloStream": grpc.unary_stream_rpc_method_handler(say_hello_stream, **codec),
            "CollectNames": grpc.stream_unary_rpc_method_handler(collect_names, **codec),
            "WhoAmI": grpc.unary_unary_rpc_method_handler(who_am_i, **codec),
        },
    )


async def _start_server(*, with_reflection: bool) -> tuple[grpc.aio.Server, str]:
    pool = build_pool(greet_file(), envelope_file(), legacy_file())
    server = grpc.aio.server()
    server.add_generic_rpc_handlers((_greeter_handler(pool),))
    if with_reflection:
        reflection.enable_server_reflection(("greet.Greeter", reflection.SERVICE_NAME), server, pool=pool)
    port = server.add_insecure_port("127.0.0.1:0")
    await server.start()
    return server, f"127.0.0.1:{port}"


@pytest.fixture
async def greeter_address() -> AsyncIterator[str]:
    """Address of a running Greeter server with reflection enabled."""
    server, address = await _start_server(with_reflection=True)
    try:
        yield address
    finally:
        await server.stop(None)


@pytest.fixture
async def bare_greeter_address() -> AsyncIterator[str]:
    """Address of a running Greeter server without reflection."""
    server, address = await _start_server(with_reflection=False)
    try:
        yield address
    finally:
        await server.stop(None)
