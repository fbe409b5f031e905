"""DescriptorSource — resolves names to descriptors fetched via reflection.

A source is created for one tool call. Files arrive from the server as
serialized ``FileDescriptorProto`` messages and are added to a private
:class:`~google.protobuf.descriptor_pool.DescriptorPool` dependency-first,
so every descriptor handed out is fully linked.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Union

from google.protobuf import descriptor, descriptor_pool

from grmcp.errors import ReflectionError, ResolutionError, UnrecognizedDescriptorError
from grmcp.reflection.client import NOT_FOUND, REFLECTION_SERVICES

if TYPE_CHECKING:
    from google.protobuf import descriptor_pb2

    from grmcp.reflection.client import ReflectionClient

logger = logging.getLogger(__name__)

AnyDescriptor = Union[
    descriptor.Descriptor,
    descriptor.FieldDescriptor,
    descriptor.OneofDescriptor,
    descriptor.EnumDescriptor,
    descriptor.EnumValueDescriptor,
    descriptor.ServiceDescriptor,
    descriptor.MethodDescriptor,
]

_POOL_FINDERS = (
    "FindServiceByName",
    "FindMessageTypeByName",
    "FindEnumTypeByName",
    "FindMethodByName",
    "FindFieldByName",
    "FindExtensionByName",
    "FindOneofByName",
)


class DescriptorSource:
    """Lists services and resolves symbols against one reflection client."""

    def __init__(
        self,
        client: ReflectionClient,
        pool: descriptor_pool.DescriptorPool | None = None,
    ) -> None:
        self._client = client
        self._pool = pool if pool is not None else descriptor_pool.DescriptorPool()
        self._loaded: set[str] = set()

    @property
    def pool(self) -> descriptor_pool.DescriptorPool:
        return self._pool

    async def list_services(self) -> list[str]:
        """Return advertised service names without the reflection service itself."""
        names = await self._client.list_services()
        return [name for name in names if name not in REFLECTION_SERVICES]

    async def find_symbol(self, name: str) -> AnyDescriptor:
        """Resolve a dot-form symbol (``pkg.Service``, ``pkg.Msg.field``, ...)."""
        symbol = name[1:] if name.startswith(".") else name
        if not symbol:
            raise ResolutionError(name, "empty symbol name")

        found = self._lookup(symbol)
        if found is not None:
            return found

        await self._load_symbol(symbol)
        found = self._lookup(symbol)
        if found is None:
            raise ResolutionError(symbol, "symbol not found")
        return found

    async def find_method(self, name: str) -> descriptor.MethodDescriptor:
        """Resolve a slash-form method name (``pkg.Service/Method``)."""
        method_name = name[1:] if name[:1] in (".", "/") else name
        sep = method_name.rfind("/")
        if sep == -1:
            sep = method_name.rfind(".")
        if sep <= 0 or sep == len(method_name) - 1:
            raise ResolutionError(name, "method name must be package.Service/Method")

        service_name = method_name[:sep]
        short_name = method_name[sep + 1 :]
        try:
            found = await self.find_symbol(service_name)
        except ResolutionError as exc:
            raise ResolutionError(
                name, f"target server does not expose service {service_name!r}"
            ) from exc

        if not isinstance(found, descriptor.ServiceDescriptor):
            raise ResolutionError(name, f"{service_name!r} is not a service")

        method = found.methods_by_name.get(short_name)
        if method is None:
            raise ResolutionError(
                name, f"service {service_name!r} does not include a method named {short_name!r}"
            )
        return method

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load_symbol(self, symbol: str) -> None:
        """Fetch the file defining *symbol*, walking up to enclosing scopes on NOT_FOUND."""
        candidate = symbol
        while True:
            try:
                files = await self._client.file_containing_symbol(candidate)
                break
            except ReflectionError as exc:
                if exc.code != NOT_FOUND:
                    raise
                if "." not in candidate:
                    raise ResolutionError(symbol, exc.detail or "symbol not found") from exc
                candidate = candidate.rsplit(".", 1)[0]

        pending = {proto.name: proto for proto in files}
        for proto in files:
            await self._add_file(proto, pending)

    async def _add_file(
        self,
        proto: descriptor_pb2.FileDescriptorProto,
        pending: dict[str, descriptor_pb2.FileDescriptorProto],
    ) -> None:
        if self._is_loaded(proto.name):
            return

        for dependency in proto.dependency:
            if self._is_loaded(dependency):
                continue
            dep_proto = pending.get(dependency)
            if dep_proto is None:
                for fetched in await self._client.file_by_filename(dependency):
                    pending.setdefault(fetched.name, fetched)
                dep_proto = pending.get(dependency)
                if dep_proto is None:
                    msg = f"server did not return dependency {dependency!r} of {proto.name!r}"
                    raise ReflectionError(msg)
            await self._add_file(dep_proto, pending)

        logger.debug("Adding %s to descriptor pool", proto.name)
        self._pool.AddSerializedFile(proto.SerializeToString())
        self._loaded.add(proto.name)

    def _is_loaded(self, filename: str) -> bool:
        if filename in self._loaded:
            return True
        try:
            self._pool.FindFileByName(filename)
        except KeyError:
            return False
        self._loaded.add(filename)
        return True

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _lookup(self, symbol: str) -> AnyDescriptor | None:
        for finder in _POOL_FINDERS:
            find = getattr(self._pool, finder, None)
            if find is None:
                continue
            try:
                return find(symbol)  # type: ignore[no-any-return]
            except KeyError:
                continue
        return self._lookup_enum_value(symbol)

    def _lookup_enum_value(self, symbol: str) -> descriptor.EnumValueDescriptor | None:
        scope, _, value_name = symbol.rpartition(".")
        if not scope:
            return None

        # pkg.Enum.VALUE
        try:
            enum = self._pool.FindEnumTypeByName(scope)
        except KeyError:
            pass
        else:
            return enum.values_by_name.get(value_name)

        # Protobuf scoping: values are siblings of their enum (pkg.VALUE).
        try:
            enums = list(self._pool.FindMessageTypeByName(scope).enum_types)
        except KeyError:
            enums = []
            for filename in self._loaded:
                file = self._pool.FindFileByName(filename)
                if file.package == scope:
                    enums.extend(file.enum_types_by_name.values())

        for enum in enums:
            value = enum.values_by_name.get(value_name)
            if value is not None:
                return value
        return None


# ----------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------


def full_name(desc: AnyDescriptor) -> str:
    """Return the fully-qualified name of any descriptor kind."""
    if isinstance(desc, descriptor.EnumValueDescriptor):
        enum = desc.type
        scope = enum.containing_type.full_name if enum.containing_type else enum.file.package
        return f"{scope}.{desc.name}" if scope else desc.name
    return desc.full_name  # type: ignore[no-any-return]


def classify(desc: object) -> tuple[str, AnyDescriptor]:
    """Return the kind phrase for *desc* and the descriptor to render.

    Synthetic map-entry and group types are reported as such and redirected
    to the field that owns them.
    """
    if isinstance(desc, descriptor.Descriptor):
        parent = desc.containing_type
        if parent is not None:
            if desc.GetOptions().map_entry:
                for field in parent.fields:
                    if _is_map_field(field) and field.message_type.full_name == desc.full_name:
                        return "the entry type for a map field", field
            else:
                for field in parent.fields:
                    if (
                        field.type == descriptor.FieldDescriptor.TYPE_GROUP
                        and field.message_type.full_name == desc.full_name
                    ):
                        return "the type of a group field", field
        return "a message", desc
    if isinstance(desc, descriptor.FieldDescriptor):
        if desc.type == descriptor.FieldDescriptor.TYPE_GROUP:
            return "a group field", desc
        if desc.is_extension:
            return "an extension", desc
        return "a field", desc
    if isinstance(desc, descriptor.OneofDescriptor):
        return "a one-of", desc
    if isinstance(desc, descriptor.EnumDescriptor):
        return "an enum", desc
    if isinstance(desc, descriptor.EnumValueDescriptor):
        return "an enum value", desc
    if isinstance(desc, descriptor.ServiceDescriptor):
        return "a service", desc
    if isinstance(desc, descriptor.MethodDescriptor):
        return "a method", desc
    raise UnrecognizedDescriptorError(type(desc).__name__)


def _is_map_field(field: descriptor.FieldDescriptor) -> bool:
    return field.message_type is not None and field.message_type.GetOptions().map_entry
