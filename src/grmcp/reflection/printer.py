"""Protobuf source rendering for the ``describe`` tool.

Descriptors are copied back into their ``*DescriptorProto`` form and printed
as ``.proto`` source text. Message and enum references are printed fully
qualified with a leading dot, e.g. ``.greet.HelloRequest``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from google.protobuf import descriptor, descriptor_pb2

from grmcp.errors import UnrecognizedDescriptorError

if TYPE_CHECKING:
    from grmcp.reflection.resolver import AnyDescriptor

INDENT = "  "
_MAX_FIELD_NUMBER = 536870911

_FDP = descriptor_pb2.FieldDescriptorProto

_SCALAR_TYPES: dict[int, str] = {
    _FDP.TYPE_DOUBLE: "double",
    _FDP.TYPE_FLOAT: "float",
    _FDP.TYPE_INT64: "int64",
    _FDP.TYPE_UINT64: "uint64",
    _FDP.TYPE_INT32: "int32",
    _FDP.TYPE_FIXED64: "fixed64",
    _FDP.TYPE_FIXED32: "fixed32",
    _FDP.TYPE_BOOL: "bool",
    _FDP.TYPE_STRING: "string",
    _FDP.TYPE_BYTES: "bytes",
    _FDP.TYPE_UINT32: "uint32",
    _FDP.TYPE_SFIXED32: "sfixed32",
    _FDP.TYPE_SFIXED64: "sfixed64",
    _FDP.TYPE_SINT32: "sint32",
    _FDP.TYPE_SINT64: "sint64",
}


def render(desc: AnyDescriptor) -> str:
    """Return ``.proto`` source text describing *desc*."""
    printer = ProtoPrinter(_syntax_of(desc))

    if isinstance(desc, descriptor.Descriptor):
        proto = descriptor_pb2.DescriptorProto()
        desc.CopyToProto(proto)
        lines = printer.message(proto)
    elif isinstance(desc, descriptor.FieldDescriptor):
        lines = _render_field(printer, desc)
    elif isinstance(desc, descriptor.OneofDescriptor):
        proto = descriptor_pb2.DescriptorProto()
        desc.containing_type.CopyToProto(proto)
        lines = printer.oneof(proto, desc.index)
    elif isinstance(desc, descriptor.EnumDescriptor):
        enum_proto = descriptor_pb2.EnumDescriptorProto()
        desc.CopyToProto(enum_proto)
        lines = printer.enum(enum_proto)
    elif isinstance(desc, descriptor.EnumValueDescriptor):
        enum_proto = descriptor_pb2.EnumDescriptorProto()
        desc.type.CopyToProto(enum_proto)
        value = next(v for v in enum_proto.value if v.name == desc.name)
        lines = [printer.enum_value(value)]
    elif isinstance(desc, descriptor.ServiceDescriptor):
        service_proto = descriptor_pb2.ServiceDescriptorProto()
        desc.CopyToProto(service_proto)
        lines = printer.service(service_proto)
    elif isinstance(desc, descriptor.MethodDescriptor):
        service_proto = descriptor_pb2.ServiceDescriptorProto()
        desc.containing_service.CopyToProto(service_proto)
        method = next(m for m in service_proto.method if m.name == desc.name)
        lines = [printer.method(method)]
    else:
        raise UnrecognizedDescriptorError(type(desc).__name__)

    return "\n".join(lines)


def _render_field(printer: ProtoPrinter, desc: descriptor.FieldDescriptor) -> list[str]:
    if desc.is_extension:
        scope: descriptor_pb2.DescriptorProto | None = None
        if desc.extension_scope is not None:
            scope = descriptor_pb2.DescriptorProto()
            desc.extension_scope.CopyToProto(scope)
            candidates: Iterable[descriptor_pb2.FieldDescriptorProto] = scope.extension
        else:
            file_proto = descriptor_pb2.FileDescriptorProto()
            desc.file.CopyToProto(file_proto)
            candidates = file_proto.extension
        field = next(f for f in candidates if f.name == desc.name)
        return printer.extensions([field], scope)

    parent = descriptor_pb2.DescriptorProto()
    desc.containing_type.CopyToProto(parent)
    field = next(f for f in parent.field if f.name == desc.name)
    return printer.field(field, parent, in_oneof=_in_real_oneof(field))


def _syntax_of(desc: AnyDescriptor) -> str:
    if isinstance(desc, descriptor.EnumValueDescriptor):
        file = desc.type.file
    elif isinstance(desc, descriptor.MethodDescriptor):
        file = desc.containing_service.file
    elif isinstance(desc, descriptor.OneofDescriptor):
        file = desc.containing_type.file
    elif isinstance(
        desc,
        (descriptor.Descriptor, descriptor.FieldDescriptor, descriptor.EnumDescriptor, descriptor.ServiceDescriptor),
    ):
        file = desc.file
    else:
        raise UnrecognizedDescriptorError(type(desc).__name__)
    file_proto = descriptor_pb2.FileDescriptorProto()
    file.CopyToProto(file_proto)
    return file_proto.syntax or "proto2"


def _in_real_oneof(field: descriptor_pb2.FieldDescriptorProto) -> bool:
    return field.HasField("oneof_index") and not field.proto3_optional


def _indent(lines: Iterable[str]) -> list[str]:
    return [INDENT + line for line in lines]


class ProtoPrinter:
    """Prints descriptor protos as source lines for one file syntax."""

    def __init__(self, syntax: str = "proto3") -> None:
        self._syntax = syntax

    def service(self, proto: descriptor_pb2.ServiceDescriptorProto) -> list[str]:
        return [
            f"service {proto.name} {{",
            *_indent(self.method(m) for m in proto.method),
            "}",
        ]

    def method(self, proto: descriptor_pb2.MethodDescriptorProto) -> str:
        request = ("stream " if proto.client_streaming else "") + proto.input_type
        response = ("stream " if proto.server_streaming else "") + proto.output_type
        return f"rpc {proto.name} ( {request} ) returns ( {response} );"

    def message(self, proto: descriptor_pb2.DescriptorProto) -> list[str]:
        return [f"message {proto.name} {{", *_indent(self._message_body(proto)), "}"]

    def _message_body(self, proto: descriptor_pb2.DescriptorProto) -> list[str]:
        lines: list[str] = []
        synthetic: set[str] = {n.name for n in proto.nested_type if n.options.map_entry}
        emitted_oneofs: set[int] = set()

        for field in proto.field:
            if field.type == _FDP.TYPE_GROUP:
                synthetic.add(field.type_name.rsplit(".", 1)[-1])
            if _in_real_oneof(field):
                if field.oneof_index not in emitted_oneofs:
                    emitted_oneofs.add(field.oneof_index)
                    lines.extend(self.oneof(proto, field.oneof_index))
                continue
            lines.extend(self.field(field, proto))

        for nested in proto.nested_type:
            if nested.name not in synthetic:
                lines.extend(self.message(nested))
        for enum in proto.enum_type:
            lines.extend(self.enum(enum))
        if proto.extension:
            lines.extend(self.extensions(proto.extension, proto))
        extension_spans = _spans(proto.extension_range)
        if extension_spans:
            lines.append(f"extensions {', '.join(extension_spans)};")
        lines.extend(self._reserved(proto.reserved_range, proto.reserved_name))
        return lines

    def field(
        self,
        proto: descriptor_pb2.FieldDescriptorProto,
        scope: descriptor_pb2.DescriptorProto | None,
        *,
        in_oneof: bool = False,
    ) -> list[str]:
        nested = _nested_type(scope, proto.type_name) if proto.type_name else None

        if nested is not None and nested.options.map_entry:
            key = self._type_name(nested.field[0])
            value = self._type_name(nested.field[1])
            return [f"map<{key}, {value}> {proto.name} = {proto.number}{self._field_options(proto)};"]

        label = self._label(proto, in_oneof=in_oneof)
        if proto.type == _FDP.TYPE_GROUP and nested is not None:
            return [
                f"{label}group {nested.name} = {proto.number}{self._field_options(proto)} {{",
                *_indent(self._message_body(nested)),
                "}",
            ]

        return [
            f"{label}{self._type_name(proto)} {proto.name} = {proto.number}"
            f"{self._field_options(proto)};"
        ]

    def oneof(self, proto: descriptor_pb2.DescriptorProto, index: int) -> list[str]:
        lines = [f"oneof {proto.oneof_decl[index].name} {{"]
        for field in proto.field:
            if field.HasField("oneof_index") and field.oneof_index == index:
                lines.extend(_indent(self.field(field, proto, in_oneof=True)))
        lines.append("}")
        return lines

    def enum(self, proto: descriptor_pb2.EnumDescriptorProto) -> list[str]:
        return [
            f"enum {proto.name} {{",
            *_indent(self.enum_value(v) for v in proto.value),
            *_indent(self._reserved(proto.reserved_range, proto.reserved_name, inclusive=True)),
            "}",
        ]

    def enum_value(self, proto: descriptor_pb2.EnumValueDescriptorProto) -> str:
        options = " [deprecated = true]" if proto.options.deprecated else ""
        return f"{proto.name} = {proto.number}{options};"

    def extensions(
        self,
        fields: Iterable[descriptor_pb2.FieldDescriptorProto],
        scope: descriptor_pb2.DescriptorProto | None,
    ) -> list[str]:
        by_extendee: dict[str, list[descriptor_pb2.FieldDescriptorProto]] = {}
        for field in fields:
            by_extendee.setdefault(field.extendee, []).append(field)

        lines: list[str] = []
        for extendee, group in by_extendee.items():
            lines.append(f"extend {extendee} {{")
            for field in group:
                lines.extend(_indent(self.field(field, scope)))
            lines.append("}")
        return lines

    def _label(self, proto: descriptor_pb2.FieldDescriptorProto, *, in_oneof: bool) -> str:
        if in_oneof:
            return ""
        if proto.label == _FDP.LABEL_REPEATED:
            return "repeated "
        if proto.label == _FDP.LABEL_REQUIRED:
            return "required "
        if self._syntax == "proto2" or proto.proto3_optional:
            return "optional "
        return ""

    @staticmethod
    def _type_name(proto: descriptor_pb2.FieldDescriptorProto) -> str:
        scalar = _SCALAR_TYPES.get(proto.type)
        if scalar is not None:
            return scalar
        return proto.type_name

    @staticmethod
    def _field_options(proto: descriptor_pb2.FieldDescriptorProto) -> str:
        options: list[str] = []
        if proto.HasField("default_value"):
            if proto.type in (_FDP.TYPE_STRING, _FDP.TYPE_BYTES):
                options.append(f'default = "{proto.default_value}"')
            else:
                options.append(f"default = {proto.default_value}")
        if proto.options.HasField("packed"):
            options.append(f"packed = {str(proto.options.packed).lower()}")
        if proto.options.deprecated:
            options.append("deprecated = true")
        return f" [{', '.join(options)}]" if options else ""

    @staticmethod
    def _reserved(
        ranges: Iterable[descriptor_pb2.DescriptorProto.ReservedRange]
        | Iterable[descriptor_pb2.EnumDescriptorProto.EnumReservedRange],
        names: Iterable[str],
        *,
        inclusive: bool = False,
    ) -> list[str]:
        lines: list[str] = []
        spans = _spans(ranges, inclusive=inclusive)
        if spans:
            lines.append(f"reserved {', '.join(spans)};")
        quoted = [f'"{name}"' for name in names]
        if quoted:
            lines.append(f"reserved {', '.join(quoted)};")
        return lines


def _spans(ranges: Iterable[object], *, inclusive: bool = False) -> list[str]:
    spans: list[str] = []
    for span in ranges:
        # Message ranges are end-exclusive, enum ranges end-inclusive.
        start: int = span.start  # type: ignore[attr-defined]
        end: int = span.end if inclusive else span.end - 1  # type: ignore[attr-defined]
        if end == start:
            spans.append(str(start))
        elif end >= _MAX_FIELD_NUMBER:
            spans.append(f"{start} to max")
        else:
            spans.append(f"{start} to {end}")
    return spans


def _nested_type(
    scope: descriptor_pb2.DescriptorProto | None, type_name: str
) -> descriptor_pb2.DescriptorProto | None:
    if scope is None or not type_name.endswith(f".{scope.name}.{type_name.rsplit('.', 1)[-1]}"):
        return None
    short = type_name.rsplit(".", 1)[-1]
    for nested in scope.nested_type:
        if nested.name == short:
            return nested
    return None
