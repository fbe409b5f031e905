"""Tests for .proto source rendering."""

from __future__ import annotations

import pytest
from google.protobuf import descriptor_pb2

from grmcp.errors import UnrecognizedDescriptorError
from grmcp.reflection.printer import ProtoPrinter, render

_F = descriptor_pb2.FieldDescriptorProto


class TestRenderMessages:
    def test_simple_message(self, greet_pool) -> None:
        text = render(greet_pool.FindMessageTypeByName("greet.HelloRequest"))
        assert text == "message HelloRequest {\n  string name = 1;\n  int32 times = 2;\n}"

    def test_map_oneof_and_nested_enum(self, greet_pool) -> None:
        text = render(greet_pool.FindMessageTypeByName("greet.Inventory"))
        assert text == "\n".join([
            "message Inventory {",
            "  map<string, int32> counts = 1;",
            "  .greet.Inventory.Kind kind = 2;",
            "  oneof choice {",
            "    string label = 3;",
            "    int64 code = 4;",
            "  }",
            "  repeated string tags = 5;",
            "  enum Kind {",
            "    KIND_UNSPECIFIED = 0;",
            "    KIND_BOX = 1;",
            "  }",
            "}",
        ])

    def test_proto2_group_required_and_extension_range(self, greet_pool) -> None:
        text = render(greet_pool.FindMessageTypeByName("legacy.Order"))
        assert text == "\n".join([
            "message Order {",
            "  optional group Item = 1 {",
            "    optional string sku = 2;",
            "  }",
            "  required int32 id = 3 [default = 7];",
            "  extensions 100 to 199;",
            "}",
        ])

    def test_message_referencing_other_file(self, greet_pool) -> None:
        text = render(greet_pool.FindMessageTypeByName("greet.Envelope"))
        assert "  .greet.HelloRequest request = 1;" in text.splitlines()


class TestRenderMembers:
    def test_service(self, greet_pool) -> None:
        text = render(greet_pool.FindServiceByName("greet.Greeter"))
        assert text == "\n".join([
            "service Greeter {",
            "  rpc SayHello ( .greet.HelloRequest ) returns ( .greet.HelloReply );",
            "  rpc SayHelloStream ( .greet.HelloRequest ) returns ( stream .greet.HelloReply );",
            "  rpc CollectNames ( stream .greet.HelloRequest ) returns ( .greet.HelloReply );",
            "  rpc WhoAmI ( .greet.HelloRequest ) returns ( .greet.HelloReply );",
            "}",
        ])

    def test_method(self, greet_pool) -> None:
        method = greet_pool.FindServiceByName("greet.Greeter").methods_by_name["SayHelloStream"]
        assert render(method) == "rpc SayHelloStream ( .greet.HelloRequest ) returns ( stream .greet.HelloReply );"

    def test_map_field(self, greet_pool) -> None:
        assert render(greet_pool.FindFieldByName("greet.Inventory.counts")) == "map<string, int32> counts = 1;"

    def test_field_in_oneof_has_no_label(self, greet_pool) -> None:
        assert render(greet_pool.FindFieldByName("greet.Inventory.label")) == "string label = 3;"

    def test_group_field(self, greet_pool) -> None:
        assert render(greet_pool.FindFieldByName("legacy.Order.item")) == (
            "optional group Item = 1 {\n  optional string sku = 2;\n}"
        )

    def test_oneof(self, greet_pool) -> None:
        assert render(greet_pool.FindOneofByName("greet.Inventory.choice")) == (
            "oneof choice {\n  string label = 3;\n  int64 code = 4;\n}"
        )

    def test_extension(self, greet_pool) -> None:
        assert render(greet_pool.FindExtensionByName("legacy.note")) == (
            "extend .legacy.Order {\n  optional string note = 100;\n}"
        )

    def test_enum(self, greet_pool) -> None:
        assert render(greet_pool.FindEnumTypeByName("greet.Mood")) == (
            "enum Mood {\n  MOOD_UNSPECIFIED = 0;\n  MOOD_HAPPY = 1;\n}"
        )

    def test_enum_value(self, greet_pool) -> None:
        value = greet_pool.FindEnumTypeByName("greet.Inventory.Kind").values_by_name["KIND_BOX"]
        assert render(value) == "KIND_BOX = 1;"

    def test_unrecognized(self, greet_pool) -> None:
        with pytest.raises(UnrecognizedDescriptorError):
            render(greet_pool.FindFileByName("greet/greet.proto"))

    def test_unrecognized_object(self) -> None:
        with pytest.raises(UnrecognizedDescriptorError, match="object"):
            render(object())  # type: ignore[arg-type]


class TestProtoPrinter:
    def test_reserved_ranges_and_names(self) -> None:
        proto = descriptor_pb2.DescriptorProto(name="Old")
        proto.reserved_range.add(start=5, end=6)
        proto.reserved_range.add(start=10, end=20)
        proto.reserved_range.add(start=100, end=536870912)
        proto.reserved_name.append("legacy")

        assert ProtoPrinter().message(proto) == [
            "message Old {",
            "  reserved 5, 10 to 19, 100 to max;",
            '  reserved "legacy";',
            "}",
        ]

    def test_enum_reserved_ranges_are_inclusive(self) -> None:
        proto = descriptor_pb2.EnumDescriptorProto(name="Color")
        proto.value.add(name="COLOR_UNSPECIFIED", number=0)
        proto.value.add(name="COLOR_RED", number=1).options.deprecated = True
        proto.reserved_range.add(start=2, end=3)

        assert ProtoPrinter().enum(proto) == [
            "enum Color {",
            "  COLOR_UNSPECIFIED = 0;",
            "  COLOR_RED = 1 [deprecated = true];",
            "  reserved 2 to 3;",
            "}",
        ]

    def test_proto3_optional_is_not_a_oneof(self) -> None:
        proto = descriptor_pb2.DescriptorProto(name="Profile")
        proto.oneof_decl.add(name="_nick")
        proto.field.add(
            name="nick", number=1, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL, oneof_index=0, proto3_optional=True
        )

        assert ProtoPrinter("proto3").message(proto) == [
            "message Profile {",
            "  optional string nick = 1;",
            "}",
        ]

    def test_field_options(self) -> None:
        printer = ProtoPrinter("proto2")
        field = _F(name="greeting", number=1, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL, default_value="hi")
        field.options.deprecated = True
        packed = _F(name="ids", number=2, type=_F.TYPE_INT32, label=_F.LABEL_REPEATED)
        packed.options.packed = False

        assert printer.field(field, None) == ['optional string greeting = 1 [default = "hi", deprecated = true];']
        assert printer.field(packed, None) == ["repeated int32 ids = 2 [packed = false];"]

    def test_extensions_grouped_by_extendee(self) -> None:
        first = _F(name="a", number=100, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL, extendee=".pkg.A")
        second = _F(name="b", number=101, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL, extendee=".pkg.A")

        assert ProtoPrinter("proto2").extensions([first, second], None) == [
            "extend .pkg.A {",
            "  optional int32 a = 100;",
            "  optional int32 b = 101;",
            "}",
        ]
