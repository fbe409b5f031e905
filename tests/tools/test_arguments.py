"""Tests for tool argument validation."""

from __future__ import annotations

import pytest

from grmcp.errors import ArgumentError
from grmcp.rpc.models import InvocationRequest
from grmcp.tools.arguments import DescribeArguments, InvokeArguments, ListArguments, validate_arguments


class TestInvokeArguments:
    def test_minimal(self) -> None:
        args = validate_arguments(InvokeArguments, "invoke", {"method": "greet.Greeter/SayHello", "request": "{}"})
        assert args.method == "greet.Greeter/SayHello"
        assert args.headers == {}

    def test_is_an_invocation_request(self) -> None:
        assert isinstance(InvokeArguments(method="m", request="{}"), InvocationRequest)

    def test_headers_as_json_string(self) -> None:
        args = InvokeArguments.model_validate(
            {"method": "m", "request": "{}", "headers": '{"Authorization": "Bearer X"}'}
        )
        assert args.headers == {"Authorization": "Bearer X"}

    def test_headers_as_object(self) -> None:
        args = InvokeArguments.model_validate({"method": "m", "request": "{}", "headers": {"x-id": "7"}})
        assert args.headers == {"x-id": "7"}

    def test_empty_headers_string(self) -> None:
        args = InvokeArguments.model_validate({"method": "m", "request": "{}", "headers": ""})
        assert args.headers == {}

    def test_bad_headers_json(self) -> None:
        with pytest.raises(ArgumentError, match="Failed to parse headers JSON"):
            validate_arguments(InvokeArguments, "invoke", {"method": "m", "request": "{}", "headers": "{oops"})

    def test_headers_error_keeps_own_message(self) -> None:
        with pytest.raises(ArgumentError) as exc_info:
            validate_arguments(InvokeArguments, "invoke", {"method": "m", "request": "{}", "headers": "[1]"})
        assert str(exc_info.value) == (
            "Invalid arguments for 'invoke': headers: Failed to parse headers JSON: expected a JSON object"
        )

    def test_headers_must_be_object(self) -> None:
        with pytest.raises(ArgumentError, match="expected a JSON object"):
            validate_arguments(InvokeArguments, "invoke", {"method": "m", "request": "{}", "headers": "[1]"})

    def test_request_object_is_serialized(self) -> None:
        args = InvokeArguments.model_validate({"method": "m", "request": {"name": "Ada"}})
        assert args.request == '{"name": "Ada"}'

    def test_missing_fields_listed(self) -> None:
        with pytest.raises(ArgumentError) as exc_info:
            validate_arguments(InvokeArguments, "invoke", {})
        message = str(exc_info.value)
        assert message.startswith("Invalid arguments for 'invoke': ")
        assert "method" in message
        assert "request" in message

    def test_empty_method_rejected(self) -> None:
        with pytest.raises(ArgumentError, match="method"):
            validate_arguments(InvokeArguments, "invoke", {"method": "", "request": "{}"})


class TestListArguments:
    def test_accepts_nothing(self) -> None:
        assert isinstance(validate_arguments(ListArguments, "list", None), ListArguments)

    def test_ignores_extras(self) -> None:
        assert isinstance(validate_arguments(ListArguments, "list", {"verbose": True}), ListArguments)


class TestDescribeArguments:
    def test_list(self) -> None:
        args = DescribeArguments.model_validate({"entities": ["greet.Greeter", "greet.HelloRequest"]})
        assert args.entities == ["greet.Greeter", "greet.HelloRequest"]

    def test_comma_separated_string(self) -> None:
        args = DescribeArguments.model_validate({"entities": "greet.Greeter, greet.HelloRequest"})
        assert args.entities == ["greet.Greeter", "greet.HelloRequest"]

    def test_blank_entries_dropped(self) -> None:
        assert DescribeArguments.model_validate({"entities": ["", "  ", "greet.Mood"]}).entities == ["greet.Mood"]

    def test_missing_means_empty(self) -> None:
        assert DescribeArguments.model_validate({}).entities == []

    def test_wrong_type(self) -> None:
        with pytest.raises(ArgumentError, match="entities"):
            validate_arguments(DescribeArguments, "describe", {"entities": 3})
