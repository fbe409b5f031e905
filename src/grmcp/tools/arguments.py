"""Typed arguments for each tool, validated at the dispatcher boundary."""

from __future__ import annotations

import json
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from grmcp.errors import ArgumentError
from grmcp.rpc.models import InvocationRequest

ArgsT = TypeVar("ArgsT", bound=BaseModel)


class InvokeArguments(InvocationRequest):
    """Arguments of the ``invoke`` tool.

    Accepts ``headers`` as a JSON object encoded in a string, and a
    ``request`` given as an object rather than text.
    """

    method: str = Field(..., min_length=1, description="package.Service/Method")
    request: str = Field(..., description="JSON request payload.")
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("request", mode="before")
    @classmethod
    def _request_as_text(cls, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _parse_headers(cls, value: Any) -> Any:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError as exc:
                msg = f"Failed to parse headers JSON: {exc}"
                raise ValueError(msg) from exc
            if not isinstance(parsed, dict):
                msg = "Failed to parse headers JSON: expected a JSON object"
                raise ValueError(msg)
            return parsed
        return value


class ListArguments(BaseModel):
    """The ``list`` tool takes no arguments; extras are ignored."""


class DescribeArguments(BaseModel):
    """Arguments of the ``describe`` tool.

    ``entities`` is a list of dot-form symbols. A single comma-separated
    string is accepted too.
    """

    entities: list[str] = Field(default_factory=list)

    @field_validator("entities", mode="before")
    @classmethod
    def _split_string(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return value.split(",")
        return value

    @field_validator("entities")
    @classmethod
    def _drop_blank(cls, value: list[str]) -> list[str]:
        return [entity.strip() for entity in value if entity.strip()]


def validate_arguments(model: type[ArgsT], tool: str, arguments: dict[str, Any] | None) -> ArgsT:
    """Validate raw tool *arguments* against *model*.

    Raises:
        ArgumentError: For any malformed shape, with every problem listed.
    """
    try:
        return model.model_validate(arguments or {})
    except ValidationError as exc:
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err["loc"]) or "arguments"
            # value_error wraps our own message in "Value error, ..."
            message = str(err["ctx"]["error"]) if err["type"] == "value_error" else err["msg"]
            problems.append(f"{location}: {message}")
        raise ArgumentError(tool, "; ".join(problems)) from exc
