"""Invocation models — request, terminal status, and collected result."""

from __future__ import annotations

from typing import Any

import grpc
from pydantic import BaseModel, ConfigDict, Field


class RpcStatus(BaseModel):
    """Terminal status of an RPC."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    code: grpc.StatusCode = grpc.StatusCode.OK
    details: str = ""

    @property
    def ok(self) -> bool:
        return self.code == grpc.StatusCode.OK

    def __str__(self) -> str:
        return f"rpc error: code = {self.code.name} desc = {self.details}"


class InvocationRequest(BaseModel):
    """One ``invoke`` call: slash-form method, JSON body, and headers."""

    method: str
    request: str
    headers: dict[str, str] = Field(default_factory=dict)


class InvocationResult(BaseModel):
    """Responses in arrival order plus the terminal status."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    method: str
    responses: list[Any] = Field(default_factory=list)
    status: RpcStatus = Field(default_factory=RpcStatus)
