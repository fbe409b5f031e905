"""Process configuration — the single gRPC target and dial parameters."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from grmcp import __version__
from grmcp.errors import ConfigurationError

ADDRESS_ENV = "ADDRESS"
DIAL_TIMEOUT_ENV = "GRPC_DIAL_TIMEOUT"
DEFAULT_DIAL_TIMEOUT = 10.0


class Settings(BaseModel):
    """Configuration fixed for the lifetime of the process.

    ``address`` is a plain ``host:port`` target. Connections are plaintext;
    no TLS or credentials are configured.
    """

    model_config = {"frozen": True}

    address: str
    dial_timeout: float = Field(default=DEFAULT_DIAL_TIMEOUT, gt=0)
    server_name: str = "grpcReflectionServer"
    server_version: str = __version__

    @field_validator("address")
    @classmethod
    def _require_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "address must not be empty"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``ADDRESS`` and ``GRPC_DIAL_TIMEOUT``.

        Raises:
            ConfigurationError: If the address is missing or a value is invalid.
        """
        env = os.environ if environ is None else environ
        address = env.get(ADDRESS_ENV, "").strip()
        if not address:
            raise ConfigurationError(f"{ADDRESS_ENV} environment variable is required")

        data: dict[str, object] = {"address": address}
        timeout = env.get(DIAL_TIMEOUT_ENV)
        if timeout:
            data["dial_timeout"] = timeout

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
