"""Shared models used across connection/session modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, SecretStr

from .errors import ErrorKind


class EndpointKind(str, Enum):
    """The two endpoint types a workflow authenticates against."""

    CONTROLLER = "controller"
    SERVER = "server"

    @property
    def label(self) -> str:
        if self is EndpointKind.CONTROLLER:
            return "SDDC Manager"
        return "vCenter Server"


class ConnectionState(str, Enum):
    """Lifecycle of an endpoint session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    TOKEN_EXPIRING_SOON = "token_expiring_soon"
    PROBE_FAILED = "probe_failed"
    RECONNECTING = "reconnecting"


CREDENTIAL_FIELDS: tuple[str, ...] = ("address", "username", "secret")


class EndpointCredentials(BaseModel):
    """Address, username and secret for one endpoint."""

    model_config = ConfigDict(frozen=True)

    address: str
    username: str
    secret: SecretStr

    def is_complete(self) -> bool:
        """All three fields are present and non-blank."""

        return bool(
            self.address.strip()
            and self.username.strip()
            and self.secret.get_secret_value().strip()
        )


@dataclass(slots=True)
class ConnectionHandle:
    """Live session returned by an endpoint backend."""

    endpoint_kind: EndpointKind
    address: str
    username: str
    is_connected: bool = True
    product_version: str | None = None
    session_token: str | None = None
    start_time: datetime | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Claims of interest decoded from a bearer token."""

    expiry_unix_seconds: int


@dataclass(frozen=True, slots=True)
class ConnectionTestResult:
    """Outcome of a single connection health check."""

    is_connected: bool
    endpoint_address: str
    session_age: timedelta | None = None
    error_message: str | None = None
    error_kind: ErrorKind | None = None


__all__ = [
    "CREDENTIAL_FIELDS",
    "ConnectionHandle",
    "ConnectionState",
    "ConnectionTestResult",
    "EndpointCredentials",
    "EndpointKind",
    "TokenClaims",
]
