"""Error kinds and the single point where SDK error text is classified."""

from __future__ import annotations

import re
from enum import Enum

from .exit_codes import ExitCode


class ErrorKind(str, Enum):
    """Failure categories shared by adapters, health checks and the CLI."""

    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    SESSION_INVALID = "session_invalid"
    NETWORK = "network"
    TOKEN_DECODE = "token_decode"
    ENVIRONMENT = "environment"
    UNKNOWN = "unknown"

    @property
    def exit_code(self) -> ExitCode:
        return _EXIT_CODES[self]


_EXIT_CODES: dict[ErrorKind, ExitCode] = {
    ErrorKind.CONFIGURATION: ExitCode.CONFIGURATION_ERROR,
    ErrorKind.AUTHENTICATION: ExitCode.AUTHENTICATION_ERROR,
    ErrorKind.SESSION_INVALID: ExitCode.AUTHENTICATION_ERROR,
    ErrorKind.NETWORK: ExitCode.CONNECTION_ERROR,
    ErrorKind.TOKEN_DECODE: ExitCode.GENERAL_ERROR,
    ErrorKind.ENVIRONMENT: ExitCode.PRECONDITION_ERROR,
    ErrorKind.UNKNOWN: ExitCode.GENERAL_ERROR,
}


class VcfLinkError(RuntimeError):
    """Base class for errors raised by this package."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind

    @property
    def exit_code(self) -> ExitCode:
        return self.kind.exit_code


class BackendError(VcfLinkError):
    """Raised by endpoint backends; `raw_message` keeps the SDK's own text."""

    def __init__(self, message: str, *, kind: ErrorKind | None = None, raw_message: str | None = None) -> None:
        super().__init__(message, kind=kind)
        self.raw_message = raw_message if raw_message is not None else message


class ConfigurationError(VcfLinkError):
    """Credentials file or settings are missing or malformed."""

    kind = ErrorKind.CONFIGURATION


class TokenDecodeError(VcfLinkError):
    """A bearer token could not be decoded."""

    kind = ErrorKind.TOKEN_DECODE


class PromptUnavailableError(VcfLinkError):
    """Interactive input was requested in a headless run."""

    kind = ErrorKind.CONFIGURATION


# These track vendor error strings and will drift with SDK releases.
_SESSION_INVALID_PATTERNS = (
    r"signature (verification )?fail",
    r"token (has )?expired",
    r"jwt expired",
    r"token[ _-]?not[ _-]?found",
    r"not currently connected",
    r"not ?authenticated",
    r"session (is )?(not valid|invalid|expired)",
)
_TIMEOUT_PATTERNS = (
    r"timed? ?out",
)
_AUTHENTICATION_PATTERNS = (
    r"invalid ?login",
    r"incorrect user ?name or password",
    r"cannot complete login",
    r"\b401\b",
    r"unauthori[sz]ed",
    r"authentication fail",
    r"permission",
    r"\b403\b",
    r"forbidden",
)
_NETWORK_PATTERNS = (
    r"name or service not known",
    r"nodename nor servname",
    r"getaddrinfo",
    r"could not resolve",
    r"no route to host",
    r"connection (refused|reset|aborted)",
    r"max retries exceeded",
    r"network is unreachable",
    r"ssl|certificate|tls",
    r"remote end closed",
    r"unable to connect",
)


def _compile(patterns: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile("|".join(f"(?:{pattern})" for pattern in patterns), re.IGNORECASE)


_SESSION_INVALID = _compile(_SESSION_INVALID_PATTERNS)
_AUTHENTICATION = _compile(_AUTHENTICATION_PATTERNS)
_NETWORK = _compile(_NETWORK_PATTERNS)
_TIMEOUT = _compile(_TIMEOUT_PATTERNS)


def classify_error_text(text: str | None, *, during_probe: bool = False) -> ErrorKind:
    """Map raw SDK error text onto an `ErrorKind`.

    A timeout on a liveness probe of an established session means the session
    must be re-authenticated; a timeout anywhere else is a network failure.
    """

    if not text:
        return ErrorKind.UNKNOWN
    if _SESSION_INVALID.search(text):
        return ErrorKind.SESSION_INVALID
    if _TIMEOUT.search(text):
        return ErrorKind.SESSION_INVALID if during_probe else ErrorKind.NETWORK
    if _AUTHENTICATION.search(text):
        return ErrorKind.AUTHENTICATION
    if _NETWORK.search(text):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


def describe_error(kind: ErrorKind, raw_message: str, *, address: str | None = None) -> str:
    """Operator-facing guidance for a classified failure."""

    target = f" to '{address}'" if address else ""
    if kind is ErrorKind.SESSION_INVALID:
        return f"Session{target} is no longer valid; re-authentication is required ({raw_message})."
    if kind is ErrorKind.AUTHENTICATION:
        return (
            f"Authentication{target} failed. Verify the username and password and that the "
            "account has sufficient permissions."
        )
    if kind is ErrorKind.NETWORK:
        return (
            f"Unable to reach the endpoint{target}. Check DNS resolution, network "
            f"connectivity and TLS certificates ({raw_message})."
        )
    if kind is ErrorKind.ENVIRONMENT:
        return f"Required SDK is not available: {raw_message}. Fix the Python environment and retry."
    if kind is ErrorKind.CONFIGURATION:
        return f"Configuration problem: {raw_message}"
    return f"error message: {raw_message}"


__all__ = [
    "BackendError",
    "ConfigurationError",
    "ErrorKind",
    "PromptUnavailableError",
    "TokenDecodeError",
    "VcfLinkError",
    "classify_error_text",
    "describe_error",
]
