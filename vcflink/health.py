"""Connection health checks against the session registry and the endpoint."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from .errors import BackendError, ErrorKind
from .models import ConnectionHandle, ConnectionTestResult
from .timer import Stopwatch, format_duration

if TYPE_CHECKING:
    from .backends import EndpointBackend
    from .registry import ConnectionRegistry

LOG = logging.getLogger(__name__)


def session_age(handle: ConnectionHandle, *, now: datetime | None = None) -> timedelta:
    """Age of the session; zero when no start time was recorded."""

    if handle.start_time is None:
        return timedelta(0)
    start = handle.start_time
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    current = now or datetime.now(tz=timezone.utc)
    return max(current - start, timedelta(0))


def test_connection(
    registry: ConnectionRegistry,
    backend: EndpointBackend,
    endpoint_address: str,
    *,
    skip_liveness_probe: bool = False,
) -> ConnectionTestResult:
    """Check whether the session to `endpoint_address` is usable.

    The registry is consulted first and no remote call is made when it holds
    no live session. Failures are returned, never raised.
    """

    handle = registry.find_connected(backend.kind, endpoint_address)
    if handle is None:
        return ConnectionTestResult(
            is_connected=False,
            endpoint_address=endpoint_address,
            error_message=f"No active session to '{endpoint_address}'; connect first.",
            error_kind=ErrorKind.SESSION_INVALID,
        )
    age = session_age(handle)
    if skip_liveness_probe:
        return ConnectionTestResult(is_connected=True, endpoint_address=endpoint_address, session_age=age)

    watch = Stopwatch().start()
    try:
        backend.probe(handle)
    except BackendError as exc:
        message = _failure_message(exc, endpoint_address)
        LOG.debug(
            "Liveness probe to '%s' failed after %s: %s",
            endpoint_address,
            format_duration(watch.stop()),
            exc.raw_message,
        )
        return ConnectionTestResult(
            is_connected=False,
            endpoint_address=endpoint_address,
            session_age=age,
            error_message=message,
            error_kind=exc.kind,
        )
    LOG.debug("Liveness probe to '%s' succeeded in %s", endpoint_address, format_duration(watch.stop()))
    return ConnectionTestResult(is_connected=True, endpoint_address=endpoint_address, session_age=age)


def _failure_message(exc: BackendError, address: str) -> str:
    if exc.kind in (ErrorKind.SESSION_INVALID, ErrorKind.AUTHENTICATION):
        return f"Session to '{address}' is no longer authenticated: {exc.raw_message}"
    if exc.kind is ErrorKind.NETWORK:
        return f"Connection to '{address}' was lost: {exc.raw_message}"
    return f"Connection test to '{address}' failed: {exc.raw_message}"


__all__ = ["session_age", "test_connection"]
