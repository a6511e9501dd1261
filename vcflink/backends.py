"""Endpoint backends wrapping the external management SDKs.

Every SDK exception is translated into `BackendError` here, using
`classify_error_text`, so callers only ever see typed error kinds.
"""

from __future__ import annotations

import importlib
import logging
from datetime import datetime, timezone
from types import ModuleType
from typing import Any, Protocol, runtime_checkable

import requests

from .credentials import revealed
from .errors import BackendError, ErrorKind, classify_error_text, describe_error
from .models import ConnectionHandle, EndpointCredentials, EndpointKind

LOG = logging.getLogger(__name__)


@runtime_checkable
class EndpointBackend(Protocol):
    """Protocol implemented by endpoint backends."""

    kind: EndpointKind

    def authenticate(self, credentials: EndpointCredentials) -> ConnectionHandle:
        """Open a session and return its handle."""

    def disconnect(self, handle: ConnectionHandle) -> None:
        """Close the session behind `handle`."""

    def probe(self, handle: ConnectionHandle) -> None:
        """Issue one cheap read-only call; raise `BackendError` when it fails."""


def translate_error(
    exc: BaseException,
    *,
    action: str,
    address: str,
    fallback: ErrorKind = ErrorKind.UNKNOWN,
    during_probe: bool = False,
) -> BackendError:
    """Convert an SDK exception into a classified `BackendError`."""

    raw = f"{type(exc).__name__}: {exc}".strip()
    kind = classify_error_text(raw, during_probe=during_probe)
    if kind is ErrorKind.UNKNOWN:
        kind = fallback
    return BackendError(
        f"Failed to {action} '{address}': {describe_error(kind, raw, address=address)}",
        kind=kind,
        raw_message=raw,
    )


class SddcManagerBackend:
    """SDDC Manager REST API backend using bearer tokens."""

    kind = EndpointKind.CONTROLLER

    TOKEN_PATH = "/v1/tokens"
    PROBE_PATH = "/v1/sddc-managers"

    def __init__(self, *, port: int = 443, verify_ssl: bool = True, timeout: float = 30.0) -> None:
        self._port = port
        self._verify_ssl = verify_ssl
        self._timeout = timeout

    def authenticate(self, credentials: EndpointCredentials) -> ConnectionHandle:
        session = requests.Session()
        session.verify = self._verify_ssl
        session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
        base_url = self._base_url(credentials.address)
        try:
            with revealed(credentials.secret) as secret:
                response = session.post(
                    f"{base_url}{self.TOKEN_PATH}",
                    json={"username": credentials.username, "password": secret},
                    timeout=self._timeout,
                )
        except requests.RequestException as exc:
            session.close()
            raise translate_error(
                exc, action="connect to", address=credentials.address, fallback=ErrorKind.NETWORK
            ) from exc
        if response.status_code not in (200, 201):
            session.close()
            raise _response_error(
                response,
                action="authenticate to",
                address=credentials.address,
                unauthorized=ErrorKind.AUTHENTICATION,
            )
        token = _json_body(response).get("accessToken")
        if not token:
            session.close()
            raise BackendError(
                f"'{credentials.address}' returned no access token",
                kind=ErrorKind.AUTHENTICATION,
            )
        session.headers["Authorization"] = f"Bearer {token}"
        handle = ConnectionHandle(
            endpoint_kind=self.kind,
            address=credentials.address,
            username=credentials.username,
            session_token=token,
            start_time=datetime.now(tz=timezone.utc),
            raw=session,
        )
        handle.product_version = self._product_version(handle)
        return handle

    def disconnect(self, handle: ConnectionHandle) -> None:
        session = handle.raw
        handle.is_connected = False
        if isinstance(session, requests.Session):
            session.close()

    def probe(self, handle: ConnectionHandle) -> None:
        session = self._session(handle)
        try:
            response = session.get(
                f"{self._base_url(handle.address)}{self.PROBE_PATH}",
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise translate_error(
                exc, action="reach", address=handle.address, fallback=ErrorKind.NETWORK, during_probe=True
            ) from exc
        if response.status_code != 200:
            raise _response_error(
                response,
                action="query",
                address=handle.address,
                unauthorized=ErrorKind.SESSION_INVALID,
                during_probe=True,
            )

    def _product_version(self, handle: ConnectionHandle) -> str | None:
        try:
            response = self._session(handle).get(
                f"{self._base_url(handle.address)}{self.PROBE_PATH}",
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            LOG.debug("Unable to read SDDC Manager version from '%s': %s", handle.address, exc)
            return None
        if response.status_code != 200:
            return None
        elements = _json_body(response).get("elements") or []
        if elements and isinstance(elements[0], dict):
            version = elements[0].get("version")
            return str(version) if version else None
        return None

    def _session(self, handle: ConnectionHandle) -> requests.Session:
        session = handle.raw
        if not isinstance(session, requests.Session) or not handle.is_connected:
            raise BackendError(
                f"You are not currently connected to '{handle.address}'",
                kind=ErrorKind.SESSION_INVALID,
            )
        return session

    def _base_url(self, address: str) -> str:
        if self._port == 443:
            return f"https://{address}"
        return f"https://{address}:{self._port}"


def _json_body(response: requests.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _response_error(
    response: requests.Response,
    *,
    action: str,
    address: str,
    unauthorized: ErrorKind,
    during_probe: bool = False,
) -> BackendError:
    body = _json_body(response)
    detail = body.get("message") or body.get("errorCode") or response.text or response.reason or ""
    raw = f"HTTP {response.status_code}: {detail}".strip()
    if response.status_code == 401:
        kind = unauthorized
    elif response.status_code == 403:
        kind = ErrorKind.AUTHENTICATION
    else:
        kind = classify_error_text(str(detail), during_probe=during_probe)
    return BackendError(
        f"Failed to {action} '{address}': {describe_error(kind, raw, address=address)}",
        kind=kind,
        raw_message=raw,
    )


def _vsphere_sdk() -> ModuleType:
    try:
        return importlib.import_module("pyVim.connect")
    except ImportError as exc:
        raise BackendError(
            "The pyVmomi package is not installed; install it with 'pip install pyvmomi'",
            kind=ErrorKind.ENVIRONMENT,
        ) from exc


class VsphereBackend:
    """vCenter Server / ESX backend built on pyVmomi."""

    kind = EndpointKind.SERVER

    def __init__(self, *, port: int = 443, verify_ssl: bool = True) -> None:
        self._port = port
        self._verify_ssl = verify_ssl

    def authenticate(self, credentials: EndpointCredentials) -> ConnectionHandle:
        sdk = _vsphere_sdk()
        try:
            with revealed(credentials.secret) as secret:
                service_instance = sdk.SmartConnect(
                    host=credentials.address,
                    user=credentials.username,
                    pwd=secret,
                    port=self._port,
                    disableSslCertValidation=not self._verify_ssl,
                )
            content = service_instance.RetrieveContent()
        except Exception as exc:
            raise translate_error(exc, action="connect to", address=credentials.address) from exc
        about = getattr(content, "about", None)
        return ConnectionHandle(
            endpoint_kind=self.kind,
            address=credentials.address,
            username=credentials.username,
            product_version=getattr(about, "version", None),
            start_time=_login_time(content),
            raw=service_instance,
        )

    def disconnect(self, handle: ConnectionHandle) -> None:
        service_instance = handle.raw
        handle.is_connected = False
        if service_instance is None:
            return
        sdk = _vsphere_sdk()
        try:
            sdk.Disconnect(service_instance)
        except Exception as exc:
            raise translate_error(exc, action="disconnect from", address=handle.address) from exc

    def probe(self, handle: ConnectionHandle) -> None:
        if handle.raw is None or not handle.is_connected:
            raise BackendError(
                f"You are not currently connected to '{handle.address}'",
                kind=ErrorKind.SESSION_INVALID,
            )
        try:
            content = handle.raw.RetrieveContent()
            children = content.rootFolder.childEntity
            first = children[0] if children else None
        except Exception as exc:
            raise translate_error(exc, action="query", address=handle.address, during_probe=True) from exc
        LOG.debug("Liveness probe on '%s' returned %s", handle.address, getattr(first, "name", first))


def _login_time(content: Any) -> datetime:
    session = getattr(getattr(content, "sessionManager", None), "currentSession", None)
    login_time = getattr(session, "loginTime", None)
    if isinstance(login_time, datetime):
        return login_time
    return datetime.now(tz=timezone.utc)


def build_backend(kind: EndpointKind, *, port: int = 443, verify_ssl: bool = True) -> EndpointBackend:
    """Default backend for an endpoint kind."""

    if kind is EndpointKind.CONTROLLER:
        return SddcManagerBackend(port=port, verify_ssl=verify_ssl)
    return VsphereBackend(port=port, verify_ssl=verify_ssl)


__all__ = [
    "EndpointBackend",
    "SddcManagerBackend",
    "VsphereBackend",
    "build_backend",
    "translate_error",
]
