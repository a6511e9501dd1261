"""Tests for the SDDC Manager and vSphere backends."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest
import requests
from pydantic import SecretStr

from vcf_fakes import token_expiring_in
from vcflink import backends
from vcflink.backends import SddcManagerBackend, VsphereBackend, build_backend
from vcflink.errors import BackendError, ErrorKind
from vcflink.models import ConnectionHandle, EndpointCredentials, EndpointKind


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, reason: str = "OK") -> None:
        self.status_code = status_code
        self._body = body
        self.reason = reason
        self.text = "" if body is None else str(body)

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeHttp:
    """Scripted replacement for `requests.Session.post` / `requests.Session.get`."""

    def __init__(self, monkeypatch: pytest.MonkeyPatch) -> None:
        self.post_response: FakeResponse | Exception = FakeResponse(201, {"accessToken": token_expiring_in(60)})
        self.get_response: FakeResponse | Exception = FakeResponse(200, {"elements": [{"version": "5.2.0.0-24108943"}]})
        self.posts: list[tuple[str, dict[str, Any]]] = []
        self.gets: list[str] = []
        fake = self

        def post(session: requests.Session, url: str, **kwargs: Any) -> FakeResponse:
            fake.posts.append((url, kwargs))
            if isinstance(fake.post_response, Exception):
                raise fake.post_response
            return fake.post_response

        def get(session: requests.Session, url: str, **kwargs: Any) -> FakeResponse:
            fake.gets.append(url)
            if isinstance(fake.get_response, Exception):
                raise fake.get_response
            return fake.get_response

        monkeypatch.setattr(requests.Session, "post", post)
        monkeypatch.setattr(requests.Session, "get", get)


@pytest.fixture
def http(monkeypatch: pytest.MonkeyPatch) -> FakeHttp:
    return FakeHttp(monkeypatch)


def _credentials(address: str = "sddc.lab.local") -> EndpointCredentials:
    return EndpointCredentials(address=address, username="admin@local", secret=SecretStr("VMware1!"))


def test_sddc_authenticate_returns_bearer_session(http: FakeHttp) -> None:
    handle = SddcManagerBackend().authenticate(_credentials())

    url, kwargs = http.posts[0]
    assert url == "https://sddc.lab.local/v1/tokens"
    assert kwargs["json"] == {"username": "admin@local", "password": "VMware1!"}
    assert handle.endpoint_kind is EndpointKind.CONTROLLER
    assert handle.product_version == "5.2.0.0-24108943"
    assert handle.session_token
    assert handle.raw.headers["Authorization"] == f"Bearer {handle.session_token}"


def test_sddc_custom_port_is_part_of_the_url(http: FakeHttp) -> None:
    SddcManagerBackend(port=8443).authenticate(_credentials())

    assert http.posts[0][0] == "https://sddc.lab.local:8443/v1/tokens"


def test_sddc_rejected_login_is_an_authentication_error(http: FakeHttp) -> None:
    http.post_response = FakeResponse(401, {"message": "Bad credentials"}, reason="Unauthorized")

    with pytest.raises(BackendError) as excinfo:
        SddcManagerBackend().authenticate(_credentials())

    assert excinfo.value.kind is ErrorKind.AUTHENTICATION
    assert excinfo.value.raw_message == "HTTP 401: Bad credentials"


def test_sddc_unreachable_host_is_a_network_error(http: FakeHttp) -> None:
    http.post_response = requests.ConnectionError("Max retries exceeded with url: /v1/tokens")

    with pytest.raises(BackendError) as excinfo:
        SddcManagerBackend().authenticate(_credentials())

    assert excinfo.value.kind is ErrorKind.NETWORK


def test_sddc_connect_timeout_is_a_network_error(http: FakeHttp) -> None:
    http.post_response = requests.ConnectTimeout(
        "HTTPSConnectionPool(host='sddc.lab.local', port=443): Max retries exceeded with url: /v1/tokens "
        "(Caused by ConnectTimeoutError('Connection to sddc.lab.local timed out. (connect timeout=30)'))"
    )

    with pytest.raises(BackendError) as excinfo:
        SddcManagerBackend().authenticate(_credentials())

    assert excinfo.value.kind is ErrorKind.NETWORK
    assert excinfo.value.exit_code == 3
    assert "no longer valid" not in str(excinfo.value)


def test_sddc_read_timeout_on_established_session_is_session_invalid(http: FakeHttp) -> None:
    backend = SddcManagerBackend()
    handle = backend.authenticate(_credentials())
    http.get_response = requests.ReadTimeout("Read timed out. (read timeout=30)")

    with pytest.raises(BackendError) as excinfo:
        backend.probe(handle)

    assert excinfo.value.kind is ErrorKind.SESSION_INVALID


def test_sddc_missing_token_is_an_authentication_error(http: FakeHttp) -> None:
    http.post_response = FakeResponse(200, {"refreshToken": {"id": "x"}})

    with pytest.raises(BackendError) as excinfo:
        SddcManagerBackend().authenticate(_credentials())

    assert excinfo.value.kind is ErrorKind.AUTHENTICATION


def test_sddc_probe_with_expired_session_is_session_invalid(http: FakeHttp) -> None:
    backend = SddcManagerBackend()
    handle = backend.authenticate(_credentials())
    http.get_response = FakeResponse(401, None, reason="Unauthorized")

    with pytest.raises(BackendError) as excinfo:
        backend.probe(handle)

    assert excinfo.value.kind is ErrorKind.SESSION_INVALID
    assert http.gets[-1] == "https://sddc.lab.local/v1/sddc-managers"


def test_sddc_probe_after_disconnect_fails_without_request(http: FakeHttp) -> None:
    backend = SddcManagerBackend()
    handle = backend.authenticate(_credentials())
    backend.disconnect(handle)
    calls = len(http.gets)

    with pytest.raises(BackendError) as excinfo:
        backend.probe(handle)

    assert excinfo.value.kind is ErrorKind.SESSION_INVALID
    assert len(http.gets) == calls


class FakeServiceInstance:
    def __init__(self, *, probe_error: Exception | None = None) -> None:
        self.probe_error = probe_error
        self.retrieve_calls = 0

    def RetrieveContent(self) -> SimpleNamespace:
        self.retrieve_calls += 1
        if self.probe_error is not None and self.retrieve_calls > 1:
            raise self.probe_error
        return SimpleNamespace(
            about=SimpleNamespace(version="8.0.2"),
            sessionManager=SimpleNamespace(
                currentSession=SimpleNamespace(loginTime=datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc))
            ),
            rootFolder=SimpleNamespace(childEntity=[SimpleNamespace(name="dc01")]),
        )


class FakeConnectModule:
    def __init__(self, instance: FakeServiceInstance | None = None, error: Exception | None = None) -> None:
        self.instance = instance or FakeServiceInstance()
        self.error = error
        self.connect_kwargs: dict[str, Any] = {}
        self.disconnected: list[Any] = []

    def SmartConnect(self, **kwargs: Any) -> FakeServiceInstance:
        self.connect_kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.instance

    def Disconnect(self, service_instance: Any) -> None:
        self.disconnected.append(service_instance)


def _use_sdk(monkeypatch: pytest.MonkeyPatch, module: FakeConnectModule) -> FakeConnectModule:
    monkeypatch.setattr(backends, "_vsphere_sdk", lambda: module)
    return module


def test_vsphere_authenticate_reads_version_and_login_time(monkeypatch: pytest.MonkeyPatch) -> None:
    sdk = _use_sdk(monkeypatch, FakeConnectModule())

    handle = VsphereBackend(verify_ssl=False).authenticate(_credentials("vc.lab.local"))

    assert sdk.connect_kwargs["host"] == "vc.lab.local"
    assert sdk.connect_kwargs["pwd"] == "VMware1!"
    assert sdk.connect_kwargs["disableSslCertValidation"] is True
    assert handle.product_version == "8.0.2"
    assert handle.start_time == datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)
    assert handle.session_token is None


def test_vsphere_invalid_login_is_an_authentication_error(monkeypatch: pytest.MonkeyPatch) -> None:
    error = RuntimeError("vim.fault.InvalidLogin: Cannot complete login due to an incorrect user name or password.")
    _use_sdk(monkeypatch, FakeConnectModule(error=error))

    with pytest.raises(BackendError) as excinfo:
        VsphereBackend().authenticate(_credentials("vc.lab.local"))

    assert excinfo.value.kind is ErrorKind.AUTHENTICATION
    assert "InvalidLogin" in excinfo.value.raw_message


def test_vsphere_connect_timeout_is_a_network_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_sdk(monkeypatch, FakeConnectModule(error=TimeoutError("timed out")))

    with pytest.raises(BackendError) as excinfo:
        VsphereBackend().authenticate(_credentials("vc.lab.local"))

    assert excinfo.value.kind is ErrorKind.NETWORK


def test_vsphere_probe_reports_lost_session(monkeypatch: pytest.MonkeyPatch) -> None:
    instance = FakeServiceInstance(probe_error=RuntimeError("vim.fault.NotAuthenticated"))
    _use_sdk(monkeypatch, FakeConnectModule(instance))
    backend = VsphereBackend()
    handle = backend.authenticate(_credentials("vc.lab.local"))

    with pytest.raises(BackendError) as excinfo:
        backend.probe(handle)

    assert excinfo.value.kind is ErrorKind.SESSION_INVALID


def test_vsphere_disconnect_closes_service_instance(monkeypatch: pytest.MonkeyPatch) -> None:
    sdk = _use_sdk(monkeypatch, FakeConnectModule())
    backend = VsphereBackend()
    handle = backend.authenticate(_credentials("vc.lab.local"))

    backend.disconnect(handle)

    assert sdk.disconnected == [sdk.instance]
    assert handle.is_connected is False


def test_missing_vsphere_sdk_is_an_environment_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "pyVim.connect", None)

    with pytest.raises(BackendError) as excinfo:
        VsphereBackend().authenticate(_credentials("vc.lab.local"))

    assert excinfo.value.kind is ErrorKind.ENVIRONMENT


def test_build_backend_matches_kind() -> None:
    assert isinstance(build_backend(EndpointKind.CONTROLLER), SddcManagerBackend)
    assert isinstance(build_backend(EndpointKind.SERVER), VsphereBackend)


def test_probe_without_session_is_session_invalid() -> None:
    handle = ConnectionHandle(endpoint_kind=EndpointKind.SERVER, address="vc.lab.local", username="u")

    with pytest.raises(BackendError) as excinfo:
        VsphereBackend().probe(handle)

    assert excinfo.value.kind is ErrorKind.SESSION_INVALID
