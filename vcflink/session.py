"""Session context and per-endpoint reconnect orchestration."""

from __future__ import annotations

from typing import Callable, Mapping

from .backends import EndpointBackend, build_backend
from .config import AppConfig
from .credentials import read_credentials_file, write_credentials_file
from .errors import BackendError, ConfigurationError, ErrorKind
from .exit_codes import ExitCode, terminate
from .health import test_connection
from .logsink import get_log
from .models import (
    ConnectionHandle,
    ConnectionState,
    ConnectionTestResult,
    EndpointCredentials,
    EndpointKind,
)
from .prompts import NonInteractivePrompter, Prompter, RichPrompter, prompt_credentials
from .registry import ConnectionRegistry
from .timer import Stopwatch, format_duration
from .tokens import get_token_ttl

LOG = get_log(__name__)

StateListener = Callable[[EndpointKind, ConnectionState], None]

RETRY = "retry"
ABANDON = "abandon"


class EndpointSession:
    """Connection lifecycle for one endpoint kind."""

    def __init__(
        self,
        kind: EndpointKind,
        *,
        backend: EndpointBackend,
        registry: ConnectionRegistry,
        config: AppConfig,
        prompter: Prompter,
    ) -> None:
        self._kind = kind
        self._backend = backend
        self._registry = registry
        self._config = config
        self._prompter = prompter
        self._credentials: EndpointCredentials | None = None
        self._address: str | None = None
        self._state = ConnectionState.DISCONNECTED
        self._listeners: set[StateListener] = set()

    @property
    def kind(self) -> EndpointKind:
        return self._kind

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""

        return self._state

    @property
    def credentials(self) -> EndpointCredentials | None:
        """Credentials of the last successful connection."""

        return self._credentials

    @property
    def handle(self) -> ConnectionHandle | None:
        """Live handle for the current address, if any."""

        if self._address is None:
            return None
        return self._registry.find_connected(self._kind, self._address)

    @property
    def interactive(self) -> bool:
        return self._config.interactive and self._prompter.interactive

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Subscribe to state changes; returns an unsubscribe handle."""

        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def token_ttl(self) -> float | bool | None:
        return get_token_ttl(self.handle)

    def test_connection(self, *, skip_liveness_probe: bool = False) -> ConnectionTestResult:
        address = self._address or (self._credentials.address if self._credentials else "")
        return test_connection(
            self._registry,
            self._backend,
            address,
            skip_liveness_probe=skip_liveness_probe,
        )

    def ensure_healthy_connection(self) -> ConnectionState:
        """Reconnect when the token is about to expire or the session is gone.

        A token expiring within the configured threshold triggers one silent
        reconnect with cached credentials; a failure there is logged and the
        current session kept. Without a decodable token a liveness probe
        decides whether a full reconnect is needed.
        """

        ttl = get_token_ttl(self.handle)
        threshold = self._config.minimum_ttl_minutes
        if ttl is False or ttl is None:
            result = self.test_connection()
            if result.is_connected:
                self._set_state(ConnectionState.CONNECTED)
                return self._state
            self._set_state(ConnectionState.PROBE_FAILED)
            if result.error_kind is ErrorKind.SESSION_INVALID:
                LOG.advisory(f"{self._kind.label} session needs re-authentication: {result.error_message}")
                self.connect(force_reconnect=True)
            else:
                LOG.warning(result.error_message or f"{self._kind.label} liveness probe failed")
            return self._state

        if ttl < threshold:
            self._set_state(ConnectionState.TOKEN_EXPIRING_SOON)
            LOG.advisory(
                f"{self._kind.label} token expires in {ttl:.1f} minutes "
                f"(threshold {threshold:g}); refreshing session."
            )
            if not self.silent_reconnect():
                LOG.warning(f"Silent reconnect to {self._kind.label} failed; continuing with the current token.")
            return self._state

        LOG.debug(f"{self._kind.label} token valid for another {ttl:.1f} minutes")
        self._set_state(ConnectionState.CONNECTED)
        return self._state

    def silent_reconnect(self) -> bool:
        """Re-authenticate with cached credentials only; never prompts or exits."""

        credentials = self._credentials
        if credentials is None or not credentials.is_complete():
            LOG.warning(f"No cached {self._kind.label} credentials available for a silent reconnect.")
            return False
        previous = self._state
        self._set_state(ConnectionState.RECONNECTING)
        try:
            handle = self._backend.authenticate(credentials)
        except BackendError as exc:
            LOG.error(f"Silent reconnect to '{credentials.address}' failed: {exc}")
            self._set_state(previous)
            return False
        self._install(handle, credentials)
        return True

    def connect(self, *, force_reconnect: bool = False) -> ConnectionHandle:
        """Connect, resolving credentials from file or prompts.

        Unrecoverable conditions terminate the process with the matching
        exit code after logging.
        """

        if force_reconnect and self._credentials is not None and self._credentials.is_complete():
            if self.silent_reconnect():
                return self.handle  # type: ignore[return-value]

        if not force_reconnect:
            existing = self.handle
            if existing is not None:
                return self._already_connected(existing)

        credentials, from_file = self._resolve_credentials()
        if not force_reconnect:
            existing = self._registry.find_connected(self._kind, credentials.address)
            if existing is not None:
                return self._already_connected(existing)

        attempts = 0
        while True:
            attempts += 1
            self._set_state(ConnectionState.CONNECTING)
            watch = Stopwatch().start()
            try:
                handle = self._backend.authenticate(credentials)
            except BackendError as exc:
                self._set_state(ConnectionState.DISCONNECTED)
                LOG.error(str(exc))
                LOG.debug(f"Raw error from '{credentials.address}': {exc.raw_message}", no_console=True)
                if from_file:
                    path = self._config.endpoint(self._kind).credentials_file
                    terminate(
                        exc.exit_code,
                        f"Unable to connect to {self._kind.label} with credentials from {path}; "
                        "correct the file and run again.",
                        logger=LOG.logger,
                    )
                if attempts >= self._config.max_connect_attempts:
                    terminate(
                        exc.exit_code,
                        f"Giving up on {self._kind.label} '{credentials.address}' after {attempts} attempt(s).",
                        logger=LOG.logger,
                    )
                choice = self._prompter.choose(
                    f"Connection to {self._kind.label} failed. Retry or abandon?",
                    (RETRY, ABANDON),
                    default=RETRY,
                )
                if choice == ABANDON:
                    terminate(ExitCode.USER_CANCELLED, "Connection abandoned by user.", logger=LOG.logger)
                credentials = prompt_credentials(
                    self._prompter,
                    self._kind,
                    default_address=credentials.address,
                    default_username=credentials.username,
                )
                continue
            LOG.debug(f"Authenticated to '{credentials.address}' in {format_duration(watch.stop())}")
            break

        self._install(handle, credentials)
        if not from_file:
            self._offer_to_save(credentials)
        return handle

    def disconnect(self, address: str | None = None) -> bool:
        """Disconnect `address` (default: the current one). Idempotent."""

        target = address or self._address
        handle = self._registry.get(self._kind, target) if target else None
        if handle is None:
            LOG.info(f"No {self._kind.label} connection to disconnect.")
            return False
        try:
            self._backend.disconnect(handle)
        except BackendError as exc:
            LOG.warning(f"Error while disconnecting from '{handle.address}': {exc}")
        handle.is_connected = False
        self._registry.remove(handle)
        if self._address is not None and target.lower() == self._address.lower():
            self._set_state(ConnectionState.DISCONNECTED)
        LOG.info(f"Disconnected from {self._kind.label} '{handle.address}'.")
        return True

    def _already_connected(self, handle: ConnectionHandle) -> ConnectionHandle:
        LOG.warning(
            f"Already connected to {self._kind.label} '{handle.address}' as '{handle.username}'; "
            "reusing the existing session."
        )
        self._address = handle.address
        self._set_state(ConnectionState.CONNECTED)
        return handle

    def _resolve_credentials(self) -> tuple[EndpointCredentials, bool]:
        path = self._config.endpoint(self._kind).credentials_file
        if path.exists():
            try:
                credentials = read_credentials_file(path)
            except ConfigurationError as exc:
                terminate(ExitCode.CONFIGURATION_ERROR, str(exc), logger=LOG.logger)
            LOG.debug(f"Loaded {self._kind.label} credentials from {path}")
            return credentials, True
        if not self.interactive:
            terminate(
                ExitCode.CONFIGURATION_ERROR,
                f"No {self._kind.label} credentials file at {path} and interactive prompting is "
                "unavailable; create the file or run interactively.",
                logger=LOG.logger,
            )
        cached = self._credentials
        credentials = prompt_credentials(
            self._prompter,
            self._kind,
            default_address=cached.address if cached else None,
            default_username=cached.username if cached else None,
        )
        if not credentials.is_complete():
            terminate(
                ExitCode.CONFIGURATION_ERROR,
                "Address, username and password are all required.",
                logger=LOG.logger,
            )
        return credentials, False

    def _install(self, handle: ConnectionHandle, credentials: EndpointCredentials) -> None:
        replaced = self._registry.add(handle)
        if replaced is not None and replaced is not handle:
            try:
                self._backend.disconnect(replaced)
            except BackendError as exc:
                LOG.debug(f"Ignoring error closing stale session to '{replaced.address}': {exc}")
            replaced.is_connected = False
        self._credentials = credentials
        self._address = handle.address
        self._set_state(ConnectionState.CONNECTED)
        LOG.info(
            f"Connected to {self._kind.label} '{handle.address}' as '{handle.username}' "
            f"(version {handle.product_version or 'unknown'}).",
            blank_before=True,
        )

    def _offer_to_save(self, credentials: EndpointCredentials) -> None:
        path = self._config.endpoint(self._kind).credentials_file
        if not self._prompter.confirm(
            f"Save these {self._kind.label} credentials to {path} in plaintext for unattended runs?",
            default=False,
        ):
            return
        try:
            write_credentials_file(path, credentials)
        except OSError as exc:
            LOG.error(f"Unable to save credentials to {path}: {exc}")

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        LOG.debug(f"{self._kind.label} state {self._state.value} -> {state.value}", no_console=True)
        self._state = state
        for listener in tuple(self._listeners):
            listener(self._kind, state)


class SessionContext:
    """Owns credential caches and the connection registry for one workflow run."""

    def __init__(
        self,
        config: AppConfig,
        *,
        prompter: Prompter | None = None,
        backends: Mapping[EndpointKind, EndpointBackend] | None = None,
        registry: ConnectionRegistry | None = None,
    ) -> None:
        self._config = config
        self._prompter = prompter or (RichPrompter() if config.interactive else NonInteractivePrompter())
        self._registry = registry if registry is not None else ConnectionRegistry()
        backends = dict(backends or {})
        self._sessions: dict[EndpointKind, EndpointSession] = {}
        for kind in EndpointKind:
            endpoint = config.endpoint(kind)
            backend = backends.get(kind) or build_backend(kind, port=endpoint.port, verify_ssl=config.verify_ssl)
            self._sessions[kind] = EndpointSession(
                kind,
                backend=backend,
                registry=self._registry,
                config=config,
                prompter=self._prompter,
            )

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def controller(self) -> EndpointSession:
        return self._sessions[EndpointKind.CONTROLLER]

    @property
    def server(self) -> EndpointSession:
        return self._sessions[EndpointKind.SERVER]

    def session(self, kind: EndpointKind) -> EndpointSession:
        return self._sessions[kind]

    def disconnect_all(self) -> None:
        """Disconnect every endpoint; terminates if any handle survives."""

        if not self._registry:
            LOG.info("No connections to disconnect.")
            return
        for kind, session in self._sessions.items():
            for handle in self._registry.for_kind(kind):
                session.disconnect(handle.address)
        remaining = len(self._registry)
        if remaining:
            terminate(
                ExitCode.GENERAL_ERROR,
                f"{remaining} connection(s) still registered after disconnecting all endpoints.",
                logger=LOG.logger,
            )

    def __enter__(self) -> SessionContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect_all()


__all__ = [
    "ABANDON",
    "EndpointSession",
    "RETRY",
    "SessionContext",
    "StateListener",
]
