"""Registry of live endpoint handles owned by a session context."""

from __future__ import annotations

from typing import Iterator

from .models import ConnectionHandle, EndpointKind


def _normalize(address: str) -> str:
    return address.strip().rstrip(".").lower()


class ConnectionRegistry:
    """Tracks at most one handle per endpoint kind and address."""

    def __init__(self) -> None:
        self._handles: dict[tuple[EndpointKind, str], ConnectionHandle] = {}

    def add(self, handle: ConnectionHandle) -> ConnectionHandle | None:
        """Register `handle`, returning any handle it replaced."""

        key = (handle.endpoint_kind, _normalize(handle.address))
        previous = self._handles.get(key)
        self._handles[key] = handle
        return previous

    def remove(self, handle: ConnectionHandle) -> None:
        key = (handle.endpoint_kind, _normalize(handle.address))
        if self._handles.get(key) is handle:
            del self._handles[key]

    def get(self, kind: EndpointKind, address: str) -> ConnectionHandle | None:
        return self._handles.get((kind, _normalize(address)))

    def find_connected(self, kind: EndpointKind, address: str) -> ConnectionHandle | None:
        """Handle for `address` whose session is still flagged connected."""

        handle = self.get(kind, address)
        if handle is not None and handle.is_connected:
            return handle
        return None

    def for_kind(self, kind: EndpointKind) -> tuple[ConnectionHandle, ...]:
        return tuple(handle for (owner, _), handle in self._handles.items() if owner is kind)

    def __iter__(self) -> Iterator[ConnectionHandle]:
        return iter(tuple(self._handles.values()))

    def __len__(self) -> int:
        return len(self._handles)


__all__ = ["ConnectionRegistry"]
