"""Product version parsing and minimum-version preconditions."""

from __future__ import annotations

import logging

from .exit_codes import ExitCode, terminate
from .models import ConnectionHandle

LOG = logging.getLogger(__name__)


def parse_version(value: str) -> tuple[int, int, int]:
    """Parse a dotted string into a comparable tuple."""

    parts = value.strip().split("-", 1)[0].split(".")
    ints: list[int] = []
    for chunk in parts[:3]:
        try:
            ints.append(int(chunk))
        except ValueError:
            ints.append(0)
    while len(ints) < 3:
        ints.append(0)
    return ints[0], ints[1], ints[2]


def meets_minimum_version(version: str | None, minimum: str) -> bool:
    if not version:
        return False
    return parse_version(version) >= parse_version(minimum)


def require_minimum_version(handle: ConnectionHandle, minimum: str | None) -> None:
    """Terminate with PRECONDITION_ERROR when the endpoint is older than `minimum`."""

    if not minimum:
        return
    if meets_minimum_version(handle.product_version, minimum):
        LOG.debug(
            "%s '%s' version %s satisfies minimum %s",
            handle.endpoint_kind.label,
            handle.address,
            handle.product_version,
            minimum,
        )
        return
    terminate(
        ExitCode.PRECONDITION_ERROR,
        f"{handle.endpoint_kind.label} '{handle.address}' reports version "
        f"{handle.product_version or 'unknown'}; version {minimum} or later is required.",
        logger=LOG,
    )


__all__ = ["meets_minimum_version", "parse_version", "require_minimum_version"]
