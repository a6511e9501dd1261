"""Bearer token inspection helpers."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from typing import Literal

from .errors import TokenDecodeError
from .models import ConnectionHandle, TokenClaims

LOG = logging.getLogger(__name__)

EXPIRY_CLAIM = "exp"

_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def pad_base64url(segment: str) -> str:
    """Translate a base64url segment to the standard alphabet and pad it to a multiple of 4."""

    translated = segment.translate(_URLSAFE_TO_STANDARD)
    return translated + "=" * ((4 - len(translated) % 4) % 4)


def decode_token_claims(token: str) -> TokenClaims:
    """Decode the payload segment of a dot-delimited bearer token."""

    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        raise TokenDecodeError("Token does not contain a payload segment")
    try:
        raw = base64.b64decode(pad_base64url(parts[1]), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TokenDecodeError(f"Token payload is not valid base64: {exc}") from exc
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TokenDecodeError(f"Token payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise TokenDecodeError("Token payload is not a JSON object")
    expiry = payload.get(EXPIRY_CLAIM)
    if isinstance(expiry, bool) or not isinstance(expiry, (int, float)):
        raise TokenDecodeError(f"Token payload has no integer '{EXPIRY_CLAIM}' claim")
    return TokenClaims(expiry_unix_seconds=int(expiry))


def get_token_ttl(
    handle: ConnectionHandle | None,
    *,
    now: datetime | None = None,
) -> float | Literal[False] | None:
    """Minutes until the handle's token expires.

    Returns ``False`` when there is no token to evaluate and ``None`` when the
    token cannot be decoded. The result is negative for expired tokens.
    """

    token = handle.session_token if handle is not None else None
    if not token:
        return False
    try:
        claims = decode_token_claims(token)
    except TokenDecodeError as exc:
        LOG.error("Unable to decode session token for '%s': %s", handle.address, exc)
        return None
    # Local offset is resolved per call.
    local_expiry = datetime.fromtimestamp(claims.expiry_unix_seconds, tz=timezone.utc).astimezone()
    current = now.astimezone() if now is not None else datetime.now().astimezone()
    ttl = (local_expiry - current).total_seconds() / 60
    LOG.debug("Token for '%s' expires at %s (%.1f minutes)", handle.address, local_expiry.isoformat(), ttl)
    return ttl


__all__ = ["EXPIRY_CLAIM", "decode_token_claims", "get_token_ttl", "pad_base64url"]
