"""Tests for bearer token inspection."""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timedelta, timezone

import pytest

from vcf_fakes import make_token
from vcflink.errors import TokenDecodeError
from vcflink.models import ConnectionHandle, EndpointKind
from vcflink.tokens import decode_token_claims, get_token_ttl, pad_base64url

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _handle(token: str | None) -> ConnectionHandle:
    return ConnectionHandle(
        endpoint_kind=EndpointKind.CONTROLLER,
        address="sddc.lab.local",
        username="admin@local",
        session_token=token,
    )


@pytest.mark.parametrize("minutes", [45, 10, 0.5, 600])
def test_ttl_matches_expiry_minus_now(minutes: float) -> None:
    expiry = int((NOW + timedelta(minutes=minutes)).timestamp())

    ttl = get_token_ttl(_handle(make_token(expiry)), now=NOW)

    assert ttl == pytest.approx(minutes, abs=1 / 60)


def test_ttl_is_negative_once_expired() -> None:
    expiry = int((NOW - timedelta(minutes=20)).timestamp())

    ttl = get_token_ttl(_handle(make_token(expiry)), now=NOW)

    assert ttl == pytest.approx(-20, abs=1 / 60)


def test_ttl_is_independent_of_local_offset_of_now() -> None:
    expiry = int((NOW + timedelta(minutes=90)).timestamp())
    shifted = NOW.astimezone(timezone(timedelta(hours=-7)))

    ttl = get_token_ttl(_handle(make_token(expiry)), now=shifted)

    assert ttl == pytest.approx(90, abs=1 / 60)


def test_missing_token_returns_false() -> None:
    assert get_token_ttl(_handle(None)) is False
    assert get_token_ttl(_handle("")) is False
    assert get_token_ttl(None) is False


def test_malformed_base64_returns_none_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="vcflink")

    ttl = get_token_ttl(_handle("header.not*valid*base64!.sig"))

    assert ttl is None
    assert any(record.levelno == logging.ERROR for record in caplog.records)


def test_non_json_payload_returns_none() -> None:
    payload = base64.urlsafe_b64encode(b"definitely not json").decode().rstrip("=")

    assert get_token_ttl(_handle(f"h.{payload}.s")) is None


def test_payload_without_expiry_claim_is_a_decode_error() -> None:
    payload = base64.urlsafe_b64encode(b'{"sub": "x"}').decode().rstrip("=")

    with pytest.raises(TokenDecodeError):
        decode_token_claims(f"h.{payload}.s")


def test_token_without_payload_segment_is_a_decode_error() -> None:
    with pytest.raises(TokenDecodeError):
        decode_token_claims("opaque-session-id")


@pytest.mark.parametrize("length", range(0, 9))
def test_padding_produces_multiple_of_four(length: int) -> None:
    segment = "A" * length

    padded = pad_base64url(segment)

    assert len(padded) == length + ((4 - length % 4) % 4)
    assert padded.rstrip("=") == segment


def test_padding_translates_url_safe_alphabet() -> None:
    assert pad_base64url("ab-_") == "ab+/"


def test_decode_reads_expiry_from_url_safe_payload() -> None:
    # "~~~" in a claim forces '-' / '_' characters into the encoded payload.
    token = make_token(1_900_000_000, note="~~~???")

    claims = decode_token_claims(token)

    assert claims.expiry_unix_seconds == 1_900_000_000
