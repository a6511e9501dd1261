"""Credential file handling and scoped access to secrets."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydantic import SecretStr

from .errors import ConfigurationError
from .jsonfile import load_json_safely
from .models import CREDENTIAL_FIELDS, EndpointCredentials
from .validation import find_empty_properties, find_missing_properties

LOG = logging.getLogger(__name__)


@contextmanager
def revealed(secret: SecretStr) -> Iterator[str]:
    """Expose the plaintext of `secret` for the duration of the block only."""

    plaintext = secret.get_secret_value()
    try:
        yield plaintext
    finally:
        del plaintext


def read_credentials_file(path: Path) -> EndpointCredentials:
    """Load and validate a JSON credentials file.

    Structural problems (missing fields) and semantic problems (blank values)
    both raise `ConfigurationError` before any connection is attempted.
    """

    result = load_json_safely(path)
    if not result.ok:
        raise ConfigurationError(result.error_message or f"Unable to load {path}")
    data = result.data
    if not isinstance(data, dict):
        raise ConfigurationError(f"Credentials file {path} must contain a JSON object")
    structure = find_missing_properties([data], CREDENTIAL_FIELDS)
    if not structure.is_valid:
        raise ConfigurationError(f"Credentials file {path} is incomplete: {structure.summary}")
    values = find_empty_properties(data, CREDENTIAL_FIELDS)
    if not values.is_valid:
        raise ConfigurationError(f"Credentials file {path} is incomplete: {values.summary}")
    return EndpointCredentials(
        address=str(data["address"]).strip(),
        username=str(data["username"]).strip(),
        secret=SecretStr(str(data["secret"])),
    )


def write_credentials_file(path: Path, credentials: EndpointCredentials) -> None:
    """Write credentials to `path` as plaintext JSON."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with revealed(credentials.secret) as secret:
        path.write_text(
            json.dumps(
                {"address": credentials.address, "username": credentials.username, "secret": secret},
                indent=2,
            )
            + "\n",
            encoding="utf-8",
        )
    LOG.info("Saved credentials for '%s' to %s", credentials.address, path)


__all__ = ["read_credentials_file", "revealed", "write_credentials_file"]
