"""Safe JSON file loading with classified failures."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

LOG = logging.getLogger(__name__)


class JsonErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    EMPTY = "empty"
    INVALID_JSON = "invalid_json"
    UNREADABLE = "unreadable"


@dataclass(frozen=True, slots=True)
class JsonLoadResult:
    """Parsed document, or the reason it could not be parsed."""

    data: Any = None
    error_kind: JsonErrorKind | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


def parse_json_text(text: str) -> Any:
    """Parse a JSON document, or JSON Lines when the text holds one value per line.

    Whitespace-only lines are ignored. Raises ``json.JSONDecodeError``.
    """

    lines = [line for line in text.lstrip("\ufeff").splitlines() if line.strip()]
    cleaned = "\n".join(lines)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        if not exc.msg.startswith("Extra data") or len(lines) < 2:
            raise
    return [json.loads(line) for line in lines]


def load_json_safely(path: Path) -> JsonLoadResult:
    """Read and parse `path` without raising; never returns partial data."""

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return JsonLoadResult(error_kind=JsonErrorKind.NOT_FOUND, error_message=f"File not found: {path}")
    except (OSError, UnicodeDecodeError) as exc:
        return JsonLoadResult(error_kind=JsonErrorKind.UNREADABLE, error_message=f"Unable to read {path}: {exc}")
    if not text.strip():
        return JsonLoadResult(error_kind=JsonErrorKind.EMPTY, error_message=f"File is empty: {path}")
    try:
        data = parse_json_text(text)
    except json.JSONDecodeError as exc:
        message = f"Invalid JSON in {path} at line {exc.lineno}, column {exc.colno}: {exc.msg}"
        LOG.debug(message)
        return JsonLoadResult(error_kind=JsonErrorKind.INVALID_JSON, error_message=message)
    return JsonLoadResult(data=data)


__all__ = ["JsonErrorKind", "JsonLoadResult", "load_json_safely", "parse_json_text"]
