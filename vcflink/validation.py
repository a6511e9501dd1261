"""Validation helpers returning structured results instead of raising."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


@dataclass(frozen=True, slots=True)
class MissingItem:
    """Record at `index` lacks `missing_fields`."""

    index: int
    missing_fields: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ValidationResult:
    is_valid: bool
    missing_items: tuple[MissingItem, ...] = field(default_factory=tuple)
    error_count: int = 0
    summary: str = ""


def find_missing_properties(
    items: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    required: Iterable[str],
) -> ValidationResult:
    """Report which required properties each record lacks.

    A single mapping is treated as a one-element sequence. Records that are
    not mappings are reported as missing every required field.
    """

    records: Sequence[Any] = [items] if isinstance(items, Mapping) else items
    names = tuple(required)
    missing: list[MissingItem] = []
    for index, record in enumerate(records):
        if isinstance(record, Mapping):
            absent = tuple(name for name in names if name not in record)
        else:
            absent = names
        if absent:
            missing.append(MissingItem(index=index, missing_fields=absent))
    error_count = sum(len(item.missing_fields) for item in missing)
    if missing:
        details = "; ".join(
            f"item {item.index}: {', '.join(item.missing_fields)}" for item in missing
        )
        summary = f"{len(missing)} of {len(records)} item(s) missing required properties ({details})"
    else:
        summary = f"All {len(records)} item(s) contain the required properties"
    return ValidationResult(
        is_valid=not missing,
        missing_items=tuple(missing),
        error_count=error_count,
        summary=summary,
    )


def find_empty_properties(record: Mapping[str, Any], required: Iterable[str]) -> ValidationResult:
    """Report required properties that are present but blank."""

    empty = tuple(
        name
        for name in required
        if name in record and (record[name] is None or not str(record[name]).strip())
    )
    if not empty:
        return ValidationResult(is_valid=True, summary="All required properties have values")
    return ValidationResult(
        is_valid=False,
        missing_items=(MissingItem(index=0, missing_fields=empty),),
        error_count=len(empty),
        summary=f"Empty value for: {', '.join(empty)}",
    )


def is_valid_address(value: str) -> bool:
    """True for an IPv4/IPv6 address or a syntactically valid hostname/FQDN."""

    candidate = value.strip()
    if not candidate:
        return False
    try:
        ipaddress.ip_address(candidate)
        return True
    except ValueError:
        pass
    if len(candidate) > 253:
        return False
    labels = candidate.rstrip(".").split(".")
    if all(label.isdigit() for label in labels):
        return False
    return all(_HOSTNAME_LABEL.match(label) for label in labels)


__all__ = [
    "MissingItem",
    "ValidationResult",
    "find_empty_properties",
    "find_missing_properties",
    "is_valid_address",
]
