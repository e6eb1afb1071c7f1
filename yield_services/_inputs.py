"""Input coercion shared by the services; raises InvalidInputError only."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from yield_kernel.domain.values import ZERO, to_decimal
from yield_kernel.exceptions import InvalidInputError


def as_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if value is None or value == "":
        raise InvalidInputError(field, "is required")
    try:
        return UUID(str(value))
    except ValueError as e:
        raise InvalidInputError(field, f"not a valid identifier: {value!r}") from e


def as_decimal(value: Any, field: str) -> Decimal:
    if value is None:
        raise InvalidInputError(field, "is required")
    try:
        return to_decimal(value, field)
    except ValueError as e:
        raise InvalidInputError(field, str(e)) from e


def positive_decimal(value: Any, field: str) -> Decimal:
    result = as_decimal(value, field)
    if result <= ZERO:
        raise InvalidInputError(field, "must be greater than zero")
    return result


def non_negative_decimal(value: Any, field: str) -> Decimal:
    result = as_decimal(value, field)
    if result < ZERO:
        raise InvalidInputError(field, "must not be negative")
    return result


def cut_pairs(
    items: Mapping[Any, Any] | Iterable[tuple[Any, Any]],
    field: str,
) -> list[tuple[UUID, Decimal]]:
    """
    Normalize ``{cut_id: value}`` or ``[(cut_id, value), ...]`` into
    (UUID, Decimal) pairs, rejecting duplicates and negative values.
    """
    pairs = items.items() if isinstance(items, Mapping) else items
    result: list[tuple[UUID, Decimal]] = []
    seen: set[UUID] = set()
    for cut_id, value in pairs:
        cut_uuid = as_uuid(cut_id, f"{field}.cut_id")
        if cut_uuid in seen:
            raise InvalidInputError(field, f"cut {cut_uuid} listed more than once")
        seen.add(cut_uuid)
        result.append((cut_uuid, non_negative_decimal(value, f"{field}[{cut_uuid}]")))
    return result
