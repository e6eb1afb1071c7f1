"""
Values -- Decimal helpers for weights and percentages.

Responsibility:
    Single place that decides how kilograms and yield percentages are parsed
    and rounded.  Every engine and service goes through these helpers so the
    "round to 2 decimals" rule is applied identically everywhere.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Values are always Decimal (never float).  Floats are converted through
      ``str()`` so 2.8 becomes Decimal("2.8"), not its binary expansion.
    - round2 uses ROUND_HALF_UP, so 0.125 -> 0.13.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str, field: str = "value") -> Decimal:
    """
    Coerce a number to Decimal.

    Raises:
        ValueError: if the value is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"{field} must be a number, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    return result


def round2(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_places(value: Decimal, places: int) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, unrounded.  Zero when whole is zero."""
    if whole == ZERO:
        return ZERO
    return part / whole * HUNDRED


def kg_of(total: Decimal, percentage: Decimal) -> Decimal:
    """total * percentage / 100, unrounded."""
    return total * percentage / HUNDRED
