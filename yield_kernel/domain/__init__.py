"""Pure domain helpers for the yield kernel (clock, Decimal values)."""

from yield_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from yield_kernel.domain.values import (
    CENT,
    HUNDRED,
    ZERO,
    kg_of,
    percent_of,
    round2,
    round_places,
    to_decimal,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CENT",
    "HUNDRED",
    "ZERO",
    "kg_of",
    "percent_of",
    "round2",
    "round_places",
    "to_decimal",
]
