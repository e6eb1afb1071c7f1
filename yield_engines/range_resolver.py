"""
yield_engines.range_resolver -- Map an average unit weight to a weight bracket.

Responsibility:
    Pick the configured bracket whose inclusive [min, max] interval contains
    a weight, and check a bracket set for overlaps and gaps before it is
    stored.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by CatalogService (lookup and range creation) and by the
    configuration validator.

Invariants enforced:
    - No fallback: a weight outside every bracket raises RangeNotFoundError
      rather than snapping to the nearest bracket.
    - Brackets are scanned ordered by min_weight; the first match wins.
    - Overlapping brackets are rejected (WeightRangeOverlapError).  Gaps
      are returned for the caller to log; they are not fatal.

Failure modes:
    - InvalidInputError for a non-positive weight or a bracket whose
      min_weight is non-positive or above max_weight.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from yield_engines.tracer import traced_engine
from yield_kernel.domain.values import ZERO
from yield_kernel.exceptions import (
    InvalidInputError,
    RangeNotFoundError,
    WeightRangeOverlapError,
)
from yield_kernel.logging_config import get_logger

logger = get_logger("engines.range_resolver")


@dataclass(frozen=True)
class RangeSpec:
    """A weight bracket as seen by the resolver."""

    range_id: Any
    label: str
    min_weight: Decimal
    max_weight: Decimal

    def contains(self, weight: Decimal) -> bool:
        return self.min_weight <= weight <= self.max_weight


@dataclass(frozen=True)
class RangeGap:
    """Weights strictly between two consecutive brackets match nothing."""

    lower_label: str
    upper_label: str
    gap_from: Decimal
    gap_to: Decimal


@dataclass(frozen=True)
class RangeValidation:
    ranges: tuple[RangeSpec, ...]
    gaps: tuple[RangeGap, ...]

    @property
    def is_contiguous(self) -> bool:
        return not self.gaps


def _ordered(ranges: Sequence[RangeSpec]) -> list[RangeSpec]:
    return sorted(ranges, key=lambda r: (r.min_weight, r.max_weight))


class WeightRangeResolver:
    """
    Pure bracket lookup and validation.

    Contract:
        No I/O; the caller passes the full bracket set.
    """

    @traced_engine("range_resolver", "1.0", fingerprint_fields=("avg_weight",))
    def resolve(self, ranges: Sequence[RangeSpec], avg_weight: Decimal) -> RangeSpec:
        """
        Return the bracket containing ``avg_weight``.

        Raises:
            InvalidInputError: avg_weight <= 0.
            RangeNotFoundError: no bracket contains avg_weight.
        """
        if avg_weight <= ZERO:
            raise InvalidInputError("avg_weight", "must be greater than zero")

        for candidate in _ordered(ranges):
            if candidate.contains(avg_weight):
                return candidate

        logger.info(
            "weight_range_not_found",
            extra={"avg_weight": str(avg_weight), "range_count": len(ranges)},
        )
        raise RangeNotFoundError(avg_weight)

    @traced_engine("range_resolver", "1.0", fingerprint_fields=("ranges",))
    def validate(self, ranges: Sequence[RangeSpec]) -> RangeValidation:
        """
        Check a bracket set for malformed, overlapping or non-contiguous entries.

        Raises:
            InvalidInputError: a bracket has min_weight <= 0 or min > max.
            WeightRangeOverlapError: two brackets share at least one weight.
        """
        for bracket in ranges:
            if bracket.min_weight <= ZERO:
                raise InvalidInputError(
                    "min_weight", f"range '{bracket.label}' must start above zero"
                )
            if bracket.min_weight > bracket.max_weight:
                raise InvalidInputError(
                    "max_weight",
                    f"range '{bracket.label}' has min_weight above max_weight",
                )

        ordered = _ordered(ranges)
        gaps: list[RangeGap] = []
        for lower, upper in zip(ordered, ordered[1:]):
            # Inclusive bounds: touching endpoints already overlap
            if upper.min_weight <= lower.max_weight:
                raise WeightRangeOverlapError(upper.label, lower.label)
            gaps.append(
                RangeGap(
                    lower_label=lower.label,
                    upper_label=upper.label,
                    gap_from=lower.max_weight,
                    gap_to=upper.min_weight,
                )
            )

        for gap in gaps:
            logger.warning(
                "weight_range_gap",
                extra={
                    "lower_label": gap.lower_label,
                    "upper_label": gap.upper_label,
                    "gap_from": str(gap.gap_from),
                    "gap_to": str(gap.gap_to),
                },
            )

        return RangeValidation(ranges=tuple(ordered), gaps=tuple(gaps))


_resolver = WeightRangeResolver()


def resolve_range(ranges: Sequence[RangeSpec], avg_weight: Decimal) -> RangeSpec:
    """Module-level shortcut for ``WeightRangeResolver().resolve``."""
    return _resolver.resolve(ranges=ranges, avg_weight=avg_weight)


def validate_ranges(ranges: Sequence[RangeSpec]) -> RangeValidation:
    return _resolver.validate(ranges=ranges)
