"""
yield_engines.yield_estimate -- Bone/fat share and sellable kilograms of a bulk batch.

Responsibility:
    Derive the bone and fat percentages of a bulk delivery from the cut
    roles of its yield template, and the sellable kilograms left after bone,
    fat and shrink.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by GeneralStockLedger (register_batch, estimate_yield).

Invariants enforced:
    - Classification is by Cut.cut_role, never by cut name.  Only
      non-sellable bone and fat lines count; trim lines are ignored.
    - sellable_kg = round2(total * (1 - (bone + fat + shrink) / 100)).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from yield_engines.tracer import traced_engine
from yield_kernel.domain.values import HUNDRED, ZERO, round2
from yield_kernel.exceptions import InvalidInputError

BONE = "bone"
FAT = "fat"


@dataclass(frozen=True)
class RoleLine:
    cut_role: str
    percentage: Decimal
    is_sellable: bool = False


@dataclass(frozen=True)
class YieldEstimate:
    found: bool
    bone_percent: Decimal
    fat_percent: Decimal
    shrink_percent: Decimal
    sellable_kg: Decimal


def sellable_kg(
    total_weight_kg: Decimal,
    bone_percent: Decimal,
    fat_percent: Decimal,
    shrink_percent: Decimal,
) -> Decimal:
    waste = bone_percent + fat_percent + shrink_percent
    return round2(total_weight_kg * (Decimal("1") - waste / HUNDRED))


class BulkYieldEstimator:
    """Pure bone/fat/sellable estimate."""

    @traced_engine(
        "yield_estimate",
        "1.0",
        fingerprint_fields=("lines", "total_weight_kg", "shrink_percent"),
    )
    def estimate(
        self,
        lines: Sequence[RoleLine] | None,
        total_weight_kg: Decimal,
        shrink_percent: Decimal,
    ) -> YieldEstimate:
        """
        ``lines`` is None when no template applies; the estimate then falls
        back to shrink only and reports ``found=False``.
        """
        if total_weight_kg <= ZERO:
            raise InvalidInputError("total_weight_kg", "must be greater than zero")
        if not ZERO <= shrink_percent < HUNDRED:
            raise InvalidInputError("shrink_percent", "must be in [0, 100)")

        if lines is None:
            return YieldEstimate(
                found=False,
                bone_percent=ZERO,
                fat_percent=ZERO,
                shrink_percent=shrink_percent,
                sellable_kg=sellable_kg(total_weight_kg, ZERO, ZERO, shrink_percent),
            )

        bone = ZERO
        fat = ZERO
        for line in lines:
            if line.is_sellable:
                continue
            if line.cut_role == BONE:
                bone += line.percentage
            elif line.cut_role == FAT:
                fat += line.percentage

        bone = round2(bone)
        fat = round2(fat)
        return YieldEstimate(
            found=True,
            bone_percent=bone,
            fat_percent=fat,
            shrink_percent=shrink_percent,
            sellable_kg=sellable_kg(total_weight_kg, bone, fat, shrink_percent),
        )
