"""
yield_engines.fifo -- FIFO depletion plan for bulk stock batches.

Responsibility:
    Given the active batches and a day's scale total, decide how many
    kilograms come out of each batch, oldest first, and how much consumption
    no batch can explain.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by GeneralStockLedger, which applies the plan under row locks.

Invariants enforced:
    - Batches are consumed in (entry_date, batch_number) order.
    - total_kg is rounded to 2 decimals first, so deducted plus
      unaccounted always equals the planned total.
    - Each deduction is round2(min(remaining, capacity)); zero deductions
      are not emitted.
    - A batch is depleted exactly when sold_kg >= sellable_kg.
    - unaccounted_kg = round2(max(0, leftover)); it is reported, never
      clamped away or spread over batches.

Failure modes:
    - InvalidInputError for a negative total.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from yield_engines.tracer import traced_engine
from yield_kernel.domain.values import ZERO, round2
from yield_kernel.exceptions import InvalidInputError
from yield_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")


def is_depleted(sold_kg: Decimal, sellable_kg: Decimal) -> bool:
    return sold_kg >= sellable_kg


@dataclass(frozen=True)
class BatchCapacity:
    """Ledger state of one batch at planning time."""

    batch_id: Any
    entry_date: date
    batch_number: int
    sellable_kg: Decimal
    sold_kg: Decimal

    @property
    def remaining_kg(self) -> Decimal:
        return self.sellable_kg - self.sold_kg


@dataclass(frozen=True)
class FifoAllocation:
    batch_id: Any
    deducted_kg: Decimal
    sold_kg_after: Decimal
    depleted: bool


@dataclass(frozen=True)
class FifoPlan:
    total_kg: Decimal
    allocations: tuple[FifoAllocation, ...]
    unaccounted_kg: Decimal

    @property
    def total_deducted(self) -> Decimal:
        return sum((a.deducted_kg for a in self.allocations), ZERO)


class FifoPlanner:
    """Pure FIFO walk over batch capacities."""

    @traced_engine("fifo", "1.0", fingerprint_fields=("batches", "total_kg"))
    def plan(self, batches: Sequence[BatchCapacity], total_kg: Decimal) -> FifoPlan:
        """
        Plan the deduction of ``total_kg`` across ``batches``.

        Batches with no remaining capacity are skipped.
        """
        if total_kg < ZERO:
            raise InvalidInputError("total_kg", "must not be negative")
        total_kg = round2(total_kg)

        ordered = sorted(batches, key=lambda b: (b.entry_date, b.batch_number))
        remaining = total_kg
        allocations: list[FifoAllocation] = []

        for batch in ordered:
            if remaining <= ZERO:
                break
            capacity = batch.remaining_kg
            if capacity <= ZERO:
                continue

            deduct = round2(min(remaining, capacity))
            if deduct <= ZERO:
                continue

            sold_after = batch.sold_kg + deduct
            allocations.append(
                FifoAllocation(
                    batch_id=batch.batch_id,
                    deducted_kg=deduct,
                    sold_kg_after=sold_after,
                    depleted=is_depleted(sold_after, batch.sellable_kg),
                )
            )
            remaining -= deduct

        unaccounted = round2(max(ZERO, remaining))
        if unaccounted > ZERO:
            logger.info(
                "fifo_unaccounted_consumption",
                extra={"total_kg": str(total_kg), "unaccounted_kg": str(unaccounted)},
            )

        return FifoPlan(
            total_kg=total_kg,
            allocations=tuple(allocations),
            unaccounted_kg=unaccounted,
        )
