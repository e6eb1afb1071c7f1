"""
yield_services.general_stock_ledger -- Bulk carcass batches depleted FIFO.

Responsibility:
    Register bulk deliveries ("tropas") with their sellable kilograms, and
    apply a day's scale consumption to them oldest first.  Re-applying a
    close first reverses everything that close deducted, so any number of
    re-closes with the same total leave the ledger as one close would.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    The only writer of GeneralStock and GeneralStockDeduction.  Uses
    FifoPlanner and BulkYieldEstimator for the arithmetic.

Invariants enforced:
    - Batch state machine: active -> depleted when sold_kg >= sellable_kg;
      back to active only when a reversal drops sold_kg below it.
    - Reverse-then-reapply: deductions of the close are undone and deleted
      before the FIFO walk; no diff-and-patch.
    - Batches are locked FOR UPDATE, ordered (entry_date, batch_number).
    - unaccounted_kg is stored on the close and returned; never dropped.

Failure modes:
    - InvalidInputError for negative totals or bad batch figures.
    - DailyCloseNotFoundError / BatchNotFoundError.
    - LedgerConsistencyError when a deduction points at a missing batch or
      a reversal would make sold_kg negative.  Fatal: the caller's
      transaction must roll back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import case, select

from yield_config.schema import EngineSettings
from yield_engines.fifo import BatchCapacity, FifoPlanner, is_depleted
from yield_engines.yield_estimate import (
    BulkYieldEstimator,
    RoleLine,
    YieldEstimate,
    sellable_kg,
)
from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.values import HUNDRED, ZERO, round2
from yield_kernel.exceptions import (
    BatchNotFoundError,
    DailyCloseNotFoundError,
    InvalidInputError,
    LedgerConsistencyError,
    RangeNotFoundError,
)
from yield_kernel.logging_config import LogContext, get_logger
from yield_kernel.models.general_stock import (
    DailyClose,
    GeneralStock,
    GeneralStockDeduction,
    GeneralStockStatus,
)
from yield_kernel.services.base import BaseService
from yield_kernel.services.sequence_service import SequenceService
from yield_services._inputs import as_decimal, as_uuid, positive_decimal
from yield_services.catalog_service import CatalogService
from yield_services.template_store import YieldTemplateStore

logger = get_logger("services.general_stock")


@dataclass(frozen=True)
class DeductionLine:
    batch_id: UUID
    batch_description: str
    deducted_kg: Decimal
    depleted: bool


@dataclass(frozen=True)
class DeductionResult:
    close_id: UUID
    total_kg: Decimal
    reversed_kg: Decimal
    deductions: tuple[DeductionLine, ...]
    unaccounted_kg: Decimal

    @property
    def deducted_kg(self) -> Decimal:
        return sum((d.deducted_kg for d in self.deductions), ZERO)


def _percent(value: Any, field: str) -> Decimal:
    result = as_decimal(value, field)
    if not ZERO <= result < HUNDRED:
        raise InvalidInputError(field, "must be in [0, 100)")
    return result


class GeneralStockLedger(BaseService[GeneralStock]):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()
        self._catalog = CatalogService(session)
        self._templates = YieldTemplateStore(session, self._settings)
        self._sequences = SequenceService(session)
        self._planner = FifoPlanner()
        self._estimator = BulkYieldEstimator()

    # -- estimates and registration -----------------------------------------

    def estimate_yield(
        self,
        category_id: Any,
        total_weight_kg: Any,
        unit_count: int = 1,
        shrink_percent: Any = None,
    ) -> YieldEstimate:
        """
        Bone/fat share of a delivery from the active template's cut roles.

        No bracket or no active template gives ``found=False`` with only
        shrink applied; the caller then enters percentages by hand.
        """
        weight = positive_decimal(total_weight_kg, "total_weight_kg")
        if unit_count is None or unit_count <= 0:
            raise InvalidInputError("unit_count", "must be greater than zero")
        shrink = _percent(
            self._settings.default_shrink_percent if shrink_percent is None else shrink_percent,
            "shrink_percent",
        )
        category = self._catalog.get_category(category_id, require_active=True)

        lines: list[RoleLine] | None = None
        try:
            weight_range = self._catalog.resolve_range(weight / Decimal(unit_count))
        except RangeNotFoundError:
            weight_range = None
        if weight_range is not None:
            template = self._templates.find_active(category.id, weight_range.id)
            if template is not None:
                lines = [
                    RoleLine(
                        cut_role=item.cut.cut_role,
                        percentage=item.percentage_yield,
                        is_sellable=item.cut.is_sellable,
                    )
                    for item in template.items
                ]

        estimate = self._estimator.estimate(
            lines=lines,
            total_weight_kg=weight,
            shrink_percent=shrink,
        )
        logger.info(
            "bulk_yield_estimated",
            extra={
                "category_id": str(category.id),
                "found": estimate.found,
                "bone_percent": str(estimate.bone_percent),
                "fat_percent": str(estimate.fat_percent),
                "sellable_kg": str(estimate.sellable_kg),
            },
        )
        return estimate

    def register_batch(
        self,
        batch_description: str,
        animal_category: str,
        unit_count: int,
        total_weight_kg: Any,
        category_id: Any = None,
        entry_date: date | None = None,
        bone_percent: Any = None,
        fat_percent: Any = None,
        shrink_percent: Any = None,
        supplier: str | None = None,
        notes: str | None = None,
    ) -> GeneralStock:
        """
        Add a bulk delivery to the ledger.

        Bone and fat percentages not given explicitly come from the active
        template of ``category_id`` (zero when there is none); shrink
        defaults to the configured percentage.
        """
        if not batch_description or not animal_category:
            raise InvalidInputError("batch_description", "description and category are required")
        if unit_count is None or unit_count <= 0:
            raise InvalidInputError("unit_count", "must be greater than zero")
        weight = positive_decimal(total_weight_kg, "total_weight_kg")
        shrink = _percent(
            self._settings.default_shrink_percent if shrink_percent is None else shrink_percent,
            "shrink_percent",
        )

        resolved_category_id = None
        bone = ZERO
        fat = ZERO
        if category_id is not None:
            resolved_category_id = self._catalog.get_category(category_id, require_active=True).id
            if bone_percent is None or fat_percent is None:
                estimate = self.estimate_yield(
                    resolved_category_id, weight, unit_count, shrink
                )
                bone, fat = estimate.bone_percent, estimate.fat_percent
        if bone_percent is not None:
            bone = _percent(bone_percent, "bone_percent")
        if fat_percent is not None:
            fat = _percent(fat_percent, "fat_percent")

        if bone + fat + shrink >= HUNDRED:
            raise InvalidInputError(
                "bone_percent", "bone, fat and shrink together must stay below 100"
            )
        sellable = sellable_kg(weight, bone, fat, shrink)
        if sellable <= ZERO:
            raise InvalidInputError("total_weight_kg", "leaves no sellable kilograms")

        batch = GeneralStock(
            batch_number=self._sequences.next_value(SequenceService.GENERAL_STOCK),
            batch_description=batch_description,
            animal_category=animal_category,
            category_id=resolved_category_id,
            supplier=supplier,
            entry_date=entry_date or self._clock.today(),
            unit_count=unit_count,
            total_weight_kg=weight,
            bone_percent=bone,
            fat_percent=fat,
            shrink_percent=shrink,
            sellable_kg=sellable,
            sold_kg=ZERO,
            status=GeneralStockStatus.ACTIVE.value,
            notes=notes,
        )
        self.session.add(batch)
        self.session.flush()

        logger.info(
            "general_stock_registered",
            extra={
                "batch_id": str(batch.id),
                "batch_number": batch.batch_number,
                "entry_date": batch.entry_date,
                "total_weight_kg": str(weight),
                "sellable_kg": str(sellable),
            },
        )
        return batch

    def get_batch(self, batch_id: Any) -> GeneralStock:
        batch = self.session.get(GeneralStock, as_uuid(batch_id, "batch_id"))
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch

    def list_batches(self) -> list[GeneralStock]:
        """Active batches first, then newest entry first."""
        active_first = case(
            (GeneralStock.status == GeneralStockStatus.ACTIVE.value, 0),
            else_=1,
        )
        return list(
            self.session.execute(
                select(GeneralStock).order_by(
                    active_first,
                    GeneralStock.entry_date.desc(),
                    GeneralStock.batch_number.desc(),
                )
            ).scalars()
        )

    # -- daily deduction ----------------------------------------------------

    def _reverse(self, close: DailyClose) -> Decimal:
        """Undo and delete every deduction of ``close``.  Returns kg restored."""
        deductions = list(
            self.session.execute(
                select(GeneralStockDeduction)
                .where(GeneralStockDeduction.daily_close_id == close.id)
                .order_by(GeneralStockDeduction.general_stock_id)
            ).scalars()
        )
        restored = ZERO
        for deduction in deductions:
            batch = self.session.get(
                GeneralStock,
                deduction.general_stock_id,
                with_for_update=True,
            )
            if batch is None:
                logger.error(
                    "deduction_batch_missing",
                    extra={"batch_id": str(deduction.general_stock_id)},
                )
                raise LedgerConsistencyError(
                    str(close.id), str(deduction.general_stock_id), "batch does not exist"
                )

            sold = batch.sold_kg - deduction.deducted_kg
            if sold < ZERO:
                logger.error(
                    "reversal_below_zero",
                    extra={
                        "batch_id": str(batch.id),
                        "sold_kg": str(batch.sold_kg),
                        "deducted_kg": str(deduction.deducted_kg),
                    },
                )
                raise LedgerConsistencyError(
                    str(close.id), str(batch.id), "reversal drives sold_kg below zero"
                )

            batch.sold_kg = sold
            batch.status = (
                GeneralStockStatus.DEPLETED.value
                if is_depleted(sold, batch.sellable_kg)
                else GeneralStockStatus.ACTIVE.value
            )
            restored += deduction.deducted_kg
            self.session.delete(deduction)

        self.session.flush()
        if deductions:
            logger.info(
                "daily_deduction_reversed",
                extra={"deduction_count": len(deductions), "restored_kg": str(restored)},
            )
        return restored

    def apply_daily_deduction(self, close_id: Any, total_kg_from_scales: Any) -> DeductionResult:
        """
        Recompute the deductions of one close from a clean slate.

        Zero kg only reverses.  Calling twice with the same total leaves the
        same sold_kg per batch and the same unaccounted_kg as calling once.
        The total is rounded to 2 decimals before the walk; the rounded value
        is what gets split into deductions and unaccounted_kg.
        """
        total = as_decimal(total_kg_from_scales, "total_kg_from_scales")
        if total < ZERO:
            raise InvalidInputError("total_kg_from_scales", "must not be negative")
        total = round2(total)

        close = self.session.get(
            DailyClose, as_uuid(close_id, "close_id"), with_for_update=True
        )
        if close is None:
            raise DailyCloseNotFoundError(str(close_id))

        with LogContext.bind(close_id=close.id):
            reversed_kg = self._reverse(close)

            active = list(
                self.session.execute(
                    select(GeneralStock)
                    .where(GeneralStock.status == GeneralStockStatus.ACTIVE.value)
                    .order_by(
                        GeneralStock.entry_date,
                        GeneralStock.batch_number,
                        GeneralStock.id,
                    )
                    .with_for_update()
                ).scalars()
            )
            by_id = {b.id: b for b in active}

            plan = self._planner.plan(
                batches=[
                    BatchCapacity(
                        batch_id=b.id,
                        entry_date=b.entry_date,
                        batch_number=b.batch_number,
                        sellable_kg=b.sellable_kg,
                        sold_kg=b.sold_kg,
                    )
                    for b in active
                ],
                total_kg=total,
            )

            lines: list[DeductionLine] = []
            for allocation in plan.allocations:
                batch = by_id[allocation.batch_id]
                batch.sold_kg = allocation.sold_kg_after
                if allocation.depleted:
                    batch.status = GeneralStockStatus.DEPLETED.value
                self.session.add(
                    GeneralStockDeduction(
                        general_stock_id=batch.id,
                        daily_close_id=close.id,
                        deducted_kg=allocation.deducted_kg,
                        deduction_date=close.close_date,
                    )
                )
                lines.append(
                    DeductionLine(
                        batch_id=batch.id,
                        batch_description=batch.batch_description,
                        deducted_kg=allocation.deducted_kg,
                        depleted=allocation.depleted,
                    )
                )
                if allocation.depleted:
                    logger.info(
                        "general_stock_depleted",
                        extra={"batch_id": str(batch.id), "batch_number": batch.batch_number},
                    )

            close.unaccounted_kg = plan.unaccounted_kg
            self.session.flush()

            if plan.unaccounted_kg > ZERO:
                logger.warning(
                    "daily_deduction_unaccounted",
                    extra={
                        "total_kg": str(total),
                        "unaccounted_kg": str(plan.unaccounted_kg),
                    },
                )
            logger.info(
                "daily_deduction_completed",
                extra={
                    "total_kg": str(total),
                    "reversed_kg": str(reversed_kg),
                    "deduction_count": len(lines),
                    "unaccounted_kg": str(plan.unaccounted_kg),
                },
            )

        return DeductionResult(
            close_id=close.id,
            total_kg=total,
            reversed_kg=reversed_kg,
            deductions=tuple(lines),
            unaccounted_kg=plan.unaccounted_kg,
        )
