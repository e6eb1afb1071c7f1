"""
yield_services.stock_entry_service -- Purchases projected into per-cut inventory.

Responsibility:
    Receive a purchase of carcasses: project it through the active
    template, keep the batch and its per-cut projection, and add the
    projected kilograms to each cut's balance.  Manual adjustments correct
    balances afterwards, e.g. when the projection variance is real loss.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Uses ProjectionService for the estimate.

Invariants enforced:
    - Batch, projections and balance increments are flushed together in
      the caller's transaction.
    - Every manual change is an InventoryAdjustment with previous_qty,
      new_qty and delta; balances never go negative.

Failure modes:
    - Everything ProjectionService.estimate_stock raises.
    - InvalidInputError for negative cost, quantity or unknown reason.
    - CutNotFoundError for adjustments on an unknown cut.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from yield_config.schema import EngineSettings
from yield_kernel.domain.values import ZERO
from yield_kernel.exceptions import InvalidInputError, MissingUnitCountError
from yield_kernel.logging_config import get_logger
from yield_kernel.models.inventory import (
    AdjustmentReason,
    CutInventory,
    InventoryAdjustment,
    StockBatch,
    StockBatchProjection,
)
from yield_kernel.services.base import BaseService
from yield_services._inputs import as_uuid, non_negative_decimal
from yield_services.catalog_service import CatalogService
from yield_services.projection_service import ProjectionService, StockEstimate

logger = get_logger("services.stock_entry")


@dataclass(frozen=True)
class PurchaseResult:
    batch: StockBatch
    estimate: StockEstimate
    balances: dict[UUID, Decimal]


class StockEntryService(BaseService[StockBatch]):

    def __init__(self, session, settings: EngineSettings | None = None):
        super().__init__(session)
        self._projection = ProjectionService(session, settings)
        self._catalog = CatalogService(session)

    def _inventory(self, cut_id: UUID, for_update: bool = True) -> CutInventory:
        """Balance row of a cut, created at zero on first use."""
        stmt = select(CutInventory).where(CutInventory.cut_id == cut_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            row = CutInventory(cut_id=cut_id, current_qty=ZERO, min_stock_alert=ZERO)
            self.session.add(row)
            self.session.flush()
        return row

    def receive_purchase(
        self,
        category_id: Any,
        unit_count: int,
        total_weight: Any,
        total_cost: Any,
        range_id: Any = None,
        supplier: str | None = None,
    ) -> PurchaseResult:
        """
        Project a purchase into inventory.

        The visible projection variance is not booked anywhere; it stays on
        the batch for a human to act on with ``adjust_inventory``.
        """
        if not unit_count or unit_count <= 0:
            raise MissingUnitCountError()
        cost = non_negative_decimal(total_cost, "total_cost")

        estimate = self._projection.estimate_stock(
            category_id=category_id,
            total_weight=total_weight,
            unit_count=unit_count,
            range_id=range_id,
        )
        projection = estimate.projection

        batch = StockBatch(
            category_id=estimate.category_id,
            range_id=estimate.range_id,
            template_id=estimate.template_id,
            template_version=estimate.template_version,
            unit_count=unit_count,
            total_weight=projection.total_weight,
            total_cost=cost,
            total_projected=projection.total_projected,
            variance=projection.variance,
            status="projected",
            supplier=supplier,
        )
        batch.projections = [
            StockBatchProjection(
                cut_id=cut.cut_id,
                estimated_kg=cut.estimated_kg,
                percentage_used=cut.percentage,
            )
            for cut in projection.per_cut
        ]
        self.session.add(batch)

        balances: dict[UUID, Decimal] = {}
        for cut in projection.per_cut:
            row = self._inventory(cut.cut_id)
            row.current_qty = row.current_qty + cut.estimated_kg
            balances[cut.cut_id] = row.current_qty
        self.session.flush()

        logger.info(
            "purchase_projected_into_inventory",
            extra={
                "stock_batch_id": str(batch.id),
                "template_id": str(estimate.template_id),
                "unit_count": unit_count,
                "total_weight": str(projection.total_weight),
                "total_projected": str(projection.total_projected),
                "variance": str(projection.variance),
            },
        )
        return PurchaseResult(batch=batch, estimate=estimate, balances=balances)

    def adjust_inventory(
        self,
        cut_id: Any,
        new_qty: Any,
        reason: AdjustmentReason | str,
        notes: str | None = None,
        adjusted_by: str | None = None,
    ) -> InventoryAdjustment:
        """Set a cut's balance to ``new_qty`` and record why."""
        cut = self._catalog.get_cut(cut_id)
        quantity = non_negative_decimal(new_qty, "new_qty")
        try:
            reason = AdjustmentReason(reason)
        except ValueError as e:
            raise InvalidInputError("reason", str(e)) from e

        row = self._inventory(cut.id)
        previous = row.current_qty
        row.current_qty = quantity

        adjustment = InventoryAdjustment(
            cut_id=cut.id,
            previous_qty=previous,
            new_qty=quantity,
            delta=quantity - previous,
            reason=reason.value,
            notes=notes,
            adjusted_by=adjusted_by,
        )
        self.session.add(adjustment)
        self.session.flush()

        logger.info(
            "inventory_adjusted",
            extra={
                "cut_id": str(cut.id),
                "previous_qty": str(previous),
                "new_qty": str(quantity),
                "reason": reason.value,
            },
        )
        return adjustment

    def get_balance(self, cut_id: Any) -> Decimal:
        row = self.session.execute(
            select(CutInventory).where(CutInventory.cut_id == as_uuid(cut_id, "cut_id"))
        ).scalar_one_or_none()
        return row.current_qty if row else ZERO

    def low_stock(self) -> list[CutInventory]:
        """Cuts whose balance is below their alert threshold."""
        return list(
            self.session.execute(
                select(CutInventory).where(
                    CutInventory.current_qty < CutInventory.min_stock_alert
                )
            ).scalars()
        )
