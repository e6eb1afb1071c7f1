"""
Module: yield_kernel.models.inventory
Responsibility: ORM persistence for per-cut inventory fed by projections:
    purchased stock batches, the per-cut projection recorded for each batch,
    per-cut balances, and manual adjustments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One CutInventory row per cut (cut_id unique).
    - A StockBatch's projections are written together with the balance
      increments they cause (StockEntryService, single transaction).
    - Every balance change that is not a projection is an InventoryAdjustment
      row with previous_qty, new_qty and delta.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from yield_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from yield_kernel.models.catalog import Cut


class AdjustmentReason(str, Enum):
    """Why a per-cut balance was corrected by hand."""

    MERMA = "merma"
    SOBRANTE = "sobrante"
    CONTEO_FISICO = "conteo_fisico"
    ERROR_CARGA = "error_carga"
    OTRO = "otro"


class StockBatch(TrackedBase):
    """A purchase of carcasses whose cuts were projected into inventory."""

    __tablename__ = "stock_batches"

    category_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("animal_categories.id"),
        nullable=False,
    )

    range_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("weight_ranges.id"),
        nullable=False,
    )

    template_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("yield_templates.id"),
        nullable=False,
    )

    template_version: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_count: Mapped[int] = mapped_column(Integer, nullable=False)

    total_weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_projected: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    variance: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="projected")

    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)

    projections: Mapped[list["StockBatchProjection"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class StockBatchProjection(TrackedBase):
    """Expected kilograms of one cut for a purchased batch."""

    __tablename__ = "stock_batch_projections"

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_batches.id", ondelete="CASCADE"),
        nullable=False,
    )

    cut_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cuts.id"),
        nullable=False,
    )

    estimated_kg: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    percentage_used: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    batch: Mapped["StockBatch"] = relationship(back_populates="projections")


class CutInventory(TrackedBase):
    """On-hand kilograms of one cut."""

    __tablename__ = "cut_inventory"

    cut_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cuts.id"),
        nullable=False,
        unique=True,
    )

    current_qty: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    min_stock_alert: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    cut: Mapped["Cut"] = relationship()

    @property
    def below_minimum(self) -> bool:
        return self.current_qty < self.min_stock_alert


class InventoryAdjustment(TrackedBase):
    """Manual correction of a cut balance (stocktake, shrinkage, load error)."""

    __tablename__ = "inventory_adjustments"

    cut_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cuts.id"),
        nullable=False,
    )

    previous_qty: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    new_qty: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    delta: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    reason: Mapped[AdjustmentReason] = mapped_column(String(20), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    adjusted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
