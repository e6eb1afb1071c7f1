"""
Module: yield_kernel.models.general_stock
Responsibility: ORM persistence for the general stock ledger: bulk carcass
    batches ("tropas"), daily closes, and the deduction rows joining them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A batch is depleted exactly when sold_kg >= sellable_kg.
    - sold_kg never goes below zero.
    - Only GeneralStockLedger mutates GeneralStock and GeneralStockDeduction.
    - DailyClose.close_date is unique: one close per day, re-closing reuses
      the same row and therefore the same deduction set.
    - (entry_date, batch_number) index supports deterministic FIFO ordering.

Audit relevance:
    Deduction rows record exactly how many kg of which batch were consumed
    by which close, so any close can be reversed and recomputed.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from yield_kernel.db.base import TrackedBase, UUIDString


class GeneralStockStatus(str, Enum):
    """Batch lifecycle: ACTIVE -> DEPLETED, back only through reversal."""

    ACTIVE = "active"
    DEPLETED = "depleted"


class GeneralStock(TrackedBase):
    """A bulk, not-yet-broken-down delivery of carcasses."""

    __tablename__ = "general_stock"

    __table_args__ = (
        UniqueConstraint("batch_number", name="uq_general_stock_number"),
        Index("idx_general_stock_fifo", "status", "entry_date", "batch_number"),
    )

    # Allocated from the "general_stock" sequence; FIFO tie-break within a day
    batch_number: Mapped[int] = mapped_column(nullable=False)

    batch_description: Mapped[str] = mapped_column(String(200), nullable=False)

    animal_category: Mapped[str] = mapped_column(String(100), nullable=False)

    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("animal_categories.id"),
        nullable=True,
    )

    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    unit_count: Mapped[int] = mapped_column(Integer, nullable=False)

    total_weight_kg: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    bone_percent: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    fat_percent: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    shrink_percent: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    sellable_kg: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    sold_kg: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    status: Mapped[GeneralStockStatus] = mapped_column(
        String(10),
        nullable=False,
        default=GeneralStockStatus.ACTIVE,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    deductions: Mapped[list["GeneralStockDeduction"]] = relationship(
        back_populates="batch",
    )

    @property
    def remaining_kg(self) -> Decimal:
        return self.sellable_kg - self.sold_kg

    def __repr__(self) -> str:
        return (
            f"<GeneralStock {self.batch_description} {self.entry_date} "
            f"sold={self.sold_kg}/{self.sellable_kg} {self.status}>"
        )


class DailyClose(TrackedBase):
    """End-of-day reconciliation event that drives bulk stock consumption."""

    __tablename__ = "daily_closes"

    close_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)

    scale_readings: Mapped[list | None] = mapped_column(JSON, nullable=True)

    total_scale_kg: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    unaccounted_kg: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    closed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    deductions: Mapped[list["GeneralStockDeduction"]] = relationship(
        back_populates="daily_close",
    )


class GeneralStockDeduction(TrackedBase):
    """Kilograms deducted from one batch by one daily close."""

    __tablename__ = "general_stock_deductions"

    __table_args__ = (
        Index("idx_deduction_close", "daily_close_id"),
        Index("idx_deduction_batch", "general_stock_id"),
    )

    general_stock_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("general_stock.id"),
        nullable=False,
    )

    daily_close_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("daily_closes.id"),
        nullable=False,
    )

    deducted_kg: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    deduction_date: Mapped[date] = mapped_column(Date, nullable=False)

    batch: Mapped["GeneralStock"] = relationship(back_populates="deductions")

    daily_close: Mapped["DailyClose"] = relationship(back_populates="deductions")
