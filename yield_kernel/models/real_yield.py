"""
Module: yield_kernel.models.real_yield
Responsibility: ORM persistence for real yields -- the measured outcome of
    breaking down one carcass -- and their per-cut items.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only evidence.  total_weight, the resolved category/range and
      every item are frozen at creation.  The only mutation ever applied is
      applied_to_template False -> True (plus learning_rate) inside the
      transaction that created the row.
    - yield_number is unique and allocated from the "real_yield" sequence.

Audit relevance:
    Every template learning update is explained by exactly one RealYield:
    its items, its learning_rate and its position in the observation count
    for the (category, range) pairing.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from yield_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from yield_kernel.models.catalog import Cut


class RealYield(TrackedBase):
    """One measured carcass breakdown ("desposte")."""

    __tablename__ = "real_yields"

    __table_args__ = (
        UniqueConstraint("yield_number", name="uq_real_yield_number"),
        # Query: observation count per (category, range)
        Index("idx_real_yield_category_range", "category_id", "range_id"),
    )

    yield_number: Mapped[int] = mapped_column(nullable=False)

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

    total_weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    applied_to_template: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    learning_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    items: Mapped[list["RealYieldItem"]] = relationship(
        back_populates="real_yield",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<RealYield #{self.yield_number} weight={self.total_weight} "
            f"applied={self.applied_to_template}>"
        )


class RealYieldItem(TrackedBase):
    """Measured kilograms of one cut in a real yield."""

    __tablename__ = "real_yield_items"

    __table_args__ = (
        UniqueConstraint("real_yield_id", "cut_id", name="uq_real_yield_item_cut"),
    )

    real_yield_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("real_yields.id", ondelete="CASCADE"),
        nullable=False,
    )

    cut_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cuts.id"),
        nullable=False,
    )

    actual_kg: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Stored rounded to 2 places; learning uses the unrounded value.
    percentage_real: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    real_yield: Mapped["RealYield"] = relationship(back_populates="items")

    cut: Mapped["Cut"] = relationship()
