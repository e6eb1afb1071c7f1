"""
Module: yield_kernel.models.yield_template
Responsibility: ORM persistence for yield templates -- the per (category,
    weight bracket) prediction model -- and their per-cut percentage items.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - (category_id, range_id) is unique: one template per pairing.
    - (template_id, cut_id) is unique: a cut appears once per template.
    - version starts at 1 and is bumped on every item replacement; the bump
      is a conditional UPDATE so two interleaved learning passes cannot both
      land (YieldTemplateStore.replace_items).
    - Active templates sum to 100.00 +/- 0.01 (enforced by the store and the
      learning engine, not by the database).
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from yield_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from yield_kernel.models.catalog import AnimalCategory, Cut, WeightRange


class TemplateStatus(str, Enum):
    """Only active templates are eligible for projection and learning."""

    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class YieldTemplate(TrackedBase):
    """Per-category, per-bracket yield prediction model."""

    __tablename__ = "yield_templates"

    __table_args__ = (
        UniqueConstraint("category_id", "range_id", name="uq_template_category_range"),
    )

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

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    reference_weight: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[TemplateStatus] = mapped_column(
        String(10),
        nullable=False,
        default=TemplateStatus.ACTIVE,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    items: Mapped[list["YieldTemplateItem"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    category: Mapped["AnimalCategory"] = relationship()

    weight_range: Mapped["WeightRange"] = relationship()

    @property
    def is_active(self) -> bool:
        return self.status == TemplateStatus.ACTIVE

    @property
    def total_percentage(self) -> Decimal:
        return sum((i.percentage_yield for i in self.items), Decimal("0"))

    def __repr__(self) -> str:
        return f"<YieldTemplate {self.name} status={self.status} v{self.version}>"


class YieldTemplateItem(TrackedBase):
    """Percentage of a carcass's weight expected to become one cut."""

    __tablename__ = "yield_template_items"

    __table_args__ = (
        UniqueConstraint("template_id", "cut_id", name="uq_template_item_cut"),
    )

    template_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("yield_templates.id", ondelete="CASCADE"),
        nullable=False,
    )

    cut_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cuts.id"),
        nullable=False,
    )

    percentage_yield: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    template: Mapped["YieldTemplate"] = relationship(back_populates="items")

    cut: Mapped["Cut"] = relationship()

    def __repr__(self) -> str:
        return f"<YieldTemplateItem cut={self.cut_id} pct={self.percentage_yield}>"
