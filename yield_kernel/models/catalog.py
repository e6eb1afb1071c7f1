"""
Module: yield_kernel.models.catalog
Responsibility: ORM persistence for the reference catalog the yield engine
    reads: animal categories, weight brackets and cuts.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - AnimalCategory.name and Cut.name are unique.
    - Categories are soft-deactivated (is_active=False), never deleted once a
      template references them.
    - Cut.cut_role is an explicit attribute (bone | fat | trim | sellable);
      nothing classifies cuts by substring-matching their names.

Non-goals:
    - WeightRange rows carry no overlap constraint at the DB level; overlap
      is rejected by CatalogService before insert.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from yield_kernel.db.base import TrackedBase


class CutRole(str, Enum):
    """What a cut is, for the purposes of bulk-stock estimation."""

    BONE = "bone"
    FAT = "fat"
    TRIM = "trim"
    SELLABLE = "sellable"


class CutCategory(str, Enum):
    """Commercial grouping of a cut."""

    PREMIUM = "premium"
    PARRILLA = "parrilla"
    GUISO = "guiso"
    SUBPRODUCTO = "subproducto"


class AnimalCategory(TrackedBase):
    """A breed/class tag such as Vaquillona (heifer) or Novillo (steer)."""

    __tablename__ = "animal_categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<AnimalCategory {self.name} active={self.is_active}>"


class WeightRange(TrackedBase):
    """
    Weight bracket [min_weight, max_weight] in kg, inclusive both ends.

    Brackets are matched against the average weight per unit of a purchase,
    or against the total weight of a single broken-down carcass.
    """

    __tablename__ = "weight_ranges"

    min_weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    max_weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    label: Mapped[str] = mapped_column(String(50), nullable=False)

    def contains(self, weight: Decimal) -> bool:
        return self.min_weight <= weight <= self.max_weight

    def __repr__(self) -> str:
        return f"<WeightRange {self.label} [{self.min_weight}, {self.max_weight}]>"


class Cut(TrackedBase):
    """A sellable or non-sellable meat/by-product category."""

    __tablename__ = "cuts"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    cut_category: Mapped[CutCategory] = mapped_column(
        String(20),
        nullable=False,
        default=CutCategory.PREMIUM,
    )

    cut_role: Mapped[CutRole] = mapped_column(
        String(20),
        nullable=False,
        default=CutRole.SELLABLE,
    )

    is_sellable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Cut {self.name} role={self.cut_role}>"
