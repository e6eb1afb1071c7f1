"""
ShopConfiguration schema.

Human-authored, reviewable source of the shop's reference data and engine
tuning.  YAML sets are parsed into these frozen types by the loader,
checked by the validator and written to the database by the seeder.
Services only ever see ``EngineSettings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class EngineSettings:
    """Tunables of the learning, projection and ledger engines."""

    learning_rate_initial: Decimal = Decimal("0.5")
    learning_rate_floor: Decimal = Decimal("0.1")
    sum_tolerance: Decimal = Decimal("0.01")
    normalization_threshold: Decimal = Decimal("0.001")
    default_shrink_percent: Decimal = Decimal("5")
    # kg of rounding variance a projection may show before it is flagged
    projection_variance_tolerance: Decimal = Decimal("0.5")


@dataclass(frozen=True)
class CategoryDef:
    name: str
    description: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class WeightRangeDef:
    label: str
    min_weight: Decimal
    max_weight: Decimal


@dataclass(frozen=True)
class CutDef:
    name: str
    cut_category: str
    cut_role: str
    is_sellable: bool
    display_order: int
    description: str | None = None
    min_stock_alert: Decimal = Decimal("0")


@dataclass(frozen=True)
class TemplateItemDef:
    cut: str  # Cut name
    percentage: Decimal


@dataclass(frozen=True)
class TemplateDef:
    category: str  # AnimalCategory name
    weight_range: str  # WeightRange label
    items: tuple[TemplateItemDef, ...]
    name: str | None = None
    status: str = "active"
    reference_weight: Decimal | None = None
    notes: str | None = None

    @property
    def total_percentage(self) -> Decimal:
        return sum((i.percentage for i in self.items), Decimal("0"))


@dataclass(frozen=True)
class ShopConfiguration:
    """A complete configuration set."""

    config_id: str
    version: int
    settings: EngineSettings = field(default_factory=EngineSettings)
    categories: tuple[CategoryDef, ...] = ()
    weight_ranges: tuple[WeightRangeDef, ...] = ()
    cuts: tuple[CutDef, ...] = ()
    templates: tuple[TemplateDef, ...] = ()
    description: str | None = None
    checksum: str = ""
