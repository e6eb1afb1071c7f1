"""
yield_engines.projection -- Per-cut kilograms expected from a yield template.

Responsibility:
    Turn a template (cut -> percentage) and a total input weight into the
    expected kilograms of every cut, the sum of those rounded values, and
    the variance left over by rounding.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ProjectionService and StockEntryService.

Invariants enforced:
    - estimated_kg = round2(total_weight * percentage / 100) per cut.
    - total_projected is the sum of the rounded values.
    - variance = round2(total_weight) - total_projected.  Nothing is
      redistributed to force it to zero; a human decides whether it
      warrants an inventory adjustment.
    - Same template and weight always give the same result.

Failure modes:
    - InvalidInputError when total_weight <= 0.
    - NoTemplateItemsError when the template has no lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from yield_engines.tracer import traced_engine
from yield_kernel.domain.values import HUNDRED, ZERO, kg_of, round2
from yield_kernel.exceptions import InvalidInputError, NoTemplateItemsError
from yield_kernel.logging_config import get_logger

logger = get_logger("engines.projection")


@dataclass(frozen=True)
class TemplateLine:
    """One cut of a template, with the catalog attributes shown to users."""

    cut_id: Any
    cut_name: str
    percentage: Decimal
    display_order: int = 0
    cut_category: str | None = None
    cut_role: str | None = None
    is_sellable: bool = True


@dataclass(frozen=True)
class TemplateSnapshot:
    """Immutable view of a yield template taken at read time."""

    template_id: Any
    name: str | None
    lines: tuple[TemplateLine, ...]
    version: int = 1

    @property
    def total_percentage(self) -> Decimal:
        return sum((line.percentage for line in self.lines), ZERO)


@dataclass(frozen=True)
class CutProjection:
    cut_id: Any
    cut_name: str
    cut_category: str | None
    cut_role: str | None
    is_sellable: bool
    percentage: Decimal
    estimated_kg: Decimal


@dataclass(frozen=True)
class ProjectionResult:
    """Expected per-cut kilograms plus the visible rounding variance."""

    template_id: Any
    total_weight: Decimal
    per_cut: tuple[CutProjection, ...]
    total_projected: Decimal
    variance: Decimal

    @property
    def variance_percent(self) -> Decimal:
        return round2(self.variance / self.total_weight * HUNDRED)

    def exceeds_tolerance(self, tolerance_kg: Decimal) -> bool:
        return abs(self.variance) > tolerance_kg


class YieldProjector:
    """
    Pure projection of a template over a weight.

    Contract:
        No I/O, no clock, fully deterministic.
    Non-goals:
        - Does not look up templates or brackets (see ProjectionService).
    """

    @traced_engine(
        "projection", "1.0", fingerprint_fields=("template", "total_weight")
    )
    def project(self, template: TemplateSnapshot, total_weight: Decimal) -> ProjectionResult:
        """
        Project ``total_weight`` kg through ``template``.

        Lines come back in display order (stable for equal orders).
        """
        if total_weight <= ZERO:
            raise InvalidInputError("total_weight", "must be greater than zero")
        if not template.lines:
            raise NoTemplateItemsError(str(template.template_id), template.name)

        per_cut: list[CutProjection] = []
        total_projected = ZERO
        for line in sorted(template.lines, key=lambda ln: ln.display_order):
            estimated = round2(kg_of(total_weight, line.percentage))
            total_projected += estimated
            per_cut.append(
                CutProjection(
                    cut_id=line.cut_id,
                    cut_name=line.cut_name,
                    cut_category=line.cut_category,
                    cut_role=line.cut_role,
                    is_sellable=line.is_sellable,
                    percentage=line.percentage,
                    estimated_kg=estimated,
                )
            )

        variance = round2(total_weight) - total_projected

        logger.debug(
            "projection_computed",
            extra={
                "template_id": str(template.template_id),
                "total_weight": str(total_weight),
                "total_projected": str(total_projected),
                "variance": str(variance),
                "cut_count": len(per_cut),
            },
        )

        return ProjectionResult(
            template_id=template.template_id,
            total_weight=total_weight,
            per_cut=tuple(per_cut),
            total_projected=total_projected,
            variance=variance,
        )
