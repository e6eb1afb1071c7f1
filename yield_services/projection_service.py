"""
yield_services.projection_service -- Per-cut stock estimate for a purchase.

Responsibility:
    Purchase -> bracket -> active template -> projection.  Resolves the
    bracket from the average unit weight (or takes one explicitly), finds
    the active template for the pairing, and runs YieldProjector.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Read-only: nothing is written.  StockEntryService persists the result.

Failure modes:
    - MissingUnitCountError: no range_id and no positive unit_count.
    - RangeNotFoundError, TemplateNotFoundError, NoTemplateItemsError.
    - CategoryNotFoundError / CategoryInactiveError.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from yield_config.schema import EngineSettings
from yield_engines.projection import ProjectionResult, YieldProjector
from yield_kernel.exceptions import MissingUnitCountError
from yield_kernel.logging_config import get_logger
from yield_kernel.models.yield_template import YieldTemplate
from yield_kernel.services.base import BaseService
from yield_services._inputs import positive_decimal
from yield_services.catalog_service import CatalogService
from yield_services.template_store import YieldTemplateStore

logger = get_logger("services.projection")


@dataclass(frozen=True)
class StockEstimate:
    """A projection plus the labels of what it was resolved against."""

    category_id: UUID
    category_name: str
    range_id: UUID
    range_label: str
    template_id: UUID
    template_name: str | None
    template_version: int
    avg_weight: Decimal | None
    projection: ProjectionResult
    variance_exceeds_tolerance: bool

    @property
    def total_projected(self) -> Decimal:
        return self.projection.total_projected

    @property
    def variance(self) -> Decimal:
        return self.projection.variance


class ProjectionService(BaseService[YieldTemplate]):

    def __init__(
        self,
        session,
        settings: EngineSettings | None = None,
        projector: YieldProjector | None = None,
    ):
        super().__init__(session)
        self._settings = settings or EngineSettings()
        self._projector = projector or YieldProjector()
        self._catalog = CatalogService(session)
        self._templates = YieldTemplateStore(session, self._settings)

    def project_template(self, template: YieldTemplate, total_weight: Decimal) -> ProjectionResult:
        return self._projector.project(
            template=self._templates.snapshot(template),
            total_weight=total_weight,
        )

    def estimate_stock(
        self,
        category_id: Any,
        total_weight: Any,
        unit_count: int | None = None,
        range_id: Any = None,
    ) -> StockEstimate:
        """
        Expected per-cut kilograms for ``total_weight`` kg of a category.

        Without ``range_id`` the bracket is resolved from
        total_weight / unit_count, which needs unit_count > 0.
        """
        weight = positive_decimal(total_weight, "total_weight")
        category = self._catalog.get_category(category_id, require_active=True)

        avg_weight: Decimal | None = None
        if range_id is not None:
            weight_range = self._catalog.get_weight_range(range_id)
        else:
            if not unit_count or unit_count <= 0:
                raise MissingUnitCountError()
            avg_weight = weight / Decimal(unit_count)
            weight_range = self._catalog.resolve_range(avg_weight)

        template = self._templates.get_active(category.id, weight_range.id)
        projection = self.project_template(template, weight)
        flagged = projection.exceeds_tolerance(self._settings.projection_variance_tolerance)

        if flagged:
            logger.warning(
                "projection_variance_above_tolerance",
                extra={
                    "template_id": str(template.id),
                    "total_weight": str(weight),
                    "variance": str(projection.variance),
                    "tolerance": str(self._settings.projection_variance_tolerance),
                },
            )

        logger.info(
            "stock_estimated",
            extra={
                "category_id": str(category.id),
                "range_id": str(weight_range.id),
                "template_id": str(template.id),
                "total_weight": str(weight),
                "total_projected": str(projection.total_projected),
                "variance": str(projection.variance),
            },
        )

        return StockEstimate(
            category_id=category.id,
            category_name=category.name,
            range_id=weight_range.id,
            range_label=weight_range.label,
            template_id=template.id,
            template_name=template.name,
            template_version=template.version,
            avg_weight=avg_weight,
            projection=projection,
            variance_exceeds_tolerance=flagged,
        )
