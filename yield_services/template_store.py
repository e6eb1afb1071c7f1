"""
yield_services.template_store -- Yield templates and their per-cut items.

Responsibility:
    The canonical prediction model: one template per (category, weight
    bracket), holding the percentage of carcass weight expected for each
    cut.  Reads, creation, status changes and the atomic full replacement
    of a template's items.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Written by LearningService and the configuration seeder; read by
    ProjectionService, StockEntryService and GeneralStockLedger.

Invariants enforced:
    - Only active templates are returned by ``get_active``.
    - replace_items is all-or-nothing: every cut must exist, no cut twice,
      no negative percentage, and an active non-empty template must sum to
      100 +/- tolerance.  Nothing is written when any check fails.
    - version is bumped by a conditional UPDATE on (id, version).  If
      another writer got there first zero rows match and
      OptimisticLockError is raised; two interleaved learning passes can
      never both land.

Failure modes:
    - TemplateNotFoundError, CutNotFoundError, InvalidInputError.
    - TemplateSumInvalidError for an active template off 100.
    - OptimisticLockError on a version mismatch.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update

from yield_config.schema import EngineSettings
from yield_engines.learning import LearningLine
from yield_engines.projection import TemplateLine, TemplateSnapshot
from yield_kernel.domain.values import HUNDRED
from yield_kernel.exceptions import (
    InvalidInputError,
    OptimisticLockError,
    TemplateNotFoundError,
    TemplateSumInvalidError,
)
from yield_kernel.logging_config import get_logger
from yield_kernel.models.yield_template import (
    TemplateStatus,
    YieldTemplate,
    YieldTemplateItem,
)
from yield_kernel.services.base import BaseService
from yield_services._inputs import as_uuid, cut_pairs
from yield_services.catalog_service import CatalogService

logger = get_logger("services.template_store")

ItemsInput = Mapping[Any, Any] | Iterable[tuple[Any, Any]]


class YieldTemplateStore(BaseService[YieldTemplate]):
    """
    Persistence of yield templates.

    Non-goals:
        - Does not decide new percentages (AdaptiveLearner does).
    """

    def __init__(self, session, settings: EngineSettings | None = None):
        super().__init__(session)
        self._settings = settings or EngineSettings()
        self._catalog = CatalogService(session)

    # -- reads --------------------------------------------------------------

    def _find(
        self,
        category_id: UUID,
        range_id: UUID,
        active_only: bool,
        for_update: bool = False,
    ) -> YieldTemplate | None:
        stmt = select(YieldTemplate).where(
            YieldTemplate.category_id == category_id,
            YieldTemplate.range_id == range_id,
        )
        if active_only:
            stmt = stmt.where(YieldTemplate.status == TemplateStatus.ACTIVE.value)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def get(self, category_id: Any, range_id: Any) -> YieldTemplate:
        """Template for the pairing in any status."""
        cat = as_uuid(category_id, "category_id")
        rng = as_uuid(range_id, "range_id")
        template = self._find(cat, rng, active_only=False)
        if template is None:
            raise TemplateNotFoundError(str(cat), str(rng), active_only=False)
        return template

    def get_active(self, category_id: Any, range_id: Any) -> YieldTemplate:
        """Active template for the pairing; draft and archived are invisible."""
        cat = as_uuid(category_id, "category_id")
        rng = as_uuid(range_id, "range_id")
        template = self._find(cat, rng, active_only=True)
        if template is None:
            raise TemplateNotFoundError(str(cat), str(rng))
        return template

    def find_active(
        self,
        category_id: UUID,
        range_id: UUID,
        for_update: bool = False,
    ) -> YieldTemplate | None:
        """Like ``get_active`` but returns None; optionally locks the row."""
        return self._find(category_id, range_id, active_only=True, for_update=for_update)

    def get_by_id(self, template_id: Any, for_update: bool = False) -> YieldTemplate:
        tid = as_uuid(template_id, "template_id")
        stmt = select(YieldTemplate).where(YieldTemplate.id == tid)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        template = self.session.execute(stmt).scalar_one_or_none()
        if template is None:
            raise InvalidInputError("template_id", f"no yield template {tid}")
        return template

    def list_templates(self, status: TemplateStatus | None = None) -> list[YieldTemplate]:
        stmt = select(YieldTemplate).order_by(YieldTemplate.name)
        if status is not None:
            stmt = stmt.where(YieldTemplate.status == TemplateStatus(status).value)
        return list(self.session.execute(stmt).scalars())

    @staticmethod
    def _ordered_items(template: YieldTemplate) -> list[YieldTemplateItem]:
        return sorted(template.items, key=lambda i: (i.cut.display_order, i.cut.name))

    def snapshot(self, template: YieldTemplate) -> TemplateSnapshot:
        """Immutable view for the projector, in display order."""
        return TemplateSnapshot(
            template_id=template.id,
            name=template.name,
            version=template.version,
            lines=tuple(
                TemplateLine(
                    cut_id=item.cut_id,
                    cut_name=item.cut.name,
                    percentage=item.percentage_yield,
                    display_order=item.cut.display_order,
                    cut_category=item.cut.cut_category,
                    cut_role=item.cut.cut_role,
                    is_sellable=item.cut.is_sellable,
                )
                for item in self._ordered_items(template)
            ),
        )

    def learning_lines(self, template: YieldTemplate) -> list[LearningLine]:
        return [
            LearningLine(
                cut_id=item.cut_id,
                percentage=item.percentage_yield,
                display_order=item.cut.display_order,
            )
            for item in self._ordered_items(template)
        ]

    # -- writes -------------------------------------------------------------

    def _validated_items(
        self,
        template_id: Any,
        items: ItemsInput,
        status: TemplateStatus,
    ) -> list[tuple[UUID, Decimal]]:
        pairs = cut_pairs(items, "items")
        self._catalog.get_cuts(cut_id for cut_id, _ in pairs)

        if status == TemplateStatus.ACTIVE and pairs:
            total = sum((pct for _, pct in pairs), Decimal("0"))
            if abs(total - HUNDRED) > self._settings.sum_tolerance:
                logger.warning(
                    "template_sum_rejected",
                    extra={"template_id": str(template_id), "total": str(total)},
                )
                raise TemplateSumInvalidError(str(template_id), total)
        return pairs

    def create_template(
        self,
        category_id: Any,
        range_id: Any,
        items: ItemsInput,
        name: str | None = None,
        status: TemplateStatus | str = TemplateStatus.ACTIVE,
        reference_weight: Decimal | None = None,
        notes: str | None = None,
    ) -> YieldTemplate:
        """
        Create the template for a (category, range) pairing.

        An active template with items must sum to 100 within tolerance.  An
        empty one is allowed; projecting it raises NoTemplateItemsError.
        """
        category = self._catalog.get_category(category_id)
        weight_range = self._catalog.get_weight_range(range_id)
        try:
            status = TemplateStatus(status)
        except ValueError as e:
            raise InvalidInputError("status", str(e)) from e

        label = name or f"{category.name} {weight_range.label}"
        pairs = self._validated_items(label, items, status)

        template = YieldTemplate(
            category_id=category.id,
            range_id=weight_range.id,
            name=label,
            reference_weight=reference_weight,
            notes=notes,
            status=status.value,
            version=1,
        )
        template.items = [
            YieldTemplateItem(cut_id=cut_id, percentage_yield=pct) for cut_id, pct in pairs
        ]
        self.session.add(template)
        self.session.flush()

        logger.info(
            "yield_template_created",
            extra={
                "template_id": str(template.id),
                "template_name": label,
                "status": status.value,
                "item_count": len(pairs),
            },
        )
        return template

    def replace_items(
        self,
        template_id: Any,
        items: ItemsInput,
        expected_version: int | None = None,
    ) -> YieldTemplate:
        """
        Atomically replace the full item set of a template.

        Items whose cut stays are updated in place, dropped cuts are
        deleted, new cuts are inserted.  The version moves from
        ``expected_version`` (or the version read under lock) to +1.

        Raises:
            OptimisticLockError: the stored version is not the expected one.
        """
        template = self.get_by_id(template_id, for_update=True)
        expected = template.version if expected_version is None else expected_version
        if template.version != expected:
            logger.warning(
                "template_version_conflict",
                extra={
                    "template_id": str(template.id),
                    "expected_version": expected,
                    "actual_version": template.version,
                },
            )
            raise OptimisticLockError("YieldTemplate", str(template.id), expected)

        pairs = self._validated_items(template.id, items, TemplateStatus(template.status))

        by_cut = {item.cut_id: item for item in template.items}
        kept: list[YieldTemplateItem] = []
        for cut_id, pct in pairs:
            item = by_cut.get(cut_id)
            if item is None:
                item = YieldTemplateItem(cut_id=cut_id, percentage_yield=pct)
            else:
                item.percentage_yield = pct
            kept.append(item)
        template.items = kept
        self.session.flush()

        result = self.session.execute(
            update(YieldTemplate)
            .where(YieldTemplate.id == template.id, YieldTemplate.version == expected)
            .values(version=expected + 1)
        )
        if result.rowcount != 1:
            logger.warning(
                "template_version_conflict",
                extra={"template_id": str(template.id), "expected_version": expected},
            )
            raise OptimisticLockError("YieldTemplate", str(template.id), expected)
        self.session.flush()

        logger.info(
            "template_items_replaced",
            extra={
                "template_id": str(template.id),
                "item_count": len(pairs),
                "version": expected + 1,
            },
        )
        return template

    def set_status(self, template_id: Any, status: TemplateStatus | str) -> YieldTemplate:
        """Change status; activating requires a valid percentage sum."""
        try:
            new_status = TemplateStatus(status)
        except ValueError as e:
            raise InvalidInputError("status", str(e)) from e

        template = self.get_by_id(template_id, for_update=True)
        if new_status == TemplateStatus.ACTIVE:
            self._validated_items(
                template.id,
                [(i.cut_id, i.percentage_yield) for i in template.items],
                new_status,
            )
        previous = template.status
        template.status = new_status.value
        self.session.flush()
        logger.info(
            "template_status_changed",
            extra={
                "template_id": str(template.id),
                "from_status": str(previous),
                "to_status": new_status.value,
            },
        )
        return template
