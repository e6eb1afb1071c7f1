"""
yield_services.learning_service -- Record real yields and learn from them.

Responsibility:
    Persist the measured outcome of one carcass breakdown ("desposte") and,
    when an active template exists for its (category, bracket), move that
    template toward the observation with AdaptiveLearner.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes CatalogService, YieldTemplateStore, SequenceService and the
    pure AdaptiveLearner.  Flush-only; the caller's transaction makes the
    real yield, the template items, the version bump and the applied flag
    land together or not at all.

Invariants enforced:
    - The RealYield is stored whether or not learning happens; missing
      configuration never blocks evidence collection.
    - The template row is read FOR UPDATE and replaced with the version
      read under that lock.
    - The observation count is taken after the new RealYield is flushed,
      so the first observation for a pairing learns with the initial rate.
    - applied_to_template flips False -> True once, in the creating
      transaction.  Reprocessing an existing RealYield is not offered.

Failure modes:
    - InvalidInputError, CategoryNotFoundError, CategoryInactiveError,
      CutNotFoundError, RangeNotFoundError: nothing is written.
    - YieldSumInvariantError: logged at ERROR by the learner; the caller's
      transaction must roll back.
    - OptimisticLockError: a concurrent writer replaced the template.

Audit relevance:
    Every template change is explained by one RealYield carrying its
    items, the learning rate used, and a ``template_learning_applied`` log
    record with before/after percentages.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from yield_config.schema import EngineSettings
from yield_engines.learning import AdaptiveLearner
from yield_kernel.domain.values import ZERO, percent_of, round2, round_places
from yield_kernel.exceptions import InvalidInputError
from yield_kernel.logging_config import LogContext, get_logger
from yield_kernel.models.real_yield import RealYield, RealYieldItem
from yield_kernel.services.base import BaseService
from yield_kernel.services.sequence_service import SequenceService
from yield_services._inputs import cut_pairs, positive_decimal
from yield_services.catalog_service import CatalogService
from yield_services.template_store import YieldTemplateStore

logger = get_logger("services.learning")


@dataclass(frozen=True)
class CutChange:
    cut_id: UUID
    cut_name: str
    previous_pct: Decimal
    new_pct: Decimal


@dataclass(frozen=True)
class LearningReport:
    """What happened to the template.  ``applied=False`` is not an error."""

    applied: bool
    message: str
    learning_rate: Decimal | None = None
    observation_count: int = 0
    template_id: UUID | None = None
    template_version: int | None = None
    changes: tuple[CutChange, ...] = ()
    normalization_adjustment: Decimal = ZERO
    ignored_cut_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class RealYieldResult:
    real_yield: RealYield
    total_kg_registered: Decimal
    variance: Decimal
    variance_percent: Decimal
    learning: LearningReport


class LearningService(BaseService[RealYield]):
    """
    Entry point of the adaptive learning engine.

    Usage:
        with session_scope() as session:
            result = LearningService(session).record_real_yield(
                category_id=vaquillona.id,
                total_weight=Decimal("100"),
                items={hueso.id: Decimal("15"), lomo.id: Decimal("2.9")},
            )
            result.learning.applied  # False when no active template exists
    """

    def __init__(self, session, settings: EngineSettings | None = None):
        super().__init__(session)
        self._settings = settings or EngineSettings()
        self._catalog = CatalogService(session)
        self._templates = YieldTemplateStore(session, self._settings)
        self._sequences = SequenceService(session)
        self._learner = AdaptiveLearner(
            initial_rate=self._settings.learning_rate_initial,
            rate_floor=self._settings.learning_rate_floor,
            sum_tolerance=self._settings.sum_tolerance,
            normalization_threshold=self._settings.normalization_threshold,
        )

    def observation_count(self, category_id: UUID, range_id: UUID) -> int:
        return self.session.execute(
            select(func.count(RealYield.id)).where(
                RealYield.category_id == category_id,
                RealYield.range_id == range_id,
            )
        ).scalar_one()

    def record_real_yield(
        self,
        category_id: Any,
        total_weight: Any,
        items: Mapping[Any, Any] | Iterable[tuple[Any, Any]],
        notes: str | None = None,
    ) -> RealYieldResult:
        """
        Store one breakdown and apply it to the matching active template.

        Args:
            category_id: Animal category of the carcass.
            total_weight: Weight of the whole carcass in kg; also selects
                the bracket (one carcass, so no averaging).
            items: cut_id -> actual kg, each cut at most once.
            notes: Free text kept on the record.
        """
        weight = positive_decimal(total_weight, "total_weight")
        pairs = cut_pairs(items, "items")
        if not pairs:
            raise InvalidInputError("items", "at least one cut is required")

        category = self._catalog.get_category(category_id, require_active=True)
        cuts = self._catalog.get_cuts(cut_id for cut_id, _ in pairs)
        weight_range = self._catalog.resolve_range(weight)

        observed = {cut_id: percent_of(kg, weight) for cut_id, kg in pairs}

        real_yield = RealYield(
            yield_number=self._sequences.next_value(SequenceService.REAL_YIELD),
            category_id=category.id,
            range_id=weight_range.id,
            total_weight=weight,
            notes=notes,
            applied_to_template=False,
        )
        real_yield.items = [
            RealYieldItem(
                cut_id=cut_id,
                actual_kg=kg,
                percentage_real=round2(observed[cut_id]),
            )
            for cut_id, kg in pairs
        ]
        self.session.add(real_yield)
        self.session.flush()

        with LogContext.bind(real_yield_id=real_yield.id):
            logger.info(
                "real_yield_recorded",
                extra={
                    "yield_number": real_yield.yield_number,
                    "category_id": str(category.id),
                    "range_id": str(weight_range.id),
                    "total_weight": str(weight),
                    "item_count": len(pairs),
                },
            )
            learning = self._learn(real_yield, observed, cuts)

        registered = sum((kg for _, kg in pairs), ZERO)
        variance = weight - registered
        return RealYieldResult(
            real_yield=real_yield,
            total_kg_registered=round2(registered),
            variance=round2(variance),
            variance_percent=round2(percent_of(variance, weight)),
            learning=learning,
        )

    def _learn(
        self,
        real_yield: RealYield,
        observed: dict[UUID, Decimal],
        cuts: dict,
    ) -> LearningReport:
        template = self._templates.find_active(
            real_yield.category_id, real_yield.range_id, for_update=True
        )
        if template is None:
            logger.info(
                "learning_skipped",
                extra={"reason": "no_active_template"},
            )
            return LearningReport(
                applied=False,
                message="No active template found for this category and weight range",
            )
        if not template.items:
            logger.warning(
                "learning_skipped",
                extra={"reason": "template_has_no_items", "template_id": str(template.id)},
            )
            return LearningReport(
                applied=False,
                message=f'Template "{template.name}" has no cuts defined',
                template_id=template.id,
                template_version=template.version,
            )

        count = self.observation_count(real_yield.category_id, real_yield.range_id)
        version_read = template.version
        lines = self._templates.learning_lines(template)
        names = {item.cut_id: item.cut.name for item in template.items}

        outcome = self._learner.apply(
            template_id=template.id,
            lines=lines,
            observed=observed,
            observation_count=count,
        )

        self._templates.replace_items(
            template.id,
            [(u.cut_id, u.new_pct) for u in outcome.updates],
            expected_version=version_read,
        )

        real_yield.applied_to_template = True
        real_yield.learning_rate = outcome.learning_rate
        self.session.flush()

        changes = tuple(
            CutChange(
                cut_id=u.cut_id,
                cut_name=names[u.cut_id],
                previous_pct=u.previous_pct,
                new_pct=u.new_pct,
            )
            for u in outcome.updates
            if u.changed
        )
        if outcome.ignored_cut_ids:
            logger.info(
                "observed_cuts_not_in_template",
                extra={
                    "template_id": str(template.id),
                    "cut_names": [cuts[c].name for c in outcome.ignored_cut_ids],
                },
            )

        rate = round_places(outcome.learning_rate, 3)
        logger.info(
            "template_learning_applied",
            extra={
                "template_id": str(template.id),
                "learning_rate": str(rate),
                "observation_count": count,
                "version": template.version,
                "changes": {
                    c.cut_name: [str(c.previous_pct), str(c.new_pct)] for c in changes
                },
            },
        )

        return LearningReport(
            applied=True,
            message=f"Template updated with learning rate {rate * 100:.1f}%",
            learning_rate=rate,
            observation_count=count,
            template_id=template.id,
            template_version=template.version,
            changes=changes,
            normalization_adjustment=outcome.normalization_adjustment,
            ignored_cut_ids=outcome.ignored_cut_ids,
        )

    def list_real_yields(self, limit: int = 20) -> list[RealYield]:
        """Most recent real yields first."""
        if limit <= 0:
            raise InvalidInputError("limit", "must be positive")
        return list(
            self.session.execute(
                select(RealYield).order_by(RealYield.yield_number.desc()).limit(limit)
            ).scalars()
        )
