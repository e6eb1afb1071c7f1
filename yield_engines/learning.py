"""
yield_engines.learning -- EMA recalibration of a yield template.

Responsibility:
    Blend a template's cut percentages toward the percentages measured in
    one real carcass breakdown, then put the rounded result back on exactly
    100.00.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by LearningService, which owns locking and persistence.

Invariants enforced:
    - alpha = max(floor, initial / sqrt(observation_count)); non-increasing
      in observation_count and never below floor.
    - new = alpha * observed + (1 - alpha) * old, only for cuts present in
      the observation.  Absent cuts keep their stored value untouched.
    - Cuts observed but missing from the template are ignored: learning
      never adds or removes template cuts.
    - After rounding, if |100 - sum| > threshold the signed difference goes
      to the single largest line (first in display order on ties).
    - The result sums to 100 +/- tolerance with no negative line, or
      YieldSumInvariantError is raised.  That is a bug, never user error.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from yield_engines.tracer import traced_engine
from yield_kernel.domain.values import HUNDRED, ZERO, round2
from yield_kernel.exceptions import InvalidInputError, YieldSumInvariantError
from yield_kernel.logging_config import get_logger

logger = get_logger("engines.learning")

DEFAULT_INITIAL_RATE = Decimal("0.5")
DEFAULT_RATE_FLOOR = Decimal("0.1")
DEFAULT_SUM_TOLERANCE = Decimal("0.01")
DEFAULT_NORMALIZATION_THRESHOLD = Decimal("0.001")


def learning_rate(
    observation_count: int,
    initial: Decimal = DEFAULT_INITIAL_RATE,
    floor: Decimal = DEFAULT_RATE_FLOOR,
) -> Decimal:
    """
    Learning rate for the ``observation_count``-th observation of a pairing.

    The count includes the observation being applied, so the first one
    gets ``initial``.
    """
    if observation_count < 1:
        raise InvalidInputError("observation_count", "must be at least 1")
    return max(floor, initial / Decimal(observation_count).sqrt())


@dataclass(frozen=True)
class LearningLine:
    """A template line as the learner sees it."""

    cut_id: Any
    percentage: Decimal
    display_order: int = 0


@dataclass(frozen=True)
class CutUpdate:
    cut_id: Any
    previous_pct: Decimal
    observed_pct: Decimal | None
    new_pct: Decimal

    @property
    def changed(self) -> bool:
        return self.new_pct != self.previous_pct


@dataclass(frozen=True)
class NormalizedLines:
    values: dict[Any, Decimal]
    adjustment: Decimal
    adjusted_cut_id: Any | None


@dataclass(frozen=True)
class LearningOutcome:
    """New template percentages plus what the pass did to get there."""

    learning_rate: Decimal
    updates: tuple[CutUpdate, ...]
    normalization_adjustment: Decimal
    adjusted_cut_id: Any | None
    total_percentage: Decimal
    ignored_cut_ids: tuple[Any, ...]

    @property
    def new_percentages(self) -> dict[Any, Decimal]:
        return {u.cut_id: u.new_pct for u in self.updates}


def normalize_to_hundred(
    lines: Sequence[LearningLine],
    threshold: Decimal = DEFAULT_NORMALIZATION_THRESHOLD,
) -> NormalizedLines:
    """
    Push the rounding residual onto the single largest line.

    ``lines`` carry already-rounded percentages.  Returns the adjusted values
    keyed by cut, the applied difference (zero when within threshold) and
    which cut absorbed it.
    """
    values = {line.cut_id: line.percentage for line in lines}
    diff = HUNDRED - round2(sum(values.values(), ZERO))
    if abs(diff) <= threshold or not lines:
        return NormalizedLines(values=values, adjustment=ZERO, adjusted_cut_id=None)

    ordered = sorted(lines, key=lambda ln: ln.display_order)
    largest = ordered[0]
    for line in ordered[1:]:
        if line.percentage > largest.percentage:
            largest = line

    values[largest.cut_id] = round2(values[largest.cut_id] + diff)
    return NormalizedLines(values=values, adjustment=diff, adjusted_cut_id=largest.cut_id)


class AdaptiveLearner:
    """
    Pure EMA update of template percentages.

    Contract:
        No I/O.  The caller supplies the observation count for the exact
        (category, range) pairing, the new observation included.
    """

    def __init__(
        self,
        initial_rate: Decimal = DEFAULT_INITIAL_RATE,
        rate_floor: Decimal = DEFAULT_RATE_FLOOR,
        sum_tolerance: Decimal = DEFAULT_SUM_TOLERANCE,
        normalization_threshold: Decimal = DEFAULT_NORMALIZATION_THRESHOLD,
    ):
        self.initial_rate = initial_rate
        self.rate_floor = rate_floor
        self.sum_tolerance = sum_tolerance
        self.normalization_threshold = normalization_threshold

    @traced_engine(
        "learning",
        "1.0",
        fingerprint_fields=("lines", "observed", "observation_count"),
    )
    def apply(
        self,
        template_id: Any,
        lines: Sequence[LearningLine],
        observed: Mapping[Any, Decimal],
        observation_count: int,
    ) -> LearningOutcome:
        """
        Blend ``lines`` toward ``observed`` (cut -> unrounded real percentage).

        Raises:
            InvalidInputError: observation_count < 1.
            YieldSumInvariantError: normalized lines miss 100 +/- tolerance
                or a line went negative.
        """
        alpha = learning_rate(observation_count, self.initial_rate, self.rate_floor)
        one_minus_alpha = Decimal("1") - alpha

        blended: list[LearningLine] = []
        for line in lines:
            real_pct = observed.get(line.cut_id)
            if real_pct is None:
                new_pct = line.percentage
            else:
                new_pct = round2(alpha * real_pct + one_minus_alpha * line.percentage)
            blended.append(
                LearningLine(
                    cut_id=line.cut_id,
                    percentage=new_pct,
                    display_order=line.display_order,
                )
            )

        normalized = normalize_to_hundred(blended, self.normalization_threshold)
        total = sum(normalized.values.values(), ZERO)

        negative = [cut for cut, pct in normalized.values.items() if pct < ZERO]
        if abs(total - HUNDRED) > self.sum_tolerance or negative:
            logger.error(
                "yield_sum_invariant_violated",
                extra={
                    "template_id": str(template_id),
                    "total": str(total),
                    "negative_cuts": [str(c) for c in negative],
                },
            )
            raise YieldSumInvariantError(str(template_id), total)

        template_cuts = {line.cut_id for line in lines}
        ignored = tuple(cut for cut in observed if cut not in template_cuts)

        updates = tuple(
            CutUpdate(
                cut_id=line.cut_id,
                previous_pct=line.percentage,
                observed_pct=observed.get(line.cut_id),
                new_pct=normalized.values[line.cut_id],
            )
            for line in lines
        )

        if normalized.adjusted_cut_id is not None:
            logger.info(
                "template_normalized",
                extra={
                    "template_id": str(template_id),
                    "adjustment": str(normalized.adjustment),
                    "adjusted_cut_id": str(normalized.adjusted_cut_id),
                },
            )

        return LearningOutcome(
            learning_rate=alpha,
            updates=updates,
            normalization_adjustment=normalized.adjustment,
            adjusted_cut_id=normalized.adjusted_cut_id,
            total_percentage=total,
            ignored_cut_ids=ignored,
        )
