"""
Property-based tests for the pure engines.

Properties checked:
- Projection: deterministic, per-cut kg within half a cent of exact, variance is exactly
  what rounding left over and nothing is redistributed.
- Learning: a template that sums to 100 still sums to exactly 100.00 after
  any observation whose shares sum to 100, and no line goes negative.
- Learning rate: never above the initial rate, never below the floor,
  non-increasing with the observation count.
- FIFO: every kilogram is either deducted or reported unaccounted, only
  the last touched batch may stay partially consumed.
- Sellable kilograms stay within [0, total weight].
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from yield_engines.fifo import BatchCapacity, FifoPlanner
from yield_engines.learning import AdaptiveLearner, LearningLine, learning_rate
from yield_engines.projection import TemplateLine, TemplateSnapshot, YieldProjector
from yield_engines.yield_estimate import sellable_kg
from yield_kernel.domain.values import HUNDRED, ZERO, round2

PROPERTY_SETTINGS = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)

weights = st.decimals(
    min_value=Decimal("1"),
    max_value=Decimal("5000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


@composite
def percentages_summing_to_hundred(draw, min_lines=2, max_lines=8):
    """Two-decimal percentages summing to exactly 100, residual on the largest."""
    shares = draw(
        st.lists(st.integers(min_value=1, max_value=1000), min_size=min_lines, max_size=max_lines)
    )
    total = sum(shares)
    pcts = [round2(Decimal(s) * HUNDRED / Decimal(total)) for s in shares]
    largest = max(range(len(pcts)), key=lambda i: pcts[i])
    pcts[largest] += HUNDRED - sum(pcts, ZERO)
    return pcts


@composite
def templates(draw):
    pcts = draw(percentages_summing_to_hundred())
    return TemplateSnapshot(
        template_id="tpl",
        name="fuzz",
        lines=tuple(
            TemplateLine(
                cut_id=f"cut{i}",
                cut_name=f"Corte {i}",
                percentage=pct,
                display_order=i,
            )
            for i, pct in enumerate(pcts)
        ),
    )


@composite
def batch_sets(draw):
    count = draw(st.integers(min_value=0, max_value=6))
    batches = []
    for n in range(count):
        sellable = draw(weights)
        sold = draw(
            st.decimals(min_value=ZERO, max_value=sellable, places=2, allow_nan=False)
        )
        batches.append(
            BatchCapacity(
                batch_id=f"b{n}",
                entry_date=date(2026, 3, 1) + timedelta(days=draw(st.integers(0, 3))),
                batch_number=n + 1,
                sellable_kg=sellable,
                sold_kg=sold,
            )
        )
    return batches


class TestProjectionProperties:

    @PROPERTY_SETTINGS
    @given(template=templates(), total_weight=weights)
    def test_variance_is_rounding_residue(self, template, total_weight):
        result = YieldProjector().project(template=template, total_weight=total_weight)

        assert result.total_projected == sum((c.estimated_kg for c in result.per_cut), ZERO)
        assert result.variance == total_weight - result.total_projected
        for cut in result.per_cut:
            exact = total_weight * cut.percentage / HUNDRED
            assert abs(cut.estimated_kg - exact) <= Decimal("0.005")
        assert abs(result.variance) <= Decimal("0.005") * len(result.per_cut)

    @PROPERTY_SETTINGS
    @given(template=templates(), total_weight=weights)
    def test_deterministic(self, template, total_weight):
        projector = YieldProjector()
        first = projector.project(template=template, total_weight=total_weight)
        second = projector.project(template=template, total_weight=total_weight)
        assert first == second

    @PROPERTY_SETTINGS
    @given(template=templates(), total_weight=weights)
    def test_lines_in_display_order(self, template, total_weight):
        result = YieldProjector().project(template=template, total_weight=total_weight)
        assert [c.cut_id for c in result.per_cut] == [line.cut_id for line in template.lines]


class TestLearningProperties:

    @PROPERTY_SETTINGS
    @given(
        current=percentages_summing_to_hundred(min_lines=3, max_lines=3),
        kilos=st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("80"), places=2),
            min_size=3,
            max_size=3,
        ),
        count=st.integers(min_value=1, max_value=500),
    )
    def test_template_stays_at_hundred(self, current, kilos, count):
        lines = [
            LearningLine(cut_id=f"cut{i}", percentage=pct, display_order=i)
            for i, pct in enumerate(current)
        ]
        registered = sum(kilos, ZERO)
        observed = {f"cut{i}": kg * HUNDRED / registered for i, kg in enumerate(kilos)}

        outcome = AdaptiveLearner().apply(
            template_id="tpl",
            lines=lines,
            observed=observed,
            observation_count=count,
        )

        assert outcome.total_percentage == HUNDRED
        assert sum(outcome.new_percentages.values(), ZERO) == HUNDRED
        assert all(pct >= ZERO for pct in outcome.new_percentages.values())
        assert all(pct == round2(pct) for pct in outcome.new_percentages.values())

    @PROPERTY_SETTINGS
    @given(count=st.integers(min_value=1, max_value=100_000))
    def test_rate_bounds_and_decay(self, count):
        rate = learning_rate(count)
        assert Decimal("0.1") <= rate <= Decimal("0.5")
        assert learning_rate(count + 1) <= rate


class TestFifoProperties:

    @PROPERTY_SETTINGS
    @given(batches=batch_sets(), total=st.decimals(min_value=ZERO, max_value=Decimal("20000"), places=2))
    def test_every_kilogram_accounted(self, batches, total):
        plan = FifoPlanner().plan(batches=batches, total_kg=total)

        assert plan.total_deducted + plan.unaccounted_kg == total
        by_id = {b.batch_id: b for b in batches}
        for allocation in plan.allocations:
            batch = by_id[allocation.batch_id]
            assert ZERO < allocation.deducted_kg <= batch.remaining_kg
            assert allocation.sold_kg_after == batch.sold_kg + allocation.deducted_kg
        assert all(a.depleted for a in plan.allocations[:-1])
        if plan.unaccounted_kg > ZERO:
            assert all(a.depleted for a in plan.allocations)

    @PROPERTY_SETTINGS
    @given(batches=batch_sets(), total=st.decimals(min_value=ZERO, max_value=Decimal("20000"), places=2))
    def test_allocations_follow_entry_order(self, batches, total):
        plan = FifoPlanner().plan(batches=batches, total_kg=total)
        by_id = {b.batch_id: b for b in batches}
        keys = [
            (by_id[a.batch_id].entry_date, by_id[a.batch_id].batch_number)
            for a in plan.allocations
        ]
        assert keys == sorted(keys)


class TestSellableProperties:

    @PROPERTY_SETTINGS
    @given(
        total_weight=weights,
        bone=st.decimals(min_value=ZERO, max_value=Decimal("40"), places=2),
        fat=st.decimals(min_value=ZERO, max_value=Decimal("30"), places=2),
        shrink=st.decimals(min_value=ZERO, max_value=Decimal("29.99"), places=2),
    )
    def test_within_total_weight(self, total_weight, bone, fat, shrink):
        result = sellable_kg(total_weight, bone, fat, shrink)
        assert ZERO <= result <= total_weight
        assert result == round2(result)
