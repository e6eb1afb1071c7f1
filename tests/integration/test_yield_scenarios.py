"""
End-to-end scenarios across the services, each in one transaction.

1. First real breakdown moves Hueso 16.00 -> 15.50.
2. Projecting the seeded template over 100 kg leaves no variance.
3. A depleted batch is skipped; the next one absorbs the day.
4. Re-closing with a corrected reading replaces the deduction.
5. Consumption beyond capacity is kept as unaccounted kg.
"""

from datetime import date
from decimal import Decimal

import pytest

from yield_kernel.models.general_stock import GeneralStockStatus
from yield_services import (
    DailyCloseService,
    GeneralStockLedger,
    LearningService,
    ProjectionService,
)


@pytest.fixture
def ledger(session, deterministic_clock, settings):
    return GeneralStockLedger(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def closes(session, deterministic_clock, settings):
    return DailyCloseService(session, clock=deterministic_clock, settings=settings)


def _batch(ledger, description, sellable, day):
    return ledger.register_batch(
        batch_description=description,
        animal_category="Vaquillona",
        unit_count=1,
        total_weight_kg=Decimal(sellable),
        entry_date=date(2026, 3, day),
        bone_percent=Decimal("0"),
        fat_percent=Decimal("0"),
        shrink_percent=Decimal("0"),
    )


def _scale(kg):
    return [{"scale": "mostrador", "kg_start": "0", "kg_end": kg}]


class TestLearningScenario:

    def test_first_observation_blends_halfway(self, session, settings, three_cut_setup):
        cuts = three_cut_setup["cuts"]

        result = LearningService(session, settings).record_real_yield(
            category_id=three_cut_setup["category"].id,
            total_weight=Decimal("100"),
            items={cuts["Hueso"].id: Decimal("15")},
        )

        changes = {c.cut_name: c for c in result.learning.changes}
        assert result.learning.learning_rate == Decimal("0.500")
        assert changes["Hueso T"].new_pct == Decimal("15.50")
        # Asado was not weighed; the residual lands on the largest line
        assert changes["Lomo T"].new_pct == Decimal("60.50")
        assert "Asado T" not in changes
        template = three_cut_setup["template"]
        assert sum(i.percentage_yield for i in template.items) == Decimal("100.00")


class TestProjectionScenario:

    def test_seeded_template_projects_without_variance(self, session, settings, vaquillona):
        result = ProjectionService(session, settings).estimate_stock(
            category_id=vaquillona.id,
            total_weight=Decimal("100"),
            unit_count=1,
        )

        per_cut = {c.cut_name: c.estimated_kg for c in result.projection.per_cut}
        assert per_cut["Lomo"] == Decimal("2.80")
        assert result.total_projected == Decimal("100.00")
        assert result.variance == Decimal("0.00")


class TestGeneralStockScenarios:

    def test_depleted_batch_skipped(self, closes, ledger):
        batch_a = _batch(ledger, "A", "80", 1)
        batch_b = _batch(ledger, "B", "50", 2)
        closes.close_day(close_date=date(2026, 3, 1), scale_readings=_scale("80"))
        assert batch_a.status == GeneralStockStatus.DEPLETED.value

        result = closes.close_day(close_date=date(2026, 3, 2), scale_readings=_scale("30"))

        assert [d.batch_id for d in result.deduction.deductions] == [batch_b.id]
        assert batch_b.sold_kg == Decimal("30.00")
        assert batch_a.sold_kg == Decimal("80.00")
        assert result.unaccounted_kg == Decimal("0.00")

    def test_corrected_reading_recomputes_close(self, closes, ledger):
        _batch(ledger, "A", "80", 1)
        batch_b = _batch(ledger, "B", "50", 2)
        closes.close_day(close_date=date(2026, 3, 1), scale_readings=_scale("80"))
        closes.close_day(close_date=date(2026, 3, 2), scale_readings=_scale("30"))

        result = closes.close_day(close_date=date(2026, 3, 2), scale_readings=_scale("40"))

        assert result.reclosed is True
        assert result.deduction.reversed_kg == Decimal("30.00")
        assert batch_b.sold_kg == Decimal("40.00")

    def test_overconsumption_reported(self, closes, ledger):
        batch = _batch(ledger, "Única", "50", 1)

        result = closes.close_day(close_date=date(2026, 3, 2), scale_readings=_scale("200"))

        assert result.deduction.deducted_kg == Decimal("50.00")
        assert batch.status == GeneralStockStatus.DEPLETED.value
        assert result.unaccounted_kg == Decimal("150.00")
