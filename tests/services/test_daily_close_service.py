"""Tests for DailyCloseService: scale totals, re-closing and FIFO wiring."""

from datetime import date
from decimal import Decimal

import pytest

from yield_kernel.exceptions import InvalidInputError
from yield_kernel.models.general_stock import GeneralStockStatus
from yield_services.daily_close_service import DailyCloseService, total_scale_kg
from yield_services.general_stock_ledger import GeneralStockLedger


@pytest.fixture
def ledger(session, deterministic_clock, settings):
    return GeneralStockLedger(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def closes(session, deterministic_clock, settings):
    return DailyCloseService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def two_batches(ledger):
    """100 kg entered on the 1st, 200 kg on the 2nd, no waste."""
    def _batch(description, kg, day):
        return ledger.register_batch(
            batch_description=description,
            animal_category="Novillo",
            unit_count=1,
            total_weight_kg=Decimal(kg),
            entry_date=date(2026, 3, day),
            bone_percent=Decimal("0"),
            fat_percent=Decimal("0"),
            shrink_percent=Decimal("0"),
        )
    return _batch("Tropa 1", "100", 1), _batch("Tropa 2", "200", 2)


def _readings(*pairs):
    return [
        {"scale": str(i), "kg_start": start, "kg_end": end}
        for i, (start, end) in enumerate(pairs, start=1)
    ]


class TestTotalScaleKg:

    def test_sums_differences(self):
        assert total_scale_kg(_readings(("10", "90"), ("0", "40"))) == Decimal("120.00")

    def test_negative_difference_contributes_nothing(self):
        assert total_scale_kg(_readings(("50", "20"), ("0", "5"))) == Decimal("5.00")

    def test_missing_values_count_as_zero(self):
        assert total_scale_kg([{"kg_end": 5}, {"kg_start": "", "kg_end": None}]) == Decimal("5.00")

    def test_rounded_half_up(self):
        assert total_scale_kg([{"kg_start": "1.005", "kg_end": "2"}]) == Decimal("1.00")
        assert total_scale_kg([{"kg_start": "0", "kg_end": "1.005"}]) == Decimal("1.01")

    def test_empty(self):
        assert total_scale_kg(None) == Decimal("0.00")

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidInputError):
            total_scale_kg([{"kg_start": "abc", "kg_end": "1"}])


class TestCloseDay:

    def test_first_close(self, closes, two_batches, deterministic_clock):
        older, newer = two_batches

        result = closes.close_day(
            scale_readings=_readings((10, 90), (0, 40)),
            closed_by="cajero",
        )

        assert result.reclosed is False
        assert result.close.close_date == deterministic_clock.today()
        assert result.total_scale_kg == Decimal("120.00")
        assert result.close.scale_readings == [
            {"scale": "1", "kg_start": "10", "kg_end": "90"},
            {"scale": "2", "kg_start": "0", "kg_end": "40"},
        ]
        assert older.sold_kg == Decimal("100.00")
        assert older.status == GeneralStockStatus.DEPLETED.value
        assert newer.sold_kg == Decimal("20.00")
        assert result.unaccounted_kg == Decimal("0.00")

    def test_reclose_replaces_deductions(self, closes, two_batches):
        older, newer = two_batches
        closes.close_day(scale_readings=_readings((0, 120)))

        result = closes.close_day(scale_readings=_readings((0, 50)), notes="corregido")

        assert result.reclosed is True
        assert result.deduction.reversed_kg == Decimal("120.00")
        assert older.sold_kg == Decimal("50.00")
        assert older.status == GeneralStockStatus.ACTIVE.value
        assert newer.sold_kg == Decimal("0.00")
        assert result.close.notes == "corregido"
        assert len(closes.list_closes()) == 1

    def test_reclose_same_readings_is_idempotent(self, closes, two_batches):
        older, newer = two_batches
        first = closes.close_day(scale_readings=_readings((0, 150)))
        second = closes.close_day(scale_readings=_readings((0, 150)))

        assert second.close.id == first.close.id
        assert older.sold_kg == Decimal("100.00")
        assert newer.sold_kg == Decimal("50.00")
        assert second.unaccounted_kg == first.unaccounted_kg

    def test_overconsumption_recorded(self, closes, two_batches):
        result = closes.close_day(scale_readings=_readings((0, 400)))

        assert result.unaccounted_kg == Decimal("100.00")
        assert result.close.unaccounted_kg == Decimal("100.00")
        assert all(b.status == GeneralStockStatus.DEPLETED.value for b in two_batches)

    def test_reclosing_earlier_day(self, closes, two_batches):
        older, newer = two_batches
        closes.close_day(close_date=date(2026, 3, 2), scale_readings=_readings((0, 120)))
        closes.close_day(close_date=date(2026, 3, 3), scale_readings=_readings((0, 50)))
        assert newer.sold_kg == Decimal("70.00")

        closes.close_day(close_date=date(2026, 3, 2), scale_readings=[])

        assert older.sold_kg == Decimal("0.00")
        assert older.status == GeneralStockStatus.ACTIVE.value
        assert newer.sold_kg == Decimal("50.00")

    def test_no_readings(self, closes, two_batches):
        result = closes.close_day()
        assert result.total_scale_kg == Decimal("0.00")
        assert result.close.scale_readings is None
        assert result.deduction.deductions == ()

    def test_close_logged_with_context(self, closes, two_batches, captured_logs):
        result = closes.close_day(scale_readings=_readings((0, 10)), closed_by="cajero")

        started = [r for r in captured_logs() if r["message"] == "daily_close_started"]
        assert started[0]["close_id"] == str(result.close.id)
        assert started[0]["actor_id"] == "cajero"
        assert started[0]["total_scale_kg"] == "10.00"

    def test_get_and_list(self, closes, two_batches):
        closes.close_day(close_date=date(2026, 3, 1))
        closes.close_day(close_date=date(2026, 3, 2))

        assert closes.get_close(date(2026, 3, 1)) is not None
        assert closes.get_close(date(2026, 2, 28)) is None
        assert [c.close_date for c in closes.list_closes()] == [
            date(2026, 3, 2),
            date(2026, 3, 1),
        ]
