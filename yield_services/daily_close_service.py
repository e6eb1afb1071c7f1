"""
yield_services.daily_close_service -- End-of-day close driving bulk stock consumption.

Responsibility:
    Upsert the DailyClose of a date from the day's scale readings and run
    the FIFO deduction for it.  Re-closing a date reuses the same close row
    and therefore the same deduction set, which makes re-closing idempotent.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Delegates all batch mutation to GeneralStockLedger.

Invariants enforced:
    - One DailyClose per date (unique close_date).
    - total_scale_kg = round2(sum of max(0, kg_end - kg_start)); a scale
      whose end reading is below its start contributes nothing.

Failure modes:
    - InvalidInputError for non-numeric readings.
    - Everything GeneralStockLedger.apply_daily_deduction raises.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import select

from yield_config.schema import EngineSettings
from yield_kernel.domain.clock import Clock, SystemClock
from yield_kernel.domain.values import ZERO, round2
from yield_kernel.logging_config import LogContext, get_logger
from yield_kernel.models.general_stock import DailyClose
from yield_kernel.services.base import BaseService
from yield_services._inputs import as_decimal
from yield_services.general_stock_ledger import DeductionResult, GeneralStockLedger

logger = get_logger("services.daily_close")


def _reading_value(reading: Mapping[str, Any], key: str) -> Decimal:
    value = reading.get(key)
    if value is None or value == "":
        return ZERO
    return as_decimal(value, key)


def normalize_readings(readings: Iterable[Mapping[str, Any]] | None) -> list[dict[str, str]]:
    """JSON-safe copy of the readings with numeric fields as strings."""
    normalized: list[dict[str, str]] = []
    for reading in readings or ():
        entry = {k: str(v) for k, v in reading.items() if v is not None}
        entry["kg_start"] = str(_reading_value(reading, "kg_start"))
        entry["kg_end"] = str(_reading_value(reading, "kg_end"))
        normalized.append(entry)
    return normalized


def total_scale_kg(readings: Iterable[Mapping[str, Any]] | None) -> Decimal:
    total = ZERO
    for reading in readings or ():
        used = _reading_value(reading, "kg_end") - _reading_value(reading, "kg_start")
        if used > ZERO:
            total += used
    return round2(total)


@dataclass(frozen=True)
class DailyCloseResult:
    close: DailyClose
    total_scale_kg: Decimal
    reclosed: bool
    deduction: DeductionResult

    @property
    def unaccounted_kg(self) -> Decimal:
        return self.deduction.unaccounted_kg


class DailyCloseService(BaseService[DailyClose]):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger = GeneralStockLedger(session, clock=self._clock, settings=settings)

    def get_close(self, close_date: date) -> DailyClose | None:
        return self.session.execute(
            select(DailyClose).where(DailyClose.close_date == close_date)
        ).scalar_one_or_none()

    def list_closes(self, limit: int = 30) -> list[DailyClose]:
        return list(
            self.session.execute(
                select(DailyClose).order_by(DailyClose.close_date.desc()).limit(limit)
            ).scalars()
        )

    def close_day(
        self,
        close_date: date | None = None,
        scale_readings: Iterable[Mapping[str, Any]] | None = None,
        notes: str | None = None,
        closed_by: str | None = None,
    ) -> DailyCloseResult:
        """
        Close (or re-close) a day.

        Args:
            close_date: Day being closed; defaults to today.
            scale_readings: One mapping per scale with ``kg_start`` and
                ``kg_end``; other keys (e.g. ``scale``) are kept as is.
            notes: Free text.
            closed_by: Who closed the day.
        """
        day = close_date or self._clock.today()
        readings = list(scale_readings or ())
        total = total_scale_kg(readings)

        close = self.session.execute(
            select(DailyClose).where(DailyClose.close_date == day).with_for_update()
        ).scalar_one_or_none()
        reclosed = close is not None
        if close is None:
            close = DailyClose(close_date=day)
            self.session.add(close)

        close.scale_readings = normalize_readings(readings) or None
        close.total_scale_kg = total
        close.notes = notes
        close.closed_by = closed_by
        self.session.flush()

        with LogContext.bind(close_id=close.id, actor_id=closed_by):
            logger.info(
                "daily_close_started",
                extra={
                    "close_date": day,
                    "total_scale_kg": str(total),
                    "reclosed": reclosed,
                    "reading_count": len(readings),
                },
            )
            deduction = self._ledger.apply_daily_deduction(close.id, total)

        return DailyCloseResult(
            close=close,
            total_scale_kg=total,
            reclosed=reclosed,
            deduction=deduction,
        )
