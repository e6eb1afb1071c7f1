"""
SequenceService -- monotonic numbers via locked counter rows.

Responsibility:
    Allocates the human-facing numbers of real yields ("desposte #12") and
    general stock batches.  The batch number doubles as the FIFO tie-break
    for batches entered on the same day, so it must follow insertion order.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by LearningService and GeneralStockLedger.

Invariants enforced:
    - Values are strictly increasing per name.  The aggregate-max-plus-one
      query is never used; the locked counter row is the source of truth.
    - The increment is transactional: a rollback returns the value.

Failure modes:
    - IntegrityError on concurrent first use of a name is absorbed by a
      savepoint and a locked re-read.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from yield_kernel.logging_config import get_logger
from yield_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional named sequences.

    Usage:
        with session_scope() as session:
            number = SequenceService(session).next_value(SequenceService.REAL_YIELD)
    """

    REAL_YIELD = "real_yield"
    GENERAL_STOCK = "general_stock"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Return the next value (always > 0) for ``sequence_name``.

        The counter row stays locked until the caller's transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
