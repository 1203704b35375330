"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing numbers for named sequences: the ledger
    ``seq`` of inventory transactions and the per-day purchase order
    number.  Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) to guarantee uniqueness and ordering under
    concurrent access.

Invariants enforced:
    - The counter row is the sole source of truth for the next value.
      Reading the highest existing number and adding one is never used:
      two transactions doing that concurrently compute the same number.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session.begin():
            seq = SequenceService(session).next_value(SequenceService.INVENTORY_TRANSACTION)
    """

    INVENTORY_TRANSACTION = "inventory_transaction"

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        1. Locks the sequence row (or creates it if it does not exist)
        2. Increments the counter
        3. Returns the new value

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for this sequence name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use of this sequence.  Another transaction may be creating
            # it at the same moment, so insert inside a savepoint.
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
                counter = self._lock_counter(sequence_name)
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
        """
        Current value of a sequence without incrementing, or None if the
        sequence has never been used.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        return counter.current_value if counter else None
