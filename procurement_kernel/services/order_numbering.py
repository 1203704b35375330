"""
OrderNumberingService -- per-day purchase order numbers.

Responsibility:
    Produces human-readable numbers of the form ``PO-YYYYMMDD-NNN`` where
    NNN restarts at 001 each business day.  The day is taken from the
    injected Clock in the configured business timezone.

Invariants enforced:
    - Allocation goes through SequenceService, i.e. a locked counter row
      named ``po_number:YYYYMMDD``.  Two concurrent creators can never be
      handed the same number, and the counter does not depend on which
      orders still exist.
    - Numbers are handed out in strictly increasing order within a day.
      A rolled-back transaction returns its number to the pool.

Failure modes:
    - IntegrityError from the uq_purchase_order_number constraint if a
      caller-supplied number collides with an allocated one.
"""

from datetime import date

from sqlalchemy.orm import Session

from procurement_kernel.config import KernelSettings
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.order_numbering")

COUNTER_PREFIX = "po_number"


class OrderNumberingService:
    """
    Allocates purchase order numbers.

    Non-goals:
        - Does NOT commit.  ``next_order_number`` reserves the number inside
          the caller's transaction; PurchasingService decides whether that
          transaction is the order insert itself or a standalone reservation.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or KernelSettings()
        self._sequences = SequenceService(session)

    def business_date(self) -> date:
        """Today in the business timezone."""
        return self._clock.now().astimezone(self._settings.tzinfo).date()

    @staticmethod
    def counter_name(day: date) -> str:
        return f"{COUNTER_PREFIX}:{day:%Y%m%d}"

    def format_number(self, day: date, value: int) -> str:
        width = self._settings.po_number_width
        return f"{self._settings.po_number_prefix}-{day:%Y%m%d}-{value:0{width}d}"

    def next_order_number(self) -> str:
        """
        Reserve and return the next number for today.

        The first call of a day returns ``PO-YYYYMMDD-001``.
        """
        day = self.business_date()
        value = self._sequences.next_value(self.counter_name(day))
        po_number = self.format_number(day, value)
        logger.info(
            "po_number_allocated",
            extra={"po_number": po_number, "business_date": day.isoformat()},
        )
        return po_number

    def peek_next_order_number(self) -> str:
        """
        The number ``next_order_number`` would return now, without reserving it.

        Suitable for pre-filling a form; another creator may take it first.
        """
        day = self.business_date()
        current = self._sequences.current_value(self.counter_name(day)) or 0
        return self.format_number(day, current + 1)
