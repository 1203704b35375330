"""
PurchasingService -- the entry point the surrounding application calls.

Responsibility:
    Owns transaction boundaries for every purchasing operation.  Each
    command runs in exactly one transaction: commit on success, rollback on
    any exception.  Storage failures surface as ``PersistenceError`` so
    callers can tell a retryable outage from a rejected request.

Architecture position:
    Kernel > Services.  The only service that calls ``session.commit()``.
    Delegates to OrderRepository, OrderNumberingService and
    ReceivingCoordinator for writes and to the selectors for reads.

Failure modes:
    - Kernel errors (ValidationError, InvalidStateError, ...) propagate
      unchanged after rollback.
    - SQLAlchemyError is rolled back and re-raised as PersistenceError.
"""

import time
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from procurement_kernel.config import KernelSettings
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.dtos import (
    ChainVerification,
    LedgerEntryView,
    OrderAggregate,
    OrderFilters,
    OrderHeader,
    OrderLineInput,
    OrderStats,
    OrderSummary,
    ReceivableLineView,
    ReceiptResult,
)
from procurement_kernel.domain.order_status import OrderStatus
from procurement_kernel.exceptions import PersistenceError
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.selectors.ledger_selector import LedgerSelector
from procurement_kernel.selectors.order_selector import OrderSelector
from procurement_kernel.services.order_numbering import OrderNumberingService
from procurement_kernel.services.order_repository import OrderRepository, coerce_uuid
from procurement_kernel.services.receiving_coordinator import (
    ReceiptBatch,
    ReceivingCoordinator,
)

logger = get_logger("services.purchasing")

T = TypeVar("T")


class PurchasingService:
    """
    Facade over the purchasing kernel.

    Guarantees:
        - Commit on success, rollback on failure (when auto_commit=True).
        - Queries end their read transaction (when auto_commit=True);
          otherwise the caller owns it.
        - Every command logs ``<operation>_started`` and either
          ``<operation>_completed`` or ``<operation>_failed`` with its
          duration, under a LogContext carrying correlation, actor and
          order ids.

    Usage:
        purchasing = PurchasingService(session)
        po_id = purchasing.create_order(header, lines, actor_id=user_id)
        result = purchasing.receive(po_id, {item_id: 40}, actor_id=user_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or KernelSettings()
        self._auto_commit = auto_commit

        self._orders = OrderRepository(session, self._clock, self._settings)
        self._numbering = OrderNumberingService(session, self._clock, self._settings)
        self._receiving = ReceivingCoordinator(session, self._clock, self._settings)
        self._order_selector = OrderSelector(session)
        self._ledger_selector = LedgerSelector(session)

    def _run(
        self,
        operation: str,
        fn: Callable[[], T],
        actor_id: Any = None,
        po_id: Any = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor_id) if actor_id is not None else None,
            po_id=str(po_id) if po_id is not None else None,
        ):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            try:
                result = fn()
                if self._auto_commit:
                    self._session.commit()
            except SQLAlchemyError as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms, "error_code": PersistenceError.code},
                    exc_info=True,
                )
                raise PersistenceError(operation, str(getattr(exc, "orig", None) or exc)) from exc
            except Exception as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    f"{operation}_failed",
                    extra={
                        "duration_ms": duration_ms,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                    },
                )
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})
            return result

    def _read(self, fn: Callable[[], T]) -> T:
        """Run a query.  With auto_commit its read transaction ends before returning."""
        try:
            return fn()
        finally:
            if self._auto_commit:
                self._session.rollback()

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def create_order(
        self,
        header: OrderHeader | Mapping[str, Any],
        items: Iterable[OrderLineInput | Mapping[str, Any]],
        actor_id: UUID,
    ) -> UUID:
        return self._run(
            "create_order",
            lambda: self._orders.create_order(header, items, actor_id),
            actor_id=actor_id,
        )

    def update_order(
        self,
        po_id: UUID,
        header: OrderHeader | Mapping[str, Any],
        items: Iterable[OrderLineInput | Mapping[str, Any]],
        actor_id: UUID,
    ) -> None:
        self._run(
            "update_order",
            lambda: self._orders.update_order(coerce_uuid(po_id, "po_id"), header, items, actor_id),
            actor_id=actor_id,
            po_id=po_id,
        )

    def receive(
        self,
        po_id: UUID,
        lines: ReceiptBatch,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ReceiptResult:
        return self._run(
            "receive",
            lambda: self._receiving.receive(po_id, lines, actor_id, notes=notes),
            actor_id=actor_id,
            po_id=po_id,
        )

    def place_order(self, po_id: UUID, actor_id: UUID) -> OrderStatus:
        return self._run(
            "place_order",
            lambda: self._orders.place_order(coerce_uuid(po_id, "po_id"), actor_id),
            actor_id=actor_id,
            po_id=po_id,
        )

    def cancel_order(self, po_id: UUID, actor_id: UUID) -> OrderStatus:
        return self._run(
            "cancel_order",
            lambda: self._orders.cancel_order(coerce_uuid(po_id, "po_id"), actor_id),
            actor_id=actor_id,
            po_id=po_id,
        )

    def next_order_number(self) -> str:
        """Reserve a PO number in its own transaction."""
        return self._run("next_order_number", self._numbering.next_order_number)

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def peek_next_order_number(self) -> str:
        return self._read(self._numbering.peek_next_order_number)

    def get_order(self, po_id: UUID) -> OrderAggregate | None:
        po_id = coerce_uuid(po_id, "po_id")
        return self._read(lambda: self._orders.get_order(po_id))

    def list_orders(
        self,
        filters: OrderFilters | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> list[OrderSummary]:
        return self._read(
            lambda: self._order_selector.list_orders(filters, limit=limit, offset=offset)
        )

    def order_stats(self, period: str = "month", today: date | None = None) -> OrderStats:
        if today is None:
            today = self._numbering.business_date()
        return self._read(lambda: self._order_selector.order_stats(period, today))

    def receivable_lines(self, po_id: UUID) -> list[ReceivableLineView]:
        po_id = coerce_uuid(po_id, "po_id")
        return self._read(lambda: self._order_selector.receivable_lines(po_id))

    def stock_history(self, product_id: UUID) -> list[LedgerEntryView]:
        product_id = coerce_uuid(product_id, "product_id")
        return self._read(lambda: self._ledger_selector.history(product_id))

    def verify_stock(self, product_id: UUID) -> ChainVerification:
        product_id = coerce_uuid(product_id, "product_id")
        return self._read(lambda: self._ledger_selector.verify_chain(product_id))
