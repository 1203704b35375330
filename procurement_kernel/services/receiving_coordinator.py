"""
ReceivingCoordinator -- applies a receiving batch to a purchase order.

Responsibility:
    Takes per-line quantities delivered now, checks them against what is
    still outstanding, raises ``received_quantity`` on the lines, adds the
    goods to stock, appends one ledger row per applied line and re-derives
    the order status.  All of it happens inside the caller's transaction,
    so a batch is applied completely or not at all.

Architecture position:
    Kernel > Services.  Uses OrderRepository (order/item locks), StockStore
    (product locks) and LedgerWriter.  Never commits.

Invariants enforced:
    - 0 <= received_quantity <= quantity on every line, under concurrency.
      Baselines are re-read under row locks (FOR UPDATE, populate_existing),
      never taken from an earlier snapshot held by the session.
    - Lock order: order row, then its item rows, then product rows in
      ascending product id.  Concurrent batches on the same order or the
      same product serialize without deadlocking.
    - Every line is checked before the first write.  One over-receipt
      rejects the whole batch.
    - Status is derived from a fresh re-read of every line of the order,
      not only the lines touched by this batch.
    - A batch whose quantities are all zero or absent writes nothing.

Failure modes:
    - OrderNotFoundError / OrderItemNotFoundError (InvalidReferenceError).
    - InvalidStateError when the order is not ordered or partial.
    - ValidationError for negative or non-numeric quantities, duplicates.
    - OverReceiptError when a line would exceed its ordered quantity.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_kernel.config import KernelSettings
from procurement_kernel.db.types import to_decimal
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.dtos import (
    LedgerEntry,
    ReceiptLine,
    ReceiptLineResult,
    ReceiptResult,
)
from procurement_kernel.domain.order_status import (
    as_status,
    can_receive,
    derive_status,
    is_valid_transition,
)
from procurement_kernel.exceptions import (
    InvalidStateError,
    OrderItemNotFoundError,
    OverReceiptError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from procurement_kernel.services.ledger_writer import LedgerWriter
from procurement_kernel.services.order_repository import OrderRepository, coerce_uuid
from procurement_kernel.services.stock_store import StockStore

logger = get_logger("services.receiving")

ReceiptBatch = Mapping[Any, Any] | Iterable[ReceiptLine | tuple[Any, Any]]


def receipt_note(po_number: str, notes: str | None) -> str:
    """Ledger note for a receipt, e.g. ``Received from PO #PO-20240101-001 - dock 2``."""
    note = f"Received from PO #{po_number}"
    if notes and notes.strip():
        note += f" - {notes.strip()}"
    return note


class ReceivingCoordinator:
    """
    The receiving state machine.

    Contract:
        ``receive`` either applies every non-zero line of the batch, moving
        stock and writing the ledger, or raises and leaves the caller to
        roll back.  Nothing is flushed before all checks pass.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._orders = OrderRepository(session, self._clock, settings)
        self._stock = StockStore(session)
        self._ledger = LedgerWriter(session)

    def _parse_batch(self, po_id: UUID, batch: ReceiptBatch) -> list[tuple[UUID, Decimal]]:
        """
        Normalize the batch to (item_id, quantity) pairs.

        Zero and absent quantities are kept here so that their item ids are
        still checked against the order.
        """
        if isinstance(batch, Mapping):
            raw_lines = list(batch.items())
        else:
            raw_lines = [
                (line.item_id, line.quantity_now) if isinstance(line, ReceiptLine) else tuple(line)
                for line in batch
            ]

        parsed: list[tuple[UUID, Decimal]] = []
        seen: set[UUID] = set()
        for raw_item_id, raw_quantity in raw_lines:
            try:
                item_id = raw_item_id if isinstance(raw_item_id, UUID) else UUID(str(raw_item_id))
            except ValueError:
                raise OrderItemNotFoundError(str(po_id), str(raw_item_id)) from None

            if raw_quantity is None or raw_quantity == "":
                quantity = Decimal("0")
            else:
                try:
                    quantity = to_decimal(raw_quantity)
                except ValueError:
                    raise ValidationError(
                        f"quantity[{item_id}]", f"must be numeric, got {raw_quantity!r}"
                    ) from None
            if quantity < 0:
                raise ValidationError(f"quantity[{item_id}]", "must not be negative")
            if item_id in seen:
                raise ValidationError(f"quantity[{item_id}]", "item appears more than once")

            seen.add(item_id)
            parsed.append((item_id, quantity))
        return parsed

    def receive(
        self,
        po_id: UUID,
        batch: ReceiptBatch,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ReceiptResult:
        """
        Apply a receiving batch.

        Args:
            po_id: The order being received against.
            batch: ``{item_id: quantity_now}``, or an iterable of
                ``ReceiptLine`` / ``(item_id, quantity_now)`` pairs.
            actor_id: The user receiving the goods.
            notes: Free text appended to each ledger row's note.

        Returns:
            ReceiptResult.  ``applied`` is False when nothing was received.
        """
        po_id = coerce_uuid(po_id, "po_id")
        actor_id = coerce_uuid(actor_id, "actor_id")

        order = self._orders.lock_order(po_id)
        previous_status = as_status(order.status)
        if not can_receive(previous_status):
            raise InvalidStateError(str(po_id), previous_status.value, "receive")

        requested = self._parse_batch(po_id, batch)
        items = {item.id: item for item in self._orders.lock_items(po_id)}
        for item_id, _ in requested:
            if item_id not in items:
                raise OrderItemNotFoundError(str(po_id), str(item_id))

        to_apply = [(items[item_id], quantity) for item_id, quantity in requested if quantity > 0]
        if not to_apply:
            logger.info(
                "receipt_noop",
                extra={"po_id": str(po_id), "line_count": len(requested)},
            )
            return ReceiptResult(
                po_id=po_id,
                status=previous_status,
                previous_status=previous_status,
            )

        to_apply.sort(key=lambda pair: (str(pair[0].product_id), pair[0].line_no))
        products = self._stock.lock_products(item.product_id for item, _ in to_apply)

        for item, quantity in to_apply:
            if quantity > item.remaining_quantity:
                raise OverReceiptError(
                    product_name=products[item.product_id].product_name,
                    ordered_quantity=item.quantity,
                    received_quantity=item.received_quantity,
                    attempted_quantity=quantity,
                    item_id=str(item.id),
                )

        note = receipt_note(order.po_number, notes)
        now = self._clock.now()
        results: list[ReceiptLineResult] = []
        for item, quantity in to_apply:
            results.append(self._apply_line(order, item, quantity, actor_id, note, now))

        new_status = self._derive_and_store_status(order, actor_id)

        logger.info(
            "receipt_applied",
            extra={
                "po_id": str(po_id),
                "po_number": order.po_number,
                "previous_status": previous_status.value,
                "status": new_status.value,
                "line_count": len(results),
                "total_quantity": str(sum((r.quantity_received for r in results), Decimal("0"))),
            },
        )
        return ReceiptResult(
            po_id=po_id,
            status=new_status,
            previous_status=previous_status,
            lines=tuple(results),
        )

    def _apply_line(
        self,
        order: PurchaseOrder,
        item: PurchaseOrderItem,
        quantity: Decimal,
        actor_id: UUID,
        note: str,
        now,
    ) -> ReceiptLineResult:
        received_total = item.received_quantity + quantity
        item.received_quantity = received_total

        previous_stock, new_stock = self._stock.add_stock(item.product_id, quantity)
        transaction_id = self._ledger.append(
            LedgerEntry(
                product_id=item.product_id,
                reference_id=order.id,
                previous_quantity=previous_stock,
                change_quantity=quantity,
                new_quantity=new_stock,
                conducted_by=actor_id,
                transaction_date=now,
                notes=note,
            )
        )

        logger.debug(
            "receipt_line_applied",
            extra={
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "quantity": str(quantity),
                "received_total": str(received_total),
                "ordered": str(item.quantity),
            },
        )
        return ReceiptLineResult(
            item_id=item.id,
            product_id=item.product_id,
            quantity_received=quantity,
            received_total=received_total,
            previous_stock=previous_stock,
            new_stock=new_stock,
            transaction_id=transaction_id,
        )

    def _derive_and_store_status(self, order: PurchaseOrder, actor_id: UUID):
        self._session.flush()
        all_items = self._orders.lock_items(order.id)
        new_status = derive_status(all_items)
        current = as_status(order.status)
        if not is_valid_transition(current, new_status):
            raise InvalidStateError(str(order.id), current.value, "receive")

        order.status = new_status.value
        order.updated_by_id = actor_id
        order.updated_at = self._clock.now()
        self._session.flush()
        return new_status
