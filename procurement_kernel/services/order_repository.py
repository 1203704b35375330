"""
OrderRepository -- persistence of purchase orders and their line items.

Responsibility:
    Creates and edits the order aggregate (header plus lines), keeps
    ``total_amount`` equal to the sum of line totals, and owns the
    non-receiving status transitions (place, cancel).

Architecture position:
    Kernel > Services.  Participates in the caller's transaction: every
    method flushes and none commits.

Invariants enforced:
    - ``total_amount == sum(quantity * unit_price)`` after every create and
      update, rounded to cents.
    - One line per product on an order.
    - Updates reconcile lines by product: an existing line keeps its
      ``item_id`` and ``received_quantity``; a line is only removed when
      nothing was received on it; quantity never drops below what was
      received.
    - delivered and cancelled orders are read-only.

Failure modes:
    - ValidationError for missing or malformed input, before any write.
    - SupplierNotFoundError / ProductNotFoundError for unknown references.
    - OrderNotFoundError, InvalidStateError on update/place/cancel.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.config import KernelSettings
from procurement_kernel.db.types import round_money, to_decimal
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.dtos import OrderAggregate, OrderHeader, OrderLineInput
from procurement_kernel.domain.order_status import (
    CREATABLE_STATUSES,
    OrderStatus,
    as_status,
    can_cancel,
    can_edit,
    derive_status,
    is_valid_transition,
)
from procurement_kernel.exceptions import (
    InvalidStateError,
    OrderNotFoundError,
    ProductNotFoundError,
    SupplierNotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.product import Product
from procurement_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from procurement_kernel.models.supplier import Supplier
from procurement_kernel.selectors.order_selector import OrderSelector
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.order_numbering import OrderNumberingService

logger = get_logger("services.order_repository")


def coerce_uuid(value: Any, field: str) -> UUID:
    """Parse an id supplied by a caller.  Raises ValidationError if malformed."""
    if value is None or value == "":
        raise ValidationError(field, "is required")
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(field, f"is not a valid id: {value!r}") from None


def _coerce_date(value: Any, field: str, required: bool) -> date | None:
    if value is None or value == "":
        if required:
            raise ValidationError(field, "is required")
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(field, f"is not a valid date: {value!r}") from None


def _coerce_amount(value: Any, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError:
        if value is None or value == "":
            raise ValidationError(field, "is required") from None
        raise ValidationError(field, f"must be numeric, got {value!r}") from None


@dataclass(frozen=True)
class _ValidatedHeader:
    supplier_id: UUID
    order_date: date
    expected_delivery_date: date | None
    status: OrderStatus
    notes: str | None
    po_number: str | None


@dataclass(frozen=True)
class _ValidatedLine:
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal


class OrderRepository(BaseService[PurchaseOrder]):
    """
    Order aggregate persistence.

    Contract:
        Accepts ``OrderHeader``/``OrderLineInput`` (or equivalent mappings),
        validates them completely, then writes.  A rejected call leaves the
        session without pending changes from this repository.

    Non-goals:
        - Does NOT touch ``received_quantity`` or stock; that is
          ReceivingCoordinator's job.
        - Does NOT delete orders.  Cancel instead.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._numbering = OrderNumberingService(session, self._clock, settings)
        self._selector = OrderSelector(session)

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------

    def _validate_header(self, header: OrderHeader | Mapping[str, Any]) -> _ValidatedHeader:
        if isinstance(header, Mapping):
            header = OrderHeader.from_mapping(header)

        supplier_id = coerce_uuid(header.supplier_id, "supplier_id")
        order_date = _coerce_date(header.order_date, "order_date", required=True)
        expected = _coerce_date(
            header.expected_delivery_date, "expected_delivery_date", required=False
        )

        raw_status = header.status if header.status is not None else OrderStatus.ORDERED
        try:
            status = as_status(raw_status)
        except ValueError:
            raise ValidationError("status", f"unknown status {raw_status!r}") from None
        if status not in CREATABLE_STATUSES:
            raise ValidationError(
                "status", f"must be draft or ordered, got '{status.value}'"
            )

        po_number = header.po_number.strip() if header.po_number else None
        notes = header.notes.strip() if header.notes else None

        return _ValidatedHeader(
            supplier_id=supplier_id,
            order_date=order_date,
            expected_delivery_date=expected,
            status=status,
            notes=notes or None,
            po_number=po_number or None,
        )

    def _validate_lines(
        self, items: Iterable[OrderLineInput | Mapping[str, Any]] | None
    ) -> list[_ValidatedLine]:
        lines: list[_ValidatedLine] = []
        seen: set[UUID] = set()

        for index, raw in enumerate(items or ()):
            if isinstance(raw, Mapping):
                raw = OrderLineInput.from_mapping(raw)

            product_id = coerce_uuid(raw.product_id, f"items[{index}].product_id")
            quantity = _coerce_amount(raw.quantity, f"items[{index}].quantity")
            unit_price = _coerce_amount(raw.unit_price, f"items[{index}].unit_price")

            if quantity <= 0:
                raise ValidationError(f"items[{index}].quantity", "must be greater than zero")
            if unit_price < 0:
                raise ValidationError(f"items[{index}].unit_price", "must not be negative")
            if product_id in seen:
                raise ValidationError(
                    f"items[{index}].product_id",
                    f"product {product_id} appears more than once",
                )
            seen.add(product_id)
            lines.append(_ValidatedLine(product_id, quantity, unit_price))

        if not lines:
            raise ValidationError("items", "at least one line is required")
        return lines

    def _check_references(self, supplier_id: UUID, lines: list[_ValidatedLine]) -> None:
        if self.session.get(Supplier, supplier_id) is None:
            raise SupplierNotFoundError(str(supplier_id))

        product_ids = {line.product_id for line in lines}
        found = set(
            self.session.execute(
                select(Product.id).where(Product.id.in_(product_ids))
            ).scalars()
        )
        missing = sorted(product_ids - found, key=str)
        if missing:
            raise ProductNotFoundError(str(missing[0]))

    @staticmethod
    def _total(lines: Iterable[_ValidatedLine | PurchaseOrderItem]) -> Decimal:
        return round_money(
            sum((line.quantity * line.unit_price for line in lines), Decimal("0"))
        )

    # -----------------------------------------------------------------
    # Locking reads
    # -----------------------------------------------------------------

    def lock_order(self, po_id: UUID) -> PurchaseOrder:
        """
        Lock and return the order row with freshly read values.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        order = self.session.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == po_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(po_id))
        return order

    def lock_items(self, po_id: UUID) -> list[PurchaseOrderItem]:
        """Lock every line of the order and return them with fresh values."""
        return list(
            self.session.execute(
                select(PurchaseOrderItem)
                .where(PurchaseOrderItem.po_id == po_id)
                .order_by(PurchaseOrderItem.line_no)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def create_order(
        self,
        header: OrderHeader | Mapping[str, Any],
        items: Iterable[OrderLineInput | Mapping[str, Any]],
        actor_id: UUID,
    ) -> UUID:
        """
        Insert an order with its lines and return the new po_id.

        A PO number is allocated from today's counter unless the header
        carries one.
        """
        actor_id = coerce_uuid(actor_id, "actor_id")
        valid = self._validate_header(header)
        lines = self._validate_lines(items)
        self._check_references(valid.supplier_id, lines)

        po_number = valid.po_number or self._numbering.next_order_number()
        now = self._clock.now()

        order = PurchaseOrder(
            po_number=po_number,
            supplier_id=valid.supplier_id,
            order_date=valid.order_date,
            expected_delivery_date=valid.expected_delivery_date,
            status=valid.status.value,
            total_amount=self._total(lines),
            notes=valid.notes,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
        )
        for line_no, line in enumerate(lines, start=1):
            order.items.append(
                PurchaseOrderItem(
                    line_no=line_no,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    received_quantity=Decimal("0"),
                )
            )

        self.session.add(order)
        self.session.flush()

        logger.info(
            "purchase_order_created",
            extra={
                "po_id": str(order.id),
                "po_number": po_number,
                "status": valid.status.value,
                "line_count": len(lines),
                "total_amount": str(order.total_amount),
            },
        )
        return order.id

    def update_order(
        self,
        po_id: UUID,
        header: OrderHeader | Mapping[str, Any],
        items: Iterable[OrderLineInput | Mapping[str, Any]],
        actor_id: UUID,
    ) -> None:
        """
        Replace the header and reconcile lines by product.

        Lines present in both the order and ``items`` are updated in place,
        new products are appended, and omitted products are removed unless
        goods were received on them.  The submitted header status applies
        while nothing has been received; afterwards status is derived from
        the lines.

        Raises:
            InvalidStateError: If the order is delivered or cancelled.
            ValidationError: If a quantity would drop below what was
                received, or a received line would be removed.
        """
        actor_id = coerce_uuid(actor_id, "actor_id")
        order = self.lock_order(po_id)
        current_status = as_status(order.status)
        if not can_edit(current_status):
            raise InvalidStateError(str(po_id), current_status.value, "update")

        valid = self._validate_header(header)
        lines = self._validate_lines(items)
        self._check_references(valid.supplier_id, lines)

        existing = {item.product_id: item for item in self.lock_items(po_id)}
        submitted = {line.product_id for line in lines}

        # Check everything before the first write
        for index, line in enumerate(lines):
            item = existing.get(line.product_id)
            if item is not None and line.quantity < item.received_quantity:
                raise ValidationError(
                    f"items[{index}].quantity",
                    f"cannot be less than the {item.received_quantity} already received",
                )
        for product_id, item in existing.items():
            if product_id not in submitted and item.received_quantity > 0:
                raise ValidationError(
                    "items",
                    f"cannot remove product {product_id}: "
                    f"{item.received_quantity} already received",
                )

        next_line_no = max((item.line_no for item in existing.values()), default=0) + 1
        added = updated = removed = 0

        for line in lines:
            item = existing.get(line.product_id)
            if item is None:
                order.items.append(
                    PurchaseOrderItem(
                        line_no=next_line_no,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        received_quantity=Decimal("0"),
                    )
                )
                next_line_no += 1
                added += 1
            elif item.quantity != line.quantity or item.unit_price != line.unit_price:
                item.quantity = line.quantity
                item.unit_price = line.unit_price
                updated += 1

        for product_id, item in existing.items():
            if product_id not in submitted:
                order.items.remove(item)
                removed += 1

        self.session.flush()

        remaining = list(order.items)
        if any(item.received_quantity > 0 for item in remaining):
            new_status = derive_status(remaining)
        else:
            new_status = valid.status
        if not is_valid_transition(current_status, new_status):
            raise InvalidStateError(str(po_id), current_status.value, "update")

        order.supplier_id = valid.supplier_id
        order.order_date = valid.order_date
        order.expected_delivery_date = valid.expected_delivery_date
        order.notes = valid.notes
        order.total_amount = self._total(remaining)
        order.status = new_status.value
        order.updated_by_id = actor_id
        order.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "purchase_order_updated",
            extra={
                "po_id": str(po_id),
                "previous_status": current_status.value,
                "status": new_status.value,
                "lines_added": added,
                "lines_updated": updated,
                "lines_removed": removed,
                "total_amount": str(order.total_amount),
            },
        )

    def place_order(self, po_id: UUID, actor_id: UUID) -> OrderStatus:
        """Move a draft to ordered so that it can be received."""
        return self._transition(
            po_id,
            actor_id,
            operation="place",
            allowed=lambda status: status == OrderStatus.DRAFT,
            target=OrderStatus.ORDERED,
        )

    def cancel_order(self, po_id: UUID, actor_id: UUID) -> OrderStatus:
        """
        Cancel an order that is not yet delivered.

        Lines, received quantities and ledger rows stay as they are.
        """
        return self._transition(
            po_id,
            actor_id,
            operation="cancel",
            allowed=can_cancel,
            target=OrderStatus.CANCELLED,
        )

    def _transition(self, po_id, actor_id, operation, allowed, target) -> OrderStatus:
        actor_id = coerce_uuid(actor_id, "actor_id")
        order = self.lock_order(po_id)
        current = as_status(order.status)
        if (
            current == target
            or not allowed(current)
            or not is_valid_transition(current, target)
        ):
            raise InvalidStateError(str(po_id), current.value, operation)

        order.status = target.value
        order.updated_by_id = actor_id
        order.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "purchase_order_status_changed",
            extra={
                "po_id": str(po_id),
                "operation": operation,
                "previous_status": current.value,
                "status": target.value,
            },
        )
        return target

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get_order(self, po_id: UUID) -> OrderAggregate | None:
        return self._selector.get_order(po_id)
