"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    inputs from the surrounding application (OrderHeader, OrderLineInput,
    ReceiptLine, OrderFilters) and read models handed back to it
    (OrderAggregate, OrderSummary, ReceiptResult, ...).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` converters exist at
    the boundary but are only invoked from services and selectors.

Input DTOs do not validate.  The Order Repository and the Receiving
Coordinator own validation and raise ValidationError.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from procurement_kernel.domain.order_status import OrderStatus

if TYPE_CHECKING:
    from procurement_kernel.models.inventory_transaction import InventoryTransaction


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderHeader:
    """
    Header fields supplied by the caller on create and update.

    ``po_number`` may be omitted; the Numbering Service allocates one on
    create.  ``status`` is the caller's choice between draft and ordered.
    """

    supplier_id: UUID | str | None
    order_date: date | None
    status: OrderStatus | str | None = OrderStatus.ORDERED
    expected_delivery_date: date | None = None
    notes: str | None = None
    po_number: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OrderHeader:
        """Build from a form-style mapping.  ``expected_delivery`` is accepted as an alias."""
        return cls(
            supplier_id=data.get("supplier_id"),
            order_date=data.get("order_date"),
            status=data.get("status", OrderStatus.ORDERED),
            expected_delivery_date=data.get(
                "expected_delivery_date", data.get("expected_delivery")
            ),
            notes=data.get("notes"),
            po_number=data.get("po_number"),
        )


@dataclass(frozen=True)
class OrderLineInput:
    """One product line as submitted by the caller."""

    product_id: UUID | str | None
    quantity: Decimal | int | str | None
    unit_price: Decimal | int | str | None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OrderLineInput:
        return cls(
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            unit_price=data.get("unit_price"),
        )


@dataclass(frozen=True)
class ReceiptLine:
    """Quantity received now for one order item."""

    item_id: UUID | str
    quantity_now: Decimal | int | str | None


@dataclass(frozen=True)
class OrderFilters:
    """Optional filters for ListOrders.  None means "no filter"."""

    status: OrderStatus | str | None = None
    supplier_id: UUID | None = None
    date_from: date | None = None
    date_to: date | None = None


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemView:
    """One order line with product display data."""

    item_id: UUID
    line_no: int
    product_id: UUID
    product_code: str | None
    product_name: str | None
    unit: str | None
    quantity: Decimal
    unit_price: Decimal
    received_quantity: Decimal
    current_stock: Decimal | None

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def remaining_quantity(self) -> Decimal:
        return self.quantity - self.received_quantity


@dataclass(frozen=True)
class OrderAggregate:
    """Order header, supplier/creator display data and every item."""

    po_id: UUID
    po_number: str
    supplier_id: UUID
    supplier_name: str | None
    supplier_contact_person: str | None
    supplier_phone: str | None
    supplier_email: str | None
    order_date: date
    expected_delivery_date: date | None
    status: OrderStatus
    total_amount: Decimal
    notes: str | None
    created_by: UUID
    created_by_name: str | None
    created_at: datetime | None
    updated_at: datetime | None
    items: tuple[OrderItemView, ...] = field(default_factory=tuple)

    def item(self, item_id: UUID) -> OrderItemView | None:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None


@dataclass(frozen=True)
class OrderSummary:
    """One row of ListOrders."""

    po_id: UUID
    po_number: str
    supplier_id: UUID
    supplier_name: str | None
    order_date: date
    expected_delivery_date: date | None
    status: OrderStatus
    total_amount: Decimal
    created_by: UUID
    created_by_name: str | None


@dataclass(frozen=True)
class OrderStats:
    """Purchasing dashboard counters for a date window."""

    date_from: date
    date_to: date
    total_orders: int
    total_amount: Decimal
    pending_orders: int
    delivered_orders: int


@dataclass(frozen=True)
class ReceivableLineView:
    """A line as shown on the receiving form."""

    item_id: UUID
    product_id: UUID
    product_code: str | None
    product_name: str | None
    unit: str | None
    quantity: Decimal
    unit_price: Decimal
    received_quantity: Decimal

    @property
    def remaining_quantity(self) -> Decimal:
        return self.quantity - self.received_quantity


@dataclass(frozen=True)
class ReceiptLineResult:
    """What one applied line of a receiving batch did."""

    item_id: UUID
    product_id: UUID
    quantity_received: Decimal
    received_total: Decimal
    previous_stock: Decimal
    new_stock: Decimal
    transaction_id: UUID


@dataclass(frozen=True)
class ReceiptResult:
    """
    Outcome of one receiving batch.

    ``applied`` is False for a batch whose quantities were all zero or
    absent; nothing was written in that case.
    """

    po_id: UUID
    status: OrderStatus
    previous_status: OrderStatus
    lines: tuple[ReceiptLineResult, ...] = field(default_factory=tuple)

    @property
    def applied(self) -> bool:
        return bool(self.lines)

    @property
    def is_delivered(self) -> bool:
        return self.status == OrderStatus.DELIVERED


@dataclass(frozen=True)
class LedgerEntry:
    """Input to LedgerWriter.append."""

    product_id: UUID
    reference_id: UUID
    previous_quantity: Decimal
    change_quantity: Decimal
    new_quantity: Decimal
    conducted_by: UUID
    transaction_date: datetime
    notes: str | None = None


@dataclass(frozen=True)
class LedgerEntryView:
    """One ledger row as returned by LedgerSelector."""

    transaction_id: UUID
    seq: int
    product_id: UUID
    transaction_type: str
    reference_id: UUID
    previous_quantity: Decimal
    change_quantity: Decimal
    new_quantity: Decimal
    transaction_date: datetime
    notes: str | None
    conducted_by: UUID

    @classmethod
    def from_model(cls, row: InventoryTransaction) -> LedgerEntryView:
        return cls(
            transaction_id=row.id,
            seq=row.seq,
            product_id=row.product_id,
            transaction_type=getattr(row.transaction_type, "value", row.transaction_type),
            reference_id=row.reference_id,
            previous_quantity=row.previous_quantity,
            change_quantity=row.change_quantity,
            new_quantity=row.new_quantity,
            transaction_date=row.transaction_date,
            notes=row.notes,
            conducted_by=row.conducted_by,
        )


@dataclass(frozen=True)
class ChainVerification:
    """
    Result of replaying a product's ledger.

    ``breaks`` lists the seq numbers whose previous_quantity does not match
    the preceding row's new_quantity, or whose new_quantity is not
    previous + change.
    """

    product_id: UUID
    entry_count: int
    replayed_stock: Decimal
    current_stock: Decimal
    breaks: tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.breaks and self.replayed_stock == self.current_stock
