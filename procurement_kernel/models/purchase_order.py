"""
Module: procurement_kernel.models.purchase_order
Responsibility: ORM persistence for purchase orders and their line items.
Architecture position: Kernel > Models.  May import from db/ and the status
    vocabulary in domain/order_status.py.  MUST NOT import from services/ or
    selectors/.

Invariants enforced:
    - po_number is unique (uq_purchase_order_number).
    - 0 <= received_quantity <= quantity on every item (CHECK constraints,
      backed by the lock-then-check in ReceivingCoordinator).
    - quantity > 0, unit_price >= 0 (CHECK constraints).
    - Orders are never hard-deleted (db/immutability.py, PostgreSQL trigger).
    - received_quantity never decreases (db/immutability.py, PostgreSQL trigger).

Failure modes:
    - IntegrityError on duplicate po_number or CHECK violation.
    - ImmutabilityViolationError on DELETE of an order or a decrease of
      received_quantity.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TrackedBase, UUIDString
from procurement_kernel.db.types import Money, Quantity
from procurement_kernel.domain.order_status import OrderStatus


class PurchaseOrder(TrackedBase):
    """
    Purchase order header.

    Contract:
        ``total_amount`` always equals the sum of the line totals; it is
        recomputed by OrderRepository on every create and update and is
        never touched by receiving.  ``status`` moves forward only:
        draft -> ordered -> partial -> delivered, with cancelled reachable
        from any state before delivered.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        Index("idx_purchase_order_status", "status"),
        Index("idx_purchase_order_supplier", "supplier_id"),
        Index("idx_purchase_order_date", "order_date"),
    )

    # Human-readable PO-YYYYMMDD-NNN
    po_number: Mapped[str] = mapped_column(String(50), nullable=False)

    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("suppliers.id"),
        nullable=False,
    )

    order_date: Mapped[date] = mapped_column(Date, nullable=False)

    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.DRAFT.value,
    )

    total_amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.line_no",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.po_number} ({self.status})>"


class PurchaseOrderItem(Base):
    """
    One product line on a purchase order.

    Contract:
        ``received_quantity`` is cumulative and starts at 0.  Only
        ReceivingCoordinator increases it, and only after re-reading it
        under a row lock.
    """

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        UniqueConstraint("po_id", "line_no", name="uq_purchase_order_item_line"),
        CheckConstraint("quantity > 0", name="ck_po_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_po_item_price_non_negative"),
        CheckConstraint(
            "received_quantity >= 0", name="ck_po_item_received_non_negative"
        ),
        CheckConstraint(
            "received_quantity <= quantity", name="ck_po_item_received_within_ordered"
        ),
        Index("idx_purchase_order_item_po", "po_id"),
        Index("idx_purchase_order_item_product", "product_id"),
    )

    po_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id"),
        nullable=False,
    )

    # Display order within the order, stable across updates
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity: Mapped[Quantity] = mapped_column(nullable=False)

    unit_price: Mapped[Money] = mapped_column(nullable=False)

    received_quantity: Mapped[Quantity] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    purchase_order: Mapped[PurchaseOrder] = relationship(
        "PurchaseOrder",
        back_populates="items",
    )

    @property
    def remaining_quantity(self) -> Decimal:
        return self.quantity - self.received_quantity

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderItem {self.id} product={self.product_id} "
            f"{self.received_quantity}/{self.quantity}>"
        )
