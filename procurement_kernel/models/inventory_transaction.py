"""
Module: procurement_kernel.models.inventory_transaction
Responsibility: ORM persistence for the append-only stock ledger.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: no UPDATE, no DELETE (ORM listeners in db/immutability.py
      and PostgreSQL triggers in db/sql/01_inventory_transaction.sql).
    - seq is strictly monotonic and unique; it is allocated from a locked
      counter row and defines ledger replay order.
    - change_quantity > 0 for purchase receipts (CHECK constraint).
    - new_quantity = previous_quantity + change_quantity (written by
      LedgerWriter; verified on read by LedgerSelector.verify_chain).

Audit relevance:
    For a fixed product, replaying rows in seq order reproduces
    Product.current_stock independently of the mutable stock column.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base, UUIDString
from procurement_kernel.db.types import Quantity


class InventoryTransactionType(str, Enum):
    """Kind of stock movement.  The receiving core only writes PURCHASE."""

    PURCHASE = "purchase"


class InventoryTransaction(Base):
    """One stock movement for one product."""

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_inventory_transaction_seq"),
        CheckConstraint(
            "change_quantity > 0 OR transaction_type <> 'purchase'",
            name="ck_inventory_transaction_purchase_positive",
        ),
        Index("idx_inventory_transaction_product", "product_id", "seq"),
        Index("idx_inventory_transaction_reference", "reference_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    transaction_type: Mapped[InventoryTransactionType] = mapped_column(
        String(20),
        nullable=False,
    )

    # The purchase order this movement belongs to
    reference_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id"),
        nullable=False,
    )

    previous_quantity: Mapped[Quantity] = mapped_column(nullable=False)

    change_quantity: Mapped[Quantity] = mapped_column(nullable=False)

    new_quantity: Mapped[Quantity] = mapped_column(nullable=False)

    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    conducted_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction seq={self.seq} product={self.product_id} "
            f"{self.previous_quantity}+{self.change_quantity}={self.new_quantity}>"
        )
