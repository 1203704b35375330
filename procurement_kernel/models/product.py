"""
Module: procurement_kernel.models.product
Responsibility: Product master record with its on-hand quantity.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_stock is mutated only by StockStore, under a row lock, and
      every mutation is mirrored by one InventoryTransaction row.  Replaying
      the ledger for a product reproduces current_stock.

Failure modes:
    - IntegrityError on duplicate product_code.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base
from procurement_kernel.db.types import Quantity


class Product(Base):
    """
    A stocked product.

    The surrounding application owns the catalogue fields; the kernel owns
    ``current_stock`` for receiving purposes.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("product_code", name="uq_product_code"),
    )

    product_code: Mapped[str] = mapped_column(String(50), nullable=False)

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Purchase unit symbol (e.g. "pcs", "L")
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    current_stock: Mapped[Quantity] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Product {self.product_code}: {self.product_name}>"
