"""
Module: procurement_kernel.models.supplier
Responsibility: Supplier master record.  Supplier maintenance lives in the
    surrounding application; the kernel reads suppliers to validate
    ``supplier_id`` on purchase orders and to join display data.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class SupplierStatus(str, Enum):
    """Supplier lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class Supplier(Base):
    """A vendor that purchase orders are placed with."""

    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("supplier_code", name="uq_supplier_code"),
        Index("idx_supplier_status", "status"),
    )

    supplier_code: Mapped[str] = mapped_column(String(50), nullable=False)

    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)

    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[SupplierStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SupplierStatus.ACTIVE.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Supplier {self.supplier_code}: {self.supplier_name}>"
