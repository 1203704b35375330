"""
Module: procurement_kernel.selectors.order_selector
Responsibility: Read-only purchase order queries: the order aggregate with
    display joins, filtered listings, dashboard statistics and the lines a
    receiving form shows.
Architecture position: Kernel > Selectors.

Failure modes:
    - ValidationError for a negative limit/offset or an unknown stats period.
    - get_order returns None for an unknown id; it never raises.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from procurement_kernel.domain.dtos import (
    OrderAggregate,
    OrderFilters,
    OrderItemView,
    OrderStats,
    OrderSummary,
    ReceivableLineView,
)
from procurement_kernel.domain.order_status import PENDING_STATUSES, OrderStatus, as_status
from procurement_kernel.exceptions import ValidationError
from procurement_kernel.models.product import Product
from procurement_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from procurement_kernel.models.supplier import Supplier
from procurement_kernel.models.user import User
from procurement_kernel.selectors.base import BaseSelector

STATS_PERIODS = ("today", "month", "year")


def stats_window(period: str, today: date) -> tuple[date, date]:
    """
    Inclusive window from the start of the named period up to ``today``.

    Orders dated later in the month or year are not counted yet.
    """
    if period == "today":
        return today, today
    if period == "month":
        return today.replace(day=1), today
    if period == "year":
        return date(today.year, 1, 1), today
    raise ValidationError("period", f"must be one of {', '.join(STATS_PERIODS)}")


class OrderSelector(BaseSelector[PurchaseOrder]):
    """Purchase order read models."""

    def get_order(self, po_id: UUID) -> OrderAggregate | None:
        header = self.session.execute(
            select(
                PurchaseOrder,
                Supplier.supplier_name,
                Supplier.contact_person,
                Supplier.phone,
                Supplier.email,
                User.full_name,
            )
            .outerjoin(Supplier, Supplier.id == PurchaseOrder.supplier_id)
            .outerjoin(User, User.id == PurchaseOrder.created_by_id)
            .where(PurchaseOrder.id == po_id)
            .execution_options(populate_existing=True)
        ).one_or_none()

        if header is None:
            return None

        order, supplier_name, contact_person, phone, email, created_by_name = header

        item_rows = self.session.execute(
            select(
                PurchaseOrderItem.id,
                PurchaseOrderItem.line_no,
                PurchaseOrderItem.product_id,
                Product.product_code,
                Product.product_name,
                Product.unit,
                PurchaseOrderItem.quantity,
                PurchaseOrderItem.unit_price,
                PurchaseOrderItem.received_quantity,
                Product.current_stock,
            )
            .outerjoin(Product, Product.id == PurchaseOrderItem.product_id)
            .where(PurchaseOrderItem.po_id == po_id)
            .order_by(PurchaseOrderItem.line_no)
        ).all()

        items = tuple(
            OrderItemView(
                item_id=row.id,
                line_no=row.line_no,
                product_id=row.product_id,
                product_code=row.product_code,
                product_name=row.product_name,
                unit=row.unit,
                quantity=row.quantity,
                unit_price=row.unit_price,
                received_quantity=row.received_quantity,
                current_stock=row.current_stock,
            )
            for row in item_rows
        )

        return OrderAggregate(
            po_id=order.id,
            po_number=order.po_number,
            supplier_id=order.supplier_id,
            supplier_name=supplier_name,
            supplier_contact_person=contact_person,
            supplier_phone=phone,
            supplier_email=email,
            order_date=order.order_date,
            expected_delivery_date=order.expected_delivery_date,
            status=as_status(order.status),
            total_amount=order.total_amount,
            notes=order.notes,
            created_by=order.created_by_id,
            created_by_name=created_by_name,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=items,
        )

    def list_orders(
        self,
        filters: OrderFilters | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> list[OrderSummary]:
        """
        Orders matching ``filters``, newest order date first.

        ``limit=0`` returns every match.  Date bounds are inclusive.
        """
        if limit < 0:
            raise ValidationError("limit", "must not be negative")
        if offset < 0:
            raise ValidationError("offset", "must not be negative")

        filters = filters or OrderFilters()

        query = (
            select(
                PurchaseOrder.id,
                PurchaseOrder.po_number,
                PurchaseOrder.supplier_id,
                Supplier.supplier_name,
                PurchaseOrder.order_date,
                PurchaseOrder.expected_delivery_date,
                PurchaseOrder.status,
                PurchaseOrder.total_amount,
                PurchaseOrder.created_by_id,
                User.full_name,
            )
            .outerjoin(Supplier, Supplier.id == PurchaseOrder.supplier_id)
            .outerjoin(User, User.id == PurchaseOrder.created_by_id)
        )

        if filters.status:
            try:
                status = as_status(filters.status)
            except ValueError:
                raise ValidationError("status", f"unknown status {filters.status!r}") from None
            query = query.where(PurchaseOrder.status == status.value)
        if filters.supplier_id:
            query = query.where(PurchaseOrder.supplier_id == filters.supplier_id)
        if filters.date_from:
            query = query.where(PurchaseOrder.order_date >= filters.date_from)
        if filters.date_to:
            query = query.where(PurchaseOrder.order_date <= filters.date_to)

        query = query.order_by(
            PurchaseOrder.order_date.desc(),
            PurchaseOrder.po_number.desc(),
        )
        if limit:
            query = query.limit(limit).offset(offset)
        elif offset:
            query = query.offset(offset)

        return [
            OrderSummary(
                po_id=row.id,
                po_number=row.po_number,
                supplier_id=row.supplier_id,
                supplier_name=row.supplier_name,
                order_date=row.order_date,
                expected_delivery_date=row.expected_delivery_date,
                status=as_status(row.status),
                total_amount=row.total_amount,
                created_by=row.created_by_id,
                created_by_name=row.full_name,
            )
            for row in self.session.execute(query)
        ]

    def order_stats(self, period: str, today: date) -> OrderStats:
        """
        Dashboard counters for orders dated within the period.

        Pending counts ordered and partial orders; cancelled orders are
        included in the totals, as the purchasing dashboard shows them.
        """
        date_from, date_to = stats_window(period, today)
        in_window = (
            PurchaseOrder.order_date >= date_from,
            PurchaseOrder.order_date <= date_to,
        )

        total_orders, total_amount = self.session.execute(
            select(
                func.count(PurchaseOrder.id),
                func.coalesce(func.sum(PurchaseOrder.total_amount), 0),
            ).where(*in_window)
        ).one()

        pending_orders = self.session.execute(
            select(func.count(PurchaseOrder.id)).where(
                *in_window,
                PurchaseOrder.status.in_([s.value for s in PENDING_STATUSES]),
            )
        ).scalar_one()

        delivered_orders = self.session.execute(
            select(func.count(PurchaseOrder.id)).where(
                *in_window,
                PurchaseOrder.status == OrderStatus.DELIVERED.value,
            )
        ).scalar_one()

        return OrderStats(
            date_from=date_from,
            date_to=date_to,
            total_orders=total_orders,
            total_amount=Decimal(str(total_amount)),
            pending_orders=pending_orders,
            delivered_orders=delivered_orders,
        )

    def receivable_lines(self, po_id: UUID) -> list[ReceivableLineView]:
        """Every line of the order with what is still outstanding, in line order."""
        rows = self.session.execute(
            select(
                PurchaseOrderItem.id,
                PurchaseOrderItem.product_id,
                Product.product_code,
                Product.product_name,
                Product.unit,
                PurchaseOrderItem.quantity,
                PurchaseOrderItem.unit_price,
                PurchaseOrderItem.received_quantity,
            )
            .outerjoin(Product, Product.id == PurchaseOrderItem.product_id)
            .where(PurchaseOrderItem.po_id == po_id)
            .order_by(PurchaseOrderItem.line_no)
        ).all()

        return [
            ReceivableLineView(
                item_id=row.id,
                product_id=row.product_id,
                product_code=row.product_code,
                product_name=row.product_name,
                unit=row.unit,
                quantity=row.quantity,
                unit_price=row.unit_price,
                received_quantity=row.received_quantity,
            )
            for row in rows
        ]
