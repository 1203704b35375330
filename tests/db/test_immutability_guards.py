"""
Tests for the ORM-level immutability listeners.

Covers:
- Ledger rows cannot be updated or deleted
- Purchase orders cannot be deleted
- received_quantity cannot decrease
- Lines with received goods cannot be deleted
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from procurement_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.models.inventory_transaction import InventoryTransaction
from procurement_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem


@pytest.fixture
def received_order(purchasing, order_factory, product, item_ids, test_actor_id):
    po_id = order_factory([(product, 10, "1.00")])
    purchasing.receive(po_id, {item_ids(po_id)[product.id]: 4}, actor_id=test_actor_id)
    return po_id


class TestLedgerImmutability:

    def test_ledger_row_update_blocked(self, session, received_order):
        row = session.execute(select(InventoryTransaction)).scalar_one()
        row.notes = "edited"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "InventoryTransaction"
        session.rollback()

    def test_ledger_row_delete_blocked(self, session, received_order):
        row = session.execute(select(InventoryTransaction)).scalar_one()
        session.delete(row)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestOrderImmutability:

    def test_order_delete_blocked(self, session, received_order):
        order = session.get(PurchaseOrder, received_order)
        session.delete(order)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_received_quantity_cannot_decrease(self, session, received_order):
        item = session.execute(
            select(PurchaseOrderItem).where(PurchaseOrderItem.po_id == received_order)
        ).scalar_one()
        item.received_quantity = Decimal("1")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert "cannot decrease" in exc_info.value.reason
        session.rollback()

    def test_received_line_delete_blocked(self, session, received_order):
        item = session.execute(
            select(PurchaseOrderItem).where(PurchaseOrderItem.po_id == received_order)
        ).scalar_one()
        session.delete(item)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_unregistered_listeners_allow_edits(self, session, received_order):
        unregister_immutability_listeners()
        try:
            row = session.execute(select(InventoryTransaction)).scalar_one()
            row.notes = "corrected"
            session.flush()
        finally:
            register_immutability_listeners()
            session.rollback()
