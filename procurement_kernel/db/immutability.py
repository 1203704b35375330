"""
ORM-level immutability enforcement (layer 1 of 2).

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here check the append-only rules of
the receiving ledger:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Layer 2 is db/sql/*.sql (PostgreSQL triggers), which also catches bulk
UPDATE statements and raw SQL that bypass the ORM unit of work.

Protected entities:

Entity              | Rule
--------------------|--------------------------------------------------
InventoryTransaction| No UPDATE, no DELETE
PurchaseOrder       | No DELETE (cancel instead)
PurchaseOrderItem   | received_quantity never decreases;
                    | a line with received goods cannot be deleted

Usage:

    from procurement_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to write history directly may call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_inventory_transaction_update(mapper, connection, target):
    """Ledger rows are append-only."""
    _blocked(
        "InventoryTransaction",
        target.id,
        "UPDATE",
        "Inventory transactions are append-only and cannot be modified",
    )


def _check_inventory_transaction_delete(mapper, connection, target):
    _blocked(
        "InventoryTransaction",
        target.id,
        "DELETE",
        "Inventory transactions cannot be deleted",
    )


def _check_purchase_order_delete(mapper, connection, target):
    _blocked(
        "PurchaseOrder",
        target.id,
        "DELETE",
        "Purchase orders cannot be deleted; cancel the order instead",
    )


def _check_purchase_order_item_update(mapper, connection, target):
    """
    Block any decrease of received_quantity.

    history.deleted holds the value loaded from the database, history.added
    the value about to be written.
    """
    history = get_history(target, "received_quantity")
    if not history.deleted or not history.added:
        return

    old_value = history.deleted[0]
    new_value = history.added[0]
    if old_value is not None and new_value is not None and new_value < old_value:
        _blocked(
            "PurchaseOrderItem",
            target.id,
            "UPDATE",
            f"received_quantity cannot decrease ({old_value} -> {new_value})",
        )


def _check_purchase_order_item_delete(mapper, connection, target):
    if target.received_quantity and target.received_quantity > 0:
        _blocked(
            "PurchaseOrderItem",
            target.id,
            "DELETE",
            "A line with received goods cannot be deleted",
        )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call after the models are imported and before any database operations.
    Registering twice is a no-op.
    """
    from procurement_kernel.models.inventory_transaction import InventoryTransaction
    from procurement_kernel.models.purchase_order import (
        PurchaseOrder,
        PurchaseOrderItem,
    )

    for target, event_name, listener_fn in (
        (InventoryTransaction, "before_update", _check_inventory_transaction_update),
        (InventoryTransaction, "before_delete", _check_inventory_transaction_delete),
        (PurchaseOrder, "before_delete", _check_purchase_order_delete),
        (PurchaseOrderItem, "before_update", _check_purchase_order_item_update),
        (PurchaseOrderItem, "before_delete", _check_purchase_order_item_delete),
    ):
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must violate the rules on purpose.
    """
    from procurement_kernel.models.inventory_transaction import InventoryTransaction
    from procurement_kernel.models.purchase_order import (
        PurchaseOrder,
        PurchaseOrderItem,
    )

    _safe_remove_listener(
        InventoryTransaction, "before_update", _check_inventory_transaction_update
    )
    _safe_remove_listener(
        InventoryTransaction, "before_delete", _check_inventory_transaction_delete
    )
    _safe_remove_listener(PurchaseOrder, "before_delete", _check_purchase_order_delete)
    _safe_remove_listener(
        PurchaseOrderItem, "before_update", _check_purchase_order_item_update
    )
    _safe_remove_listener(
        PurchaseOrderItem, "before_delete", _check_purchase_order_item_delete
    )
