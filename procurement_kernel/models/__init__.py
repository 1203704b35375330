"""Domain models for the procurement kernel."""

from procurement_kernel.models.inventory_transaction import (
    InventoryTransaction,
    InventoryTransactionType,
)
from procurement_kernel.models.product import Product
from procurement_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from procurement_kernel.models.sequence_counter import SequenceCounter
from procurement_kernel.models.supplier import Supplier, SupplierStatus
from procurement_kernel.models.user import User

__all__ = [
    "InventoryTransaction",
    "InventoryTransactionType",
    "Product",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "SequenceCounter",
    "Supplier",
    "SupplierStatus",
    "User",
]
