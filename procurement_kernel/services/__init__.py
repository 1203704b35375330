"""
Write-side services of the procurement kernel.

Only PurchasingService commits; every other service flushes inside the
caller's transaction.
"""

from procurement_kernel.services.ledger_writer import LedgerWriter
from procurement_kernel.services.order_numbering import OrderNumberingService
from procurement_kernel.services.order_repository import OrderRepository
from procurement_kernel.services.purchasing_service import PurchasingService
from procurement_kernel.services.receiving_coordinator import ReceivingCoordinator
from procurement_kernel.services.sequence_service import SequenceService
from procurement_kernel.services.stock_store import StockStore

__all__ = [
    "LedgerWriter",
    "OrderNumberingService",
    "OrderRepository",
    "PurchasingService",
    "ReceivingCoordinator",
    "SequenceService",
    "StockStore",
]
