"""Read-only query selectors."""

from procurement_kernel.selectors.ledger_selector import LedgerSelector
from procurement_kernel.selectors.order_selector import OrderSelector

__all__ = ["LedgerSelector", "OrderSelector"]
