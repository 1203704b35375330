"""
Module: procurement_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the inventory ledger: per-product
    history and replay of the ledger against the stored stock level.
Architecture position: Kernel > Selectors.

Invariants checked:
    - Chain continuity: each row's previous_quantity equals the preceding
      row's new_quantity (in seq order) and every row satisfies
      new = previous + change.  The first row's previous_quantity is the
      opening stock that existed before the ledger.
    - Replay: the last new_quantity equals Product.current_stock.

Audit relevance:
    verify_chain reconstructs stock from the append-only ledger alone and
    reports every seq where the chain breaks, so tampering or a lost update
    on current_stock is detectable.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.domain.dtos import ChainVerification, LedgerEntryView
from procurement_kernel.exceptions import ProductNotFoundError
from procurement_kernel.models.inventory_transaction import InventoryTransaction
from procurement_kernel.models.product import Product
from procurement_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[InventoryTransaction]):
    """Stock history queries."""

    def history(self, product_id: UUID) -> list[LedgerEntryView]:
        """Every ledger row for a product in seq order."""
        rows = self.session.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.product_id == product_id)
            .order_by(InventoryTransaction.seq)
        ).scalars()
        return [LedgerEntryView.from_model(row) for row in rows]

    def entries_for_order(self, po_id: UUID) -> list[LedgerEntryView]:
        """Every ledger row referencing a purchase order, in seq order."""
        rows = self.session.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.reference_id == po_id)
            .order_by(InventoryTransaction.seq)
        ).scalars()
        return [LedgerEntryView.from_model(row) for row in rows]

    def replay_stock(self, product_id: UUID) -> Decimal:
        """Opening stock plus the sum of all changes; zero without history."""
        entries = self.history(product_id)
        if not entries:
            return Decimal("0")
        return entries[0].previous_quantity + sum(
            (entry.change_quantity for entry in entries), Decimal("0")
        )

    def verify_chain(self, product_id: UUID) -> ChainVerification:
        """
        Replay a product's ledger and compare it with current_stock.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
        current_stock = self.session.execute(
            select(Product.current_stock).where(Product.id == product_id)
        ).scalar_one_or_none()
        if current_stock is None:
            raise ProductNotFoundError(str(product_id))

        entries = self.history(product_id)
        if not entries:
            return ChainVerification(
                product_id=product_id,
                entry_count=0,
                replayed_stock=current_stock,
                current_stock=current_stock,
            )

        breaks: list[int] = []
        running = entries[0].previous_quantity
        for entry in entries:
            if entry.previous_quantity != running:
                breaks.append(entry.seq)
            elif entry.previous_quantity + entry.change_quantity != entry.new_quantity:
                breaks.append(entry.seq)
            running = entry.new_quantity

        return ChainVerification(
            product_id=product_id,
            entry_count=len(entries),
            replayed_stock=running,
            current_stock=current_stock,
            breaks=tuple(breaks),
        )
