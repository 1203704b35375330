"""
LedgerWriter -- appends rows to the inventory ledger.

Responsibility:
    Writes one InventoryTransaction per stock movement.  The row records the
    stock before, the change and the stock after, so that replaying a
    product's rows in ``seq`` order reproduces its current stock.

Invariants enforced:
    - Append-only: this is the only code path that inserts ledger rows, and
      it never updates or deletes them.
    - ``new_quantity == previous_quantity + change_quantity`` and
      ``change_quantity > 0`` for purchase receipts.  Violations are
      programming errors and raise ValueError before anything is written.
    - ``seq`` is allocated from the ``inventory_transaction`` counter row,
      giving a total order consistent with commit order per product.
"""

from uuid import UUID

from procurement_kernel.domain.dtos import LedgerEntry
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.inventory_transaction import (
    InventoryTransaction,
    InventoryTransactionType,
)
from procurement_kernel.services.base import BaseService
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger_writer")


class LedgerWriter(BaseService[InventoryTransaction]):
    """Append-only writer for purchase receipts."""

    def append(self, entry: LedgerEntry) -> UUID:
        """
        Append one purchase receipt row and return its id.

        Participates in the caller's transaction; the row disappears if the
        caller rolls back.
        """
        if entry.change_quantity <= 0:
            raise ValueError(
                f"Purchase receipt change must be positive, got {entry.change_quantity}"
            )
        if entry.previous_quantity + entry.change_quantity != entry.new_quantity:
            raise ValueError(
                "Ledger row does not balance: "
                f"{entry.previous_quantity} + {entry.change_quantity} "
                f"!= {entry.new_quantity}"
            )

        seq = SequenceService(self.session).next_value(
            SequenceService.INVENTORY_TRANSACTION
        )
        row = InventoryTransaction(
            seq=seq,
            product_id=entry.product_id,
            transaction_type=InventoryTransactionType.PURCHASE.value,
            reference_id=entry.reference_id,
            previous_quantity=entry.previous_quantity,
            change_quantity=entry.change_quantity,
            new_quantity=entry.new_quantity,
            transaction_date=entry.transaction_date,
            notes=entry.notes,
            conducted_by=entry.conducted_by,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "ledger_entry_appended",
            extra={
                "transaction_id": str(row.id),
                "seq": seq,
                "product_id": str(entry.product_id),
                "reference_id": str(entry.reference_id),
                "change_quantity": str(entry.change_quantity),
                "new_quantity": str(entry.new_quantity),
            },
        )
        return row.id
