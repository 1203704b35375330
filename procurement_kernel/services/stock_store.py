"""
StockStore -- locked access to product on-hand quantities.

Responsibility:
    Reads and increments ``Product.current_stock``.  Every read used for a
    mutation happens under ``SELECT ... FOR UPDATE`` with
    ``populate_existing`` so the value is the committed one, never a stale
    copy from the session identity map.

Invariants enforced:
    - Increments are read-modify-write under the product row lock, so two
      receipts of the same product serialize and neither is lost.
    - Callers lock products in ascending product id order to avoid
      deadlocks between concurrent multi-line batches.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.exceptions import ProductNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.product import Product
from procurement_kernel.services.base import BaseService

logger = get_logger("services.stock_store")


class StockStore(BaseService[Product]):
    """Row-locked stock reads and increments."""

    def lock_product(self, product_id: UUID) -> Product:
        """
        Lock and return a product row with freshly read values.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
        product = self.session.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def lock_products(self, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        """Lock several products one by one in ascending id order."""
        return {
            product_id: self.lock_product(product_id)
            for product_id in sorted(set(product_ids), key=str)
        }

    def get_stock(self, product_id: UUID) -> Decimal:
        """Current on-hand quantity, unlocked."""
        stock = self.session.execute(
            select(Product.current_stock).where(Product.id == product_id)
        ).scalar_one_or_none()
        if stock is None:
            raise ProductNotFoundError(str(product_id))
        return stock

    def add_stock(self, product_id: UUID, quantity: Decimal) -> tuple[Decimal, Decimal]:
        """
        Increase a product's on-hand quantity.

        Preconditions:
            quantity > 0.

        Returns:
            (previous_stock, new_stock) as read and written under the lock.
        """
        if quantity <= 0:
            raise ValueError(f"Stock increment must be positive, got {quantity}")

        product = self.lock_product(product_id)
        previous_stock = product.current_stock
        new_stock = previous_stock + quantity
        product.current_stock = new_stock
        self.session.flush()

        logger.debug(
            "stock_incremented",
            extra={
                "product_id": str(product_id),
                "previous_stock": str(previous_stock),
                "change": str(quantity),
                "new_stock": str(new_stock),
            },
        )
        return previous_stock, new_stock
