"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Receiving and order maintenance fail for a small number of well-defined
reasons, and the surrounding application has to turn each of them into a
form or flash message.  Callers catch by type and read structured
attributes; they never parse message strings.

    try:
        purchasing.receive(po_id, lines, actor_id=user_id)
    except OverReceiptError as e:
        flash(
            f"{e.product_name}: ordered {e.ordered_quantity}, "
            f"already received {e.received_quantity}, "
            f"tried to add {e.attempted_quantity}"
        )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementKernelError (base)
    |
    +-- ValidationError
    |
    +-- InvalidStateError
    |
    +-- InvalidReferenceError
    |   +-- OrderNotFoundError
    |   +-- OrderItemNotFoundError
    |   +-- ProductNotFoundError
    |   +-- SupplierNotFoundError
    |
    +-- OverReceiptError
    |
    +-- PersistenceError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised                              | Retry?
------------------------|------------------------------------------|--------
VALIDATION_ERROR        | Missing/invalid caller input             | No
INVALID_STATE           | Order status does not allow the action   | No
INVALID_REFERENCE       | Unknown order/item/product/supplier id   | No
ORDER_NOT_FOUND         | po_id does not exist                     | No
ORDER_ITEM_NOT_FOUND    | item_id is not a line of the order       | No
PRODUCT_NOT_FOUND       | product_id does not exist                | No
SUPPLIER_NOT_FOUND      | supplier_id does not exist               | No
OVER_RECEIPT            | Batch would exceed the ordered quantity  | No
PERSISTENCE_ERROR       | Storage failure, transaction rolled back | Yes
IMMUTABILITY_VIOLATION  | Update/delete of an append-only record   | No

Every error aborts the enclosing transaction.  PersistenceError is the only
class a caller may resubmit verbatim.
"""


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"
    retryable: bool = False


class ValidationError(ProcurementKernelError):
    """Caller input is missing or invalid.  No mutation was attempted."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidStateError(ProcurementKernelError):
    """The order's current status does not allow the requested operation."""

    code: str = "INVALID_STATE"

    def __init__(self, po_id: str, status: str, operation: str):
        self.po_id = po_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} purchase order {po_id} in status '{status}'"
        )


# Reference exceptions


class InvalidReferenceError(ProcurementKernelError):
    """An identifier does not resolve to an existing record."""

    code: str = "INVALID_REFERENCE"

    def __init__(self, entity_type: str, entity_id: str, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type} not found: {entity_id}")


class OrderNotFoundError(InvalidReferenceError):
    """Purchase order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, po_id: str):
        self.po_id = po_id
        super().__init__("PurchaseOrder", po_id)


class OrderItemNotFoundError(InvalidReferenceError):
    """Item ID is not a line of the given purchase order."""

    code: str = "ORDER_ITEM_NOT_FOUND"

    def __init__(self, po_id: str, item_id: str):
        self.po_id = po_id
        self.item_id = item_id
        super().__init__(
            "PurchaseOrderItem",
            item_id,
            f"Item {item_id} does not belong to purchase order {po_id}",
        )


class ProductNotFoundError(InvalidReferenceError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Product", product_id)


class SupplierNotFoundError(InvalidReferenceError):
    """Supplier with given ID was not found."""

    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: str):
        self.supplier_id = supplier_id
        super().__init__("Supplier", supplier_id)


class OverReceiptError(ProcurementKernelError):
    """
    Receiving would push an item's cumulative received quantity past the
    ordered quantity.

    Business-rule violation, not a bug.  The whole batch is rejected.
    """

    code: str = "OVER_RECEIPT"

    def __init__(
        self,
        product_name: str,
        ordered_quantity,
        received_quantity,
        attempted_quantity,
        item_id: str | None = None,
    ):
        self.product_name = product_name
        self.ordered_quantity = ordered_quantity
        self.received_quantity = received_quantity
        self.attempted_quantity = attempted_quantity
        self.item_id = item_id
        super().__init__(
            f"Received quantity ({attempted_quantity}) exceeds remaining ordered "
            f"quantity for product '{product_name}'. Ordered: {ordered_quantity}, "
            f"previously received: {received_quantity}"
        )


class PersistenceError(ProcurementKernelError):
    """Underlying storage failure.  The transaction was rolled back."""

    code: str = "PERSISTENCE_ERROR"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


# Immutability-related exceptions


class ImmutabilityError(ProcurementKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    InventoryTransaction rows are append-only; purchase orders are never
    hard-deleted; received quantities never decrease.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
