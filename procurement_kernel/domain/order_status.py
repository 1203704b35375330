"""
Order status vocabulary and derivation -- pure functions, no I/O.

An order's receiving status is not stored independently of its lines: after
every receiving batch it is recomputed from the received quantities of all
items.  Re-scanning every line under the same transaction is the only
derivation path; there is no running "fully received" counter.

Transitions:

    draft ---place---> ordered ---receive---> partial ---receive---> delivered
      |                   |                      |
      +------cancel-------+--------cancel--------+----> cancelled

delivered and cancelled are terminal.  Nothing moves back to ordered once
goods have been received.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from enum import Enum
from typing import Protocol


class OrderStatus(str, Enum):
    """Lifecycle status of a purchase order."""

    DRAFT = "draft"
    ORDERED = "ordered"
    PARTIAL = "partial"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Statuses a caller may choose when creating or editing an order
CREATABLE_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.ORDERED})

RECEIVABLE_STATUSES = frozenset({OrderStatus.ORDERED, OrderStatus.PARTIAL})

EDITABLE_STATUSES = frozenset(
    {OrderStatus.DRAFT, OrderStatus.ORDERED, OrderStatus.PARTIAL}
)

CANCELLABLE_STATUSES = EDITABLE_STATUSES

# Pending from the purchasing dashboard's point of view
PENDING_STATUSES = RECEIVABLE_STATUSES

VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.DRAFT: frozenset({OrderStatus.ORDERED, OrderStatus.CANCELLED}),
    OrderStatus.ORDERED: frozenset(
        {
            OrderStatus.DRAFT,
            OrderStatus.PARTIAL,
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
        }
    ),
    OrderStatus.PARTIAL: frozenset(
        {OrderStatus.PARTIAL, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class ReceivableLine(Protocol):
    quantity: Decimal
    received_quantity: Decimal


def as_status(value: OrderStatus | str) -> OrderStatus:
    """Normalize a stored string to OrderStatus.  Raises ValueError if unknown."""
    return value if isinstance(value, OrderStatus) else OrderStatus(value)


def derive_status(lines: Iterable[ReceivableLine]) -> OrderStatus:
    """
    Derive an order's receiving status from all of its lines.

    Returns:
        DELIVERED if every line has received_quantity == quantity,
        PARTIAL if at least one line has received anything,
        ORDERED otherwise (including an order with no lines).
    """
    seen = False
    all_complete = True
    any_received = False
    for line in lines:
        seen = True
        if line.received_quantity != line.quantity:
            all_complete = False
        if line.received_quantity > 0:
            any_received = True

    if seen and all_complete:
        return OrderStatus.DELIVERED
    if any_received:
        return OrderStatus.PARTIAL
    return OrderStatus.ORDERED


def can_receive(status: OrderStatus | str) -> bool:
    return as_status(status) in RECEIVABLE_STATUSES


def can_edit(status: OrderStatus | str) -> bool:
    return as_status(status) in EDITABLE_STATUSES


def can_cancel(status: OrderStatus | str) -> bool:
    return as_status(status) in CANCELLABLE_STATUSES


def is_valid_transition(
    current: OrderStatus | str, target: OrderStatus | str
) -> bool:
    """True if moving from ``current`` to ``target`` is allowed.  Staying put is allowed."""
    current = as_status(current)
    target = as_status(target)
    if current == target:
        return True
    return target in VALID_TRANSITIONS[current]
