"""
Module: procurement_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the query side of the kernel: listings, dashboards, receiving forms
    and stock history read through them.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    the DTOs in domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit() or session.flush().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.  Column selects bypass the identity map, so results always
      reflect the database rather than a stale in-session copy.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from procurement_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  The caller owns the session and its transaction.
    """

    def __init__(self, session: Session):
        self.session = session
