"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors (journal,
    ledger, trial balance, accounts).
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Selectors return frozen dataclasses, not ORM instances.
    - Balances are always aggregated from journal lines; no stored running
      totals exist.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session from the caller, runs read-only queries, and
        returns DTOs.  The caller owns the session and its snapshot.
    """

    def __init__(self, session: Session):
        self.session = session
