"""
BaseService -- abstract base for all kernel write services.

Responsibility:
    Common constructor and session-handling contract for every service
    that mutates ledger state.  Services receive a SQLAlchemy ``Session``
    and persist through ``session.flush()``, never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries belong to the caller (LedgerOrchestrator,
      ``session_scope()`` or the test harness).  A service never commits
      or rolls back, so multi-step operations stay atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a ``Session`` from the caller and flushes within the active
        transaction.

    Non-goals:
        - Does NOT manage commit/rollback.
        - Does NOT serve reports; those live in ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
