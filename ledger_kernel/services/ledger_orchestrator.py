"""
LedgerOrchestrator -- the exposed interface of the ledger kernel.

Responsibility:
    Single entry point for callers (HTTP layer, scripts, tests).  Wires the
    services and selectors to one session, runs every mutation as one
    atomic unit and converts results to frozen DTOs.

Architecture position:
    Kernel > Services -- outermost kernel component.

Invariants enforced:
    - Atomicity: each mutation runs inside a savepoint; any error rolls the
      savepoint back, so a failed call leaves stored state unchanged.  With
      ``auto_commit`` the surrounding transaction is committed on success
      and rolled back on failure.
    - Every operation binds LogContext (correlation id, actor, operation)
      and logs ``<operation>_started`` / ``_completed`` / ``_failed`` with
      its duration.

Failure modes:
    - Re-raises the typed LedgerKernelError of the failing service
      (ValidationError, NotFoundError, InvalidStateError, ConflictError).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import DocumentDetailSpec, EntryHeader, LineSpec
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    DocumentNotFoundError,
    EntryNotFoundError,
    LedgerKernelError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.account_selector import AccountDTO, AccountSelector
from ledger_kernel.selectors.balance_engine import AccountLedger, BalanceEngine
from ledger_kernel.selectors.document_selector import DocumentSelector, LegalDocumentDTO
from ledger_kernel.selectors.journal_selector import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    JournalEntryDTO,
    JournalSelector,
    LibroDiarioFilter,
    LibroDiarioPage,
    entry_to_dto,
)
from ledger_kernel.selectors.trial_balance import TrialBalance, TrialBalanceBuilder
from ledger_kernel.services.document_service import DocumentService
from ledger_kernel.services.document_voucher_bridge import (
    DocumentVoucherBridge,
    LineBuilderRegistry,
)
from ledger_kernel.services.journal_entry_store import (
    DEFAULT_REVERSAL_PREFIX,
    JournalEntryStore,
)
from ledger_kernel.services.sequence_service import SequenceAllocator

logger = get_logger("services.orchestrator")

T = TypeVar("T")


class LedgerOrchestrator:
    """
    Facade over the ledger services.

    Contract:
        Mutations return a ``JournalEntryDTO`` (full entry with lines) or a
        ``LegalDocumentDTO``; reads return frozen report DTOs.

    Guarantees:
        - Mutations are atomic (savepoint per call).
        - Reads never write.

    Non-goals:
        - Does NOT authenticate or authorize ``actor_id``.
        - Does NOT render reports (PDF, spreadsheets).

    By default the caller owns the transaction (``auto_commit=False``).
    Set ``auto_commit=True`` to commit after every successful mutation.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = False,
        tolerance: Decimal = BALANCE_TOLERANCE,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        reversal_prefix: str = DEFAULT_REVERSAL_PREFIX,
        line_builders: LineBuilderRegistry | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit

        self._sequences = SequenceAllocator(session, self._clock)
        self._entries = JournalEntryStore(
            session,
            sequence_allocator=self._sequences,
            clock=self._clock,
            tolerance=tolerance,
            reversal_prefix=reversal_prefix,
        )
        self._documents = DocumentService(session, self._clock)
        self._bridge = DocumentVoucherBridge(
            session, self._entries, clock=self._clock, line_builders=line_builders
        )
        self._journal = JournalSelector(
            session, default_page_size=default_page_size, max_page_size=max_page_size
        )
        self._document_reader = DocumentSelector(session)
        self._accounts = AccountSelector(session)
        self._balances = BalanceEngine(session)
        self._trial_balance = TrialBalanceBuilder(session, tolerance=tolerance)

    # ------------------------------------------------------------------
    # Transaction wrapper
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor_id: UUID,
        action: Callable[[], T],
        entry_id: UUID | None = None,
        document_id: UUID | None = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=uuid4(),
            actor_id=actor_id,
            operation=operation,
            entry_id=entry_id,
            document_id=document_id,
        ):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            try:
                with self._session.begin_nested():
                    result = action()
                if self._auto_commit:
                    self._session.commit()
            except LedgerKernelError as exc:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    f"{operation}_failed",
                    extra={
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                raise
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            logger.info(
                f"{operation}_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )
            return result

    # ------------------------------------------------------------------
    # Journal entries
    # ------------------------------------------------------------------

    def create_entry(
        self, header: EntryHeader, lines: Sequence[LineSpec], actor_id: UUID
    ) -> JournalEntryDTO:
        return self._run(
            "create_entry",
            actor_id,
            lambda: entry_to_dto(self._entries.create(header, lines, actor_id)),
        )

    def update_entry(
        self,
        entry_id: UUID,
        header: EntryHeader,
        lines: Sequence[LineSpec],
        actor_id: UUID,
    ) -> JournalEntryDTO:
        return self._run(
            "update_entry",
            actor_id,
            lambda: entry_to_dto(self._entries.update(entry_id, header, lines, actor_id)),
            entry_id=entry_id,
        )

    def post_entry(self, entry_id: UUID, actor_id: UUID) -> JournalEntryDTO:
        return self._run(
            "post_entry",
            actor_id,
            lambda: entry_to_dto(self._entries.post(entry_id, actor_id)),
            entry_id=entry_id,
        )

    def reverse_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        reason: str,
        reversal_date: date | None = None,
    ) -> JournalEntryDTO:
        """Reverse a posted entry; returns the reversing (mirror) entry."""
        return self._run(
            "reverse_entry",
            actor_id,
            lambda: entry_to_dto(
                self._entries.reverse(entry_id, actor_id, reason, reversal_date)
            ),
            entry_id=entry_id,
        )

    def delete_entry(self, entry_id: UUID, actor_id: UUID) -> None:
        self._run(
            "delete_entry",
            actor_id,
            lambda: self._entries.delete(entry_id, actor_id),
            entry_id=entry_id,
        )

    def cancel_entry(self, entry_id: UUID, actor_id: UUID, reason: str) -> JournalEntryDTO:
        return self._run(
            "cancel_entry",
            actor_id,
            lambda: entry_to_dto(self._entries.cancel(entry_id, actor_id, reason)),
            entry_id=entry_id,
        )

    def get_entry(self, entry_id: UUID) -> JournalEntryDTO:
        """Raises EntryNotFoundError for unknown ids."""
        dto = self._journal.get_entry(entry_id)
        if dto is None:
            raise EntryNotFoundError(str(entry_id))
        return dto

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_libro_diario(
        self,
        filters: LibroDiarioFilter | None = None,
        page: int = 1,
        limit: int | None = None,
        include_details: bool = False,
    ) -> LibroDiarioPage:
        return self._journal.libro_diario(filters, page, limit, include_details)

    def count_libro_diario(self, filters: LibroDiarioFilter | None = None) -> int:
        return self._journal.count_entries(filters)

    def get_libro_mayor(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        fiscal_period_id: UUID | None = None,
        include_inactive: bool = False,
    ) -> AccountLedger:
        return self._balances.ledger_for(
            account_id, date_from, date_to, fiscal_period_id, include_inactive
        )

    def get_balance_comprobacion(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        fiscal_period_id: UUID | None = None,
        include_zero_balances: bool = False,
    ) -> TrialBalance:
        return self._trial_balance.build(
            date_from, date_to, fiscal_period_id, include_zero_balances
        )

    def get_accounts(self, postable_only: bool = False) -> list[AccountDTO]:
        return self._accounts.get_active_accounts(postable_only)

    def get_account_by_code(self, code: str) -> AccountDTO:
        """Raises AccountNotFoundError for unknown codes."""
        account = self._accounts.get_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    # ------------------------------------------------------------------
    # Legal documents
    # ------------------------------------------------------------------

    def create_document(
        self,
        document_type_id: UUID,
        document_number: str,
        document_date: date,
        fiscal_period_id: UUID,
        actor_id: UUID,
        details: Sequence[DocumentDetailSpec] = (),
        **fields,
    ) -> LegalDocumentDTO:
        return self._run(
            "create_document",
            actor_id,
            lambda: self._document_reader.to_dto(
                self._documents.create_document(
                    document_type_id,
                    document_number,
                    document_date,
                    fiscal_period_id,
                    actor_id,
                    details=details,
                    **fields,
                )
            ),
        )

    def approve_document(self, document_id: UUID, actor_id: UUID) -> LegalDocumentDTO:
        return self._run(
            "approve_document",
            actor_id,
            lambda: self._document_reader.to_dto(self._documents.approve(document_id, actor_id)),
            document_id=document_id,
        )

    def generate_voucher_from_document(
        self,
        document_id: UUID,
        voucher_type_id: UUID | None,
        actor_id: UUID,
    ) -> JournalEntryDTO:
        return self._run(
            "generate_voucher",
            actor_id,
            lambda: entry_to_dto(
                self._bridge.generate_voucher(document_id, voucher_type_id, actor_id)
            ),
            document_id=document_id,
        )

    def cancel_document(self, document_id: UUID, reason: str, actor_id: UUID) -> LegalDocumentDTO:
        return self._run(
            "cancel_document",
            actor_id,
            lambda: self._document_reader.to_dto(
                self._bridge.cancel_document(document_id, reason, actor_id)
            ),
            document_id=document_id,
        )

    def get_document(self, document_id: UUID) -> LegalDocumentDTO:
        dto = self._document_reader.get_document(document_id)
        if dto is None:
            raise DocumentNotFoundError(str(document_id))
        return dto
