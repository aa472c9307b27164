"""
JournalEntryStore -- the only writer of journal entries and lines.

Responsibility:
    Creates, edits, posts, reverses, cancels and deletes journal entries
    (vouchers).  Every write validates the full entry first, so a failed
    call persists nothing.

Architecture position:
    Kernel > Services -- imperative shell.
    Consumes SequenceAllocator (numbers) and PeriodService (posting dates).
    Called by LedgerOrchestrator and DocumentVoucherBridge.

Invariants enforced:
    - Balance: |total_debit - total_credit| < tolerance on create, update
      and again at post time.
    - One-sided lines: exactly one of debit/credit is positive.
    - Postability: lines reference active accounts with allows_entries.
    - Period: writes go into an open period containing the entry date.
    - Lifecycle: ENTRY_TRANSITIONS (draft -> posted -> reversed,
      draft -> cancelled).  Only drafts are edited or deleted.
    - Totals are derived from the lines and never taken from the caller.

Failure modes:
    - ValidationError subclasses: EmptyEntryError, InvalidLineError,
      UnbalancedEntryError, AccountNotPostableError, ClosedPeriodError,
      DateOutsidePeriodError, InvalidCurrencyError, MissingReasonError.
    - NotFoundError subclasses: EntryNotFoundError, AccountNotFoundError,
      PeriodNotFoundError, VoucherTypeNotFoundError.
    - InvalidTransitionError: operation not allowed in the current status.
    - DuplicateEntryNumberError: supplied number already used for the type.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO, amounts_equal, validate_currency
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import EntryHeader, LineSpec
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AccountNotPostableError,
    DuplicateEntryNumberError,
    EmptyEntryError,
    EntryNotFoundError,
    InvalidLineError,
    InvalidTransitionError,
    MissingReasonError,
    UnbalancedEntryError,
    ValidationError,
    VoucherTypeNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import (
    EntrySource,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.models.voucher_type import VoucherType
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceAllocator

logger = get_logger("services.journal_entry_store")

DEFAULT_REVERSAL_PREFIX = "CANC"


class JournalEntryStore(BaseService[JournalEntry]):
    """
    Write side of the journal.

    Contract:
        Accepts ``EntryHeader`` / ``LineSpec`` inputs and returns the
        flushed ``JournalEntry``.  Lines are stored with
        ``order_number = position + 1``.

    Guarantees:
        - Validation completes before anything is added to the session.
        - post/reverse/cancel/delete lock the entry row before checking
          its status, so two racing transitions cannot both succeed.
        - A reversal leaves the original (now REVERSED) untouched apart
          from its status and reversal metadata, and adds a POSTED mirror
          entry whose lines net the original to zero.

    Non-goals:
        - Does NOT commit.
        - Does NOT compute balances (see selectors/balance_engine.py).
    """

    def __init__(
        self,
        session: Session,
        sequence_allocator: SequenceAllocator | None = None,
        clock: Clock | None = None,
        tolerance: Decimal = BALANCE_TOLERANCE,
        reversal_prefix: str = DEFAULT_REVERSAL_PREFIX,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = sequence_allocator or SequenceAllocator(session, self._clock)
        self._periods = PeriodService(session, self._clock)
        self._tolerance = tolerance
        self._reversal_prefix = reversal_prefix

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entry_id: UUID, lock: bool = False) -> JournalEntry:
        """
        Load an entry with its lines.

        Args:
            lock: Take a row lock (``FOR UPDATE``) and refresh from the
                database, for status transitions.

        Raises:
            EntryNotFoundError: Unknown id.
        """
        stmt = select(JournalEntry).where(JournalEntry.id == entry_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        entry = self.session.execute(stmt).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        header: EntryHeader,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        source_kind: EntrySource = EntrySource.MANUAL,
    ) -> JournalEntry:
        """
        Create a DRAFT entry.

        Postconditions:
            - The entry and its lines are flushed with derived totals.
            - entry_number is allocated when the header has none.
        """
        total_debit, total_credit = self._validate_lines(lines)
        currency = self._validate_header(header)
        self._validate_period(header.fiscal_period_id, header.entry_date)
        self._require_postable_accounts(lines)

        if header.entry_number:
            self._ensure_number_free(header.voucher_type_id, header.entry_number)
            entry_number = header.entry_number
        else:
            entry_number = self._next_free_number(header.voucher_type_id, header.entry_date)

        entry = JournalEntry(
            entry_number=entry_number,
            voucher_type_id=header.voucher_type_id,
            entry_date=header.entry_date,
            reference=header.reference,
            description=header.description,
            currency=currency,
            exchange_rate=header.exchange_rate,
            fiscal_period_id=header.fiscal_period_id,
            third_party_id=header.third_party_id,
            document_type_id=header.document_type_id,
            document_id=header.document_id,
            status=JournalEntryStatus.DRAFT.value,
            source_kind=source_kind.value,
            total_debit=total_debit,
            total_credit=total_credit,
            created_by_id=actor_id,
        )
        entry.lines = self._build_lines(lines, header.third_party_id, actor_id)
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "entry_created",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "line_count": len(entry.lines),
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
                "source_kind": source_kind.value,
            },
        )
        return entry

    def update(
        self,
        entry_id: UUID,
        header: EntryHeader,
        lines: Sequence[LineSpec],
        actor_id: UUID,
    ) -> JournalEntry:
        """
        Replace the header and lines of a DRAFT entry.

        The document link and source kind of the entry are kept.  The entry
        number changes when the header supplies a different one, or when
        the voucher type changes without one (a new number is drawn from
        the new type's sequence).

        Raises:
            InvalidTransitionError: Entry is not a draft.
        """
        entry = self.get(entry_id, lock=True)
        self._require_draft(entry, JournalEntryStatus.DRAFT.value)

        total_debit, total_credit = self._validate_lines(lines)
        currency = self._validate_header(header)
        self._validate_period(header.fiscal_period_id, header.entry_date)
        self._require_postable_accounts(lines)

        if header.entry_number:
            entry_number = header.entry_number
            if (entry_number, header.voucher_type_id) != (entry.entry_number, entry.voucher_type_id):
                self._ensure_number_free(header.voucher_type_id, entry_number)
        elif header.voucher_type_id != entry.voucher_type_id:
            # A number belongs to its voucher type's sequence
            entry_number = self._next_free_number(header.voucher_type_id, header.entry_date)
        else:
            entry_number = entry.entry_number

        entry.entry_number = entry_number
        entry.voucher_type_id = header.voucher_type_id
        entry.entry_date = header.entry_date
        entry.reference = header.reference
        entry.description = header.description
        entry.currency = currency
        entry.exchange_rate = header.exchange_rate
        entry.fiscal_period_id = header.fiscal_period_id
        entry.third_party_id = header.third_party_id
        entry.updated_by_id = actor_id

        # Old lines must be gone before the new ones reuse their order numbers
        entry.lines.clear()
        self.session.flush()

        entry.lines.extend(self._build_lines(lines, header.third_party_id, actor_id))
        entry.total_debit = total_debit
        entry.total_credit = total_credit
        self.session.flush()

        logger.info(
            "entry_updated",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "line_count": len(entry.lines),
            },
        )
        return entry

    def post(self, entry_id: UUID, actor_id: UUID) -> JournalEntry:
        """
        DRAFT -> POSTED.

        Balance, period and account postability are checked again: the
        period may have closed or an account may have been deactivated
        since the draft was saved.
        """
        entry = self.get(entry_id, lock=True)
        entry.validate_transition(JournalEntryStatus.POSTED)

        specs = [
            LineSpec(
                account_id=line.account_id,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
            )
            for line in entry.lines
        ]
        self._validate_lines(specs)
        self._validate_period(entry.fiscal_period_id, entry.entry_date)
        self._require_postable_accounts(specs)

        entry.recompute_totals()
        entry.status = JournalEntryStatus.POSTED.value
        entry.posted_at = self._clock.now()
        entry.posted_by_id = actor_id
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "entry_posted",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "total_debit": str(entry.total_debit),
                "total_credit": str(entry.total_credit),
            },
        )
        return entry

    def reverse(
        self,
        entry_id: UUID,
        actor_id: UUID,
        reason: str,
        reversal_date: date | None = None,
    ) -> JournalEntry:
        """
        POSTED -> REVERSED, by way of a POSTED mirror entry.

        The mirror is numbered ``{reversal_prefix}-{original number}``, uses
        the same voucher type, is dated ``reversal_date`` (the original date
        by default) and swaps debit and credit on every line.  When the date
        falls outside the original period, the period covering it is used.

        Returns:
            The reversing entry.

        Raises:
            MissingReasonError: Blank reason.
            InvalidTransitionError: Entry is not POSTED.
            ClosedPeriodError: Target period is closed.
        """
        if not reason or not reason.strip():
            raise MissingReasonError("reverse a journal entry")

        original = self.get(entry_id, lock=True)
        original.validate_transition(JournalEntryStatus.REVERSED)

        reversal_date = reversal_date or original.entry_date
        period_id = original.fiscal_period_id
        period = self._periods.get_period(period_id)
        if not period.contains_date(reversal_date):
            period_id = self._periods.get_period_for_date(reversal_date).id
        self._validate_period(period_id, reversal_date)

        reversal_number = f"{self._reversal_prefix}-{original.entry_number}"
        self._ensure_number_free(original.voucher_type_id, reversal_number)

        now = self._clock.now()
        mirror = JournalEntry(
            entry_number=reversal_number,
            voucher_type_id=original.voucher_type_id,
            entry_date=reversal_date,
            reference=f"Anulación de {original.entry_number}",
            description=reason,
            currency=original.currency,
            exchange_rate=original.exchange_rate,
            fiscal_period_id=period_id,
            third_party_id=original.third_party_id,
            status=JournalEntryStatus.POSTED.value,
            source_kind=EntrySource.REVERSAL.value,
            reversal_of_id=original.id,
            total_debit=original.total_credit,
            total_credit=original.total_debit,
            posted_at=now,
            posted_by_id=actor_id,
            created_by_id=actor_id,
        )
        mirror.lines = [
            JournalLine(
                order_number=line.order_number,
                account_id=line.account_id,
                description=f"Anulación: {line.description or ''}".rstrip(),
                debit_amount=line.credit_amount,
                credit_amount=line.debit_amount,
                third_party_id=line.third_party_id,
                created_by_id=actor_id,
            )
            for line in original.lines
        ]

        original.status = JournalEntryStatus.REVERSED.value
        original.reversed_at = now
        original.reversed_by_id = actor_id
        original.reversal_reason = reason
        original.updated_by_id = actor_id

        self.session.add(mirror)
        self.session.flush()

        logger.info(
            "entry_reversed",
            extra={
                "entry_id": str(original.id),
                "entry_number": original.entry_number,
                "reversal_entry_id": str(mirror.id),
                "reversal_entry_number": mirror.entry_number,
            },
        )
        return mirror

    def cancel(self, entry_id: UUID, actor_id: UUID, reason: str) -> JournalEntry:
        """DRAFT -> CANCELLED; the entry stays on file but never reaches reports."""
        if not reason or not reason.strip():
            raise MissingReasonError("cancel a journal entry")

        entry = self.get(entry_id, lock=True)
        entry.validate_transition(JournalEntryStatus.CANCELLED)

        entry.status = JournalEntryStatus.CANCELLED.value
        entry.cancelled_at = self._clock.now()
        entry.cancelled_by_id = actor_id
        entry.cancellation_reason = reason
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "entry_cancelled",
            extra={"entry_id": str(entry.id), "entry_number": entry.entry_number},
        )
        return entry

    def delete(self, entry_id: UUID, actor_id: UUID) -> None:
        """Remove a DRAFT entry and its lines."""
        entry = self.get(entry_id, lock=True)
        self._require_draft(entry, "deleted")

        entry_number = entry.entry_number
        self.session.delete(entry)
        self.session.flush()

        logger.info(
            "entry_deleted",
            extra={
                "entry_id": str(entry_id),
                "entry_number": entry_number,
                "deleted_by": str(actor_id),
            },
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _require_draft(self, entry: JournalEntry, target: str) -> None:
        if not entry.is_draft:
            raise InvalidTransitionError(
                "JournalEntry", str(entry.id), entry.status_enum.value, target
            )

    def _validate_lines(self, lines: Sequence[LineSpec]) -> tuple[Decimal, Decimal]:
        """Structural checks and balance.  Returns (total_debit, total_credit)."""
        if not lines:
            raise EmptyEntryError()

        total_debit = ZERO
        total_credit = ZERO
        for number, line in enumerate(lines, start=1):
            if line.account_id is None:
                raise InvalidLineError(number, "account is required")
            if line.debit_amount < 0 or line.credit_amount < 0:
                raise InvalidLineError(number, "amounts cannot be negative")
            if line.debit_amount > 0 and line.credit_amount > 0:
                raise InvalidLineError(number, "a line cannot carry both a debit and a credit")
            if line.debit_amount == 0 and line.credit_amount == 0:
                raise InvalidLineError(number, "a line must carry a debit or a credit")
            total_debit += line.debit_amount
            total_credit += line.credit_amount

        if not amounts_equal(total_debit, total_credit, self._tolerance):
            logger.warning(
                "entry_unbalanced",
                extra={"total_debit": str(total_debit), "total_credit": str(total_credit)},
            )
            raise UnbalancedEntryError(total_debit, total_credit)

        return total_debit, total_credit

    def _validate_header(self, header: EntryHeader) -> str:
        """Voucher type, currency and exchange rate.  Returns the normalized currency."""
        voucher_type = self.session.get(VoucherType, header.voucher_type_id)
        if voucher_type is None:
            raise VoucherTypeNotFoundError(str(header.voucher_type_id))
        if not voucher_type.is_active:
            raise ValidationError(f"Voucher type {voucher_type.code} is inactive")

        currency = validate_currency(header.currency)
        if header.exchange_rate <= 0:
            raise ValidationError(
                f"Exchange rate must be positive, got {header.exchange_rate}"
            )
        return currency

    def _validate_period(self, period_id: UUID, entry_date: date) -> None:
        self._periods.validate_posting(period_id, entry_date)

    def _require_postable_accounts(self, lines: Sequence[LineSpec]) -> None:
        account_ids = {line.account_id for line in lines}
        accounts = {
            account.id: account
            for account in self.session.execute(
                select(Account).where(Account.id.in_(account_ids))
            ).scalars()
        }
        for line in lines:
            account = accounts.get(line.account_id)
            if account is None:
                raise AccountNotFoundError(str(line.account_id))
            if not account.is_active:
                raise AccountNotPostableError(str(account.id), account.code, "account is inactive")
            if not account.allows_entries:
                raise AccountNotPostableError(
                    str(account.id), account.code, "account does not allow entries"
                )

    def _number_taken(self, voucher_type_id: UUID, entry_number: str) -> bool:
        return self.session.execute(
            select(JournalEntry.id).where(
                JournalEntry.voucher_type_id == voucher_type_id,
                JournalEntry.entry_number == entry_number,
            )
        ).scalar_one_or_none() is not None

    def _ensure_number_free(self, voucher_type_id: UUID, entry_number: str) -> None:
        if self._number_taken(voucher_type_id, entry_number):
            raise DuplicateEntryNumberError(entry_number, str(voucher_type_id))

    def _next_free_number(self, voucher_type_id: UUID, entry_date: date) -> str:
        """
        Draw from the locked counter until the number is unused.

        Caller-supplied numbers can occupy values the counter has not
        reached yet; those values are skipped and stay consumed.
        """
        while True:
            number = self._sequences.next_number(voucher_type_id, entry_date)
            if not self._number_taken(voucher_type_id, number):
                return number
            logger.info(
                "entry_number_skipped",
                extra={"voucher_type_id": str(voucher_type_id), "entry_number": number},
            )

    @staticmethod
    def _build_lines(
        lines: Sequence[LineSpec],
        default_third_party_id: UUID | None,
        actor_id: UUID,
    ) -> list[JournalLine]:
        return [
            JournalLine(
                order_number=position + 1,
                account_id=spec.account_id,
                description=spec.description,
                debit_amount=spec.debit_amount,
                credit_amount=spec.credit_amount,
                third_party_id=spec.third_party_id or default_third_party_id,
                created_by_id=actor_id,
            )
            for position, spec in enumerate(lines)
        ]
