"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries (vouchers) and their
    debit/credit lines -- the single source of financial truth.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - entry_number is unique per voucher type (uq_journal_type_number).
    - A document yields at most one entry per voucher type
      (uq_journal_document_voucher).
    - Every line is one-sided: exactly one of debit_amount / credit_amount is
      positive and the other is zero (ck_journal_line_one_sided).
    - total_debit / total_credit are a projection of the lines, recomputed
      by JournalEntryStore on every line change and never set by callers.
    - Status changes follow ENTRY_TRANSITIONS; entries and lines are frozen
      once out of DRAFT (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate numbers or duplicate document vouchers
      that slipped past the service-level checks.
    - InvalidTransitionError from validate_transition().
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import ZERO
from ledger_kernel.exceptions import InvalidTransitionError

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.voucher_type import VoucherType


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: DRAFT -> POSTED -> REVERSED, or DRAFT -> CANCELLED.
    Nothing returns to DRAFT.
    """

    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"
    CANCELLED = "cancelled"


ENTRY_TRANSITIONS: dict[JournalEntryStatus, frozenset[JournalEntryStatus]] = {
    JournalEntryStatus.DRAFT: frozenset({
        JournalEntryStatus.POSTED, JournalEntryStatus.CANCELLED,
    }),
    JournalEntryStatus.POSTED: frozenset({JournalEntryStatus.REVERSED}),
    # Terminal states
    JournalEntryStatus.REVERSED: frozenset(),
    JournalEntryStatus.CANCELLED: frozenset(),
}

# Statuses whose lines count toward balances.  A reversed original stays in
# history next to its posted mirror; together they net to zero.
LEDGER_EFFECTIVE_STATUSES: tuple[JournalEntryStatus, ...] = (
    JournalEntryStatus.POSTED,
    JournalEntryStatus.REVERSED,
)


class EntrySource(str, Enum):
    """How the entry came to exist."""

    MANUAL = "manual"
    DOCUMENT = "document"
    REVERSAL = "reversal"


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Created in DRAFT.  Mutable (header and lines) only in DRAFT.  POSTED
        entries count toward balances; a POSTED entry is undone by a mirrored
        reversing entry, after which it is REVERSED.

    Guarantees:
        - lines are owned: they are deleted with the entry and ordered by
          order_number.
        - reversal_of_id links a reversing entry to the original.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("voucher_type_id", "entry_number", name="uq_journal_type_number"),
        UniqueConstraint(
            "document_type_id", "document_id", "voucher_type_id",
            name="uq_journal_document_voucher",
        ),
        Index("idx_journal_entry_date", "entry_date", "entry_number"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_period", "fiscal_period_id"),
        Index("idx_journal_document", "document_id"),
    )

    entry_number: Mapped[str] = mapped_column(String(50), nullable=False)

    voucher_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("voucher_types.id"), nullable=False
    )

    # Accounting date; no time-of-day component
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(20, 6), nullable=False, default=Decimal("1")
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_periods.id"), nullable=False
    )

    third_party_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10), default=JournalEntryStatus.DRAFT, nullable=False
    )

    # Derived from lines
    total_debit: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    total_credit: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    # Source legal document, when generated from one
    document_type_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("document_types.id"), nullable=True
    )

    document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("legal_documents.id"), nullable=True
    )

    source_kind: Mapped[EntrySource] = mapped_column(
        String(10), default=EntrySource.MANUAL, nullable=False
    )

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reversed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.order_number",
        lazy="selectin",
    )

    voucher_type: Mapped["VoucherType"] = relationship(lazy="joined")

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status_enum.value}>"

    @property
    def status_enum(self) -> JournalEntryStatus:
        return JournalEntryStatus(self.status)

    @property
    def is_draft(self) -> bool:
        return self.status_enum == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status_enum == JournalEntryStatus.POSTED

    @property
    def is_reversed(self) -> bool:
        return self.status_enum == JournalEntryStatus.REVERSED

    @property
    def is_cancelled(self) -> bool:
        return self.status_enum == JournalEntryStatus.CANCELLED

    @property
    def is_balanced(self) -> bool:
        """Read-side check on the stored totals (exact)."""
        return self.total_debit == self.total_credit

    def validate_transition(self, target: JournalEntryStatus) -> None:
        """Raise InvalidTransitionError unless ENTRY_TRANSITIONS allows target."""
        allowed = ENTRY_TRANSITIONS.get(self.status_enum, frozenset())
        if target not in allowed:
            raise InvalidTransitionError(
                "JournalEntry", str(self.id), self.status_enum.value, target.value
            )

    def recompute_totals(self) -> None:
        """Refresh total_debit/total_credit from the lines."""
        self.total_debit = sum((line.debit_amount for line in self.lines), ZERO)
        self.total_credit = sum((line.credit_amount for line in self.lines), ZERO)


class JournalLine(TrackedBase):
    """
    One account movement inside a journal entry.

    Contract:
        Belongs to exactly one JournalEntry and references one Account.
        Carries a debit or a credit, never both.  order_number (1-based)
        fixes the intra-entry order and the ledger tie-break.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "order_number", name="uq_journal_line_order"),
        CheckConstraint(
            "debit_amount >= 0 AND credit_amount >= 0",
            name="ck_journal_line_non_negative",
        ),
        CheckConstraint(
            "(debit_amount > 0 AND credit_amount = 0) OR (debit_amount = 0 AND credit_amount > 0)",
            name="ck_journal_line_one_sided",
        ),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=False
    )

    order_number: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    debit_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    credit_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    third_party_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return (
            f"<JournalLine #{self.order_number} "
            f"D={self.debit_amount} C={self.credit_amount}>"
        )

    @property
    def is_debit(self) -> bool:
        return self.debit_amount > 0
