"""
DTOs -- input structures for journal entry writes.

Responsibility:
    Immutable request objects handed to JournalEntryStore: the entry header
    (EntryHeader) and its lines (LineSpec).  Amounts are normalized to the
    ledger's two-decimal scale on construction; business validation (balance,
    one-sided lines, account postability) happens in the store, where the
    line number and database state are known.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  No ORM imports.

Failure modes:
    - TypeError when an amount is a float.
    - ValueError when an amount string is not numeric.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import ZERO, to_money


@dataclass(frozen=True)
class LineSpec:
    """
    One requested journal line.

    Contract:
        Carries an account id and a debit or a credit amount.  Exactly one
        of the two must end up positive; the store rejects anything else.

    Guarantees:
        - debit_amount and credit_amount are Decimal with two places.
    """

    account_id: UUID | None
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    description: str | None = None
    third_party_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit_amount", to_money(self.debit_amount))
        object.__setattr__(self, "credit_amount", to_money(self.credit_amount))

    @classmethod
    def debit(cls, account_id: UUID, amount, description: str | None = None, **kwargs) -> LineSpec:
        return cls(account_id=account_id, debit_amount=amount, description=description, **kwargs)

    @classmethod
    def credit(cls, account_id: UUID, amount, description: str | None = None, **kwargs) -> LineSpec:
        return cls(account_id=account_id, credit_amount=amount, description=description, **kwargs)


@dataclass(frozen=True)
class EntryHeader:
    """
    Journal entry header fields supplied by the caller.

    ``entry_number`` is optional; when absent the SequenceAllocator issues
    the next number for ``voucher_type_id``.  Totals are never part of the
    header: they are derived from the lines.
    """

    voucher_type_id: UUID
    entry_date: date
    fiscal_period_id: UUID
    reference: str | None = None
    description: str | None = None
    currency: str = "USD"
    exchange_rate: Decimal = Decimal("1")
    third_party_id: UUID | None = None
    entry_number: str | None = None
    document_type_id: UUID | None = None
    document_id: UUID | None = None

    def __post_init__(self) -> None:
        if isinstance(self.exchange_rate, float):
            raise TypeError("exchange_rate must not be a float")
        object.__setattr__(self, "exchange_rate", Decimal(str(self.exchange_rate)))


@dataclass(frozen=True)
class FiscalPeriodInfo:
    """Read-only view of a fiscal period returned by PeriodService."""

    id: UUID
    period_code: str
    name: str
    start_date: date
    end_date: date
    is_closed: bool
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None

    @property
    def is_open(self) -> bool:
        return not self.is_closed

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date


@dataclass(frozen=True)
class DocumentDetailSpec:
    """One detail line of a legal document: an amount booked to an account."""

    account_id: UUID | None
    amount: Decimal
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_money(self.amount))
