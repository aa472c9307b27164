"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only access to journal entries: single-entry lookup and
    the paginated libro diario (general journal book).
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.

Invariants enforced:
    - Read-only: no mutations.
    - Ordering is (entry_date, entry_number), then id, so identical data
      always pages identically.
    - Lines are sorted by order_number.
    - Without a status filter only ledger-effective entries (posted and
      reversed) are listed; drafts and cancelled entries need an explicit
      status filter.

Failure modes:
    - InvalidFilterError for page < 1, limit outside [1, max_page_size],
      an unknown status or date_from after date_to.
    - get_entry() returns None for unknown ids (never raises).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ledger_kernel.exceptions import InvalidFilterError
from ledger_kernel.models.journal import (
    LEDGER_EFFECTIVE_STATUSES,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class JournalLineDTO:
    """Data transfer object for a journal line."""

    id: UUID
    order_number: int
    account_id: UUID
    account_code: str | None
    account_name: str | None
    description: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    third_party_id: UUID | None


@dataclass(frozen=True)
class JournalEntryDTO:
    """Data transfer object for a journal entry (voucher)."""

    id: UUID
    entry_number: str
    voucher_type_id: UUID
    voucher_type_code: str | None
    entry_date: date
    reference: str | None
    description: str | None
    currency: str
    exchange_rate: Decimal
    fiscal_period_id: UUID
    third_party_id: UUID | None
    status: JournalEntryStatus
    total_debit: Decimal
    total_credit: Decimal
    source_kind: str
    document_type_id: UUID | None
    document_id: UUID | None
    reversal_of_id: UUID | None
    posted_at: datetime | None
    posted_by_id: UUID | None
    reversed_at: datetime | None
    reversal_reason: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_by_id: UUID
    lines: tuple[JournalLineDTO, ...] = ()

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class LibroDiarioFilter:
    """Libro diario filters; every field is optional."""

    date_from: date | None = None
    date_to: date | None = None
    status: JournalEntryStatus | str | None = None
    third_party_id: UUID | None = None
    fiscal_period_id: UUID | None = None
    voucher_type_id: UUID | None = None
    # Prefix match on entry_number
    entry_number: str | None = None


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total_records: int
    records_per_page: int


@dataclass(frozen=True)
class LibroDiarioPage:
    entries: tuple[JournalEntryDTO, ...]
    pagination: Pagination


def entry_to_dto(entry: JournalEntry, include_lines: bool = True) -> JournalEntryDTO:
    """Convert an ORM entry (and optionally its lines) to a DTO."""
    lines: tuple[JournalLineDTO, ...] = ()
    if include_lines:
        lines = tuple(
            JournalLineDTO(
                id=line.id,
                order_number=line.order_number,
                account_id=line.account_id,
                account_code=line.account.code if line.account is not None else None,
                account_name=line.account.name if line.account is not None else None,
                description=line.description,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                third_party_id=line.third_party_id,
            )
            for line in sorted(entry.lines, key=lambda x: x.order_number)
        )

    return JournalEntryDTO(
        id=entry.id,
        entry_number=entry.entry_number,
        voucher_type_id=entry.voucher_type_id,
        voucher_type_code=entry.voucher_type.code if entry.voucher_type is not None else None,
        entry_date=entry.entry_date,
        reference=entry.reference,
        description=entry.description,
        currency=entry.currency,
        exchange_rate=entry.exchange_rate,
        fiscal_period_id=entry.fiscal_period_id,
        third_party_id=entry.third_party_id,
        status=entry.status_enum,
        total_debit=entry.total_debit,
        total_credit=entry.total_credit,
        source_kind=str(getattr(entry.source_kind, "value", entry.source_kind)),
        document_type_id=entry.document_type_id,
        document_id=entry.document_id,
        reversal_of_id=entry.reversal_of_id,
        posted_at=entry.posted_at,
        posted_by_id=entry.posted_by_id,
        reversed_at=entry.reversed_at,
        reversal_reason=entry.reversal_reason,
        cancelled_at=entry.cancelled_at,
        cancellation_reason=entry.cancellation_reason,
        created_by_id=entry.created_by_id,
        lines=lines,
    )


class JournalSelector(BaseSelector[JournalEntry]):
    """
    Selector for journal entry queries.

    Contract:
        Returns JournalEntryDTO instances; ``libro_diario`` returns one page
        plus pagination metadata computed from the same filters.

    Guarantees:
        - Lines (and their accounts) are loaded with selectinload, avoiding
          N+1 queries.

    Non-goals:
        - Does NOT compute balances; see BalanceEngine and
          TrialBalanceBuilder.
    """

    def __init__(
        self,
        session: Session,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        super().__init__(session)
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    def get_entry(self, entry_id: UUID) -> JournalEntryDTO | None:
        """Entry with all lines, or None."""
        entry = self.session.execute(
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines).selectinload(JournalLine.account))
            .where(JournalEntry.id == entry_id)
        ).scalar_one_or_none()
        if entry is None:
            return None
        return entry_to_dto(entry)

    def libro_diario(
        self,
        filters: LibroDiarioFilter | None = None,
        page: int = 1,
        limit: int | None = None,
        include_details: bool = False,
    ) -> LibroDiarioPage:
        """
        One page of the general journal book.

        Args:
            filters: Optional LibroDiarioFilter.
            page: 1-based page number.
            limit: Page size; defaults to the selector's default page size.
            include_details: Include lines in each entry.
        """
        filters = filters or LibroDiarioFilter()
        limit = self._default_page_size if limit is None else limit
        if page < 1:
            raise InvalidFilterError("page", "must be >= 1")
        if limit < 1 or limit > self._max_page_size:
            raise InvalidFilterError("limit", f"must be between 1 and {self._max_page_size}")

        conditions = self._conditions(filters)
        total_records = self.count_entries(filters)

        stmt = (
            select(JournalEntry)
            .where(*conditions)
            .order_by(JournalEntry.entry_date, JournalEntry.entry_number, JournalEntry.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        if include_details:
            stmt = stmt.options(
                selectinload(JournalEntry.lines).selectinload(JournalLine.account)
            )
        entries = self.session.execute(stmt).scalars().all()

        return LibroDiarioPage(
            entries=tuple(entry_to_dto(e, include_lines=include_details) for e in entries),
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(total_records / limit),
                total_records=total_records,
                records_per_page=limit,
            ),
        )

    def count_entries(self, filters: LibroDiarioFilter | None = None) -> int:
        """Number of entries matching ``filters`` (same rules as libro_diario)."""
        conditions = self._conditions(filters or LibroDiarioFilter())
        return self.session.execute(
            select(func.count(JournalEntry.id)).where(*conditions)
        ).scalar_one()

    def _conditions(self, filters: LibroDiarioFilter) -> list:
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise InvalidFilterError("date_from", "must not be after date_to")

        conditions = []
        if filters.status is None:
            conditions.append(
                JournalEntry.status.in_([s.value for s in LEDGER_EFFECTIVE_STATUSES])
            )
        else:
            try:
                status = JournalEntryStatus(filters.status)
            except ValueError:
                raise InvalidFilterError("status", f"unknown status {filters.status!r}") from None
            conditions.append(JournalEntry.status == status.value)

        if filters.date_from is not None:
            conditions.append(JournalEntry.entry_date >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(JournalEntry.entry_date <= filters.date_to)
        if filters.third_party_id is not None:
            conditions.append(JournalEntry.third_party_id == filters.third_party_id)
        if filters.fiscal_period_id is not None:
            conditions.append(JournalEntry.fiscal_period_id == filters.fiscal_period_id)
        if filters.voucher_type_id is not None:
            conditions.append(JournalEntry.voucher_type_id == filters.voucher_type_id)
        if filters.entry_number:
            conditions.append(
                JournalEntry.entry_number.startswith(filters.entry_number, autoescape=True)
            )
        return conditions
