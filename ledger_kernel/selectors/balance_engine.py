"""
Module: ledger_kernel.selectors.balance_engine
Responsibility: Libro mayor (general ledger) for one account: opening balance,
    dated movements with a running balance, and the closing balance.
Architecture position: Kernel > Selectors.  May import from models/, db/
    and domain/balances.py.

Invariants enforced:
    - Balances are aggregated from journal lines at query time; nothing is
      stored.
    - Only ledger-effective entries (posted, reversed) contribute.
    - Sign rule: delta = debit - credit, +delta for debit-normal accounts,
      -delta for credit-normal accounts.
    - Movements are ordered by (entry_date, entry_number, order_number).

Failure modes:
    - AccountNotFoundError / AccountNotPostableError (inactive account,
      unless include_inactive is set).
    - PeriodNotFoundError for an unknown fiscal period.
    - InvalidFilterError when date_from is after date_to.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.db.types import ZERO, money_from_db
from ledger_kernel.domain.balances import signed_delta
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AccountNotPostableError,
    InvalidFilterError,
    PeriodNotFoundError,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.models.journal import LEDGER_EFFECTIVE_STATUSES, JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector

_EFFECTIVE = [s.value for s in LEDGER_EFFECTIVE_STATUSES]


@dataclass(frozen=True)
class LedgerMovement:
    """One line of the account ledger with the balance after it."""

    entry_id: UUID
    entry_number: str
    entry_date: date
    reference: str | None
    description: str | None
    order_number: int
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Decimal
    third_party_id: UUID | None


@dataclass(frozen=True)
class AccountLedger:
    """Libro mayor of a single account over a date range."""

    account_id: UUID
    account_code: str
    account_name: str
    normal_balance: str
    date_from: date | None
    date_to: date | None
    fiscal_period_id: UUID | None
    opening_balance: Decimal
    movements: tuple[LedgerMovement, ...]
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal


class BalanceEngine(BaseSelector[JournalLine]):
    """
    Per-account ledger queries.

    Guarantees:
        - closing_balance == opening_balance when there are no movements.
        - Every movement's running_balance equals the opening balance plus
          the signed deltas of all movements up to and including it.
    """

    def ledger_for(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        fiscal_period_id: UUID | None = None,
        include_inactive: bool = False,
    ) -> AccountLedger:
        """
        Build the ledger of ``account_id``.

        When ``fiscal_period_id`` is given, missing date bounds are taken
        from the period and movements are restricted to entries of that
        period.  The opening balance covers every ledger-effective line
        dated before ``date_from``.

        Inactive accounts are refused unless ``include_inactive`` is set,
        which lets the history of a retired account be read.
        """
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        if not account.is_active and not include_inactive:
            raise AccountNotPostableError(str(account.id), account.code, "account is inactive")

        if fiscal_period_id is not None:
            period = self.session.get(FiscalPeriod, fiscal_period_id)
            if period is None:
                raise PeriodNotFoundError(str(fiscal_period_id))
            date_from = date_from or period.start_date
            date_to = date_to or period.end_date

        if date_from and date_to and date_from > date_to:
            raise InvalidFilterError("date_from", "must not be after date_to")

        debit_normal = account.is_debit_normal
        opening = self._opening_balance(account.id, debit_normal, date_from)

        stmt = (
            select(JournalLine, JournalEntry)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account.id,
                JournalEntry.status.in_(_EFFECTIVE),
            )
            .order_by(
                JournalEntry.entry_date,
                JournalEntry.entry_number,
                JournalLine.order_number,
            )
        )
        if date_from is not None:
            stmt = stmt.where(JournalEntry.entry_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(JournalEntry.entry_date <= date_to)
        if fiscal_period_id is not None:
            stmt = stmt.where(JournalEntry.fiscal_period_id == fiscal_period_id)

        running = opening
        total_debit = ZERO
        total_credit = ZERO
        movements = []
        for line, entry in self.session.execute(stmt).all():
            running += signed_delta(debit_normal, line.debit_amount, line.credit_amount)
            total_debit += line.debit_amount
            total_credit += line.credit_amount
            movements.append(
                LedgerMovement(
                    entry_id=entry.id,
                    entry_number=entry.entry_number,
                    entry_date=entry.entry_date,
                    reference=entry.reference,
                    description=line.description or entry.description,
                    order_number=line.order_number,
                    debit_amount=line.debit_amount,
                    credit_amount=line.credit_amount,
                    running_balance=running,
                    third_party_id=line.third_party_id,
                )
            )

        return AccountLedger(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            normal_balance=str(getattr(account.normal_balance, "value", account.normal_balance)),
            date_from=date_from,
            date_to=date_to,
            fiscal_period_id=fiscal_period_id,
            opening_balance=opening,
            movements=tuple(movements),
            total_debit=total_debit,
            total_credit=total_credit,
            closing_balance=running,
        )

    def _opening_balance(self, account_id: UUID, debit_normal: bool, date_from: date | None) -> Decimal:
        if date_from is None:
            return ZERO
        debit_sum, credit_sum = self.session.execute(
            select(
                func.sum(JournalLine.debit_amount),
                func.sum(JournalLine.credit_amount),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account_id,
                JournalEntry.status.in_(_EFFECTIVE),
                JournalEntry.entry_date < date_from,
            )
        ).one()
        return signed_delta(debit_normal, money_from_db(debit_sum), money_from_db(credit_sum))
