"""
Module: ledger_kernel.selectors.trial_balance
Responsibility: Balance de comprobación (trial balance): per-account debit
    and credit totals over a date range, their debtor/creditor split, and
    the report-level balance check.
Architecture position: Kernel > Selectors.  May import from models/, db/
    and domain/balances.py.

Invariants enforced:
    - Aggregated from ledger-effective journal lines at query time.
    - Covers every active account with allows_entries, ordered by code.
    - Deterministic: identical ledger state gives identical output.
    - balanced requires |debit - credit| < tolerance AND
      |debtor - creditor| < tolerance.

Failure modes:
    - PeriodNotFoundError for an unknown fiscal period.
    - InvalidFilterError when date_from is after date_to.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO, amounts_equal, money_from_db
from ledger_kernel.domain.balances import split_balance
from ledger_kernel.exceptions import InvalidFilterError, PeriodNotFoundError
from ledger_kernel.models.account import Account, NormalBalance
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.models.journal import LEDGER_EFFECTIVE_STATUSES, JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    normal_balance: str
    total_debit: Decimal
    total_credit: Decimal
    debtor_balance: Decimal
    creditor_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit


@dataclass(frozen=True)
class TrialBalanceTotals:
    total_debit: Decimal
    total_credit: Decimal
    total_debtor: Decimal
    total_creditor: Decimal
    debit_credit_difference: Decimal
    balance_difference: Decimal


@dataclass(frozen=True)
class BalanceCheck:
    balanced: bool
    debits_equal_credits: bool
    debtors_equal_creditors: bool


@dataclass(frozen=True)
class TrialBalance:
    date_from: date | None
    date_to: date | None
    fiscal_period_id: UUID | None
    rows: tuple[TrialBalanceRow, ...]
    totals: TrialBalanceTotals
    balance_check: BalanceCheck


class TrialBalanceBuilder(BaseSelector[Account]):
    """
    Builds the trial balance.

    Contract:
        One row per active postable account with activity in range (or
        every such account when include_zero_balances is set).

    Non-goals:
        - Does NOT roll up header accounts; only postable accounts appear.
    """

    def __init__(self, session: Session, tolerance: Decimal = BALANCE_TOLERANCE):
        super().__init__(session)
        self._tolerance = tolerance

    def build(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        fiscal_period_id: UUID | None = None,
        include_zero_balances: bool = False,
    ) -> TrialBalance:
        if fiscal_period_id is not None:
            period = self.session.get(FiscalPeriod, fiscal_period_id)
            if period is None:
                raise PeriodNotFoundError(str(fiscal_period_id))
            date_from = date_from or period.start_date
            date_to = date_to or period.end_date

        if date_from and date_to and date_from > date_to:
            raise InvalidFilterError("date_from", "must not be after date_to")

        activity = (
            select(
                JournalLine.account_id.label("account_id"),
                func.sum(JournalLine.debit_amount).label("total_debit"),
                func.sum(JournalLine.credit_amount).label("total_credit"),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.status.in_([s.value for s in LEDGER_EFFECTIVE_STATUSES]))
            .group_by(JournalLine.account_id)
        )
        if date_from is not None:
            activity = activity.where(JournalEntry.entry_date >= date_from)
        if date_to is not None:
            activity = activity.where(JournalEntry.entry_date <= date_to)
        if fiscal_period_id is not None:
            activity = activity.where(JournalEntry.fiscal_period_id == fiscal_period_id)
        activity = activity.subquery()

        results = self.session.execute(
            select(Account, activity.c.total_debit, activity.c.total_credit)
            .outerjoin(activity, activity.c.account_id == Account.id)
            .where(Account.is_active.is_(True), Account.allows_entries.is_(True))
            .order_by(Account.code)
        ).all()

        rows = []
        for account, debit_sum, credit_sum in results:
            total_debit = money_from_db(debit_sum)
            total_credit = money_from_db(credit_sum)
            if total_debit + total_credit == 0 and not include_zero_balances:
                continue
            split = split_balance(account.is_debit_normal, total_debit, total_credit)
            rows.append(
                TrialBalanceRow(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=str(getattr(account.account_type, "value", account.account_type)),
                    normal_balance=NormalBalance(account.normal_balance).value,
                    total_debit=total_debit,
                    total_credit=total_credit,
                    debtor_balance=split.debtor,
                    creditor_balance=split.creditor,
                )
            )

        totals = self._totals(rows)
        debits_ok = amounts_equal(totals.total_debit, totals.total_credit, self._tolerance)
        splits_ok = amounts_equal(totals.total_debtor, totals.total_creditor, self._tolerance)
        return TrialBalance(
            date_from=date_from,
            date_to=date_to,
            fiscal_period_id=fiscal_period_id,
            rows=tuple(rows),
            totals=totals,
            balance_check=BalanceCheck(
                balanced=debits_ok and splits_ok,
                debits_equal_credits=debits_ok,
                debtors_equal_creditors=splits_ok,
            ),
        )

    @staticmethod
    def _totals(rows: list[TrialBalanceRow]) -> TrialBalanceTotals:
        total_debit = sum((r.total_debit for r in rows), ZERO)
        total_credit = sum((r.total_credit for r in rows), ZERO)
        total_debtor = sum((r.debtor_balance for r in rows), ZERO)
        total_creditor = sum((r.creditor_balance for r in rows), ZERO)
        return TrialBalanceTotals(
            total_debit=total_debit,
            total_credit=total_credit,
            total_debtor=total_debtor,
            total_creditor=total_creditor,
            debit_credit_difference=total_debit - total_credit,
            balance_difference=total_debtor - total_creditor,
        )
