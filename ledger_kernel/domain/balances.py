"""
Balance arithmetic shared by the ledger and trial balance selectors.

Sign rule: ``delta = debit - credit``.  A debit-normal account accumulates
``+delta``; a credit-normal account accumulates ``-delta``.  Balances are
therefore positive when an account sits on its normal side.
"""

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.db.types import ZERO


def signed_delta(is_debit_normal: bool, debit: Decimal, credit: Decimal) -> Decimal:
    """Movement of one line expressed in the account's normal direction."""
    delta = (debit or ZERO) - (credit or ZERO)
    return delta if is_debit_normal else -delta


@dataclass(frozen=True)
class BalanceSplit:
    """Debtor (saldo deudor) / creditor (saldo acreedor) split of a net position."""

    debtor: Decimal
    creditor: Decimal


def split_balance(is_debit_normal: bool, total_debit: Decimal, total_credit: Decimal) -> BalanceSplit:
    """
    Classify an account's net movement as a debtor or creditor balance.

    For a debit-normal account a positive ``debit - credit`` is a debtor
    balance and a negative one is a creditor balance of the absolute value.
    For a credit-normal account the test runs on ``credit - debit``: a
    positive value is a creditor balance, a negative one a debtor balance.
    Exactly one side is non-zero unless the account nets to zero.
    """
    difference = total_debit - total_credit
    if is_debit_normal:
        if difference > 0:
            return BalanceSplit(debtor=difference, creditor=ZERO)
        if difference < 0:
            return BalanceSplit(debtor=ZERO, creditor=-difference)
    else:
        natural = -difference
        if natural > 0:
            return BalanceSplit(debtor=ZERO, creditor=natural)
        if natural < 0:
            return BalanceSplit(debtor=-natural, creditor=ZERO)
    return BalanceSplit(debtor=ZERO, creditor=ZERO)
