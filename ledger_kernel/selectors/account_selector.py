"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only view of the chart of accounts as the ledger sees it.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.models.account import Account
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountDTO:
    id: UUID
    code: str
    name: str
    account_type: str
    normal_balance: str
    allows_entries: bool
    is_active: bool
    parent_id: UUID | None
    level: int


class AccountSelector(BaseSelector[Account]):
    """Account lookups; the chart itself is maintained elsewhere."""

    def _to_dto(self, account: Account) -> AccountDTO:
        return AccountDTO(
            id=account.id,
            code=account.code,
            name=account.name,
            account_type=str(getattr(account.account_type, "value", account.account_type)),
            normal_balance=str(getattr(account.normal_balance, "value", account.normal_balance)),
            allows_entries=account.allows_entries,
            is_active=account.is_active,
            parent_id=account.parent_id,
            level=account.level,
        )

    def get_active_accounts(self, postable_only: bool = False) -> list[AccountDTO]:
        """Active accounts ordered by code; ``postable_only`` keeps leaf accounts."""
        stmt = select(Account).where(Account.is_active.is_(True)).order_by(Account.code)
        if postable_only:
            stmt = stmt.where(Account.allows_entries.is_(True))
        return [self._to_dto(a) for a in self.session.execute(stmt).scalars()]

    def get_by_code(self, code: str) -> AccountDTO | None:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        return self._to_dto(account) if account is not None else None
