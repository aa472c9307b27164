"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique (uq_account_code).
    - Only active accounts with allows_entries=True may receive lines
      (checked by JournalEntryStore at create/update/post time).

Failure modes:
    - AccountNotFoundError when a line references an unknown account.
    - AccountNotPostableError when the account is inactive or a header
      (non-leaf) account.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which the account's balance is conventionally positive."""

    DEBIT = "debit"
    CREDIT = "credit"


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        Account.code is globally unique and hierarchical ("1", "11",
        "1105").  Header accounts group children and have
        allows_entries=False; only leaf accounts are postable.

    Non-goals:
        - Account maintenance (create/rename/deactivate) belongs to the
          chart-of-accounts collaborator; the ledger only reads accounts.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_active", "is_active"),
        Index("idx_account_postable", "is_active", "allows_entries"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    # Leaf accounts only
    allows_entries: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return NormalBalance(self.normal_balance) == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return not self.is_debit_normal

    @property
    def is_postable(self) -> bool:
        """Active leaf account that may receive journal lines."""
        return bool(self.is_active and self.allows_entries)
