"""Read-only query selectors: journal, account ledger, trial balance, accounts."""

from ledger_kernel.selectors.account_selector import AccountDTO, AccountSelector
from ledger_kernel.selectors.balance_engine import AccountLedger, BalanceEngine, LedgerMovement
from ledger_kernel.selectors.document_selector import (
    DocumentSelector,
    LegalDocumentDTO,
    document_to_dto,
)
from ledger_kernel.selectors.journal_selector import (
    JournalEntryDTO,
    JournalLineDTO,
    JournalSelector,
    LibroDiarioFilter,
    LibroDiarioPage,
    Pagination,
)
from ledger_kernel.selectors.trial_balance import (
    BalanceCheck,
    TrialBalance,
    TrialBalanceBuilder,
    TrialBalanceRow,
    TrialBalanceTotals,
)

__all__ = [
    "AccountDTO",
    "AccountSelector",
    "AccountLedger",
    "BalanceEngine",
    "LedgerMovement",
    "DocumentSelector",
    "LegalDocumentDTO",
    "document_to_dto",
    "JournalEntryDTO",
    "JournalLineDTO",
    "JournalSelector",
    "LibroDiarioFilter",
    "LibroDiarioPage",
    "Pagination",
    "BalanceCheck",
    "TrialBalance",
    "TrialBalanceBuilder",
    "TrialBalanceRow",
    "TrialBalanceTotals",
]
