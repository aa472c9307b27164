"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.models.journal import (
    ENTRY_TRANSITIONS,
    LEDGER_EFFECTIVE_STATUSES,
    EntrySource,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.models.legal_document import (
    DOCUMENT_TRANSITIONS,
    DocumentStatus,
    DocumentType,
    LegalDocument,
    LegalDocumentDetail,
    LegalDocumentStatusHistory,
)
from ledger_kernel.models.voucher_type import SequenceCounter, VoucherType

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "FiscalPeriod",
    "VoucherType",
    "SequenceCounter",
    "JournalEntry",
    "JournalLine",
    "JournalEntryStatus",
    "EntrySource",
    "ENTRY_TRANSITIONS",
    "LEDGER_EFFECTIVE_STATUSES",
    "DocumentType",
    "DocumentStatus",
    "DOCUMENT_TRANSITIONS",
    "LegalDocument",
    "LegalDocumentDetail",
    "LegalDocumentStatusHistory",
]
