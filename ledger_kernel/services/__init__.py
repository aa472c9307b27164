"""Write-side services of the ledger kernel."""

from ledger_kernel.services.document_service import DocumentService
from ledger_kernel.services.document_voucher_bridge import (
    DocumentVoucherBridge,
    LineBuilderRegistry,
    VoucherDraft,
    counter_account_builder,
)
from ledger_kernel.services.journal_entry_store import JournalEntryStore
from ledger_kernel.services.ledger_orchestrator import LedgerOrchestrator
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceAllocator

__all__ = [
    "DocumentService",
    "DocumentVoucherBridge",
    "LineBuilderRegistry",
    "VoucherDraft",
    "counter_account_builder",
    "JournalEntryStore",
    "LedgerOrchestrator",
    "PeriodService",
    "SequenceAllocator",
]
