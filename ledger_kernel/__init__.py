"""
Ledger Kernel - double-entry journal engine.

A voucher-based general ledger with:
- Gap-free, race-safe entry numbering per voucher type
- Balanced, atomically persisted journal entries
- Explicit draft/posted/reversed/cancelled state machine
- Derived account ledgers (libro mayor) and trial balances
- Legal document to voucher generation with cascading cancellation
"""

__version__ = "0.1.0"
