"""
Ledger settings schema.

Typed, frozen view of the YAML settings file.  The loader parses YAML
into these types; bridges translate them into kernel rows and kernel
constructor arguments.

Key distinction:
  LedgerSettings  = parsed source artifact (human-authored, versioned)
  kernel rows     = what bridges.seed_reference_data() writes from it
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Where the ledger lives."""

    url: str
    echo: bool = False


@dataclass(frozen=True)
class ReportSettings:
    """Paging limits for the libro diario."""

    default_page_size: int = 50
    max_page_size: int = 500


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VoucherTypeDef:
    """A voucher (comprobante) type and its numbering pattern."""

    code: str
    name: str
    prefix: str
    number_pattern: str


@dataclass(frozen=True)
class AccountDef:
    """One chart-of-accounts row to seed."""

    code: str
    name: str
    account_type: str  # asset, liability, equity, revenue, expense
    normal_balance: str  # debit, credit
    allows_entries: bool = True


@dataclass(frozen=True)
class DocumentTypeDef:
    """
    A legal document type.

    ``default_voucher_type`` and ``counter_account_code`` are codes, resolved
    to ids when the reference data is seeded.
    """

    code: str
    name: str
    default_voucher_type: str | None = None
    counter_account_code: str | None = None
    detail_side: str = "debit"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Complete, validated ledger settings."""

    database: DatabaseSettings
    reports: ReportSettings
    log_level: str
    currency: str
    balance_tolerance: Decimal
    reversal_prefix: str
    voucher_types: tuple[VoucherTypeDef, ...] = ()
    accounts: tuple[AccountDef, ...] = ()
    document_types: tuple[DocumentTypeDef, ...] = ()
    checksum: str = ""

    def voucher_type(self, code: str) -> VoucherTypeDef:
        for vt in self.voucher_types:
            if vt.code == code:
                return vt
        raise KeyError(f"Unknown voucher type code: {code}")
