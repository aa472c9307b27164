"""
Settings Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the YAML settings file and parses it into typed
``ledger_config.schema`` dataclass instances.  Runtime callers go through
``ledger_config.get_active_settings()`` rather than calling this module.

Architecture position
---------------------
**Config layer**.  May import kernel validators (currency codes, number
patterns); the kernel never imports this package.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.
* Codes are unique within each reference-data list.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad values (pattern, side, tolerance, page sizes)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountDef,
    DatabaseSettings,
    DocumentTypeDef,
    LedgerSettings,
    ReportSettings,
    VoucherTypeDef,
)
from ledger_kernel.db.types import validate_currency
from ledger_kernel.domain.numbering import DEFAULT_NUMBER_PATTERN, validate_pattern
from ledger_kernel.exceptions import InvalidCurrencyError

_SIDES = ("debit", "credit")
_ACCOUNT_TYPES = ("asset", "liability", "equity", "revenue", "expense")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _side(value: Any, what: str) -> str:
    side = str(value).lower()
    if side not in _SIDES:
        raise ValueError(f"{what} must be one of {_SIDES}, got {value!r}")
    return side


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(url=data["url"], echo=bool(data.get("echo", False)))


def parse_reports(data: dict[str, Any]) -> ReportSettings:
    """Parse paging limits; both must be positive and default <= max."""
    reports = ReportSettings(
        default_page_size=int(data.get("default_page_size", 50)),
        max_page_size=int(data.get("max_page_size", 500)),
    )
    if reports.default_page_size < 1 or reports.max_page_size < 1:
        raise ValueError("Page sizes must be positive")
    if reports.default_page_size > reports.max_page_size:
        raise ValueError(
            f"default_page_size {reports.default_page_size} exceeds "
            f"max_page_size {reports.max_page_size}"
        )
    return reports


def parse_voucher_type(data: dict[str, Any]) -> VoucherTypeDef:
    """Parse a VoucherTypeDef; the prefix defaults to the code."""
    return VoucherTypeDef(
        code=data["code"],
        name=data["name"],
        prefix=data.get("prefix", data["code"]),
        number_pattern=validate_pattern(data.get("number_pattern", DEFAULT_NUMBER_PATTERN)),
    )


def parse_account(data: dict[str, Any]) -> AccountDef:
    account_type = str(data["account_type"]).lower()
    if account_type not in _ACCOUNT_TYPES:
        raise ValueError(f"Unknown account_type {data['account_type']!r} for {data['code']}")
    return AccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=account_type,
        normal_balance=_side(data["normal_balance"], f"normal_balance of {data['code']}"),
        allows_entries=bool(data.get("allows_entries", True)),
    )


def parse_document_type(data: dict[str, Any]) -> DocumentTypeDef:
    counter = data.get("counter_account_code")
    return DocumentTypeDef(
        code=data["code"],
        name=data["name"],
        default_voucher_type=data.get("default_voucher_type"),
        counter_account_code=str(counter) if counter is not None else None,
        detail_side=_side(data.get("detail_side", "debit"), f"detail_side of {data['code']}"),
    )


def _unique(items: tuple, what: str) -> tuple:
    seen: set[str] = set()
    for item in items:
        if item.code in seen:
            raise ValueError(f"Duplicate {what} code: {item.code}")
        seen.add(item.code)
    return items


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse the full settings document.

    Cross-references (document type -> voucher type / counter account) are
    checked here so a bad file fails at load time, not at seed time.

    Raises:
        KeyError: a required key is missing.
        ValueError: a value is out of range or a reference is dangling.
    """
    try:
        currency = validate_currency(data.get("currency", "USD"))
    except InvalidCurrencyError as exc:
        raise ValueError(str(exc)) from exc

    try:
        tolerance = Decimal(str(data.get("balance_tolerance", "0.01")))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid balance_tolerance: {data.get('balance_tolerance')!r}") from exc
    if tolerance <= 0:
        raise ValueError("balance_tolerance must be positive")

    reversal_prefix = str(data.get("reversal_prefix", "CANC")).strip()
    if not reversal_prefix:
        raise ValueError("reversal_prefix must not be blank")

    voucher_types = _unique(
        tuple(parse_voucher_type(v) for v in data.get("voucher_types", [])), "voucher type"
    )
    accounts = _unique(tuple(parse_account(a) for a in data.get("accounts", [])), "account")
    document_types = _unique(
        tuple(parse_document_type(d) for d in data.get("document_types", [])), "document type"
    )

    voucher_codes = {v.code for v in voucher_types}
    postable_codes = {a.code for a in accounts if a.allows_entries}
    for dt in document_types:
        if dt.default_voucher_type and dt.default_voucher_type not in voucher_codes:
            raise ValueError(
                f"Document type {dt.code} references unknown voucher type "
                f"{dt.default_voucher_type}"
            )
        if dt.counter_account_code and dt.counter_account_code not in postable_codes:
            raise ValueError(
                f"Document type {dt.code} references unknown or non-postable account "
                f"{dt.counter_account_code}"
            )

    return LedgerSettings(
        database=parse_database(data["database"]),
        reports=parse_reports(data.get("reports", {})),
        log_level=str(data.get("log_level", "INFO")).upper(),
        currency=currency,
        balance_tolerance=tolerance,
        reversal_prefix=reversal_prefix,
        voucher_types=voucher_types,
        accounts=accounts,
        document_types=document_types,
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
