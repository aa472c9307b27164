#!/usr/bin/env python3
"""
Seed a demo ledger and print its reports.

Loads the ledger settings, recreates the schema, seeds the reference data
(voucher types, chart of accounts, document types), opens the fiscal year,
posts a handful of business transactions plus one invoice voucher, and
prints the libro diario, a libro mayor and the balance de comprobación as
JSON.

Usage:
    python3 scripts/seed_data.py
    python3 scripts/seed_data.py --database-url sqlite:///demo.db --report balance
    python3 scripts/seed_data.py --report mayor --account 1105
"""

import argparse
import dataclasses
import json
import sys
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
FY_START = date(2025, 1, 1)
FY_END = date(2025, 12, 31)


def _to_json(value) -> str:
    if dataclasses.is_dataclass(value):
        value = dataclasses.asdict(value)
    return json.dumps(value, indent=2, default=str, ensure_ascii=False)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML (default: packaged)")
    parser.add_argument("--database-url", default=None, help="Overrides the settings database URL")
    parser.add_argument(
        "--report",
        choices=("diario", "mayor", "balance", "all", "none"),
        default="all",
        help="Report(s) to print after seeding",
    )
    parser.add_argument("--account", default="1105", help="Account code for the libro mayor")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from dataclasses import replace

    from ledger_config import get_active_settings
    from ledger_config.bridges import build_orchestrator, init_from_settings, seed_reference_data
    from ledger_kernel.db.engine import create_tables, drop_tables, get_session
    from ledger_kernel.domain.clock import DeterministicClock
    from ledger_kernel.domain.dtos import DocumentDetailSpec, EntryHeader, LineSpec
    from ledger_kernel.exceptions import LedgerKernelError
    from ledger_kernel.services.period_service import PeriodService

    settings = get_active_settings(args.config)
    if args.database_url:
        settings = replace(settings, database=replace(settings.database, url=args.database_url))

    # -----------------------------------------------------------------
    # 1. Connect + reset
    # -----------------------------------------------------------------
    print(f"  [1/4] Connecting to {settings.database.url} ...", file=sys.stderr)
    try:
        init_from_settings(settings, create_schema=False)
        drop_tables()
        create_tables()
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    clock = DeterministicClock(datetime(2025, 6, 30, 12, 0, 0, tzinfo=UTC))
    actor_id = uuid4()

    try:
        # -------------------------------------------------------------
        # 2. Reference data and fiscal year
        # -------------------------------------------------------------
        print("  [2/4] Seeding reference data ...", file=sys.stderr)
        ref = seed_reference_data(session, settings, actor_id)
        period = PeriodService(session, clock).create_period(
            "FY2025", "Ejercicio 2025", FY_START, FY_END, actor_id
        )
        session.commit()

        ledger = build_orchestrator(session, settings, clock=clock, auto_commit=True)
        acct = ref.accounts
        journal = ref.voucher_types["CD"]

        # -------------------------------------------------------------
        # 3. Business transactions
        # -------------------------------------------------------------
        print("  [3/4] Posting transactions ...", file=sys.stderr)
        txns = [
            (date(2025, 1, 2), "1110.01", "3105", Decimal("50000000.00"), "Aporte de capital"),
            (date(2025, 1, 15), "1105", "1110.01", Decimal("2000000.00"), "Retiro para caja menor"),
            (date(2025, 2, 28), "5105", "1110.01", Decimal("8500000.00"), "Pago de nómina de febrero"),
            (date(2025, 3, 10), "5135", "1105", Decimal("350000.00"), "Servicios públicos"),
        ]
        for entry_date, debit_code, credit_code, amount, memo in txns:
            entry = ledger.create_entry(
                EntryHeader(
                    voucher_type_id=journal,
                    entry_date=entry_date,
                    fiscal_period_id=period.id,
                    description=memo,
                    currency=settings.currency,
                ),
                [
                    LineSpec.debit(acct[debit_code], amount, memo),
                    LineSpec.credit(acct[credit_code], amount, memo),
                ],
                actor_id,
            )
            ledger.post_entry(entry.id, actor_id)
            print(f"         [OK] {memo}", file=sys.stderr)

        invoice = ledger.create_document(
            ref.document_types["FAC"],
            "FV-0001",
            date(2025, 4, 5),
            period.id,
            actor_id,
            details=(
                DocumentDetailSpec(acct["4135"], Decimal("4000000.00"), "Venta de mercancía"),
                DocumentDetailSpec(acct["4155"], Decimal("1500000.00"), "Instalación"),
            ),
            currency=settings.currency,
            reference="Pedido 118",
        )
        ledger.approve_document(invoice.id, actor_id)
        voucher = ledger.generate_voucher_from_document(invoice.id, None, actor_id)
        ledger.post_entry(voucher.id, actor_id)
        print(f"         [OK] Factura {invoice.document_number} -> {voucher.entry_number}", file=sys.stderr)

        # -------------------------------------------------------------
        # 4. Reports
        # -------------------------------------------------------------
        print("  [4/4] Reports", file=sys.stderr)
        if args.report in ("diario", "all"):
            print(_to_json(ledger.get_libro_diario(page=1, include_details=True)))
        if args.report in ("mayor", "all"):
            if args.account not in acct:
                print(f"  ERROR: unknown account code {args.account}", file=sys.stderr)
                return 1
            print(_to_json(ledger.get_libro_mayor(acct[args.account], FY_START, FY_END)))
        if args.report in ("balance", "all"):
            print(_to_json(ledger.get_balance_comprobacion(fiscal_period_id=period.id)))
    except LedgerKernelError as exc:
        session.rollback()
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
