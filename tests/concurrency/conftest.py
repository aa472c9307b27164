"""
Fixtures for threaded tests.

The shared in-memory session of tests/conftest.py cannot see other
threads' work, so these tests run on a file-backed SQLite database where
every thread opens its own connection and commits its own transaction.
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

import ledger_kernel.models  # noqa: F401  (populates Base.metadata)
from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import build_engine
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.legal_document import DocumentType
from ledger_kernel.models.voucher_type import VoucherType
from ledger_kernel.services.period_service import PeriodService

POOL_SIZE = 8


@pytest.fixture
def file_db(tmp_path, deterministic_clock):
    """
    Session factory over a fresh file database plus the ids of its seed rows.

    Seeds a JE voucher type, cash (1105), receivables (1305) and revenue
    (4135) accounts, an invoice document type booking details on the credit
    side against receivables, and fiscal year 2024.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}", pool_size=POOL_SIZE)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)

    actor = uuid4()
    with factory() as session:
        voucher_type = VoucherType(code="JE", name="Diario", prefix="JE", created_by_id=actor)
        cash = Account(
            code="1105", name="Caja", account_type=AccountType.ASSET.value,
            normal_balance=NormalBalance.DEBIT.value, created_by_id=actor,
        )
        receivables = Account(
            code="1305", name="Clientes", account_type=AccountType.ASSET.value,
            normal_balance=NormalBalance.DEBIT.value, created_by_id=actor,
        )
        revenue = Account(
            code="4135", name="Ventas", account_type=AccountType.REVENUE.value,
            normal_balance=NormalBalance.CREDIT.value, created_by_id=actor,
        )
        session.add_all([voucher_type, cash, receivables, revenue])
        session.flush()
        invoice = DocumentType(
            code="FAC", name="Factura de Venta",
            default_voucher_type_id=voucher_type.id,
            counter_account_id=receivables.id,
            detail_side="credit",
            created_by_id=actor,
        )
        session.add(invoice)
        period = PeriodService(session, deterministic_clock).create_period(
            "FY2024", "Ejercicio 2024", date(2024, 1, 1), date(2024, 12, 31), actor
        )
        session.commit()
        ids = {
            "voucher_type": voucher_type.id,
            "cash": cash.id,
            "receivables": receivables.id,
            "revenue": revenue.id,
            "document_type": invoice.id,
            "period": period.id,
            "actor": actor,
        }

    yield factory, ids
    engine.dispose()
