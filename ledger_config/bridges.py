"""
Config -> Kernel Bridges.

Functions that turn ``LedgerSettings`` into kernel rows and kernel
objects.  They live in ledger_config (the producer) because the kernel
must NEVER import ledger_config.

Usage:
    from ledger_config import get_active_settings
    from ledger_config.bridges import build_orchestrator, init_from_settings, seed_reference_data

    settings = get_active_settings()
    init_from_settings(settings)
    with session_scope() as session:
        seed_reference_data(session, settings, actor_id)
        ledger = build_orchestrator(session, settings)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ledger_config.schema import AccountDef, LedgerSettings
from ledger_kernel.db.engine import create_tables, init_engine_from_url
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import Clock
from ledger_kernel.logging_config import configure_logging, get_logger
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.legal_document import DocumentType
from ledger_kernel.models.voucher_type import VoucherType
from ledger_kernel.services.document_voucher_bridge import LineBuilderRegistry
from ledger_kernel.services.ledger_orchestrator import LedgerOrchestrator

logger = get_logger("config.bridges")


@dataclass
class SeededReferenceData:
    """Code -> id maps of the reference rows present after seeding."""

    voucher_types: dict[str, UUID] = field(default_factory=dict)
    accounts: dict[str, UUID] = field(default_factory=dict)
    document_types: dict[str, UUID] = field(default_factory=dict)


def init_from_settings(settings: LedgerSettings, create_schema: bool = True) -> Engine:
    """Configure logging, the module-level engine and the immutability listeners."""
    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(settings.database.url, echo=settings.database.echo)
    register_immutability_listeners()
    if create_schema:
        create_tables()
    return engine


def _parent_code(code: str, known: set[str]) -> str | None:
    """Longest known code that is a proper prefix of ``code``."""
    candidates = [c for c in known if c != code and code.startswith(c)]
    return max(candidates, key=len) if candidates else None


def _seed_accounts(
    session: Session, accounts: tuple[AccountDef, ...], actor_id: UUID
) -> dict[str, UUID]:
    existing = {a.code: a for a in session.execute(select(Account)).scalars()}
    known_codes = set(existing) | {a.code for a in accounts}
    ids = {code: account.id for code, account in existing.items()}
    levels = {code: account.level for code, account in existing.items()}

    # Parents sort before children, so their ids and levels are known first
    for spec in sorted(accounts, key=lambda a: (len(a.code), a.code)):
        if spec.code in existing:
            continue
        parent = _parent_code(spec.code, known_codes)
        account = Account(
            code=spec.code,
            name=spec.name,
            account_type=AccountType(spec.account_type).value,
            normal_balance=NormalBalance(spec.normal_balance).value,
            allows_entries=spec.allows_entries,
            is_active=True,
            parent_id=ids.get(parent) if parent else None,
            level=levels[parent] + 1 if parent in levels else 1,
            created_by_id=actor_id,
        )
        session.add(account)
        session.flush()
        ids[spec.code] = account.id
        levels[spec.code] = account.level
    return ids


def seed_reference_data(
    session: Session, settings: LedgerSettings, actor_id: UUID
) -> SeededReferenceData:
    """
    Insert the voucher types, accounts and document types of ``settings``.

    Idempotent: rows whose code already exists are left as they are.
    Flushes but does not commit.
    """
    seeded = SeededReferenceData()

    existing_vt = {v.code: v for v in session.execute(select(VoucherType)).scalars()}
    for spec in settings.voucher_types:
        vt = existing_vt.get(spec.code)
        if vt is None:
            vt = VoucherType(
                code=spec.code,
                name=spec.name,
                prefix=spec.prefix,
                number_pattern=spec.number_pattern,
                is_active=True,
                created_by_id=actor_id,
            )
            session.add(vt)
            session.flush()
        seeded.voucher_types[spec.code] = vt.id
    seeded.voucher_types.update({code: vt.id for code, vt in existing_vt.items()})

    seeded.accounts = _seed_accounts(session, settings.accounts, actor_id)

    existing_dt = {d.code: d for d in session.execute(select(DocumentType)).scalars()}
    for spec in settings.document_types:
        dt = existing_dt.get(spec.code)
        if dt is None:
            dt = DocumentType(
                code=spec.code,
                name=spec.name,
                default_voucher_type_id=(
                    seeded.voucher_types[spec.default_voucher_type]
                    if spec.default_voucher_type
                    else None
                ),
                counter_account_id=(
                    seeded.accounts[spec.counter_account_code]
                    if spec.counter_account_code
                    else None
                ),
                detail_side=spec.detail_side,
                is_active=True,
                created_by_id=actor_id,
            )
            session.add(dt)
            session.flush()
        seeded.document_types[spec.code] = dt.id

    logger.info(
        "reference_data_seeded",
        extra={
            "voucher_type_count": len(seeded.voucher_types),
            "account_count": len(seeded.accounts),
            "document_type_count": len(seeded.document_types),
            "config_checksum": settings.checksum,
        },
    )
    return seeded


def build_orchestrator(
    session: Session,
    settings: LedgerSettings,
    clock: Clock | None = None,
    auto_commit: bool = False,
    line_builders: LineBuilderRegistry | None = None,
) -> LedgerOrchestrator:
    """LedgerOrchestrator wired with the tolerance, paging and reversal prefix of ``settings``."""
    return LedgerOrchestrator(
        session,
        clock=clock,
        auto_commit=auto_commit,
        tolerance=settings.balance_tolerance,
        default_page_size=settings.reports.default_page_size,
        max_page_size=settings.reports.max_page_size,
        reversal_prefix=settings.reversal_prefix,
        line_builders=line_builders,
    )
