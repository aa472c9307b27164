"""
ledger_config: settings loading, validation and the kernel bridges.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
import yaml
from sqlalchemy import func, select

from ledger_config import DATABASE_URL_ENV, DEFAULT_SETTINGS_PATH, get_active_settings
from ledger_config.bridges import build_orchestrator, seed_reference_data
from ledger_config.loader import compute_checksum, load_yaml_file, parse_settings
from ledger_config.schema import ReportSettings
from ledger_kernel.domain.dtos import EntryHeader, LineSpec
from ledger_kernel.exceptions import InvalidFilterError
from ledger_kernel.models.account import Account
from ledger_kernel.models.legal_document import DocumentType
from ledger_kernel.models.voucher_type import VoucherType


@pytest.fixture
def raw_defaults():
    return load_yaml_file(DEFAULT_SETTINGS_PATH)


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
    return get_active_settings()


class TestDefaults:

    def test_packaged_defaults(self, settings):
        assert settings.currency == "COP"
        assert settings.reversal_prefix == "CANC"
        assert settings.balance_tolerance == Decimal("0.01")
        assert settings.reports == ReportSettings(50, 500)
        assert len(settings.voucher_types) == 8
        assert settings.voucher_type("CA").number_pattern == "{prefix}-{year}-{number:03d}"

    def test_unknown_voucher_type_code(self, settings):
        with pytest.raises(KeyError):
            settings.voucher_type("ZZ")

    def test_checksum_is_deterministic(self, settings, raw_defaults):
        assert settings.checksum == compute_checksum(raw_defaults)
        assert len(settings.checksum) == 64

    def test_database_url_override(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://ledger@db/ledger")
        assert get_active_settings().database.url == "postgresql://ledger@db/ledger"

    def test_custom_file(self, tmp_path, monkeypatch, raw_defaults):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump({**raw_defaults, "currency": "usd"}))

        assert get_active_settings(path).currency == "USD"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")


class TestValidation:

    def test_database_is_required(self, raw_defaults):
        data = dict(raw_defaults)
        del data["database"]
        with pytest.raises(KeyError):
            parse_settings(data)

    @pytest.mark.parametrize(
        "override",
        [
            {"currency": "XXX1"},
            {"balance_tolerance": "0"},
            {"balance_tolerance": "abc"},
            {"reversal_prefix": "  "},
            {"reports": {"default_page_size": 600, "max_page_size": 500}},
            {"reports": {"default_page_size": 0}},
        ],
    )
    def test_invalid_values(self, raw_defaults, override):
        with pytest.raises(ValueError):
            parse_settings({**raw_defaults, **override})

    def test_duplicate_voucher_type(self, raw_defaults):
        voucher_types = raw_defaults["voucher_types"] + [raw_defaults["voucher_types"][0]]
        with pytest.raises(ValueError, match="Duplicate"):
            parse_settings({**raw_defaults, "voucher_types": voucher_types})

    def test_bad_number_pattern(self, raw_defaults):
        bad = {"code": "XX", "name": "Sin número", "number_pattern": "{prefix}-{year}"}
        with pytest.raises(ValueError):
            parse_settings({**raw_defaults, "voucher_types": raw_defaults["voucher_types"] + [bad]})

    def test_document_type_with_header_counter_account(self, raw_defaults):
        bad = {"code": "BAD", "name": "Mal", "counter_account_code": "11"}
        with pytest.raises(ValueError, match="non-postable"):
            parse_settings({**raw_defaults, "document_types": raw_defaults["document_types"] + [bad]})

    def test_document_type_with_unknown_voucher_type(self, raw_defaults):
        bad = {"code": "BAD", "name": "Mal", "default_voucher_type": "ZZ"}
        with pytest.raises(ValueError, match="unknown voucher type"):
            parse_settings({**raw_defaults, "document_types": raw_defaults["document_types"] + [bad]})

    def test_bad_detail_side(self, raw_defaults):
        bad = {"code": "BAD", "name": "Mal", "detail_side": "left"}
        with pytest.raises(ValueError):
            parse_settings({**raw_defaults, "document_types": raw_defaults["document_types"] + [bad]})


class TestSeedReferenceData:

    def test_seeds_every_row(self, session, settings, test_actor_id):
        seeded = seed_reference_data(session, settings, test_actor_id)

        assert set(seeded.voucher_types) == {v.code for v in settings.voucher_types}
        assert set(seeded.accounts) == {a.code for a in settings.accounts}
        assert set(seeded.document_types) == {d.code for d in settings.document_types}

        sales = session.get(DocumentType, seeded.document_types["FAC"])
        assert sales.detail_side == "credit"
        assert sales.counter_account_id == seeded.accounts["1305"]
        assert sales.default_voucher_type_id == seeded.voucher_types["CI"]

    def test_account_hierarchy(self, session, settings, test_actor_id):
        seeded = seed_reference_data(session, settings, test_actor_id)

        def account(code):
            return session.get(Account, seeded.accounts[code])

        assert account("1").parent_id is None
        assert account("1").level == 1
        assert account("11").parent_id == seeded.accounts["1"]
        assert account("1105").parent_id == seeded.accounts["11"]
        assert account("1105").level == 3
        assert account("1110.01").parent_id == seeded.accounts["1110"]
        assert account("1110.01").level == 4
        assert not account("1110").allows_entries

    def test_idempotent(self, session, settings, test_actor_id):
        first = seed_reference_data(session, settings, test_actor_id)
        second = seed_reference_data(session, settings, test_actor_id)

        assert first == second
        assert session.execute(select(func.count(VoucherType.id))).scalar_one() == 8
        assert session.execute(select(func.count(Account.id))).scalar_one() == len(settings.accounts)


class TestBuildOrchestrator:

    def test_settings_reach_the_orchestrator(
        self, session, settings, fiscal_period, deterministic_clock, test_actor_id
    ):
        settings = replace(
            settings, reports=ReportSettings(default_page_size=2, max_page_size=3), reversal_prefix="ANUL"
        )
        seeded = seed_reference_data(session, settings, test_actor_id)
        ledger = build_orchestrator(session, settings, clock=deterministic_clock)

        entry = ledger.create_entry(
            EntryHeader(
                voucher_type_id=seeded.voucher_types["CD"],
                entry_date=date(2024, 3, 15),
                fiscal_period_id=fiscal_period.id,
                currency=settings.currency,
            ),
            [
                LineSpec.debit(seeded.accounts["1105"], "500.00"),
                LineSpec.credit(seeded.accounts["3105"], "500.00"),
            ],
            test_actor_id,
        )
        ledger.post_entry(entry.id, test_actor_id)
        mirror = ledger.reverse_entry(entry.id, test_actor_id, "Aporte duplicado")

        assert entry.entry_number == "CD-2024-00001"
        assert mirror.entry_number == "ANUL-CD-2024-00001"
        assert ledger.get_libro_diario().pagination.records_per_page == 2
        with pytest.raises(InvalidFilterError):
            ledger.get_libro_diario(limit=4)
