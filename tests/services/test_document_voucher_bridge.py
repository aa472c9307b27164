"""
DocumentVoucherBridge: vouchers generated from legal documents, and
document cancellation.

Verifies:
- The default builder books details on the type's detail side and the
  total on the counter-account
- One voucher per (document, voucher type)
- Only approved documents generate vouchers
- Cancelling cascades to draft vouchers and is blocked by posted ones
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import DocumentDetailSpec, LineSpec
from ledger_kernel.exceptions import (
    ConflictError,
    DocumentNotReadyError,
    DuplicateVoucherError,
    InvalidStateError,
    MissingReasonError,
    PostedEntriesExistError,
    ValidationError,
)
from ledger_kernel.models.journal import EntrySource, JournalEntryStatus
from ledger_kernel.models.legal_document import DocumentStatus
from ledger_kernel.services.document_voucher_bridge import (
    DocumentVoucherBridge,
    LineBuilderRegistry,
    VoucherDraft,
    counter_account_builder,
)


@pytest.fixture
def make_document(document_service, fiscal_period, test_actor_id):
    """Create (and by default approve) a document of the given type."""

    def _make(document_type, number, details, approve=True, document_date=date(2024, 3, 10)):
        document = document_service.create_document(
            document_type.id,
            number,
            document_date,
            fiscal_period.id,
            test_actor_id,
            details=details,
        )
        if approve:
            document = document_service.approve(document.id, test_actor_id)
        return document

    return _make


@pytest.fixture
def sales_invoice(make_document, sales_invoice_type, standard_accounts):
    return make_document(
        sales_invoice_type,
        "FV-0001",
        (
            DocumentDetailSpec(standard_accounts["revenue"].id, "800.00", "Mercancía"),
            DocumentDetailSpec(standard_accounts["revenue"].id, "200.00", "Flete"),
        ),
    )


def _line_tuples(entry):
    return [(l.account_id, l.debit_amount, l.credit_amount) for l in entry.lines]


class TestGenerateVoucher:

    def test_sales_invoice_credits_details_and_debits_receivable(
        self, voucher_bridge, sales_invoice, voucher_type, standard_accounts, test_actor_id
    ):
        entry = voucher_bridge.generate_voucher(sales_invoice.id, None, test_actor_id)

        assert entry.status_enum == JournalEntryStatus.DRAFT
        assert entry.voucher_type_id == voucher_type.id
        assert entry.source_kind == EntrySource.DOCUMENT.value
        assert entry.document_id == sales_invoice.id
        assert entry.document_type_id == sales_invoice.document_type_id
        assert entry.entry_date == sales_invoice.document_date
        assert entry.fiscal_period_id == sales_invoice.fiscal_period_id
        assert "FV-0001" in entry.description
        assert _line_tuples(entry) == [
            (standard_accounts["revenue"].id, Decimal("0.00"), Decimal("800.00")),
            (standard_accounts["revenue"].id, Decimal("0.00"), Decimal("200.00")),
            (standard_accounts["ar"].id, Decimal("1000.00"), Decimal("0.00")),
        ]
        assert entry.total_debit == entry.total_credit == Decimal("1000.00")

    def test_purchase_invoice_debits_details_and_credits_payable(
        self, voucher_bridge, make_document, purchase_invoice_type, standard_accounts, test_actor_id
    ):
        bill = make_document(
            purchase_invoice_type,
            "FC-77",
            (DocumentDetailSpec(standard_accounts["expense"].id, "350.00", "Energía"),),
        )

        entry = voucher_bridge.generate_voucher(bill.id, None, test_actor_id)

        assert _line_tuples(entry) == [
            (standard_accounts["expense"].id, Decimal("350.00"), Decimal("0.00")),
            (standard_accounts["ap"].id, Decimal("0.00"), Decimal("350.00")),
        ]

    def test_zero_details_are_skipped(
        self, voucher_bridge, make_document, purchase_invoice_type, standard_accounts, test_actor_id
    ):
        bill = make_document(
            purchase_invoice_type,
            "FC-78",
            (
                DocumentDetailSpec(standard_accounts["expense"].id, "0.00"),
                DocumentDetailSpec(standard_accounts["expense"].id, "10.00"),
            ),
        )
        entry = voucher_bridge.generate_voucher(bill.id, None, test_actor_id)
        assert len(entry.lines) == 2

    def test_explicit_voucher_type(
        self, voucher_bridge, sales_invoice, create_voucher_type, test_actor_id
    ):
        receipts = create_voucher_type("CI", "Comprobante de Ingreso")

        entry = voucher_bridge.generate_voucher(sales_invoice.id, receipts.id, test_actor_id)

        assert entry.voucher_type_id == receipts.id
        assert entry.entry_number == "CI-2024-00001"

    def test_one_voucher_per_type(
        self, voucher_bridge, sales_invoice, voucher_type, create_voucher_type, test_actor_id
    ):
        first = voucher_bridge.generate_voucher(sales_invoice.id, voucher_type.id, test_actor_id)
        other_type = create_voucher_type("CI")
        voucher_bridge.generate_voucher(sales_invoice.id, other_type.id, test_actor_id)

        with pytest.raises(DuplicateVoucherError) as exc_info:
            voucher_bridge.generate_voucher(sales_invoice.id, voucher_type.id, test_actor_id)

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.existing_entry_id == str(first.id)

    def test_duplicate_rejected_after_voucher_posted(
        self, voucher_bridge, entry_store, sales_invoice, test_actor_id
    ):
        entry = voucher_bridge.generate_voucher(sales_invoice.id, None, test_actor_id)
        entry_store.post(entry.id, test_actor_id)

        with pytest.raises(ConflictError):
            voucher_bridge.generate_voucher(sales_invoice.id, None, test_actor_id)

    def test_draft_document_rejected(
        self, voucher_bridge, make_document, sales_invoice_type, standard_accounts, test_actor_id
    ):
        draft = make_document(
            sales_invoice_type,
            "FV-0002",
            (DocumentDetailSpec(standard_accounts["revenue"].id, "5.00"),),
            approve=False,
        )
        with pytest.raises(InvalidStateError):
            voucher_bridge.generate_voucher(draft.id, None, test_actor_id)

    def test_no_counter_account(
        self, voucher_bridge, create_document_type, make_document, voucher_type, standard_accounts, test_actor_id
    ):
        loose_type = create_document_type("SIN", None, default_voucher_type=voucher_type)
        document = make_document(
            loose_type, "S-1", (DocumentDetailSpec(standard_accounts["expense"].id, "5.00"),)
        )
        with pytest.raises(DocumentNotReadyError):
            voucher_bridge.generate_voucher(document.id, None, test_actor_id)

    def test_detail_without_account(
        self, voucher_bridge, make_document, purchase_invoice_type, test_actor_id
    ):
        document = make_document(purchase_invoice_type, "FC-1", (DocumentDetailSpec(None, "5.00"),))
        with pytest.raises(DocumentNotReadyError):
            voucher_bridge.generate_voucher(document.id, None, test_actor_id)

    def test_no_default_voucher_type(
        self, voucher_bridge, create_document_type, make_document, standard_accounts, test_actor_id
    ):
        bare_type = create_document_type("NDV", standard_accounts["ap"])
        document = make_document(
            bare_type, "N-1", (DocumentDetailSpec(standard_accounts["expense"].id, "5.00"),)
        )
        with pytest.raises(ValidationError):
            voucher_bridge.generate_voucher(document.id, None, test_actor_id)


class TestLineBuilders:

    def test_registry_falls_back_to_default(self):
        registry = LineBuilderRegistry()
        assert registry.resolve("FAC") is counter_account_builder

    def test_registered_builder_can_post_immediately(
        self, session, entry_store, deterministic_clock, sales_invoice, standard_accounts, test_actor_id
    ):
        def cash_sale_builder(document):
            total = document.document_amount
            return VoucherDraft(
                lines=(
                    LineSpec.debit(standard_accounts["cash"].id, total),
                    LineSpec.credit(standard_accounts["revenue"].id, total),
                ),
                post_immediately=True,
            )

        registry = LineBuilderRegistry()
        registry.register("FAC", cash_sale_builder)
        bridge = DocumentVoucherBridge(
            session, entry_store, clock=deterministic_clock, line_builders=registry
        )

        entry = bridge.generate_voucher(sales_invoice.id, None, test_actor_id)

        assert entry.status_enum == JournalEntryStatus.POSTED
        assert _line_tuples(entry)[0] == (
            standard_accounts["cash"].id, Decimal("1000.00"), Decimal("0.00")
        )


class TestCancelDocument:

    def test_cancels_document_and_draft_vouchers(
        self, voucher_bridge, entry_store, sales_invoice, test_actor_id, deterministic_clock
    ):
        voucher = voucher_bridge.generate_voucher(sales_invoice.id, None, test_actor_id)

        document = voucher_bridge.cancel_document(sales_invoice.id, "Cliente desistió", test_actor_id)

        assert document.status_enum == DocumentStatus.CANCELLED
        assert document.cancellation_reason == "Cliente desistió"
        assert document.cancelled_at == deterministic_clock.now()
        assert ("approved", "cancelled") in {
            (h.from_status, h.to_status) for h in document.status_history
        }
        cancelled = entry_store.get(voucher.id)
        assert cancelled.status_enum == JournalEntryStatus.CANCELLED
        assert "FV-0001" in cancelled.cancellation_reason

    def test_posted_voucher_blocks_cancellation(
        self, voucher_bridge, entry_store, sales_invoice, create_voucher_type, test_actor_id
    ):
        posted = voucher_bridge.generate_voucher(sales_invoice.id, None, test_actor_id)
        entry_store.post(posted.id, test_actor_id)
        draft = voucher_bridge.generate_voucher(
            sales_invoice.id, create_voucher_type("CI").id, test_actor_id
        )

        with pytest.raises(PostedEntriesExistError) as exc_info:
            voucher_bridge.cancel_document(sales_invoice.id, "No procede", test_actor_id)

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.blocking_entry_ids == [str(posted.id)]
        assert entry_store.get(draft.id).is_draft

    def test_reversed_voucher_does_not_block(
        self, voucher_bridge, entry_store, sales_invoice, test_actor_id
    ):
        voucher = voucher_bridge.generate_voucher(sales_invoice.id, None, test_actor_id)
        entry_store.post(voucher.id, test_actor_id)
        entry_store.reverse(voucher.id, test_actor_id, "Factura anulada")

        document = voucher_bridge.cancel_document(sales_invoice.id, "Anulada", test_actor_id)

        assert document.is_cancelled
        assert entry_store.get(voucher.id).is_reversed

    def test_draft_document_without_vouchers(
        self, voucher_bridge, make_document, sales_invoice_type, standard_accounts, test_actor_id
    ):
        draft = make_document(
            sales_invoice_type,
            "FV-0003",
            (DocumentDetailSpec(standard_accounts["revenue"].id, "5.00"),),
            approve=False,
        )
        document = voucher_bridge.cancel_document(draft.id, "Error", test_actor_id)
        assert document.is_cancelled

    def test_reason_required(self, voucher_bridge, sales_invoice, test_actor_id):
        with pytest.raises(MissingReasonError):
            voucher_bridge.cancel_document(sales_invoice.id, " ", test_actor_id)

    def test_cancel_twice(self, voucher_bridge, sales_invoice, test_actor_id):
        voucher_bridge.cancel_document(sales_invoice.id, "Primera", test_actor_id)
        with pytest.raises(InvalidStateError):
            voucher_bridge.cancel_document(sales_invoice.id, "Segunda", test_actor_id)

    def test_cancelled_document_generates_nothing(self, voucher_bridge, sales_invoice, test_actor_id):
        voucher_bridge.cancel_document(sales_invoice.id, "Anulada", test_actor_id)
        with pytest.raises(InvalidStateError):
            voucher_bridge.generate_voucher(sales_invoice.id, None, test_actor_id)
