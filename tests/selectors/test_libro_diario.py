"""
JournalSelector: libro diario and entry lookup.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import InvalidFilterError
from ledger_kernel.models.journal import JournalEntryStatus
from ledger_kernel.selectors.journal_selector import JournalSelector, LibroDiarioFilter


@pytest.fixture
def book(posted_entry, entry_store, make_header, standard_accounts, test_actor_id):
    """Five posted entries from January to March, one draft and one cancelled entry."""
    cash, bank, revenue = standard_accounts["cash"], standard_accounts["bank"], standard_accounts["revenue"]
    posted = [
        posted_entry(cash, revenue, "10.00", date(2024, 3, 1)),
        posted_entry(cash, revenue, "20.00", date(2024, 1, 10)),
        posted_entry(bank, cash, "30.00", date(2024, 2, 5)),
        posted_entry(cash, revenue, "40.00", date(2024, 1, 10)),
        posted_entry(bank, revenue, "50.00", date(2024, 3, 20)),
    ]
    draft = entry_store.create(
        make_header(date(2024, 2, 1)),
        [LineSpec.debit(cash.id, "1.00"), LineSpec.credit(revenue.id, "1.00")],
        test_actor_id,
    )
    cancelled = entry_store.create(
        make_header(date(2024, 2, 2)),
        [LineSpec.debit(cash.id, "2.00"), LineSpec.credit(revenue.id, "2.00")],
        test_actor_id,
    )
    entry_store.cancel(cancelled.id, test_actor_id, "Error")
    return {"posted": posted, "draft": draft, "cancelled": cancelled}


class TestListing:

    def test_default_lists_ledger_effective_entries_in_order(self, journal_selector, book):
        page = journal_selector.libro_diario()

        assert [e.total_debit for e in page.entries] == [
            Decimal("20.00"), Decimal("40.00"), Decimal("30.00"), Decimal("10.00"), Decimal("50.00")
        ]
        assert all(e.status == JournalEntryStatus.POSTED for e in page.entries)
        assert page.pagination.total_records == 5

    def test_same_date_ordered_by_number(self, journal_selector, book):
        numbers = [e.entry_number for e in journal_selector.libro_diario().entries[:2]]
        assert numbers == sorted(numbers)

    def test_reversed_entries_and_mirrors_are_listed(self, journal_selector, entry_store, book, test_actor_id):
        original = book["posted"][0]
        mirror = entry_store.reverse(original.id, test_actor_id, "Duplicado")

        statuses = {e.id: e.status for e in journal_selector.libro_diario().entries}

        assert statuses[original.id] == JournalEntryStatus.REVERSED
        assert statuses[mirror.id] == JournalEntryStatus.POSTED

    def test_header_only_by_default(self, journal_selector, book):
        assert journal_selector.libro_diario().entries[0].lines == ()

    def test_include_details(self, journal_selector, book, standard_accounts):
        entry = journal_selector.libro_diario(include_details=True).entries[0]

        assert [line.order_number for line in entry.lines] == [1, 2]
        assert entry.lines[0].account_code == "1105"
        assert entry.lines[0].account_name == "Caja"
        assert entry.lines[1].account_id == standard_accounts["revenue"].id
        assert entry.voucher_type_code == "JE"
        assert entry.is_balanced


class TestPagination:

    def test_pages(self, journal_selector, book):
        first = journal_selector.libro_diario(page=1, limit=2)
        third = journal_selector.libro_diario(page=3, limit=2)

        assert len(first.entries) == 2
        assert len(third.entries) == 1
        assert first.pagination.total_pages == 3
        assert first.pagination.records_per_page == 2
        assert third.pagination.current_page == 3

    def test_pages_do_not_overlap(self, journal_selector, book):
        ids = [
            e.id
            for page in (1, 2, 3)
            for e in journal_selector.libro_diario(page=page, limit=2).entries
        ]
        assert len(ids) == len(set(ids)) == 5

    def test_page_past_the_end(self, journal_selector, book):
        page = journal_selector.libro_diario(page=10, limit=2)
        assert page.entries == ()
        assert page.pagination.total_records == 5

    def test_empty_book(self, journal_selector, db_tables):
        page = journal_selector.libro_diario()
        assert page.pagination.total_records == 0
        assert page.pagination.total_pages == 0

    def test_default_page_size(self, session, book):
        page = JournalSelector(session, default_page_size=3).libro_diario()
        assert page.pagination.records_per_page == 3
        assert page.pagination.total_pages == 2

    @pytest.mark.parametrize("page, limit", [(0, 10), (-1, 10), (1, 0), (1, 501)])
    def test_invalid_paging(self, journal_selector, db_tables, page, limit):
        with pytest.raises(InvalidFilterError):
            journal_selector.libro_diario(page=page, limit=limit)


class TestFilters:

    def test_date_range(self, journal_selector, book):
        filters = LibroDiarioFilter(date_from=date(2024, 1, 11), date_to=date(2024, 3, 1))
        page = journal_selector.libro_diario(filters)

        assert [e.entry_date for e in page.entries] == [date(2024, 2, 5), date(2024, 3, 1)]
        assert journal_selector.count_entries(filters) == 2

    def test_inverted_dates(self, journal_selector, db_tables):
        with pytest.raises(InvalidFilterError):
            journal_selector.libro_diario(
                LibroDiarioFilter(date_from=date(2024, 2, 1), date_to=date(2024, 1, 1))
            )

    @pytest.mark.parametrize("status", [JournalEntryStatus.DRAFT, "draft"])
    def test_draft_status(self, journal_selector, book, status):
        page = journal_selector.libro_diario(LibroDiarioFilter(status=status))
        assert [e.id for e in page.entries] == [book["draft"].id]

    def test_cancelled_status(self, journal_selector, book):
        page = journal_selector.libro_diario(LibroDiarioFilter(status="cancelled"))
        assert [e.id for e in page.entries] == [book["cancelled"].id]
        assert page.entries[0].cancellation_reason == "Error"

    def test_unknown_status(self, journal_selector, db_tables):
        with pytest.raises(InvalidFilterError):
            journal_selector.libro_diario(LibroDiarioFilter(status="archived"))

    def test_voucher_type(self, journal_selector, book, voucher_type, create_voucher_type):
        other = create_voucher_type("CE")

        assert journal_selector.count_entries(LibroDiarioFilter(voucher_type_id=voucher_type.id)) == 5
        assert journal_selector.libro_diario(LibroDiarioFilter(voucher_type_id=other.id)).entries == ()

    def test_third_party(self, journal_selector, entry_store, make_header, book, standard_accounts, test_actor_id):
        customer = uuid4()
        entry = entry_store.create(
            make_header(third_party_id=customer),
            [
                LineSpec.debit(standard_accounts["ar"].id, "5.00"),
                LineSpec.credit(standard_accounts["revenue"].id, "5.00"),
            ],
            test_actor_id,
        )
        entry_store.post(entry.id, test_actor_id)

        page = journal_selector.libro_diario(LibroDiarioFilter(third_party_id=customer))

        assert [e.id for e in page.entries] == [entry.id]
        assert page.entries[0].third_party_id == customer

    def test_fiscal_period(self, journal_selector, book, fiscal_period):
        assert journal_selector.count_entries(LibroDiarioFilter(fiscal_period_id=fiscal_period.id)) == 5
        assert journal_selector.count_entries(LibroDiarioFilter(fiscal_period_id=uuid4())) == 0

    def test_entry_number_prefix(self, journal_selector, book):
        target = book["posted"][2].entry_number
        page = journal_selector.libro_diario(LibroDiarioFilter(entry_number=target))
        assert [e.entry_number for e in page.entries] == [target]

    def test_entry_number_prefix_is_literal(self, journal_selector, book):
        assert journal_selector.count_entries(LibroDiarioFilter(entry_number="JE-%")) == 0
        assert journal_selector.count_entries(LibroDiarioFilter(entry_number="JE-")) == 5


class TestGetEntry:

    def test_returns_entry_with_lines(self, journal_selector, book, test_actor_id):
        entry = book["posted"][1]
        dto = journal_selector.get_entry(entry.id)

        assert dto.entry_number == entry.entry_number
        assert dto.posted_by_id == test_actor_id
        assert len(dto.lines) == 2

    def test_unknown_returns_none(self, journal_selector, db_tables):
        assert journal_selector.get_entry(uuid4()) is None
