"""
Tests for the entry normalizer: record shapes, amount fallbacks, sides.
"""
from decimal import Decimal

from ledgerlink.crud.ledger_entries import (
    extract_amount,
    id_of,
    normalize_obligation,
    normalize_payables,
    normalize_receivables,
    normalize_settlement,
    sort_entries,
    to_array,
)
from ledgerlink.schemas.ledgers import EntrySide


class TestToArray:
    def test_plain_list(self):
        assert to_array([1, 2]) == [1, 2]

    def test_known_envelopes(self):
        assert to_array({"data": [1]}) == [1]
        assert to_array({"entries": [2]}) == [2]
        assert to_array({"docs": [3]}) == [3]

    def test_extra_key_checked_first(self):
        assert to_array({"sales": [1], "data": [2]}, "sales") == [1]

    def test_unknown_shape_is_empty(self):
        assert to_array({"message": "ok"}) == []
        assert to_array(None) == []
        assert to_array("oops") == []


class TestExtractAmount:
    def test_first_candidate_wins(self):
        assert extract_amount({"amount": 120, "total": 999}) == Decimal("120.00")

    def test_falls_through_missing_fields(self):
        assert extract_amount({"amount": None, "total": 250}) == Decimal("250.00")
        assert extract_amount({"netAmount": "75.5"}) == Decimal("75.50")

    def test_nested_totals(self):
        assert extract_amount({"amount": {"total": 99.5}}) == Decimal("99.50")
        assert extract_amount({"totals": {"total": "12.345"}}) == Decimal("12.35")
        assert extract_amount({"summary": {"grandTotal": 40}}) == Decimal("40.00")

    def test_items_are_summed(self):
        record = {"items": [{"price": 10, "qty": 3}, {"amount": 5}]}
        assert extract_amount(record) == Decimal("35.00")

    def test_booleans_and_empty_strings_are_not_numbers(self):
        assert extract_amount({"amount": True, "total": 7}) == Decimal("7.00")
        assert extract_amount({"amount": "", "grandTotal": "8"}) == Decimal("8.00")

    def test_unreadable_amount_is_zero(self):
        assert extract_amount({"amount": "abc"}) == Decimal("0.00")
        assert extract_amount({}) == Decimal("0.00")
        assert extract_amount(None) == Decimal("0.00")

    def test_amount_too_large_for_cents_is_zero(self):
        assert extract_amount({"amount": "1e30"}) == Decimal("0.00")
        assert extract_amount({"amount": 1e308}) == Decimal("0.00")
        assert extract_amount({"items": [{"price": "1e20", "qty": "1e20"}]}) == Decimal("0.00")

    def test_oversized_record_does_not_break_the_ledger(self):
        entries = normalize_payables({"debit": [
            {"_id": "p1", "amount": "1e30", "paymentMethod": "Credit"},
            {"_id": "p2", "amount": 100, "paymentMethod": "Credit"},
        ]})
        assert [e.amount for e in entries] == [Decimal("0.00"), Decimal("100.00")]

    def test_extra_fields_after_standard_chain(self):
        assert extract_amount({"invoiceTotal": 640}, ("invoiceTotal",)) == Decimal("640.00")


def test_id_of_handles_populated_references():
    assert id_of({"_id": "abc"}) == "abc"
    assert id_of("xyz") == "xyz"
    assert id_of(None) == ""
    assert id_of(42) == "42"


class TestPayables:
    payload = {
        "debit": [
            {"_id": "p1", "date": "2024-01-10", "amount": 1000, "paymentMethod": "Credit"},
            {"_id": "p2", "date": "2024-01-11", "amount": 200, "paymentMethod": "Cash"},
        ],
        "credit": [
            {"_id": "c1", "date": "2024-01-12", "amount": 300},
        ],
    }

    def test_purchase_on_credit_is_a_single_credit_entry(self):
        entries = [e for e in normalize_payables(self.payload, "v1") if e.id == "p1"]
        assert len(entries) == 1
        assert entries[0].side == EntrySide.CREDIT
        assert entries[0].amount == Decimal("1000.00")
        assert entries[0].counterparty_id == "v1"

    def test_cash_purchase_gets_offsetting_debit(self):
        entries = [e for e in normalize_payables(self.payload, "v1") if e.id == "p2"]
        sides = sorted(e.side.value for e in entries)
        assert sides == ["credit", "debit"]
        synthetic = [e for e in entries if e.synthetic]
        assert len(synthetic) == 1
        assert synthetic[0].side == EntrySide.DEBIT
        assert synthetic[0].amount == Decimal("200.00")

    def test_payments_are_debits(self):
        entries = [e for e in normalize_payables(self.payload) if e.id == "c1"]
        assert [e.side for e in entries] == [EntrySide.DEBIT]
        assert entries[0].transaction_type == "Payment"

    def test_missing_payment_method_settles_immediately(self):
        entries = normalize_obligation({"_id": "x", "amount": 50}, "Purchase", "Purchase Payment")
        assert [e.side for e in entries] == [EntrySide.CREDIT, EntrySide.DEBIT]

    def test_malformed_payload_yields_nothing(self):
        assert normalize_payables(None) == []
        assert normalize_payables({"debit": "nope", "credit": None}) == []

    def test_normalizing_twice_gives_equal_entries(self):
        assert normalize_payables(self.payload, "v1") == normalize_payables(self.payload, "v1")


class TestReceivables:
    sales = [
        {"_id": "s1", "party": {"_id": "c1"}, "date": "2024-03-01", "totalAmount": 500, "paymentMethod": "Credit"},
        {"_id": "s2", "party": "c2", "date": "2024-03-02", "invoiceTotal": 80, "paymentMethod": "UPI"},
    ]
    receipts = [
        {"_id": "r1", "party": "c1", "date": "2024-03-05", "amount": 200},
    ]

    def test_filters_by_party(self):
        entries = normalize_receivables(self.sales, self.receipts, "c1")
        assert {e.id for e in entries} == {"s1", "r1"}
        assert all(e.counterparty_id == "c1" for e in entries)

    def test_invoice_total_is_used_for_sales(self):
        entries = normalize_receivables(self.sales, [], "c2")
        assert {e.amount for e in entries} == {Decimal("80.00")}
        assert sorted(e.side.value for e in entries) == ["credit", "debit"]

    def test_receipts_are_debits(self):
        entries = normalize_receivables([], self.receipts)
        assert entries[0].side == EntrySide.DEBIT
        assert entries[0].transaction_type == "Receipt"

    def test_non_dict_records_are_skipped(self):
        assert normalize_receivables([None, "x"], [42]) == []


def test_unreadable_date_becomes_none():
    entry = normalize_settlement({"_id": "r", "date": "not a date", "amount": 10}, "Receipt")
    assert entry.date is None
    assert entry.amount == Decimal("10.00")


def test_sort_entries_newest_first_undated_last():
    records = [
        {"_id": "old", "date": "2024-01-01", "amount": 1},
        {"_id": "nodate1", "amount": 1},
        {"_id": "new", "date": "2024-05-01", "amount": 1},
        {"_id": "nodate2", "amount": 1},
    ]
    entries = [normalize_settlement(r, "Payment") for r in records]
    assert [e.id for e in sort_entries(entries)] == ["new", "old", "nodate1", "nodate2"]
    assert [e.id for e in sort_entries(iter(entries))] == ["new", "old", "nodate1", "nodate2"]
