"""
Tests for the balance aggregator and date windows.
"""
from datetime import date
from decimal import Decimal

import pytest

from ledgerlink.crud.balances import aggregate, balance_label, combine
from ledgerlink.crud.ledger_entries import normalize_payables, normalize_receivables, normalize_settlement
from ledgerlink.schemas.counterparties import CounterpartyKind
from ledgerlink.schemas.ledgers import CounterpartyBalance, EntrySide, LedgerEntry
from ledgerlink.utils.dates import ALL_TIME, DateWindow, parse_date


def entry(side, amount, day=None, method=None, entry_id="e"):
    return LedgerEntry(
        id=entry_id,
        date=parse_date(day) if day else None,
        side=side,
        amount=Decimal(str(amount)),
        payment_method=method,
        transaction_type="Purchase" if side == EntrySide.CREDIT else "Payment",
    )


class TestScenarios:
    def test_credit_purchase(self):
        result = aggregate([entry(EntrySide.CREDIT, 1000, "2024-01-10", "Credit")])
        assert result.total_debit == Decimal("0")
        assert result.total_credit == Decimal("1000")
        assert result.balance == Decimal("1000")

    def test_cash_purchase_nets_to_zero(self):
        result = aggregate([
            entry(EntrySide.CREDIT, 1000, "2024-01-10", "Cash"),
            entry(EntrySide.DEBIT, 1000, "2024-01-10", "Cash"),
        ])
        assert result.total_debit == Decimal("1000")
        assert result.total_credit == Decimal("1000")
        assert result.balance == Decimal("0")
        assert balance_label(result.balance, CounterpartyKind.VENDOR) == "Settled"

    def test_receipts_outside_window_are_ignored(self):
        receipts = [
            {"_id": "r1", "party": "c1", "date": "2024-02-01", "amount": 500},
            {"_id": "r2", "party": "c1", "date": "2024-02-15", "amount": 300},
        ]
        window = DateWindow.from_dates("2024-02-10", "2024-02-28")
        result = aggregate(normalize_receivables([], receipts, "c1"), window, "c1")
        assert result.total_debit == Decimal("300")
        assert result.total_credit == Decimal("0")
        assert result.balance == Decimal("-300")
        assert result.last_transaction_date == parse_date("2024-02-15")

    def test_malformed_amount_contributes_nothing(self):
        malformed = normalize_settlement({"_id": "bad", "amount": "abc"}, "Payment")
        assert malformed.amount == Decimal("0")
        result = aggregate([malformed])
        assert result.total_debit == Decimal("0")
        assert result.balance == Decimal("0")


ENTRY_SETS = [
    [],
    [entry(EntrySide.CREDIT, "10.10", "2024-01-01"), entry(EntrySide.DEBIT, "3.05", "2024-01-02")],
    [entry(EntrySide.DEBIT, "0.01", "2023-12-31"), entry(EntrySide.DEBIT, "999999.99")],
    normalize_payables({
        "debit": [{"_id": "p", "date": "2024-06-01", "amount": "1234.56", "paymentMethod": "Cheque"}],
        "credit": [{"_id": "c", "date": "2024-06-03", "total": 100.1}],
    }),
]


@pytest.mark.parametrize("entries", ENTRY_SETS)
@pytest.mark.parametrize("window", [None, ALL_TIME, DateWindow.from_dates("2024-01-01", "2024-06-02")])
def test_balance_is_credit_minus_debit(entries, window):
    result = aggregate(entries, window)
    assert result.total_credit - result.total_debit == result.balance


@pytest.mark.parametrize("entries", ENTRY_SETS)
def test_unset_window_is_all_time(entries):
    assert aggregate(entries) == aggregate(entries, DateWindow())
    assert aggregate(entries) == aggregate(entries, ALL_TIME)


def test_wide_window_matches_unset_for_dated_entries():
    entries = [entry(EntrySide.CREDIT, 5, "1990-01-01"), entry(EntrySide.DEBIT, 2, "2090-12-31")]
    wide = DateWindow.from_dates(date(1900, 1, 1), date(2999, 12, 31))
    assert aggregate(entries, wide) == aggregate(entries)


def test_undated_entries_only_count_without_a_window():
    entries = [entry(EntrySide.CREDIT, 40), entry(EntrySide.CREDIT, 60, "2024-04-04")]
    assert aggregate(entries).total_credit == Decimal("100")
    bounded = aggregate(entries, DateWindow.from_dates("2024-01-01", None))
    assert bounded.total_credit == Decimal("60")
    assert aggregate(entries).last_transaction_date == parse_date("2024-04-04")


def test_window_bounds_are_whole_days():
    window = DateWindow.from_dates("2024-02-10", "2024-02-10")
    assert window.contains(parse_date("2024-02-10T00:00:00"))
    assert window.contains(parse_date("2024-02-10T23:59:59"))
    assert not window.contains(parse_date("2024-02-11T00:00:00"))
    assert window.query_params() == ("2024-02-10", "2024-02-10")


def test_empty_input_is_zero():
    result = aggregate([])
    assert result == CounterpartyBalance()
    assert result.last_transaction_date is None


def test_combine_sums_balances():
    total = combine([
        CounterpartyBalance(total_debit=Decimal("10"), total_credit=Decimal("30"), balance=Decimal("20")),
        CounterpartyBalance(total_debit=Decimal("5"), total_credit=Decimal("0"), balance=Decimal("-5")),
    ])
    assert total.total_debit == Decimal("15")
    assert total.total_credit == Decimal("30")
    assert total.balance == Decimal("15")


class TestBalanceLabel:
    def test_vendor_perspective(self):
        assert balance_label(Decimal("10"), CounterpartyKind.VENDOR) == "You Owe"
        assert balance_label(Decimal("-10"), CounterpartyKind.EXPENSE) == "Advance"
        assert balance_label(Decimal("0"), CounterpartyKind.VENDOR) == "Settled"

    def test_customer_perspective(self):
        assert balance_label(Decimal("10"), CounterpartyKind.CUSTOMER) == "Customer Owes"
        assert balance_label(Decimal("-10"), CounterpartyKind.CUSTOMER) == "Advance Received"
        assert balance_label(Decimal("0"), CounterpartyKind.CUSTOMER) == "Settled"
