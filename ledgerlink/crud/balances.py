from decimal import Decimal
from typing import Iterable, Optional

from ledgerlink.schemas.counterparties import CounterpartyKind
from ledgerlink.schemas.ledgers import CounterpartyBalance, EntrySide, LedgerEntry
from ledgerlink.utils.dates import DateWindow


def aggregate(entries: Iterable[LedgerEntry], window: Optional[DateWindow] = None,
              counterparty_id: Optional[str] = None) -> CounterpartyBalance:
    """
    Sum normalized entries into debit/credit totals for one counterparty.

    Pure function: the same entries and window always give the same result.
    `balance = total_credit - total_debit`; positive means the obligation side
    is larger. An absent window behaves exactly like an all-time window.
    """
    window = window or DateWindow()
    total_debit = Decimal("0.00")
    total_credit = Decimal("0.00")
    last_date = None

    for entry in entries:
        if not window.contains(entry.date):
            continue
        if entry.side == EntrySide.DEBIT:
            total_debit += entry.amount
        else:
            total_credit += entry.amount
        if entry.date is not None and (last_date is None or entry.date > last_date):
            last_date = entry.date

    return CounterpartyBalance(
        counterparty_id=counterparty_id,
        total_debit=total_debit,
        total_credit=total_credit,
        balance=total_credit - total_debit,
        last_transaction_date=last_date,
    )


def combine(balances: Iterable[CounterpartyBalance]) -> CounterpartyBalance:
    """Totals across several counterparties (overall screen totals)."""
    total_debit = Decimal("0.00")
    total_credit = Decimal("0.00")
    last_date = None
    for b in balances:
        total_debit += b.total_debit
        total_credit += b.total_credit
        if b.last_transaction_date is not None and (last_date is None or b.last_transaction_date > last_date):
            last_date = b.last_transaction_date
    return CounterpartyBalance(
        total_debit=total_debit,
        total_credit=total_credit,
        balance=total_credit - total_debit,
        last_transaction_date=last_date,
    )


def balance_label(balance: Decimal, kind: CounterpartyKind) -> str:
    """Display wording for a balance; a zero (or empty) ledger reads as settled."""
    if balance == 0:
        return "Settled"
    if kind == CounterpartyKind.CUSTOMER:
        return "Customer Owes" if balance > 0 else "Advance Received"
    return "You Owe" if balance > 0 else "Advance"
