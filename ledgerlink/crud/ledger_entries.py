"""
Entry normalizer.

Maps the heterogeneous record shapes returned by the backend (purchases,
payments, sales, receipts) onto one LedgerEntry shape. Nothing in here
raises on bad data: unreadable amounts become 0 and unreadable dates None.
"""

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional

from ledgerlink.schemas.ledgers import EntrySide, LedgerEntry
from ledgerlink.utils.dates import parse_date

CREDIT_METHOD = "Credit"
CENTS = Decimal("0.01")

LIST_KEYS = ("data", "entries", "docs", "items")

AMOUNT_FIELDS = ("amount", "total", "totalAmount", "grandTotal", "finalAmount", "netAmount")
NESTED_AMOUNT_FIELDS = (("amount", "total"), ("totals", "total"), ("summary", "grandTotal"))


def to_array(payload: Any, *extra_keys: str) -> list:
    """Return the record list of a list response, whatever envelope it uses."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in extra_keys + LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def id_of(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("_id", "id", "$oid"):
            if value.get(key):
                return id_of(value[key])
        return ""
    return str(value)


def to_number(value: Any) -> Optional[Decimal]:
    """Finite Decimal for numbers and numeric strings, None for everything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, (int, Decimal)):
        number = Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def to_money(value: Decimal) -> Decimal:
    try:
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Too many digits to hold at two decimal places; treated like any unreadable amount.
        return Decimal("0.00")


def _first_present(item: dict, *keys: str):
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _items_total(items: list) -> Decimal:
    total = Decimal(0)
    for it in items:
        if not isinstance(it, dict):
            continue
        price = to_number(_first_present(it, "total", "amount", "rate", "price")) or Decimal(0)
        qty_raw = _first_present(it, "qty", "quantity")
        qty = to_number(qty_raw) if qty_raw is not None else Decimal(1)
        total += price * (qty if qty is not None else Decimal(0))
    return total


def extract_amount(record: Any, extra_fields: Iterable[str] = ()) -> Decimal:
    """
    Amount of a record, following the fallback chain of field names.

    The first candidate that reads as a finite number wins; otherwise the
    `items` array is summed (price x quantity); otherwise 0.
    """
    if not isinstance(record, dict):
        return to_money(Decimal(0))

    for field in AMOUNT_FIELDS:
        number = to_number(record.get(field))
        if number is not None:
            return to_money(number)

    for outer, inner in NESTED_AMOUNT_FIELDS:
        container = record.get(outer)
        if isinstance(container, dict):
            number = to_number(container.get(inner))
            if number is not None:
                return to_money(number)

    for field in extra_fields:
        number = to_number(record.get(field))
        if number is not None:
            return to_money(number)

    if isinstance(record.get("items"), list):
        return to_money(_items_total(record["items"]))

    return to_money(Decimal(0))


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _entry(record: dict, side: EntrySide, transaction_type: str, amount: Decimal,
           counterparty_id: Optional[str], synthetic: bool = False) -> LedgerEntry:
    return LedgerEntry(
        id=id_of(record.get("_id") or record.get("id")),
        date=parse_date(record.get("date")),
        side=side,
        amount=amount,
        payment_method=_text(record.get("paymentMethod")),
        reference_number=_text(record.get("invoiceNumber") or record.get("referenceNumber")),
        description=_text(record.get("description")),
        transaction_type=transaction_type,
        counterparty_id=counterparty_id,
        company_id=id_of(record.get("company")) or None,
        synthetic=synthetic,
    )


def settles_immediately(record: dict) -> bool:
    """Any payment method other than "Credit" (missing included) is settled on the spot."""
    return record.get("paymentMethod") != CREDIT_METHOD


def normalize_obligation(record: Any, transaction_type: str, settlement_type: str,
                         counterparty_id: Optional[str] = None,
                         extra_amount_fields: Iterable[str] = ()) -> List[LedgerEntry]:
    """
    Entries for one purchase or sale.

    Always one credit entry for the full value; a non-credit purchase/sale
    adds a synthetic debit of the same amount for the immediate settlement.
    """
    record = record if isinstance(record, dict) else {}
    amount = extract_amount(record, extra_amount_fields)
    entries = [_entry(record, EntrySide.CREDIT, transaction_type, amount, counterparty_id)]
    if settles_immediately(record):
        entries.append(_entry(record, EntrySide.DEBIT, settlement_type, amount, counterparty_id, synthetic=True))
    return entries


def normalize_settlement(record: Any, transaction_type: str,
                         counterparty_id: Optional[str] = None) -> LedgerEntry:
    record = record if isinstance(record, dict) else {}
    return _entry(record, EntrySide.DEBIT, transaction_type, extract_amount(record), counterparty_id)


def normalize_payables(payload: Any, counterparty_id: Optional[str] = None) -> List[LedgerEntry]:
    """
    Vendor/expense ledger from the `{debit: [...], credit: [...]}` payload.

    The backend's `debit` array holds purchases/bills (what is owed), its
    `credit` array holds separate payment records.
    """
    payload = payload if isinstance(payload, dict) else {}
    debit = payload.get("debit") if isinstance(payload.get("debit"), list) else []
    credit = payload.get("credit") if isinstance(payload.get("credit"), list) else []

    entries: List[LedgerEntry] = []
    for record in debit:
        entries.extend(normalize_obligation(record, "Purchase", "Purchase Payment", counterparty_id))
    for record in credit:
        entries.append(normalize_settlement(record, "Payment", counterparty_id))
    return entries


def _matches(record: dict, party_id: Optional[str]) -> bool:
    return party_id is None or id_of(record.get("party")) == str(party_id)


def normalize_receivables(sales: Iterable[Any], receipts: Iterable[Any],
                          party_id: Optional[str] = None) -> List[LedgerEntry]:
    """
    Customer ledger from the sales and receipts lists (already scoped to the
    selected company by the backend).

    With `party_id` only that customer's records are kept; each entry carries
    the party it belongs to either way.
    """
    entries: List[LedgerEntry] = []
    for sale in sales:
        if not isinstance(sale, dict) or not _matches(sale, party_id):
            continue
        entries.extend(normalize_obligation(
            sale, "Sales", "Sales Payment", id_of(sale.get("party")) or None,
            extra_amount_fields=("invoiceTotal",),
        ))
    for receipt in receipts:
        if not isinstance(receipt, dict) or not _matches(receipt, party_id):
            continue
        entries.append(normalize_settlement(receipt, "Receipt", id_of(receipt.get("party")) or None))
    return entries


def sort_entries(entries: Iterable[LedgerEntry]) -> List[LedgerEntry]:
    """Newest first; undated entries at the end in their original order."""
    entries = list(entries)
    dated = sorted((e for e in entries if e.date is not None), key=lambda e: e.date, reverse=True)
    undated = [e for e in entries if e.date is None]
    return dated + undated
