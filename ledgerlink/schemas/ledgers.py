from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import enum


class EntrySide(str, enum.Enum):
    DEBIT = "debit"    # settlement: payment made / receipt collected
    CREDIT = "credit"  # obligation: purchase / sale


class LineItem(BaseModel):
    item_type: str  # "product" or "service"
    name: str
    quantity: Optional[float] = None
    unit_type: Optional[str] = None
    unit_price: Optional[Decimal] = None
    description: Optional[str] = None
    amount: Decimal = Decimal("0.00")
    tax_rate: Optional[float] = None
    line_tax: Optional[Decimal] = None
    hsn_code: Optional[str] = None
    sac_code: Optional[str] = None


class LineItemSummary(BaseModel):
    subtotal: Decimal
    tax_total: Decimal
    grand_total: Decimal


class TransactionItems(BaseModel):
    transaction_id: str
    source: str  # which detail endpoint answered
    items: List[LineItem]
    summary: LineItemSummary


class LedgerEntry(BaseModel):
    id: str
    date: Optional[datetime] = None
    side: EntrySide
    amount: Decimal = Decimal("0.00")
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    description: Optional[str] = None
    transaction_type: str
    counterparty_id: Optional[str] = None
    company_id: Optional[str] = None
    synthetic: bool = False  # offsetting debit of a non-credit purchase/sale


class CounterpartyBalance(BaseModel):
    counterparty_id: Optional[str] = None
    total_debit: Decimal = Decimal("0.00")
    total_credit: Decimal = Decimal("0.00")
    balance: Decimal = Decimal("0.00")
    last_transaction_date: Optional[datetime] = None


class Ledger(BaseModel):
    title: str
    kind: str
    counterparty_id: str
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    debit_entries: List[LedgerEntry]
    credit_entries: List[LedgerEntry]
    totals: CounterpartyBalance
    label: str
