from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import enum


class CounterpartyKind(str, enum.Enum):
    VENDOR = "vendor"
    EXPENSE = "expense"
    CUSTOMER = "customer"


class BalanceState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"


class CounterpartyRow(BaseModel):
    id: str
    name: str
    kind: CounterpartyKind
    state: BalanceState
    balance: Decimal = Decimal("0.00")
    total_debit: Optional[Decimal] = None
    total_credit: Optional[Decimal] = None
    last_transaction_date: Optional[datetime] = None
    label: str
    formatted_balance: str
    is_fallback: bool = True  # balance comes from the list payload, not the ledger


class CounterpartyPage(BaseModel):
    kind: CounterpartyKind
    page: int
    page_size: int
    total_pages: int
    total_items: int
    items: List[CounterpartyRow]
    company_id: Optional[str] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    error: Optional[str] = None


class VisibleRequest(BaseModel):
    ids: List[str]


class OverallTotals(BaseModel):
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal
    partial: bool = False  # only the balances loaded so far are included
    label: str


class ReportedBalance(BaseModel):
    counterparty_id: str
    balance: Decimal
    source: str  # "backend" or "fallback"
