"""
Counterparty list view-model.

One `CounterpartyListModel` backs one screen (payables or receivables). It
owns the filter state, the page index, the raw counterparty lists and the
per-row balances, and loads each row's balance only when the row becomes
visible. Loaders are injected so the model itself never talks HTTP.
"""

import asyncio
import logging
import math
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ledgerlink.crud.balances import aggregate, balance_label, combine
from ledgerlink.crud.ledger_entries import (
    id_of, normalize_payables, normalize_receivables, sort_entries, to_array, to_money, to_number,
)
from ledgerlink.exceptions import GatewayError, LedgerLinkError
from ledgerlink.gateway import RemoteGateway
from ledgerlink.schemas.counterparties import (
    CounterpartyKind, CounterpartyPage, CounterpartyRow, OverallTotals, ReportedBalance,
)
from ledgerlink.schemas.filters import DateRange, FilterState
from ledgerlink.schemas.ledgers import CounterpartyBalance, EntrySide, Ledger
from ledgerlink.utils.balance_tracker import BalanceTracker
from ledgerlink.utils.dates import DateWindow
from ledgerlink.utils.formatting import format_indian_currency

logger = logging.getLogger(__name__)

ListLoader = Callable[[CounterpartyKind, Optional[str]], Awaitable[List[dict]]]
BalanceLoader = Callable[[CounterpartyKind, str, FilterState], Awaitable[CounterpartyBalance]]
TotalsLoader = Callable[[FilterState], Awaitable[CounterpartyBalance]]

LIST_KEYS = {
    CounterpartyKind.VENDOR: "vendors",
    CounterpartyKind.EXPENSE: "expenses",
    CounterpartyKind.CUSTOMER: "parties",
}

TITLES = {
    CounterpartyKind.VENDOR: "Vendor Ledger",
    CounterpartyKind.EXPENSE: "Expense Ledger",
    CounterpartyKind.CUSTOMER: "Customer Ledger",
}


def window_of(filters: FilterState) -> DateWindow:
    return DateWindow.from_dates(filters.date_range.from_date, filters.date_range.to_date)


def display_name(record: dict, kind: CounterpartyKind) -> str:
    if kind == CounterpartyKind.VENDOR:
        name = record.get("vendorName") or record.get("name")
    else:
        name = record.get("name") or record.get("vendorName")
    return str(name or "(unnamed)")


def from_backend_sign(value: Decimal) -> Decimal:
    # The backend reports vendor balances negative when money is owed to the vendor.
    return -value if value else Decimal("0.00")


def vendor_fallback_balance(record: dict, company_id: Optional[str]) -> Decimal:
    """
    Balance shown for a vendor row before its ledger has been loaded.

    Without a company filter the per-company `balances` map is summed,
    otherwise the list's `balance` field is used.
    """
    balances = record.get("balances")
    if company_id is None and isinstance(balances, dict):
        total = sum((to_number(v) or Decimal(0) for v in balances.values()), Decimal(0))
    else:
        total = to_number(record.get("balance")) or Decimal(0)
    return from_backend_sign(to_money(total))


class CounterpartyListModel:
    def __init__(
        self,
        kind: CounterpartyKind,
        page_size: int,
        list_loader: ListLoader,
        balance_loader: BalanceLoader,
        tracker: Optional[BalanceTracker] = None,
        views: Sequence[CounterpartyKind] = (),
        totals_loader: Optional[TotalsLoader] = None,
        on_invalidate: Iterable[Callable[[], None]] = (),
    ):
        self.kind = kind
        self.views = tuple(views) or (kind,)
        self.page_size = page_size
        self.list_loader = list_loader
        self.balance_loader = balance_loader
        self.totals_loader = totals_loader
        self.tracker = tracker or BalanceTracker()
        self.filters = FilterState()
        self.page_number = 1

        self._on_invalidate = list(on_invalidate)
        self._records: Dict[CounterpartyKind, List[dict]] = {}
        self._errors: Dict[CounterpartyKind, Optional[str]] = {}
        self._balances: Dict[str, CounterpartyBalance] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._screen_tasks: Set[asyncio.Task] = set()
        self._generation = 0
        self._mounted = True

    # Filters
    @property
    def window(self) -> DateWindow:
        return window_of(self.filters)

    def set_filters(self, company_id: Optional[str] = None, from_date=None, to_date=None) -> bool:
        """
        Apply the company and date filters.

        Any change resets the page to 1 and drops every loaded balance; a
        company change also drops the loaded lists. Returns whether anything
        changed.
        """
        date_range = DateRange(from_date=from_date, to_date=to_date)
        company_changed = company_id != self.filters.company_id
        range_changed = date_range != self.filters.date_range
        if not company_changed and not range_changed:
            return False
        self.filters = FilterState(
            company_id=company_id,
            date_range=date_range,
            selected_counterparty_id=self.filters.selected_counterparty_id,
        )
        if company_changed:
            self._records.clear()
            self._errors.clear()
        self.invalidate()
        logger.info(f"{self.kind.value} filters changed: company={company_id} from={from_date} to={to_date}")
        return True

    def select(self, counterparty_id: Optional[str]) -> None:
        self.filters = self.filters.model_copy(update={"selected_counterparty_id": counterparty_id})

    def set_view(self, kind: CounterpartyKind) -> None:
        if kind not in self.views:
            raise ValueError(f"{kind.value} is not a view of this list")
        if kind != self.kind:
            self.kind = kind
            self.page_number = 1

    def invalidate(self) -> None:
        """Forget every balance. Fetches still in flight will be ignored when they finish."""
        self._generation += 1
        self._balances.clear()
        self._inflight.clear()
        self.tracker.invalidate()
        self.page_number = 1
        for hook in self._on_invalidate:
            hook()

    # Screen-level loads
    def _check_mounted(self):
        if not self._mounted:
            raise RuntimeError("List model has been disposed")

    def is_list_loaded(self, kind: Optional[CounterpartyKind] = None) -> bool:
        return (kind or self.kind) in self._records

    def list_error(self, kind: Optional[CounterpartyKind] = None) -> Optional[str]:
        return self._errors.get(kind or self.kind)

    async def load_list(self) -> List[dict]:
        """
        Fetch the counterparties of the current view.

        A transport or status failure leaves an empty list and an error
        message; a missing token propagates so the caller can ask for login.
        """
        self._check_mounted()
        kind = self.kind
        task = asyncio.ensure_future(self.list_loader(kind, self.filters.company_id))
        self._screen_tasks.add(task)
        try:
            records = await task
        except asyncio.CancelledError:
            if self._mounted:
                raise
            return []
        except GatewayError as e:
            logger.error(f"Failed to load {kind.value} list: {e}")
            self._records[kind] = []
            self._errors[kind] = str(e)
            return []
        finally:
            self._screen_tasks.discard(task)

        if not self._mounted:
            return []
        self._records[kind] = [r for r in records if isinstance(r, dict) and id_of(r.get("_id") or r.get("id"))]
        self._errors[kind] = None
        logger.info(f"Loaded {len(self._records[kind])} {kind.value} records")
        return list(self._records[kind])

    async def ensure_list(self) -> List[dict]:
        if not self.is_list_loaded():
            return await self.load_list()
        return list(self._records[self.kind])

    def reset(self) -> None:
        """Forget the loaded lists as well as the balances (logout, data changed upstream)."""
        self._records.clear()
        self._errors.clear()
        self.invalidate()

    async def refresh(self) -> List[dict]:
        """Pull-to-refresh: drop every cache and reload the current list."""
        self.reset()
        return await self.load_list()

    # Per-row balances
    def balance_of(self, counterparty_id: str) -> Optional[CounterpartyBalance]:
        return self._balances.get(counterparty_id)

    async def ensure_balance(self, counterparty_id: str) -> Optional[CounterpartyBalance]:
        """
        Load one row's balance unless it is loaded already.

        Concurrent calls for the same id share one fetch. On failure the id
        goes back to idle and the last known value (if any) is returned.
        """
        self._check_mounted()
        if self.tracker.has(counterparty_id):
            return self._balances.get(counterparty_id)
        task = self._inflight.get(counterparty_id)
        if task is None:
            if not self.tracker.mark_loading(counterparty_id):
                return self._balances.get(counterparty_id)
            task = asyncio.ensure_future(self._load_balance(counterparty_id, self.kind, self.filters, self._generation))
            self._inflight[counterparty_id] = task
        return await asyncio.shield(task)

    async def _load_balance(self, counterparty_id: str, kind: CounterpartyKind,
                            filters: FilterState, generation: int) -> Optional[CounterpartyBalance]:
        current = asyncio.current_task()
        try:
            balance = await self.balance_loader(kind, counterparty_id, filters)
        except LedgerLinkError as e:
            logger.warning(f"Balance fetch for {kind.value} {counterparty_id} failed: {e}")
            if generation == self._generation:
                self.tracker.mark_failed(counterparty_id)
            return self._balances.get(counterparty_id)
        except Exception as e:
            # Any failure sends the row back to idle so the next visibility event retries it.
            logger.error(f"Balance for {kind.value} {counterparty_id} could not be computed: {e}", exc_info=True)
            if generation == self._generation:
                self.tracker.mark_failed(counterparty_id)
            return self._balances.get(counterparty_id)
        finally:
            if self._inflight.get(counterparty_id) is current:
                del self._inflight[counterparty_id]

        if not self._mounted or generation != self._generation:
            logger.debug(f"Dropping stale balance for {counterparty_id}")
            return None
        self._balances[counterparty_id] = balance
        self.tracker.mark_loaded(counterparty_id)
        return balance

    async def mark_visible(self, ids: Iterable[str]) -> Dict[str, Optional[CounterpartyBalance]]:
        """Rows that scrolled into view; each unloaded one gets its balance fetched."""
        unique = list(dict.fromkeys(i for i in ids if i))
        results = await asyncio.gather(*(self.ensure_balance(i) for i in unique))
        return dict(zip(unique, results))

    # Rendering
    def sorted_items(self) -> List[dict]:
        """Most recent activity first; rows without activity after, in list order."""
        records = self._records.get(self.kind, [])
        dated: List[Tuple[dict, object]] = []
        undated: List[dict] = []
        for record in records:
            loaded = self._balances.get(id_of(record.get("_id") or record.get("id")))
            if loaded is not None and loaded.last_transaction_date is not None:
                dated.append((record, loaded.last_transaction_date))
            else:
                undated.append(record)
        dated.sort(key=lambda pair: pair[1], reverse=True)
        return [record for record, _ in dated] + undated

    def row(self, record: dict) -> CounterpartyRow:
        counterparty_id = id_of(record.get("_id") or record.get("id"))
        loaded = self._balances.get(counterparty_id)
        if loaded is not None:
            balance = loaded.balance
        elif self.kind == CounterpartyKind.VENDOR:
            balance = vendor_fallback_balance(record, self.filters.company_id)
        else:
            balance = Decimal("0.00")
        return CounterpartyRow(
            id=counterparty_id,
            name=display_name(record, self.kind),
            kind=self.kind,
            state=self.tracker.state(counterparty_id),
            balance=balance,
            total_debit=loaded.total_debit if loaded else None,
            total_credit=loaded.total_credit if loaded else None,
            last_transaction_date=loaded.last_transaction_date if loaded else None,
            label=balance_label(balance, self.kind),
            formatted_balance=format_indian_currency(balance),
            is_fallback=loaded is None,
        )

    def page(self, number: Optional[int] = None) -> CounterpartyPage:
        items = self.sorted_items()
        total_pages = math.ceil(len(items) / self.page_size) if self.page_size else 0
        if number is not None:
            self.page_number = max(1, number)
        start = (self.page_number - 1) * self.page_size
        window = self.window
        from_date, to_date = window.query_params()
        return CounterpartyPage(
            kind=self.kind,
            page=self.page_number,
            page_size=self.page_size,
            total_pages=total_pages,
            total_items=len(items),
            items=[self.row(r) for r in items[start:start + self.page_size]],
            company_id=self.filters.company_id,
            from_date=from_date,
            to_date=to_date,
            error=self._errors.get(self.kind),
        )

    async def overall_totals(self) -> OverallTotals:
        """
        Screen-wide totals for the current filters.

        With a totals loader every transaction in the window counts;
        otherwise the balances loaded so far are summed and the result is
        flagged partial while some rows are still unloaded.
        """
        if self.totals_loader is not None:
            totals = await self.totals_loader(self.filters)
            partial = False
        else:
            ids = [id_of(r.get("_id") or r.get("id")) for r in self._records.get(self.kind, [])]
            totals = combine(self._balances[i] for i in ids if i in self._balances)
            partial = any(i not in self._balances for i in ids)
        return OverallTotals(
            total_debit=totals.total_debit,
            total_credit=totals.total_credit,
            balance=totals.balance,
            partial=partial,
            label=balance_label(totals.balance, self.kind),
        )

    def dispose(self) -> None:
        """Screen went away: cancel list loads and ignore any late balance results."""
        self._mounted = False
        for task in list(self._screen_tasks):
            task.cancel()
        self._screen_tasks.clear()
        self._inflight.clear()


def build_ledger(kind: CounterpartyKind, counterparty_id: str, entries, filters: FilterState) -> Ledger:
    window = window_of(filters)
    entries = [e for e in sort_entries(entries) if window.contains(e.date)]
    totals = aggregate(entries, window, counterparty_id)
    from_date, to_date = window.query_params()
    return Ledger(
        title=TITLES[kind],
        kind=kind.value,
        counterparty_id=counterparty_id,
        from_date=from_date,
        to_date=to_date,
        debit_entries=[e for e in entries if e.side == EntrySide.DEBIT],
        credit_entries=[e for e in entries if e.side == EntrySide.CREDIT],
        totals=totals,
        label=balance_label(totals.balance, kind),
    )


# Payables (vendors and expense categories)
class PayablesSource:
    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway

    async def list_counterparties(self, kind: CounterpartyKind, company_id: Optional[str]) -> List[dict]:
        if kind == CounterpartyKind.VENDOR:
            payload = await self.gateway.list_vendors(company_id)
        else:
            payload = await self.gateway.list_payment_expenses(company_id)
        return to_array(payload, LIST_KEYS[kind])

    async def _entries(self, kind: CounterpartyKind, counterparty_id: str, filters: FilterState):
        from_date, to_date = window_of(filters).query_params()
        fetch = self.gateway.vendor_payables if kind == CounterpartyKind.VENDOR else self.gateway.expense_payables
        payload = await fetch(counterparty_id, filters.company_id, from_date, to_date)
        return normalize_payables(payload, counterparty_id)

    async def balance(self, kind: CounterpartyKind, counterparty_id: str, filters: FilterState) -> CounterpartyBalance:
        entries = await self._entries(kind, counterparty_id, filters)
        return aggregate(entries, window_of(filters), counterparty_id)

    async def ledger(self, kind: CounterpartyKind, counterparty_id: str, filters: FilterState) -> Ledger:
        entries = await self._entries(kind, counterparty_id, filters)
        return build_ledger(kind, counterparty_id, entries, filters)

    async def reported_vendor_balance(self, vendor_id: str, company_id: Optional[str] = None,
                                      fallback: Optional[Decimal] = None) -> ReportedBalance:
        """
        Balance as the backend itself reports it for one vendor.

        Best-effort: any failure is logged and the fallback value returned.
        """
        try:
            payload = await self.gateway.vendor_balance(vendor_id, company_id)
        except LedgerLinkError as e:
            logger.info(f"Reported balance for vendor {vendor_id} unavailable: {e}")
            payload = None
        number = to_number(payload.get("balance")) if isinstance(payload, dict) else None
        if number is None:
            return ReportedBalance(
                counterparty_id=vendor_id,
                balance=fallback if fallback is not None else Decimal("0.00"),
                source="fallback",
            )
        return ReportedBalance(
            counterparty_id=vendor_id,
            balance=from_backend_sign(to_money(number)),
            source="backend",
        )


# Receivables (customers)
class ReceivablesSource:
    """
    Customer balances computed from one sales/receipts snapshot.

    The snapshot is fetched once per company and shared by every row until
    `invalidate()` is called.
    """

    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway
        self._snapshot: Optional[asyncio.Task] = None
        self._snapshot_company: Optional[str] = None

    def invalidate(self) -> None:
        self._snapshot = None

    async def _fetch_snapshot(self, company_id: Optional[str]):
        sales, receipts = await asyncio.gather(
            self.gateway.list_sales(company_id),
            self.gateway.list_receipts(company_id),
        )
        return to_array(sales, "sales"), to_array(receipts, "receipts")

    async def snapshot(self, company_id: Optional[str]):
        if self._snapshot is None or self._snapshot_company != company_id:
            self._snapshot_company = company_id
            self._snapshot = asyncio.ensure_future(self._fetch_snapshot(company_id))
        task = self._snapshot
        try:
            return await asyncio.shield(task)
        except LedgerLinkError:
            if self._snapshot is task:
                self._snapshot = None
            raise

    async def list_counterparties(self, kind: CounterpartyKind, company_id: Optional[str]) -> List[dict]:
        return to_array(await self.gateway.list_parties(), LIST_KEYS[CounterpartyKind.CUSTOMER])

    async def balance(self, kind: CounterpartyKind, party_id: str, filters: FilterState) -> CounterpartyBalance:
        sales, receipts = await self.snapshot(filters.company_id)
        return aggregate(normalize_receivables(sales, receipts, party_id), window_of(filters), party_id)

    async def totals(self, filters: FilterState) -> CounterpartyBalance:
        sales, receipts = await self.snapshot(filters.company_id)
        return aggregate(normalize_receivables(sales, receipts), window_of(filters))

    async def ledger(self, party_id: str, filters: FilterState) -> Ledger:
        sales, receipts = await self.snapshot(filters.company_id)
        entries = normalize_receivables(sales, receipts, party_id)
        return build_ledger(CounterpartyKind.CUSTOMER, party_id, entries, filters)


def payables_model(source: PayablesSource, page_size: int) -> CounterpartyListModel:
    return CounterpartyListModel(
        CounterpartyKind.VENDOR,
        page_size,
        list_loader=source.list_counterparties,
        balance_loader=source.balance,
        views=(CounterpartyKind.VENDOR, CounterpartyKind.EXPENSE),
    )


def receivables_model(source: ReceivablesSource, page_size: int) -> CounterpartyListModel:
    return CounterpartyListModel(
        CounterpartyKind.CUSTOMER,
        page_size,
        list_loader=source.list_counterparties,
        balance_loader=source.balance,
        totals_loader=source.totals,
        on_invalidate=(source.invalidate,),
    )
