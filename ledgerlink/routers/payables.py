from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from ledgerlink.crud.counterparties import CounterpartyListModel, PayablesSource, vendor_fallback_balance
from ledgerlink.crud.ledger_entries import id_of
from ledgerlink.exceptions import AuthenticationRequired, LedgerLinkError
from ledgerlink.schemas.counterparties import (
    CounterpartyKind, CounterpartyPage, OverallTotals, ReportedBalance, VisibleRequest,
)
from ledgerlink.schemas.filters import DateRange, FilterState
from ledgerlink.schemas.ledgers import Ledger
from ledgerlink.utils.tenancy import as_http_error, get_company_id, get_payables, get_payables_source

router = APIRouter(prefix="/payables", tags=["Payables"])
logger = logging.getLogger("payables")

PAYABLE_KINDS = (CounterpartyKind.VENDOR, CounterpartyKind.EXPENSE)


def _apply(model: CounterpartyListModel, kind: CounterpartyKind, company_id: Optional[str],
           from_date: Optional[date], to_date: Optional[date]) -> None:
    if kind not in PAYABLE_KINDS:
        raise HTTPException(status_code=404, detail=f"No payables list for '{kind.value}'")
    if from_date and to_date and from_date > to_date:
        raise HTTPException(status_code=400, detail="from_date must not be after to_date")
    model.set_filters(company_id, from_date, to_date)
    model.set_view(kind)


async def _ensure_list(model: CounterpartyListModel) -> None:
    try:
        await model.ensure_list()
    except AuthenticationRequired as e:
        raise as_http_error(e)


@router.get("/totals", response_model=OverallTotals)
async def read_totals(
    kind: CounterpartyKind = CounterpartyKind.VENDOR,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_payables),
):
    """Totals over the balances loaded so far (flagged partial until every row is loaded)."""
    _apply(model, kind, company_id, from_date, to_date)
    await _ensure_list(model)
    return await model.overall_totals()


@router.post("/refresh", response_model=CounterpartyPage)
async def refresh_payables(
    kind: CounterpartyKind = CounterpartyKind.VENDOR,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_payables),
):
    """Pull-to-refresh: drop cached lists and balances and reload the list."""
    _apply(model, kind, company_id, from_date, to_date)
    try:
        await model.refresh()
    except AuthenticationRequired as e:
        raise as_http_error(e)
    logger.info(f"Payables ({kind.value}) refreshed")
    return model.page(1)


@router.get("/vendor/{vendor_id}/reported-balance", response_model=ReportedBalance)
async def read_reported_vendor_balance(
    vendor_id: str,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_payables),
    source: PayablesSource = Depends(get_payables_source),
):
    """The backend's own figure for one vendor; falls back to the list value silently."""
    fallback = None
    if model.kind == CounterpartyKind.VENDOR:
        for record in model.sorted_items():
            if id_of(record.get("_id") or record.get("id")) == vendor_id:
                fallback = vendor_fallback_balance(record, company_id)
                break
    return await source.reported_vendor_balance(vendor_id, company_id, fallback)


@router.get("/{kind}", response_model=CounterpartyPage)
async def read_counterparties(
    kind: CounterpartyKind,
    page: int = Query(1, ge=1),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_payables),
):
    """
    One page of vendors or expense categories.

    Rows whose balance has not been loaded yet carry the list's own value
    and `state: idle`; report them as visible to load the real balance.
    """
    _apply(model, kind, company_id, from_date, to_date)
    await _ensure_list(model)
    return model.page(page)


@router.post("/{kind}/visible", response_model=CounterpartyPage)
async def mark_visible(
    kind: CounterpartyKind,
    request: VisibleRequest,
    page: Optional[int] = Query(None, ge=1),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_payables),
):
    """Rows that scrolled into view; loads each balance at most once."""
    _apply(model, kind, company_id, from_date, to_date)
    await _ensure_list(model)
    await model.mark_visible(request.ids)
    return model.page(page)


@router.get("/{kind}/{counterparty_id}/ledger", response_model=Ledger)
async def read_ledger(
    kind: CounterpartyKind,
    counterparty_id: str,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_payables),
    source: PayablesSource = Depends(get_payables_source),
):
    """Full debit/credit ledger of one vendor or expense category."""
    if kind not in PAYABLE_KINDS:
        raise HTTPException(status_code=404, detail=f"No payables ledger for '{kind.value}'")
    filters = FilterState(
        company_id=company_id,
        date_range=DateRange(from_date=from_date, to_date=to_date),
        selected_counterparty_id=counterparty_id,
    )
    model.select(counterparty_id)
    try:
        return await source.ledger(kind, counterparty_id, filters)
    except LedgerLinkError as e:
        logger.error(f"Error loading {kind.value} ledger {counterparty_id}: {e}")
        raise as_http_error(e)
