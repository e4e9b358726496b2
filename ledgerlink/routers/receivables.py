from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from ledgerlink.crud.counterparties import CounterpartyListModel, ReceivablesSource
from ledgerlink.exceptions import AuthenticationRequired, LedgerLinkError
from ledgerlink.schemas.counterparties import CounterpartyPage, OverallTotals, VisibleRequest
from ledgerlink.schemas.filters import DateRange, FilterState
from ledgerlink.schemas.ledgers import Ledger
from ledgerlink.utils.tenancy import (
    as_http_error, get_company_id, get_receivables, get_receivables_source,
)

router = APIRouter(prefix="/receivables", tags=["Receivables"])
logger = logging.getLogger("receivables")


def _apply(model: CounterpartyListModel, company_id: Optional[str],
           from_date: Optional[date], to_date: Optional[date]) -> None:
    if from_date and to_date and from_date > to_date:
        raise HTTPException(status_code=400, detail="from_date must not be after to_date")
    model.set_filters(company_id, from_date, to_date)


async def _ensure_list(model: CounterpartyListModel) -> None:
    try:
        await model.ensure_list()
    except AuthenticationRequired as e:
        raise as_http_error(e)


@router.get("/parties", response_model=CounterpartyPage)
async def read_parties(
    page: int = Query(1, ge=1),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_receivables),
):
    """One page of customers, most recently active first."""
    _apply(model, company_id, from_date, to_date)
    await _ensure_list(model)
    return model.page(page)


@router.post("/parties/visible", response_model=CounterpartyPage)
async def mark_visible(
    request: VisibleRequest,
    page: Optional[int] = Query(None, ge=1),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_receivables),
):
    _apply(model, company_id, from_date, to_date)
    await _ensure_list(model)
    await model.mark_visible(request.ids)
    return model.page(page)


@router.get("/parties/{party_id}/ledger", response_model=Ledger)
async def read_ledger(
    party_id: str,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_receivables),
    source: ReceivablesSource = Depends(get_receivables_source),
):
    """Sales and receipts of one customer as a debit/credit ledger."""
    filters = FilterState(
        company_id=company_id,
        date_range=DateRange(from_date=from_date, to_date=to_date),
        selected_counterparty_id=party_id,
    )
    model.select(party_id)
    try:
        return await source.ledger(party_id, filters)
    except LedgerLinkError as e:
        logger.error(f"Error loading customer ledger {party_id}: {e}")
        raise as_http_error(e)


@router.get("/totals", response_model=OverallTotals)
async def read_totals(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_receivables),
):
    """Totals over every sale and receipt in the window, not just the loaded rows."""
    _apply(model, company_id, from_date, to_date)
    try:
        return await model.overall_totals()
    except LedgerLinkError as e:
        logger.error(f"Error computing receivables totals: {e}")
        raise as_http_error(e)


@router.post("/refresh", response_model=CounterpartyPage)
async def refresh_receivables(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    company_id: Optional[str] = Depends(get_company_id),
    model: CounterpartyListModel = Depends(get_receivables),
):
    _apply(model, company_id, from_date, to_date)
    try:
        await model.refresh()
    except AuthenticationRequired as e:
        raise as_http_error(e)
    logger.info("Receivables refreshed")
    return model.page(1)
