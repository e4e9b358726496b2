from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from ledgerlink.crud import local_store
from ledgerlink.database import get_db
from ledgerlink.exceptions import LedgerLinkError
from ledgerlink.schemas.session import CompanySelection, SessionCreate, SessionInfo
from ledgerlink.utils.tenancy import (
    as_http_error, get_company_id, get_directory, get_payables, get_realtime, get_receivables,
)

router = APIRouter(prefix="/session", tags=["Session"])
logger = logging.getLogger("session")


@router.put("", response_model=SessionInfo)
async def store_session(
    session: SessionCreate,
    db: Session = Depends(get_db),
    directory=Depends(get_directory),
    realtime=Depends(get_realtime),
):
    """Persist the token and user returned by the login flow."""
    local_store.save_session(db, session.token, session.user)
    directory.warm()
    if realtime is not None and realtime.sio.connected:
        await realtime.join_rooms()
    return SessionInfo(
        authenticated=True,
        user=local_store.get_user(db),
        selected_company_id=local_store.get_selected_company_id(db),
    )


@router.get("", response_model=SessionInfo)
def read_session(db: Session = Depends(get_db)):
    return SessionInfo(
        authenticated=local_store.get_token(db) is not None,
        user=local_store.get_user(db),
        selected_company_id=local_store.get_selected_company_id(db),
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_session(
    db: Session = Depends(get_db),
    directory=Depends(get_directory),
    payables=Depends(get_payables),
    receivables=Depends(get_receivables),
):
    """Logout: forget the token, the user and every cached list."""
    local_store.clear_session(db)
    directory.reset()
    payables.reset()
    receivables.reset()
    return None


@router.get("/company", response_model=CompanySelection)
def read_selected_company(company_id=Depends(get_company_id)):
    return CompanySelection(company_id=company_id)


@router.put("/company", response_model=CompanySelection)
async def select_company(
    selection: CompanySelection,
    db: Session = Depends(get_db),
    directory=Depends(get_directory),
):
    """Switch the company filter; null (or "all") selects every company."""
    company_id = selection.company_id
    if company_id == local_store.ALL_COMPANIES:
        company_id = None
    if company_id is not None:
        try:
            await directory.companies()
        except LedgerLinkError as e:
            raise as_http_error(e)
        if directory.resolve_selection(company_id) is None:
            raise HTTPException(status_code=404, detail="Company not found")
    local_store.set_selected_company_id(db, company_id)
    logger.info(f"Selected company set to {company_id or local_store.ALL_COMPANIES}")
    return CompanySelection(company_id=company_id)
