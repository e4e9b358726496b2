from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ledgerlink.crud import local_store
from ledgerlink.database import get_db
from ledgerlink.exceptions import LedgerLinkError, http_status_for


def get_company_id(request: Request, db: Session = Depends(get_db)) -> Optional[str]:
    """
    Company filter for the current request, None meaning all companies.

    The stored selection is checked against the company list once that list
    is known; an id the user no longer has access to falls back to all.
    """
    saved = local_store.get_selected_company_id(db)
    directory = request.app.state.companies
    if saved and directory.is_ready:
        return directory.resolve_selection(saved)
    return saved


def require_token(db: Session = Depends(get_db)) -> str:
    token = local_store.get_token(db)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication token not found.")
    return token


def get_gateway(request: Request):
    return request.app.state.gateway


def get_directory(request: Request):
    return request.app.state.companies


def get_payables(request: Request):
    return request.app.state.payables


def get_payables_source(request: Request):
    return request.app.state.payables_source


def get_receivables(request: Request):
    return request.app.state.receivables


def get_receivables_source(request: Request):
    return request.app.state.receivables_source


def get_realtime(request: Request):
    return getattr(request.app.state, "realtime", None)


def as_http_error(error: LedgerLinkError) -> HTTPException:
    return HTTPException(status_code=http_status_for(error), detail=str(error))
