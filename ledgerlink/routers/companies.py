from fastapi import APIRouter, Depends
import logging

from ledgerlink.exceptions import LedgerLinkError
from ledgerlink.schemas.companies import CompanyList
from ledgerlink.utils.tenancy import as_http_error, get_company_id, get_directory, require_token

router = APIRouter(prefix="/companies", tags=["Companies"])
logger = logging.getLogger("companies")


@router.get("", response_model=CompanyList)
async def read_companies(
    refresh: bool = False,
    token: str = Depends(require_token),
    directory=Depends(get_directory),
    company_id=Depends(get_company_id),
):
    """Companies the user can switch between, plus the current selection."""
    try:
        companies = await directory.refresh() if refresh else await directory.companies()
    except LedgerLinkError as e:
        logger.error(f"Error loading companies: {e}")
        raise as_http_error(e)
    return CompanyList(
        companies=companies,
        selected_company_id=directory.resolve_selection(company_id),
    )
