from enum import Enum
from fastapi import APIRouter, Depends
import logging

from ledgerlink.crud.line_items import PAYABLES_SIDE, RECEIVABLES_SIDE, fetch_line_items
from ledgerlink.exceptions import LedgerLinkError
from ledgerlink.schemas.ledgers import TransactionItems
from ledgerlink.utils.tenancy import as_http_error, get_gateway

router = APIRouter(prefix="/transactions", tags=["Transactions"])
logger = logging.getLogger("transactions")


class LedgerSide(str, Enum):
    PAYABLES = PAYABLES_SIDE
    RECEIVABLES = RECEIVABLES_SIDE


@router.get("/{side}/{transaction_id}/items", response_model=TransactionItems)
async def read_line_items(side: LedgerSide, transaction_id: str, gateway=Depends(get_gateway)):
    """Product and service lines of one ledger entry, with subtotal and tax."""
    try:
        return await fetch_line_items(gateway, side.value, transaction_id)
    except LedgerLinkError as e:
        logger.warning(f"Line items for {side.value} transaction {transaction_id}: {e}")
        raise as_http_error(e)
