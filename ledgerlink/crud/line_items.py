import logging
from decimal import Decimal
from typing import Any, List, Optional

from ledgerlink.crud.ledger_entries import id_of, to_money, to_number
from ledgerlink.exceptions import GatewayError, TransactionNotFound
from ledgerlink.gateway import RemoteGateway
from ledgerlink.schemas.ledgers import LineItem, LineItemSummary, TransactionItems

logger = logging.getLogger(__name__)

PAYABLES_SIDE = "payables"
RECEIVABLES_SIDE = "receivables"


def _name_of(ref: Any, name_field: str, default: str) -> str:
    if isinstance(ref, dict):
        return str(ref.get(name_field) or default)
    if ref:
        return str(ref)
    return default


def _tax_rate(item: dict) -> Optional[float]:
    for key in ("gstPercentage", "gstRate", "gst"):
        number = to_number(item.get(key))
        if number is not None:
            return float(number)
    return None


def _optional_money(value: Any) -> Optional[Decimal]:
    number = to_number(value)
    return to_money(number) if number is not None else None


def _product_line(p: dict) -> LineItem:
    product = p.get("product")
    hsn = (product.get("hsn") if isinstance(product, dict) else None) or p.get("hsn") or p.get("hsnCode")
    quantity = to_number(p.get("quantity"))
    return LineItem(
        item_type="product",
        name=_name_of(product, "name", "(product)"),
        quantity=float(quantity) if quantity is not None else None,
        unit_type=p.get("unitType") or None,
        unit_price=_optional_money(p.get("pricePerUnit")),
        amount=to_money(to_number(p.get("amount")) or Decimal(0)),
        tax_rate=_tax_rate(p),
        line_tax=_optional_money(p.get("lineTax")),
        hsn_code=str(hsn) if hsn else None,
    )


def _service_line(s: dict) -> LineItem:
    service = s.get("service")
    sac = (service.get("sac") if isinstance(service, dict) else None) or s.get("sac")
    return LineItem(
        item_type="service",
        name=_name_of(service, "serviceName", "(service)"),
        description=s.get("description") or None,
        amount=to_money(to_number(s.get("amount")) or Decimal(0)),
        tax_rate=_tax_rate(s),
        line_tax=_optional_money(s.get("lineTax")),
        sac_code=str(sac) if sac else None,
    )


def _service_records(transaction: dict) -> list:
    services = transaction.get("services")
    if isinstance(services, list):
        return services
    if isinstance(transaction.get("service"), list):
        return transaction["service"]
    if isinstance(services, dict):
        return [services]
    return []


def process_line_items(transaction: Any) -> List[LineItem]:
    """Flatten a purchase/sale/payment detail record into product and service lines."""
    if not isinstance(transaction, dict):
        return []
    products = transaction.get("products") if isinstance(transaction.get("products"), list) else []
    items = [_product_line(p) for p in products if isinstance(p, dict)]
    items.extend(_service_line(s) for s in _service_records(transaction) if isinstance(s, dict))
    return items


def summarize_line_items(items: List[LineItem]) -> LineItemSummary:
    """
    Subtotal, tax and grand total of a set of lines.

    Uses the backend's line tax when present, otherwise amount * rate / 100.
    """
    subtotal = Decimal(0)
    tax_total = Decimal(0)
    for item in items:
        subtotal += item.amount
        if item.line_tax is not None:
            tax_total += item.line_tax
        elif item.tax_rate:
            tax_total += item.amount * Decimal(str(item.tax_rate)) / 100
    subtotal = to_money(subtotal)
    tax_total = to_money(tax_total)
    return LineItemSummary(subtotal=subtotal, tax_total=tax_total, grand_total=subtotal + tax_total)


async def fetch_line_items(gateway: RemoteGateway, side: str, transaction_id: str) -> TransactionItems:
    """
    Load the detail record behind one ledger entry and return its lines.

    Payables look the id up as a purchase first and a payment second;
    receivables as a sale first and a receipt second.

    Raises:
        TransactionNotFound: neither endpoint returned the record.
    """
    if side == RECEIVABLES_SIDE:
        attempts = (("sales", gateway.get_sale, "entry"), ("receipts", gateway.get_receipt, "receipt"))
    else:
        attempts = (("purchase", gateway.get_purchase, "entry"), ("payments", gateway.get_payment, "payment"))

    for source, fetch, key in attempts:
        try:
            payload = await fetch(transaction_id)
        except GatewayError as e:
            logger.info(f"Transaction {transaction_id} not available from {source}: {e}")
            continue
        record = payload.get(key) if isinstance(payload, dict) else None
        if not isinstance(record, dict):
            # Some detail endpoints answer with the bare record
            record = payload if isinstance(payload, dict) and id_of(payload.get("_id")) else None
        if record is None:
            logger.info(f"Transaction {transaction_id}: {source} response has no '{key}' record")
            continue
        items = process_line_items(record)
        return TransactionItems(
            transaction_id=transaction_id,
            source=source,
            items=items,
            summary=summarize_line_items(items),
        )

    raise TransactionNotFound(f"Transaction {transaction_id} not found")
