"""
Remote Data Gateway

Thin wrapper around httpx that issues authenticated GET requests against the
remote accounting backend. One attempt per call: no retry and no backoff, the
caller decides how to surface a failure (the app always offers a manual
refresh as recovery).
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx
from jose import jwt
from jose.exceptions import JWTError

from ledgerlink.config import LEDGER_API_BASE_URL, LEDGER_HTTP_TIMEOUT
from ledgerlink.exceptions import AuthenticationRequired, GatewayError, UpstreamStatusError

logger = logging.getLogger("gateway")


def token_is_expired(token: str, now: Optional[float] = None) -> bool:
    """
    True when the token is a JWT whose `exp` claim lies in the past.

    Opaque (non-JWT) tokens cannot be inspected and are treated as valid; the
    backend stays the authority on those.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return False
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return False
    return exp <= (now if now is not None else time.time())


def clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop unset query parameters so they never reach the query string."""
    if not params:
        return {}
    return {k: v for k, v in params.items() if v is not None and v != ""}


class RemoteGateway:
    def __init__(
        self,
        token_provider: Callable[[], Optional[str]],
        base_url: str = LEDGER_API_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = LEDGER_HTTP_TIMEOUT,
    ):
        self._token_provider = token_provider
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    def _bearer(self) -> str:
        # Read right before each request; never cached in memory.
        token = self._token_provider()
        if not token:
            raise AuthenticationRequired("Authentication token not found.")
        if token_is_expired(token):
            raise AuthenticationRequired("Authentication token has expired.")
        return f"Bearer {token}"

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Issue one GET and return the parsed JSON body.

        Raises:
            AuthenticationRequired: no token (or an expired JWT) in the local store.
            UpstreamStatusError: the backend answered with a non-2xx status.
            GatewayError: transport failure or a body that is not JSON.
        """
        headers = {"Authorization": self._bearer()}
        url = f"{self._base_url}{path}"
        query = clean_params(params)
        try:
            response = await self._client.get(url, params=query, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"GET {path} failed: {e}")
            raise GatewayError(f"Could not reach {path}: {e}") from e

        if not response.is_success:
            logger.warning(f"GET {path} returned {response.status_code}")
            raise UpstreamStatusError(response.status_code, url, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"{path} did not return JSON") from e

    # Counterparty lists
    async def list_vendors(self, company_id: Optional[str] = None):
        return await self.get_json("/api/vendors", {"companyId": company_id})

    async def list_payment_expenses(self, company_id: Optional[str] = None):
        return await self.get_json("/api/payment-expenses", {"companyId": company_id})

    async def list_parties(self):
        return await self.get_json("/api/parties")

    # Ledgers
    async def vendor_payables(self, vendor_id: str, company_id: Optional[str] = None,
                              from_date: Optional[str] = None, to_date: Optional[str] = None):
        return await self.get_json("/api/ledger/vendor-payables", {
            "vendorId": vendor_id,
            "companyId": company_id,
            "fromDate": from_date,
            "toDate": to_date,
        })

    async def expense_payables(self, expense_id: str, company_id: Optional[str] = None,
                               from_date: Optional[str] = None, to_date: Optional[str] = None):
        return await self.get_json("/api/ledger/expense-payables", {
            "expenseId": expense_id,
            "companyId": company_id,
            "fromDate": from_date,
            "toDate": to_date,
        })

    async def vendor_balance(self, vendor_id: str, company_id: Optional[str] = None):
        return await self.get_json(f"/api/vendors/{vendor_id}/balance", {"companyId": company_id})

    async def list_sales(self, company_id: Optional[str] = None):
        return await self.get_json("/api/sales", {"companyId": company_id, "isDashboard": "true"})

    async def list_receipts(self, company_id: Optional[str] = None):
        return await self.get_json("/api/receipts", {"companyId": company_id, "isDashboard": "true"})

    # Tenancy
    async def list_companies(self):
        return await self.get_json("/api/companies/my")

    async def list_clients(self):
        return await self.get_json("/api/clients")

    # Transaction details (line items)
    async def get_purchase(self, transaction_id: str):
        return await self.get_json(f"/api/purchase/{transaction_id}")

    async def get_payment(self, transaction_id: str):
        return await self.get_json(f"/api/payments/{transaction_id}")

    async def get_sale(self, transaction_id: str):
        return await self.get_json(f"/api/sales/{transaction_id}")

    async def get_receipt(self, transaction_id: str):
        return await self.get_json(f"/api/receipts/{transaction_id}")
