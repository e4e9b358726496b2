import asyncio
import logging
from typing import Awaitable, List, Optional

from ledgerlink.crud.ledger_entries import id_of, to_array
from ledgerlink.exceptions import LedgerLinkError
from ledgerlink.gateway import RemoteGateway
from ledgerlink.schemas.companies import Company

logger = logging.getLogger(__name__)


def to_company(record: dict) -> Company:
    return Company(
        id=id_of(record.get("_id") or record.get("id")),
        business_name=str(record.get("businessName") or record.get("name") or ""),
        client_id=id_of(record.get("client")) or None,
    )


class CompanyDirectory:
    """
    Cached list of the companies the signed-in user can see.

    `warm()` starts the first fetch early (at startup) and hands back the
    task so the first consumer can await it instead of firing its own
    request. `refresh()` re-fetches, e.g. after a `company-update` event.
    """

    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway
        self._companies: List[Company] = []
        self._ready = False
        self._warm_task: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    def warm(self) -> Awaitable[List[Company]]:
        if self._warm_task is None:
            self._warm_task = asyncio.ensure_future(self._warm())
        return self._warm_task

    async def _warm(self) -> List[Company]:
        try:
            return await self.refresh()
        except LedgerLinkError as e:
            # Not fatal: the next consumer fetches again.
            logger.warning(f"Company preload failed: {e}")
            self._warm_task = None
            return []

    async def refresh(self) -> List[Company]:
        payload = await self.gateway.list_companies()
        self._companies = [to_company(r) for r in to_array(payload) if isinstance(r, dict)]
        self._ready = True
        logger.info(f"Loaded {len(self._companies)} companies")
        return list(self._companies)

    async def companies(self) -> List[Company]:
        if self._ready:
            return list(self._companies)
        if self._warm_task is not None:
            return await self._warm_task
        return await self.refresh()

    def reset(self) -> None:
        """Drop the cached list (logout); the next consumer fetches again."""
        if self._warm_task is not None and not self._warm_task.done():
            self._warm_task.cancel()
        self._warm_task = None
        self._companies = []
        self._ready = False

    def resolve_selection(self, saved_id: Optional[str]) -> Optional[str]:
        """Saved company id as a filter value; "all" or an unknown id means all companies."""
        if not saved_id or saved_id == "all":
            return None
        if any(c.id == saved_id for c in self._companies):
            return saved_id
        return None

    async def close(self):
        if self._warm_task is not None and not self._warm_task.done():
            self._warm_task.cancel()
