"""
Real-time Channel

One shared socket.io connection per app session. Backend events are not
merged into any cache; each one is turned into an invalidation signal on an
InvalidationBus topic and the subscribers re-fetch whatever they show.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import socketio

from ledgerlink.config import LEDGER_SOCKET_PATH, LEDGER_SOCKET_URL

logger = logging.getLogger("realtime")

COMPANIES = "companies"
INVENTORY = "inventory"
TRANSACTIONS = "transactions"
PERMISSIONS = "permissions"

COMPANY_EVENTS = ("company-update",)
INVENTORY_EVENTS = ("product-update", "service-update")
TRANSACTION_EVENTS = (
    "sales-update",
    "purchase-update",
    "receipt-update",
    "payment-update",
    "journal-update",
    "proforma-update",
    "transaction-update",
)
BROADCAST_ROOMS = ("all-inventory-updates", "all-transactions-updates")
MASTER_ROOM = "all-masters"
MASTER_ROLE = "master"


class InvalidationBus:
    """Topic -> callbacks. Callbacks may be plain functions or coroutines."""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = defaultdict(list)
        self.revisions: Dict[str, int] = defaultdict(int)

    def subscribe(self, topic: str, callback: Callable) -> Callable[[], None]:
        self._subscribers[topic].append(callback)

        def unsubscribe():
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)
        return unsubscribe

    async def publish(self, topic: str, payload: Any = None) -> None:
        self.revisions[topic] += 1
        logger.info(f"Invalidating '{topic}' (revision {self.revisions[topic]})")
        for callback in list(self._subscribers[topic]):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # One failing subscriber must not stop the others from refreshing.
                logger.error(f"Subscriber of '{topic}' failed: {e}", exc_info=True)


def identity(user: Optional[dict]):
    """(user_id, client_id, role) of the stored user object, or None without a user id."""
    if not isinstance(user, dict):
        return None
    user_id = user.get("_id") or user.get("id") or user.get("userId")
    if not user_id:
        return None
    client_id = (
        user.get("clientId") or user.get("client") or user.get("tenantId")
        or user.get("tenant") or user_id
    )
    return str(user_id), str(client_id), user.get("role")


class RealtimeChannel:
    def __init__(
        self,
        bus: InvalidationBus,
        user_provider: Callable[[], Optional[dict]],
        url: str = LEDGER_SOCKET_URL,
        path: str = LEDGER_SOCKET_PATH,
        sio=None,
    ):
        self.bus = bus
        self.user_provider = user_provider
        self.url = url
        self.path = path
        self.sio = sio or socketio.AsyncClient(reconnection=True)
        self._identity = None

        self.sio.on("connect", self.on_connect)
        self.sio.on("disconnect", self.on_disconnect)
        for event in COMPANY_EVENTS + INVENTORY_EVENTS + TRANSACTION_EVENTS + ("user-update", "PERMISSION_UPDATE"):
            self.sio.on(event, self._handler(event))

    def _handler(self, event: str):
        async def handle(data=None):
            await self.dispatch(event, data)
        return handle

    async def connect(self) -> None:
        await self.sio.connect(self.url, socketio_path=self.path, transports=["websocket"])

    async def disconnect(self) -> None:
        if self.sio.connected:
            await self.sio.disconnect()

    async def on_connect(self):
        logger.info("Socket connected")
        await self.join_rooms()

    async def on_disconnect(self, *args):
        logger.info("Socket disconnected")

    async def join_rooms(self) -> bool:
        """
        Identify and join this user's rooms.

        Runs on every (re)connect since the server forgets room membership
        when the connection drops.
        """
        self._identity = identity(self.user_provider())
        if self._identity is None:
            logger.info("No stored user; skipping room joins")
            return False
        user_id, client_id, role = self._identity

        await self.sio.emit("IDENTIFY", {"userId": user_id, "clientId": client_id})
        await self.sio.emit("joinRoom", {"userId": user_id, "role": role, "clientId": client_id})
        rooms = [f"user-{user_id}", f"client-{client_id}", *BROADCAST_ROOMS]
        if role == MASTER_ROLE:
            rooms.append(MASTER_ROOM)
        for room in rooms:
            await self.sio.emit("joinRoom", {"room": room})
        logger.info(f"Joined rooms {rooms}")
        return True

    def _is_relevant(self, data: Any) -> bool:
        if not isinstance(data, dict) or not data.get("clientId"):
            return True
        if self._identity is None:
            return True
        _, client_id, role = self._identity
        return role == MASTER_ROLE or str(data["clientId"]) == client_id

    async def dispatch(self, event: str, data: Any = None) -> Optional[str]:
        """Publish the invalidation an event stands for; returns the topic or None."""
        topic = None
        if event in COMPANY_EVENTS:
            topic = COMPANIES
        elif event == "user-update":
            if isinstance(data, dict) and data.get("action") == "company-assignment-update":
                topic = COMPANIES
        elif event in INVENTORY_EVENTS:
            topic = INVENTORY
        elif event in TRANSACTION_EVENTS:
            if self._is_relevant(data):
                topic = TRANSACTIONS
            else:
                logger.debug(f"Ignoring {event} for another client")
        elif event == "PERMISSION_UPDATE":
            topic = PERMISSIONS

        if topic is not None:
            logger.info(f"Socket event '{event}' -> {topic}")
            await self.bus.publish(topic, data)
        return topic
