from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from datetime import datetime
import logging
import os

from socketio.exceptions import ConnectionError as SocketConnectionError

from ledgerlink.config import (
    CORS_ALLOWED_ORIGINS, LOG_DIR, PARTY_PAGE_SIZE, REALTIME_ENABLED, VENDOR_PAGE_SIZE,
)
from ledgerlink.crud import local_store
from ledgerlink.crud.companies import CompanyDirectory
from ledgerlink.crud.counterparties import (
    PayablesSource, ReceivablesSource, payables_model, receivables_model,
)
from ledgerlink.database import Base, SessionLocal, engine
from ledgerlink.gateway import RemoteGateway
from ledgerlink.realtime import COMPANIES, TRANSACTIONS, InvalidationBus, RealtimeChannel
import ledgerlink.routers.companies as companies
import ledgerlink.routers.payables as payables
import ledgerlink.routers.receivables as receivables
import ledgerlink.routers.session as session
import ledgerlink.routers.transactions as transactions


os.makedirs(LOG_DIR, exist_ok=True) # Create the log directory if it doesn't exist

# Create a unique log file name based on current date/time
current_time_str = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
LOG_FILE = os.path.join(LOG_DIR, f"app_{current_time_str}.log")

# Configure the root logger
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename=LOG_FILE,
    filemode='a'
)

# Also log to the console
console_handler = logging.StreamHandler()
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
logging.getLogger().addHandler(console_handler)

logger = logging.getLogger(__name__)
logger.info("Application starting up...")
# --- End Logging Configuration ---


def wire_invalidations(bus: InvalidationBus, directory: CompanyDirectory, models) -> None:
    """Socket events only say "something changed"; every subscriber re-fetches."""

    async def on_companies(_payload):
        await directory.refresh()

    async def on_transactions(_payload):
        for model in models:
            if model.is_list_loaded():
                await model.refresh()
            else:
                model.reset()

    bus.subscribe(COMPANIES, on_companies)
    bus.subscribe(TRANSACTIONS, on_transactions)
    # INVENTORY and PERMISSIONS are still published (and counted in bus.revisions)
    # but this service caches no product, service or permission data to drop.


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create local store tables
    Base.metadata.create_all(bind=engine)

    gateway = RemoteGateway(
        local_store.token_reader(SessionLocal),
        client=getattr(app.state, "http_client", None),
    )
    directory = CompanyDirectory(gateway)
    payables_source = PayablesSource(gateway)
    receivables_source = ReceivablesSource(gateway)
    payables_list = payables_model(payables_source, VENDOR_PAGE_SIZE)
    receivables_list = receivables_model(receivables_source, PARTY_PAGE_SIZE)
    bus = InvalidationBus()
    wire_invalidations(bus, directory, (payables_list, receivables_list))

    app.state.gateway = gateway
    app.state.companies = directory
    app.state.payables_source = payables_source
    app.state.receivables_source = receivables_source
    app.state.payables = payables_list
    app.state.receivables = receivables_list
    app.state.bus = bus
    app.state.realtime = None

    if local_store.token_reader(SessionLocal)():
        directory.warm()

    if REALTIME_ENABLED:
        channel = RealtimeChannel(bus, local_store.user_reader(SessionLocal))
        try:
            await channel.connect()
            app.state.realtime = channel
        except SocketConnectionError as e:
            logger.warning(f"Real-time channel unavailable: {e}")

    yield

    logger.info("Application shutting down...")
    payables_list.dispose()
    receivables_list.dispose()
    await directory.close()
    if app.state.realtime is not None:
        await app.state.realtime.disconnect()
    await gateway.close()


app = FastAPI(lifespan=lifespan)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="LedgerLink API",
        version="1.0.0",
        description="Device-side companion API for payables and receivables ledgers",
        routes=app.routes,
    )
    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi


app.include_router(session.router)
app.include_router(companies.router)
app.include_router(payables.router)
app.include_router(receivables.router)
app.include_router(transactions.router)


@app.get("/")
async def test_route():
    return {"message": "Welcome to LedgerLink!"}
