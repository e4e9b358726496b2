"""
Configuration Module

Settings for the LedgerLink companion service. Everything is read from the
environment (or a local .env file) once at import time.
"""

from dotenv import load_dotenv
import os

# Load environment variables from .env file
load_dotenv()


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# Remote accounting backend
# Every REST call is issued against this base URL, e.g. https://api.example.com
LEDGER_API_BASE_URL = os.getenv("LEDGER_API_BASE_URL", "http://localhost:8745").rstrip("/")
LEDGER_HTTP_TIMEOUT = float(os.getenv("LEDGER_HTTP_TIMEOUT", "20"))

# Real-time channel (socket.io server shipped with the backend)
LEDGER_SOCKET_URL = os.getenv("LEDGER_SOCKET_URL", LEDGER_API_BASE_URL)
LEDGER_SOCKET_PATH = os.getenv("LEDGER_SOCKET_PATH", "/socket.io/")
REALTIME_ENABLED = _as_bool(os.getenv("REALTIME_ENABLED", "true"))

# On-device key-value store (token, user, selected company)
LOCAL_STORE_URL = os.getenv("LOCAL_STORE_URL", "sqlite:///./ledgerlink.db")

# "Local time" used for day-granularity date windows
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Kolkata")

# Page sizes of the counterparty lists
VENDOR_PAGE_SIZE = int(os.getenv("VENDOR_PAGE_SIZE", "7"))
PARTY_PAGE_SIZE = int(os.getenv("PARTY_PAGE_SIZE", "7"))

LOG_DIR = os.getenv("LOG_DIR", "logs")

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:8081,http://127.0.0.1:8081"
    ).split(",")
    if origin.strip()
]
