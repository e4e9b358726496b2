"""
Local Store Configuration Module

This module handles the connection setup for the on-device key-value store
that keeps the authentication token, the serialized user and the last
selected company between app sessions.

It uses SQLAlchemy with a SQLite file by default. The location can be changed
with the LOCAL_STORE_URL environment variable.

The module includes:
- Engine setup
- Session management
- Base model class definition
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from ledgerlink.config import LOCAL_STORE_URL


def build_engine(url: str = LOCAL_STORE_URL):
    """
    Create an SQLAlchemy engine for the local store.

    SQLite connections are shared with the request threads FastAPI uses for
    sync endpoints, so same-thread checking is disabled. In-memory databases
    additionally need a single static connection, otherwise every new
    connection would see an empty database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


# The engine is the entry point to the SQLAlchemy ORM
engine = build_engine()

# SessionLocal is a factory for creating new Session objects
# autocommit=False means we need to explicitly commit transactions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base is the declarative base class that our ORM models will inherit from
Base = declarative_base()


# Dependency to get a store session
def get_db():
    """
    Dependency function that provides a local store session.

    This function creates a new session for each request and ensures
    that the session is properly closed after the request is completed.

    Yields:
        Session: A SQLAlchemy session bound to the local store
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
