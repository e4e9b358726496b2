"""
Test Configuration and Fixtures

The remote accounting backend is replaced by an httpx.MockTransport and the
local store by an in-memory SQLite database.
"""
import os
import tempfile

# Settings are read at import time, so they must be in place first.
os.environ["LOCAL_STORE_URL"] = "sqlite://"
os.environ["REALTIME_ENABLED"] = "false"
os.environ["APP_TIMEZONE"] = "Asia/Kolkata"
os.environ["LOG_DIR"] = os.path.join(tempfile.gettempdir(), "ledgerlink-test-logs")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from ledgerlink.database import Base, SessionLocal, build_engine
from ledgerlink.gateway import RemoteGateway
from ledgerlink.models.local_store import LocalSetting

BACKEND_URL = "http://backend.test"


class FakeBackend:
    """Canned JSON responses keyed by request path; remembers every call."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, path, body=None, status=200):
        self.routes[path] = (status, body)

    def count(self, path):
        return sum(1 for p, _ in self.calls if p == path)

    def params_of(self, path):
        return [params for p, params in self.calls if p == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((path, dict(request.url.params)))
        if path not in self.routes:
            return httpx.Response(404, json={"message": "Not found"})
        status, body = self.routes[path]
        if callable(body):
            body = body(request)
        return httpx.Response(status, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def gateway(backend):
    return RemoteGateway(lambda: "test-token", base_url=BACKEND_URL, client=backend.client())


@pytest.fixture
def store():
    """A fresh, isolated local store session."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def client(backend):
    """TestClient for the app, talking to the fake backend."""
    from ledgerlink.main import app

    app.state.http_client = backend.client()
    with TestClient(app) as test_client:
        yield test_client

    db = SessionLocal()
    try:
        db.query(LocalSetting).delete()
        db.commit()
    finally:
        db.close()


@pytest.fixture
def logged_in(client):
    response = client.put("/session", json={
        "token": "test-token",
        "user": {"_id": "u1", "role": "admin", "clientId": "cl1"},
    })
    assert response.status_code == 200
    return client
