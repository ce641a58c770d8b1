from typing import Generator
import mongomock
import pytest

from partsmarket import db as storage
from partsmarket.auth import create_access_token
from partsmarket.db import USERS, ensure_indexes, get_db
from partsmarket.main import app

@pytest.fixture(scope="function")
def db_session() -> Generator:
    # In-memory MongoDB stand-in carrying the same unique indexes as production
    mongo = mongomock.MongoClient()
    db = mongo["partsmarket_test"]
    ensure_indexes(db)
    try:
        yield db
    finally:
        mongo.close()

@pytest.fixture(scope="function")
def client(db_session, monkeypatch):
    # The lifespan opens its own client; keep it off the network
    monkeypatch.setattr(storage, "create_client", lambda url: mongomock.MongoClient())

    # Override dependency to use the same database
    def override_get_db():
        return db_session
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture
def make_user(db_session):
    """Insert a user directly and return bearer headers for it."""
    def _make(uid: str, role: str = "user", email: str | None = None) -> dict:
        db_session[USERS].insert_one({
            "uid": uid,
            "email": email or f"{uid}@example.com",
            "name": uid.title(),
            "role": role,
        })
        return {"Authorization": f"Bearer {create_access_token(uid, role)}"}
    return _make

@pytest.fixture
def admin_headers(make_user):
    return make_user("admin-1", role="admin")

@pytest.fixture
def user_headers(make_user):
    return make_user("cust-1")
