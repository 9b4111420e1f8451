"""Test fixtures and utilities."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import api_server
from auth import register_user
from categories import seed_default_categories
from database import Base, get_db

# Sample OCR text for testing
SAMPLE_RECEIPT_TEXT = """

   BLUE BOTTLE CAFE
123 Market Street
San Francisco, CA 94103
Tel 4155550199

Latte                 $4.50
Croissant             $3.75
Subtotal              $8.25
Tax                   $0.72
TOTAL                 $8.97

Thank you for your visit!
"""

SAMPLE_STATEMENT_TEXT = """
ACME BANK - Monthly Statement
Account ending 4421

GROCERY OUTLET $54.20 01/03/2024
Uber trip 18.40 2024-01-05
Opening balance 1200.00
01/15/2024 $12.00 coffee
"""


@pytest.fixture
def sample_receipt_text() -> str:
    return SAMPLE_RECEIPT_TEXT


@pytest.fixture
def sample_statement_text() -> str:
    return SAMPLE_STATEMENT_TEXT


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db):
    seed_default_categories(db)
    return db


@pytest.fixture
def user(db):
    return register_user(db, "alice", "alice@example.com", "secret123")


@pytest.fixture
def other_user(db):
    return register_user(db, "bob", "bob@example.com", "hunter22")


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Route receipt storage to a temporary directory."""
    import storage

    monkeypatch.setattr(storage, "S3_BUCKET", None)
    monkeypatch.setattr(storage, "UPLOAD_DIR", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture
def client(session_factory, upload_dir):
    """API client backed by the in-memory database (no lifespan startup)."""
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    seed = session_factory()
    seed_default_categories(seed)
    seed.close()

    api_server.app.dependency_overrides[get_db] = _get_db
    yield TestClient(api_server.app)
    api_server.app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client):
    """API client with a registered, logged-in user."""
    resp = client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": "secret123"},
    )
    assert resp.status_code == 201
    return client
