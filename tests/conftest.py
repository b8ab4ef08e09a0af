"""Shared fixtures: in-memory SQLite store, API client, mocked Graph API."""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from leadboard.config import settings
from leadboard.database import get_session
from leadboard.main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clean_settings(monkeypatch):
    """Blank out secrets and credentials so no test reaches the network."""
    for field in (
        "ingestion_api_key",
        "meta_sync_secret",
        "meta_access_token",
        "meta_ad_account_id",
        "meta_available_balance_override",
        "whatsapp_business_account_id",
        "whatsapp_phone_number_id_1",
        "whatsapp_phone_number_id_2",
    ):
        monkeypatch.setattr(settings, field, "")
    monkeypatch.setattr(settings, "meta_sync_enabled", False)
    monkeypatch.setattr(settings, "sqlite_fallback", True)
    return settings


@pytest.fixture
def client(engine, clean_settings):
    def session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = session_override
    # No context manager: the lifespan would touch the real database.
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_http():
    """Factory for an AsyncClient whose requests are answered by ``handler(request)``."""

    def build(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build
