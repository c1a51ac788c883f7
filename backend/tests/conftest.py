"""Shared test fixtures for backend tests."""

from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from traffic_chat.core.database import get_session
from traffic_chat.services.realtime import get_hub

# In-memory SQLite with StaticPool so all connections (including threads) share one DB
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def get_test_session():
    with Session(test_engine) as session:
        yield session


@pytest.fixture(autouse=True)
def setup_test_db():
    """Create all tables before each test, drop after."""
    import traffic_chat.models.auto_reply  # noqa: F401 - register models
    import traffic_chat.models.conversation  # noqa: F401
    import traffic_chat.models.notification  # noqa: F401
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)
    get_hub().clear()


@pytest.fixture
def app():
    from traffic_chat.main import app

    app.dependency_overrides[get_session] = get_test_session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """FastAPI TestClient running the lifespan against the test database."""
    with patch("traffic_chat.core.database.engine", test_engine):
        with TestClient(app) as c:
            yield c


@pytest.fixture
def api(app):
    """Widget API client talking to the app in-process."""
    from traffic_chat.widget.client import ChatAPIClient

    return ChatAPIClient(base_url="http://test", transport=httpx.ASGITransport(app=app))
