import os

# Settings are read at import time, so configure the test environment first.
os.environ["DATABASE_URL"] = "sqlite:///./test_travel_booking.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALGORITHM"] = "HS256"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from unittest.mock import AsyncMock

from travel_booking.config import settings
from travel_booking.database import Base, SessionLocal, engine
from travel_booking.main import app


# --- Database Management Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def setup_db():
    """Creates and drops the test database tables."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """Empties every table after each test; collections commit their own sessions."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def session_factory():
    return SessionLocal


@pytest.fixture
def db_session():
    session = SessionLocal()
    yield session
    session.close()


# --- Mocking External Services ---
@pytest.fixture(autouse=True)
def mock_background_tasks(mocker):
    """Keeps the outbox poller (and its Kafka connection) out of API tests."""
    mocker.patch("travel_booking.main.run_outbox_poller", new_callable=AsyncMock)


# --- API Test Client Fixtures ---
@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def create_test_token(user_id: int = 1) -> str:
    payload = {"sub": str(user_id)}
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return f"Bearer {token}"


@pytest.fixture
def auth_headers():
    """Authorization headers for user 1."""
    return {"Authorization": create_test_token(1)}


@pytest.fixture
def other_user_headers():
    return {"Authorization": create_test_token(2)}
