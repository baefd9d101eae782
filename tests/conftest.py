# tests/conftest.py

import logging
import os

import pytest

# Must be set before the app module builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_STARTUP_MAX_RETRIES"] = "1"

from customer_service.db import ensure_schema, get_db, make_engine  # noqa: E402
from customer_service.main import app  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

# Suppress noisy logs from SQLAlchemy/FastAPI/Uvicorn during tests for cleaner output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("fastapi").setLevel(logging.WARNING)
logging.getLogger("customer_service").setLevel(logging.WARNING)


# --- Pytest Fixtures ---
@pytest.fixture(scope="function")
def test_engine(tmp_path):
    """A fresh SQLite database per test, with foreign keys enforced."""
    engine = make_engine(f"sqlite:///{tmp_path / 'customers_test.db'}")
    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session_for_test(test_engine):
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine
    )
    db = TestingSessionLocal()

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    try:
        yield db
    finally:
        db.close()
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client
