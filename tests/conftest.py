"""
Shared test fixtures: throwaway SQLite database, test client, seeded catalog.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Point the app at the test database before importing app modules
TEST_DATABASE_URL = "sqlite:///./test_courtquote.db"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["RUN_MIGRATIONS"] = "false"

from courtquote.database import Base, get_db
from courtquote.main import app
from courtquote.rate_catalog import RateCatalog


engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    """For tests that need several independent sessions (e.g. concurrent workers)."""
    return TestingSessionLocal


@pytest.fixture
def seeded_db(db):
    """Session over a catalog populated with the default rates."""
    RateCatalog(db).ensure_defaults()
    return db
