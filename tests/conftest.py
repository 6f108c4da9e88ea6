"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import random
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

# Allow running the suite from a checkout without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from torneo.db.models import Base
from torneo.engine.models import Team


@pytest.fixture(scope="session")
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features (advisory locks are skipped on SQLite).
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture(scope="session")
def tables(test_engine):
    """
    Create all tables for testing.

    This fixture runs once per test session.
    """
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db_session(test_engine, tables):
    """
    Create a database session for a test.

    Each test gets its own session with automatic rollback,
    ensuring tests don't affect each other.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    Session = sessionmaker(bind=connection, autoflush=False)
    session = Session()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def rng():
    """Deterministic random source for draws and coin flips."""
    return random.Random(1234)


@pytest.fixture
def make_teams():
    """Factory for engine teams with ids 1..n."""
    def _make(count: int) -> list[Team]:
        return [Team(id=i, name=f"Team {i}") for i in range(1, count + 1)]
    return _make
