"""
Database session management for Torneo.

Provides the SQLAlchemy engine and session factory, configured from
torneo.config.settings.

Usage:
    from torneo.db import get_session

    with get_session() as session:
        tournament = session.get(Tournament, 1)
        create_group_stage(session, tournament.id)
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from torneo.config import settings


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create a SQLAlchemy engine.

    PostgreSQL (and other server databases) get a connection pool with
    pre-ping; SQLite gets foreign-key enforcement switched on. SQL is only
    echoed at DEBUG log level.
    """
    url = database_url or settings.database_url
    echo = settings.log_level == "DEBUG"

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=echo)

        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            """SQLite leaves foreign keys off unless asked per connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # Verify connection is alive before using
        echo=echo,
    )


_engine: Optional[Engine] = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory - creates new sessions bound to our engine
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,  # Services flush explicitly
    bind=_get_engine(),
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    Services only flush, so this is where their work becomes durable.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
