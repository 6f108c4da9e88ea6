"""
Database module for Torneo.

Provides SQLAlchemy ORM models and session management.

Usage:
    from torneo.db import get_session, Tournament, Fixture

    with get_session() as session:
        fixtures = session.query(Fixture).filter_by(tournament_id=1).all()
"""

from torneo.db.models import (
    Base,
    Fixture,
    Team,
    Tournament,
)
from torneo.db.session import get_session, get_engine, SessionLocal

__all__ = [
    # Base
    "Base",
    # Models
    "Tournament",
    "Team",
    "Fixture",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
