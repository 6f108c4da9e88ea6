"""
Shared plumbing for the trigger services: loading rows, flushing with
error translation, random sources and generation statistics.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from torneo.config import settings
from torneo.db.models import Fixture, Team, Tournament
from torneo.engine import models as engine
from torneo.exceptions import ConflictError, NotFoundError, PersistenceError, PreconditionError
from torneo.match_statuses import GROUP_ROUND

logger = logging.getLogger(__name__)


@dataclass
class GenerationStats:
    """Statistics from a generation run."""
    teams: int = 0
    groups: int = 0
    fixtures_created: int = 0
    matchdays: int = 0
    rounds: int = 0
    byes: int = 0
    elapsed_seconds: float = 0.0
    warnings: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary of the generation run."""
        lines = [
            "Generation complete:",
            f"  Teams:            {self.teams}",
            f"  Groups:           {self.groups}",
            f"  Fixtures created: {self.fixtures_created}",
            f"  Matchdays:        {self.matchdays}",
            f"  Bracket rounds:   {self.rounds}",
            f"  Byes:             {self.byes}",
            f"  Elapsed:          {self.elapsed_seconds:.2f}s",
        ]
        if self.warnings:
            lines.append(f"  Warnings: {len(self.warnings)}")
            for warning in self.warnings[:5]:
                lines.append(f"    - {warning}")
        return "\n".join(lines)


@dataclass
class GenerationResult:
    """Fixtures created by a generation service, plus run statistics."""
    fixtures: list[engine.Fixture]
    stats: GenerationStats


def default_rng(rng: Optional[random.Random] = None) -> random.Random:
    """The caller's random source, or one seeded from settings.random_seed."""
    return rng if rng is not None else random.Random(settings.random_seed)


def flush(session: Session) -> None:
    """
    Flush pending changes, translating database failures.

    Raises:
        ConflictError: a versioned fixture row was changed concurrently, or
            a unique constraint (e.g. a bracket slot) was already taken
        PersistenceError: any other SQLAlchemy failure
    """
    try:
        session.flush()
    except StaleDataError as e:
        raise ConflictError("Fixture was modified concurrently; reload and retry") from e
    except IntegrityError as e:
        logger.warning("Flush violated a constraint: %s", e.orig)
        raise ConflictError("Rows already exist for this tournament; reload and retry") from e
    except SQLAlchemyError as e:
        logger.error("Database flush failed: %s", e)
        raise PersistenceError(f"Database error: {e.__class__.__name__}") from e


def load_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def load_fixture(session: Session, fixture_id: int) -> Fixture:
    fixture = session.get(Fixture, fixture_id)
    if fixture is None:
        raise NotFoundError(f"Fixture {fixture_id} not found")
    return fixture


def require_format(tournament: Tournament, expected: str) -> None:
    if tournament.format != expected:
        raise PreconditionError(
            f"Tournament {tournament.id} uses the '{tournament.format}' format, "
            f"this operation needs '{expected}'"
        )


def load_teams(session: Session, tournament_id: int) -> list[Team]:
    return list(
        session.scalars(
            select(Team).where(Team.tournament_id == tournament_id).order_by(Team.id)
        )
    )


def load_group_fixtures(session: Session, tournament_id: int) -> list[Fixture]:
    return list(
        session.scalars(
            select(Fixture)
            .where(Fixture.tournament_id == tournament_id, Fixture.round == GROUP_ROUND)
            .order_by(Fixture.group_label, Fixture.matchday, Fixture.id)
        )
    )


def load_bracket_fixtures(session: Session, tournament_id: int) -> list[Fixture]:
    return list(
        session.scalars(
            select(Fixture)
            .where(Fixture.tournament_id == tournament_id, Fixture.round != GROUP_ROUND)
            .order_by(Fixture.bracket_round, Fixture.bracket_position, Fixture.id)
        )
    )


def save_new_fixtures(session: Session, fixtures: list[engine.Fixture]) -> list[engine.Fixture]:
    """Insert engine fixtures and return them with database ids assigned."""
    rows = [Fixture.from_engine(fixture) for fixture in fixtures]
    session.add_all(rows)
    flush(session)
    for row, fixture in zip(rows, fixtures):
        fixture.id = row.id
    return fixtures
