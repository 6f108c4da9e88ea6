"""
Result entry services: series games, single results, status changes and
walkovers.

Every write runs under the tournament lock. Bracket writes rebuild the
bracket in memory, let the engine mutate it, then copy each changed
fixture back onto its row; the version column on fixtures turns a lost
race into a ConflictError at flush time.

Usage:
    with get_session() as session:
        changed = record_game_result(session, fixture_id, 2, 1)
"""

import logging
import random
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from torneo.db.models import Fixture as FixtureRow
from torneo.db.models import Tournament
from torneo.engine.bracket import Bracket
from torneo.engine.models import Fixture, SetScore
from torneo.engine.series import (
    SeriesProgression,
    award_walkover as award_engine_walkover,
    record_match_result as record_group_result,
    transition_status,
)
from torneo.exceptions import PreconditionError, ValidationError
from torneo.locks import tournament_lock
from torneo.match_statuses import ALL_FIXTURE_STATUSES, GROUP_ROUND
from torneo.services.common import (
    default_rng,
    flush,
    load_bracket_fixtures,
    load_fixture,
    load_tournament,
)

logger = logging.getLogger(__name__)


def record_game_result(
    session: Session,
    fixture_id: int,
    score_team1: Optional[int],
    score_team2: Optional[int],
    set_scores: Optional[Sequence[SetScore]] = None,
    rng: Optional[random.Random] = None,
) -> list[Fixture]:
    """
    Record one game of a bracket series.

    Returns:
        Engine fixtures changed (the fixture itself, then any successors)

    Raises:
        NotFoundError: unknown fixture
        PreconditionError: group fixture, or fixture not playable
        ValidationError: malformed scores or sets
        ConflictError: seat collision or concurrent modification
    """
    row = load_fixture(session, fixture_id)
    with tournament_lock(session, row.tournament_id):
        tournament = load_tournament(session, row.tournament_id)
        progression, rows_by_id = _progression(session, tournament, default_rng(rng))
        fixture = _bracket_fixture(progression.bracket, fixture_id)
        changed = progression.record_game(fixture, score_team1, score_team2, set_scores)
        _write_back(session, rows_by_id, changed)
        return changed


def record_match_result(
    session: Session,
    fixture_id: int,
    score_team1: Optional[int] = None,
    score_team2: Optional[int] = None,
    set_scores: Optional[Sequence[SetScore]] = None,
) -> list[Fixture]:
    """
    Record the full result of a group fixture or a best-of-1 bracket fixture.

    Raises:
        NotFoundError: unknown fixture
        PreconditionError: fixture not recordable, or a multi-game series
        ValidationError: malformed scores or sets
    """
    row = load_fixture(session, fixture_id)
    if row.round != GROUP_ROUND:
        if row.best_of > 1:
            raise PreconditionError(
                f"Fixture {fixture_id} is a best-of-{row.best_of} series; record it game by game"
            )
        return record_game_result(session, fixture_id, score_team1, score_team2, set_scores)

    with tournament_lock(session, row.tournament_id):
        tournament = load_tournament(session, row.tournament_id)
        fixture = record_group_result(
            row.to_engine(), tournament.rules(), score_team1, score_team2, set_scores
        )
        row.apply(fixture)
        flush(session)
        logger.info("Recorded result for %r", fixture)
        return [fixture]


def update_fixture_status(session: Session, fixture_id: int, status: str) -> Fixture:
    """
    Apply a manual status change (postpone, reschedule, start, cancel).

    Raises:
        NotFoundError: unknown fixture
        ValidationError: unknown status
        PreconditionError: transition not allowed
    """
    if status not in ALL_FIXTURE_STATUSES:
        raise ValidationError(f"Unknown fixture status: {status!r}")

    row = load_fixture(session, fixture_id)
    with tournament_lock(session, row.tournament_id):
        previous = row.status
        fixture = transition_status(row.to_engine(), status)
        row.apply(fixture)
        flush(session)
        logger.info("Fixture %d status %s -> %s", fixture_id, previous, fixture.status)
        return fixture


def award_walkover(session: Session, fixture_id: int, winner_id: int) -> list[Fixture]:
    """
    Award a fixture to ``winner_id`` without play.

    Bracket walkovers advance the winner like any other result.

    Raises:
        NotFoundError: unknown fixture
        PreconditionError: fixture not scheduled/postponed
        ValidationError: winner not part of the fixture
    """
    row = load_fixture(session, fixture_id)
    with tournament_lock(session, row.tournament_id):
        if row.round == GROUP_ROUND:
            changed = award_engine_walkover(row.to_engine(), winner_id)
            row.apply(changed[0])
            flush(session)
            return changed

        tournament = load_tournament(session, row.tournament_id)
        progression, rows_by_id = _progression(session, tournament, default_rng())
        fixture = _bracket_fixture(progression.bracket, fixture_id)
        changed = progression.award_walkover(fixture, winner_id)
        _write_back(session, rows_by_id, changed)
        return changed


def _progression(
    session: Session,
    tournament: Tournament,
    rng: random.Random,
) -> tuple[SeriesProgression, dict[int, FixtureRow]]:
    rows = load_bracket_fixtures(session, tournament.id)
    bracket = Bracket.from_fixtures(tournament.id, [row.to_engine() for row in rows])
    progression = SeriesProgression(bracket, tournament.rules(), rng=rng)
    return progression, {row.id: row for row in rows}


def _bracket_fixture(bracket: Bracket, fixture_id: int) -> Fixture:
    for fixture in bracket.fixtures():
        if fixture.id == fixture_id:
            return fixture
    raise PreconditionError(f"Fixture {fixture_id} is not part of the elimination bracket")


def _write_back(session: Session, rows_by_id: dict[int, FixtureRow], changed: list[Fixture]) -> None:
    for fixture in changed:
        rows_by_id[fixture.id].apply(fixture)
    flush(session)
