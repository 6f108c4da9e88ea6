"""
Elimination bracket services.

Two entry points create a bracket:

1. generate_elimination_bracket: 'elimination' tournaments, random draw of
   every registered team.
2. generate_playoff_bracket: 'group-stage' tournaments, seeded from the
   group qualifiers once every group fixture is settled.

Byes (and any single-feeder walkovers they cascade into) are already
resolved in the stored bracket.
"""

import logging
import random
from time import perf_counter
from typing import Optional

from sqlalchemy.orm import Session

from torneo.engine.bracket import (
    Bracket,
    BracketView,
    bracket_view,
    build_elimination_bracket,
    build_seeded_bracket,
)
from torneo.engine.standings import calculate_group_standings, select_qualifiers
from torneo.exceptions import ConflictError, PreconditionError
from torneo.locks import tournament_lock
from torneo.services.common import (
    GenerationResult,
    GenerationStats,
    default_rng,
    load_bracket_fixtures,
    load_group_fixtures,
    load_teams,
    load_tournament,
    require_format,
    save_new_fixtures,
)
from torneo.services.group_stage import group_stage_progress

logger = logging.getLogger(__name__)


def generate_elimination_bracket(
    session: Session,
    tournament_id: int,
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """
    Draw a single-elimination bracket from every registered team.

    Raises:
        NotFoundError: unknown tournament
        PreconditionError: tournament is not an elimination tournament
        ConflictError: a bracket already exists
        ValidationError: fewer than two teams
    """
    with tournament_lock(session, tournament_id):
        started = perf_counter()
        tournament = load_tournament(session, tournament_id)
        require_format(tournament, "elimination")
        _ensure_no_bracket(session, tournament_id)

        team_ids = [team.id for team in load_teams(session, tournament_id)]
        bracket = build_elimination_bracket(
            tournament_id,
            team_ids,
            best_of=tournament.best_of_matches,
            rng=default_rng(rng),
            third_place=tournament.third_place_match,
        )
        return _save_bracket(session, bracket, len(team_ids), started)


def generate_playoff_bracket(session: Session, tournament_id: int) -> GenerationResult:
    """
    Seed the playoff bracket from the group stage qualifiers.

    Group winners are seeded first, then runners-up, and so on.

    Raises:
        NotFoundError: unknown tournament
        PreconditionError: not a group-stage tournament, or group stage unfinished
        ConflictError: a bracket already exists
        ValidationError: fewer than two qualifiers
    """
    with tournament_lock(session, tournament_id):
        started = perf_counter()
        tournament = load_tournament(session, tournament_id)
        require_format(tournament, "group-stage")
        _ensure_no_bracket(session, tournament_id)

        progress = group_stage_progress(session, tournament_id)
        if not progress.is_complete:
            raise PreconditionError(
                f"Group stage of tournament {tournament_id} is not complete "
                f"({progress.open} of {progress.total} fixtures still open)"
            )

        rules = tournament.rules()
        fixtures = [row.to_engine() for row in load_group_fixtures(session, tournament_id)]
        standings = calculate_group_standings(fixtures, rules)
        qualifiers = select_qualifiers(
            standings, tournament.group_stage_settings().teams_advancing_per_group, rules
        )
        logger.info("Tournament %d playoff qualifiers (by seed): %s", tournament_id, qualifiers)

        bracket = build_seeded_bracket(
            tournament_id,
            qualifiers,
            best_of=tournament.best_of_matches,
            third_place=tournament.third_place_match,
        )
        return _save_bracket(session, bracket, len(qualifiers), started)


def compute_bracket_view(session: Session, tournament_id: int) -> BracketView:
    """
    Current bracket state with champion and placements when decided.

    Raises:
        NotFoundError: unknown tournament
        PreconditionError: no bracket generated yet
    """
    load_tournament(session, tournament_id)
    rows = load_bracket_fixtures(session, tournament_id)
    return bracket_view(Bracket.from_fixtures(tournament_id, [row.to_engine() for row in rows]))


def _ensure_no_bracket(session: Session, tournament_id: int) -> None:
    if load_bracket_fixtures(session, tournament_id):
        raise ConflictError(f"Tournament {tournament_id} already has an elimination bracket")


def _save_bracket(session: Session, bracket: Bracket, entrants: int, started: float) -> GenerationResult:
    fixtures = save_new_fixtures(session, bracket.fixtures())
    stats = GenerationStats(
        teams=entrants,
        fixtures_created=len(fixtures),
        rounds=bracket.total_rounds,
        byes=sum(
            1 for f in bracket.rounds[0]
            if f.status == "walkover" and (f.team1_id is None or f.team2_id is None)
        ),
    )
    stats.elapsed_seconds = perf_counter() - started
    logger.info(
        "Saved bracket for tournament %d: %d fixtures over %d rounds (%d byes)",
        bracket.tournament_id, stats.fixtures_created, stats.rounds, stats.byes,
    )
    return GenerationResult(fixtures=fixtures, stats=stats)
