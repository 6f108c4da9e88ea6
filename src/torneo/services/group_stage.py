"""
Group stage services: allocation, fixture generation and the read
models built on group fixtures (standings, matchdays, progress).

Usage:
    from torneo.services.group_stage import create_group_stage, compute_standings

    with get_session() as session:
        result = create_group_stage(session, tournament_id)
        print(result.stats.summary())

    with get_session() as session:
        for label, rows in compute_standings(session, tournament_id).items():
            ...
"""

import logging
import random
from dataclasses import dataclass
from time import perf_counter
from typing import Optional

from sqlalchemy.orm import Session

from torneo.config import settings
from torneo.db.models import Tournament
from torneo.engine.groups import GroupAllocation, allocate_groups
from torneo.engine.models import Fixture, StandingRow, Team
from torneo.engine.schedule import schedule_group_stage
from torneo.engine.standings import calculate_group_standings
from torneo.exceptions import ConflictError, PreconditionError, ValidationError
from torneo.locks import tournament_lock
from torneo.match_statuses import get_status_group
from torneo.services.common import (
    GenerationResult,
    GenerationStats,
    default_rng,
    flush,
    load_group_fixtures,
    load_teams,
    load_tournament,
    require_format,
    save_new_fixtures,
)

logger = logging.getLogger(__name__)


@dataclass
class GroupStageProgress:
    """How far the group stage has been played."""
    total: int = 0
    decided: int = 0
    cancelled: int = 0
    open: int = 0

    @property
    def is_complete(self) -> bool:
        """Every group fixture has reached a terminal status."""
        return self.total > 0 and self.open == 0

    @property
    def percent_complete(self) -> float:
        if not self.total:
            return 0.0
        return 100.0 * (self.total - self.open) / self.total


def generate_groups(
    session: Session,
    tournament_id: int,
    rng: Optional[random.Random] = None,
) -> GroupAllocation:
    """
    Allocate the tournament's teams into groups and store the labels.

    Raises:
        NotFoundError: unknown tournament
        PreconditionError: tournament is not a group-stage tournament
        ConflictError: groups were already allocated
        ValidationError: no teams registered
    """
    with tournament_lock(session, tournament_id):
        tournament = load_tournament(session, tournament_id)
        return _generate_groups(session, tournament, default_rng(rng))


def generate_group_fixtures(session: Session, tournament_id: int) -> GenerationResult:
    """
    Create every round-robin fixture for the allocated groups.

    Raises:
        NotFoundError: unknown tournament
        PreconditionError: wrong format, or groups not allocated yet
        ConflictError: group fixtures already exist
    """
    with tournament_lock(session, tournament_id):
        tournament = load_tournament(session, tournament_id)
        return _generate_group_fixtures(session, tournament)


def create_group_stage(
    session: Session,
    tournament_id: int,
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """Allocate groups and generate their fixtures in one step."""
    with tournament_lock(session, tournament_id):
        tournament = load_tournament(session, tournament_id)
        _generate_groups(session, tournament, default_rng(rng))
        return _generate_group_fixtures(session, tournament)


def compute_standings(session: Session, tournament_id: int) -> dict[str, list[StandingRow]]:
    """
    Ranked standings for every group, computed from fixture state.

    Raises:
        NotFoundError: unknown tournament
        PreconditionError: tournament is not a group-stage tournament
    """
    tournament = load_tournament(session, tournament_id)
    require_format(tournament, "group-stage")
    fixtures = [row.to_engine() for row in load_group_fixtures(session, tournament_id)]
    return calculate_group_standings(fixtures, tournament.rules())


def fixtures_by_matchday(
    session: Session,
    tournament_id: int,
    matchday: Optional[int] = None,
) -> dict[int, list[Fixture]]:
    """
    Group fixtures keyed by matchday, across all groups.

    With ``matchday`` set, the result holds only that key (an empty list
    when nothing is scheduled on it).

    Raises:
        NotFoundError: unknown tournament
        PreconditionError: tournament is not a group-stage tournament
        ValidationError: matchday is below 1
    """
    if matchday is not None and matchday < 1:
        raise ValidationError(f"Matchday must be at least 1, got {matchday}")

    tournament = load_tournament(session, tournament_id)
    require_format(tournament, "group-stage")

    by_matchday: dict[int, list[Fixture]] = {} if matchday is None else {matchday: []}
    for row in load_group_fixtures(session, tournament_id):
        if matchday is not None and row.matchday != matchday:
            continue
        by_matchday.setdefault(row.matchday, []).append(row.to_engine())
    return dict(sorted(by_matchday.items()))


def group_stage_progress(session: Session, tournament_id: int) -> GroupStageProgress:
    """Count group fixtures by outcome; ``is_complete`` gates the playoff."""
    tournament = load_tournament(session, tournament_id)
    require_format(tournament, "group-stage")

    decided = get_status_group("decided")
    progress = GroupStageProgress()
    for row in load_group_fixtures(session, tournament_id):
        progress.total += 1
        if row.status in decided:
            progress.decided += 1
        elif row.status == "cancelled":
            progress.cancelled += 1
        else:
            progress.open += 1
    return progress


def _generate_groups(session: Session, tournament: Tournament, rng: random.Random) -> GroupAllocation:
    require_format(tournament, "group-stage")
    rows = load_teams(session, tournament.id)
    if any(row.group_label for row in rows):
        raise ConflictError(f"Groups for tournament {tournament.id} have already been generated")

    group_settings = tournament.group_stage_settings()
    allocation = allocate_groups([row.to_engine() for row in rows], group_settings.teams_per_group, rng)
    rows_by_id = {row.id: row for row in rows}
    for label, members in allocation.groups.items():
        for team in members:
            rows_by_id[team.id].group_label = label
    flush(session)
    return allocation


def _generate_group_fixtures(session: Session, tournament: Tournament) -> GenerationResult:
    require_format(tournament, "group-stage")
    started = perf_counter()

    if load_group_fixtures(session, tournament.id):
        raise ConflictError(f"Group fixtures for tournament {tournament.id} already exist")

    rows = load_teams(session, tournament.id)
    if not rows or any(row.group_label is None for row in rows):
        raise PreconditionError(f"Groups for tournament {tournament.id} have not been generated")

    group_settings = tournament.group_stage_settings()
    groups: dict[str, list[Team]] = {}
    for row in rows:
        groups.setdefault(row.group_label, []).append(row.to_engine())

    fixtures = schedule_group_stage(
        tournament.id,
        groups,
        mode=group_settings.matches_per_team_in_group,
        strategy=settings.matchday_strategy,
    )
    save_new_fixtures(session, fixtures)

    stats = GenerationStats(
        teams=len(rows),
        groups=len(groups),
        fixtures_created=len(fixtures),
        matchdays=max((f.matchday or 0 for f in fixtures), default=0),
    )
    if any(len(members) > group_settings.teams_per_group for members in groups.values()):
        stats.warnings.append("Groups are larger than teams_per_group (group count capped)")
    stats.elapsed_seconds = perf_counter() - started
    logger.info(
        "Generated %d group fixtures for tournament %d across %d groups",
        stats.fixtures_created, tournament.id, stats.groups,
    )
    return GenerationResult(fixtures=fixtures, stats=stats)
