"""
Round-robin fixture generation and matchday assignment.

Every pair of teams in a group meets once (single round-robin) or twice
with home/away swapped (double). Fixtures are then packed into matchdays
so that no team plays twice on the same matchday.

Two packing strategies are available:

- greedy: scan the remaining fixtures in order and put each one on the
  current matchday if both its teams are still free; open a new matchday
  when nothing else fits. Simple, but can use more matchdays than needed.
- circle: the Berger circle method. Fix one team, rotate the rest, and
  pair opposite seats each round. Gives k-1 matchdays per leg for even k
  and k for odd k (one team rests each matchday).
"""

import logging
from typing import Iterable, Literal, Optional, Sequence

from torneo.engine.models import Fixture, Team
from torneo.exceptions import ValidationError
from torneo.match_statuses import GROUP_ROUND

logger = logging.getLogger(__name__)

RoundRobinMode = Literal["single", "double"]
MatchdayStrategy = Literal["greedy", "circle"]

ROUND_ROBIN_MODES: tuple[str, ...] = ("single", "double")
MATCHDAY_STRATEGIES: tuple[str, ...] = ("greedy", "circle")


def expected_fixture_count(group_size: int, mode: RoundRobinMode = "single") -> int:
    """
    Number of fixtures a group of ``group_size`` produces.

    Examples:
        >>> expected_fixture_count(4)
        6
        >>> expected_fixture_count(4, "double")
        12
    """
    pairs = group_size * (group_size - 1) // 2
    return pairs * 2 if mode == "double" else pairs


def round_robin_pairs(team_ids: Sequence[int], mode: RoundRobinMode = "single") -> list[tuple[int, int]]:
    """
    All (team1, team2) pairings for a group, first leg then return leg.

    Raises:
        ValidationError: for an unknown mode
    """
    _check_mode(mode)
    first_leg = [
        (team_ids[i], team_ids[j])
        for i in range(len(team_ids))
        for j in range(i + 1, len(team_ids))
    ]
    if mode == "double":
        return first_leg + [(away, home) for home, away in first_leg]
    return first_leg


def assign_matchdays(fixtures: Iterable[Fixture]) -> list[list[Fixture]]:
    """
    Greedy first-fit packing of one group's fixtures into matchdays.

    Sets ``matchday`` (1-indexed) on every fixture and returns the
    matchdays in order.
    """
    remaining = list(fixtures)
    matchdays: list[list[Fixture]] = []

    while remaining:
        busy: set[int] = set()
        today: list[Fixture] = []
        deferred: list[Fixture] = []
        for fixture in remaining:
            if fixture.team1_id in busy or fixture.team2_id in busy:
                deferred.append(fixture)
                continue
            today.append(fixture)
            busy.update(fixture.teams)

        for fixture in today:
            fixture.matchday = len(matchdays) + 1
        matchdays.append(today)
        remaining = deferred

    return matchdays


def circle_rounds(team_ids: Sequence[int]) -> list[list[tuple[int, int]]]:
    """
    Pairings for one leg using the circle method.

    Each returned round lists (team1, team2) pairs oriented by roster
    order, so the set of pairs matches round_robin_pairs(..., "single").
    """
    order = {team_id: i for i, team_id in enumerate(team_ids)}
    seats: list[Optional[int]] = list(team_ids)
    if len(seats) % 2:
        seats.append(None)  # bye seat

    size = len(seats)
    rounds: list[list[tuple[int, int]]] = []
    for _ in range(size - 1):
        pairs = []
        for i in range(size // 2):
            a, b = seats[i], seats[size - 1 - i]
            if a is None or b is None:
                continue
            pairs.append((a, b) if order[a] < order[b] else (b, a))
        if pairs:
            rounds.append(pairs)
        seats = [seats[0], seats[-1]] + seats[1:-1]
    return rounds


def schedule_group(
    tournament_id: int,
    group: str,
    teams: Sequence[Team],
    mode: RoundRobinMode = "single",
    strategy: MatchdayStrategy = "greedy",
) -> list[Fixture]:
    """
    Generate every fixture for one group with matchdays assigned.

    Raises:
        ValidationError: for an unknown mode or strategy
    """
    _check_mode(mode)
    if strategy not in MATCHDAY_STRATEGIES:
        raise ValidationError(f"Unknown matchday strategy: {strategy!r}")

    team_ids = [team.id for team in teams]

    if strategy == "greedy":
        fixtures = [
            _group_fixture(tournament_id, group, home, away)
            for home, away in round_robin_pairs(team_ids, mode)
        ]
        assign_matchdays(fixtures)
        return fixtures

    legs = circle_rounds(team_ids)
    fixtures = []
    for day, pairs in enumerate(legs, start=1):
        for home, away in pairs:
            fixtures.append(_group_fixture(tournament_id, group, home, away, day))
    if mode == "double":
        offset = len(legs)
        for day, pairs in enumerate(legs, start=1):
            for home, away in pairs:
                fixtures.append(_group_fixture(tournament_id, group, away, home, offset + day))
    return fixtures


def schedule_group_stage(
    tournament_id: int,
    groups: dict[str, Sequence[Team]],
    mode: RoundRobinMode = "single",
    strategy: MatchdayStrategy = "greedy",
) -> list[Fixture]:
    """Generate the fixtures of every group, in group-label order."""
    fixtures: list[Fixture] = []
    for label in sorted(groups):
        group_fixtures = schedule_group(tournament_id, label, groups[label], mode, strategy)
        matchdays = max((f.matchday for f in group_fixtures), default=0)
        logger.info(
            "Group %s: %d teams, %d fixtures over %d matchdays (%s, %s)",
            label, len(groups[label]), len(group_fixtures), matchdays, mode, strategy,
        )
        fixtures.extend(group_fixtures)
    return fixtures


def _group_fixture(
    tournament_id: int,
    group: str,
    team1_id: int,
    team2_id: int,
    matchday: Optional[int] = None,
) -> Fixture:
    return Fixture(
        tournament_id=tournament_id,
        round=GROUP_ROUND,
        group=group,
        team1_id=team1_id,
        team2_id=team2_id,
        matchday=matchday,
        status="scheduled",
    )


def _check_mode(mode: str) -> None:
    if mode not in ROUND_ROBIN_MODES:
        raise ValidationError(f"Unknown round-robin mode: {mode!r}")
