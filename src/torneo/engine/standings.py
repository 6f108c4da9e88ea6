"""
Group standings and playoff qualification.

Standings are a derived view: they are recomputed from fixture state
every time and never stored.

Ranking cascade (all descending):
1. Points
2. Goal difference (goal-based) / set difference (set-based)
3. Goals scored / sets won
4. Result of the direct fixture between the two tied teams, if it has
   been completed

Step 4 looks at a single head-to-head fixture for the pair being compared
(the first one found in fixture order). Ties between three or more teams
are therefore settled pairwise rather than by a mini-table, and the
outcome can depend on the order in which teams are compared.
"""

import logging
from functools import cmp_to_key
from itertools import groupby
from typing import Iterable, Optional, Sequence, Union

from torneo.engine.models import Fixture, StandingRow
from torneo.match_statuses import GROUP_ROUND
from torneo.rules.strategy import GoalBased, SetBased

logger = logging.getLogger(__name__)

Rules = Union[GoalBased, SetBased]


def calculate_standings(
    fixtures: Sequence[Fixture],
    rules: Rules,
    group: Optional[str] = None,
) -> list[StandingRow]:
    """
    Fold a group's fixtures into a ranked table.

    Every team that appears in ``fixtures`` gets a row, even if none of
    its fixtures have been played. Only 'completed' fixtures count.

    Args:
        fixtures: All fixtures of one group (any status)
        rules: The tournament's sport rules
        group: Group label copied onto each row

    Returns:
        Rows sorted best-first with ``rank`` set (1-indexed)

    Raises:
        ValidationError: if a set-based fixture records a draw
    """
    rows: dict[int, StandingRow] = {}
    for fixture in fixtures:
        for team_id in fixture.teams:
            if team_id is not None and team_id not in rows:
                rows[team_id] = StandingRow(team_id=team_id, group=group)

    for fixture in fixtures:
        if fixture.status != "completed" or not fixture.has_both_teams:
            continue
        counted = rules.apply_result(rows[fixture.team1_id], rows[fixture.team2_id], fixture)
        if not counted:
            logger.warning("Skipping completed fixture without a result: %r", fixture)

    ranked = sorted(rows.values(), key=cmp_to_key(_comparator(fixtures, rules)))
    for rank, row in enumerate(ranked, start=1):
        row.rank = rank
    return ranked


def calculate_group_standings(
    fixtures: Iterable[Fixture],
    rules: Rules,
) -> dict[str, list[StandingRow]]:
    """Standings for every group, keyed by group label in label order."""
    group_fixtures = sorted(
        (f for f in fixtures if f.round == GROUP_ROUND and f.group),
        key=lambda f: f.group,
    )
    return {
        label: calculate_standings(list(members), rules, group=label)
        for label, members in groupby(group_fixtures, key=lambda f: f.group)
    }


def select_qualifiers(
    standings: dict[str, list[StandingRow]],
    teams_advancing_per_group: int,
    rules: Rules,
) -> list[int]:
    """
    Seeded list of team ids advancing from the group stage.

    All group winners come first, then all runners-up, and so on. Teams
    sharing a finishing position are ordered by the rule's ranking key
    (points, difference, scored) and then by group label.

    Args:
        standings: Output of calculate_group_standings
        teams_advancing_per_group: How many teams leave each group
        rules: Sport rules (for cross-group ordering)

    Returns:
        Team ids, best seed first
    """
    seeded: list[int] = []
    for position in range(teams_advancing_per_group):
        tier = [
            (label, rows[position])
            for label, rows in sorted(standings.items())
            if position < len(rows)
        ]
        tier.sort(key=lambda item: _negated(rules.ranking_key(item[1])) + (item[0],))
        seeded.extend(row.team_id for _, row in tier)
    return seeded


def find_direct_fixture(fixtures: Sequence[Fixture], team_a: int, team_b: int) -> Optional[Fixture]:
    """First fixture between two teams, in the order given."""
    for fixture in fixtures:
        if fixture.involves(team_a) and fixture.involves(team_b):
            return fixture
    return None


def _comparator(fixtures: Sequence[Fixture], rules: Rules):
    def compare(a: StandingRow, b: StandingRow) -> int:
        key_a, key_b = rules.ranking_key(a), rules.ranking_key(b)
        if key_a != key_b:
            return -1 if key_a > key_b else 1

        direct = find_direct_fixture(fixtures, a.team_id, b.team_id)
        if direct is None or direct.status != "completed":
            return 0
        scores = rules.fixture_scores(direct)
        if scores is None:
            return 0
        score1, score2 = scores
        if direct.team1_id == a.team_id:
            return score2 - score1
        return score1 - score2

    return compare


def _negated(key: tuple[int, ...]) -> tuple[int, ...]:
    return tuple(-value for value in key)
