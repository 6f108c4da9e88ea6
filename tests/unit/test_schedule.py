"""Unit tests for round-robin generation and matchday assignment."""

from collections import Counter

import pytest

from torneo.engine.models import Team
from torneo.engine.schedule import (
    assign_matchdays,
    circle_rounds,
    expected_fixture_count,
    round_robin_pairs,
    schedule_group,
    schedule_group_stage,
)
from torneo.exceptions import ValidationError


def _assert_no_team_twice_per_matchday(fixtures):
    by_day = {}
    for fixture in fixtures:
        by_day.setdefault(fixture.matchday, []).extend(fixture.teams)
    for day, team_ids in by_day.items():
        assert len(team_ids) == len(set(team_ids)), f"team repeated on matchday {day}"


class TestRoundRobinPairs:
    """Tests for round_robin_pairs."""

    def test_single_round_robin_four_teams(self):
        pairs = round_robin_pairs([1, 2, 3, 4])
        assert pairs == [(1, 2), (1, 3), (1, 4), (2, 3), (2, 4), (3, 4)]

    def test_double_appends_reversed_leg(self):
        pairs = round_robin_pairs([1, 2, 3], "double")
        assert pairs[:3] == [(1, 2), (1, 3), (2, 3)]
        assert pairs[3:] == [(2, 1), (3, 1), (3, 2)]

    def test_unknown_mode_raises(self):
        with pytest.raises(ValidationError):
            round_robin_pairs([1, 2], "triple")


class TestMatchdays:
    """Matchday assignment for both strategies."""

    def test_greedy_four_teams_three_matchdays(self, make_teams):
        fixtures = schedule_group(1, "A", make_teams(4))

        assert len(fixtures) == 6
        assert max(f.matchday for f in fixtures) == 3
        _assert_no_team_twice_per_matchday(fixtures)

    def test_assign_matchdays_returns_days_in_order(self, make_teams):
        fixtures = schedule_group(1, "A", make_teams(4))
        days = assign_matchdays(fixtures)
        assert [len(day) for day in days] == [2, 2, 2]
        assert [(f.team1_id, f.team2_id) for f in days[0]] == [(1, 2), (3, 4)]

    @pytest.mark.parametrize("size", [2, 3, 4, 5, 6, 7, 8])
    @pytest.mark.parametrize("mode", ["single", "double"])
    @pytest.mark.parametrize("strategy", ["greedy", "circle"])
    def test_fixture_count_and_exclusivity(self, make_teams, size, mode, strategy):
        fixtures = schedule_group(1, "A", make_teams(size), mode, strategy)

        assert len(fixtures) == expected_fixture_count(size, mode)
        _assert_no_team_twice_per_matchday(fixtures)
        pairs = Counter(frozenset(f.teams) for f in fixtures)
        assert set(pairs.values()) == {2 if mode == "double" else 1}

    def test_circle_matchday_counts(self, make_teams):
        even = schedule_group(1, "A", make_teams(6), strategy="circle")
        odd = schedule_group(1, "A", make_teams(5), strategy="circle")
        assert max(f.matchday for f in even) == 5
        assert max(f.matchday for f in odd) == 5

    def test_circle_return_leg_swaps_home_and_away(self, make_teams):
        fixtures = schedule_group(1, "A", make_teams(4), "double", "circle")
        first = {(f.team1_id, f.team2_id) for f in fixtures if f.matchday <= 3}
        second = {(f.team1_id, f.team2_id) for f in fixtures if f.matchday > 3}
        assert second == {(away, home) for home, away in first}

    def test_circle_rounds_match_single_round_robin(self):
        rounds = circle_rounds([1, 2, 3, 4, 5])
        flat = sorted(pair for day in rounds for pair in day)
        assert flat == sorted(round_robin_pairs([1, 2, 3, 4, 5]))

    def test_unknown_strategy_raises(self, make_teams):
        with pytest.raises(ValidationError):
            schedule_group(1, "A", make_teams(4), strategy="optimal")


def test_schedule_group_stage_labels_every_fixture():
    groups = {
        "B": [Team(4, "D"), Team(5, "E")],
        "A": [Team(1, "A"), Team(2, "B"), Team(3, "C")],
    }
    fixtures = schedule_group_stage(9, groups)

    assert len(fixtures) == 4
    assert [f.group for f in fixtures] == ["A", "A", "A", "B"]
    assert all(f.round == "group" and f.status == "scheduled" for f in fixtures)
    assert all(f.tournament_id == 9 for f in fixtures)
