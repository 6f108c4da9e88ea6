"""Unit tests for elimination bracket construction and propagation."""

import math
import random

import pytest

from torneo.engine.bracket import (
    Bracket,
    apply_walkover,
    bracket_view,
    build_elimination_bracket,
    build_seeded_bracket,
    seat_team,
)
from torneo.engine.models import Fixture
from torneo.exceptions import ConflictError, PreconditionError, ValidationError


def decide(bracket, fixture, winner_id):
    """Mark a fixture completed and push its winner forward."""
    fixture.status = "completed"
    fixture.winner_id = winner_id
    return bracket.advance_winner(fixture)


class TestRandomDraw:
    """Tests for build_elimination_bracket."""

    def test_five_teams(self, rng):
        bracket = build_elimination_bracket(1, [1, 2, 3, 4, 5], rng=rng)

        assert [len(r) for r in bracket.rounds] == [3, 2, 1]
        assert [r[0].round for r in bracket.rounds] == ["quarter-finals", "semi-finals", "final"]

        bye = bracket.fixture_at(1, 2)
        assert bye.team2_id is None
        assert bye.status == "walkover"
        assert bye.winner_id == bye.team1_id

        # The lone feeder of R2#1 walks straight through to the final
        lone = bracket.fixture_at(2, 1)
        assert lone.team1_id == bye.team1_id
        assert lone.status == "walkover"
        assert bracket.final.team1_id == bye.team1_id
        assert bracket.final.team2_id is None
        assert bracket.final.status == "pending"

    def test_every_entrant_appears_once_in_round_one(self, rng):
        bracket = build_elimination_bracket(1, list(range(1, 12)), rng=rng)
        seated = [t for f in bracket.rounds[0] for t in f.teams if t is not None]
        assert sorted(seated) == list(range(1, 12))
        assert bracket.total_rounds == 4

    def test_two_teams_is_just_a_final(self, rng):
        bracket = build_elimination_bracket(1, [7, 8], rng=rng)
        assert bracket.total_rounds == 1
        assert bracket.final.round == "final"
        assert set(bracket.final.teams) == {7, 8}
        assert bracket.final.status == "scheduled"

    def test_same_seed_same_draw(self):
        first = build_elimination_bracket(1, list(range(1, 9)), rng=random.Random(3))
        second = build_elimination_bracket(1, list(range(1, 9)), rng=random.Random(3))
        assert [f.teams for f in first.rounds[0]] == [f.teams for f in second.rounds[0]]

    def test_best_of_applies_to_every_fixture(self, rng):
        bracket = build_elimination_bracket(1, [1, 2, 3, 4], best_of=3, rng=rng, third_place=True)
        assert all(f.best_of == 3 for f in bracket.fixtures())

    @pytest.mark.parametrize(
        "team_ids, best_of",
        [([1], 1), ([], 1), ([1, 1, 2], 1), ([1, 2], 0)],
    )
    def test_invalid_entrants(self, team_ids, best_of):
        with pytest.raises(ValidationError):
            build_elimination_bracket(1, team_ids, best_of=best_of)


class TestSeededDraw:
    """Tests for build_seeded_bracket."""

    def test_six_qualifiers_give_top_seeds_byes(self):
        bracket = build_seeded_bracket(1, [10, 20, 30, 40, 50, 60])

        assert [f.teams for f in bracket.rounds[0]] == [
            (10, None), (40, 50), (20, None), (30, 60),
        ]
        assert [f.status for f in bracket.rounds[0]] == [
            "walkover", "scheduled", "walkover", "scheduled",
        ]
        assert bracket.fixture_at(2, 0).team1_id == 10
        assert bracket.fixture_at(2, 1).team1_id == 20

    def test_full_bracket_with_third_place(self):
        bracket = build_seeded_bracket(1, [1, 2, 3, 4], third_place=True)
        semi_a, semi_b = bracket.rounds[0]
        assert semi_a.teams == (1, 4)
        assert semi_b.teams == (2, 3)

        third = bracket.third_place
        assert third.bracket_round == 2 and third.bracket_position == 1

        decide(bracket, semi_a, 1)
        changed = decide(bracket, semi_b, 3)
        assert bracket.final in changed and third in changed
        assert bracket.final.teams == (1, 3)
        assert bracket.final.status == "scheduled"
        assert third.teams == (4, 2)
        assert third.status == "scheduled"

        decide(bracket, bracket.final, 3)
        decide(bracket, third, 2)
        view = bracket_view(bracket)
        assert view.is_complete
        assert view.placements() == {1: 3, 2: 1, 3: 2}
        assert view.remaining == []


def bye_fixtures(bracket):
    return [
        f for f in bracket.rounds[0]
        if f.status == "walkover" and (f.team1_id is None or f.team2_id is None)
    ]


class TestBracketShape:
    """Round counts and bye seating across entrant counts."""

    @pytest.mark.parametrize("entrants", range(2, 18))
    def test_random_draw(self, entrants, rng):
        bracket = build_elimination_bracket(1, list(range(1, entrants + 1)), rng=rng)

        assert bracket.total_rounds == math.ceil(math.log2(entrants))
        assert len(bracket.rounds) == bracket.total_rounds
        assert len(bye_fixtures(bracket)) == entrants % 2
        for bye in bye_fixtures(bracket):
            assert bye.winner_id is not None
            successor = bracket.successor(bye)
            assert successor.bracket_round == 2
            assert bye.winner_id in successor.teams

    @pytest.mark.parametrize("entrants", range(2, 18))
    def test_seeded_draw(self, entrants):
        seeds = list(range(1, entrants + 1))
        bracket = build_seeded_bracket(1, seeds)
        rounds = math.ceil(math.log2(entrants))

        assert bracket.total_rounds == rounds
        byes = bye_fixtures(bracket)
        assert len(byes) == 2 ** rounds - entrants
        # Byes go to the top seeds
        assert sorted(bye.winner_id for bye in byes) == seeds[:len(byes)]
        for bye in byes:
            successor = bracket.successor(bye)
            assert successor.bracket_round == 2
            assert bye.winner_id in successor.teams


class TestPropagation:
    """Winner seating and its edge cases."""

    def test_third_place_walkover_when_a_semi_was_a_bye(self, rng):
        bracket = build_elimination_bracket(1, [1, 2, 3], rng=rng, third_place=True)
        played, bye = bracket.rounds[0]
        assert bye.status == "walkover"
        assert bracket.third_place.status == "pending"

        winner, loser = played.team1_id, played.team2_id
        decide(bracket, played, winner)

        third = bracket.third_place
        assert third.team1_id == loser
        assert third.status == "walkover"
        assert third.winner_id == loser
        assert set(bracket.final.teams) == {winner, bye.team1_id}

    def test_advance_requires_a_winner(self):
        bracket = build_seeded_bracket(1, [1, 2, 3, 4])
        with pytest.raises(PreconditionError):
            bracket.advance_winner(bracket.rounds[0][0])

    def test_successor_and_feeders(self):
        bracket = build_seeded_bracket(1, list(range(1, 9)))
        fixture = bracket.fixture_at(1, 3)
        successor = bracket.successor(fixture)
        assert (successor.bracket_round, successor.bracket_position) == (2, 1)
        assert fixture in bracket.feeders(successor)
        assert bracket.successor(bracket.final) is None
        assert bracket.feeders(bracket.rounds[0][0]) == []


class TestSeatTeam:
    """Tests for seat_team and apply_walkover."""

    def test_fills_team1_then_team2(self):
        fixture = Fixture(tournament_id=1, round="final", status="pending")
        seat_team(fixture, 5)
        assert fixture.teams == (5, None)
        assert fixture.status == "pending"
        seat_team(fixture, 6)
        assert fixture.teams == (5, 6)
        assert fixture.status == "scheduled"

    def test_same_team_twice_conflicts(self):
        fixture = Fixture(tournament_id=1, round="final", team1_id=5, status="pending")
        with pytest.raises(ConflictError):
            seat_team(fixture, 5)

    def test_full_fixture_conflicts(self):
        fixture = Fixture(tournament_id=1, round="final", team1_id=5, team2_id=6)
        with pytest.raises(ConflictError):
            seat_team(fixture, 7)

    def test_walkover_winner_must_be_seated(self):
        fixture = Fixture(tournament_id=1, round="final", team1_id=5, team2_id=6)
        with pytest.raises(ValidationError):
            apply_walkover(fixture, 9)
        apply_walkover(fixture, 6)
        assert fixture.status == "walkover"
        assert fixture.decided_by == "walkover"
        assert fixture.loser_id == 5


class TestFromFixtures:
    """Rebuilding a bracket from stored fixtures."""

    def test_round_trip(self):
        original = build_seeded_bracket(1, [1, 2, 3, 4, 5], third_place=True)
        fixtures = list(reversed(original.fixtures()))

        rebuilt = Bracket.from_fixtures(1, fixtures)
        assert [[f.teams for f in r] for r in rebuilt.rounds] == [
            [f.teams for f in r] for r in original.rounds
        ]
        assert rebuilt.third_place is original.third_place

    def test_ignores_group_fixtures(self):
        fixtures = build_seeded_bracket(1, [1, 2]).fixtures()
        fixtures.append(Fixture(tournament_id=1, round="group", group="A", team1_id=1, team2_id=2))
        assert Bracket.from_fixtures(1, fixtures).total_rounds == 1

    def test_no_bracket(self):
        with pytest.raises(PreconditionError):
            Bracket.from_fixtures(1, [])

    def test_gap_in_positions(self):
        fixtures = build_seeded_bracket(1, [1, 2, 3, 4]).fixtures()
        fixtures[1].bracket_position = 5
        with pytest.raises(ValidationError):
            Bracket.from_fixtures(1, fixtures)


def test_bracket_view_in_progress(rng):
    bracket = build_elimination_bracket(1, [1, 2, 3, 4], rng=rng)
    view = bracket_view(bracket)

    assert not view.is_complete
    assert view.placements() == {}
    assert [name for name, _ in view.rounds] == ["semi-finals", "final"]
    assert len(view.remaining) == 3
