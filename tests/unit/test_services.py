"""
Tests for the database-backed services.

Runs against the in-memory SQLite session from conftest; each test is
rolled back afterwards. The concurrent generation tests use a file-backed
SQLite database so two threads can hold separate connections.
"""

import random
import threading
import time

import pytest
from sqlalchemy import create_engine, select, text
from sqlalchemy.orm import sessionmaker

from torneo.db.models import Base
from torneo.db.models import Fixture as FixtureRow
from torneo.db.models import Team as TeamRow
from torneo.engine.models import SetScore
from torneo.exceptions import (
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from torneo.services import (
    award_walkover,
    compute_bracket_view,
    compute_standings,
    create_group_stage,
    create_tournament,
    fixtures_by_matchday,
    generate_elimination_bracket,
    generate_group_fixtures,
    generate_groups,
    generate_playoff_bracket,
    group_stage_progress,
    record_game_result,
    record_match_result,
    register_teams,
    update_fixture_status,
)
from torneo.services.common import flush


def setup_tournament(session, team_count, format="group-stage", sport="Fútbol", **kwargs):
    tournament = create_tournament(session, "Copa Primavera", sport, format, **kwargs)
    register_teams(session, tournament.id, [f"Team {i}" for i in range(1, team_count + 1)])
    return tournament


class TestRegistration:
    """Tests for create_tournament and register_teams."""

    def test_defaults_from_settings(self, db_session):
        tournament = create_tournament(db_session, "  Liga  ", "soccer", "group-stage")
        assert tournament.id is not None
        assert tournament.name == "Liga"
        assert tournament.teams_per_group == 4
        assert tournament.best_of_matches == 1
        assert tournament.group_stage_settings().matches_per_team_in_group == "single"

    def test_rules_include_overrides(self, db_session):
        tournament = create_tournament(
            db_session, "Liga", "basketball", "elimination", custom_rules={"points_win": 2},
        )
        assert tournament.rules().points_win == 2

    @pytest.mark.parametrize(
        "name, sport, format, kwargs",
        [
            ("", "soccer", "group-stage", {}),
            ("Liga", "curling", "group-stage", {}),
            ("Liga", "soccer", "swiss", {}),
            ("Liga", "soccer", "group-stage", {"matches_per_team_in_group": "triple"}),
            ("Liga", "soccer", "group-stage", {"teams_per_group": 2, "teams_advancing_per_group": 3}),
            ("Liga", "soccer", "elimination", {"best_of": -1}),
            ("Liga", "voleibol", "group-stage", {"custom_rules": {"kind": "goal-based"}}),
        ],
    )
    def test_invalid_tournament(self, db_session, name, sport, format, kwargs):
        with pytest.raises(ValidationError):
            create_tournament(db_session, name, sport, format, **kwargs)

    def test_duplicate_team_names(self, db_session):
        tournament = setup_tournament(db_session, 2)
        with pytest.raises(ValidationError):
            register_teams(db_session, tournament.id, ["team 1"])
        with pytest.raises(ValidationError):
            register_teams(db_session, tournament.id, ["New", "NEW"])

    def test_unknown_tournament(self, db_session):
        with pytest.raises(NotFoundError):
            register_teams(db_session, 999, ["Team"])


class TestGroupStage:
    """Group allocation and fixture generation."""

    def test_five_teams_groups_of_three(self, db_session, rng):
        tournament = setup_tournament(db_session, 5, teams_per_group=3)
        result = create_group_stage(db_session, tournament.id, rng=rng)

        assert result.stats.teams == 5
        assert result.stats.groups == 2
        assert result.stats.fixtures_created == 4
        assert result.stats.matchdays == 3
        assert all(f.id is not None for f in result.fixtures)

        labels = db_session.scalars(
            select(TeamRow.group_label).where(TeamRow.tournament_id == tournament.id)
        ).all()
        assert sorted(labels) == ["A", "A", "A", "B", "B"]

    def test_two_step_generation(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, teams_per_group=4)
        with pytest.raises(PreconditionError):
            generate_group_fixtures(db_session, tournament.id)

        allocation = generate_groups(db_session, tournament.id, rng=rng)
        assert allocation.sizes == {"A": 4}
        result = generate_group_fixtures(db_session, tournament.id)
        assert result.stats.fixtures_created == 6

    def test_double_round_robin(self, db_session, rng):
        tournament = setup_tournament(db_session, 3, teams_per_group=3, matches_per_team_in_group="double")
        assert create_group_stage(db_session, tournament.id, rng=rng).stats.fixtures_created == 6

    def test_generation_is_not_repeatable(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, teams_per_group=2)
        create_group_stage(db_session, tournament.id, rng=rng)
        with pytest.raises(ConflictError):
            create_group_stage(db_session, tournament.id, rng=rng)
        with pytest.raises(ConflictError):
            generate_group_fixtures(db_session, tournament.id)

    def test_wrong_format(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, format="elimination")
        with pytest.raises(PreconditionError):
            create_group_stage(db_session, tournament.id, rng=rng)
        with pytest.raises(PreconditionError):
            generate_playoff_bracket(db_session, tournament.id)

    def test_unknown_tournament(self, db_session):
        with pytest.raises(NotFoundError):
            compute_standings(db_session, 999)

    def test_progress_and_standings(self, db_session, rng):
        tournament = setup_tournament(db_session, 3, teams_per_group=3)
        fixtures = create_group_stage(db_session, tournament.id, rng=rng).fixtures

        first, second, third = fixtures
        record_match_result(db_session, first.id, 2, 0)
        award_walkover(db_session, second.id, second.team2_id)
        update_fixture_status(db_session, third.id, "cancelled")

        progress = group_stage_progress(db_session, tournament.id)
        assert (progress.total, progress.decided, progress.cancelled, progress.open) == (3, 2, 1, 0)
        assert progress.is_complete
        assert progress.percent_complete == 100.0

        rows = compute_standings(db_session, tournament.id)["A"]
        assert rows[0].team_id == first.team1_id
        assert rows[0].points == 3
        # Walkovers carry no score and do not count in the table
        assert sum(row.played for row in rows) == 2

    def test_volleyball_result_with_sets(self, db_session, rng):
        tournament = setup_tournament(db_session, 2, sport="Voleibol", teams_per_group=2)
        fixture = create_group_stage(db_session, tournament.id, rng=rng).fixtures[0]

        sets = [SetScore(1, 25, 20), SetScore(2, 25, 23), SetScore(3, 20, 25), SetScore(4, 25, 19)]
        record_match_result(db_session, fixture.id, set_scores=sets)

        row = db_session.get(FixtureRow, fixture.id)
        assert (row.sets_team1, row.sets_team2) == (3, 1)
        assert len(row.set_scores) == 4
        assert row.winner_id == fixture.team1_id
        rows = compute_standings(db_session, tournament.id)["A"]
        assert rows[0].points == 3


class TestPlayoff:
    """From group stage to champion."""

    def test_playoff_requires_finished_groups(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, teams_per_group=2)
        with pytest.raises(PreconditionError):
            generate_playoff_bracket(db_session, tournament.id)
        create_group_stage(db_session, tournament.id, rng=rng)
        with pytest.raises(PreconditionError):
            generate_playoff_bracket(db_session, tournament.id)

    def test_full_flow(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, teams_per_group=2, teams_advancing_per_group=2)
        group_fixtures = create_group_stage(db_session, tournament.id, rng=rng).fixtures
        for fixture in group_fixtures:
            record_match_result(db_session, fixture.id, 1, 0)

        by_group = {f.group: f for f in group_fixtures}
        a1, a2 = by_group["A"].team1_id, by_group["A"].team2_id
        b1, b2 = by_group["B"].team1_id, by_group["B"].team2_id

        result = generate_playoff_bracket(db_session, tournament.id)
        semi_a, semi_b, final = result.fixtures
        assert (semi_a.team1_id, semi_a.team2_id) == (a1, b2)
        assert (semi_b.team1_id, semi_b.team2_id) == (b1, a2)
        assert result.stats.rounds == 2 and result.stats.byes == 0

        with pytest.raises(ConflictError):
            generate_playoff_bracket(db_session, tournament.id)

        changed = record_match_result(db_session, semi_a.id, 3, 1)
        assert [f.id for f in changed] == [semi_a.id, final.id]
        record_match_result(db_session, semi_b.id, 0, 2)

        final_row = db_session.get(FixtureRow, final.id)
        assert (final_row.team1_id, final_row.team2_id) == (a1, a2)
        assert final_row.status == "scheduled"

        record_match_result(db_session, final.id, 1, 0)
        view = compute_bracket_view(db_session, tournament.id)
        assert view.is_complete
        assert view.placements() == {1: a1, 2: a2}


class TestElimination:
    """Random-draw brackets through the service layer."""

    def test_five_team_bracket(self, db_session, rng):
        tournament = setup_tournament(db_session, 5, format="elimination")
        result = generate_elimination_bracket(db_session, tournament.id, rng=rng)

        assert result.stats.rounds == 3
        assert result.stats.byes == 1
        assert result.stats.fixtures_created == 6
        stored = db_session.scalars(
            select(FixtureRow).where(FixtureRow.tournament_id == tournament.id)
        ).all()
        assert len(stored) == 6
        assert sum(1 for row in stored if row.status == "walkover") == 2

        with pytest.raises(ConflictError):
            generate_elimination_bracket(db_session, tournament.id, rng=rng)

    def test_third_place_fixture_is_stored(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, format="elimination", third_place_match=True)
        result = generate_elimination_bracket(db_session, tournament.id, rng=rng)
        assert result.stats.fixtures_created == 4
        assert compute_bracket_view(db_session, tournament.id).third_place is not None

    def test_too_few_teams(self, db_session, rng):
        tournament = setup_tournament(db_session, 1, format="elimination")
        with pytest.raises(ValidationError):
            generate_elimination_bracket(db_session, tournament.id, rng=rng)

    def test_no_bracket_yet(self, db_session):
        tournament = setup_tournament(db_session, 2, format="elimination")
        with pytest.raises(PreconditionError):
            compute_bracket_view(db_session, tournament.id)


class TestResults:
    """Series, walkovers and status changes through the service layer."""

    def test_best_of_three_final(self, db_session, rng):
        tournament = setup_tournament(db_session, 2, format="elimination", best_of=3)
        final = generate_elimination_bracket(db_session, tournament.id, rng=rng).fixtures[0]

        with pytest.raises(PreconditionError):
            record_match_result(db_session, final.id, 1, 0)

        record_game_result(db_session, final.id, 1, 0)
        row = db_session.get(FixtureRow, final.id)
        assert row.status == "in-progress"
        assert row.series_wins_team1 == 1
        assert len(row.series_games) == 1

        record_game_result(db_session, final.id, 2, 0)
        assert row.status == "completed"
        assert row.winner_id == final.team1_id
        assert row.decided_by == "games"
        assert compute_bracket_view(db_session, tournament.id).champion_id == final.team1_id

    def test_game_on_group_fixture_rejected(self, db_session, rng):
        tournament = setup_tournament(db_session, 2, teams_per_group=2)
        fixture = create_group_stage(db_session, tournament.id, rng=rng).fixtures[0]
        with pytest.raises(PreconditionError):
            record_game_result(db_session, fixture.id, 1, 0)

    def test_bracket_walkover_advances(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, format="elimination")
        semi, _, final = generate_elimination_bracket(db_session, tournament.id, rng=rng).fixtures

        changed = award_walkover(db_session, semi.id, semi.team2_id)
        assert [f.id for f in changed] == [semi.id, final.id]
        assert db_session.get(FixtureRow, final.id).team1_id == semi.team2_id

    def test_walkover_for_outsider_rejected(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, format="elimination")
        semi = generate_elimination_bracket(db_session, tournament.id, rng=rng).fixtures[0]
        outsider = next(t for t in range(1, 1000) if t not in semi.teams)
        with pytest.raises(ValidationError):
            award_walkover(db_session, semi.id, outsider)

    def test_status_changes(self, db_session, rng):
        tournament = setup_tournament(db_session, 2, teams_per_group=2)
        fixture = create_group_stage(db_session, tournament.id, rng=rng).fixtures[0]

        assert update_fixture_status(db_session, fixture.id, "postponed").status == "postponed"
        with pytest.raises(PreconditionError):
            update_fixture_status(db_session, fixture.id, "completed")
        with pytest.raises(ValidationError):
            update_fixture_status(db_session, fixture.id, "finished")
        assert update_fixture_status(db_session, fixture.id, "scheduled").status == "scheduled"
        assert db_session.get(FixtureRow, fixture.id).status == "scheduled"

    def test_unknown_fixture(self, db_session):
        with pytest.raises(NotFoundError):
            record_match_result(db_session, 999, 1, 0)

    def test_stale_version_conflicts(self, db_session, rng):
        """A concurrent writer bumped the row's version under us."""
        tournament = setup_tournament(db_session, 2, teams_per_group=2)
        fixture = create_group_stage(db_session, tournament.id, rng=rng).fixtures[0]
        row = db_session.get(FixtureRow, fixture.id)
        assert row.version == 1

        db_session.execute(
            text("UPDATE fixtures SET version = version + 1 WHERE id = :id"),
            {"id": fixture.id},
        )
        with pytest.raises(ConflictError):
            record_match_result(db_session, fixture.id, 1, 0)


class TestMatchdays:
    """Group fixtures grouped by matchday."""

    def test_all_matchdays(self, db_session, rng):
        tournament = setup_tournament(db_session, 6, teams_per_group=3)
        create_group_stage(db_session, tournament.id, rng=rng)

        schedule = fixtures_by_matchday(db_session, tournament.id)
        assert list(schedule) == [1, 2, 3]
        assert sum(len(fixtures) for fixtures in schedule.values()) == 6
        for matchday, fixtures in schedule.items():
            assert all(f.matchday == matchday for f in fixtures)
            assert sorted(f.group for f in fixtures) == ["A", "B"]

    def test_single_matchday(self, db_session, rng):
        tournament = setup_tournament(db_session, 6, teams_per_group=3)
        create_group_stage(db_session, tournament.id, rng=rng)
        everything = fixtures_by_matchday(db_session, tournament.id)

        second = fixtures_by_matchday(db_session, tournament.id, matchday=2)
        assert list(second) == [2]
        assert [f.id for f in second[2]] == [f.id for f in everything[2]]

    def test_unscheduled_matchday_is_empty(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, teams_per_group=4)
        create_group_stage(db_session, tournament.id, rng=rng)
        assert fixtures_by_matchday(db_session, tournament.id, matchday=9) == {9: []}

    def test_before_generation(self, db_session):
        tournament = setup_tournament(db_session, 4)
        assert fixtures_by_matchday(db_session, tournament.id) == {}

    def test_invalid_requests(self, db_session):
        tournament = setup_tournament(db_session, 4)
        with pytest.raises(ValidationError):
            fixtures_by_matchday(db_session, tournament.id, matchday=0)
        knockout = setup_tournament(db_session, 4, format="elimination")
        with pytest.raises(PreconditionError):
            fixtures_by_matchday(db_session, knockout.id)


class TestBracketSlots:
    """The database rejects a second fixture in an occupied bracket slot."""

    def test_duplicate_slot_conflicts(self, db_session, rng):
        tournament = setup_tournament(db_session, 4, format="elimination")
        final = generate_elimination_bracket(db_session, tournament.id, rng=rng).fixtures[-1]

        db_session.add(FixtureRow(
            tournament_id=tournament.id,
            round="final",
            status="pending",
            bracket_round=final.bracket_round,
            bracket_position=final.bracket_position,
        ))
        with pytest.raises(ConflictError):
            flush(db_session)


@pytest.fixture
def file_sessions(tmp_path):
    """Session factory on a file-backed SQLite database shared by threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'torneo.db'}",
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


class TestConcurrentGeneration:
    """Two writers generating the same tournament at once."""

    def run_two_writers(self, sessions, generate):
        """
        Writer A generates and waits before committing; writer B runs the
        same generation while A's rows are still uncommitted.
        """
        generated = threading.Event()
        outcomes = {}

        def writer_a():
            try:
                with sessions() as session:
                    generate(session)
                    generated.set()
                    time.sleep(0.3)
                    session.commit()
                outcomes["a"] = "committed"
            finally:
                generated.set()

        def writer_b():
            assert generated.wait(5)
            with sessions() as session:
                try:
                    generate(session)
                    session.commit()
                    outcomes["b"] = "committed"
                except ConflictError:
                    session.rollback()
                    outcomes["b"] = "conflict"

        threads = [threading.Thread(target=writer_a), threading.Thread(target=writer_b)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(15)
        return outcomes

    def test_elimination_bracket_created_once(self, file_sessions):
        with file_sessions() as session:
            tournament_id = setup_tournament(session, 8, format="elimination").id
            session.commit()

        outcomes = self.run_two_writers(
            file_sessions,
            lambda session: generate_elimination_bracket(session, tournament_id, rng=random.Random(7)),
        )
        assert outcomes == {"a": "committed", "b": "conflict"}

        with file_sessions() as session:
            stored = session.scalars(
                select(FixtureRow).where(FixtureRow.tournament_id == tournament_id)
            ).all()
            assert len(stored) == 7
            assert len(compute_bracket_view(session, tournament_id).rounds) == 3

    def test_group_stage_created_once(self, file_sessions):
        with file_sessions() as session:
            tournament_id = setup_tournament(session, 8, teams_per_group=4).id
            session.commit()

        outcomes = self.run_two_writers(
            file_sessions,
            lambda session: create_group_stage(session, tournament_id, rng=random.Random(7)),
        )
        assert outcomes == {"a": "committed", "b": "conflict"}

        with file_sessions() as session:
            stored = session.scalars(
                select(FixtureRow).where(FixtureRow.tournament_id == tournament_id)
            ).all()
            assert len(stored) == 12
