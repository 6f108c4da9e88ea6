#!/usr/bin/env python3
"""
Tournament administration from the command line.

Usage:
    # Create the schema (development; use `alembic upgrade head` elsewhere)
    python scripts/manage_tournament.py init-db

    # Set up a tournament
    python scripts/manage_tournament.py create-tournament "Summer Cup" soccer group-stage --teams-per-group 4
    python scripts/manage_tournament.py add-teams 1 "Lions" "Tigers" "Bears" "Wolves" "Eagles"

    # Group stage
    python scripts/manage_tournament.py group-stage 1 --seed 42
    python scripts/manage_tournament.py fixtures 1 --status scheduled,in-progress
    python scripts/manage_tournament.py matchdays 1 --matchday 2
    python scripts/manage_tournament.py result 7 "2-1"
    python scripts/manage_tournament.py standings 1

    # Knockout
    python scripts/manage_tournament.py playoff 1
    python scripts/manage_tournament.py game 31 "25-20 20-25 25-23 25-18"
    python scripts/manage_tournament.py walkover 32 5
    python scripts/manage_tournament.py bracket 1

Results are typed as score strings: "2-1" for goal-based sports, space or
comma separated sets ("25-20, 20-25, 15-10") for set-based sports, or
"W/O" for a walkover to team1.
"""

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import Optional

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import select

from torneo.config import settings
from torneo.db import Base, Fixture, Team, get_engine, get_session
from torneo.exceptions import TournamentError
from torneo.match_statuses import is_terminal, normalize_status_filter
from torneo.parsers import parse_score
from torneo.rules import SetBased
from torneo.services import (
    award_walkover,
    compute_bracket_view,
    compute_standings,
    create_group_stage,
    create_tournament,
    fixtures_by_matchday,
    generate_elimination_bracket,
    generate_playoff_bracket,
    group_stage_progress,
    record_game_result,
    record_match_result,
    register_teams,
    update_fixture_status,
)
from torneo.services.common import load_fixture, load_tournament

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _rng(seed: Optional[int]) -> Optional[random.Random]:
    return random.Random(seed) if seed is not None else None


def _team_names(session, tournament_id: int) -> dict[int, str]:
    rows = session.scalars(select(Team).where(Team.tournament_id == tournament_id))
    return {team.id: team.name for team in rows}


def _describe(fixture, names: dict[int, str]) -> str:
    team1 = names.get(fixture.team1_id, "TBD")
    team2 = names.get(fixture.team2_id, "TBD")
    line = f"#{fixture.id:<5} {team1} vs {team2}  [{fixture.status}]"
    if fixture.set_scores:
        line += "  " + " ".join(repr(s) for s in fixture.set_scores)
    elif fixture.score_team1 is not None:
        line += f"  {fixture.score_team1}-{fixture.score_team2}"
    if fixture.best_of > 1:
        line += f"  (series {fixture.series_score}, best of {fixture.best_of})"
    if fixture.winner_id is not None:
        line += f"  winner: {names.get(fixture.winner_id, fixture.winner_id)}"
    return line


# =============================================================================
# Commands
# =============================================================================

def cmd_init_db(args) -> int:
    Base.metadata.create_all(get_engine())
    print(f"Schema created on {settings.database_url}")
    return 0


def cmd_create_tournament(args) -> int:
    with get_session() as session:
        tournament = create_tournament(
            session,
            args.name,
            args.sport,
            args.format,
            teams_per_group=args.teams_per_group,
            teams_advancing_per_group=args.advancing,
            matches_per_team_in_group=args.matches,
            best_of=args.best_of,
            third_place_match=args.third_place,
        )
        print(f"Created tournament {tournament.id}: {tournament.name}")
    return 0


def cmd_add_teams(args) -> int:
    with get_session() as session:
        teams = register_teams(session, args.tournament_id, args.names)
        for team in teams:
            print(f"  {team.id:<5} {team.name}")
    return 0


def cmd_group_stage(args) -> int:
    with get_session() as session:
        result = create_group_stage(session, args.tournament_id, rng=_rng(args.seed))
        print(result.stats.summary())
    return 0


def cmd_elimination(args) -> int:
    with get_session() as session:
        result = generate_elimination_bracket(session, args.tournament_id, rng=_rng(args.seed))
        print(result.stats.summary())
    return 0


def cmd_playoff(args) -> int:
    with get_session() as session:
        result = generate_playoff_bracket(session, args.tournament_id)
        print(result.stats.summary())
    return 0


def cmd_fixtures(args) -> int:
    statuses = normalize_status_filter(args.status.split(",") if args.status else None)
    with get_session() as session:
        names = _team_names(session, args.tournament_id)
        rows = session.scalars(
            select(Fixture)
            .where(Fixture.tournament_id == args.tournament_id, Fixture.status.in_(statuses))
            .order_by(Fixture.group_label, Fixture.matchday, Fixture.bracket_round, Fixture.bracket_position)
        )
        current = None
        for row in rows:
            heading = (
                f"Group {row.group_label} - matchday {row.matchday}"
                if row.group_label
                else row.round
            )
            if heading != current:
                print(f"\n{heading}")
                current = heading
            print("  " + _describe(row.to_engine(), names))
    return 0


def cmd_matchdays(args) -> int:
    with get_session() as session:
        names = _team_names(session, args.tournament_id)
        schedule = fixtures_by_matchday(session, args.tournament_id, args.matchday)
        for matchday, fixtures in schedule.items():
            print(f"\nMatchday {matchday}")
            if not fixtures:
                print("  (no fixtures)")
            for fixture in fixtures:
                print(f"  Group {fixture.group}  " + _describe(fixture, names))
    return 0


def _record(args, single_result: bool) -> int:
    with get_session() as session:
        row = load_fixture(session, args.fixture_id)
        rules = load_tournament(session, row.tournament_id).rules()
        parsed = parse_score(args.score, set_based=isinstance(rules, SetBased))

        if parsed.status == "walkover":
            changed = award_walkover(session, args.fixture_id, args.winner or row.team1_id)
        elif single_result:
            changed = record_match_result(
                session, args.fixture_id, parsed.score_team1, parsed.score_team2, parsed.sets
            )
        else:
            changed = record_game_result(
                session, args.fixture_id, parsed.score_team1, parsed.score_team2, parsed.sets,
                rng=_rng(args.seed),
            )

        names = _team_names(session, row.tournament_id)
        for fixture in changed:
            print(_describe(fixture, names))
    return 0


def cmd_result(args) -> int:
    return _record(args, single_result=True)


def cmd_game(args) -> int:
    return _record(args, single_result=False)


def cmd_walkover(args) -> int:
    with get_session() as session:
        changed = award_walkover(session, args.fixture_id, args.winner_id)
        names = _team_names(session, changed[0].tournament_id)
        for fixture in changed:
            print(_describe(fixture, names))
    return 0


def cmd_status(args) -> int:
    with get_session() as session:
        fixture = update_fixture_status(session, args.fixture_id, args.status)
        print(f"Fixture {fixture.id} is now {fixture.status}")
        if is_terminal(fixture.status):
            print("  (no further results can be recorded)")
    return 0


def cmd_standings(args) -> int:
    with get_session() as session:
        names = _team_names(session, args.tournament_id)
        rules = load_tournament(session, args.tournament_id).rules()
        progress = group_stage_progress(session, args.tournament_id)
        set_based = isinstance(rules, SetBased)

        for label, rows in compute_standings(session, args.tournament_id).items():
            print(f"\nGroup {label}")
            header = "SW  SL  +/-" if set_based else "GF  GA  +/-"
            print(f"  {'#':<3}{'Team':<24}P   W   D   L   {header}  Pts")
            for row in rows:
                scored, conceded, diff = (
                    (row.sets_for, row.sets_against, row.set_difference)
                    if set_based
                    else (row.goals_for, row.goals_against, row.goal_difference)
                )
                print(
                    f"  {row.rank:<3}{names.get(row.team_id, row.team_id):<24}"
                    f"{row.played:<4}{row.wins:<4}{row.draws:<4}{row.losses:<4}"
                    f"{scored:<4}{conceded:<4}{diff:<+5}{row.points:>4}"
                )
        print(
            f"\nGroup stage: {progress.total - progress.open}/{progress.total} fixtures settled "
            f"({progress.percent_complete:.0f}%)"
        )
    return 0


def cmd_bracket(args) -> int:
    with get_session() as session:
        names = _team_names(session, args.tournament_id)
        view = compute_bracket_view(session, args.tournament_id)
        for round_name, fixtures in view.rounds:
            print(f"\n{round_name}")
            for fixture in fixtures:
                print("  " + _describe(fixture, names))
        if view.third_place is not None:
            print("\nthird-place")
            print("  " + _describe(view.third_place, names))

        if view.is_complete:
            print("\nFinal placements:")
            for place, team_id in sorted(view.placements().items()):
                print(f"  {place}. {names.get(team_id, team_id)}")
        else:
            print(f"\n{len(view.remaining)} fixtures still to be played")
    return 0


# =============================================================================
# Argument parsing
# =============================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Administer Torneo tournaments.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create all tables on the configured database.")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("create-tournament", help="Create a tournament.")
    p.add_argument("name")
    p.add_argument("sport", help="e.g. soccer, futsal, basketball, volleyball")
    p.add_argument("format", choices=["group-stage", "elimination"])
    p.add_argument("--teams-per-group", type=int, default=None)
    p.add_argument("--advancing", type=int, default=2, help="Teams advancing per group.")
    p.add_argument("--matches", choices=["single", "double"], default="single")
    p.add_argument("--best-of", type=int, default=None, help="Games per knockout series.")
    p.add_argument("--third-place", action="store_true", help="Add a third-place fixture.")
    p.set_defaults(func=cmd_create_tournament)

    p = sub.add_parser("add-teams", help="Register teams by name.")
    p.add_argument("tournament_id", type=int)
    p.add_argument("names", nargs="+")
    p.set_defaults(func=cmd_add_teams)

    p = sub.add_parser("group-stage", help="Allocate groups and generate group fixtures.")
    p.add_argument("tournament_id", type=int)
    p.add_argument("--seed", type=int, default=None, help="Seed for the group draw.")
    p.set_defaults(func=cmd_group_stage)

    p = sub.add_parser("elimination", help="Draw a knockout bracket from all teams.")
    p.add_argument("tournament_id", type=int)
    p.add_argument("--seed", type=int, default=None, help="Seed for the bracket draw.")
    p.set_defaults(func=cmd_elimination)

    p = sub.add_parser("playoff", help="Seed the playoff bracket from group qualifiers.")
    p.add_argument("tournament_id", type=int)
    p.set_defaults(func=cmd_playoff)

    p = sub.add_parser("fixtures", help="List fixtures.")
    p.add_argument("tournament_id", type=int)
    p.add_argument("--status", default=None, help="Comma-separated statuses to show.")
    p.set_defaults(func=cmd_fixtures)

    p = sub.add_parser("matchdays", help="List group fixtures by matchday.")
    p.add_argument("tournament_id", type=int)
    p.add_argument("--matchday", type=int, default=None, help="Show only this matchday.")
    p.set_defaults(func=cmd_matchdays)

    for name, func, help_text in (
        ("result", cmd_result, "Record a full result (group or best-of-1)."),
        ("game", cmd_game, "Record one game of a knockout series."),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("fixture_id", type=int)
        p.add_argument("score", help='e.g. "2-1", "25-20 20-25 15-10" or "W/O"')
        p.add_argument("--winner", type=int, default=None, help="Walkover winner (default team1).")
        p.add_argument("--seed", type=int, default=None, help="Seed for a series coin flip.")
        p.set_defaults(func=func)

    p = sub.add_parser("walkover", help="Award a fixture without play.")
    p.add_argument("fixture_id", type=int)
    p.add_argument("winner_id", type=int)
    p.set_defaults(func=cmd_walkover)

    p = sub.add_parser("status", help="Postpone, reschedule, start or cancel a fixture.")
    p.add_argument("fixture_id", type=int)
    p.add_argument("status", choices=["scheduled", "in-progress", "postponed", "cancelled"])
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("standings", help="Show group tables.")
    p.add_argument("tournament_id", type=int)
    p.set_defaults(func=cmd_standings)

    p = sub.add_parser("bracket", help="Show the knockout bracket.")
    p.add_argument("tournament_id", type=int)
    p.set_defaults(func=cmd_bracket)

    return parser


def main() -> int:
    args = _build_parser().parse_args()
    try:
        return args.func(args)
    except TournamentError as exc:
        logger.error("%s: %s", exc.__class__.__name__, exc)
        for detail in getattr(exc, "errors", [])[1:]:
            logger.error("  - %s", detail)
        return 1


if __name__ == "__main__":
    sys.exit(main())
