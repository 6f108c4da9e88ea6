"""
Tournament and team registration.

Validates a tournament's sport and settings up front so that the
generation services can assume a well-formed configuration.
"""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from torneo.config import settings
from torneo.db.models import TOURNAMENT_FORMATS, Team, Tournament
from torneo.exceptions import ValidationError
from torneo.rules import rules_for_sport
from torneo.services.common import flush, load_teams, load_tournament

logger = logging.getLogger(__name__)


def create_tournament(
    session: Session,
    name: str,
    sport: str,
    format: str,
    *,
    teams_per_group: Optional[int] = None,
    teams_advancing_per_group: int = 2,
    matches_per_team_in_group: str = "single",
    best_of: Optional[int] = None,
    third_place_match: bool = False,
    custom_rules: Optional[dict[str, Any]] = None,
) -> Tournament:
    """
    Create a tournament after validating its sport and settings.

    Raises:
        ValidationError: unknown sport or format, invalid rule overrides,
                         or non-positive stage settings
    """
    if not name or not name.strip():
        raise ValidationError("Tournament name is required")
    if format not in TOURNAMENT_FORMATS:
        raise ValidationError(f"Unknown tournament format: {format!r}")
    if matches_per_team_in_group not in ("single", "double"):
        raise ValidationError(
            f"matches_per_team_in_group must be 'single' or 'double', got {matches_per_team_in_group!r}"
        )

    teams_per_group = teams_per_group or settings.default_teams_per_group
    best_of = best_of or settings.default_best_of
    for label, value in (
        ("teams_per_group", teams_per_group),
        ("teams_advancing_per_group", teams_advancing_per_group),
        ("best_of", best_of),
    ):
        if value < 1:
            raise ValidationError(f"{label} must be at least 1, got {value}")
    if teams_advancing_per_group > teams_per_group:
        raise ValidationError("teams_advancing_per_group cannot exceed teams_per_group")

    # Raises for unknown sports and bad overrides
    rules_for_sport(sport, custom_rules)

    tournament = Tournament(
        name=name.strip(),
        sport=sport,
        format=format,
        custom_rules=custom_rules,
        teams_per_group=teams_per_group,
        teams_advancing_per_group=teams_advancing_per_group,
        matches_per_team_in_group=matches_per_team_in_group,
        best_of_matches=best_of,
        third_place_match=third_place_match,
    )
    session.add(tournament)
    flush(session)
    logger.info("Created tournament %d '%s' (%s, %s)", tournament.id, tournament.name, sport, format)
    return tournament


def register_teams(session: Session, tournament_id: int, names: Iterable[str]) -> list[Team]:
    """
    Register teams by name.

    Raises:
        NotFoundError: unknown tournament
        ValidationError: blank or duplicate team names
    """
    load_tournament(session, tournament_id)
    existing = {team.name.casefold() for team in load_teams(session, tournament_id)}

    teams = []
    for raw in names:
        name = (raw or "").strip()
        if not name:
            raise ValidationError("Team name is required")
        if name.casefold() in existing:
            raise ValidationError(f"Team '{name}' is already registered")
        existing.add(name.casefold())
        teams.append(Team(tournament_id=tournament_id, name=name))

    session.add_all(teams)
    flush(session)
    logger.info("Registered %d teams in tournament %d", len(teams), tournament_id)
    return teams
