"""
Sport identity → rule family resolution.

Sport names arrive as free text from the tournament record ("Fútbol",
"Voleibol", "volleyball", ...). They are normalised and resolved to a
SportFamily exactly once, when the tournament's rules are built; nothing
downstream branches on the sport name again.
"""

import unicodedata
from typing import Any, Optional, Union

from torneo.exceptions import ValidationError
from torneo.rules.strategy import GoalBased, SetBased, SportFamily, parse_rules

# Normalised sport name → rule family
SPORT_FAMILIES: dict[str, SportFamily] = {
    "soccer": SportFamily.GOAL_BASED,
    "football": SportFamily.GOAL_BASED,
    "futbol": SportFamily.GOAL_BASED,
    "futsal": SportFamily.GOAL_BASED,
    "futbol sala": SportFamily.GOAL_BASED,
    "basketball": SportFamily.GOAL_BASED,
    "baloncesto": SportFamily.GOAL_BASED,
    "volleyball": SportFamily.SET_BASED,
    "voleibol": SportFamily.SET_BASED,
    "voley": SportFamily.SET_BASED,
    "volley": SportFamily.SET_BASED,
}


def normalize_sport_name(name: str) -> str:
    """
    Lowercase, trim and strip accents from a sport name.

    Examples:
        >>> normalize_sport_name("  Fútbol Sala ")
        'futbol sala'
    """
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.lower().split())


def sport_family(sport: str) -> SportFamily:
    """
    Resolve a sport name to its rule family.

    Raises:
        ValidationError: for empty or unknown sport names
    """
    if not sport or not isinstance(sport, str):
        raise ValidationError("Sport name is required")
    family = SPORT_FAMILIES.get(normalize_sport_name(sport))
    if family is None:
        raise ValidationError(f"Unknown sport: {sport!r}")
    return family


def rules_for_sport(
    sport: str,
    overrides: Optional[dict[str, Any]] = None,
) -> Union[GoalBased, SetBased]:
    """
    Build the rule variant for a sport, applying tournament overrides.

    Args:
        sport: Sport name as stored on the tournament
        overrides: Optional field overrides (e.g. {"points_win": 2}).
                   A ``kind`` key, if present, must match the sport's family.

    Raises:
        ValidationError: unknown sport, mismatched kind, or invalid values
    """
    family = sport_family(sport)
    data: dict[str, Any] = dict(overrides or {})

    kind = data.pop("kind", family.value)
    if kind != family.value:
        raise ValidationError(
            f"Rules of kind {kind!r} cannot be used for {sport!r} ({family.value})"
        )
    data["kind"] = family.value
    return parse_rules(data)
