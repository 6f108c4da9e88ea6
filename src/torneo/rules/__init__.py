"""Sport rule strategies and sport-name resolution."""

from torneo.rules.sports import normalize_sport_name, rules_for_sport, sport_family
from torneo.rules.strategy import (
    GoalBased,
    MarginPoints,
    SetBased,
    SetResult,
    SportFamily,
    SportRules,
    parse_rules,
)

__all__ = [
    "GoalBased",
    "MarginPoints",
    "SetBased",
    "SetResult",
    "SportFamily",
    "SportRules",
    "normalize_sport_name",
    "parse_rules",
    "rules_for_sport",
    "sport_family",
]
