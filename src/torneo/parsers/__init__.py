"""Parsers for organiser-entered data."""

from torneo.parsers.score import (
    ParsedScore,
    ScoreParseError,
    parse_goal_score,
    parse_score,
    parse_set_scores,
)

__all__ = [
    "ParsedScore",
    "ScoreParseError",
    "parse_goal_score",
    "parse_score",
    "parse_set_scores",
]
