"""
Score string parsing for manual result entry.

Organisers type results in a handful of formats:
- Goal-based: "2-1", "0 - 0", "3:2"
- Set-based: "25-20 20-25 25-23" or "25-20, 20-25, 25-23"
- Walkover: "W/O" or "walkover" (awarded to team1 unless stated otherwise)

This module turns those strings into structured values the engine
accepts. It only checks the shape of the input; whether the sets make a
legal volleyball match is decided by the sport rules.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from torneo.engine.models import SetScore
from torneo.exceptions import ValidationError

_PAIR_RE = re.compile(r"^\s*(\d+)\s*[-:]\s*(\d+)\s*$")


class ScoreParseError(ValidationError):
    """Raised when a score cannot be parsed."""
    pass


@dataclass
class ParsedScore:
    """
    Parsed result entry.

    Attributes:
        score_team1: Goals (or sets won) for team1
        score_team2: Goals (or sets won) for team2
        sets: Individual sets, empty for goal-based results
        status: 'completed' or 'walkover'
        raw_score: Original score string
    """
    score_team1: Optional[int] = None
    score_team2: Optional[int] = None
    sets: list[SetScore] = field(default_factory=list)
    status: str = "completed"
    raw_score: str = ""

    def to_display_string(self) -> str:
        """Convert back to display format like '25-20 20-25 15-10'."""
        if self.status == "walkover":
            return "W/O"
        if self.sets:
            return " ".join(repr(s) for s in self.sets)
        return f"{self.score_team1}-{self.score_team2}"

    def __repr__(self) -> str:
        return f"<ParsedScore({self.to_display_string()})>"


def parse_score(score_str: str, set_based: bool = False) -> ParsedScore:
    """
    Parse a result string.

    Args:
        score_str: Raw score string typed by an organiser
        set_based: Interpret the string as a list of sets

    Returns:
        ParsedScore; for set-based input the team scores are the set tally

    Raises:
        ScoreParseError: If the score cannot be parsed

    Examples:
        >>> parse_score("2-1")
        <ParsedScore(2-1)>

        >>> parse_score("25-20, 20-25 15-10", set_based=True)
        <ParsedScore(25-20 20-25 15-10)>

        >>> parse_score("W/O")
        <ParsedScore(W/O)>
    """
    if not score_str or not score_str.strip():
        raise ScoreParseError("Empty score string")

    original = score_str.strip()
    if _is_walkover(original):
        return ParsedScore(status="walkover", raw_score=original)

    if not set_based:
        score1, score2 = parse_goal_score(original)
        return ParsedScore(score_team1=score1, score_team2=score2, raw_score=original)

    sets = parse_set_scores(original)
    return ParsedScore(
        score_team1=sum(1 for s in sets if s.winner == "team1"),
        score_team2=sum(1 for s in sets if s.winner == "team2"),
        sets=sets,
        raw_score=original,
    )


def parse_goal_score(score_str: str) -> tuple[int, int]:
    """
    Parse a single "a-b" score.

    Raises:
        ScoreParseError: If the string is not two non-negative integers

    Examples:
        >>> parse_goal_score("3:2")
        (3, 2)
    """
    match = _PAIR_RE.match(score_str or "")
    if not match:
        raise ScoreParseError(f"Could not parse score: {score_str!r}")
    return int(match.group(1)), int(match.group(2))


def parse_set_scores(score_str: str) -> list[SetScore]:
    """
    Parse space- or comma-separated set scores, numbering them from 1.

    Raises:
        ScoreParseError: If any set is malformed

    Examples:
        >>> parse_set_scores("25-20 20-25")
        [25-20, 20-25]
    """
    parts = _split_sets(score_str)
    if not parts:
        raise ScoreParseError(f"Could not parse score: {score_str!r}")

    sets = []
    for number, part in enumerate(parts, start=1):
        try:
            score1, score2 = parse_goal_score(part)
        except ScoreParseError as e:
            raise ScoreParseError(f"Could not parse set '{part}' in '{score_str}'") from e
        sets.append(SetScore(set_number=number, score_team1=score1, score_team2=score2))
    return sets


def _is_walkover(score: str) -> bool:
    return score.lower().strip() in ("w/o", "wo", "walkover", "w.o.", "w.o")


def _split_sets(score: str) -> list[str]:
    # "25 - 20" is one set; normalise spacing around the separator first
    score = re.sub(r"\s*([-:])\s*", r"\1", score)
    return [part for part in re.split(r"[,;\s]+", score) if part]
