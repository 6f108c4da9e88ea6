"""
In-memory data structures the engine computes over.

These dataclasses are deliberately free of any persistence concerns. The
services layer converts ORM rows into these, runs the engine, and writes
the mutated values back (see torneo.db.models.Fixture.to_engine and
Fixture.apply).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from torneo.match_statuses import GROUP_ROUND, get_status_group

Side = Literal["team1", "team2"]


@dataclass(frozen=True)
class Team:
    """A participating team. Never changes once referenced by a fixture."""
    id: int
    name: str


@dataclass(frozen=True)
class SetScore:
    """
    Points scored by each side in one set.

    Attributes:
        set_number: 1-indexed set number within the match
        score_team1: Points for team1
        score_team2: Points for team2
    """
    set_number: int
    score_team1: int
    score_team2: int

    @property
    def winner(self) -> Optional[Side]:
        if self.score_team1 > self.score_team2:
            return "team1"
        if self.score_team2 > self.score_team1:
            return "team2"
        return None

    def to_dict(self) -> dict[str, int]:
        return {
            "set_number": self.set_number,
            "score_team1": self.score_team1,
            "score_team2": self.score_team2,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SetScore":
        return cls(
            set_number=int(data["set_number"]),
            score_team1=int(data["score_team1"]),
            score_team2=int(data["score_team2"]),
        )

    def __repr__(self) -> str:
        return f"{self.score_team1}-{self.score_team2}"


@dataclass
class SeriesGame:
    """One game of a best-of-N series."""
    game_number: int
    score_team1: int
    score_team2: int
    winner_id: Optional[int] = None  # None for a drawn game
    set_scores: list[SetScore] = field(default_factory=list)
    played_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_number": self.game_number,
            "score_team1": self.score_team1,
            "score_team2": self.score_team2,
            "winner_id": self.winner_id,
            "set_scores": [s.to_dict() for s in self.set_scores],
            "played_at": self.played_at.isoformat() if self.played_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeriesGame":
        played_at = data.get("played_at")
        return cls(
            game_number=int(data["game_number"]),
            score_team1=int(data["score_team1"]),
            score_team2=int(data["score_team2"]),
            winner_id=data.get("winner_id"),
            set_scores=[SetScore.from_dict(s) for s in data.get("set_scores") or []],
            played_at=datetime.fromisoformat(played_at) if played_at else None,
        )


@dataclass
class Fixture:
    """
    A single fixture: a group-stage match or one bracket slot.

    Group-stage fixtures carry ``group`` and ``matchday``. Bracket fixtures
    carry ``bracket_round`` (1-indexed) and ``bracket_position``
    (0-indexed); their successor is (bracket_round + 1, position // 2).
    Either team may be None until bracket propagation fills the seat.

    ``winner_id`` is only ever set when status is 'completed' or 'walkover'.
    """
    tournament_id: int
    round: str
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    status: str = "scheduled"
    group: Optional[str] = None
    matchday: Optional[int] = None

    # Goal-based result (or the set tally for volleyball single matches)
    score_team1: Optional[int] = None
    score_team2: Optional[int] = None

    # Set-based result
    sets_team1: Optional[int] = None
    sets_team2: Optional[int] = None
    set_scores: list[SetScore] = field(default_factory=list)

    # Bracket addressing
    bracket_round: Optional[int] = None
    bracket_position: Optional[int] = None

    # Series state
    best_of: int = 1
    series_games: list[SeriesGame] = field(default_factory=list)
    aggregate_team1: int = 0
    aggregate_team2: int = 0
    series_wins_team1: int = 0
    series_wins_team2: int = 0
    series_winner_id: Optional[int] = None
    decided_by: Optional[str] = None  # 'games', 'aggregate', 'coin-flip', 'walkover'

    winner_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def is_group_fixture(self) -> bool:
        return self.round == GROUP_ROUND

    @property
    def is_decided(self) -> bool:
        return self.status in get_status_group("decided")

    @property
    def teams(self) -> tuple[Optional[int], Optional[int]]:
        return (self.team1_id, self.team2_id)

    @property
    def has_both_teams(self) -> bool:
        return self.team1_id is not None and self.team2_id is not None

    @property
    def series_score(self) -> str:
        """Games won by each side, e.g. '2-1'."""
        return f"{self.series_wins_team1}-{self.series_wins_team2}"

    @property
    def loser_id(self) -> Optional[int]:
        if self.winner_id is None or not self.has_both_teams:
            return None
        return self.team2_id if self.winner_id == self.team1_id else self.team1_id

    def involves(self, team_id: int) -> bool:
        return team_id in (self.team1_id, self.team2_id)

    def __repr__(self) -> str:
        where = (
            f"group {self.group} day {self.matchday}"
            if self.is_group_fixture
            else f"R{self.bracket_round}#{self.bracket_position}"
        )
        return (
            f"<Fixture({self.round} {where}: {self.team1_id} vs {self.team2_id}, "
            f"status={self.status}, winner={self.winner_id})>"
        )


@dataclass
class StandingRow:
    """One team's line in a group table."""
    team_id: int
    group: Optional[str] = None
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    sets_for: int = 0
    sets_against: int = 0
    points: int = 0
    rank: Optional[int] = None

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def set_difference(self) -> int:
        return self.sets_for - self.sets_against

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "team_id": self.team_id,
            "group": self.group,
            "played": self.played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "sets_for": self.sets_for,
            "sets_against": self.sets_against,
            "points": self.points,
        }


@dataclass(frozen=True)
class GroupStageSettings:
    teams_per_group: int = 4
    teams_advancing_per_group: int = 2
    matches_per_team_in_group: Literal["single", "double"] = "single"
