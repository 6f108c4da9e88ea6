"""
Sport rule strategies.

Each tournament is configured with exactly one rule variant, chosen once
from the sport's family (see torneo.rules.sports):

- GoalBased: soccer, futsal, basketball. Configurable win/draw/loss points,
  ranks by goal difference then goals scored.
- SetBased: volleyball. No draws, separate point tables for dominant
  (3-0 / 3-1) and close (3-2) wins, ranks by set difference then sets won.
  Also validates individual set scores.

The variants are pydantic models discriminated on ``kind`` so that stored
overrides (JSON) round-trip into the right class and bad values are
rejected with field-level messages.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from torneo.engine.models import Fixture, SetScore, Side, StandingRow
from torneo.exceptions import ValidationError

logger = logging.getLogger(__name__)


class SportFamily(str, Enum):
    GOAL_BASED = "goal-based"
    SET_BASED = "set-based"


@dataclass(frozen=True)
class SetResult:
    """Outcome of a validated volleyball match."""
    sets_team1: int
    sets_team2: int
    winner: Side


class _Rules(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class GoalBased(_Rules):
    """Points table for sports scored by cumulative goals."""

    kind: Literal["goal-based"] = "goal-based"
    points_win: int = Field(default=3, ge=0)
    points_draw: int = Field(default=1, ge=0)
    points_loss: int = Field(default=0, ge=0)

    @property
    def family(self) -> SportFamily:
        return SportFamily.GOAL_BASED

    @property
    def allows_draws(self) -> bool:
        return True

    def fixture_scores(self, fixture: Fixture) -> Optional[tuple[int, int]]:
        """Goals recorded on a fixture, or None if the result is missing."""
        if fixture.score_team1 is None or fixture.score_team2 is None:
            return None
        return (fixture.score_team1, fixture.score_team2)

    def apply_result(self, row1: StandingRow, row2: StandingRow, fixture: Fixture) -> bool:
        """
        Fold one completed fixture into both teams' rows.

        Returns:
            False if the fixture has no usable result (nothing is changed)
        """
        scores = self.fixture_scores(fixture)
        if scores is None:
            return False
        goals1, goals2 = scores

        row1.played += 1
        row2.played += 1
        row1.goals_for += goals1
        row1.goals_against += goals2
        row2.goals_for += goals2
        row2.goals_against += goals1

        if goals1 > goals2:
            _award_win(row1, row2, self.points_win, self.points_loss)
        elif goals2 > goals1:
            _award_win(row2, row1, self.points_win, self.points_loss)
        else:
            row1.draws += 1
            row2.draws += 1
            row1.points += self.points_draw
            row2.points += self.points_draw
        return True

    def ranking_key(self, row: StandingRow) -> tuple[int, int, int]:
        return (row.points, row.goal_difference, row.goals_for)


class MarginPoints(_Rules):
    """
    Volleyball points by margin of victory.

    "Dominant" means the loser won at most sets_to_win - 2 sets (3-0, 3-1);
    "close" means the loser won sets_to_win - 1 (3-2).
    """

    win_dominant: int = Field(default=3, ge=0)
    win_close: int = Field(default=2, ge=0)
    loss_close: int = Field(default=0, ge=0)
    loss_dominant: int = Field(default=0, ge=0)


class SetBased(_Rules):
    """Rules for sports scored in sets (volleyball)."""

    kind: Literal["set-based"] = "set-based"
    regular_set_points: int = Field(default=25, ge=1)
    last_set_points: int = Field(default=15, ge=1)
    min_difference: int = Field(default=2, ge=1)
    sets_to_win: int = Field(default=3, ge=1)
    scoring_by_margin: bool = True
    margin_points: MarginPoints = Field(default_factory=MarginPoints)
    # Flat table used when scoring_by_margin is off
    points_win: int = Field(default=3, ge=0)
    points_loss: int = Field(default=0, ge=0)

    @property
    def family(self) -> SportFamily:
        return SportFamily.SET_BASED

    @property
    def allows_draws(self) -> bool:
        return False

    @property
    def max_sets(self) -> int:
        return 2 * self.sets_to_win - 1

    def required_points(self, set_index: int) -> int:
        """Points needed to take the set at 1-indexed position ``set_index``."""
        if set_index == self.max_sets and self.max_sets > 1:
            return self.last_set_points
        return self.regular_set_points

    # ------------------------------------------------------------------
    # Set validation
    # ------------------------------------------------------------------

    def validate_sets(self, set_scores: Sequence[SetScore]) -> SetResult:
        """
        Validate a full match of set scores and return its result.

        All problems are collected before raising, so the caller can show
        every bad set at once.

        Raises:
            ValidationError: with one entry in ``errors`` per problem found
        """
        if not set_scores:
            raise ValidationError("No sets recorded")

        errors: list[str] = []
        if len(set_scores) > self.max_sets:
            errors.append(f"No more than {self.max_sets} sets can be played")

        wins1 = wins2 = 0
        for index, set_score in enumerate(set_scores, start=1):
            label = f"Set {set_score.set_number}"
            if set_score.set_number != index:
                errors.append(f"{label}: sets must be numbered consecutively from 1")
            if wins1 >= self.sets_to_win or wins2 >= self.sets_to_win:
                errors.append(f"{label}: played after the match was already decided")

            errors.extend(self._set_errors(set_score, index, label))

            if set_score.winner == "team1":
                wins1 += 1
            elif set_score.winner == "team2":
                wins2 += 1

        if wins1 >= self.sets_to_win and wins2 >= self.sets_to_win:
            errors.append("Both teams cannot win the match")
        elif wins1 < self.sets_to_win and wins2 < self.sets_to_win:
            errors.append(f"The match must be played until a team wins {self.sets_to_win} sets")

        if errors:
            raise ValidationError(f"Invalid set scores: {errors[0]}", errors)

        return SetResult(
            sets_team1=wins1,
            sets_team2=wins2,
            winner="team1" if wins1 > wins2 else "team2",
        )

    def _set_errors(self, set_score: SetScore, index: int, label: str) -> list[str]:
        points1, points2 = set_score.score_team1, set_score.score_team2
        if points1 < 0 or points2 < 0:
            return [f"{label}: scores cannot be negative"]

        errors = []
        required = self.required_points(index)
        if max(points1, points2) < required:
            errors.append(f"{label}: one team must reach {required} points")

        difference = abs(points1 - points2)
        if difference == 0:
            errors.append(f"{label}: a set cannot end in a tie")
        elif difference < self.min_difference:
            errors.append(f"{label}: the winning margin must be at least {self.min_difference} points")
        return errors

    # ------------------------------------------------------------------
    # Standings
    # ------------------------------------------------------------------

    def fixture_scores(self, fixture: Fixture) -> Optional[tuple[int, int]]:
        """Set tallies recorded on a fixture, or None if the result is missing."""
        if fixture.sets_team1 is not None and fixture.sets_team2 is not None:
            return (fixture.sets_team1, fixture.sets_team2)
        if fixture.set_scores:
            result = self.validate_sets(fixture.set_scores)
            return (result.sets_team1, result.sets_team2)
        return None

    def match_points(self, sets_team1: int, sets_team2: int) -> tuple[int, int]:
        """
        Standings points awarded to each side for a finished match.

        Raises:
            ValidationError: if the set tallies are level (no draws)
        """
        if sets_team1 == sets_team2:
            raise ValidationError(
                f"Set-based matches cannot be drawn ({sets_team1}-{sets_team2})"
            )

        if not self.scoring_by_margin:
            win, loss = self.points_win, self.points_loss
        else:
            loser_sets = min(sets_team1, sets_team2)
            close = self.sets_to_win > 1 and loser_sets >= self.sets_to_win - 1
            if close:
                win, loss = self.margin_points.win_close, self.margin_points.loss_close
            else:
                win, loss = self.margin_points.win_dominant, self.margin_points.loss_dominant

        if sets_team1 > sets_team2:
            return (win, loss)
        return (loss, win)

    def apply_result(self, row1: StandingRow, row2: StandingRow, fixture: Fixture) -> bool:
        scores = self.fixture_scores(fixture)
        if scores is None:
            return False
        sets1, sets2 = scores
        points1, points2 = self.match_points(sets1, sets2)

        row1.played += 1
        row2.played += 1
        row1.sets_for += sets1
        row1.sets_against += sets2
        row2.sets_for += sets2
        row2.sets_against += sets1
        if sets1 > sets2:
            row1.wins += 1
            row2.losses += 1
        else:
            row2.wins += 1
            row1.losses += 1
        row1.points += points1
        row2.points += points2
        return True

    def ranking_key(self, row: StandingRow) -> tuple[int, int, int]:
        return (row.points, row.set_difference, row.sets_for)


SportRules = Annotated[Union[GoalBased, SetBased], Field(discriminator="kind")]

_RULES_ADAPTER: TypeAdapter = TypeAdapter(SportRules)


def _award_win(winner: StandingRow, loser: StandingRow, points_win: int, points_loss: int) -> None:
    winner.wins += 1
    winner.points += points_win
    loser.losses += 1
    loser.points += points_loss


def parse_rules(data: dict[str, Any]) -> Union[GoalBased, SetBased]:
    """
    Build a rule variant from a plain dict (e.g. a stored JSON column).

    Raises:
        ValidationError: if ``kind`` is missing/unknown or any field is invalid
    """
    try:
        return _RULES_ADAPTER.validate_python(data)
    except PydanticValidationError as e:
        messages = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid sport rules: {messages[0]}", messages) from e
