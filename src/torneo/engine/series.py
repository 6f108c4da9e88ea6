"""
Fixture state machine: results, best-of-N series and status changes.

Series lifecycle:

    pending ──(both seats filled)──▶ scheduled ──(game)──▶ in-progress ──▶ completed
                                        │  ▲
                                        ▼  │
                                      postponed          (any open state) ──▶ cancelled
                                                         (scheduled/postponed) ──▶ walkover

A series of best_of games is decided when one side has won
best_of // 2 + 1 games. If every game is played without that happening
(drawn games are possible in goal-based sports) the side with the higher
aggregate score wins, and an exact aggregate tie is settled by a coin
flip from the injected random source.

Completing a bracket fixture immediately propagates the winner via
Bracket.advance_winner.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Optional, Sequence, Union

from torneo.engine.bracket import Bracket, apply_walkover
from torneo.engine.models import Fixture, SeriesGame, SetScore
from torneo.exceptions import PreconditionError, ValidationError
from torneo.match_statuses import can_transition, get_status_group
from torneo.rules.strategy import GoalBased, SetBased

logger = logging.getLogger(__name__)

Rules = Union[GoalBased, SetBased]

# Group results may be corrected after the fact; standings are recomputed.
GROUP_RESULT_STATUSES = ("scheduled", "in-progress", "completed")
WALKOVER_STATUSES = ("scheduled", "postponed")


def required_wins(best_of: int) -> int:
    """
    Games needed to take a best-of-N series.

    Examples:
        >>> required_wins(1)
        1
        >>> required_wins(3)
        2
        >>> required_wins(4)
        3
    """
    return best_of // 2 + 1


class SeriesProgression:
    """
    Records games on bracket fixtures and pushes winners forward.

    Example:
        progression = SeriesProgression(bracket, rules, rng=random.Random(7))
        changed = progression.record_game(fixture, 2, 1)
    """

    def __init__(
        self,
        bracket: Bracket,
        rules: Optional[Rules] = None,
        rng: Optional[random.Random] = None,
    ):
        self.bracket = bracket
        self.rules = rules or GoalBased()
        self.rng = rng or random.Random()

    def record_game(
        self,
        fixture: Fixture,
        score_team1: Optional[int] = None,
        score_team2: Optional[int] = None,
        set_scores: Optional[Sequence[SetScore]] = None,
        played_at: Optional[datetime] = None,
    ) -> list[Fixture]:
        """
        Record one game of a series and resolve the series if decided.

        For set-based sports the game score is the set tally; pass
        ``set_scores`` to have the sets validated and tallied.

        Returns:
            Every fixture changed, starting with ``fixture`` itself

        Raises:
            PreconditionError: fixture is not playable or lacks a team
            ValidationError: malformed scores or sets
            ConflictError: the winner cannot be seated in the next round
        """
        if fixture.status not in get_status_group("playable"):
            raise PreconditionError(
                f"Cannot record a game on a fixture with status '{fixture.status}'"
            )
        if not fixture.has_both_teams:
            raise PreconditionError(f"Fixture is still waiting for its teams: {fixture!r}")
        if len(fixture.series_games) >= fixture.best_of:
            raise PreconditionError(f"All {fixture.best_of} games have already been played")

        score1, score2, sets = game_scores(self.rules, score_team1, score_team2, set_scores)
        if score1 > score2:
            game_winner = fixture.team1_id
        elif score2 > score1:
            game_winner = fixture.team2_id
        else:
            game_winner = None

        fixture.series_games.append(
            SeriesGame(
                game_number=len(fixture.series_games) + 1,
                score_team1=score1,
                score_team2=score2,
                winner_id=game_winner,
                set_scores=list(sets),
                played_at=played_at or datetime.now(timezone.utc),
            )
        )
        _recompute_series(fixture)
        if fixture.best_of == 1 and sets:
            fixture.sets_team1, fixture.sets_team2 = score1, score2
            fixture.set_scores = list(sets)

        winner = self._series_winner(fixture)
        if winner is None:
            fixture.status = "in-progress"
            logger.debug("Series %s now %s", fixture.bracket_position, fixture.series_score)
            return [fixture]

        winner_id, decided_by = winner
        fixture.status = "completed"
        fixture.winner_id = winner_id
        fixture.series_winner_id = winner_id
        fixture.decided_by = decided_by
        logger.info(
            "Series complete: team %s wins %s (%s, aggregate %d-%d)",
            winner_id, fixture.series_score, decided_by,
            fixture.aggregate_team1, fixture.aggregate_team2,
        )
        return [fixture] + self.bracket.advance_winner(fixture)

    def award_walkover(self, fixture: Fixture, winner_id: int) -> list[Fixture]:
        """Award a bracket fixture without play and advance the winner."""
        return award_walkover(fixture, winner_id, self.bracket)

    def _series_winner(self, fixture: Fixture) -> Optional[tuple[int, str]]:
        needed = required_wins(fixture.best_of)
        if fixture.series_wins_team1 >= needed:
            return (fixture.team1_id, "games")
        if fixture.series_wins_team2 >= needed:
            return (fixture.team2_id, "games")
        if len(fixture.series_games) < fixture.best_of:
            return None

        if fixture.aggregate_team1 > fixture.aggregate_team2:
            return (fixture.team1_id, "aggregate")
        if fixture.aggregate_team2 > fixture.aggregate_team1:
            return (fixture.team2_id, "aggregate")

        # TODO: make the tie-break configurable (e.g. final game result) once organisers pick one.
        winner_id = self.rng.choice([fixture.team1_id, fixture.team2_id])
        logger.warning(
            "Series tied on games and aggregate (%d-%d); coin flip awards it to team %s",
            fixture.aggregate_team1, fixture.aggregate_team2, winner_id,
        )
        return (winner_id, "coin-flip")


def record_match_result(
    fixture: Fixture,
    rules: Rules,
    score_team1: Optional[int] = None,
    score_team2: Optional[int] = None,
    set_scores: Optional[Sequence[SetScore]] = None,
) -> Fixture:
    """
    Record the result of a group-stage fixture.

    Goal-based fixtures take the two scores (a draw leaves no winner).
    Set-based fixtures take the set scores, or just the set tally; if both
    are given they must agree.

    Raises:
        PreconditionError: not a group fixture, or not in a recordable state
        ValidationError: malformed scores or sets
    """
    if not fixture.is_group_fixture:
        raise PreconditionError("Bracket fixtures are recorded game by game through the series")
    if fixture.status not in GROUP_RESULT_STATUSES:
        raise PreconditionError(
            f"Cannot record a result on a fixture with status '{fixture.status}'"
        )
    if not fixture.has_both_teams:
        raise PreconditionError(f"Fixture is missing a team: {fixture!r}")

    score1, score2, sets = game_scores(rules, score_team1, score_team2, set_scores)

    if isinstance(rules, SetBased):
        fixture.sets_team1, fixture.sets_team2 = score1, score2
        fixture.set_scores = list(sets)
        fixture.score_team1 = fixture.score_team2 = None
    else:
        fixture.score_team1, fixture.score_team2 = score1, score2

    if score1 > score2:
        fixture.winner_id = fixture.team1_id
    elif score2 > score1:
        fixture.winner_id = fixture.team2_id
    else:
        fixture.winner_id = None
    fixture.status = "completed"
    return fixture


def award_walkover(
    fixture: Fixture,
    winner_id: int,
    bracket: Optional[Bracket] = None,
) -> list[Fixture]:
    """
    Award a fixture without play, e.g. after a withdrawal.

    Bracket fixtures advance the winner when ``bracket`` is given. Group
    walkovers are terminal but, having no score, do not count in standings.

    Returns:
        Every fixture changed, starting with ``fixture`` itself

    Raises:
        PreconditionError: fixture is not scheduled/postponed or lacks a team
        ValidationError: winner is not one of the fixture's teams
    """
    if fixture.status not in WALKOVER_STATUSES:
        raise PreconditionError(
            f"Cannot award a walkover on a fixture with status '{fixture.status}'"
        )
    if not fixture.has_both_teams:
        raise PreconditionError(f"Fixture is still waiting for its teams: {fixture!r}")
    apply_walkover(fixture, winner_id)
    logger.info("Walkover awarded to team %s in %r", winner_id, fixture)
    if bracket is None or fixture.is_group_fixture:
        return [fixture]
    return [fixture] + bracket.advance_winner(fixture)


def transition_status(fixture: Fixture, target: str) -> Fixture:
    """
    Apply a manual status change (postpone, reschedule, start, cancel).

    Raises:
        PreconditionError: if the change is not allowed from the current status
    """
    if not can_transition(fixture.status, target):
        raise PreconditionError(
            f"Cannot move a fixture from '{fixture.status}' to '{target}'"
        )
    if target == "scheduled" and not fixture.has_both_teams:
        target = "pending"
    fixture.status = target
    return fixture


def game_scores(
    rules: Rules,
    score_team1: Optional[int],
    score_team2: Optional[int],
    set_scores: Optional[Sequence[SetScore]] = None,
) -> tuple[int, int, list[SetScore]]:
    """
    Validate one game's input and return (score1, score2, sets).

    Raises:
        ValidationError: on negative/non-integer scores, sets given for a
                         goal-based sport, or a set tally that disagrees
                         with the set scores
    """
    if set_scores:
        if not isinstance(rules, SetBased):
            raise ValidationError("Set scores can only be recorded for set-based sports")
        result = rules.validate_sets(set_scores)
        for given, tallied, label in (
            (score_team1, result.sets_team1, "team1"),
            (score_team2, result.sets_team2, "team2"),
        ):
            if given is not None and given != tallied:
                raise ValidationError(
                    f"Recorded sets for {label} ({given}) do not match the set scores ({tallied})"
                )
        return (result.sets_team1, result.sets_team2, list(set_scores))

    score1 = _check_score(score_team1, "score_team1")
    score2 = _check_score(score_team2, "score_team2")
    if isinstance(rules, SetBased):
        high, low = max(score1, score2), min(score1, score2)
        if high != rules.sets_to_win or low >= rules.sets_to_win:
            raise ValidationError(
                f"A set tally of {score1}-{score2} is not a finished match "
                f"(first to {rules.sets_to_win} sets)"
            )
    return (score1, score2, [])


def _check_score(value: Optional[int], label: str) -> int:
    if value is None:
        raise ValidationError(f"{label} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative")
    return value


def _recompute_series(fixture: Fixture) -> None:
    games = fixture.series_games
    fixture.aggregate_team1 = sum(g.score_team1 for g in games)
    fixture.aggregate_team2 = sum(g.score_team2 for g in games)
    fixture.series_wins_team1 = sum(1 for g in games if g.winner_id == fixture.team1_id)
    fixture.series_wins_team2 = sum(1 for g in games if g.winner_id == fixture.team2_id)
    fixture.score_team1 = fixture.aggregate_team1
    fixture.score_team2 = fixture.aggregate_team2
