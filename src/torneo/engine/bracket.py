"""
Single-elimination bracket construction and winner propagation.

A bracket is a list of rounds, each a dense list of fixtures. A fixture
is addressed by (bracket_round, bracket_position) and its winner moves to
(bracket_round + 1, bracket_position // 2); see torneo.draw.

Two ways to build one:

1. **Random draw** (build_elimination_bracket): entrants are shuffled and
   paired in order. With an odd count the last entrant has no opponent and
   gets an immediate walkover. Later rounds halve the fixture count
   (rounding up), so a later-round fixture can end up with a single
   feeder; such a fixture becomes a walkover as soon as its lone entrant
   arrives.

2. **Seeded draw** (build_seeded_bracket): entrants are already ordered by
   seed (e.g. group-stage qualifiers). The bracket is padded to the next
   power of two and laid out in standard seeding order, so the missing
   seeds become byes for the top seeds.

Winners are seated into the first open seat of the successor fixture
(team1, then team2). The successor becomes 'scheduled' once both seats
are filled.
"""

import logging
import random
from dataclasses import dataclass, field
from itertools import groupby
from typing import Iterable, Optional, Sequence

from torneo.draw import (
    bracket_size_for,
    get_feeder_positions,
    get_next_position,
    get_next_round,
    next_round_size,
    round_name,
    seeding_order,
    total_rounds_for,
)
from torneo.engine.models import Fixture
from torneo.exceptions import ConflictError, PreconditionError, ValidationError
from torneo.match_statuses import THIRD_PLACE_ROUND, get_status_group

logger = logging.getLogger(__name__)


@dataclass
class Bracket:
    """An elimination bracket held in memory."""
    tournament_id: int
    rounds: list[list[Fixture]]
    third_place: Optional[Fixture] = None

    @property
    def total_rounds(self) -> int:
        return len(self.rounds)

    @property
    def final(self) -> Optional[Fixture]:
        return self.rounds[-1][0] if self.rounds else None

    def fixtures(self) -> list[Fixture]:
        """All fixtures, round by round, third-place fixture last."""
        flat = [fixture for fixture_round in self.rounds for fixture in fixture_round]
        if self.third_place is not None:
            flat.append(self.third_place)
        return flat

    def fixture_at(self, round_number: int, position: int) -> Optional[Fixture]:
        if not 1 <= round_number <= self.total_rounds:
            return None
        fixture_round = self.rounds[round_number - 1]
        if not 0 <= position < len(fixture_round):
            return None
        return fixture_round[position]

    def successor(self, fixture: Fixture) -> Optional[Fixture]:
        """Fixture the winner moves into, or None for the final/third place."""
        if fixture.round == THIRD_PLACE_ROUND or fixture.bracket_round is None:
            return None
        next_round = get_next_round(fixture.bracket_round, self.total_rounds)
        if next_round is None:
            return None
        return self.fixture_at(next_round, get_next_position(fixture.bracket_position))

    def feeders(self, fixture: Fixture) -> list[Fixture]:
        """Fixtures in the previous round whose winners feed this one."""
        if fixture.round == THIRD_PLACE_ROUND or not fixture.bracket_round or fixture.bracket_round == 1:
            return []
        previous = fixture.bracket_round - 1
        return [
            feeder
            for feeder in (self.fixture_at(previous, p) for p in get_feeder_positions(fixture.bracket_position))
            if feeder is not None
        ]

    def is_semi_final(self, fixture: Fixture) -> bool:
        return (
            self.total_rounds >= 2
            and fixture.round != THIRD_PLACE_ROUND
            and fixture.bracket_round == self.total_rounds - 1
        )

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def advance_winner(self, fixture: Fixture) -> list[Fixture]:
        """
        Move a decided fixture's winner into its successor.

        Semi-final losers are also seated into the third-place fixture
        when there is one. Single-feeder successors are walked over and
        propagation continues from them.

        Returns:
            Fixtures modified by the propagation (excluding ``fixture``)

        Raises:
            PreconditionError: if ``fixture`` has no winner yet
            ConflictError: if a seat collision would occur
        """
        if fixture.winner_id is None or not fixture.is_decided:
            raise PreconditionError(f"Fixture has no winner to advance: {fixture!r}")

        changed: list[Fixture] = []
        successor = self.successor(fixture)
        if successor is not None:
            seat_team(successor, fixture.winner_id)
            changed.append(successor)
            logger.info(
                "Advanced team %s: R%s#%s → R%s#%s",
                fixture.winner_id, fixture.bracket_round, fixture.bracket_position,
                successor.bracket_round, successor.bracket_position,
            )
            if len(self.feeders(successor)) == 1 and not successor.is_decided:
                apply_walkover(successor, fixture.winner_id)
                changed.extend(self.advance_winner(successor))

        if self.third_place is not None and self.is_semi_final(fixture):
            loser_id = fixture.loser_id
            if loser_id is not None:
                seat_team(self.third_place, loser_id)
            self._settle_third_place()
            if not any(f is self.third_place for f in changed):
                changed.append(self.third_place)

        return changed

    def _settle_third_place(self) -> None:
        """Walk over or cancel the third-place fixture when a semi had no loser."""
        third = self.third_place
        semis = self.rounds[-2]
        if third is None or third.is_decided or not all(s.is_decided for s in semis):
            return
        if third.has_both_teams:
            return
        if third.team1_id is not None:
            apply_walkover(third, third.team1_id)
        else:
            third.status = "cancelled"

    # ------------------------------------------------------------------
    # Reconstruction
    # ------------------------------------------------------------------

    @classmethod
    def from_fixtures(cls, tournament_id: int, fixtures: Iterable[Fixture]) -> "Bracket":
        """
        Rebuild a bracket from persisted fixtures.

        Raises:
            PreconditionError: if no bracket fixtures exist
            ValidationError: if round positions are not dense
        """
        third_place = None
        bracket_fixtures = []
        for fixture in fixtures:
            if fixture.round == THIRD_PLACE_ROUND:
                third_place = fixture
            elif fixture.bracket_round is not None:
                bracket_fixtures.append(fixture)

        if not bracket_fixtures:
            raise PreconditionError(f"Tournament {tournament_id} has no elimination bracket")

        bracket_fixtures.sort(key=lambda f: (f.bracket_round, f.bracket_position))
        rounds = []
        for round_number, members in groupby(bracket_fixtures, key=lambda f: f.bracket_round):
            fixture_round = list(members)
            positions = [f.bracket_position for f in fixture_round]
            if positions != list(range(len(fixture_round))):
                raise ValidationError(
                    f"Round {round_number} positions are not contiguous: {positions}"
                )
            rounds.append(fixture_round)

        return cls(tournament_id=tournament_id, rounds=rounds, third_place=third_place)


@dataclass
class BracketView:
    """Read model of a bracket for display and final placements."""
    rounds: list[tuple[str, list[Fixture]]]
    third_place: Optional[Fixture] = None
    champion_id: Optional[int] = None
    runner_up_id: Optional[int] = None
    third_place_id: Optional[int] = None
    remaining: list[Fixture] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.champion_id is not None

    def placements(self) -> dict[int, int]:
        """Final position → team id, for the positions decided so far."""
        decided = {
            1: self.champion_id,
            2: self.runner_up_id,
            3: self.third_place_id,
        }
        return {place: team for place, team in decided.items() if team is not None}


def seat_team(fixture: Fixture, team_id: int) -> None:
    """
    Place a team into the first open seat of a fixture.

    Raises:
        ConflictError: if the team already holds the other seat, or both
                       seats are taken
    """
    if fixture.team1_id is None:
        if fixture.team2_id == team_id:
            raise ConflictError(f"Team {team_id} is already seated as team2 in {fixture!r}")
        fixture.team1_id = team_id
    elif fixture.team2_id is None:
        if fixture.team1_id == team_id:
            raise ConflictError(f"Team {team_id} is already seated as team1 in {fixture!r}")
        fixture.team2_id = team_id
    else:
        raise ConflictError(f"Both seats are already filled, cannot seat team {team_id} in {fixture!r}")

    if fixture.has_both_teams and fixture.status == "pending":
        fixture.status = "scheduled"


def apply_walkover(fixture: Fixture, winner_id: int) -> None:
    """Mark a fixture as won without playing."""
    if winner_id not in fixture.teams:
        raise ValidationError(f"Team {winner_id} is not part of {fixture!r}")
    fixture.status = "walkover"
    fixture.winner_id = winner_id
    fixture.series_winner_id = winner_id
    fixture.decided_by = "walkover"


def build_elimination_bracket(
    tournament_id: int,
    team_ids: Sequence[int],
    best_of: int = 1,
    rng: Optional[random.Random] = None,
    third_place: bool = False,
) -> Bracket:
    """
    Build a randomly drawn single-elimination bracket.

    Args:
        tournament_id: Owning tournament
        team_ids: Entrants (order is irrelevant, they are shuffled)
        best_of: Games per series for every fixture
        rng: Random source for the draw
        third_place: Add a third-place fixture fed by semi-final losers

    Returns:
        Bracket with ceil(log2(n)) rounds; byes already propagated

    Raises:
        ValidationError: fewer than two entrants, duplicates, or best_of < 1
    """
    _check_entrants(team_ids, best_of)
    rng = rng or random.Random()
    shuffled = list(team_ids)
    rng.shuffle(shuffled)

    total = total_rounds_for(len(shuffled))
    first_round = []
    for position, start in enumerate(range(0, len(shuffled), 2)):
        pair = shuffled[start:start + 2]
        first_round.append(
            _bracket_fixture(
                tournament_id, 1, position, total, best_of,
                team1_id=pair[0],
                team2_id=pair[1] if len(pair) > 1 else None,
            )
        )

    bracket = _assemble(tournament_id, first_round, total, best_of, third_place)
    _propagate_byes(bracket)
    logger.info(
        "Built elimination bracket for tournament %d: %d entrants, %d rounds, %d fixtures",
        tournament_id, len(shuffled), bracket.total_rounds, len(bracket.fixtures()),
    )
    return bracket


def build_seeded_bracket(
    tournament_id: int,
    seeded_team_ids: Sequence[int],
    best_of: int = 1,
    third_place: bool = False,
) -> Bracket:
    """
    Build a bracket from entrants ordered best seed first.

    The draw is padded to a power of two; seeds beyond the entrant count
    are byes, so the top seeds receive walkovers into round 2.
    """
    _check_entrants(seeded_team_ids, best_of)
    entrants = len(seeded_team_ids)
    size = bracket_size_for(entrants)
    total = total_rounds_for(entrants)

    slots = [
        seeded_team_ids[seed - 1] if seed <= entrants else None
        for seed in seeding_order(size)
    ]
    first_round = [
        _bracket_fixture(
            tournament_id, 1, position, total, best_of,
            team1_id=slots[2 * position],
            team2_id=slots[2 * position + 1],
        )
        for position in range(size // 2)
    ]

    bracket = _assemble(tournament_id, first_round, total, best_of, third_place)
    _propagate_byes(bracket)
    logger.info(
        "Built seeded bracket for tournament %d: %d entrants, %d byes, %d rounds",
        tournament_id, entrants, size - entrants, bracket.total_rounds,
    )
    return bracket


def bracket_view(bracket: Bracket) -> BracketView:
    """Summarise a bracket: rounds in order, champion and placements."""
    final = bracket.final
    champion = final.winner_id if final is not None and final.is_decided else None
    runner_up = final.loser_id if champion is not None else None

    third = bracket.third_place
    third_place_id = third.winner_id if third is not None and third.is_decided else None

    open_statuses = get_status_group("open")
    return BracketView(
        rounds=[(fixture_round[0].round, fixture_round) for fixture_round in bracket.rounds],
        third_place=third,
        champion_id=champion,
        runner_up_id=runner_up,
        third_place_id=third_place_id,
        remaining=[f for f in bracket.fixtures() if f.status in open_statuses],
    )


def _assemble(
    tournament_id: int,
    first_round: list[Fixture],
    total_rounds: int,
    best_of: int,
    third_place: bool,
) -> Bracket:
    rounds = [first_round]
    while len(rounds[-1]) > 1:
        round_number = len(rounds) + 1
        rounds.append([
            _bracket_fixture(tournament_id, round_number, position, total_rounds, best_of, status="pending")
            for position in range(next_round_size(len(rounds[-1])))
        ])

    third = None
    if third_place and len(rounds) >= 2:
        third = Fixture(
            tournament_id=tournament_id,
            round=THIRD_PLACE_ROUND,
            status="pending",
            bracket_round=len(rounds),
            bracket_position=1,
            best_of=best_of,
        )
    return Bracket(tournament_id=tournament_id, rounds=rounds, third_place=third)


def _propagate_byes(bracket: Bracket) -> None:
    for fixture in bracket.rounds[0]:
        if fixture.team2_id is None and fixture.team1_id is not None:
            apply_walkover(fixture, fixture.team1_id)
            logger.debug("Bye for team %s at R1#%s", fixture.team1_id, fixture.bracket_position)
            bracket.advance_winner(fixture)


def _bracket_fixture(
    tournament_id: int,
    round_number: int,
    position: int,
    total_rounds: int,
    best_of: int,
    team1_id: Optional[int] = None,
    team2_id: Optional[int] = None,
    status: str = "scheduled",
) -> Fixture:
    return Fixture(
        tournament_id=tournament_id,
        round=round_name(round_number, total_rounds),
        team1_id=team1_id,
        team2_id=team2_id,
        status=status,
        bracket_round=round_number,
        bracket_position=position,
        best_of=best_of,
    )


def _check_entrants(team_ids: Sequence[int], best_of: int) -> None:
    if len(team_ids) < 2:
        raise ValidationError(
            f"An elimination bracket needs at least 2 teams, got {len(team_ids)}"
        )
    if len(set(team_ids)) != len(team_ids):
        raise ValidationError("Duplicate teams in bracket entrants")
    if best_of < 1:
        raise ValidationError(f"best_of must be at least 1, got {best_of}")
