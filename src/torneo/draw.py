"""
Bracket position math.

Bracket fixtures are addressed by integer coordinates: a 1-indexed round
number and a 0-indexed position within that round. Progression follows
standard single-elimination halving:

    Round r, position p  →  Round r+1, position p // 2

So positions 0 and 1 in round 1 feed into position 0 in round 2,
positions 2 and 3 feed into position 1, etc.

These functions are used by:
- The bracket builder (sizing rounds, naming them, wiring successors)
- Series progression (finding the successor seat for a winner)
- The bracket view (ordering rounds for display)
"""

import math
from typing import Optional

from torneo.match_statuses import NAMED_ROUNDS


def total_rounds_for(entrants: int) -> int:
    """
    Number of rounds needed to reduce ``entrants`` to one champion.

    Examples:
        >>> total_rounds_for(2)
        1
        >>> total_rounds_for(5)
        3
        >>> total_rounds_for(8)
        3
    """
    if entrants < 2:
        return 0
    return math.ceil(math.log2(entrants))


def round_name(round_number: int, total_rounds: int) -> str:
    """
    Round tag for a round, based on its distance from the final.

    Examples:
        >>> round_name(3, 3)
        'final'
        >>> round_name(1, 3)
        'quarter-finals'
        >>> round_name(1, 4)
        'round-of-16'
    """
    distance = total_rounds - round_number
    if distance in NAMED_ROUNDS:
        return NAMED_ROUNDS[distance]
    return f"round-of-{2 ** (distance + 1)}"


def get_next_position(position: int) -> int:
    """
    Compute the position in the next round.

    Examples:
        >>> get_next_position(0)
        0
        >>> get_next_position(1)
        0
        >>> get_next_position(2)
        1
    """
    return position // 2


def get_feeder_positions(position: int) -> tuple[int, int]:
    """
    Get the two feeder positions from the previous round that feed
    into this position.

    Position p in round r+1 is fed by positions 2p and 2p+1 in round r.
    The second feeder may not exist when the previous round had an odd
    number of fixtures.

    Examples:
        >>> get_feeder_positions(0)
        (0, 1)
        >>> get_feeder_positions(2)
        (4, 5)
    """
    return (2 * position, 2 * position + 1)


def get_next_round(round_number: int, total_rounds: int) -> Optional[int]:
    """Next round number, or None if this is the final."""
    if round_number >= total_rounds:
        return None
    return round_number + 1


def next_round_size(fixture_count: int) -> int:
    """Fixtures in the following round when halving ``fixture_count``."""
    return math.ceil(fixture_count / 2)


def bracket_size_for(entrants: int) -> int:
    """
    Smallest power of two that holds ``entrants``.

    Examples:
        >>> bracket_size_for(5)
        8
        >>> bracket_size_for(8)
        8
    """
    size = 1
    while size < entrants:
        size *= 2
    return size


def seeding_order(size: int) -> list[int]:
    """
    Standard bracket slot order for 1-indexed seeds.

    Consecutive pairs of the result meet in round one, and the top two
    seeds can only meet in the final.

    Examples:
        >>> seeding_order(4)
        [1, 4, 2, 3]
        >>> seeding_order(8)
        [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if size < 2:
        return [1]
    order = [1, 2]
    while len(order) < size:
        width = len(order) * 2
        expanded = []
        for seed in order:
            expanded.append(seed)
            expanded.append(width + 1 - seed)
        order = expanded
    return order
