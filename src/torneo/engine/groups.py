"""
Group allocation for the group stage.

Teams are shuffled with an injected random source and then dealt out
one at a time across the groups (team i → group i mod number_of_groups),
which keeps group sizes within one of each other.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from torneo.engine.models import Team
from torneo.exceptions import ValidationError

logger = logging.getLogger(__name__)

GROUP_LABELS: tuple[str, ...] = ("A", "B", "C", "D", "E", "F", "G", "H")
MAX_GROUPS = len(GROUP_LABELS)


@dataclass
class GroupAllocation:
    """Result of allocating a roster into groups."""
    groups: dict[str, list[Team]]
    unassigned: list[Team] = field(default_factory=list)

    @property
    def sizes(self) -> dict[str, int]:
        return {label: len(teams) for label, teams in self.groups.items()}

    def group_of(self, team_id: int) -> Optional[str]:
        for label, teams in self.groups.items():
            if any(team.id == team_id for team in teams):
                return label
        return None


def number_of_groups(team_count: int, teams_per_group: int) -> int:
    """
    Groups needed for a roster, capped at the available labels.

    Examples:
        >>> number_of_groups(5, 3)
        2
        >>> number_of_groups(40, 2)
        8
    """
    return min(math.ceil(team_count / teams_per_group), MAX_GROUPS)


def allocate_groups(
    teams: Sequence[Team],
    teams_per_group: int,
    rng: Optional[random.Random] = None,
) -> GroupAllocation:
    """
    Partition a roster into balanced, labelled groups.

    Args:
        teams: All teams registered in the tournament
        teams_per_group: Target group size
        rng: Random source used for the shuffle (seed it in tests)

    Returns:
        GroupAllocation with groups keyed 'A', 'B', ... in order

    Raises:
        ValidationError: if there are no teams or teams_per_group < 1
    """
    if not teams:
        raise ValidationError("No teams registered in the tournament")
    if teams_per_group < 1:
        raise ValidationError(f"teams_per_group must be at least 1, got {teams_per_group}")

    rng = rng or random.Random()
    group_count = number_of_groups(len(teams), teams_per_group)
    if group_count < math.ceil(len(teams) / teams_per_group):
        logger.warning(
            "%d teams at %d per group needs more than %d groups; "
            "spreading them over %d larger groups",
            len(teams), teams_per_group, MAX_GROUPS, MAX_GROUPS,
        )

    shuffled = list(teams)
    rng.shuffle(shuffled)

    labels = GROUP_LABELS[:group_count]
    groups: dict[str, list[Team]] = {label: [] for label in labels}
    for i, team in enumerate(shuffled):
        groups[labels[i % group_count]].append(team)

    logger.info(
        "Allocated %d teams into %d groups: %s",
        len(teams), group_count,
        ", ".join(f"{label}={len(members)}" for label, members in groups.items()),
    )

    return GroupAllocation(groups=groups, unassigned=[])
