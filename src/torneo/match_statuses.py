"""Shared fixture-status and round-tag definitions and helpers.

This module is the single source of truth for status groups that are reused
across the engine, the services and the ORM defaults.
"""

from __future__ import annotations

from typing import Iterable

# Individual statuses currently used in the system.
ALL_FIXTURE_STATUSES: tuple[str, ...] = (
    "scheduled",
    "pending",
    "in-progress",
    "completed",
    "walkover",
    "postponed",
    "cancelled",
)

# Canonical status groups.
FIXTURE_STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    # Fixtures that can accept a result right now.
    "playable": ("scheduled", "in-progress"),
    # Outcomes that carry a winner.
    "decided": ("completed", "walkover"),
    # Statuses that represent fixtures no longer actionable.
    "terminal": ("completed", "walkover", "cancelled"),
    # Fixtures still waiting to be played (or waiting for their teams).
    "open": ("scheduled", "pending", "in-progress", "postponed"),
    "all": ALL_FIXTURE_STATUSES,
}

# Manual status changes an administrator may request. Results and
# walkovers go through their own operations.
ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "scheduled": ("in-progress", "postponed", "cancelled"),
    "postponed": ("scheduled", "cancelled"),
    "in-progress": ("cancelled",),
    "pending": ("cancelled",),
}

GROUP_ROUND = "group"
THIRD_PLACE_ROUND = "third-place"
FINAL_ROUND = "final"

# Named rounds by distance from the final; deeper rounds are "round-of-N".
NAMED_ROUNDS: dict[int, str] = {
    0: FINAL_ROUND,
    1: "semi-finals",
    2: "quarter-finals",
}


def get_status_group(group_name: str) -> tuple[str, ...]:
    """Return a named status group, raising KeyError for unknown names."""
    return FIXTURE_STATUS_GROUPS[group_name]


def is_terminal(status: str) -> bool:
    return status in FIXTURE_STATUS_GROUPS["terminal"]


def can_transition(current: str, target: str) -> bool:
    """Whether an administrator may move a fixture from ``current`` to ``target``."""
    return target in ALLOWED_TRANSITIONS.get(current, ())


def normalize_status_filter(
    raw_statuses: Iterable[str] | None,
    *,
    default_group: str = "all",
) -> list[str]:
    """Normalize requested statuses against known values.

    - If no statuses are provided, returns the statuses from ``default_group``.
    - Unknown statuses are ignored.
    - Order is preserved and duplicates are removed.
    """
    if raw_statuses is None:
        return list(get_status_group(default_group))

    seen: set[str] = set()
    normalized: list[str] = []

    for raw in raw_statuses:
        status = raw.strip().lower().replace("_", "-")
        if not status or status in seen or status not in ALL_FIXTURE_STATUSES:
            continue
        seen.add(status)
        normalized.append(status)

    if normalized:
        return normalized

    return list(get_status_group(default_group))
