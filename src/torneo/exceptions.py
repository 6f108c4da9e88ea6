"""
Error kinds raised by the tournament engine and its services.

Every failure the engine can report maps onto one of these classes so
that a boundary layer (HTTP handler, CLI) can translate it into a
response without inspecting messages:

- ValidationError: malformed scores, set totals that do not match the
  recorded sets, invalid identifiers, not enough teams
- NotFoundError: unknown tournament, team or fixture
- PreconditionError: wrong tournament format, prerequisite stage not
  complete, fixture not in a playable state
- ConflictError: successor seat collision, duplicate generation, lost
  write race
- PersistenceError: opaque wrapper around database failures
"""

from typing import Optional


class TournamentError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(TournamentError):
    """
    Raised when input data is malformed.

    Attributes:
        errors: Individual problems found. Validators that check several
                rules at once (e.g. volleyball sets) collect all of them
                here instead of stopping at the first.
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class NotFoundError(TournamentError):
    """Raised when a tournament, team or fixture does not exist."""
    pass


class PreconditionError(TournamentError):
    """Raised when an operation is not allowed in the current state."""
    pass


class ConflictError(TournamentError):
    """Raised when a write would collide with existing state."""
    pass


class PersistenceError(TournamentError):
    """Raised when the database layer fails underneath an operation."""
    pass
