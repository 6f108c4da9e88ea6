"""
Per-tournament write locks for generation and result entry.

A lock taken inside a session's transaction is held until that
transaction commits or rolls back, not just until the ``with`` block
exits. Services only flush, so releasing any earlier would let a second
writer read the tournament before the first one's rows are committed.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from torneo.config import settings
from torneo.exceptions import ConflictError

logger = logging.getLogger(__name__)

# Session.info key for locks waiting on the end of the session's transaction
HELD_LOCKS_KEY = "torneo_held_tournament_locks"


class _LocalLock:
    """A process-local tournament lock and how many callers are using it."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


_registry_guard = threading.Lock()
_local_locks: dict[int, _LocalLock] = {}


def advisory_lock_key(name: str) -> int:
    """Return a deterministic signed 64-bit lock key from a lock name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def tournament_lock_key(tournament_id: int) -> int:
    return advisory_lock_key(f"torneo:tournament:{tournament_id}")


def acquire_postgres_xact_lock(
    connection: Connection,
    *,
    key: int,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 1.0,
) -> bool:
    """
    Take a transaction-scoped PostgreSQL advisory lock, polling until timeout.

    The lock is released by PostgreSQL when the surrounding transaction
    commits or rolls back.

    Returns:
        True if the lock was acquired before the deadline.
    """
    deadline = time.monotonic() + max(timeout_seconds, 0.0)
    while True:
        acquired = bool(
            connection.execute(
                text("SELECT pg_try_advisory_xact_lock(:key)"),
                {"key": key},
            ).scalar()
        )
        if acquired:
            return True
        if timeout_seconds <= 0 or time.monotonic() >= deadline:
            return False
        time.sleep(max(poll_interval_seconds, 0.05))


def _checkout(tournament_id: int) -> _LocalLock:
    with _registry_guard:
        entry = _local_locks.get(tournament_id)
        if entry is None:
            entry = _local_locks[tournament_id] = _LocalLock()
        entry.users += 1
        return entry


def _checkin(tournament_id: int, entry: _LocalLock) -> None:
    # Evict once nobody holds or waits on the lock
    with _registry_guard:
        entry.users -= 1
        if entry.users == 0 and _local_locks.get(tournament_id) is entry:
            del _local_locks[tournament_id]


def _release(tournament_id: int, entry: _LocalLock) -> None:
    entry.lock.release()
    _checkin(tournament_id, entry)
    logger.debug("Released lock for tournament %d", tournament_id)


@event.listens_for(Session, "after_transaction_end")
def _release_held_locks(session: Session, transaction) -> None:
    """Release tournament locks once the session's outermost transaction ends."""
    if transaction.parent is not None:
        return
    for tournament_id, entry in reversed(session.info.pop(HELD_LOCKS_KEY, [])):
        _release(tournament_id, entry)


@contextmanager
def tournament_lock(
    session: Session,
    tournament_id: int,
    timeout_seconds: Optional[float] = None,
) -> Generator[None, None, None]:
    """
    Serialise writes to one tournament.

    Always takes a process-local lock; on PostgreSQL it also takes an
    advisory lock inside the session's transaction so other processes
    are excluded until the session commits. If the session is inside a
    transaction when the block exits, the local lock stays held until
    that transaction ends.

    Raises:
        ConflictError: if the lock cannot be acquired before the timeout.
    """
    if timeout_seconds is None:
        timeout_seconds = settings.lock_timeout_seconds

    entry = _checkout(tournament_id)
    if not entry.lock.acquire(timeout=max(timeout_seconds, 0.0)):
        _checkin(tournament_id, entry)
        raise ConflictError(f"Tournament {tournament_id} is locked by another writer")

    try:
        bind = session.get_bind()
        if bind.dialect.name == "postgresql":
            acquired = acquire_postgres_xact_lock(
                session.connection(),
                key=tournament_lock_key(tournament_id),
                timeout_seconds=timeout_seconds,
                poll_interval_seconds=settings.lock_poll_interval_seconds,
            )
            if not acquired:
                raise ConflictError(
                    f"Tournament {tournament_id} is locked by another process"
                )
    except BaseException:
        _release(tournament_id, entry)
        raise

    logger.debug("Acquired lock for tournament %d", tournament_id)
    try:
        yield
    finally:
        if session.in_transaction():
            session.info.setdefault(HELD_LOCKS_KEY, []).append((tournament_id, entry))
        else:
            _release(tournament_id, entry)
