# backend/studio_booking/core/reservation_guard.py
"""
Per-resource critical section for check-then-write reservation flows.

Slot lock acquisition, booking creation and session extension all read the
current schedule and then insert or update rows. Two callers racing on the
same room or engineer must be serialized so that only one of them observes a
free window.

* PostgreSQL: transaction-scoped advisory locks (``pg_advisory_xact_lock``)
  keyed on ``hashtext(key)``. Taking them autobegins the session transaction,
  and they are released when that transaction commits or rolls back.
* Other dialects (SQLite in tests, single node deployments): one process-local
  ``threading.Lock`` per key, held until the guarded block exits. This only
  excludes threads of the same process; several workers sharing one SQLite
  file are not serialized against each other. A key's lock is dropped once
  no caller holds or waits on it.

Services enter the guard first and open their transaction inside it, so in
both modes the lock is held until after the commit.

Keys are always taken in sorted order to avoid lock-order deadlocks.
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
import logging
import threading
import time
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..database import get_dialect_name
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_LOCAL_LOCKS: Dict[str, "_LocalLock"] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()


def room_key(room_id: str) -> str:
    return f"room:{room_id}"


def engineer_key(engineer_id: str) -> str:
    return f"engineer:{engineer_id}"


def resource_keys(room_id: str, engineer_id: Optional[str] = None) -> List[str]:
    """Return the sorted guard keys for a room and optional engineer."""
    keys = {room_key(room_id)}
    if engineer_id:
        keys.add(engineer_key(engineer_id))
    return sorted(keys)


class _LocalLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        # callers holding or waiting on the lock
        self.holders = 0


@contextmanager
def _local_lock(key: str) -> Iterator[None]:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(key)
        if entry is None:
            entry = _LOCAL_LOCKS[key] = _LocalLock()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _LOCAL_LOCKS_GUARD:
            entry.holders -= 1
            if entry.holders == 0:
                del _LOCAL_LOCKS[key]


@contextmanager
def reservation_guard(db: Session, keys: Iterable[str]) -> Iterator[List[str]]:
    """
    Serialize writers on every key in ``keys`` for the duration of the block.

    Yields the sorted key list that was locked.
    """
    ordered = sorted(set(keys))
    dialect = get_dialect_name(db)
    started = time.monotonic()

    if dialect == "postgresql":
        for key in ordered:
            db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})
        prometheus_metrics.record_reservation_guard("advisory", time.monotonic() - started)
        logger.debug("reservation_guard_acquired", extra={"keys": ordered, "mode": "advisory"})
        yield ordered
        return

    with ExitStack() as stack:
        for key in ordered:
            stack.enter_context(_local_lock(key))
        prometheus_metrics.record_reservation_guard("local", time.monotonic() - started)
        logger.debug("reservation_guard_acquired", extra={"keys": ordered, "mode": "local"})
        yield ordered
