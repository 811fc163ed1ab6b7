"""Pessimistic row locks for the shared ledgers.

Stock and bonus-ledger updates are read-modify-write sequences. Each
lifecycle operation therefore takes an exclusive lock on every ledger row it
is about to read, the in-process equivalent of ``SELECT ... FOR UPDATE``,
and keeps it until its unit of work has committed.

Keys are always acquired in sorted order so two operations touching the same
rows in a different order cannot deadlock.
"""

import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

import structlog

from commerce.errors import LockTimeout

logger = structlog.get_logger(__name__)


def stock_key(organization_id, variant_id, location_id) -> str:
    return f"stock:{organization_id}:{variant_id}:{location_id}"


def bonus_key(organization_id, user_id) -> str:
    return f"bonus:{organization_id}:{user_id}"


def order_key(order_id) -> str:
    return f"order:{order_id}"


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class RowLocks:
    """A registry of exclusive locks addressed by string keys.

    Entries are created on demand and discarded once nobody holds or waits
    for them, so the registry does not grow with the number of rows ever
    touched.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)

    def _acquire(self, key: str, deadline: float, timeout: float) -> _Entry:
        entry = self._checkout(key)
        remaining = max(deadline - time.monotonic(), 0)
        if not entry.lock.acquire(timeout=remaining):
            self._checkin(key, entry)
            logger.warning("lock_timeout", key=key, timeout=timeout)
            raise LockTimeout(key, timeout)
        return entry

    def _release(self, key: str, entry: _Entry) -> None:
        entry.lock.release()
        self._checkin(key, entry)

    @contextmanager
    def hold(self, keys: Iterable[str], timeout: float = 10.0) -> Iterator[list[str]]:
        """Hold every lock in ``keys`` for the duration of the block.

        Raises ``LockTimeout`` if all locks cannot be taken within ``timeout``
        seconds; locks taken so far are released first.
        """
        ordered = sorted(set(keys))
        deadline = time.monotonic() + timeout
        held: list[tuple[str, _Entry]] = []
        try:
            for key in ordered:
                held.append((key, self._acquire(key, deadline, timeout)))
            yield ordered
        finally:
            for key, entry in reversed(held):
                self._release(key, entry)

    def is_locked(self, key: str) -> bool:
        with self._guard:
            entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()


row_locks = RowLocks()
