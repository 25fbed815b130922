"""Keyed row locks for serializing read-modify-write sequences.

Every mutation of an Order, a Payment, stock for a product, or a webhook event
runs while holding the lock for its key. Keys are acquired in sorted order so
two callers needing overlapping sets can never deadlock, locks are re-entrant
for the holding thread, and waiting is bounded by LOCK_TIMEOUT_SECONDS.

Usage:
    with row_locks.hold(order_key(order_id), stock_key(product_id)):
        current_domain.process(command, asynchronous=False)
"""

import threading
from contextlib import contextmanager

import structlog

from marketplace.config import get_settings
from marketplace.errors import LockTimeout

logger = structlog.get_logger(__name__)


def order_key(order_id) -> str:
    return f"order:{order_id}"


def intent_key(payment_intent_id) -> str:
    return f"intent:{payment_intent_id}"


def stock_key(product_id) -> str:
    return f"stock:{product_id}"


def webhook_key(event_id) -> str:
    return f"webhook:{event_id}"


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.refs = 0


class RowLocks:
    """A registry of re-entrant locks created on demand per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: str, timeout: float | None = None):
        """Hold the locks for all keys for the duration of the block.

        Raises LockTimeout (and releases anything already taken) when a lock
        cannot be acquired within the timeout.
        """
        wait = get_settings().lock_timeout_seconds if timeout is None else timeout
        ordered = sorted({key for key in keys if key})
        held: list[tuple[str, _Entry]] = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                if not entry.lock.acquire(timeout=wait if wait > 0 else -1):
                    self._checkin(key, entry)
                    logger.warning("Lock wait timed out", lock_key=key, timeout=wait)
                    raise LockTimeout(key, wait)
                held.append((key, entry))
            yield
        finally:
            for key, entry in reversed(held):
                entry.lock.release()
                self._checkin(key, entry)

    def is_held(self, key: str) -> bool:
        with self._guard:
            return key in self._entries


row_locks = RowLocks()
