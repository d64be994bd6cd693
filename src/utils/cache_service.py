"""
Time-bounded caches backing the intake guard.

``WindowCache`` is the seam: the in-process implementation below serves a
single Lambda container, and ``repositories.dynamodb_repo.DynamoDbWindowCache``
shares state across containers. Times are epoch seconds supplied by the caller
so tests can drive the clock.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from threading import Lock
from typing import Any, Optional


class WindowCache(ABC):
    """Key/value store whose entries expire at an absolute time."""

    @abstractmethod
    def get(self, key: str, now: float) -> Optional[Any]:
        """Return the live value for key, or None if absent or expired."""

    @abstractmethod
    def put(self, key: str, value: Any, ttl_seconds: float, now: float) -> None:
        """Store value until now + ttl_seconds."""

    @abstractmethod
    def increment(self, key: str, ttl_seconds: float, now: float) -> int:
        """
        Atomically bump the counter stored at key and return the new count.

        An absent or expired entry starts a new window with count 1 that
        expires at now + ttl_seconds; later increments keep that expiry.
        """

    @abstractmethod
    def add_if_absent(self, key: str, ttl_seconds: float, now: float) -> bool:
        """Atomically claim key; False when a live entry already holds it."""

    @abstractmethod
    def discard(self, key: str) -> None:
        """Remove key whether or not it is live."""

    @abstractmethod
    def sweep(self, now: float) -> int:
        """Drop expired entries and return how many were removed."""


class InMemoryWindowCache(WindowCache):
    """Thread-safe in-process cache with opportunistic expiry sweeps."""

    def __init__(self, sweep_threshold: int = 1000):
        self.sweep_threshold = sweep_threshold
        self._entries: "OrderedDict[str, tuple[Any, float]]" = OrderedDict()
        self._lock = Lock()

    def get(self, key: str, now: float) -> Optional[Any]:
        with self._lock:
            return self._live_value(key, now)

    def put(self, key: str, value: Any, ttl_seconds: float, now: float) -> None:
        with self._lock:
            self._store(key, value, now + ttl_seconds, now)

    def increment(self, key: str, ttl_seconds: float, now: float) -> int:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry[1] <= now:
                self._store(key, 1, now + ttl_seconds, now)
                return 1
            count = entry[0] + 1
            self._entries[key] = (count, entry[1])
            return count

    def add_if_absent(self, key: str, ttl_seconds: float, now: float) -> bool:
        with self._lock:
            if self._live_value(key, now) is not None:
                return False
            self._store(key, True, now + ttl_seconds, now)
            return True

    def discard(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self, now: float) -> int:
        with self._lock:
            return self._sweep_locked(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._entries),
                "sweep_threshold": self.sweep_threshold,
            }

    def _live_value(self, key: str, now: float) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= now:
            del self._entries[key]
            return None
        return value

    def _store(self, key: str, value: Any, expires_at: float, now: float) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = (value, expires_at)
        if len(self._entries) > self.sweep_threshold:
            self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)
