"""In-memory key/value store with per-key expiry.

Backs the faucet's admission state: rate-limit reservations (with a TTL)
and last-seen ledger nonces (without one). Reads never extend an entry's
lifetime. The store is per-process; it is not shared between service
instances and does not survive restarts.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class StoreItem:
    """Stored value plus its absolute expiry (``None`` never expires)."""

    value: Any
    expires_at: float | None

    def remaining(self, now: float) -> float | None:
        if self.expires_at is None:
            return None
        return self.expires_at - now


class ExpiringKeyStore:
    """Thread-safe in-memory store with optional per-key TTL.

    Expired entries are dropped lazily when read and swept on writes.
    ``None`` is reserved to signal a miss and cannot be stored.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty store.

        Args:
            clock: Monotonic time source returning seconds.
        """
        self._clock = clock
        self._store: dict[str, StoreItem] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"ExpiringKeyStore(size={len(self._store)}, hits={self._hits}, "
            f"misses={self._misses}, evictions={self._evictions})"
        )

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` under ``key``, replacing any previous value and expiry.

        Args:
            key: Store key.
            value: Value to keep; must not be ``None``.
            ttl: Lifetime in seconds, or ``None`` to keep the value forever.

        Raises:
            ValueError: If value is None or ttl is not positive.
        """
        if value is None:
            raise ValueError("value must not be None")
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be > 0 (or None for no expiry)")

        with self._lock:
            now = self._clock()
            self._evict_expired_locked(now)
            expires_at = now + ttl if ttl is not None else None
            self._store[key] = StoreItem(value=value, expires_at=expires_at)

    def get(self, key: str) -> Any | None:
        """Return the live value for ``key`` or ``None``. Does not touch the TTL."""
        entry = self.get_with_ttl(key)
        return entry[0] if entry is not None else None

    def get_with_ttl(self, key: str) -> tuple[Any, float | None] | None:
        """Return ``(value, remaining_seconds)`` for a live key, else ``None``.

        ``remaining_seconds`` is ``None`` for entries stored without a TTL.
        The lookup is side-effect free with respect to expiry.
        """
        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                return None

            now = self._clock()
            if self._is_expired(item, now):
                self._evict_single(key)
                self._misses += 1
                return None

            self._hits += 1
            return item.value, item.remaining(now)

    def remove(self, key: str) -> None:
        """Delete ``key`` if present. Idempotent."""
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all entries and reset counters."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics without exposing keys or values."""
        with self._lock:
            return {
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_expired_locked(self, now: float) -> None:
        expired = [k for k, item in self._store.items() if self._is_expired(item, now)]
        for key in expired:
            self._evict_single(key)
        if expired:
            logger.debug("store.swept", extra={"evicted": len(expired), "size": len(self._store)})

    @staticmethod
    def _is_expired(item: StoreItem, now: float) -> bool:
        return item.expires_at is not None and now >= item.expires_at
