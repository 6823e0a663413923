import threading
from dataclasses import dataclass
from typing import Generic, TypeVar

from ip_finder.clock import Clock, default_clock

V = TypeVar("V")

# Cache key used when the caller asks about its own address.
OWN_ADDRESS_KEY = "self"


def make_lookup_key(ip: str | None) -> str:
    """Derive the cache key for a lookup.

    An explicit address is used verbatim; a missing address maps to the
    own-address sentinel. Addresses are validated as IP literals before they
    get here, so the sentinel never collides with a real address.
    """
    return ip or OWN_ADDRESS_KEY


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    key: str
    value: V
    inserted_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class ResultCache(Generic[V]):
    """Thread-safe in-memory cache with a fixed per-entry TTL.

    Expiry is checked on every read, so an expired entry is never returned
    even if `purge_expired` has not run yet.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = default_clock) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_fresh(now):
                del self._entries[key]
                return None
            return entry.value

    def put(self, key: str, value: V) -> None:
        """Store `value` under `key`, replacing any previous entry."""
        now = self._clock()
        entry = CacheEntry(key=key, value=value, inserted_at=now, expires_at=now + self._ttl_seconds)
        with self._lock:
            self._entries[key] = entry

    def clear(self) -> int:
        """Remove every entry and return how many were dropped."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed

    def purge_expired(self) -> int:
        """Remove expired entries and return how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry.is_fresh(now))
