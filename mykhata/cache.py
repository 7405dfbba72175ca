"""In-process TTL caches for recognition results, receipts and user data."""

from __future__ import annotations

import hashlib
import threading
import time
from typing import Any, Callable

Clock = Callable[[], float]

CACHE_TYPES = ("user", "ocr", "receipt")


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes, used as a cache key."""
    return hashlib.sha256(data).hexdigest()


class TTLCache:
    """A dict-backed cache whose entries expire after a time-to-live.

    Entries are written whole and evicted lazily on read or by
    :meth:`purge_expired`.
    """

    def __init__(
        self, name: str, default_ttl: float, clock: Clock = time.monotonic
    ) -> None:
        self.name = name
        self._default_ttl = float(default_ttl)
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self._misses += 1
                self._evictions += 1
                return None
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        ttl = self._default_ttl if ttl is None else float(ttl)
        if ttl <= 0:
            return False
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def keys(self) -> list[str]:
        """Return keys of entries that have not expired."""
        now = self._clock()
        with self._lock:
            return [k for k, (_, exp) in self._entries.items() if now < exp]

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
            for key in expired:
                del self._entries[key]
            self._evictions += len(expired)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = 0

    def stats(self) -> dict[str, int]:
        return {
            "keys": len(self.keys()),
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }


class CacheService:
    """Groups the user, OCR and receipt caches and tracks combined stats."""

    def __init__(
        self,
        *,
        ocr_ttl: float = 1800,
        user_ttl: float = 300,
        receipt_ttl: float = 600,
        clock: Clock = time.monotonic,
    ) -> None:
        self._caches: dict[str, TTLCache] = {
            "user": TTLCache("user", user_ttl, clock),
            "ocr": TTLCache("ocr", ocr_ttl, clock),
            "receipt": TTLCache("receipt", receipt_ttl, clock),
        }
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0}
        self._lock = threading.Lock()

    def get_cache(self, cache_type: str) -> TTLCache:
        try:
            return self._caches[cache_type]
        except KeyError:
            raise ValueError(
                f"Unknown cache type: {cache_type!r} "
                f"(choose from {', '.join(CACHE_TYPES)})"
            ) from None

    def get(self, key: str, cache_type: str = "user") -> Any | None:
        value = self.get_cache(cache_type).get(key)
        with self._lock:
            self._stats["hits" if value is not None else "misses"] += 1
        return value

    def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        cache_type: str = "user",
    ) -> bool:
        ok = self.get_cache(cache_type).set(key, value, ttl)
        if ok:
            with self._lock:
                self._stats["sets"] += 1
        return ok

    def delete(self, key: str, cache_type: str = "user") -> bool:
        ok = self.get_cache(cache_type).delete(key)
        if ok:
            with self._lock:
                self._stats["deletes"] += 1
        return ok

    # User data

    def get_user_data(self, user_id: str, key: str) -> Any | None:
        return self.get(f"user_{user_id}_{key}", "user")

    def set_user_data(
        self, user_id: str, key: str, value: Any, ttl: float | None = None
    ) -> bool:
        return self.set(f"user_{user_id}_{key}", value, ttl, "user")

    def delete_user_data(self, user_id: str, key: str) -> bool:
        return self.delete(f"user_{user_id}_{key}", "user")

    def clear_user_data(self, user_id: str) -> int:
        """Remove every cached entry for a user; returns the number removed."""
        prefix = f"user_{user_id}_"
        cache = self._caches["user"]
        removed = 0
        for key in cache.keys():
            if key.startswith(prefix) and cache.delete(key):
                removed += 1
        return removed

    # Recognition results

    def get_ocr_result(self, image_hash: str) -> Any | None:
        return self.get(f"ocr_{image_hash}", "ocr")

    def set_ocr_result(
        self, image_hash: str, result: Any, ttl: float | None = None
    ) -> bool:
        return self.set(f"ocr_{image_hash}", result, ttl, "ocr")

    # Receipts

    def get_receipt_data(self, receipt_id: str) -> Any | None:
        return self.get(f"receipt_{receipt_id}", "receipt")

    def set_receipt_data(
        self, receipt_id: str, data: Any, ttl: float | None = None
    ) -> bool:
        return self.set(f"receipt_{receipt_id}", data, ttl, "receipt")

    def delete_receipt_data(self, receipt_id: str) -> bool:
        return self.delete(f"receipt_{receipt_id}", "receipt")

    # Housekeeping

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            stats: dict[str, Any] = dict(self._stats)
        lookups = stats["hits"] + stats["misses"]
        stats["hit_rate"] = stats["hits"] / lookups if lookups else 0.0
        stats["caches"] = {
            name: cache.stats() for name, cache in self._caches.items()
        }
        return stats

    def purge_expired(self) -> int:
        return sum(cache.purge_expired() for cache in self._caches.values())

    def clear_all(self) -> None:
        for cache in self._caches.values():
            cache.clear()
        with self._lock:
            self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0}
