"""
Bounded read-through cache.

Entries expire after a TTL and the least recently used entry is evicted once
``max_size`` is reached. Time is passed in by the caller so the cache never
reads the system clock itself. Contents are disposable: dropping the cache at
any moment only costs extra store reads.
"""

import datetime as dt
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional


@dataclass
class CacheEntry:
    value: Any
    expires_at: dt.datetime

    def is_expired(self, now: dt.datetime) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    invalidations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "hit_rate": round(self.hits / total, 4) if total else 0.0,
        }


class TTLCache:
    def __init__(self, max_size: int = 100, ttl_seconds: int = 300):
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._ttl = dt.timedelta(seconds=ttl_seconds)
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable, now: dt.datetime) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self.stats.misses += 1
                return None
            self._entries.move_to_end(key)
            self.stats.hits += 1
            return entry.value

    def put(self, key: Hashable, value: Any, now: dt.datetime) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=now + self._ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)
                self.stats.evictions += 1

    def get_or_load(self, key: Hashable, now: dt.datetime, loader: Callable[[], Any]) -> Any:
        value = self.get(key, now)
        if value is None:
            value = loader()
            if value is not None:
                self.put(key, value, now)
        return value

    def invalidate(self, key: Hashable) -> bool:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            if removed:
                self.stats.invalidations += 1
            return removed

    def invalidate_where(self, predicate: Callable[[Hashable], bool]) -> int:
        with self._lock:
            keys = [k for k in self._entries if predicate(k)]
            for k in keys:
                del self._entries[k]
            self.stats.invalidations += len(keys)
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
