"""In-memory caching for geocoding lookups"""

from collections import OrderedDict
from functools import wraps
import hashlib
import json
import threading
import time
from typing import Any, Callable, Dict, Tuple

_MISSING = object()


class InMemoryCache:
    """
    Bounded TTL cache keyed by string.

    Stored values may be None ("looked up, nothing found"), so callers use
    ``lookup`` to tell a cached None from a miss. When ``max_entries`` is
    reached the oldest entry is evicted.
    """

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self._lookups = 0
        self._hits = 0
        self._evictions = 0

    def lookup(self, key: str) -> Tuple[bool, Any]:
        """(hit, value) for key; expired entries are dropped on the way"""
        with self._lock:
            self._lookups += 1
            entry = self._entries.get(key, _MISSING)
            if entry is _MISSING:
                return False, None

            expires_at, value = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return False, None

            self._hits += 1
            return True, value

    def get(self, key: str, default: Any = None) -> Any:
        hit, value = self.lookup(key)
        return value if hit else default

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self.clock() < entry[0]

    def set(self, key: str, value: Any, ttl_seconds: float = 3600) -> None:
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1
            self._entries[key] = (self.clock() + ttl_seconds, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def clear_expired(self) -> int:
        """Drop expired entries, returns how many were removed"""
        now = self.clock()
        with self._lock:
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        return {
            'entries': len(self._entries),
            'max_entries': self.max_entries,
            'lookups': self._lookups,
            'hits': self._hits,
            'hit_rate': round(self._hits / self._lookups, 4) if self._lookups else 0,
            'evictions': self._evictions,
        }


# Shared by every geocoding client in the process
geocode_cache = InMemoryCache()


def cache_key(*parts: Any) -> str:
    """Stable digest of JSON-serialisable key parts"""
    raw = json.dumps(parts, sort_keys=True, default=str)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def cached_geocode(ttl_seconds: int = 86400):
    """
    Cache a client method's result in ``self.cache``.

    The key covers the method name, the call arguments and the client's
    lookup settings (``base_url``, ``bounds``, ``region_suffix`` and
    ``language``), so only identically configured clients share entries. None
    results are cached too; exceptions are not. A client whose ``cache`` is
    None always goes to the network.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            cache = getattr(self, 'cache', None)
            if cache is None:
                return func(self, *args, **kwargs)

            key = cache_key(
                func.__name__,
                getattr(self, 'base_url', ''),
                getattr(self, 'bounds', None),
                getattr(self, 'region_suffix', ''),
                getattr(self, 'language', ''),
                args,
                sorted(kwargs.items()),
            )
            hit, value = cache.lookup(key)
            if hit:
                return value

            result = func(self, *args, **kwargs)
            cache.set(key, result, ttl_seconds)
            return result
        return wrapper
    return decorator


def get_cache_statistics() -> Dict[str, Any]:
    return {
        'geocode_cache': geocode_cache.get_stats(),
    }
