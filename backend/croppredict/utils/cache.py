# backend/croppredict/utils/cache.py
import time
import threading
import logging
from typing import Any, Optional

log = logging.getLogger("croppredict.cache")

# -----------------------------
# Simple in-memory TTL cache (sync)
# -----------------------------
class SimpleTTLCache:
    def __init__(self, default_ttl: Optional[int] = 600):
        # _data: key -> (value, expiry_ts or None)
        self._data: dict[str, tuple[Any, Optional[float]]] = {}
        self._default_ttl = default_ttl
        self._lock = threading.Lock()

    def _now(self) -> float:
        return time.time()

    def get(self, key: str, default: Any = None) -> Any:
        now = self._now()
        with self._lock:
            item = self._data.get(key)
            if not item:
                return default
            value, expiry = item
            if expiry is not None and expiry <= now:
                # expired → drop
                self._data.pop(key, None)
                return default
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set a value with optional per-key TTL."""
        with self._lock:
            eff_ttl = ttl if ttl is not None else self._default_ttl
            expiry = (self._now() + eff_ttl) if eff_ttl is not None else None
            self._data[key] = (value, expiry)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


# Singleton cache instance used for geocoding lookups
cache = SimpleTTLCache(default_ttl=600)


async def get_json(key: str) -> Optional[Any]:
    val = cache.get(key)
    if val is not None:
        log.debug("cache hit: %s", key)
    return val

async def set_json(key: str, val: Any, ttl_sec: Optional[int] = None):
    cache.set(key, val, ttl=ttl_sec)
    log.debug("cached for %ss: %s", ttl_sec, key)
