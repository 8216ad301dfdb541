"""
In-memory Result Cache for Zeus Meteo

Memoizes finished reports, daily forecasts and geocoding lookups so that
repeated requests inside the TTL never hit the providers again.

Rules:
- An entry is stale once now - stored_at >= ttl; stale entries are never
  served and are evicted on lookup
- A background sweep removes every stale entry periodically, even when
  nothing is read
- Capacity is bounded; inserting into a full cache evicts the oldest
  inserted entry (FIFO, not LRU)

Nothing is persisted. All operations are synchronous, so under asyncio a
compound check-evict-insert never interleaves with another request.
"""

import asyncio
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600.0   # 10 minutes
DEFAULT_MAX_ENTRIES = 100
DEFAULT_SWEEP_SECONDS = 60.0


@dataclass
class CacheEntry:
    """Cached payload with its insertion time (clock seconds)."""
    key: str
    payload: Any
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_stale(self, now: float, ttl: float) -> bool:
        return self.age(now) >= ttl


class ResultCache:
    """
    TTL + capacity bounded cache with insertion-order eviction.

    The clock is any zero-argument callable returning seconds; tests pass a
    fake one to step time forward.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        sweep_interval: float = DEFAULT_SWEEP_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.sweep_interval = sweep_interval
        self._clock = clock or time.monotonic
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._sweep_task: Optional[asyncio.Task] = None
        self._stats = {"hits": 0, "misses": 0, "expired": 0, "evicted": 0, "swept": 0}

    @staticmethod
    def make_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Deterministic key for (endpoint, params).

        Parameter order does not matter: {"a": 1, "b": 2} and {"b": 2, "a": 1}
        give the same key.
        """
        serialized = json.dumps(dict(params or {}), sort_keys=True, default=str, ensure_ascii=False)
        return f"{endpoint}:{serialized}"

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_stale(self._clock(), self.ttl_seconds)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the payload, or default when absent or stale (stale entries are evicted)."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return default

        if entry.is_stale(self._clock(), self.ttl_seconds):
            del self._entries[key]
            self._stats["expired"] += 1
            self._stats["misses"] += 1
            logger.debug(f"[ResultCache] Expired {key}")
            return default

        self._stats["hits"] += 1
        return entry.payload

    def set(self, key: str, value: Any) -> None:
        """Store a payload, evicting the oldest-inserted entry when full."""
        if key in self._entries:
            # Re-inserting refreshes both the timestamp and the FIFO position
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            oldest, _ = self._entries.popitem(last=False)
            self._stats["evicted"] += 1
            logger.debug(f"[ResultCache] Capacity {self.max_entries} reached, evicted {oldest}")

        self._entries[key] = CacheEntry(key=key, payload=value, stored_at=self._clock())

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        logger.info("[ResultCache] Cleared")

    def sweep(self) -> int:
        """Remove every stale entry. Returns how many were removed."""
        now = self._clock()
        stale = [k for k, e in self._entries.items() if e.is_stale(now, self.ttl_seconds)]
        for key in stale:
            del self._entries[key]
        if stale:
            self._stats["swept"] += len(stale)
            logger.info(f"[ResultCache] Sweep removed {len(stale)} stale entries ({self.size} left)")
        return len(stale)

    def stats(self) -> Dict[str, Any]:
        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "size": self.size,
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hit_rate": round(self._stats["hits"] / lookups * 100, 1) if lookups else 0.0,
        }

    # --- background sweep ------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop (idempotent)."""
        if self.running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.info(f"[ResultCache] Sweep task started (every {self.sweep_interval:.0f}s)")

    async def aclose(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[ResultCache] Sweep task stopped")
