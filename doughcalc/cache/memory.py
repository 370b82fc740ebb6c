"""Tier 1: process-local TTL cache.

Values are stored as JSON strings so callers always get a fresh copy and
non-serializable values are rejected at write time. Expired entries are
dropped on read and by ``sweep``; the composition root runs the sweep
periodically. At capacity the oldest entry is evicted first.
"""

import asyncio
import json
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from doughcalc.utils.logger import logger
from doughcalc.utils.safe import safe_execute_sync


class MemoryCache:
    """In-process cache with the same async contract as the persistent tier.

    Args:
        prefix: Prepended to every key.
        default_ttl: Seconds used when ``set`` gets no TTL.
        max_entries: Capacity; the oldest entry is evicted beyond it.
        clock: Monotonic seconds source (tests inject a fake).
    """

    def __init__(
        self,
        prefix: str = "recipe-cache:",
        default_ttl: int = 3600,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        # key -> (expiry, json string); insertion order is age order
        self._entries: "OrderedDict[str, tuple[float, str]]" = OrderedDict()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[Any]:
        cache_key = self.prefix + key
        entry = self._entries.get(cache_key)
        if entry is None:
            return None
        expiry, payload = entry
        if self._clock() > expiry:
            del self._entries[cache_key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        cache_key = self.prefix + key
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"Memory cache rejected non-JSON value for {key}: {e}")
            return
        self._entries.pop(cache_key, None)
        self._entries[cache_key] = (self._clock() + (ttl or self.default_ttl), payload)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Memory cache full, evicted {evicted}")

    async def delete(self, key: str) -> None:
        self._entries.pop(self.prefix + key, None)

    async def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, (expiry, _) in self._entries.items() if now > expiry]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Memory cache sweep removed {len(expired)} expired entries")
        return len(expired)

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            safe_execute_sync(self.sweep, "Memory cache sweep")

    def start_sweeper(self, interval: float) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(interval))
            logger.debug(f"Memory cache sweeper started (every {interval}s)")

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
