"""Two-tier cache facade: process-local first, persistent second.

Reads check tier 1, then tier 2; a tier-2 hit is copied back into tier 1.
Writes go to both tiers and tolerate either failing independently.
"""

from typing import Any, Optional

from doughcalc.cache.memory import MemoryCache
from doughcalc.cache.upstash import UpstashCache
from doughcalc.utils.logger import logger
from doughcalc.utils.safe import safe_execute_async


class LayeredCache:
    def __init__(self, memory: MemoryCache, persistent: Optional[UpstashCache] = None, ttl: int = 3600) -> None:
        self.memory = memory
        self.persistent = persistent
        self.ttl = ttl

    @property
    def persistent_enabled(self) -> bool:
        return self.persistent is not None

    async def get(self, key: str) -> Optional[Any]:
        value = await self.memory.get(key)
        if value is not None:
            logger.debug(f"Cache hit (memory): {key}")
            return value

        if self.persistent is None:
            return None
        value = await self.persistent.get(key)
        if value is None:
            return None
        logger.debug(f"Cache hit (upstash): {key}")
        await safe_execute_async(self.memory.set(key, value, self.ttl), "Memory cache repopulate")
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = ttl or self.ttl
        await safe_execute_async(self.memory.set(key, value, ttl), "Memory cache SET")
        if self.persistent is not None:
            await self.persistent.set(key, value, ttl)
        logger.debug(f"Cached analysis {key} for {ttl}s")

    async def delete(self, key: str) -> None:
        await self.memory.delete(key)
        if self.persistent is not None:
            await self.persistent.delete(key)

    async def close(self) -> None:
        await self.memory.stop_sweeper()
        if self.persistent is not None:
            await self.persistent.close()
