"""Tier 2: Upstash Redis over its REST API.

Each command is POSTed as a JSON array (``["SET", key, value, "EX", ttl]``)
with a bearer token; Upstash answers ``{"result": ...}`` or
``{"error": "..."}``. Values are stored as JSON strings.

A Redis outage must never fail a calculation, so every public method goes
through ``safe_execute_async`` and degrades to "absent" / no-op.
"""

import json
from typing import Any, Optional

import aiohttp

from doughcalc.utils.logger import logger
from doughcalc.utils.safe import safe_execute_async


class UpstashError(Exception):
    """Upstash answered with an error payload or a non-2xx status."""


class UpstashCache:
    """Persistent cache tier shared across processes.

    Args:
        url: Upstash REST URL (``UPSTASH_REDIS_REST_URL``).
        token: Upstash REST token (``UPSTASH_REDIS_REST_TOKEN``).
        prefix: Prepended to every key.
        default_ttl: Seconds used when ``set`` gets no TTL.
        timeout: Seconds allowed per command.
        session: Pre-built ``aiohttp.ClientSession`` (tests inject a mock).
    """

    def __init__(
        self,
        url: str,
        token: str,
        prefix: str = "recipe-cache:",
        default_ttl: int = 60 * 60 * 24,
        timeout: float = 5,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.token = token
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.timeout = timeout
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def command(self, *args: Any) -> Any:
        """Run one Redis command and return its ``result``.

        Raises:
            UpstashError: Error payload or HTTP error status.
            aiohttp.ClientError: Network failure.
        """
        session = self._get_session()
        async with session.post(self.url, json=[str(a) for a in args]) as response:
            body = await response.json(content_type=None)
            if response.status >= 400 or (isinstance(body, dict) and body.get("error")):
                error = body.get("error") if isinstance(body, dict) else body
                raise UpstashError(f"Upstash {args[0]} failed ({response.status}): {error}")
            return body.get("result") if isinstance(body, dict) else None

    async def _get(self, key: str) -> Optional[Any]:
        result = await self.command("GET", self.prefix + key)
        return json.loads(result) if result is not None else None

    async def get(self, key: str) -> Optional[Any]:
        return await safe_execute_async(self._get(key), f"Upstash GET {key}", log_level="warning")

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store ``value``; returns False when the write failed."""
        stored = await safe_execute_async(
            self.command("SET", self.prefix + key, json.dumps(value), "EX", ttl or self.default_ttl),
            f"Upstash SET {key}",
            log_level="warning",
        )
        return stored == "OK"

    async def delete(self, key: str) -> None:
        await safe_execute_async(self.command("DEL", self.prefix + key), f"Upstash DEL {key}")

    async def has(self, key: str) -> bool:
        exists = await safe_execute_async(
            self.command("EXISTS", self.prefix + key), f"Upstash EXISTS {key}", default_return=0
        )
        return bool(exists)

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -1 on failure, -2 when the key is missing (Redis semantics)."""
        remaining = await safe_execute_async(
            self.command("TTL", self.prefix + key), f"Upstash TTL {key}", default_return=-1
        )
        return int(remaining)

    async def clear(self) -> None:
        """Delete every key under this cache's prefix."""

        async def _clear():
            keys = await self.command("KEYS", f"{self.prefix}*")
            if keys:
                await self.command("DEL", *keys)
                logger.info(f"Upstash cache cleared {len(keys)} keys")

        await safe_execute_async(_clear(), "Upstash clear")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
