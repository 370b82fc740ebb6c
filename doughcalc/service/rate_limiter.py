"""Per-client fixed-window rate limiter (minute and day windows)."""

import math
import time
from dataclasses import dataclass
from typing import Callable

from doughcalc.utils.errors import RateLimitError
from doughcalc.utils.logger import logger


MINUTE = 60
DAY = 24 * 60 * 60


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """In-memory limiter keyed by client id.

    A request counts against both windows only when it passes both, so a
    client blocked by the minute window does not burn its daily allowance.
    """

    def __init__(
        self,
        per_minute: int = 20,
        per_day: int = 200,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.per_minute = per_minute
        self.per_day = per_day
        self._clock = clock
        self._windows: dict[tuple[str, int], _Window] = {}

    def _window(self, client_id: str, length: int, now: float) -> _Window:
        window = self._windows.get((client_id, length))
        if window is None or now >= window.reset_at:
            window = _Window(count=0, reset_at=now + length)
            self._windows[(client_id, length)] = window
        return window

    def _cleanup(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]

    def check(self, client_id: str) -> None:
        """Count one request for ``client_id``.

        Raises:
            RateLimitError: Either window is exhausted; ``retry_after`` is the
                seconds until that window resets.
        """
        now = self._clock()
        self._cleanup(now)
        minute = self._window(client_id, MINUTE, now)
        day = self._window(client_id, DAY, now)

        if minute.count >= self.per_minute:
            logger.warning(f"Rate limit exceeded for {client_id}: {minute.count}/{self.per_minute} per minute")
            raise RateLimitError(
                "Rate limit exceeded: Too many requests per minute",
                retry_after=max(1, math.ceil(minute.reset_at - now)),
            )
        if day.count >= self.per_day:
            logger.warning(f"Rate limit exceeded for {client_id}: {day.count}/{self.per_day} per day")
            raise RateLimitError(
                "Rate limit exceeded: Daily request limit reached",
                retry_after=max(1, math.ceil(day.reset_at - now)),
            )

        minute.count += 1
        day.count += 1
