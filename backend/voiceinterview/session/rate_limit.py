from __future__ import annotations

import time
from typing import Callable

from core.config import BUDGET
from voiceinterview.errors import RateLimited


class StartRateLimiter:
    """Rejects a session start that follows the previous one too closely.

    State lives in this process only; a horizontally scaled deployment needs
    a shared store behind the same ``check`` call.
    """

    def __init__(self, min_interval_sec: float = BUDGET.start_rate_limit_sec, clock: Callable[[], float] | None = None, max_keys: int = 10000):
        self.min_interval_sec = max(0.0, float(min_interval_sec))
        self._clock = clock or time.monotonic
        self._max_keys = max(1, int(max_keys))
        self._last_request: dict[str, float] = {}

    def check(self, key: str) -> None:
        now_ts = float(self._clock())
        last = self._last_request.get(key)
        if last is not None:
            elapsed = now_ts - last
            if elapsed < self.min_interval_sec:
                raise RateLimited(
                    "Please wait before starting a new session.",
                    retry_after=self.min_interval_sec - elapsed,
                )
        self._last_request[key] = now_ts

        if len(self._last_request) > self._max_keys:
            cutoff = now_ts - self.min_interval_sec
            for stale_key in [k for k, ts in self._last_request.items() if ts <= cutoff]:
                self._last_request.pop(stale_key, None)

    def reset(self, key: str) -> None:
        self._last_request.pop(key, None)
