# app/services/sync_pacer.py
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

SleepFn = Callable[[float], Awaitable[None]]


class SyncPacer:
    """
    Fixed-delay gate between Clockify writes.

    - `after_success()` waits the configured inter-call delay. It is called
      after every successful create, throttled or not, which makes the
      sequential pass its own global rate limiter.
    - `after_rate_limit()` waits a short fixed cooldown once per create call
      that was rejected with 429.

    `sleep` is injectable so tests can record waits instead of sleeping.
    """

    def __init__(
        self,
        delay_seconds: float = 0.05,
        cooldown_seconds: float = 0.2,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if delay_seconds < 0 or cooldown_seconds < 0:
            raise ValueError("delays must be non-negative")
        self.delay_seconds = delay_seconds
        self.cooldown_seconds = cooldown_seconds
        self._sleep = sleep

    @classmethod
    def from_milliseconds(
        cls, delay_ms: int, cooldown_ms: int, sleep: SleepFn = asyncio.sleep
    ) -> "SyncPacer":
        return cls(delay_ms / 1000.0, cooldown_ms / 1000.0, sleep=sleep)

    async def after_success(self) -> None:
        await self._sleep(self.delay_seconds)

    async def after_rate_limit(self) -> None:
        await self._sleep(self.cooldown_seconds)
