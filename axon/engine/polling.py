"""Fixed-interval polling with an attempt limit."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


async def poll_until(
    predicate: Callable[[], Awaitable[bool]],
    *,
    interval_s: float,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
    stop: Callable[[], bool] | None = None,
) -> bool:
    """
    Await `predicate` until it returns True or the attempt limit runs out.

    The caller is suspended for `interval_s` before every attempt, so a full
    run without success takes roughly `interval_s * max_attempts`.

    Args:
        predicate: Async check; exceptions propagate to the caller.
        interval_s: Seconds to sleep before each attempt.
        max_attempts: Number of attempts before giving up.
        sleep: Awaitable sleep (injectable for tests).
        stop: Optional sync check evaluated before each attempt; when it
            returns True polling ends early and False is returned.

    Returns:
        True on the first successful attempt, False otherwise.
    """
    if max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    if interval_s < 0:
        raise ValueError("interval_s must be >= 0")

    for attempt in range(1, max_attempts + 1):
        await sleep(interval_s)
        if stop is not None and stop():
            logger.debug("polling stopped early at attempt %d/%d", attempt, max_attempts)
            return False
        if await predicate():
            logger.debug("polling succeeded at attempt %d/%d", attempt, max_attempts)
            return True
    return False
