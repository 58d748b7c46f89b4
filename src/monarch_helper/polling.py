"""Fixed-interval polling with a wall-clock deadline."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and for how long to poll."""

    interval: float
    """Seconds to wait before each check."""
    timeout: float
    """Seconds after which no further check is started."""


async def poll_until(
    predicate: Callable[[], Awaitable[bool]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Wait `policy.interval`, check `predicate`, repeat until it holds or time runs out.

    Args:
        predicate: async check, evaluated once per interval.
        policy: interval and deadline.
        sleep: async sleep used between checks.
        clock: monotonic clock in seconds.

    Returns:
        The last value of `predicate`; `False` if the deadline passed first.

    """
    deadline = clock() + policy.timeout
    satisfied = False
    attempt = 0
    while not satisfied and clock() <= deadline:
        await sleep(policy.interval)
        attempt += 1
        satisfied = await predicate()
        logger.debug("Poll attempt %d: %s", attempt, satisfied)
    return satisfied
