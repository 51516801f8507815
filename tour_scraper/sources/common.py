"""Helpers shared by the HTTP and browser fetchers."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Dict, Optional, Sequence, TypeVar

from ..config import ThrottlingConfig, UserAgentConfig
from ..errors import FetchError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

MAX_JITTER_MS = 1000
RATE_LIMIT_FLOOR_MS = 5000
UNAVAILABLE_FLOOR_MS = 3000
UNAVAILABLE_STATUSES = frozenset({502, 503, 504})

DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def pick_user_agent(config: UserAgentConfig) -> Optional[str]:
    """Choose a user agent; rotation picks at random, otherwise the first entry wins."""

    agents: Sequence[str] = config.agents
    if not agents:
        return None
    if config.rotate:
        return random.choice(agents)
    return agents[0]


def backoff_delay(attempt: int, base_delay_ms: int, status: Optional[int] = None) -> float:
    """Seconds to wait before retry ``attempt`` (zero based)."""

    delay = base_delay_ms * (2 ** attempt) + random.uniform(0, MAX_JITTER_MS)
    if status == 429:
        delay = max(delay, RATE_LIMIT_FLOOR_MS)
    elif status in UNAVAILABLE_STATUSES:
        delay = max(delay, UNAVAILABLE_FLOOR_MS)
    return delay / 1000


async def with_retries(
    url: str,
    attempt_fetch: Callable[[int], Awaitable[T]],
    throttling: ThrottlingConfig,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``attempt_fetch`` until it succeeds or the retry budget is spent.

    Only :class:`FetchError` instances flagged as retryable are retried;
    anything else propagates immediately.
    """

    attempts = max(1, throttling.retry_attempts)
    for attempt in range(attempts):
        try:
            return await attempt_fetch(attempt)
        except FetchError as exc:
            if not exc.retryable or attempt + 1 >= attempts:
                if attempt:
                    LOGGER.error("Giving up on %s after %d attempts: %s", url, attempt + 1, exc)
                raise
            delay = backoff_delay(attempt, throttling.retry_delay, exc.status)
            LOGGER.warning(
                "Fetch of %s failed (%s), retrying in %.1fs (%d/%d)",
                url,
                exc,
                delay,
                attempt + 1,
                attempts - 1,
            )
            await sleep(delay)
    raise FetchError(url, "Retry budget exhausted")
