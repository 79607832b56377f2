from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from remote_loader.loader.fetcher import ContentFetcher
from remote_loader.loader.models import FetchOutcome, RetryAttempt

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """
    Fixed-count, fixed-delay retry around ContentFetcher.

    Every non-success outcome is retried the same way, permanent HTTP errors included.
    The delay is constant between attempts and is not applied after the last one.
    """

    def __init__(self, fetcher: ContentFetcher, *, sleep: Sleep = asyncio.sleep):
        self._fetcher = fetcher
        self._sleep = sleep

    async def attempt(
        self,
        url: str,
        max_retries: int,
        delay_seconds: float,
        *,
        candidate_name: str = "",
        cache_bust: bool = True,
    ) -> FetchOutcome:
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        last: Optional[FetchOutcome] = None
        for attempt_number in range(1, max_retries + 1):
            attempt = RetryAttempt(attempt_number=attempt_number, candidate_name=candidate_name, url=url)
            logger.info(
                "retry.attempt candidate=%s attempt=%d/%d url=%s",
                attempt.candidate_name,
                attempt.attempt_number,
                max_retries,
                attempt.url,
            )
            outcome = await self._fetcher.fetch(url, cache_bust=cache_bust)
            if outcome.usable:
                return outcome
            last = outcome
            logger.info(
                "retry.failed candidate=%s attempt=%d/%d outcome=%s",
                candidate_name,
                attempt_number,
                max_retries,
                outcome.describe(),
            )
            if attempt_number < max_retries:
                await self._sleep(delay_seconds)

        assert last is not None
        return last
