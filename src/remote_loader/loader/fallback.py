from __future__ import annotations

import logging
from typing import Optional, Sequence

from remote_loader.config.models import LoaderSettings
from remote_loader.loader.cache import PayloadCache
from remote_loader.loader.fetcher import build_content_url
from remote_loader.loader.models import (
    AllFailed,
    CandidateFailure,
    ChainOutcome,
    ChainResult,
    RevisionPointer,
    SourceCandidate,
)
from remote_loader.loader.retry import RetryPolicy
from remote_loader.loader.session import LoaderSession

logger = logging.getLogger(__name__)


def build_candidates(config: LoaderSettings, revision: Optional[RevisionPointer]) -> list[SourceCandidate]:
    """
    Build the ordered source list for one run.

    Order: revision-pinned URL (only with a revision), branch URL, static fallback URL
    (if configured), local cache (if enabled). Network URLs already present earlier in
    the list are skipped.
    """
    network: list[tuple[str, str]] = []
    if revision:
        network.append(
            ("revision", build_content_url(config.content_base_url, config.repo, revision, config.script_path))
        )
    network.append(
        ("branch", build_content_url(config.content_base_url, config.repo, config.reference, config.script_path))
    )
    if config.fallback_url:
        network.append(("static", config.fallback_url.strip()))

    candidates: list[SourceCandidate] = []
    seen: set[str] = set()
    for name, url in network:
        if url in seen:
            logger.debug("fallback.skip_duplicate candidate=%s url=%s", name, url)
            continue
        seen.add(url)
        candidates.append(SourceCandidate(name=name, url=url, priority=len(candidates)))

    if config.enable_local_cache:
        candidates.append(
            SourceCandidate(name="cache", url="", kind="cache", requires_cache_busting=False, priority=len(candidates))
        )
    return candidates


class FallbackChain:
    """Tries candidates one at a time in priority order until one yields a usable payload."""

    def __init__(
        self,
        *,
        retry: RetryPolicy,
        cache: PayloadCache,
        max_retries: int,
        delay_seconds: float,
        session: Optional[LoaderSession] = None,
    ):
        self._retry = retry
        self._cache = cache
        self._max_retries = max_retries
        self._delay_seconds = delay_seconds
        self._session = session

    async def try_all(self, candidates: Sequence[SourceCandidate]) -> ChainOutcome:
        failures: list[CandidateFailure] = []
        for candidate in sorted(candidates, key=lambda c: c.priority):
            if candidate.kind == "cache":
                result = self._try_cache(candidate)
                if result is not None:
                    return result
                failures.append(CandidateFailure(candidate=candidate, reason="cache_miss"))
                continue

            outcome = await self._retry.attempt(
                candidate.url,
                self._max_retries,
                self._delay_seconds,
                candidate_name=candidate.name,
                cache_bust=candidate.requires_cache_busting,
            )
            if outcome.usable:
                logger.info("fallback.resolved candidate=%s size=%d", candidate.name, len(outcome.payload))
                self._cache.write(outcome.payload)
                return ChainResult(payload=outcome.payload, candidate=candidate)

            logger.warning(
                "Source candidate exhausted retries. candidate=%s outcome=%s",
                candidate.name,
                outcome.describe(),
            )
            failures.append(CandidateFailure(candidate=candidate, reason=outcome.describe()))

        return AllFailed(failures=tuple(failures))

    def _try_cache(self, candidate: SourceCandidate) -> Optional[ChainResult]:
        cached = self._cache.read()
        if cached is None:
            logger.info("fallback.cache_miss")
            return None
        if self._session is not None:
            self._session.stats.cache_hits += 1
        logger.info("fallback.cache_hit stored_at=%d size=%d", cached.stored_at, len(cached.content))
        return ChainResult(payload=cached.content, candidate=candidate)
