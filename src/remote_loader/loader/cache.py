from __future__ import annotations

import json
import logging
from typing import Optional

from remote_loader.host.interfaces import KeyValueStore
from remote_loader.loader.models import CachedPayload
from remote_loader.utils import Clock, is_blank, now_ms

logger = logging.getLogger(__name__)

CACHE_KEY = "remote_script_cache"


class PayloadCache:
    """Time-limited copy of the last payload fetched from the network."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        enabled: bool,
        ttl_seconds: float,
        clock: Clock = now_ms,
    ):
        self._store = store
        self._enabled = enabled
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._enabled

    def read(self) -> Optional[CachedPayload]:
        """Return the cached payload only while it is fresh."""
        if not self._enabled:
            return None
        raw = self._store.get(CACHE_KEY)
        if not raw:
            return None
        try:
            decoded = json.loads(raw)
            content = decoded["content"]
            if not isinstance(content, str):
                raise TypeError(f"cached content is {type(content).__name__}, expected str")
            cached = CachedPayload(
                content=content,
                stored_at=int(decoded["timestamp"]),
                ttl_seconds=self._ttl_seconds,
            )
        except (TypeError, ValueError, KeyError):
            logger.exception("Failed to read local payload cache.")
            return None

        now = self._clock()
        if not cached.is_fresh(now):
            logger.info("cache.expired age_ms=%d ttl_seconds=%s", now - cached.stored_at, self._ttl_seconds)
            return None
        if is_blank(cached.content):
            return None
        return cached

    def write(self, content: str) -> None:
        if not self._enabled:
            return
        try:
            self._store.set(CACHE_KEY, json.dumps({"content": content, "timestamp": self._clock()}))
            logger.debug("cache.write size=%d", len(content))
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to write local payload cache.")
