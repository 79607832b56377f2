from __future__ import annotations

import logging
from typing import Any, Optional

from remote_loader.host.interfaces import KeyValueStore
from remote_loader.loader.models import HealthRecord, RevisionPointer
from remote_loader.utils import Clock, now_ms

logger = logging.getLogger(__name__)

LAST_COMMIT_KEY = "last_commit_hash"
LAST_SUCCESS_KEY = "last_success"
LAST_FAILURE_KEY = "last_failure"


def _coerce_timestamp(key: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed health timestamp. key=%s value=%r", key, value)
        return None


class HealthStore:
    """
    Persisted health telemetry for the loader.

    Each write overwrites a single scalar key; only the most recent success and the most
    recent failure are kept. With `timestamps_enabled` off, success and failure times are
    not written but the last revision still is, since version resolution falls back to it.
    """

    def __init__(self, store: KeyValueStore, *, timestamps_enabled: bool = True, clock: Clock = now_ms):
        self._store = store
        self._timestamps_enabled = timestamps_enabled
        self._clock = clock

    def record_success(self, revision: Optional[RevisionPointer]) -> None:
        if revision:
            self._store.set(LAST_COMMIT_KEY, revision)
        if self._timestamps_enabled:
            self._store.set(LAST_SUCCESS_KEY, self._clock())
        logger.info("health.record_success revision=%s", revision)

    def record_failure(self) -> None:
        if self._timestamps_enabled:
            self._store.set(LAST_FAILURE_KEY, self._clock())
        logger.info("health.record_failure")

    def last_revision(self) -> Optional[RevisionPointer]:
        value = self._store.get(LAST_COMMIT_KEY)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def read(self) -> HealthRecord:
        return HealthRecord(
            last_success_at=_coerce_timestamp(LAST_SUCCESS_KEY, self._store.get(LAST_SUCCESS_KEY)),
            last_failure_at=_coerce_timestamp(LAST_FAILURE_KEY, self._store.get(LAST_FAILURE_KEY)),
            last_revision=self.last_revision(),
        )

    def status_report(self) -> dict[str, Any]:
        """Return the monitoring view: ISO-8601 timestamps plus the derived status."""
        return self.read().to_status_report()
