"""Persisted health telemetry."""

from remote_loader.health.store import (
    LAST_COMMIT_KEY,
    LAST_FAILURE_KEY,
    LAST_SUCCESS_KEY,
    HealthStore,
)

__all__ = [
    "HealthStore",
    "LAST_COMMIT_KEY",
    "LAST_FAILURE_KEY",
    "LAST_SUCCESS_KEY",
]
