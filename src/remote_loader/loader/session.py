from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from remote_loader.loader.models import RunReport


@dataclass(slots=True)
class SessionStats:
    runs: int = 0
    successes: int = 0
    failures: int = 0
    fetch_attempts: int = 0
    cache_hits: int = 0


@dataclass(slots=True)
class LoaderSession:
    """
    Mutable state owned by one Pipeline and shared by reference with its components.

    Holds counters across runs, the last report and the control surface published by
    the most recently activated payload.
    """

    stats: SessionStats = field(default_factory=SessionStats)
    last_report: Optional[RunReport] = None
    control_surface: Optional[object] = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "stats": asdict(self.stats),
            "last_report": self.last_report.to_dict() if self.last_report else None,
            "control_surface_active": self.control_surface is not None,
        }
