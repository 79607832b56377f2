from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional, Union

from remote_loader.utils import epoch_ms_to_rfc3339, is_blank

RevisionPointer = str

OutcomeKind = Literal["success", "timeout", "network_error", "http_status", "empty_body"]
CandidateKind = Literal["network", "cache"]
HealthStatus = Literal["healthy", "degraded"]


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """Classified result of a single content fetch."""

    kind: OutcomeKind
    payload: str = ""
    status: Optional[int] = None
    detail: str = ""

    @classmethod
    def success(cls, payload: str, status: int = 200) -> FetchOutcome:
        return cls(kind="success", payload=payload, status=status)

    @classmethod
    def timeout(cls, detail: str = "") -> FetchOutcome:
        return cls(kind="timeout", detail=detail)

    @classmethod
    def network_error(cls, detail: str) -> FetchOutcome:
        return cls(kind="network_error", detail=detail)

    @classmethod
    def http_status(cls, code: int) -> FetchOutcome:
        return cls(kind="http_status", status=code)

    @classmethod
    def empty_body(cls, status: int) -> FetchOutcome:
        return cls(kind="empty_body", status=status)

    @property
    def usable(self) -> bool:
        return self.kind == "success" and not is_blank(self.payload)

    def describe(self) -> str:
        if self.kind == "success":
            return f"success status={self.status} size={len(self.payload)}"
        if self.kind == "http_status":
            return f"http_status status={self.status}"
        if self.kind == "empty_body":
            return f"empty_body status={self.status}"
        if self.detail:
            return f"{self.kind} detail={self.detail}"
        return self.kind


@dataclass(frozen=True, slots=True)
class SourceCandidate:
    name: str
    url: str
    kind: CandidateKind = "network"
    requires_cache_busting: bool = True
    priority: int = 0


@dataclass(frozen=True, slots=True)
class RetryAttempt:
    attempt_number: int
    candidate_name: str
    url: str


@dataclass(frozen=True, slots=True)
class CachedPayload:
    content: str
    stored_at: int
    ttl_seconds: float

    def is_fresh(self, now: int) -> bool:
        return now - self.stored_at < self.ttl_seconds * 1000


@dataclass(frozen=True, slots=True)
class HealthRecord:
    last_success_at: Optional[int] = None
    last_failure_at: Optional[int] = None
    last_revision: Optional[RevisionPointer] = None

    @property
    def healthy(self) -> bool:
        if self.last_success_at is None:
            return False
        return self.last_failure_at is None or self.last_success_at > self.last_failure_at

    @property
    def status(self) -> HealthStatus:
        return "healthy" if self.healthy else "degraded"

    def to_status_report(self) -> dict[str, Any]:
        return {
            "lastSuccess": epoch_ms_to_rfc3339(self.last_success_at) if self.last_success_at is not None else None,
            "lastFailure": epoch_ms_to_rfc3339(self.last_failure_at) if self.last_failure_at is not None else None,
            "healthy": self.healthy,
            "status": self.status,
        }


# Resolution


@dataclass(frozen=True, slots=True)
class Resolution:
    revision: RevisionPointer
    origin: Literal["api", "health_store"]


@dataclass(frozen=True, slots=True)
class ResolutionFailure:
    reason: str
    status: Optional[int] = None


ResolveResult = Union[Resolution, ResolutionFailure]


# Fallback chain


@dataclass(frozen=True, slots=True)
class CandidateFailure:
    candidate: SourceCandidate
    reason: str


@dataclass(frozen=True, slots=True)
class ChainResult:
    payload: str
    candidate: SourceCandidate


@dataclass(frozen=True, slots=True)
class AllFailed:
    failures: tuple[CandidateFailure, ...] = ()

    def describe(self) -> str:
        if not self.failures:
            return "no candidates"
        return "; ".join(f"{f.candidate.name}: {f.reason}" for f in self.failures)


ChainOutcome = Union[ChainResult, AllFailed]


# Activation


@dataclass(frozen=True, slots=True)
class Activated:
    surface: Optional[object] = None


@dataclass(frozen=True, slots=True)
class ActivationFailure:
    reason: str


ActivationOutcome = Union[Activated, ActivationFailure]


# Pipeline


class PipelineState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    ACTIVATING = "activating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (PipelineState.SUCCEEDED, PipelineState.FAILED)


@dataclass(slots=True)
class RunReport:
    run_id: int
    state: PipelineState = PipelineState.IDLE
    revision: Optional[RevisionPointer] = None
    revision_origin: Optional[str] = None
    source: Optional[str] = None
    error: Optional[str] = None
    transitions: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "revision": self.revision,
            "revision_origin": self.revision_origin,
            "source": self.source,
            "error": self.error,
            "transitions": [s.value for s in self.transitions],
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }
