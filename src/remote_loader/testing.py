"""In-memory fakes for the host seams, used by the test suite and for embedding."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from remote_loader.errors import ActivationError, HttpTransportError
from remote_loader.host.interfaces import CodeActivator, HttpClient, HttpResponse

ScriptItem = Union[HttpResponse, BaseException]


def strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class FakeClock:
    """Manual epoch-millisecond clock whose `sleep` advances time instead of waiting."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.current_ms = start_ms
        self.sleeps: list[float] = []

    def __call__(self) -> int:
        return self.current_ms

    def advance(self, seconds: float) -> None:
        self.current_ms += int(round(seconds * 1000))

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


@dataclass(frozen=True, slots=True)
class RecordedRequest:
    url: str
    headers: Mapping[str, str]
    timeout_seconds: float

    @property
    def base_url(self) -> str:
        return strip_query(self.url)


@dataclass(slots=True)
class _Route:
    script: list[ScriptItem]
    position: int = 0

    def next_item(self) -> ScriptItem:
        item = self.script[min(self.position, len(self.script) - 1)]
        self.position += 1
        return item


class FakeHttpClient(HttpClient):
    """
    Scripted HttpClient keyed by URL without its query string.

    Each route plays its items in order and then repeats the last one. Exception items
    are raised; `asyncio.TimeoutError` items also advance the attached clock by the
    request timeout.
    """

    def __init__(self, *, clock: Optional[FakeClock] = None):
        self._routes: dict[str, _Route] = {}
        self._clock = clock
        self.requests: list[RecordedRequest] = []

    def add(self, url: str, *items: ScriptItem) -> FakeHttpClient:
        if not items:
            raise ValueError("a route needs at least one response")
        self._routes[strip_query(url)] = _Route(script=list(items))
        return self

    def calls_to(self, url: str) -> int:
        base = strip_query(url)
        return sum(1 for r in self.requests if r.base_url == base)

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout_seconds: float,
    ) -> HttpResponse:
        request = RecordedRequest(url=url, headers=dict(headers or {}), timeout_seconds=timeout_seconds)
        self.requests.append(request)
        route = self._routes.get(request.base_url)
        if route is None:
            raise HttpTransportError(f"no route for {request.base_url}")
        item = route.next_item()
        if isinstance(item, asyncio.TimeoutError) and self._clock is not None:
            self._clock.advance(timeout_seconds)
        if isinstance(item, BaseException):
            raise item
        return item


@dataclass(slots=True)
class RecordingActivator(CodeActivator):
    """Records activated payloads; optionally fails or publishes a fixed surface."""

    surface: Optional[object] = None
    error: Optional[str] = None
    payloads: list[str] = field(default_factory=list)

    async def activate(self, payload: str) -> Optional[object]:
        self.payloads.append(payload)
        if self.error is not None:
            raise ActivationError(self.error)
        return self.surface
