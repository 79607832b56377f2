from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    text: str


class HttpClient:
    async def get(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout_seconds: float,
    ) -> HttpResponse:
        """
        Issue one HTTP GET and return the status and decoded body.

        Any status code is returned as a response, including 4xx and 5xx.

        Raises:
            asyncio.TimeoutError: the request did not complete within timeout_seconds.
            HttpTransportError: the request failed before an HTTP response was received.
        """
        raise NotImplementedError


class KeyValueStore:
    """Process-restart-surviving key/value storage. Values must be JSON serializable."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class CodeActivator:
    async def activate(self, payload: str) -> Optional[object]:
        """
        Execute the payload inside the running process.

        Returns the control surface the payload published, or None when it published none.

        Raises:
            ActivationError: the payload could not be compiled or raised while executing.
        """
        raise NotImplementedError
