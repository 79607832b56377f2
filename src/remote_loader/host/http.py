from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional

import aiohttp

from remote_loader.errors import HttpTransportError
from remote_loader.host.interfaces import HttpClient, HttpResponse

logger = logging.getLogger(__name__)


class AiohttpClient(HttpClient):
    """HttpClient backed by a shared aiohttp session."""

    def __init__(self, *, user_agent: str = "remote-loader") -> None:
        self._user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> AiohttpClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        """Open the underlying session."""
        if self._session and not self._session.closed:
            return
        self._session = aiohttp.ClientSession(headers={"User-Agent": self._user_agent})

    async def stop(self) -> None:
        """Close the underlying session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout_seconds: float,
    ) -> HttpResponse:
        should_close = False
        if not self._session or self._session.closed:
            await self.start()
            should_close = True

        try:
            assert self._session is not None
            timeout = aiohttp.ClientTimeout(total=timeout_seconds)
            async with self._session.get(url, headers=dict(headers or {}), timeout=timeout) as response:
                text = await response.text(errors="replace")
                logger.debug("http.get url=%s status=%s size=%d", url, response.status, len(text))
                return HttpResponse(status=response.status, text=text)
        except asyncio.TimeoutError:
            # aiohttp timeout errors also subclass ClientError.
            raise
        except aiohttp.ClientError as e:
            raise HttpTransportError(f"{type(e).__name__}: {e}") from e
        finally:
            if should_close:
                await self.stop()
