from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from remote_loader.errors import HttpTransportError
from remote_loader.host.interfaces import HttpClient
from remote_loader.loader.models import FetchOutcome
from remote_loader.loader.session import LoaderSession
from remote_loader.utils import Clock, is_blank, now_ms, random_token

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def build_content_url(content_base_url: str, repo: str, revision: str, script_path: str) -> str:
    """Build the raw content URL for a file at a revision or reference."""
    return f"{content_base_url.rstrip('/')}/{repo.strip('/')}/{revision}/{script_path.lstrip('/')}"


def cache_busted_url(url: str, *, clock: Clock = now_ms, token: Callable[[], str] = random_token) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}t={clock()}&r={token()}"


class ContentFetcher:
    def __init__(
        self,
        *,
        http: HttpClient,
        timeout_seconds: float,
        cache_busting_enabled: bool = True,
        session: Optional[LoaderSession] = None,
        clock: Clock = now_ms,
    ):
        self._http = http
        self._timeout_seconds = timeout_seconds
        self._cache_busting_enabled = cache_busting_enabled
        self._session = session
        self._clock = clock

    async def fetch(self, url: str, *, cache_bust: bool = True) -> FetchOutcome:
        """
        Perform one GET and classify the result.

        Statuses in [200, 400) with a non-blank body are a success; a blank body in the
        same range is an empty body. Never raises.
        """
        request_url = url
        if cache_bust and self._cache_busting_enabled:
            request_url = cache_busted_url(url, clock=self._clock)
        if self._session is not None:
            self._session.stats.fetch_attempts += 1

        try:
            response = await self._http.get(
                request_url,
                headers=NO_CACHE_HEADERS,
                timeout_seconds=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Fetch timed out. url=%s timeout_seconds=%s", request_url, self._timeout_seconds)
            return FetchOutcome.timeout(detail=f"after {self._timeout_seconds}s")
        except HttpTransportError as e:
            logger.warning("Fetch network error. url=%s error=%s", request_url, e)
            return FetchOutcome.network_error(str(e))
        except Exception as e:
            logger.exception("Unexpected fetch error. url=%s", request_url)
            return FetchOutcome.network_error(f"{type(e).__name__}: {e}")

        if not 200 <= response.status < 400:
            logger.warning("Fetch returned HTTP error. url=%s status=%s", request_url, response.status)
            return FetchOutcome.http_status(response.status)
        if is_blank(response.text):
            logger.warning("Fetch returned an empty body. url=%s status=%s", request_url, response.status)
            return FetchOutcome.empty_body(response.status)

        logger.debug("fetch.success url=%s status=%s size=%d", request_url, response.status, len(response.text))
        return FetchOutcome.success(response.text, status=response.status)
