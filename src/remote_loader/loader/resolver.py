from __future__ import annotations

import asyncio
import json
import logging

from remote_loader.config.models import LoaderSettings
from remote_loader.errors import HttpTransportError
from remote_loader.health.store import HealthStore
from remote_loader.host.interfaces import HttpClient
from remote_loader.loader.models import Resolution, ResolutionFailure, ResolveResult

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github.v3+json"


def build_commits_url(api_base_url: str, repo: str, reference: str) -> str:
    return f"{api_base_url.rstrip('/')}/{repo.strip('/')}/commits/{reference}"


class VersionResolver:
    """
    Resolves a tracked reference (usually a branch) to its current commit sha.

    Issues exactly one request per call and never retries. A 403 from the API is
    usually rate limiting, so the last revision stored by a successful run is used
    in its place when one exists.
    """

    def __init__(self, *, config: LoaderSettings, http: HttpClient, health: HealthStore):
        self._config = config
        self._http = http
        self._health = health

    async def resolve(self, reference: str) -> ResolveResult:
        url = build_commits_url(self._config.api_base_url, self._config.repo, reference)
        logger.debug("resolver.request url=%s", url)
        try:
            response = await self._http.get(
                url,
                headers={"Accept": GITHUB_ACCEPT},
                timeout_seconds=self._config.resolve_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Version API timed out. url=%s timeout_seconds=%s", url, self._config.resolve_timeout_seconds)
            return ResolutionFailure(reason="timeout")
        except HttpTransportError as e:
            logger.warning("Version API request failed. url=%s error=%s", url, e)
            return ResolutionFailure(reason=f"network_error: {e}")
        except Exception as e:
            logger.exception("Unexpected version API error. url=%s", url)
            return ResolutionFailure(reason=f"unexpected: {type(e).__name__}")

        if response.status == 403:
            cached = self._health.last_revision()
            if cached:
                logger.warning("Version API returned 403, using last known revision. revision=%s", cached[:7])
                return Resolution(revision=cached, origin="health_store")
            logger.warning("Version API returned 403 and no revision is stored.")
            return ResolutionFailure(reason="rate_limited", status=403)

        if response.status != 200:
            logger.warning("Version API returned unexpected status. url=%s status=%s", url, response.status)
            return ResolutionFailure(reason="http_status", status=response.status)

        try:
            data = json.loads(response.text)
            sha = data["sha"]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Version API response could not be parsed. url=%s error=%s", url, e)
            return ResolutionFailure(reason="parse_error", status=200)
        if not isinstance(sha, str) or not sha.strip():
            logger.warning("Version API response has no usable sha. url=%s", url)
            return ResolutionFailure(reason="parse_error", status=200)

        sha = sha.strip()
        logger.info("resolver.resolved reference=%s revision=%s", reference, sha[:7])
        return Resolution(revision=sha, origin="api")
