from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from remote_loader.config.models import LoaderSettings
from remote_loader.health.store import HealthStore
from remote_loader.host.interfaces import CodeActivator, HttpClient, KeyValueStore
from remote_loader.loader.activator import Activator
from remote_loader.loader.cache import PayloadCache
from remote_loader.loader.fallback import FallbackChain, build_candidates
from remote_loader.loader.fetcher import ContentFetcher
from remote_loader.loader.models import (
    ActivationFailure,
    AllFailed,
    PipelineState,
    Resolution,
    RunReport,
)
from remote_loader.loader.resolver import VersionResolver
from remote_loader.loader.retry import RetryPolicy, Sleep
from remote_loader.loader.session import LoaderSession
from remote_loader.utils import Clock, now_ms

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS = {
    PipelineState.IDLE: {PipelineState.RESOLVING, PipelineState.FAILED},
    PipelineState.RESOLVING: {PipelineState.FETCHING, PipelineState.FAILED},
    PipelineState.FETCHING: {PipelineState.ACTIVATING, PipelineState.FAILED},
    PipelineState.ACTIVATING: {PipelineState.SUCCEEDED, PipelineState.FAILED},
    PipelineState.SUCCEEDED: set(),
    PipelineState.FAILED: set(),
}


class Pipeline:
    """
    Resolve, fetch, activate and record, once per `run()` call.

    Stage failures never escape: every run ends in SUCCEEDED or FAILED and writes the
    health store exactly once at that point. Runs on the same instance are serialized;
    separate instances sharing one store are not coordinated.
    """

    def __init__(
        self,
        *,
        config: LoaderSettings,
        http: HttpClient,
        store: KeyValueStore,
        code_activator: CodeActivator,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = now_ms,
    ):
        self._config = config
        self._lock = asyncio.Lock()
        self.session = LoaderSession()
        self.health = HealthStore(store, timestamps_enabled=config.health_check_enabled, clock=clock)
        self.cache = PayloadCache(
            store,
            enabled=config.enable_local_cache,
            ttl_seconds=config.cache_expiration_seconds,
            clock=clock,
        )
        self._resolver = VersionResolver(config=config, http=http, health=self.health)
        fetcher = ContentFetcher(
            http=http,
            timeout_seconds=config.timeout_seconds,
            cache_busting_enabled=config.cache_busting_enabled,
            session=self.session,
            clock=clock,
        )
        self._chain = FallbackChain(
            retry=RetryPolicy(fetcher, sleep=sleep),
            cache=self.cache,
            max_retries=config.max_retries,
            delay_seconds=config.retry_delay_seconds,
            session=self.session,
        )
        self._activator = Activator(code_activator, session=self.session)

    @property
    def control_surface(self) -> Optional[object]:
        return self.session.control_surface

    async def run(self) -> RunReport:
        async with self._lock:
            self.session.stats.runs += 1
            report = RunReport(run_id=self.session.stats.runs)
            started = time.monotonic()
            logger.info("pipeline.start run_id=%d repo=%s reference=%s", report.run_id, self._config.repo, self._config.reference)
            try:
                if self._config.run_timeout_seconds is not None:
                    await asyncio.wait_for(self._run_stages(report), timeout=self._config.run_timeout_seconds)
                else:
                    await self._run_stages(report)
            except asyncio.TimeoutError:
                logger.error(
                    "Pipeline run exceeded its deadline. run_id=%d timeout_seconds=%s",
                    report.run_id,
                    self._config.run_timeout_seconds,
                )
                self._finish(report, PipelineState.FAILED, error="run timed out")
            except Exception as e:
                logger.exception("Unexpected pipeline error. run_id=%d", report.run_id)
                self._finish(report, PipelineState.FAILED, error=f"unexpected: {type(e).__name__}: {e}")

            report.elapsed_seconds = time.monotonic() - started
            self.session.last_report = report
            logger.info(
                "pipeline.finished run_id=%d state=%s source=%s elapsed=%.3fs",
                report.run_id,
                report.state.value,
                report.source,
                report.elapsed_seconds,
            )
            return report

    async def _run_stages(self, report: RunReport) -> None:
        self._transition(report, PipelineState.RESOLVING)
        resolved = await self._resolver.resolve(self._config.reference)
        if isinstance(resolved, Resolution):
            report.revision = resolved.revision
            report.revision_origin = resolved.origin
        else:
            logger.warning(
                "Revision not resolved, continuing without a pinned revision. reason=%s status=%s",
                resolved.reason,
                resolved.status,
            )

        self._transition(report, PipelineState.FETCHING)
        candidates = build_candidates(self._config, report.revision)
        fetched = await self._chain.try_all(candidates)
        if isinstance(fetched, AllFailed):
            logger.error("No payload available from any source. failures=%s", fetched.describe())
            self._finish(report, PipelineState.FAILED, error=f"all sources exhausted: {fetched.describe()}")
            return
        report.source = fetched.candidate.name

        self._transition(report, PipelineState.ACTIVATING)
        activated = await self._activator.activate(fetched.payload)
        if isinstance(activated, ActivationFailure):
            self._finish(report, PipelineState.FAILED, error=f"activation failed: {activated.reason}")
            return
        self._finish(report, PipelineState.SUCCEEDED)

    def _transition(self, report: RunReport, state: PipelineState) -> None:
        if state not in _ALLOWED_TRANSITIONS[report.state]:
            raise RuntimeError(f"Illegal pipeline transition {report.state.value} -> {state.value}")
        logger.debug("pipeline.transition run_id=%d %s->%s", report.run_id, report.state.value, state.value)
        report.state = state
        report.transitions.append(state)

    def _finish(self, report: RunReport, state: PipelineState, *, error: Optional[str] = None) -> None:
        if report.state.terminal:
            return
        self._transition(report, state)
        report.error = error
        try:
            if state is PipelineState.SUCCEEDED:
                self.session.stats.successes += 1
                self.health.record_success(report.revision)
            else:
                self.session.stats.failures += 1
                self.health.record_failure()
        except Exception:
            logger.exception("Failed to persist health record. run_id=%d state=%s", report.run_id, state.value)
