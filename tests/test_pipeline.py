import asyncio
import json
import unittest
from pathlib import Path
from typing import Any

from remote_loader.config.models import LoaderSettings
from remote_loader.health.store import LAST_COMMIT_KEY, LAST_FAILURE_KEY, LAST_SUCCESS_KEY
from remote_loader.host.activation import ModuleActivator
from remote_loader.host.interfaces import HttpResponse
from remote_loader.host.storage import InMemoryKeyValueStore
from remote_loader.loader.cache import CACHE_KEY
from remote_loader.loader.models import PipelineState
from remote_loader.loader.pipeline import Pipeline
from remote_loader.testing import FakeClock, FakeHttpClient, RecordingActivator, strip_query

API_URL = "https://api.github.com/repos/acme/scripts/commits/main"
REVISION_URL = "https://raw.githubusercontent.com/acme/scripts/abc123/dist/script.py"
BRANCH_URL = "https://raw.githubusercontent.com/acme/scripts/main/dist/script.py"
EXAMPLE_PAYLOAD = Path(__file__).resolve().parents[1] / "examples" / "payload.py"


class RecordingStore(InMemoryKeyValueStore):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes: list[str] = []

    def set(self, key: str, value: Any) -> None:
        self.writes.append(key)
        super().set(key, value)


class GatedHttpClient(FakeHttpClient):
    """Holds the first request to `gated_url` until `release` is set."""

    def __init__(self, gated_url: str, **kwargs):
        super().__init__(**kwargs)
        self._gated_url = strip_query(gated_url)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def get(self, url: str, *, headers=None, timeout_seconds: float) -> HttpResponse:
        if strip_query(url) == self._gated_url and not self.entered.is_set():
            self.entered.set()
            await self.release.wait()
        return await super().get(url, headers=headers, timeout_seconds=timeout_seconds)


def _sha(value: str) -> HttpResponse:
    return HttpResponse(200, json.dumps({"sha": value}))


class PipelineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.http = FakeHttpClient(clock=self.clock)
        self.store = RecordingStore()
        self.activator = RecordingActivator()

    def _pipeline(self, **overrides) -> Pipeline:
        values = {
            "repo": "acme/scripts",
            "script_path": "dist/script.py",
            "max_retries": 3,
            "retry_delay_seconds": 2.0,
            "timeout_seconds": 10.0,
        }
        values.update(overrides)
        return Pipeline(
            config=LoaderSettings(**values),
            http=self.http,
            store=self.store,
            code_activator=self.activator,
            sleep=self.clock.sleep,
            clock=self.clock,
        )

    async def test_timeouts_then_success_activates_and_records_success(self) -> None:
        self.http.add(API_URL, _sha("abc123"))
        self.http.add(REVISION_URL, asyncio.TimeoutError(), asyncio.TimeoutError(), HttpResponse(200, "x=1"))
        pipeline = self._pipeline()
        started = self.clock()

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.SUCCEEDED)
        self.assertEqual(report.source, "revision")
        self.assertEqual(self.activator.payloads, ["x=1"])
        self.assertEqual(self.clock() - started, 2 * 2000 + 2 * 10_000)
        record = pipeline.health.read()
        self.assertEqual(record.last_success_at, self.clock())
        self.assertIsNone(record.last_failure_at)
        self.assertEqual(record.last_revision, "abc123")
        self.assertEqual(
            report.transitions,
            [
                PipelineState.IDLE,
                PipelineState.RESOLVING,
                PipelineState.FETCHING,
                PipelineState.ACTIVATING,
                PipelineState.SUCCEEDED,
            ],
        )

    async def test_all_sources_404_records_failure_without_activation(self) -> None:
        self.http.add(API_URL, _sha("abc123"))
        self.http.add(REVISION_URL, HttpResponse(404, "404: Not Found"))
        self.http.add(BRANCH_URL, HttpResponse(404, "404: Not Found"))
        pipeline = self._pipeline()

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.FAILED)
        self.assertTrue(report.error.startswith("all sources exhausted"))
        self.assertEqual(self.activator.payloads, [])
        self.assertEqual(self.http.calls_to(REVISION_URL), 3)
        self.assertEqual(self.http.calls_to(BRANCH_URL), 3)
        self.assertEqual(self.store.writes, [LAST_FAILURE_KEY])
        self.assertEqual(pipeline.health.read().status, "degraded")
        self.assertEqual(report.transitions[-2:], [PipelineState.FETCHING, PipelineState.FAILED])

    async def test_rate_limited_resolution_uses_stored_revision(self) -> None:
        self.store.data[LAST_COMMIT_KEY] = "abc123"
        self.http.add(API_URL, HttpResponse(403, '{"message": "API rate limit exceeded"}'))
        self.http.add(REVISION_URL, HttpResponse(200, "x=1"))
        pipeline = self._pipeline()

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.SUCCEEDED)
        self.assertEqual(report.revision, "abc123")
        self.assertEqual(report.revision_origin, "health_store")
        self.assertEqual(self.http.calls_to(REVISION_URL), 1)

    async def test_whitespace_body_is_retried_as_failure(self) -> None:
        self.http.add(API_URL, HttpResponse(500, ""))
        self.http.add(BRANCH_URL, HttpResponse(200, "   "), HttpResponse(200, "x=2"))

        report = await self._pipeline().run()

        self.assertEqual(report.state, PipelineState.SUCCEEDED)
        self.assertIsNone(report.revision)
        self.assertEqual(report.source, "branch")
        self.assertEqual(self.http.calls_to(BRANCH_URL), 2)
        self.assertEqual(self.activator.payloads, ["x=2"])

    async def test_unresolved_revision_falls_back_to_branch(self) -> None:
        self.http.add(BRANCH_URL, HttpResponse(200, "x=1"))

        report = await self._pipeline().run()

        self.assertEqual(report.state, PipelineState.SUCCEEDED)
        self.assertEqual(report.source, "branch")
        self.assertEqual(self.http.calls_to(REVISION_URL), 0)
        self.assertEqual(self.store.writes, [LAST_SUCCESS_KEY])

    async def test_cache_serves_payload_after_branch_is_genuinely_attempted(self) -> None:
        self.store.data[CACHE_KEY] = json.dumps({"content": "cached = 1", "timestamp": self.clock() - 1000})
        self.http.add(API_URL, _sha("abc123"))
        self.http.add(REVISION_URL, HttpResponse(502, ""))
        self.http.add(BRANCH_URL, HttpResponse(502, ""))
        pipeline = self._pipeline(enable_local_cache=True, max_retries=2)

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.SUCCEEDED)
        self.assertEqual(report.source, "cache")
        self.assertEqual(self.activator.payloads, ["cached = 1"])
        self.assertEqual(self.http.calls_to(BRANCH_URL), 2)
        self.assertEqual(pipeline.session.stats.cache_hits, 1)

    async def test_activation_failure_is_terminal_and_records_failure(self) -> None:
        self.activator.error = "boom"
        self.http.add(API_URL, _sha("abc123"))
        self.http.add(REVISION_URL, HttpResponse(200, "x=1"))
        pipeline = self._pipeline()

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.FAILED)
        self.assertEqual(report.error, "activation failed: boom")
        self.assertEqual(self.http.calls_to(REVISION_URL), 1)
        self.assertEqual(self.http.calls_to(BRANCH_URL), 0)
        self.assertEqual(self.store.writes, [LAST_FAILURE_KEY])
        self.assertEqual(report.transitions[-2:], [PipelineState.ACTIVATING, PipelineState.FAILED])

    async def test_each_run_writes_exactly_one_terminal_record(self) -> None:
        self.http.add(API_URL, _sha("abc123"))
        self.http.add(REVISION_URL, HttpResponse(200, "x=1"), HttpResponse(404, ""))
        self.http.add(BRANCH_URL, HttpResponse(404, ""))
        pipeline = self._pipeline(max_retries=1)

        first = await pipeline.run()
        second = await pipeline.run()

        self.assertEqual(first.state, PipelineState.SUCCEEDED)
        self.assertEqual(second.state, PipelineState.FAILED)
        self.assertEqual(self.store.writes, [LAST_COMMIT_KEY, LAST_SUCCESS_KEY, LAST_FAILURE_KEY])
        self.assertEqual(pipeline.health.read().status, "degraded")
        self.assertEqual(pipeline.session.stats.runs, 2)
        self.assertEqual(pipeline.session.stats.successes, 1)
        self.assertEqual(pipeline.session.stats.failures, 1)
        self.assertIs(pipeline.session.last_report, second)
        self.assertEqual(second.run_id, 2)

    async def test_run_deadline_fails_the_run(self) -> None:
        self.http.add(BRANCH_URL, HttpResponse(500, ""))
        pipeline = Pipeline(
            config=LoaderSettings(
                repo="acme/scripts",
                script_path="dist/script.py",
                max_retries=5,
                retry_delay_seconds=10.0,
                run_timeout_seconds=0.05,
            ),
            http=self.http,
            store=self.store,
            code_activator=self.activator,
            sleep=asyncio.sleep,
            clock=self.clock,
        )

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.FAILED)
        self.assertEqual(report.error, "run timed out")
        self.assertEqual(self.store.writes, [LAST_FAILURE_KEY])

    async def test_payload_calling_sys_exit_fails_the_run(self) -> None:
        self.http.add(BRANCH_URL, HttpResponse(200, "import sys\nsys.exit(3)\n"))
        self.activator = ModuleActivator()
        pipeline = self._pipeline()

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.FAILED)
        self.assertTrue(report.error.startswith("activation failed: "))
        self.assertIn("SystemExit", report.error)
        self.assertEqual(self.store.writes, [LAST_FAILURE_KEY])
        self.assertEqual(pipeline.health.read().last_failure_at, self.clock())
        self.assertIsNone(pipeline.control_surface)

    async def test_concurrent_runs_are_serialized(self) -> None:
        self.http = GatedHttpClient(BRANCH_URL, clock=self.clock)
        self.http.add(BRANCH_URL, HttpResponse(200, "x=1"), HttpResponse(404, ""))
        pipeline = self._pipeline(max_retries=1)

        runs = asyncio.gather(pipeline.run(), pipeline.run())
        await self.http.entered.wait()
        for _ in range(5):
            await asyncio.sleep(0)

        # First run is parked inside its fetch; the second must not have resolved yet.
        self.assertEqual(self.http.calls_to(API_URL), 1)
        self.assertEqual(pipeline.session.stats.runs, 1)
        self.assertEqual(self.store.writes, [])

        self.http.release.set()
        first, second = await runs

        self.assertEqual((first.run_id, first.state), (1, PipelineState.SUCCEEDED))
        self.assertEqual((second.run_id, second.state), (2, PipelineState.FAILED))
        self.assertEqual(self.http.calls_to(API_URL), 2)
        self.assertEqual(self.store.writes, [LAST_SUCCESS_KEY, LAST_FAILURE_KEY])
        self.assertEqual(
            [r.base_url for r in self.http.requests],
            [API_URL, BRANCH_URL, API_URL, BRANCH_URL],
        )

    async def test_example_payload_publishes_control_surface(self) -> None:
        self.http.add(BRANCH_URL, HttpResponse(200, EXAMPLE_PAYLOAD.read_text(encoding="utf-8")))
        self.activator = ModuleActivator(surface_name="REMOTE_SCRIPT")
        pipeline = self._pipeline()

        report = await pipeline.run()

        self.assertEqual(report.state, PipelineState.SUCCEEDED)
        surface = pipeline.control_surface
        self.assertIsNotNone(surface)
        self.assertEqual(surface.version, "1.0.1")
        stats = surface.get_stats()
        self.assertTrue(stats["active"])
        self.assertEqual(stats["rule_executions"], {"update-amount": 1})


if __name__ == "__main__":
    unittest.main()
