from __future__ import annotations

import asyncio

import httpx
import pytest

from pacer.config import RunConfig, TargetConfig
from pacer.loadgen.client import HttpxExecutor
from pacer.loadgen.runner import BoundedSpawner, execute_run, run
from pacer.metrics import OutstandingCounter, ResponseOutcome

TARGET = TargetConfig(host="example.test", port=8080)


class SleepyExecutor:
    """Fake executor that holds each request for a fixed time."""

    def __init__(self, latency_sec: float = 0.0, fail_every: int = 0) -> None:
        self.counter = OutstandingCounter()
        self.latency_sec = latency_sec
        self.fail_every = fail_every
        self.calls = 0
        self.live = 0
        self.max_live = 0
        self.mismatches = 0

    async def execute(self, target: TargetConfig) -> ResponseOutcome:
        self.calls += 1
        call = self.calls
        self.counter.increment()
        self.live += 1
        self.max_live = max(self.max_live, self.live)
        if self.counter.value != self.live:
            self.mismatches += 1
        try:
            await asyncio.sleep(self.latency_sec)
        finally:
            self.live -= 1
            self.counter.decrement()
        if self.fail_every and call % self.fail_every == 0:
            return ResponseOutcome.failure()
        return ResponseOutcome.success(self.latency_sec * 1000.0)


def test_every_dispatched_request_is_recorded() -> None:
    executor = SleepyExecutor(latency_sec=0.01, fail_every=3)
    config = RunConfig(target=TARGET, rate=200.0, total=9)
    result = asyncio.run(execute_run(config, executor))
    assert executor.calls == 9
    assert len(result.outcomes) == 9
    assert len(result.dispatched_at) == 9
    assert isinstance(result.dispatched_at, tuple)
    assert result.statistics.succeeded == 6
    assert result.statistics.failed == 3
    assert round(result.statistics.success_rate, 6) == round(100.0 * 6 / 9, 6)


def test_zero_total_dispatches_nothing() -> None:
    executor = SleepyExecutor()
    stats = asyncio.run(run(RunConfig(target=TARGET, rate=5.0, total=0), executor))
    assert executor.calls == 0
    assert stats.success_rate == 0.0
    assert stats.median_latency_ms == 0.0
    assert stats.average_in_flight == 0.0


def test_cadence_is_independent_of_request_latency() -> None:
    executor = SleepyExecutor(latency_sec=0.3)
    config = RunConfig(target=TARGET, rate=10.0, total=5)
    result = asyncio.run(execute_run(config, executor))
    span = result.dispatched_at[-1] - result.dispatched_at[0]
    assert 0.38 <= span < 0.6
    # Slow responses accumulate in flight rather than throttling dispatch.
    assert executor.max_live >= 3


def test_counter_matches_live_requests() -> None:
    executor = SleepyExecutor(latency_sec=0.05)
    config = RunConfig(target=TARGET, rate=50.0, total=10, sample_interval_sec=0.01)
    result = asyncio.run(execute_run(config, executor))
    assert executor.mismatches == 0
    assert executor.counter.value == 0
    assert result.samples
    assert all(0 <= sample <= executor.max_live for sample in result.samples)


def test_bounded_spawner_caps_concurrency_without_changing_results() -> None:
    executor = SleepyExecutor(latency_sec=0.05)
    config = RunConfig(target=TARGET, rate=100.0, total=8)

    async def go():
        return await execute_run(config, executor, spawner=BoundedSpawner(2))

    result = asyncio.run(go())
    assert executor.max_live <= 2
    assert len(result.outcomes) == 8
    assert result.statistics.success_rate == 100.0


def test_progress_callback_sees_each_dispatch() -> None:
    seen: list[tuple[int, int]] = []

    async def progress(done: int, total: int) -> None:
        seen.append((done, total))

    config = RunConfig(target=TARGET, rate=500.0, total=3)
    asyncio.run(execute_run(config, SleepyExecutor(), progress=progress))
    assert seen == [(1, 3), (2, 3), (3, 3)]


def _delayed_handler(delay_sec: float):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay_sec)
        return httpx.Response(200)

    return handler


def _run_against_mock(config: RunConfig, delay_sec: float):
    async def go():
        transport = httpx.MockTransport(_delayed_handler(delay_sec))
        async with httpx.AsyncClient(transport=transport) as client:
            return await execute_run(config, HttpxExecutor(client))

    return asyncio.run(go())


def test_end_to_end_against_slow_server() -> None:
    config = RunConfig(target=TARGET, rate=20.0, total=10)
    stats = _run_against_mock(config, 0.05).statistics
    assert stats.report_lines()[0] == "success: 100.0%"
    assert 45.0 <= stats.median_latency_ms < 150.0
    assert stats.average_in_flight > 0.0


def test_overlapping_requests_raise_average_in_flight() -> None:
    config = RunConfig(target=TARGET, rate=20.0, total=10)
    stats = _run_against_mock(config, 0.2).statistics
    assert stats.success_rate == 100.0
    assert stats.average_in_flight > 1.0


class ExplodingExecutor(SleepyExecutor):
    """First call raises; every later call completes normally."""

    def __init__(self, latency_sec: float) -> None:
        super().__init__(latency_sec=latency_sec)
        self.finished = 0

    async def execute(self, target: TargetConfig) -> ResponseOutcome:
        if self.calls == 0:
            self.calls += 1
            raise OSError("executor blew up")
        outcome = await super().execute(target)
        self.finished += 1
        return outcome


def test_failing_task_does_not_abandon_the_others() -> None:
    executor = ExplodingExecutor(latency_sec=0.2)
    config = RunConfig(target=TARGET, rate=100.0, total=5)
    with pytest.raises(OSError, match="executor blew up"):
        asyncio.run(execute_run(config, executor))
    assert executor.calls == 5
    assert executor.finished == 4
    assert executor.counter.value == 0


def test_dispatch_error_still_joins_spawned_tasks() -> None:
    executor = SleepyExecutor(latency_sec=0.2)

    async def progress(done: int, total: int) -> None:
        if done == 2:
            raise RuntimeError("progress sink failed")

    config = RunConfig(target=TARGET, rate=100.0, total=5)
    with pytest.raises(RuntimeError, match="progress sink failed"):
        asyncio.run(execute_run(config, executor, progress=progress))
    assert executor.calls == 2
    assert executor.live == 0
    assert executor.counter.value == 0
