from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Coroutine, Protocol

import httpx

from pacer.config import RunConfig, TargetConfig
from pacer.loadgen.client import HttpxExecutor, RequestExecutor
from pacer.loadgen.sampler import ConcurrencySampler
from pacer.metrics import MetricsAggregator, OutstandingCounter, ResponseOutcome, RunStatistics
from pacer.storage import Storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    statistics: RunStatistics
    outcomes: tuple[ResponseOutcome, ...]
    samples: tuple[int, ...]
    dispatched_at: tuple[float, ...]


ProgressCallback = Callable[[int, int], Awaitable[None]]


class Spawner(Protocol):
    def spawn(self, coro: Coroutine[object, object, None]) -> None:
        ...

    async def join(self) -> None:
        ...


class UnboundedSpawner:
    """One task per request, no limit on how many run at once."""

    def __init__(self) -> None:
        self.tasks: list[asyncio.Task[None]] = []

    def spawn(self, coro: Coroutine[object, object, None]) -> None:
        self.tasks.append(asyncio.create_task(coro))

    async def join(self) -> None:
        if not self.tasks:
            return
        results = await asyncio.gather(*self.tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result


class BoundedSpawner(UnboundedSpawner):
    """Caps how many spawned bodies run concurrently; dispatch pacing is unchanged."""

    def __init__(self, limit: int) -> None:
        super().__init__()
        if limit <= 0:
            msg = f"Spawner limit must be positive, got {limit}"
            raise ValueError(msg)
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)

    def spawn(self, coro: Coroutine[object, object, None]) -> None:
        super().spawn(self._gated(coro))

    async def _gated(self, coro: Coroutine[object, object, None]) -> None:
        async with self._semaphore:
            await coro


def _new_run_id() -> str:
    return uuid.uuid4().hex


async def run(config: RunConfig, executor: RequestExecutor) -> RunStatistics:
    result = await execute_run(config, executor)
    return result.statistics


async def run_experiment(config: RunConfig, storage: Storage | None = None) -> RunResult:
    run_id = config.run_id or _new_run_id()
    if storage is not None and storage.run_exists(run_id):
        msg = f"Run {run_id} already exists"
        raise ValueError(msg)
    async with _build_client(config.target) as client:
        executor = HttpxExecutor(client)
        result = await execute_run(config, executor, run_id=run_id)
    if storage is not None:
        storage.save_run(config, run_id, result.outcomes, result.samples, result.statistics)
    return result


def _build_client(target: TargetConfig) -> httpx.AsyncClient:
    # No pool cap: a queued request would be counted as in flight and the
    # load would stop being open-loop. Use BoundedSpawner to limit concurrency.
    limits = httpx.Limits(max_connections=None, max_keepalive_connections=None)
    return httpx.AsyncClient(http2=target.http2, limits=limits)


async def execute_run(
    config: RunConfig,
    executor: RequestExecutor,
    *,
    run_id: str | None = None,
    spawner: Spawner | None = None,
    progress: ProgressCallback | None = None,
) -> RunResult:
    run_id = run_id or config.run_id or _new_run_id()
    spawner = spawner or UnboundedSpawner()
    aggregator = MetricsAggregator()
    sampler = ConcurrencySampler(executor.counter, aggregator, config.sample_interval_sec)
    dispatched_at: list[float] = []

    logger.info(
        "run %s: %d requests to %s at %.2f req/s",
        run_id,
        config.total,
        config.target.url,
        config.rate,
    )
    sampler.start()
    try:
        try:
            await _dispatch(config, executor, aggregator, spawner, dispatched_at, progress)
        finally:
            await spawner.join()
    finally:
        await sampler.stop()

    statistics = aggregator.finalize(config.total)
    outcomes, samples = aggregator.freeze()
    logger.info(
        "run %s finished: %d/%d succeeded",
        run_id,
        statistics.succeeded,
        statistics.requested,
    )
    return RunResult(
        run_id=run_id,
        statistics=statistics,
        outcomes=outcomes,
        samples=samples,
        dispatched_at=tuple(dispatched_at),
    )


async def _dispatch(
    config: RunConfig,
    executor: RequestExecutor,
    aggregator: MetricsAggregator,
    spawner: Spawner,
    dispatched_at: list[float],
    progress: ProgressCallback | None,
) -> None:
    # The delay sits on the loop, never on the spawned task: slow responses
    # pile up in flight instead of slowing the cadence.
    delay = config.interval_sec
    for i in range(config.total):
        dispatched_at.append(time.perf_counter())
        spawner.spawn(_dispatch_one(executor, aggregator, config.target))
        if progress:
            await progress(i + 1, config.total)
        await asyncio.sleep(delay)


async def _dispatch_one(
    executor: RequestExecutor,
    aggregator: MetricsAggregator,
    target: TargetConfig,
) -> None:
    outcome = await executor.execute(target)
    await aggregator.record_outcome(outcome)
