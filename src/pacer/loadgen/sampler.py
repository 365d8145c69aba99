from __future__ import annotations

import asyncio
import contextlib
import logging

from pacer.metrics import MetricsAggregator, OutstandingCounter

logger = logging.getLogger(__name__)


class ConcurrencySampler:
    """Background task recording the outstanding request count every interval."""

    def __init__(
        self,
        counter: OutstandingCounter,
        aggregator: MetricsAggregator,
        interval_sec: float = 0.1,
    ) -> None:
        self.counter = counter
        self.aggregator = aggregator
        self.interval_sec = interval_sec
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            msg = "Sampler already started"
            raise RuntimeError(msg)
        self._task = asyncio.create_task(self._loop(), name="pacer-sampler")
        self._task.add_done_callback(_log_failure)

    async def stop(self) -> None:
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            self.aggregator.record_sample(self.counter.value)


def _log_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("concurrency sampler stopped unexpectedly", exc_info=exc)
