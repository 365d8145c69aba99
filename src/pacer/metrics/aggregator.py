from __future__ import annotations

import asyncio
import threading

import numpy as np

from pacer.metrics.models import ResponseOutcome, RunStatistics


class MetricsAggregator:
    """Collects outcomes and in-flight samples from concurrent tasks.

    Outcomes are appended by request tasks under an asyncio lock; samples are
    appended by the sampler under a thread lock. ``finalize`` freezes both
    logs, so it must only be called once every writer has joined.
    """

    def __init__(self) -> None:
        self._outcomes: list[ResponseOutcome] = []
        self._samples: list[int] = []
        self._outcome_lock = asyncio.Lock()
        self._sample_lock = threading.Lock()
        self._frozen: tuple[tuple[ResponseOutcome, ...], tuple[int, ...]] | None = None

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    async def record_outcome(self, outcome: ResponseOutcome) -> None:
        async with self._outcome_lock:
            self._check_open()
            self._outcomes.append(outcome)

    def record_sample(self, in_flight: int) -> None:
        with self._sample_lock:
            self._check_open()
            self._samples.append(in_flight)

    def freeze(self) -> tuple[tuple[ResponseOutcome, ...], tuple[int, ...]]:
        if self._frozen is None:
            with self._sample_lock:
                self._frozen = (tuple(self._outcomes), tuple(self._samples))
        return self._frozen

    def finalize(self, total_requested: int) -> RunStatistics:
        outcomes, samples = self.freeze()
        latencies = [o.latency_ms for o in outcomes if o.succeeded and o.latency_ms is not None]
        succeeded = sum(1 for o in outcomes if o.succeeded)
        return RunStatistics(
            requested=total_requested,
            succeeded=succeeded,
            success_rate=success_rate(succeeded, total_requested),
            median_latency_ms=upper_median(latencies),
            average_in_flight=mean_or_zero(samples),
        )

    def _check_open(self) -> None:
        if self._frozen is not None:
            msg = "Metrics already finalized"
            raise RuntimeError(msg)


def success_rate(succeeded: int, total_requested: int) -> float:
    # An empty run reports 0% rather than dividing by zero.
    if total_requested <= 0:
        return 0.0
    return 100.0 * succeeded / total_requested


def upper_median(values: list[float]) -> float:
    if not values:
        return 0.0
    ordered = np.sort(np.asarray(values, dtype=float))
    return float(ordered[len(ordered) // 2])


def mean_or_zero(values: list[int] | tuple[int, ...]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))
