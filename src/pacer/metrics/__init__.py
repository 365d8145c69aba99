from __future__ import annotations

from pacer.metrics.aggregator import MetricsAggregator
from pacer.metrics.counter import OutstandingCounter
from pacer.metrics.models import ErrorType, ResponseOutcome, RunStatistics

__all__ = [
    "ErrorType",
    "MetricsAggregator",
    "OutstandingCounter",
    "ResponseOutcome",
    "RunStatistics",
]
