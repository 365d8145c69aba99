from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorType(str, Enum):
    TIMEOUT = "timeout"
    CONNECT = "connect"
    READ = "read"
    PROTOCOL = "protocol"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ResponseOutcome:
    succeeded: bool
    latency_ms: float | None = None
    status_code: int | None = None
    error_type: ErrorType | None = None

    @classmethod
    def success(cls, latency_ms: float, status_code: int | None = None) -> ResponseOutcome:
        return cls(succeeded=True, latency_ms=latency_ms, status_code=status_code)

    @classmethod
    def failure(cls, error_type: ErrorType = ErrorType.OTHER) -> ResponseOutcome:
        return cls(succeeded=False, error_type=error_type)


@dataclass(frozen=True, slots=True)
class RunStatistics:
    requested: int
    succeeded: int
    success_rate: float
    median_latency_ms: float
    average_in_flight: float

    @property
    def failed(self) -> int:
        return self.requested - self.succeeded

    def report_lines(self) -> list[str]:
        return [
            f"success: {self.success_rate:.1f}%",
            f"median response time: {self.median_latency_ms:.3f}ms",
            f"average in-flight: {self.average_in_flight:.2f}",
        ]
