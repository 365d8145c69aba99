from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

SUPPORTED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}


class ConfigError(ValueError):
    """Fatal configuration problem; raised before any request is dispatched."""


@dataclass(frozen=True, slots=True)
class TargetConfig:
    host: str
    port: int
    scheme: str = "http"
    timeout_sec: float | None = None
    http2: bool = False

    def __post_init__(self) -> None:
        if self.scheme not in SUPPORTED_SCHEMES:
            msg = f"Unsupported scheme: {self.scheme!r}"
            raise ConfigError(msg)
        if not self.host:
            msg = "Target host is empty"
            raise ConfigError(msg)
        if not 0 < self.port < 65536:
            msg = f"Port out of range: {self.port}"
            raise ConfigError(msg)
        if self.timeout_sec is not None and self.timeout_sec <= 0:
            msg = f"Timeout must be positive, got {self.timeout_sec}"
            raise ConfigError(msg)

    @property
    def authority(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.authority}/"


@dataclass(frozen=True, slots=True)
class RunConfig:
    target: TargetConfig
    rate: float = 1.0
    total: int = 1
    sample_interval_sec: float = 0.1
    run_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    def __post_init__(self) -> None:
        if not math.isfinite(self.rate) or self.rate <= 0:
            msg = f"Rate must be a positive number, got {self.rate}"
            raise ConfigError(msg)
        if self.total < 0:
            msg = f"Total must be non-negative, got {self.total}"
            raise ConfigError(msg)
        if self.sample_interval_sec <= 0:
            msg = f"Sample interval must be positive, got {self.sample_interval_sec}"
            raise ConfigError(msg)

    @property
    def interval_sec(self) -> float:
        return 1.0 / self.rate

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "run_id": self.run_id or "",
            "created_at": self.created_at.isoformat(),
            "rate": self.rate,
            "total": self.total,
            "sample_interval_sec": self.sample_interval_sec,
            "notes": self.notes,
            "target": {
                "scheme": self.target.scheme,
                "host": self.target.host,
                "port": self.target.port,
                "timeout_sec": self.target.timeout_sec,
                "http2": self.target.http2,
            },
        }
