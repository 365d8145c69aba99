from __future__ import annotations

from pacer.config.address import parse_address, resolve_target
from pacer.config.models import ConfigError, RunConfig, TargetConfig

__all__ = [
    "ConfigError",
    "RunConfig",
    "TargetConfig",
    "parse_address",
    "resolve_target",
]
