from __future__ import annotations

import logging
import socket
from urllib.parse import urlsplit

from pacer.config.models import DEFAULT_PORTS, ConfigError, TargetConfig

logger = logging.getLogger(__name__)


def parse_address(
    address: str,
    *,
    default_scheme: str = "http",
    timeout_sec: float | None = None,
    http2: bool = False,
) -> TargetConfig:
    """Turn ``host:port`` or ``scheme://host[:port]`` into a TargetConfig.

    A missing scheme falls back to ``default_scheme``; a missing port falls
    back to the scheme's well-known port.
    """
    address = address.strip()
    if not address:
        msg = "Address is empty"
        raise ConfigError(msg)
    if "://" not in address:
        address = f"{default_scheme}://{address}"
    parts = urlsplit(address)
    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        msg = f"Unsupported scheme: {parts.scheme!r}"
        raise ConfigError(msg)
    try:
        port = parts.port
    except ValueError as exc:
        msg = f"Invalid port in address {address!r}"
        raise ConfigError(msg) from exc
    host = parts.hostname
    if not host:
        msg = f"Missing host in address {address!r}"
        raise ConfigError(msg)
    return TargetConfig(
        host=host,
        port=port if port is not None else DEFAULT_PORTS[scheme],
        scheme=scheme,
        timeout_sec=timeout_sec,
        http2=http2,
    )


def resolve_target(target: TargetConfig) -> list[str]:
    try:
        infos = socket.getaddrinfo(target.host, target.port, type=socket.SOCK_STREAM)
    except socket.gaierror as exc:
        msg = f"Cannot resolve host {target.host!r}: {exc}"
        raise ConfigError(msg) from exc
    addresses = sorted({info[4][0] for info in infos})
    if not addresses:
        msg = f"Cannot resolve host {target.host!r}"
        raise ConfigError(msg)
    logger.debug("resolved %s to %s", target.host, ", ".join(addresses))
    return addresses
