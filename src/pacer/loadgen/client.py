from __future__ import annotations

import logging
import time
from typing import Protocol

import httpx

from pacer.config import TargetConfig
from pacer.metrics import ErrorType, OutstandingCounter, ResponseOutcome

logger = logging.getLogger(__name__)


class RequestExecutor(Protocol):
    counter: OutstandingCounter

    async def execute(self, target: TargetConfig) -> ResponseOutcome:
        ...


class HttpxExecutor:
    """Sends one GET per call over a shared ``httpx.AsyncClient``.

    Any response, whatever its status code, counts as a success. Only a
    failure to complete the exchange is recorded as a failure.
    """

    def __init__(self, client: httpx.AsyncClient, counter: OutstandingCounter | None = None) -> None:
        self.client = client
        self.counter = counter or OutstandingCounter()

    async def execute(self, target: TargetConfig) -> ResponseOutcome:
        request = self.client.build_request(
            "GET",
            target.url,
            headers={"Host": target.authority},
            content=b"",
            timeout=target.timeout_sec,
        )
        self.counter.increment()
        start = time.perf_counter()
        try:
            response = await self.client.send(request)
        except httpx.TimeoutException as exc:
            return _failed(ErrorType.TIMEOUT, exc)
        except httpx.ConnectError as exc:
            return _failed(ErrorType.CONNECT, exc)
        except httpx.ReadError as exc:
            return _failed(ErrorType.READ, exc)
        except httpx.ProtocolError as exc:
            return _failed(ErrorType.PROTOCOL, exc)
        except httpx.HTTPError as exc:
            return _failed(ErrorType.OTHER, exc)
        finally:
            self.counter.decrement()
        latency_ms = (time.perf_counter() - start) * 1000.0
        return ResponseOutcome.success(latency_ms, status_code=response.status_code)


def _failed(error_type: ErrorType, exc: Exception) -> ResponseOutcome:
    logger.debug("request failed (%s): %s", error_type.value, exc)
    return ResponseOutcome.failure(error_type)
