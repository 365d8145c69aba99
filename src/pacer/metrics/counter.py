from __future__ import annotations

import threading


class OutstandingCounter:
    """Number of requests currently waiting on the network."""

    __slots__ = ("_value", "_lock")

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def decrement(self) -> int:
        with self._lock:
            if self._value == 0:
                msg = "Outstanding counter decremented below zero"
                raise RuntimeError(msg)
            self._value -= 1
            return self._value
