from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Tuple


class CircuitBreaker:
    """Failure-window circuit breaker shared by Firestore and provider clients.

    States: CLOSED -> OPEN -> HALF_OPEN -> CLOSED
    - failure_threshold: failures within window_seconds that open the breaker
    - half_open_after_s: cool-down before a single probe call is admitted
    - backoff_fn: attempt -> sleep seconds, for callers that retry
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        window_seconds: int = 30,
        half_open_after_s: int = 15,
        backoff_fn: Optional[Callable[[int], float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._state = "CLOSED"
        self._failures: list[Tuple[float, str]] = []
        self._opened_at: float = 0.0
        self._probe_inflight = False
        self._threshold = max(1, int(failure_threshold))
        self._window_s = float(window_seconds)
        self._half_open_after = float(half_open_after_s)
        self._backoff = backoff_fn or (lambda n: min(1.0, 0.05 * (2 ** max(0, n - 1))))
        self._clock = clock

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    def backoff(self, attempt: int) -> float:
        return self._backoff(attempt)

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_s
        self._failures = [entry for entry in self._failures if entry[0] >= cutoff]

    def allow_call(self) -> bool:
        now = self._clock()
        with self._lock:
            if self._state == "OPEN":
                if (now - self._opened_at) >= self._half_open_after and not self._probe_inflight:
                    self._state = "HALF_OPEN"
                    self._probe_inflight = True
                    return True
                return False
            if self._state == "HALF_OPEN":
                # only the in-flight probe may pass
                return False
            return True

    def on_success(self) -> None:
        with self._lock:
            self._state = "CLOSED"
            self._probe_inflight = False
            self._failures.clear()

    def on_failure(self, exc: Optional[BaseException] = None) -> None:
        now = self._clock()
        key = type(exc).__name__ if exc is not None else "generic"
        with self._lock:
            if self._state == "HALF_OPEN":
                self._state = "OPEN"
                self._opened_at = now
                self._probe_inflight = False
                return
            self._failures.append((now, key))
            self._prune(now)
            if len(self._failures) >= self._threshold:
                self._state = "OPEN"
                self._opened_at = now

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "state": self._state,
                "failures": len(self._failures),
                "window_s": self._window_s,
                "half_open_after_s": self._half_open_after,
            }


__all__ = ["CircuitBreaker"]
