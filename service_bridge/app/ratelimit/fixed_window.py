"""
Fixed-window rate limiter for the bridge.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from fastapi import Request

from shared.logging import get_logger


@dataclass
class RateLimitState:
    """Counter for one client key inside its current window."""

    key: str
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class Allowed:
    """Admission granted."""

    limit: int
    remaining: int
    reset_in_seconds: int


@dataclass(frozen=True)
class Rejected:
    """Admission refused until the current window elapses."""

    limit: int
    retry_after_seconds: int


AdmissionDecision = Union[Allowed, Rejected]


class FixedWindowRateLimiter:
    """In-process fixed-window counter keyed by client identifier.

    Counters are shared by every in-flight request, so the increment and the
    comparison against the limit happen under one lock. The lock never spans
    an outbound call.
    """

    def __init__(
        self,
        max_requests: int = 45,
        window_seconds: float = 60.0,
        *,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self.logger = get_logger("bridge.rate_limiter")
        self._clock = clock
        self._states: Dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    def admit(self, client_key: str) -> AdmissionDecision:
        """Count one request for ``client_key`` and decide whether to admit it."""
        with self._lock:
            now = self._clock()
            state = self._states.get(client_key)
            if state is None or self._expired(state, now):
                if state is None and len(self._states) >= self.max_keys:
                    self._evict_expired(now)
                state = RateLimitState(key=client_key, window_start=now)
                self._states[client_key] = state

            state.count += 1
            count = state.count
            reset_in = state.window_start + self.window_seconds - now

        reset_in_seconds = max(1, math.ceil(reset_in))

        if count > self.max_requests:
            self.logger.warning(
                "Rate limit exceeded",
                client_key=client_key,
                current_count=count,
                limit=self.max_requests,
                retry_after=reset_in_seconds,
            )
            return Rejected(limit=self.max_requests, retry_after_seconds=reset_in_seconds)

        return Allowed(
            limit=self.max_requests,
            remaining=self.max_requests - count,
            reset_in_seconds=reset_in_seconds,
        )

    def get_rate_limit_status(self, client_key: str) -> Dict[str, Any]:
        """Get current rate limit status for a client without counting a request."""
        with self._lock:
            now = self._clock()
            state = self._states.get(client_key)
            if state is None or self._expired(state, now):
                count = 0
                reset_in = self.window_seconds
            else:
                count = state.count
                reset_in = state.window_start + self.window_seconds - now

        return {
            "current_count": count,
            "limit": self.max_requests,
            "remaining": max(0, self.max_requests - count),
            "reset_in_seconds": max(1, math.ceil(reset_in)),
        }

    def reset_rate_limit(self, client_key: str) -> bool:
        """Forget the window for ``client_key``; returns whether one existed."""
        with self._lock:
            removed = self._states.pop(client_key, None) is not None

        if removed:
            self.logger.info("Rate limit reset", client_key=client_key)
        return removed

    def get_global_stats(self) -> Dict[str, Any]:
        """Get global rate limiting statistics for live windows."""
        with self._lock:
            now = self._clock()
            live = [state for state in self._states.values() if not self._expired(state, now)]

        total_requests = sum(state.count for state in live)
        return {
            "total_clients": len(live),
            "total_requests": total_requests,
            "average_requests_per_client": total_requests / max(1, len(live)),
        }

    def _expired(self, state: RateLimitState, now: float) -> bool:
        return now - state.window_start >= self.window_seconds

    def _evict_expired(self, now: float) -> None:
        # Caller holds the lock.
        expired = [key for key, state in self._states.items() if self._expired(state, now)]
        for key in expired:
            del self._states[key]
        if expired:
            self.logger.debug("Evicted expired rate limit windows", evicted=len(expired))


def get_client_key(request: Request) -> str:
    """Extract the caller's rate-limit key (network origin) from a request."""
    forwarded_for: Optional[str] = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"
