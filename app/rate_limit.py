# app/rate_limit.py
"""In-memory sliding-window rate limiting for the API."""
import time
from threading import Lock
from typing import Dict, List

from fastapi import HTTPException, Request

WINDOW_SECONDS = 60.0


class RateLimiter:
    """Per-client sliding window, one bucket per endpoint group."""

    def __init__(self, limits: Dict[str, int], window_seconds: float = WINDOW_SECONDS):
        self.limits = dict(limits)
        self.window_seconds = window_seconds
        self._windows: Dict[str, List[float]] = {}
        self._lock = Lock()
        self._last_sweep = time.monotonic()

    def _sweep(self, now: float) -> None:
        # drop buckets whose hits have all aged out; caller holds the lock
        window_start = now - self.window_seconds
        for key in [k for k, ts in self._windows.items() if not ts or ts[-1] <= window_start]:
            del self._windows[key]
        self._last_sweep = now

    def check(self, client_id: str, group: str = "default") -> bool:
        """Return ``True`` and record the hit if the request is allowed."""
        limit = self.limits.get(group, self.limits.get("default", 60))
        key = f"{client_id}:{group}"
        now = time.monotonic()
        window_start = now - self.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            timestamps = [t for t in self._windows.get(key, []) if t > window_start]
            if len(timestamps) >= limit:
                self._windows[key] = timestamps
                return False
            timestamps.append(now)
            self._windows[key] = timestamps
        return True

    def bucket_count(self) -> int:
        with self._lock:
            return len(self._windows)

    def retry_after(self, client_id: str, group: str = "default") -> int:
        key = f"{client_id}:{group}"
        with self._lock:
            timestamps = self._windows.get(key) or []
            if not timestamps:
                return 0
            oldest = timestamps[0]
        return max(1, int(oldest + self.window_seconds - time.monotonic()) + 1)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def _client_id(request: Request) -> str:
    """Peer address, or the hop our own proxy appended when `trust_proxy` is set."""
    if request.app.state.settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[-1].strip()
    return request.client.host if request.client else "unknown"


def _enforce(request: Request, group: str, message: str) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    client = _client_id(request)
    if not limiter.check(client, group):
        raise HTTPException(
            status_code=429,
            detail=message,
            headers={"Retry-After": str(limiter.retry_after(client, group))},
        )


def rate_limit(request: Request) -> None:
    """FastAPI dependency for general API endpoints."""
    _enforce(request, "default", "Too many requests. Please try again later.")


def rate_limit_optimize(request: Request) -> None:
    """FastAPI dependency for the optimize endpoint."""
    _enforce(request, "optimize", "Optimization rate limit reached. Please wait before trying again.")
