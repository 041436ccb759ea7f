import math
import time
from dataclasses import dataclass
from functools import wraps

from flask import request, current_app, g

from utils.errors import RateLimitedError

CLEANUP_INTERVAL_SECONDS = 60


def _client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # first hop is the client
        return forwarded.split(",")[0].strip()
    for header in ("X-Real-IP", "CF-Connecting-IP"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    return request.remote_addr or "unknown"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset: int  # epoch seconds when the oldest hit leaves the window
    now: float

    @property
    def retry_after(self) -> int:
        return max(1, self.reset - int(self.now))

    def headers(self) -> dict:
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }
        if not self.allowed:
            out["Retry-After"] = str(self.retry_after)
        return out


class SlidingWindowRateLimiter:
    """
    In-process sliding window keyed by an arbitrary string. State lives in
    this object only, so limits are per process, not per deployment.
    """

    def __init__(self, clock=time.time):
        self._clock = clock
        self._hits = {}
        self._windows = {}
        self._last_cleanup = clock()

    def check_and_record(self, key: str, limit: int, window_seconds: float) -> RateLimitDecision:
        now = self._clock()
        self._cleanup(now)

        window_start = now - window_seconds
        hits = [ts for ts in self._hits.get(key, ()) if ts > window_start]

        if hits:
            reset = math.ceil(hits[0] + window_seconds)
        else:
            reset = math.ceil(now + window_seconds)

        if len(hits) >= limit:
            self._hits[key] = hits
            return RateLimitDecision(allowed=False, limit=limit, remaining=0, reset=reset, now=now)

        hits.append(now)
        self._hits[key] = hits
        self._windows[key] = window_seconds
        return RateLimitDecision(
            allowed=True, limit=limit, remaining=limit - len(hits), reset=reset, now=now
        )

    def reset(self):
        self._hits.clear()
        self._windows.clear()
        self._last_cleanup = self._clock()

    def _cleanup(self, now: float):
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        for key in list(self._hits):
            cutoff = now - self._windows.get(key, 0)
            alive = [ts for ts in self._hits[key] if ts > cutoff]
            if alive:
                self._hits[key] = alive
            else:
                del self._hits[key]
                self._windows.pop(key, None)
        self._last_cleanup = now


def init_rate_limiter(app, limiter=None):
    app.extensions["rate_limiter"] = limiter or SlidingWindowRateLimiter()


def get_rate_limiter():
    return current_app.extensions["rate_limiter"]


def rate_limited(name: str):
    """
    Usage: @rate_limited("booking")
    Limits come from config RATE_LIMITS[name] = (limit, window_seconds).
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            limit, window_seconds = current_app.config["RATE_LIMITS"][name]
            decision = get_rate_limiter().check_and_record(
                f"{name}:{_client_ip()}", limit, window_seconds
            )
            g.rate_limit = decision
            if not decision.allowed:
                raise RateLimitedError(decision)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
