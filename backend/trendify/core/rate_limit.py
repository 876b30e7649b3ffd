"""
Rate limiting for the Trendify backend

A sliding-window limiter kept in process memory, applied globally by
RateLimitMiddleware and per endpoint through the rate_limit() dependency.
Each worker process keeps its own windows.
"""
import hashlib
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from trendify.core.config import get_settings
from trendify.core.errors import RateLimitExceededError


class RateLimiter:
    """
    Sliding-window limiter

    Every identifier keeps a deque of request timestamps, oldest first.
    Idle identifiers are swept at most once per sweep_interval, using the
    widest window the identifier was ever checked against.
    """

    def __init__(self, clock=time.time, sweep_interval: float = 60.0):
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._windows: Dict[str, int] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    @staticmethod
    def _evict(hits: Deque[float], horizon: float):
        while hits and hits[0] <= horizon:
            hits.popleft()

    def _sweep(self, now: float):
        if now < self._next_sweep:
            return
        for identifier in list(self._hits):
            hits = self._hits[identifier]
            self._evict(hits, now - self._windows.get(identifier, 60))
            if not hits:
                del self._hits[identifier]
                self._windows.pop(identifier, None)
        self._next_sweep = now + self._sweep_interval

    def is_allowed(self, identifier: str, max_requests: int, window_seconds: int = 60) -> Tuple[bool, int, int]:
        """
        Record a request for identifier if the window has room

        Returns:
            (allowed, remaining requests, seconds until a slot frees up)
        """
        now = self._clock()
        self._sweep(now)

        self._windows[identifier] = max(window_seconds, self._windows.get(identifier, 0))
        hits = self._hits[identifier]
        self._evict(hits, now - window_seconds)

        if len(hits) >= max_requests:
            retry_after = int(hits[0] + window_seconds - now) + 1 if hits else 1
            return False, 0, retry_after

        hits.append(now)
        return True, max_requests - len(hits), 0

    def reset(self):
        self._hits.clear()
        self._windows.clear()


rate_limiter = RateLimiter()

# Never limited; Paystack retries webhooks and signatures already gate that route
EXEMPT_PATHS = frozenset({
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/v1/webhooks/paystack",
})


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "anonymous"


def request_identity(request: Request) -> Tuple[str, bool]:
    """
    (identifier, authenticated) for the caller

    Bearer tokens are keyed by a SHA-256 prefix, never stored raw.
    """
    auth_header = request.headers.get("Authorization") or ""
    if auth_header.startswith("Bearer "):
        return f"jwt:{hashlib.sha256(auth_header.encode()).hexdigest()[:32]}", True

    return f"ip:{client_ip(request)}", False


def limit_headers(limit: int, remaining: int, retry_after: int = 0) -> Dict[str, str]:
    headers = {"X-RateLimit-Limit": str(limit), "X-RateLimit-Remaining": str(remaining)}
    if retry_after:
        headers["Retry-After"] = str(retry_after)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-minute limit for every request, higher for bearer-token callers

    Responses carry X-RateLimit-Limit and X-RateLimit-Remaining; rejections
    are a 429 with Retry-After.
    """

    def __init__(self, app, limiter: RateLimiter = None):
        super().__init__(app)
        self.limiter = limiter or rate_limiter

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        settings = get_settings()
        identifier, authenticated = request_identity(request)
        limit = settings.RATE_LIMIT_AUTHENTICATED if authenticated else settings.RATE_LIMIT_ANONYMOUS

        allowed, remaining, retry_after = self.limiter.is_allowed(identifier, limit, window_seconds=60)
        if not allowed:
            # Returned, not raised, so CORS headers are still added
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests", "error_type": "RateLimitExceededError"},
                headers=limit_headers(limit, 0, retry_after),
            )

        response = await call_next(request)
        response.headers.update(limit_headers(limit, remaining))
        return response


def rate_limit(max_requests: int, window_seconds: int, scope: str):
    """
    Dependency factory for tighter per-endpoint limits

    Usage:
        @router.post("/")
        async def create_return(_: None = Depends(rate_limit(3, 3600, "return"))):
            ...
    """
    async def checker(request: Request):
        identifier, _ = request_identity(request)
        allowed, _, retry_after = rate_limiter.is_allowed(f"{scope}:{identifier}", max_requests, window_seconds)
        if not allowed:
            raise RateLimitExceededError(
                f"Too many {scope} requests. Try again in {retry_after} seconds.",
                limit=max_requests,
                retry_after=retry_after,
            )

    return checker
