"""
Rate Limiting Middleware
Fixed-window request counting per client IP

The limiter is a plain component built once at startup and shared by every
request; its clock is injectable so windows can be driven from tests.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from ..models.error_models import RateLimitResponse
from ..services.audit import SecurityAuditLogger

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP handling proxy headers"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


@dataclass
class RateLimitBucket:
    """Requests counted in the current window for one client"""

    request_count: int
    window_reset_at: float

    def expired(self, now: float) -> bool:
        return now >= self.window_reset_at


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class FixedWindowRateLimiter:
    """Per-key fixed window counter with periodic cleanup"""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self.buckets: Dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for key and decide whether it may proceed"""
        with self._lock:
            now = self.clock()
            bucket = self.buckets.get(key)

            if bucket is None or bucket.expired(now):
                self.buckets[key] = RateLimitBucket(request_count=1, window_reset_at=now + self.window_seconds)
                return RateLimitDecision(True, self.max_requests, self.max_requests - 1, 0)

            if bucket.request_count >= self.max_requests:
                return RateLimitDecision(False, self.max_requests, 0, self.window_seconds)

            bucket.request_count += 1
            return RateLimitDecision(True, self.max_requests, self.max_requests - bucket.request_count, 0)

    def sweep(self) -> int:
        """Remove buckets whose window has ended; returns how many were removed"""
        with self._lock:
            now = self.clock()
            expired = [key for key, bucket in self.buckets.items() if bucket.expired(now)]
            for key in expired:
                del self.buckets[key]

        if expired:
            logger.debug(f"Rate limit cleanup: removed {len(expired)} expired buckets")
        return len(expired)

    def start_sweeper(self, interval: float = 60.0) -> None:
        """Run sweep() every interval seconds on a daemon thread"""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop.clear()

        def _loop():
            while not self._stop.wait(interval):
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Rate limit sweep failed: {e}", exc_info=True)

        self._sweeper = threading.Thread(target=_loop, name="rate-limit-sweeper", daemon=True)
        self._sweeper.start()
        logger.info(f"Rate limit sweeper started (interval={interval}s)")

    def stop_sweeper(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None


class RateLimitingMiddleware:
    """HTTP middleware applying the shared limiter to every request"""

    def __init__(
        self,
        limiter: FixedWindowRateLimiter,
        audit_logger: SecurityAuditLogger,
        enabled: bool = True,
    ):
        self.limiter = limiter
        self.audit_logger = audit_logger
        self.enabled = enabled

    async def __call__(self, request: Request, call_next) -> Response:
        if not self.enabled:
            return await call_next(request)

        client_ip = get_client_ip(request)
        decision = self.limiter.check(client_ip)
        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
        }

        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            self.audit_logger.log_rate_limit_event(
                source_ip=client_ip,
                request_count=decision.limit,
                path=request.url.path,
            )
            headers["Retry-After"] = str(decision.retry_after)
            return JSONResponse(
                status_code=429,
                content=RateLimitResponse(retry_after=decision.retry_after).model_dump(),
                headers=headers,
            )

        response = await call_next(request)
        for header_name, header_value in headers.items():
            response.headers[header_name] = header_value
        return response
