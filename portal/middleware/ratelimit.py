"""
Per-client rate limiting: one token bucket per (client ip, path).
"""
import logging
import time
from typing import Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from portal.observability.metrics import rate_limits_total

logger = logging.getLogger(__name__)


class TokenBucket:
    """Holds up to `burst` tokens and regains `refill_rate` tokens per second."""

    def __init__(self, capacity: int, refill_rate: float, burst: Optional[int] = None):
        self.capacity = capacity
        self.burst = capacity if burst is None else burst
        self.refill_rate = refill_rate
        self.tokens = float(self.burst)
        self.updated = time.monotonic()

    def consume(self, tokens: int = 1) -> bool:
        now = time.monotonic()
        self.tokens = min(self.burst, self.tokens + (now - self.updated) * self.refill_rate)
        self.updated = now
        if self.tokens < tokens:
            return False
        self.tokens -= tokens
        return True


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Answers 429 once a client has used up its per-minute allowance on a path."""

    def __init__(self, app, capacity: int = 120, burst: Optional[int] = None):
        super().__init__(app)
        self.capacity = capacity
        self.burst = burst
        self.buckets: Dict[Tuple[str, str], TokenBucket] = {}

    def bucket_for(self, key: Tuple[str, str]) -> TokenBucket:
        bucket = self.buckets.get(key)
        if bucket is None:
            bucket = self.buckets[key] = TokenBucket(self.capacity, self.capacity / 60.0, self.burst)
        return bucket

    async def dispatch(self, request: Request, call_next):
        key = (request.client.host if request.client else "unknown", request.url.path)

        if not self.bucket_for(key).consume():
            rate_limits_total.labels(service="portal").inc()
            logger.warning(f"Rate limit exceeded for {key[0]} on {key[1]}")
            return JSONResponse(
                status_code=429,
                content={"error": f"Rate limit exceeded. Max {self.capacity} requests per minute."},
                headers={"Retry-After": "60"},
            )

        return await call_next(request)
