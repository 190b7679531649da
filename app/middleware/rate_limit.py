"""
Rate limiting middleware
Fixed-window counters in Redis, shared by every worker process
"""

import logging
import time
from typing import Dict, Optional, Tuple

import redis
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import settings
from app.utils.request import get_client_ip

logger = logging.getLogger(__name__)

# Stripe retries on non-2xx, so the webhook is never throttled
EXEMPT_PATHS = ("/api/stripe/webhook", "/health")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware using Redis"""

    def __init__(self, app, redis_client: redis.Redis, rate_limits: Optional[Dict[str, Dict[str, int]]] = None):
        super().__init__(app)
        self.redis_client = redis_client

        # Rate limit configurations
        self.rate_limits = rate_limits or {
            "default": {"requests": settings.RATE_LIMIT_REQUESTS, "window": settings.RATE_LIMIT_WINDOW},
            "auth": {"requests": 50, "window": 60},
            "download_link": {
                "requests": settings.DOWNLOAD_LINK_RATE_LIMIT,
                "window": settings.DOWNLOAD_LINK_RATE_WINDOW
            },
            "api": {"requests": 1000, "window": 3600},
        }

    async def dispatch(self, request: Request, call_next):
        """Process request through rate limiting"""

        path = request.url.path
        if path in EXEMPT_PATHS:
            return await call_next(request)

        client_id = self._get_client_id(request)
        category = self._get_rate_limit_category(path)
        config = self.rate_limits[category]

        count, ttl = self._hit(client_id, category)

        if count is not None and count > config["requests"]:
            logger.warning(f"Rate limit exceeded for {client_id} on {category} ({path})")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Rate limit exceeded. Please try again later."},
                headers={
                    "Retry-After": str(max(ttl, 1)),
                    "X-RateLimit-Limit": str(config["requests"]),
                    "X-RateLimit-Window": str(config["window"])
                }
            )

        response = await call_next(request)

        if count is not None:
            response.headers["X-RateLimit-Limit"] = str(config["requests"])
            response.headers["X-RateLimit-Remaining"] = str(max(0, config["requests"] - count))
            response.headers["X-RateLimit-Reset"] = str(int(time.time()) + max(ttl, 0))

        return response

    def _get_client_id(self, request: Request) -> str:
        """Get client identifier for rate limiting"""
        return f"ip:{get_client_ip(request)}"

    def _get_rate_limit_category(self, path: str) -> str:
        """Determine rate limit category based on path"""

        if path.startswith("/api/download/generate-link/"):
            return "download_link"
        elif path.startswith("/api/auth/"):
            return "auth"
        elif path.startswith("/api/"):
            return "api"
        else:
            return "default"

    def _hit(self, client_id: str, category: str) -> Tuple[Optional[int], int]:
        """Count this request; returns (count, ttl) or (None, 0) when Redis is unavailable"""

        config = self.rate_limits[category]
        key = f"rate_limit:{category}:{client_id}"

        try:
            pipe = self.redis_client.pipeline()
            pipe.incr(key)
            pipe.ttl(key)
            count, ttl = pipe.execute()

            # New key (or one that lost its expiry): start the window
            if ttl is None or int(ttl) < 0:
                self.redis_client.expire(key, config["window"])
                ttl = config["window"]

            return int(count), int(ttl)

        except redis.RedisError as e:
            # If Redis is down, allow request but log error
            logger.error(f"Redis error in rate limiting, allowing request: {e}")
            return None, 0

