"""
Middleware components for the Run Your Trip backend
"""

from .rate_limit import RateLimitMiddleware

__all__ = [
    "RateLimitMiddleware",
]
