"""
Middleware components for request processing.

This package contains:
- Request context (request ID, client IP, user agent)
- Rate limiting (per-IP sliding window on public endpoints)
"""

from registration_api.middleware.rate_limit_headers import RateLimitHeadersMiddleware
from registration_api.middleware.rate_limiter import RateLimiter
from registration_api.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RateLimiter",
    "RateLimitHeadersMiddleware",
    "RequestContextMiddleware",
]
