"""
Rate Limit Headers Middleware.

Reads request.state.rate_limit_info (set by rate_limit_ip) and adds:
- X-RateLimit-Limit
- X-RateLimit-Remaining
- X-RateLimit-Reset (epoch seconds, only when rejected)
- Retry-After (only when rejected)

Requests that never hit the limiter get no headers.
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        rate_limit_info = getattr(request.state, "rate_limit_info", None)
        if not rate_limit_info:
            return response

        if "limit" in rate_limit_info:
            response.headers["X-RateLimit-Limit"] = str(rate_limit_info["limit"])
        if "remaining" in rate_limit_info:
            response.headers["X-RateLimit-Remaining"] = str(rate_limit_info["remaining"])

        retry_after = rate_limit_info.get("retry_after")
        if not rate_limit_info.get("allowed", True) and retry_after:
            response.headers["Retry-After"] = str(retry_after)
            response.headers["X-RateLimit-Reset"] = str(int(time.time()) + retry_after)

        return response
