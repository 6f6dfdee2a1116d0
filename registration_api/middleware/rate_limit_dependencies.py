"""
Rate Limit Dependencies - per-IP limiting for public endpoints.

Usage:
    @router.post("/register")
    async def register(
        request: Request,
        _rate: None = Depends(rate_limit_ip),
    ):
        ...

The limiter's verdict is stored on request.state.rate_limit_info so
RateLimitHeadersMiddleware can add the X-RateLimit-* headers.
"""

from fastapi import Depends, Request

from registration_api.config import Settings
from registration_api.dependencies import get_rate_limiter, get_settings
from registration_api.errors import RateLimitedError
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.middleware.rate_limiter import RateLimiter

logger = get_logger(__name__)


async def rate_limit_ip(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Raises:
        RateLimitedError: 429 if the client IP exceeded its window
    """
    if not settings.RATE_LIMIT_ENABLED:
        return

    ip_address = getattr(request.state, "ip_address", None)
    if not ip_address:
        logger.warning("Rate limit check skipped - no IP address")
        return

    allowed, info = await limiter.check_ip_rate_limit(ip_address)
    request.state.rate_limit_info = info

    if not allowed:
        retry_after = info.get("retry_after")
        logger.warning(
            "IP rate limit exceeded",
            ip_address=ip_address,
            limit=info["limit"],
            retry_after=retry_after,
            path=request.url.path,
        )
        message = "Too many requests from your IP."
        if retry_after:
            message += f" Try again in {retry_after} seconds."
        raise RateLimitedError(
            message,
            details={"limit": info["limit"], "retryAfter": retry_after},
        )
