"""
RequestContext Middleware - request id and client IP for every request.

Adds to request.state:
- request_id: taken from an incoming X-Request-ID header or generated
- ip_address: client IP, honouring X-Forwarded-For only from trusted proxies
- user_agent

The request id is echoed back in the X-Request-ID response header and bound
to structlog's contextvars so every log line of the request carries it.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from registration_api.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        trust_x_forwarded_for: bool = False,
        trusted_proxy_ips: list[str] | None = None,
    ):
        super().__init__(app)
        self.trust_x_forwarded_for = trust_x_forwarded_for
        self.trusted_proxy_ips = set(trusted_proxy_ips or [])

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = self._extract_client_ip(request)
        request.state.user_agent = request.headers.get("user-agent")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            ip_address=request.state.ip_address,
        )

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Only trusts X-Forwarded-For when enabled and the direct peer is a
        trusted proxy, so clients can't spoof their IP past the rate limiter.
        """
        direct_ip = request.client.host if request.client else None

        if not self.trust_x_forwarded_for or direct_ip not in self.trusted_proxy_ips:
            return direct_ip

        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # "client, proxy1, proxy2"
            return forwarded_for.split(",")[0].strip()

        return direct_ip
