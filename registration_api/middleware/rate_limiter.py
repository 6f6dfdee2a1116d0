"""
Rate Limiter - Redis-based request rate limiting for the public intake endpoints.

Design:
- Sliding window algorithm using a Redis sorted set per key
- Atomic Lua script, so concurrent requests can't both take the last slot
- Fail-open by default: if Redis is missing or erroring, requests go through

Usage:
    limiter = RateLimiter(redis_client.client, default_limit=20, window_seconds=60)
    allowed, info = await limiter.check_ip_rate_limit("203.0.113.7")
"""

import time

import redis.asyncio as redis

from registration_api.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Sliding window limiter.

    Example:
        With a limit of 20 req/min, a client that made 20 requests at 10:00:00
        can make its next request at 10:01:01.
    """

    # Returns: {allowed (0 or 1), current_count, oldest_timestamp or 0}
    RATE_LIMIT_LUA_SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window_seconds = tonumber(ARGV[2])
    local current_time = tonumber(ARGV[3])
    local unique_id = ARGV[4]

    redis.call('ZREMRANGEBYSCORE', key, 0, current_time - window_seconds)

    local current_count = redis.call('ZCARD', key)

    if current_count >= limit then
        local oldest_entries = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local oldest_timestamp = 0
        if #oldest_entries > 0 then
            oldest_timestamp = tonumber(oldest_entries[2])
        end
        return {0, current_count, oldest_timestamp}
    end

    redis.call('ZADD', key, current_time, unique_id)
    redis.call('EXPIRE', key, window_seconds * 2)

    return {1, current_count + 1, 0}
    """

    def __init__(
        self,
        client: redis.Redis | None,
        default_limit: int = 20,
        window_seconds: int = 60,
        fail_open: bool = True,
    ):
        """
        Args:
            client: Connected redis client, or None when Redis is not configured
            default_limit: Requests per window
            window_seconds: Time window in seconds
            fail_open: If True, allow requests when Redis fails
        """
        self.client = client
        self.default_limit = default_limit
        self.window_seconds = window_seconds
        self.fail_open = fail_open

    async def check_rate_limit(
        self,
        key: str,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> tuple[bool, dict]:
        """
        Check and record one request against `key`.

        Returns:
            Tuple of (allowed, info) where info carries limit, remaining and
            retry_after (seconds, only set when rejected)
        """
        limit = limit or self.default_limit
        window_seconds = window_seconds or self.window_seconds

        redis_key = f"ratelimit:{key}"
        current_time = int(time.time())

        if self.client is None:
            return self._unavailable(limit, "redis_not_initialized", window_seconds)

        try:
            unique_id = f"{current_time}:{time.time_ns()}"
            result = await self.client.eval(
                self.RATE_LIMIT_LUA_SCRIPT,
                1,
                redis_key,
                limit,
                window_seconds,
                current_time,
                unique_id,
            )
        except Exception as e:
            logger.error(
                "Rate limiter Redis error",
                error=str(e),
                error_type=type(e).__name__,
                key=key,
                limit=limit,
            )
            return self._unavailable(limit, "rate_limiter_error", window_seconds)

        allowed = bool(result[0])
        current_count = int(result[1])
        oldest_timestamp = int(result[2]) if result[2] else 0

        if not allowed:
            if oldest_timestamp > 0:
                retry_after = max(1, (oldest_timestamp + window_seconds) - current_time)
            else:
                retry_after = window_seconds

            return False, self._create_info_dict(
                allowed=False,
                limit=limit,
                remaining=0,
                retry_after=retry_after,
                window_seconds=window_seconds,
            )

        return True, self._create_info_dict(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - current_count),
            window_seconds=window_seconds,
        )

    async def check_ip_rate_limit(self, ip_address: str, limit: int | None = None) -> tuple[bool, dict]:
        return await self.check_rate_limit(key=f"ip:{ip_address}", limit=limit)

    def _unavailable(self, limit: int, error: str, window_seconds: int) -> tuple[bool, dict]:
        if self.fail_open:
            return True, self._create_info_dict(allowed=True, limit=limit, remaining=limit, error=error)
        # No window state to consult; ask the client to wait a full window
        return False, self._create_info_dict(
            allowed=False, limit=limit, remaining=0, retry_after=window_seconds, error=error
        )

    def _create_info_dict(
        self,
        allowed: bool,
        limit: int,
        remaining: int,
        retry_after: int | None = None,
        window_seconds: int | None = None,
        error: str | None = None,
    ) -> dict:
        info = {
            "allowed": allowed,
            "limit": limit,
            "remaining": remaining,
            "retry_after": retry_after,
        }

        if window_seconds is not None:
            info["window_seconds"] = window_seconds

        if error:
            info["error"] = error

        return info
