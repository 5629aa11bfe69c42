"""Per-user token bucket rate limiting, backed by a Redis Lua script.

The bucket is refilled and consumed atomically on the Redis side, so
concurrent requests from one user cannot overspend it. Each user has a read
bucket (listings) and a write bucket (votes, reports, new content and
moderation actions). Setting RATE_LIMIT_ENABLED=false turns the check off.

Key format: rl:{user_id}:{bucket_type}
"""
import time
from typing import Annotated

import redis.asyncio as aioredis
import structlog
from fastapi import Depends, HTTPException, Request

from agora.config import Settings, settings
from agora.dependencies import CurrentUser
from agora.services.identity import Principal

log = structlog.get_logger()

# Token bucket in Lua, executed atomically on the Redis server.
#
# KEYS[1] = rate limit key (e.g. "rl:{user_id}:{bucket_type}")
# ARGV[1] = capacity (tokens per minute)
# ARGV[2] = refill_rate (tokens per second, float)
# ARGV[3] = now (current Unix timestamp, float)
#
# Returns: 1 if allowed (token consumed), 0 if rejected (bucket empty)
RATE_LIMIT_LUA = """
local key = KEYS[1]
local capacity = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local state = redis.call('HMGET', key, 'tokens', 'last_refill')
local tokens = tonumber(state[1]) or capacity
local last_refill = tonumber(state[2]) or now

tokens = math.min(capacity, tokens + math.max(0, now - last_refill) * refill_rate)

local allowed = 0
if tokens >= 1 then
    tokens = tokens - 1
    allowed = 1
end

-- Idle buckets expire after two refill windows
redis.call('HSET', key, 'tokens', tokens, 'last_refill', now)
redis.call('EXPIRE', key, 120)

return allowed
"""


async def check_rate_limit(
    user: Principal,
    redis_client: aioredis.Redis,
    bucket_type: str,
    app_settings: Settings,
) -> None:
    """Check and consume a token from the user's rate limit bucket.

    Raises HTTP 429 with Retry-After header if the bucket is empty.

    Args:
        user: Authenticated principal (provides the bucket key namespace).
        redis_client: Async Redis client from app.state.
        bucket_type: "read" or "write"; selects the capacity setting.
        app_settings: Application settings for max token values.
    """
    key = f"rl:{user.id}:{bucket_type}"

    if bucket_type == "read":
        max_tokens = app_settings.rate_limit_read_per_minute
    else:
        max_tokens = app_settings.rate_limit_write_per_minute

    # Tokens per second: an empty bucket refills fully in 60 seconds
    refill_rate = max_tokens / 60.0

    allowed = await redis_client.eval(
        RATE_LIMIT_LUA,
        1,  # number of KEYS
        key,
        max_tokens,
        refill_rate,
        time.time(),
    )

    if not allowed:
        log.info("rate_limited", user_id=user.id, bucket=bucket_type)
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": "60"},
        )


def require_read_limit():
    """FastAPI dependency factory for read-path rate limiting."""

    async def _check(request: Request, user: CurrentUser) -> None:
        if not settings.rate_limit_enabled:
            return
        await check_rate_limit(user, request.app.state.redis, "read", settings)

    return _check


def require_write_limit():
    """FastAPI dependency factory for write-path rate limiting."""

    async def _check(request: Request, user: CurrentUser) -> None:
        if not settings.rate_limit_enabled:
            return
        await check_rate_limit(user, request.app.state.redis, "write", settings)

    return _check


# Annotated aliases for endpoint signatures
ReadRateLimit = Annotated[None, Depends(require_read_limit())]
WriteRateLimit = Annotated[None, Depends(require_write_limit())]
