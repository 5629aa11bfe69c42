"""Token bucket checks against a stand-in Redis client.

The Lua script itself runs inside Redis; here we only check how its answer
is turned into a 429 and which bucket is consulted.
"""

import pytest
from fastapi import HTTPException

from agora.config import Settings
from agora.middleware.rate_limiter import RATE_LIMIT_LUA, check_rate_limit
from agora.services.identity import Principal


class FakeRedis:
    def __init__(self, allowed: int) -> None:
        self.allowed = allowed
        self.calls = []

    async def eval(self, script, numkeys, *args):
        self.calls.append((script, numkeys, args))
        return self.allowed


@pytest.fixture
def principal() -> Principal:
    return Principal(id=42, username="alice")


@pytest.fixture
def limits() -> Settings:
    return Settings(rate_limit_read_per_minute=120, rate_limit_write_per_minute=30)


class TestCheckRateLimit:
    async def test_allowed_passes(self, principal, limits):
        redis = FakeRedis(allowed=1)
        await check_rate_limit(principal, redis, "write", limits)
        script, numkeys, (key, max_tokens, refill_rate, _now) = redis.calls[0]
        assert script == RATE_LIMIT_LUA
        assert numkeys == 1
        assert key == "rl:42:write"
        assert max_tokens == 30
        assert refill_rate == pytest.approx(0.5)

    async def test_read_bucket_uses_read_capacity(self, principal, limits):
        redis = FakeRedis(allowed=1)
        await check_rate_limit(principal, redis, "read", limits)
        _, _, (key, max_tokens, refill_rate, _now) = redis.calls[0]
        assert key == "rl:42:read"
        assert max_tokens == 120
        assert refill_rate == pytest.approx(2.0)

    async def test_empty_bucket_is_429(self, principal, limits):
        with pytest.raises(HTTPException) as excinfo:
            await check_rate_limit(principal, FakeRedis(allowed=0), "write", limits)
        assert excinfo.value.status_code == 429
        assert excinfo.value.headers["Retry-After"] == "60"
