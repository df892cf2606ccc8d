"""Token bucket rate limiter backed by Redis."""

import time

import redis.asyncio as aioredis
from fastapi import Depends, Request, Response

from marketplace.auth.signing import parse_authorization
from marketplace.config import settings
from marketplace.errors import RateLimited
from marketplace.redis import get_redis

# Atomic check-and-consume; returns {allowed, remaining, retry_after}
_TOKEN_BUCKET_SCRIPT = """
local key = KEYS[1]
local capacity = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local bucket = redis.call('HMGET', key, 'tokens', 'last_refill')
local tokens = tonumber(bucket[1])
local last_refill = tonumber(bucket[2])

if tokens == nil then
    tokens = capacity
    last_refill = now
end

local elapsed = now - last_refill
local new_tokens = math.min(capacity, tokens + elapsed * (refill_rate / 60.0))
local allowed = 0
local retry_after = 0

if new_tokens >= 1 then
    new_tokens = new_tokens - 1
    allowed = 1
elseif refill_rate > 0 then
    retry_after = math.ceil((1 - new_tokens) * 60 / refill_rate)
else
    retry_after = 60
end

redis.call('HSET', key, 'tokens', new_tokens, 'last_refill', now)
redis.call('EXPIRE', key, 120)
return {allowed, math.floor(new_tokens), retry_after}
"""


def _get_rate_config(method: str, path: str) -> tuple[int, int, str]:
    """Return (capacity, refill_per_min, category) for an endpoint."""
    if method == "POST" and path.rstrip("/") == "/profiles":
        return (
            settings.rate_limit_registration_capacity,
            settings.rate_limit_registration_refill_per_min,
            "registration",
        )
    if method in ("POST", "PATCH", "DELETE"):
        return (
            settings.rate_limit_write_capacity,
            settings.rate_limit_write_refill_per_min,
            "write",
        )
    return (
        settings.rate_limit_read_capacity,
        settings.rate_limit_read_refill_per_min,
        "read",
    )


def _get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


async def check_rate_limit(
    request: Request,
    response: Response,
    redis: aioredis.Redis = Depends(get_redis),
) -> None:
    """Rate limit per profile when the request is signed, else per client IP."""
    method = request.method.upper()
    capacity, refill_rate, category = _get_rate_config(method, request.url.path)

    parsed = parse_authorization(request.headers.get("Authorization", ""))
    if parsed is not None:
        bucket_key = f"ratelimit:{parsed[0]}:{category}"
    else:
        bucket_key = f"ratelimit:ip:{_get_client_ip(request)}:{category}"

    result = await redis.eval(
        _TOKEN_BUCKET_SCRIPT, 1, bucket_key, capacity, refill_rate, time.time()
    )
    allowed, remaining, retry_after = int(result[0]), int(result[1]), int(result[2])

    response.headers["X-RateLimit-Limit"] = str(capacity)
    response.headers["X-RateLimit-Remaining"] = str(remaining)

    if not allowed:
        raise RateLimited(retry_after)
