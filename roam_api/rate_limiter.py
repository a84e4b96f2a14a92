"""
Redis fixed-window rate limiting for the public endpoints
(signup, contact form, staff invitation validation)
"""

import logging
import os
import time
from typing import Optional

import redis
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Lazily connect to Redis from REDIS_URL or the REDIS_HOST/REDIS_PORT pair"""
    global redis_client

    if redis_client is None:
        options = {
            "decode_responses": True,
            "socket_connect_timeout": 5,
            "socket_timeout": 5,
            "health_check_interval": 30,
        }
        redis_url = os.getenv("REDIS_URL")
        if redis_url:
            client = redis.from_url(redis_url, **options)
        else:
            client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD"),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                **options,
            )

        # Raises when Redis is down; the limiter dependency fails open
        client.ping()
        logger.info("✅ Redis connected for rate limiting")
        redis_client = client

    return redis_client


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: redis.Redis
) -> tuple[bool, int, int]:
    """Count a request against ``key`` using INCR + EXPIRE.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    pipe = client.pipeline()
    pipe.incr(key)
    pipe.ttl(key)
    current_count, ttl = pipe.execute()

    if ttl is None or ttl < 0:
        client.expire(key, window_seconds)
        ttl = window_seconds

    return current_count <= limit, int(current_count), int(ttl)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
):
    """
    FastAPI dependency for per-IP rate limiting

    Redis problems never block the request: the limiter fails open and logs.
    """
    key = f"{key_prefix}:{client_ip(request)}"

    try:
        client = get_redis_client()
        is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, client)
    except Exception as e:
        logger.warning(f"⚠️ Rate limiting unavailable for {key_prefix}, allowing request: {e}")
        return

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "error": "Too many requests. Please try again later.",
                "retry_after": ttl,
            },
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = max(0, limit - current_count)
    request.state.rate_limit_reset = int(time.time()) + ttl


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        contact_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="contact")

        @router.post("/contact")
        async def submit_contact(data: ContactRequest, _: None = Depends(contact_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix)

    return rate_limiter
