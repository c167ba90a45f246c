"""
Redis-based rate limiter for unauthenticated endpoints.
Uses sliding window counter pattern for accurate rate limiting.
"""
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
WINDOW_SECONDS = 3600


async def check_rate_limit(
    key: str,
    limit: int = DEFAULT_LIMIT,
    window: int = WINDOW_SECONDS,
) -> tuple[bool, Optional[int]]:
    """
    Check if a request is within rate limits using Redis sliding window.

    Returns: (allowed: bool, retry_after_seconds: int | None)
    """
    try:
        from nobre_hub.utils.dedup import get_redis
        redis = await get_redis()

        redis_key = f"nobrehub:ratelimit:{key}"
        now = time.time()
        window_start = now - window

        pipe = redis.pipeline()
        pipe.zremrangebyscore(redis_key, 0, window_start)
        pipe.zadd(redis_key, {str(now): now})
        pipe.zcard(redis_key)
        pipe.expire(redis_key, window + 1)

        results = await pipe.execute()
        request_count = results[2]

        if request_count > limit:
            logger.warning(
                "Rate limit exceeded: key=%s count=%d limit=%d",
                key, request_count, limit,
            )
            return False, window

        return True, None
    except Exception as e:
        # Redis failure should not block lead intake - allow through
        logger.warning("Rate limiter Redis error: %s. Allowing request.", str(e))
        return True, None
