"""
Lead intake deduplication - Redis-based with 30-minute window.
Catches landing-page double submits and webhook retries before they reach the
database. Long-lived duplicates are handled by reconciliation instead.
"""
import hashlib
import logging
from nobre_hub.utils.phone import mask_phone

logger = logging.getLogger(__name__)

# Dedup window in seconds (30 minutes)
DEDUP_WINDOW_SECONDS = 1800

# Redis client (lazily initialized)
_redis_client = None


async def get_redis():
    """Get or create Redis connection."""
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis
        from nobre_hub.config import get_settings
        _redis_client = aioredis.from_url(
            get_settings().redis_url,
            decode_responses=True,
        )
    return _redis_client


def make_dedup_key(phone_key: str, source: str) -> str:
    """
    Create a deduplication key from phone key + source.
    Uses SHA-256 hash for consistent key length.
    """
    raw = f"{source}:{phone_key}"
    hash_val = hashlib.sha256(raw.encode()).hexdigest()[:16]
    return f"nobrehub:dedup:{hash_val}"


async def is_duplicate(phone_key: str, source: str) -> bool:
    """
    Check if this lead was already submitted (same phone key + source within 30 minutes).
    If not a duplicate, marks it in Redis to prevent future duplicates.

    Returns True if duplicate, False if new.
    """
    key = make_dedup_key(phone_key, source)

    try:
        redis = await get_redis()
        # SET NX returns True if set (new), None if it already existed (dupe)
        was_set = await redis.set(key, "1", nx=True, ex=DEDUP_WINDOW_SECONDS)
        if was_set:
            return False
        logger.info(
            "Duplicate lead submission: phone=%s source=%s",
            mask_phone(phone_key), source,
        )
        return True
    except Exception as e:
        # Redis failure should NOT block lead intake - assume not duplicate
        logger.warning("Redis dedup check failed: %s. Assuming not duplicate.", str(e))
        return False


async def forget_submission(phone_key: str, source: str) -> None:
    """Drop the dedup marker, e.g. when the insert it guarded failed."""
    try:
        redis = await get_redis()
        await redis.delete(make_dedup_key(phone_key, source))
    except Exception as e:
        logger.warning("Redis dedup cleanup failed: %s", str(e))
