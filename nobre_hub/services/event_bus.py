"""
Realtime event publisher via Redis pub/sub.

The socket/realtime layer subscribes to CHANNEL and fans events out to the
dashboards (new lead toast, kanban refresh, assignment notification). This
service only publishes; delivery semantics belong to the subscriber.

Key events:
- lead_created: public/landing-page intake created a lead
- lead_assigned: round-robin gave a lead to a closer
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from nobre_hub.utils.dedup import get_redis

logger = logging.getLogger(__name__)

CHANNEL = "nobrehub:realtime"


async def publish_event(event_type: str, data: Optional[dict[str, Any]] = None) -> bool:
    """
    Publish an event to the realtime channel.

    Best effort: returns False (and logs) instead of raising, so a Redis
    outage never fails the request that triggered the event.
    """
    event = {
        "type": event_type,
        "data": data or {},
        "published_at": datetime.now(timezone.utc).isoformat(),
    }
    payload = json.dumps(event, default=str)

    try:
        redis = await get_redis()
        await redis.publish(CHANNEL, payload)
        logger.debug("Event published: %s", event_type)
        return True
    except Exception:
        logger.warning("Failed to publish event: %s", event_type)
        return False
