"""
Per-user notification preferences. The row is created with defaults the first
time it is read; concurrent first reads resolve through the primary key.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.database import insert_ignoring_conflicts
from nobre_hub.models.notification_preference import (
    DEFAULT_PREFERENCES,
    NotificationPreference,
)
from nobre_hub.services.errors import ValidationError

logger = logging.getLogger(__name__)


async def get_or_create_preferences(db: AsyncSession, user_id: uuid.UUID) -> NotificationPreference:
    await db.execute(
        insert_ignoring_conflicts(db, NotificationPreference, ["user_id"]).values(
            user_id=user_id,
            updated_at=datetime.now(timezone.utc),
            **DEFAULT_PREFERENCES,
        )
    )
    result = await db.execute(
        select(NotificationPreference)
        .where(NotificationPreference.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def update_preferences(
    db: AsyncSession,
    user_id: uuid.UUID,
    changes: Mapping[str, bool],
) -> NotificationPreference:
    """Apply the supplied flags; flags not mentioned keep their value."""
    unknown = set(changes) - set(DEFAULT_PREFERENCES)
    if unknown:
        raise ValidationError(f"Unknown preference(s): {', '.join(sorted(unknown))}")

    prefs = await get_or_create_preferences(db, user_id)
    for name, value in changes.items():
        if value is None:
            continue
        setattr(prefs, name, bool(value))
    prefs.updated_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info(
        "Notification preferences updated (%d fields)", len(changes),
        extra={"user_id": str(user_id)},
    )
    return prefs
