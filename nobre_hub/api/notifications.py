"""
Notification preference endpoints for the signed-in user.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.api.auth import get_current_user
from nobre_hub.database import get_db
from nobre_hub.models.user import User
from nobre_hub.schemas.api_responses import (
    NotificationPreferencesResponse,
    NotificationPreferencesUpdate,
)
from nobre_hub.services.errors import ValidationError
from nobre_hub.services.notification_preferences import (
    get_or_create_preferences,
    update_preferences,
)

router = APIRouter(tags=["notifications"])


@router.get("/notifications/preferences", response_model=NotificationPreferencesResponse)
async def get_preferences(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    prefs = await get_or_create_preferences(db, user.id)
    return NotificationPreferencesResponse(**prefs.to_dict())


@router.put("/notifications/preferences", response_model=NotificationPreferencesResponse)
async def put_preferences(
    payload: NotificationPreferencesUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        prefs = await update_preferences(db, user.id, payload.model_dump(exclude_none=True))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return NotificationPreferencesResponse(**prefs.to_dict())
