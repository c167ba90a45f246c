"""
Public endpoints - no auth. The landing page posts leads here.
Protected by a per-IP rate limit and a short Redis dedup window.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.database import get_db
from nobre_hub.schemas.api_responses import PublicLeadResponse
from nobre_hub.services.errors import ValidationError
from nobre_hub.services.event_bus import publish_event
from nobre_hub.services.lead_intake import (
    WEBSITE_SOURCE,
    create_lead_with_conversation,
    find_lead_by_phone_key,
    parse_submission,
)
from nobre_hub.utils.dedup import is_duplicate, forget_submission
from nobre_hub.utils.phone import mask_phone
from nobre_hub.utils.rate_limiter import check_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(tags=["public"])


@router.post("/public/lead", status_code=201, response_model=PublicLeadResponse)
async def create_public_lead(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create a lead (and its queued conversation) from the landing page form."""
    from nobre_hub.config import get_settings
    settings = get_settings()

    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = await check_rate_limit(
        f"public_lead:{client_ip}",
        limit=settings.public_lead_rate_limit,
        window=settings.public_lead_rate_window,
    )
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many submissions. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )

    try:
        payload = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    try:
        submission = parse_submission(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    key = submission.phone_key
    if await is_duplicate(key, WEBSITE_SOURCE):
        existing = await find_lead_by_phone_key(db, key, WEBSITE_SOURCE)
        if existing is not None:
            response.status_code = 200
            return PublicLeadResponse(success=True, lead_id=str(existing.id), duplicate=True)
        # Marker without a lead (earlier insert failed) - treat as new

    try:
        lead = await create_lead_with_conversation(
            db, submission, default_pipeline=settings.default_pipeline,
        )
        await db.commit()
    except ValidationError as e:
        await forget_submission(key, WEBSITE_SOURCE)
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(
            "Error creating lead from landing page (%s): %s",
            mask_phone(submission.phone), str(e),
            exc_info=True, extra={"source": WEBSITE_SOURCE},
        )
        await db.rollback()
        await forget_submission(key, WEBSITE_SOURCE)
        raise HTTPException(status_code=500, detail="Failed to create lead")

    await publish_event("lead_created", {
        "lead_id": str(lead.id),
        "name": lead.name,
        "pipeline": lead.pipeline,
        "source": lead.source,
        "contact_reason": lead.contact_reason,
    })

    return PublicLeadResponse(success=True, lead_id=str(lead.id))
