"""
Lead listing for the CRM workspace.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.api.auth import require_permission
from nobre_hub.database import get_db
from nobre_hub.models.lead import Lead, PIPELINES
from nobre_hub.models.user import User
from nobre_hub.schemas.api_responses import LeadListResponse, LeadSummary
from nobre_hub.utils.phone import mask_phone

router = APIRouter(tags=["leads"])


@router.get("/leads", response_model=LeadListResponse)
async def list_leads(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    pipeline: Optional[str] = None,
    unassigned: bool = False,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("view_leads")),
):
    """Get paginated lead list, newest first."""
    query = select(Lead)

    if pipeline:
        if pipeline not in PIPELINES:
            raise HTTPException(status_code=400, detail=f"Unknown pipeline '{pipeline}'")
        query = query.where(Lead.pipeline == pipeline)
    if unassigned:
        query = query.where(Lead.assigned_to.is_(None))

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    # Paginate
    query = query.order_by(desc(Lead.created_at), Lead.id).offset((page - 1) * per_page).limit(per_page)
    result = await db.execute(query)
    leads = result.scalars().all()

    return LeadListResponse(
        leads=[
            LeadSummary(
                id=str(l.id),
                name=l.name,
                phone_masked=mask_phone(l.phone),
                email=l.email,
                company=l.company,
                pipeline=l.pipeline,
                source=l.source,
                assigned_to=str(l.assigned_to) if l.assigned_to else None,
                assigned_at=l.assigned_at,
                created_at=l.created_at,
            )
            for l in leads
        ],
        total=total,
        page=page,
        pages=max(1, (total + per_page - 1) // per_page),
    )
