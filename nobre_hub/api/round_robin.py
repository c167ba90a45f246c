"""
Round-robin endpoints - manual single assignment, batch auto-assign and
per-closer load stats.
"""
import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.api.auth import get_current_user, require_roles
from nobre_hub.database import get_db
from nobre_hub.models.user import User
from nobre_hub.schemas.api_responses import (
    AssignmentResponse,
    AutoAssignRequest,
    AutoAssignResponse,
    CloserLoad,
    LeadOutcomeResponse,
    RoundRobinStatsResponse,
)
from nobre_hub.services.errors import NobreHubError, ValidationError
from nobre_hub.services.event_bus import publish_event
from nobre_hub.services.round_robin import (
    assign_lead_round_robin,
    auto_assign_all_unassigned,
    get_round_robin_stats,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["round-robin"])


@router.post("/round-robin/assign/{lead_id}", response_model=AssignmentResponse)
async def assign_lead(
    lead_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles("admin", "sdr")),
):
    """Assign one lead to the next closer of its pipeline."""
    try:
        result = await assign_lead_round_robin(db, lead_id)
    except NobreHubError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await db.commit()
    await publish_event("lead_assigned", {
        "lead_id": str(result.lead_id),
        "agent_id": str(result.agent_id),
        "agent_name": result.agent_name,
        "pipeline": result.pipeline,
        "assigned_by": str(user.id),
    })

    return AssignmentResponse(
        lead_id=str(result.lead_id),
        agent_id=str(result.agent_id),
        agent_name=result.agent_name,
        pipeline=result.pipeline,
    )


@router.post("/round-robin/auto-assign", response_model=AutoAssignResponse)
async def auto_assign(
    payload: AutoAssignRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles("admin")),
):
    """Assign every unassigned lead of a pipeline."""
    try:
        batch = await auto_assign_all_unassigned(db, payload.pipeline)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await db.commit()
    for outcome in batch.results:
        if outcome.status == "assigned":
            await publish_event("lead_assigned", {
                "lead_id": str(outcome.lead_id),
                "agent_id": str(outcome.agent_id),
                "pipeline": batch.pipeline,
                "assigned_by": str(user.id),
            })

    return AutoAssignResponse(
        pipeline=batch.pipeline,
        total=batch.total,
        assigned=batch.assigned,
        skipped=batch.skipped,
        failed=batch.failed,
        results=[
            LeadOutcomeResponse(
                lead_id=str(o.lead_id),
                status=o.status,
                agent_id=str(o.agent_id) if o.agent_id else None,
                error=o.error,
            )
            for o in batch.results
        ],
    )


@router.get("/round-robin/stats/{pipeline}", response_model=RoundRobinStatsResponse)
async def round_robin_stats(
    pipeline: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Open conversations per closer for a pipeline."""
    try:
        loads = await get_round_robin_stats(db, pipeline)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return RoundRobinStatsResponse(
        pipeline=pipeline,
        closers=[
            CloserLoad(agent_id=str(l.agent_id), name=l.name, count=l.count)
            for l in loads
        ],
    )
