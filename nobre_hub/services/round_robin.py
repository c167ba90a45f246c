"""
Round-robin lead distribution across closers.

Eligible agents: active users holding the pipeline's closer role
(high_ticket -> closer_ht, low_ticket -> closer_lt), in rotation order
(created_at, id).

Selection: the eligible agent with the fewest open conversations (queued or
active) in the pipeline; ties go to whoever comes first in rotation order.
Nothing is kept in memory between calls, so every server instance computes
the same "next" agent from the database alone.

Claiming a lead is a single conditional UPDATE (... WHERE assigned_to IS NULL):
of two concurrent requests for the same lead exactly one wins, the other gets
LeadAlreadyAssignedError.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.database import insert_ignoring_conflicts
from nobre_hub.models.conversation import Conversation
from nobre_hub.models.interaction import Interaction
from nobre_hub.models.lead import Lead
from nobre_hub.models.user import User
from nobre_hub.services.errors import (
    InvalidPipelineError,
    LeadAlreadyAssignedError,
    LeadNotFoundError,
    NoEligibleAgentError,
)

logger = logging.getLogger(__name__)

CLOSER_ROLE_BY_PIPELINE = {
    "high_ticket": "closer_ht",
    "low_ticket": "closer_lt",
}


@dataclass
class AssignmentResult:
    lead_id: uuid.UUID
    agent_id: uuid.UUID
    agent_name: str
    pipeline: str


@dataclass
class AgentLoad:
    agent_id: uuid.UUID
    name: str
    count: int


@dataclass
class LeadOutcome:
    lead_id: uuid.UUID
    status: str  # assigned, skipped, failed
    agent_id: Optional[uuid.UUID] = None
    error: Optional[str] = None


@dataclass
class BatchAssignmentResult:
    pipeline: str
    total: int = 0
    assigned: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[LeadOutcome] = field(default_factory=list)


def closer_role_for(pipeline: str) -> str:
    """Map a pipeline to the role that closes it."""
    role = CLOSER_ROLE_BY_PIPELINE.get(pipeline)
    if role is None:
        raise InvalidPipelineError(f"Unknown pipeline '{pipeline}'")
    return role


def pick_next_agent(agents: Sequence[User], loads: dict[uuid.UUID, int]) -> User:
    """
    Pick the least-loaded agent. `agents` must already be in rotation order;
    on equal load the earlier agent wins. Agents missing from `loads` have 0.
    """
    if not agents:
        raise NoEligibleAgentError("No eligible agent")
    _, agent = min(
        enumerate(agents),
        key=lambda pair: (loads.get(pair[1].id, 0), pair[0]),
    )
    return agent


async def get_eligible_agents(db: AsyncSession, pipeline: str) -> list[User]:
    """Active closers for the pipeline, in rotation order."""
    role = closer_role_for(pipeline)
    result = await db.execute(
        select(User)
        .where(User.role == role, User.is_active == True)  # noqa: E712
        .order_by(User.created_at.asc(), User.id.asc())
    )
    return list(result.scalars().all())


async def _agent_loads(
    db: AsyncSession,
    pipeline: str,
    agent_ids: list[uuid.UUID],
) -> dict[uuid.UUID, int]:
    """Open (non-closed) conversations per agent in the pipeline."""
    if not agent_ids:
        return {}
    result = await db.execute(
        select(Conversation.assigned_agent_id, func.count(Conversation.id))
        .where(
            Conversation.assigned_agent_id.in_(agent_ids),
            Conversation.pipeline == pipeline,
            Conversation.status != "closed",
        )
        .group_by(Conversation.assigned_agent_id)
    )
    return {agent_id: count for agent_id, count in result.all()}


async def _claim_lead(
    db: AsyncSession,
    lead_id: uuid.UUID,
    agent_id: uuid.UUID,
    now: datetime,
) -> bool:
    """Set assigned_to only if still unassigned. Returns False if someone else got there first."""
    result = await db.execute(
        update(Lead)
        .where(Lead.id == lead_id, Lead.assigned_to.is_(None))
        .values(assigned_to=agent_id, assigned_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _attach_conversation(
    db: AsyncSession,
    lead: Lead,
    agent_id: uuid.UUID,
    now: datetime,
) -> None:
    """Create the lead's conversation if missing, then hand it to the agent as active."""
    await db.execute(
        insert_ignoring_conflicts(db, Conversation, ["lead_id"]).values(
            id=uuid.uuid4(),
            lead_id=lead.id,
            pipeline=lead.pipeline,
            status="queued",
            channel="whatsapp",
            created_at=now,
        )
    )
    await db.execute(
        update(Conversation)
        .where(Conversation.lead_id == lead.id)
        .values(
            assigned_agent_id=agent_id,
            status="active",
            closed_at=None,
        )
        .execution_options(synchronize_session=False)
    )


async def assign_lead_round_robin(db: AsyncSession, lead_id: uuid.UUID) -> AssignmentResult:
    """
    Assign a single unassigned lead to the next closer of its pipeline.

    Raises LeadNotFoundError, LeadAlreadyAssignedError or NoEligibleAgentError.
    Only assignment fields are written; nothing is deleted.
    """
    lead = await db.get(Lead, lead_id)
    if lead is None:
        raise LeadNotFoundError(f"Lead {lead_id} not found")
    if lead.assigned_to is not None:
        raise LeadAlreadyAssignedError(f"Lead {lead_id} is already assigned")

    agents = await get_eligible_agents(db, lead.pipeline)
    if not agents:
        raise NoEligibleAgentError(
            f"No active {closer_role_for(lead.pipeline)} found for pipeline {lead.pipeline}"
        )

    loads = await _agent_loads(db, lead.pipeline, [a.id for a in agents])
    agent = pick_next_agent(agents, loads)
    now = datetime.now(timezone.utc)

    if not await _claim_lead(db, lead.id, agent.id, now):
        logger.info(
            "Lead %s claimed concurrently, skipping",
            str(lead.id)[:8], extra={"lead_id": str(lead.id)},
        )
        raise LeadAlreadyAssignedError(f"Lead {lead_id} is already assigned")

    await _attach_conversation(db, lead, agent.id, now)

    previous_load = loads.get(agent.id, 0)
    db.add(Interaction(
        lead_id=lead.id,
        user_id=agent.id,
        type="assignment",
        content=f"Lead assigned automatically (round robin) to {agent.name}",
        data={
            "method": "round_robin",
            "agent_id": str(agent.id),
            "agent_name": agent.name,
            "open_conversations": previous_load + 1,
        },
    ))
    await db.flush()
    await db.refresh(lead)

    logger.info(
        "Lead %s assigned to %s (load %d -> %d)",
        str(lead.id)[:8], agent.name, previous_load, previous_load + 1,
        extra={"lead_id": str(lead.id), "agent_id": str(agent.id), "pipeline": lead.pipeline},
    )

    return AssignmentResult(
        lead_id=lead.id,
        agent_id=agent.id,
        agent_name=agent.name,
        pipeline=lead.pipeline,
    )


async def auto_assign_all_unassigned(db: AsyncSession, pipeline: str) -> BatchAssignmentResult:
    """
    Assign every unassigned lead of a pipeline, oldest first.

    Each lead runs in its own savepoint: a failure is recorded for that lead
    and the batch moves on. Loads are recomputed per lead, so the batch
    rotates through the agents evenly.
    """
    closer_role_for(pipeline)

    result = await db.execute(
        select(Lead.id)
        .where(Lead.pipeline == pipeline, Lead.assigned_to.is_(None))
        .order_by(Lead.created_at.asc(), Lead.id.asc())
    )
    lead_ids = list(result.scalars().all())
    batch = BatchAssignmentResult(pipeline=pipeline, total=len(lead_ids))

    if not lead_ids:
        return batch

    if not await get_eligible_agents(db, pipeline):
        logger.warning(
            "Auto-assign %s: no eligible agents, skipping %d leads",
            pipeline, len(lead_ids), extra={"pipeline": pipeline},
        )
        batch.skipped = len(lead_ids)
        batch.results = [
            LeadOutcome(lead_id=lead_id, status="skipped", error="No eligible agent")
            for lead_id in lead_ids
        ]
        return batch

    for lead_id in lead_ids:
        try:
            async with db.begin_nested():
                assignment = await assign_lead_round_robin(db, lead_id)
        except (NoEligibleAgentError, LeadAlreadyAssignedError) as e:
            batch.skipped += 1
            batch.results.append(LeadOutcome(lead_id=lead_id, status="skipped", error=str(e)))
        except Exception as e:
            logger.error(
                "Failed to assign lead %s: %s",
                str(lead_id)[:8], str(e),
                exc_info=True, extra={"lead_id": str(lead_id), "pipeline": pipeline},
            )
            batch.failed += 1
            batch.results.append(LeadOutcome(lead_id=lead_id, status="failed", error=str(e)))
        else:
            batch.assigned += 1
            batch.results.append(
                LeadOutcome(lead_id=lead_id, status="assigned", agent_id=assignment.agent_id)
            )

    logger.info(
        "Auto-assign %s: total=%d assigned=%d skipped=%d failed=%d",
        pipeline, batch.total, batch.assigned, batch.skipped, batch.failed,
        extra={"pipeline": pipeline},
    )
    return batch


async def get_round_robin_stats(db: AsyncSession, pipeline: str) -> list[AgentLoad]:
    """Current open-conversation count per eligible agent, in rotation order."""
    agents = await get_eligible_agents(db, pipeline)
    loads = await _agent_loads(db, pipeline, [a.id for a in agents])
    return [
        AgentLoad(agent_id=agent.id, name=agent.name, count=loads.get(agent.id, 0))
        for agent in agents
    ]
