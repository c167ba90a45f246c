"""
Reconciliation utilities - idempotent repairs for lead/conversation data.

- repair_orphan_conversations: every lead gets exactly one conversation
- collapse_duplicate_leads: leads sharing a phone key (last 8 digits) within a
  source collapse onto the earliest-created one
- reopen_closed_conversations: manual recovery, closed -> active

These are migration/recovery tools run from scripts/, not steady-state flow.
Intake creates the lead and its conversation together so new orphans cannot
appear. Every per-record write runs in its own savepoint; one bad record is
reported and the run continues.
"""
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field

from sqlalchemy import select, update, delete, exists, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.database import insert_ignoring_conflicts
from nobre_hub.models.conversation import Conversation
from nobre_hub.models.interaction import Interaction
from nobre_hub.models.lead import Lead
from nobre_hub.models.message import Message
from nobre_hub.utils.phone import phone_key, mask_phone

logger = logging.getLogger(__name__)


@dataclass
class RecordFailure:
    lead_id: uuid.UUID
    error: str


@dataclass
class RepairReport:
    orphans_found: int = 0
    conversations_created: int = 0
    failures: list[RecordFailure] = field(default_factory=list)


@dataclass
class DuplicateGroup:
    phone_key: str
    keeper_id: uuid.UUID
    duplicate_ids: list[uuid.UUID]


@dataclass
class CollapseReport:
    source: str
    dry_run: bool = False
    groups_affected: int = 0
    leads_deleted: int = 0
    conversations_deleted: int = 0
    messages_deleted: int = 0
    groups: list[DuplicateGroup] = field(default_factory=list)
    failures: list[RecordFailure] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Orphan repair
# ---------------------------------------------------------------------------

async def find_orphan_leads(db: AsyncSession) -> list[tuple[uuid.UUID, str]]:
    """(lead_id, pipeline) for every lead without a conversation, oldest first."""
    has_conversation = exists().where(Conversation.lead_id == Lead.id)
    result = await db.execute(
        select(Lead.id, Lead.pipeline)
        .where(~has_conversation)
        .order_by(Lead.created_at.asc())
    )
    return [(lead_id, pipeline) for lead_id, pipeline in result.all()]


async def repair_orphan_conversations(db: AsyncSession) -> RepairReport:
    """
    Create a queued, unassigned conversation for every orphaned lead.

    The insert is ON CONFLICT (lead_id) DO NOTHING, so running this twice, or
    alongside intake, never yields a second conversation for a lead.
    """
    orphans = await find_orphan_leads(db)
    report = RepairReport(orphans_found=len(orphans))

    for lead_id, pipeline in orphans:
        try:
            async with db.begin_nested():
                result = await db.execute(
                    insert_ignoring_conflicts(db, Conversation, ["lead_id"]).values(
                        id=uuid.uuid4(),
                        lead_id=lead_id,
                        pipeline=pipeline,
                        status="queued",
                        assigned_agent_id=None,
                    )
                )
                report.conversations_created += result.rowcount or 0
        except Exception as e:
            logger.error(
                "Orphan repair failed for lead %s: %s",
                str(lead_id)[:8], str(e),
                exc_info=True, extra={"lead_id": str(lead_id)},
            )
            report.failures.append(RecordFailure(lead_id=lead_id, error=str(e)))

    logger.info(
        "Orphan repair: found=%d created=%d failed=%d",
        report.orphans_found, report.conversations_created, len(report.failures),
    )
    return report


# ---------------------------------------------------------------------------
# Duplicate collapse
# ---------------------------------------------------------------------------

async def find_duplicate_groups(db: AsyncSession, source: str) -> list[DuplicateGroup]:
    """
    Group a source's leads by phone key; return groups with more than one lead.
    The keeper is the earliest-created lead (id breaks ties).
    """
    result = await db.execute(
        select(Lead.id, Lead.phone, Lead.created_at)
        .where(Lead.source == source)
        .order_by(Lead.created_at.asc(), Lead.id.asc())
    )

    by_key: dict[str, list[uuid.UUID]] = defaultdict(list)
    for lead_id, phone, _created_at in result.all():
        key = phone_key(phone)
        if key is None:
            continue
        by_key[key].append(lead_id)

    return [
        DuplicateGroup(phone_key=key, keeper_id=ids[0], duplicate_ids=ids[1:])
        for key, ids in by_key.items()
        if len(ids) > 1
    ]


def _lead_messages_clause(lead_id: uuid.UUID):
    conversation_ids = select(Conversation.id).where(Conversation.lead_id == lead_id)
    return or_(Message.conversation_id.in_(conversation_ids), Message.lead_id == lead_id)


async def count_lead_dependents(db: AsyncSession, lead_id: uuid.UUID) -> tuple[int, int]:
    """Rows delete_lead_cascade would remove: (conversations, messages)."""
    conversations = await db.scalar(
        select(func.count()).select_from(Conversation).where(Conversation.lead_id == lead_id)
    )
    messages = await db.scalar(
        select(func.count()).select_from(Message).where(_lead_messages_clause(lead_id))
    )
    return conversations or 0, messages or 0


async def delete_lead_cascade(db: AsyncSession, lead_id: uuid.UUID) -> tuple[int, int]:
    """
    Delete a lead and everything hanging off it, children first:
    messages -> interactions -> conversations -> lead.

    Returns (conversations_deleted, messages_deleted).
    """
    messages = await db.execute(
        delete(Message)
        .where(_lead_messages_clause(lead_id))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Interaction)
        .where(Interaction.lead_id == lead_id)
        .execution_options(synchronize_session=False)
    )
    conversations = await db.execute(
        delete(Conversation)
        .where(Conversation.lead_id == lead_id)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Lead)
        .where(Lead.id == lead_id)
        .execution_options(synchronize_session=False)
    )
    return conversations.rowcount or 0, messages.rowcount or 0


async def collapse_duplicate_leads(
    db: AsyncSession,
    source: str,
    dry_run: bool = False,
) -> CollapseReport:
    """Keep the oldest lead per phone key within `source`; delete the rest."""
    groups = await find_duplicate_groups(db, source)
    report = CollapseReport(source=source, dry_run=dry_run, groups=groups)
    report.groups_affected = len(groups)

    for group in groups:
        logger.info(
            "Duplicate group %s: keeping %s, removing %d",
            mask_phone(group.phone_key), str(group.keeper_id)[:8], len(group.duplicate_ids),
            extra={"source": source},
        )
        if dry_run:
            for lead_id in group.duplicate_ids:
                conversations, messages = await count_lead_dependents(db, lead_id)
                report.leads_deleted += 1
                report.conversations_deleted += conversations
                report.messages_deleted += messages
            continue

        for lead_id in group.duplicate_ids:
            try:
                async with db.begin_nested():
                    conversations, messages = await delete_lead_cascade(db, lead_id)
            except Exception as e:
                logger.error(
                    "Failed to delete duplicate lead %s: %s",
                    str(lead_id)[:8], str(e),
                    exc_info=True, extra={"lead_id": str(lead_id), "source": source},
                )
                report.failures.append(RecordFailure(lead_id=lead_id, error=str(e)))
            else:
                report.leads_deleted += 1
                report.conversations_deleted += conversations
                report.messages_deleted += messages

    logger.info(
        "Duplicate collapse (%s)%s: groups=%d leads=%d conversations=%d messages=%d failed=%d",
        source, " [DRY RUN]" if dry_run else "",
        report.groups_affected, report.leads_deleted,
        report.conversations_deleted, report.messages_deleted, len(report.failures),
        extra={"source": source},
    )
    return report


# ---------------------------------------------------------------------------
# Bulk reopen
# ---------------------------------------------------------------------------

async def reopen_closed_conversations(db: AsyncSession) -> int:
    """Move every closed conversation back to active. Returns rows changed (0 on a rerun)."""
    result = await db.execute(
        update(Conversation)
        .where(Conversation.status == "closed")
        .values(status="active", closed_at=None)
        .execution_options(synchronize_session=False)
    )
    reopened = result.rowcount or 0
    logger.info("Reopened %d closed conversations", reopened)
    return reopened
