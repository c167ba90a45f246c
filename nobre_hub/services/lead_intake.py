"""
Lead intake - landing page submissions become a Lead plus its queued
Conversation, written in the same transaction.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.models.conversation import Conversation
from nobre_hub.models.lead import Lead, PIPELINES
from nobre_hub.services.errors import InvalidPipelineError, ValidationError
from nobre_hub.utils.phone import digits_only, phone_key, mask_phone

logger = logging.getLogger(__name__)

WEBSITE_SOURCE = "website"


@dataclass
class LeadSubmission:
    name: str
    phone: str  # digits only
    email: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    contact_reason: Optional[str] = None
    pipeline: Optional[str] = None

    @property
    def phone_key(self) -> Optional[str]:
        return phone_key(self.phone)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_submission(payload: dict) -> LeadSubmission:
    """
    Validate a raw JSON body. Name and phone are required and the phone
    must contain at least one digit. The landing page form sends the
    contact reason as goal, challenge or contactReason.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    name = _clean(payload.get("name"))
    raw_phone = _clean(payload.get("phone"))
    if not name or not raw_phone:
        raise ValidationError("Name and phone are required")

    phone = digits_only(raw_phone)
    if not phone:
        raise ValidationError("Phone must contain digits")

    pipeline = _clean(payload.get("pipeline"))
    if pipeline is not None and pipeline not in PIPELINES:
        raise InvalidPipelineError(f"Unknown pipeline '{pipeline}'")

    contact_reason = (
        _clean(payload.get("goal"))
        or _clean(payload.get("challenge"))
        or _clean(payload.get("contactReason"))
    )

    return LeadSubmission(
        name=name,
        phone=phone,
        email=_clean(payload.get("email")),
        company=_clean(payload.get("company")),
        notes=_clean(payload.get("notes")),
        contact_reason=contact_reason,
        pipeline=pipeline,
    )


async def find_lead_by_phone_key(
    db: AsyncSession,
    key: str,
    source: str = WEBSITE_SOURCE,
) -> Optional[Lead]:
    """Oldest lead of `source` sharing the phone key, if any."""
    result = await db.execute(
        select(Lead)
        .where(Lead.phone_key == key, Lead.source == source)
        .order_by(Lead.created_at.asc(), Lead.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_lead_with_conversation(
    db: AsyncSession,
    submission: LeadSubmission,
    default_pipeline: str = "high_ticket",
    source: str = WEBSITE_SOURCE,
) -> Lead:
    """Insert the lead and its queued, unassigned conversation. Caller commits."""
    pipeline = submission.pipeline or default_pipeline
    if pipeline not in PIPELINES:
        raise InvalidPipelineError(f"Unknown pipeline '{pipeline}'")

    lead = Lead(
        id=uuid.uuid4(),
        name=submission.name,
        phone=submission.phone,
        phone_key=submission.phone_key,
        email=submission.email,
        company=submission.company,
        notes=submission.notes,
        contact_reason=submission.contact_reason,
        pipeline=pipeline,
        source=source,
    )
    db.add(lead)
    db.add(Conversation(
        lead_id=lead.id,
        pipeline=pipeline,
        status="queued",
    ))
    await db.flush()

    logger.info(
        "New lead from %s: %s",
        source, mask_phone(lead.phone),
        extra={"lead_id": str(lead.id), "source": source, "pipeline": pipeline},
    )
    return lead
