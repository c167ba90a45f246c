"""
Conversation model - the thread tying a lead to its agent.
Exactly one per lead (unique lead_id). Lifecycle: queued -> active -> closed.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from nobre_hub.database import Base

CONVERSATION_STATUSES = ("queued", "active", "closed")


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("leads.id"), nullable=False, unique=True
    )
    assigned_agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    status: Mapped[str] = mapped_column(
        String(20), default="queued", nullable=False
    )  # queued, active, closed
    # Copied from the lead when the conversation is created
    pipeline: Mapped[str] = mapped_column(String(20), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), default="whatsapp", nullable=False)

    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    lead: Mapped["Lead"] = relationship(back_populates="conversation")
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation", lazy="select", order_by="Message.created_at"
    )

    __table_args__ = (
        Index("ix_conversations_agent_pipeline_status", "assigned_agent_id", "pipeline", "status"),
        Index("ix_conversations_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Conversation {self.pipeline} status={self.status}>"
