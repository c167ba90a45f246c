"""
Lead model - every prospective customer, from WhatsApp, the landing page or manual entry.
Assignment state lives here (assigned_to); the working thread lives in Conversation.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from nobre_hub.database import Base

PIPELINES = ("high_ticket", "low_ticket")


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Contact info
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)  # digits only
    # Last 8 digits of phone - logical uniqueness key for duplicate detection
    phone_key: Mapped[Optional[str]] = mapped_column(String(8))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    company: Mapped[Optional[str]] = mapped_column(String(200))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    contact_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Classification
    pipeline: Mapped[str] = mapped_column(
        String(20), default="high_ticket", nullable=False
    )  # high_ticket, low_ticket
    source: Mapped[str] = mapped_column(
        String(50), default="manual", nullable=False
    )  # whatsapp, website, manual, import

    # Assignment
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    conversation: Mapped[Optional["Conversation"]] = relationship(
        back_populates="lead", uselist=False, lazy="select"
    )
    interactions: Mapped[list["Interaction"]] = relationship(
        back_populates="lead", lazy="select", order_by="Interaction.created_at"
    )

    __table_args__ = (
        Index("ix_leads_phone_key", "phone_key"),
        Index("ix_leads_source", "source"),
        Index("ix_leads_pipeline_assigned", "pipeline", "assigned_to"),
        Index("ix_leads_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        masked = self.phone[:4] + "***" if self.phone else "unknown"
        return f"<Lead {masked} pipeline={self.pipeline}>"
