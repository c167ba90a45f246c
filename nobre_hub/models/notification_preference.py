"""
Notification preferences - one row per user, created with defaults on first read.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from nobre_hub.database import Base

DEFAULT_PREFERENCES = {
    "email_leads": True,
    "email_deals": True,
    "email_activities": False,
    "email_system": True,
    "push_leads": True,
    "push_deals": True,
    "push_activities": True,
    "push_mentions": True,
    "whatsapp_leads": False,
    "whatsapp_urgent": True,
}


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), primary_key=True
    )

    # Email
    email_leads: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["email_leads"])
    email_deals: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["email_deals"])
    email_activities: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["email_activities"])
    email_system: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["email_system"])

    # Push
    push_leads: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["push_leads"])
    push_deals: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["push_deals"])
    push_activities: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["push_activities"])
    push_mentions: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["push_mentions"])

    # WhatsApp
    whatsapp_leads: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["whatsapp_leads"])
    whatsapp_urgent: Mapped[bool] = mapped_column(Boolean, default=DEFAULT_PREFERENCES["whatsapp_urgent"])

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> dict:
        return {field: getattr(self, field) for field in DEFAULT_PREFERENCES}

    def __repr__(self) -> str:
        return f"<NotificationPreference user={self.user_id}>"
