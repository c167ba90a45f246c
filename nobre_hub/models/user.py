"""
User model - team members (agents). Identity comes from Supabase auth;
this row carries the CRM-side role and assignment eligibility.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Boolean, Integer, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from nobre_hub.database import Base

ROLES = (
    "admin",
    "strategic",
    "manager_sales",
    "manager_production",
    "sdr",
    "closer_ht",
    "closer_lt",
    "production",
    "post_sales",
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)

    role: Mapped[str] = mapped_column(String(30), nullable=False)  # see ROLES
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Replaces any identity-based bypass: superusers pass every role/permission guard
    is_superuser: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pipeline_type: Mapped[Optional[str]] = mapped_column(String(20))  # high_ticket, low_ticket
    max_concurrent_chats: Mapped[int] = mapped_column(Integer, default=10)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_users_role_active", "role", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<User {self.name} role={self.role}>"
