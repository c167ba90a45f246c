"""
RoleAccess model - persisted permission tokens per role.
A role without a row resolves to no permissions.
"""
from datetime import datetime, timezone
from sqlalchemy import String, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from nobre_hub.database import Base


class RoleAccess(Base):
    __tablename__ = "role_access"

    role: Mapped[str] = mapped_column(String(30), primary_key=True)
    permissions: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<RoleAccess {self.role} ({len(self.permissions or [])} permissions)>"
