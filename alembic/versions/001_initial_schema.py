"""Initial schema - users, leads, conversations, messages, interactions, permissions.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Team members
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_superuser", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("pipeline_type", sa.String(20)),
        sa.Column("max_concurrent_chats", sa.Integer, server_default="10"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_role_active", "users", ["role", "is_active"])

    # Leads
    op.create_table(
        "leads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(30), nullable=False),
        sa.Column("phone_key", sa.String(8)),
        sa.Column("email", sa.String(255)),
        sa.Column("company", sa.String(200)),
        sa.Column("notes", sa.Text),
        sa.Column("contact_reason", sa.Text),
        sa.Column("pipeline", sa.String(20), nullable=False, server_default="high_ticket"),
        sa.Column("source", sa.String(50), nullable=False, server_default="manual"),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("assigned_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_leads_phone_key", "leads", ["phone_key"])
    op.create_index("ix_leads_source", "leads", ["source"])
    op.create_index("ix_leads_pipeline_assigned", "leads", ["pipeline", "assigned_to"])
    op.create_index("ix_leads_created_at", "leads", ["created_at"])

    # Conversations - exactly one per lead
    op.create_table(
        "conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("assigned_agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("pipeline", sa.String(20), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False, server_default="whatsapp"),
        sa.Column("last_message_at", sa.DateTime(timezone=True)),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("lead_id", name="uq_conversations_lead_id"),
    )
    op.create_index(
        "ix_conversations_agent_pipeline_status", "conversations",
        ["assigned_agent_id", "pipeline", "status"],
    )
    op.create_index("ix_conversations_status", "conversations", ["status"])

    # Messages
    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("conversations.id")),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("leads.id")),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("text", sa.Text),
        sa.Column("phone", sa.String(30)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])
    op.create_index("ix_messages_lead_id", "messages", ["lead_id"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])

    # Interactions (audit trail)
    op.create_table(
        "interactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("content", sa.Text),
        sa.Column("data", postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_interactions_lead_id", "interactions", ["lead_id"])
    op.create_index("ix_interactions_type", "interactions", ["type"])

    # Role permissions
    op.create_table(
        "role_access",
        sa.Column("role", sa.String(30), primary_key=True),
        sa.Column("permissions", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Notification preferences
    op.create_table(
        "notification_preferences",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("email_leads", sa.Boolean, server_default=sa.true()),
        sa.Column("email_deals", sa.Boolean, server_default=sa.true()),
        sa.Column("email_activities", sa.Boolean, server_default=sa.false()),
        sa.Column("email_system", sa.Boolean, server_default=sa.true()),
        sa.Column("push_leads", sa.Boolean, server_default=sa.true()),
        sa.Column("push_deals", sa.Boolean, server_default=sa.true()),
        sa.Column("push_activities", sa.Boolean, server_default=sa.true()),
        sa.Column("push_mentions", sa.Boolean, server_default=sa.true()),
        sa.Column("whatsapp_leads", sa.Boolean, server_default=sa.false()),
        sa.Column("whatsapp_urgent", sa.Boolean, server_default=sa.true()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("notification_preferences")
    op.drop_table("role_access")
    op.drop_table("interactions")
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("leads")
    op.drop_table("users")
