"""
API request/response schemas. JSON keys are camelCase (leadId, agentId) to
match what the dashboard frontend reads.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# === ROUND ROBIN ===

class AssignmentResponse(CamelModel):
    lead_id: str
    agent_id: str
    agent_name: str
    pipeline: str


class AutoAssignRequest(CamelModel):
    pipeline: str


class LeadOutcomeResponse(CamelModel):
    lead_id: str
    status: str
    agent_id: Optional[str] = None
    error: Optional[str] = None


class AutoAssignResponse(CamelModel):
    pipeline: str
    total: int
    assigned: int
    skipped: int
    failed: int
    results: list[LeadOutcomeResponse]


class CloserLoad(CamelModel):
    agent_id: str
    name: str
    count: int


class RoundRobinStatsResponse(CamelModel):
    pipeline: str
    closers: list[CloserLoad]


# === PUBLIC INTAKE ===

class PublicLeadResponse(CamelModel):
    success: bool = True
    lead_id: str
    duplicate: bool = False


# === PERMISSIONS ===

class RolePermissions(CamelModel):
    role: str
    permissions: list[str]


class PermissionsListResponse(CamelModel):
    roles: list[RolePermissions]
    available: list[str]


class MyPermissionsResponse(CamelModel):
    role: str
    permissions: list[str]
    is_superuser: bool = False


class PermissionsUpdate(CamelModel):
    permissions: list[str]


# === NOTIFICATIONS ===

class NotificationPreferencesResponse(CamelModel):
    email_leads: bool
    email_deals: bool
    email_activities: bool
    email_system: bool
    push_leads: bool
    push_deals: bool
    push_activities: bool
    push_mentions: bool
    whatsapp_leads: bool
    whatsapp_urgent: bool


class NotificationPreferencesUpdate(CamelModel):
    email_leads: Optional[bool] = None
    email_deals: Optional[bool] = None
    email_activities: Optional[bool] = None
    email_system: Optional[bool] = None
    push_leads: Optional[bool] = None
    push_deals: Optional[bool] = None
    push_activities: Optional[bool] = None
    push_mentions: Optional[bool] = None
    whatsapp_leads: Optional[bool] = None
    whatsapp_urgent: Optional[bool] = None


# === LEADS ===

class LeadSummary(CamelModel):
    id: str
    name: str
    phone_masked: str
    email: Optional[str] = None
    company: Optional[str] = None
    pipeline: str
    source: str
    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    created_at: datetime


class LeadListResponse(CamelModel):
    leads: list[LeadSummary]
    total: int
    page: int
    pages: int
