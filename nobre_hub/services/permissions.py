"""
Permission registry - role -> permission tokens.

The lookup itself (permissions_for / can / user_can) is pure: it takes the
role table as an argument and never touches the database. Persistence
(role_access rows) is a thin layer on top, read per request by the auth
dependency.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.database import insert_ignoring_conflicts
from nobre_hub.models.role_access import RoleAccess
from nobre_hub.models.user import ROLES
from nobre_hub.services.errors import RoleNotFoundError, ValidationError

logger = logging.getLogger(__name__)

PERMISSIONS = (
    "view_kanban",
    "view_workspace",
    "view_leads",
    "view_chat",
    "manage_flows",
    "view_team",
    "view_analytics",
    "manage_settings",
)

_MANAGER = [
    "view_kanban", "view_workspace", "view_leads",
    "view_chat", "view_team", "view_analytics",
]

DEFAULT_ROLE_PERMISSIONS: dict[str, list[str]] = {
    "admin": list(PERMISSIONS),
    "strategic": list(_MANAGER),
    "manager_sales": list(_MANAGER),
    "manager_production": list(_MANAGER),
    "sdr": ["view_workspace", "view_leads"],
    "closer_ht": ["view_workspace", "view_chat"],
    "closer_lt": ["view_workspace", "view_chat"],
    "production": ["view_kanban", "view_workspace"],
    "post_sales": ["view_kanban", "view_workspace", "view_chat"],
}


def permissions_for(role: str, table: Mapping[str, Iterable[str]]) -> frozenset[str]:
    """Tokens granted to `role` by `table`. Unknown roles get nothing."""
    return frozenset(table.get(role) or ())


def can(granted: Iterable[str], permission: str) -> bool:
    return permission in granted


def user_can(user, permission: str, granted: Iterable[str]) -> bool:
    """Superusers pass every check; everyone else needs the token."""
    if getattr(user, "is_superuser", False):
        return True
    return can(granted, permission)


def validate_role(role: str) -> None:
    if role not in ROLES:
        raise RoleNotFoundError(f"Unknown role '{role}'")


def validate_permissions(tokens: Iterable[str]) -> list[str]:
    """Reject unknown tokens; return the list de-duplicated, order kept."""
    cleaned: list[str] = []
    for token in tokens:
        if token not in PERMISSIONS:
            raise ValidationError(f"Unknown permission '{token}'")
        if token not in cleaned:
            cleaned.append(token)
    return cleaned


async def load_permission_table(db: AsyncSession) -> dict[str, list[str]]:
    result = await db.execute(select(RoleAccess))
    return {row.role: list(row.permissions or []) for row in result.scalars().all()}


async def get_role_permissions(db: AsyncSession, role: str) -> list[str]:
    """Tokens stored for a role. A known role without a row has none."""
    validate_role(role)
    row = await db.get(RoleAccess, role)
    if row is None:
        return []
    return list(row.permissions or [])


async def list_role_permissions(db: AsyncSession) -> dict[str, list[str]]:
    """Every known role with its stored tokens (empty list when no row)."""
    table = await load_permission_table(db)
    return {role: table.get(role, []) for role in ROLES}


async def replace_role_permissions(
    db: AsyncSession,
    role: str,
    tokens: Iterable[str],
) -> list[str]:
    """
    Full replace - the stored list becomes exactly `tokens`.
    Raises RoleNotFoundError / ValidationError before writing anything.
    """
    try:
        validate_role(role)
    except RoleNotFoundError as e:
        raise ValidationError(str(e)) from e
    cleaned = validate_permissions(tokens)

    row = await db.get(RoleAccess, role)
    if row is None:
        row = RoleAccess(role=role, permissions=cleaned)
        db.add(row)
    else:
        row.permissions = cleaned
        row.updated_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info("Permissions for role %s replaced (%d tokens)", role, len(cleaned))
    return cleaned


async def seed_default_permissions(db: AsyncSession, overwrite: bool = False) -> int:
    """
    Write DEFAULT_ROLE_PERMISSIONS. Missing rows are inserted; existing rows
    are left alone unless `overwrite`. Returns the number of rows written.
    """
    written = 0
    for role, tokens in DEFAULT_ROLE_PERMISSIONS.items():
        if overwrite:
            await replace_role_permissions(db, role, tokens)
            written += 1
            continue
        result = await db.execute(
            insert_ignoring_conflicts(db, RoleAccess, ["role"]).values(
                role=role,
                permissions=list(tokens),
                updated_at=datetime.now(timezone.utc),
            )
        )
        written += result.rowcount or 0

    logger.info("Seeded role permissions: %d rows written", written)
    return written
