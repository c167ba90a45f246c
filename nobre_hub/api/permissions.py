"""
Role permission management. Reading and editing the matrix is limited to
admin and strategic; every authenticated user can read their own grants.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.api.auth import get_current_user, require_roles
from nobre_hub.database import get_db
from nobre_hub.models.user import User
from nobre_hub.schemas.api_responses import (
    MyPermissionsResponse,
    PermissionsListResponse,
    PermissionsUpdate,
    RolePermissions,
)
from nobre_hub.services.errors import RoleNotFoundError, ValidationError
from nobre_hub.services.permissions import (
    PERMISSIONS,
    get_role_permissions,
    list_role_permissions,
    replace_role_permissions,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["permissions"])

_managers = require_roles("admin", "strategic")


@router.get("/permissions", response_model=PermissionsListResponse)
async def list_permissions(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(_managers),
):
    table = await list_role_permissions(db)
    return PermissionsListResponse(
        roles=[RolePermissions(role=role, permissions=tokens) for role, tokens in table.items()],
        available=list(PERMISSIONS),
    )


@router.get("/permissions/me", response_model=MyPermissionsResponse)
async def my_permissions(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The caller's own grants. Superusers see the full catalogue."""
    if user.is_superuser:
        granted = list(PERMISSIONS)
    else:
        try:
            granted = await get_role_permissions(db, user.role)
        except RoleNotFoundError:
            granted = []
    return MyPermissionsResponse(role=user.role, permissions=granted, is_superuser=user.is_superuser)


@router.get("/permissions/{role}", response_model=RolePermissions)
async def get_permissions(
    role: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(_managers),
):
    try:
        tokens = await get_role_permissions(db, role)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RolePermissions(role=role, permissions=tokens)


@router.put("/permissions/{role}", response_model=RolePermissions)
async def update_permissions(
    role: str,
    payload: PermissionsUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(_managers),
):
    """Replace the role's permission list (not a merge)."""
    try:
        tokens = await replace_role_permissions(db, role, payload.permissions)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "Role %s permissions replaced by %s", role, user.name,
        extra={"user_id": str(user.id)},
    )
    return RolePermissions(role=role, permissions=tokens)
