"""
Auth dependencies - verify Supabase-issued JWTs and guard routes by role or
permission. Tokens are only verified here; login lives with the identity
provider.
"""
import logging
import uuid
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from nobre_hub.database import get_db
from nobre_hub.models.user import User

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency to extract and verify the user from the JWT Bearer token."""
    import jwt as pyjwt
    from nobre_hub.config import get_settings
    settings = get_settings()

    try:
        payload = pyjwt.decode(
            credentials.credentials,
            settings.supabase_jwt_secret or settings.app_secret_key,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    try:
        user_uuid = uuid.UUID(subject)
    except (ValueError, AttributeError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    result = await db.execute(
        select(User).where(and_(User.id == user_uuid, User.is_active == True))  # noqa: E712
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_roles(*roles: str):
    """Dependency factory: the caller's role must be one of `roles`."""
    async def _guard(user: User = Depends(get_current_user)) -> User:
        if user.is_superuser or user.role in roles:
            return user
        logger.info(
            "Role %s denied (needs one of %s)", user.role, ", ".join(roles),
            extra={"user_id": str(user.id)},
        )
        raise HTTPException(status_code=403, detail="Insufficient role")
    return _guard


def require_permission(permission: str):
    """Dependency factory: the caller's role must grant `permission`."""
    async def _guard(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        from nobre_hub.services.errors import RoleNotFoundError
        from nobre_hub.services.permissions import get_role_permissions, user_can

        granted: list[str] = []
        if not user.is_superuser:
            try:
                granted = await get_role_permissions(db, user.role)
            except RoleNotFoundError:
                granted = []
        if user_can(user, permission, granted):
            return user
        raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
    return _guard
