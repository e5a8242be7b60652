"""Authentication and permission dependencies for the API routers.

    @router.delete("/{rider_id}")
    async def delete_rider(rider_id: int, user: RidersDeleter): ...

``require_permission("riders.read")`` can also be used directly in
``Depends``; the aliases at the bottom cover the permissions the routers use.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_db
from ..models.user import User
from ..services.rbac_service import RBACService
from .config import Settings, get_settings
from .exceptions import ForbiddenError, UnauthorizedError
from .permissions import normalize_permission_name
from .security import ACCESS_TOKEN_TYPE, decode_token

logger = structlog.get_logger(__name__)


def _bearer_token(request: Request) -> str:
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme.lower() != "bearer":
        raise UnauthorizedError("Missing or invalid Authorization header")
    if not token.strip():
        raise UnauthorizedError("Missing access token")
    return token.strip()


async def get_current_user(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    db: AsyncSession = Depends(get_db),
) -> User:
    """The active user behind the bearer token, with roles read fresh from the database.

    A token for a deleted user is a 401 ``USER_NOT_FOUND``; a deactivated
    account is a 403 ``USER_INACTIVE``.
    """
    user_id = decode_token(_bearer_token(request), expected_type=ACCESS_TOKEN_TYPE, settings=settings)
    user = await RBACService(db, settings).load_user(user_id)

    if user is None:
        logger.warning("auth_unknown_user", user_id=user_id)
        raise UnauthorizedError("User not found. Please contact administrator.", "USER_NOT_FOUND")
    if not user.is_active:
        logger.warning("auth_inactive_user", user_id=user.id)
        raise ForbiddenError("Your account has been deactivated. Please contact administrator.", "USER_INACTIVE")
    return user


def require_permission(permission: str) -> Callable[..., Awaitable[User]]:
    """Dependency that passes the current user through if they hold ``permission``."""
    needed = normalize_permission_name(permission)

    async def _guard(
        current_user: Annotated[User, Depends(get_current_user)],
        settings: Annotated[Settings, Depends(get_settings)],
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if RBACService(db, settings).authorize(current_user, needed):
            return current_user
        logger.warning("permission_denied", user_id=current_user.id, permission=needed)
        raise ForbiddenError(
            f"Permission '{needed}' required",
            "INSUFFICIENT_PERMISSIONS",
            {"required_permission": needed},
        )

    # distinct names keep the OpenAPI operation dependencies readable
    _guard.__name__ = "require_" + needed.replace(".", "_")
    return _guard


CurrentUser = Annotated[User, Depends(get_current_user)]

UsersReader = Annotated[User, Depends(require_permission("users.read"))]
UsersWriter = Annotated[User, Depends(require_permission("users.write"))]
UsersDeleter = Annotated[User, Depends(require_permission("users.delete"))]

RidersReader = Annotated[User, Depends(require_permission("riders.read"))]
RidersWriter = Annotated[User, Depends(require_permission("riders.write"))]
RidersDeleter = Annotated[User, Depends(require_permission("riders.delete"))]

SettingsReader = Annotated[User, Depends(require_permission("settings.read"))]
SettingsWriter = Annotated[User, Depends(require_permission("settings.write"))]
SettingsDeleter = Annotated[User, Depends(require_permission("settings.delete"))]
