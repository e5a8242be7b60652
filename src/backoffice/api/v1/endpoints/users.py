"""
User Management API Endpoints.

Staff user administration guarded by the ``users.*`` permissions:
- List and view users
- Create users with an initial role set
- Update profile fields, password and active flag
- Deactivate users (users are never hard-deleted)
- Replace a user's roles
"""
from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import UserAlreadyExistsError, UserNotFoundError
from ....core.rbac import UsersDeleter, UsersReader, UsersWriter
from ....core.responses import GenericResponse, PaginatedResponse, PaginationMeta
from ....core.security import hash_password
from ....db.session import get_db
from ....models.user import User
from ....repositories.user_repository import UserRepository
from ....schemas.user import UserCreate, UserResponse, UserRolesUpdate, UserUpdate
from ....services.rbac_service import RBACService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users")


# =============================================================================
# Dependencies
# =============================================================================

async def get_user_repo(
    db: AsyncSession = Depends(get_db),
) -> UserRepository:
    """Get user repository with database session."""
    return UserRepository(db)


async def _get_user_or_404(repo: UserRepository, user_id: int) -> User:
    user = await repo.get_by_id(user_id)
    if not user:
        raise UserNotFoundError(user_id=user_id)
    return user


# =============================================================================
# LIST / GET
# =============================================================================

@router.get(
    "",
    response_model=PaginatedResponse[UserResponse],
    summary="List users",
)
async def list_users(
    current_user: UsersReader,
    repo: UserRepository = Depends(get_user_repo),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, description="Match email, name or phone"),
    is_active: bool | None = Query(None, description="Filter by active status"),
) -> PaginatedResponse[UserResponse]:
    skip = (page - 1) * page_size
    users = await repo.get_all(skip=skip, limit=page_size, search=search, is_active=is_active)
    total = await repo.count_all(search=search, is_active=is_active)
    return PaginatedResponse(
        message="Users retrieved",
        data=[UserResponse.model_validate(u) for u in users],
        pagination=PaginationMeta.from_total(total, page, page_size),
    )


@router.get(
    "/{user_id}",
    response_model=GenericResponse[UserResponse],
    summary="Get user by ID",
)
async def get_user(
    user_id: int,
    current_user: UsersReader,
    repo: UserRepository = Depends(get_user_repo),
) -> GenericResponse[UserResponse]:
    user = await _get_user_or_404(repo, user_id)
    return GenericResponse(message="User retrieved", data=UserResponse.model_validate(user))


# =============================================================================
# CREATE / UPDATE
# =============================================================================

@router.post(
    "",
    response_model=GenericResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    payload: UserCreate,
    current_user: UsersWriter,
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[UserResponse]:
    repo = UserRepository(db)
    if await repo.exists_with_email_or_phone(payload.email, payload.phone):
        raise UserAlreadyExistsError(email=payload.email, phone=payload.phone)

    user = await repo.create(
        email=payload.email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        is_active=payload.is_active,
    )
    if payload.role_ids:
        # Commits the user together with its roles
        user = await RBACService(db).set_user_roles(user, payload.role_ids, granted_by=current_user)
    else:
        await db.commit()

    logger.info("user_created_by_admin", user_id=user.id, created_by=current_user.id)
    return GenericResponse(message="User created successfully", data=UserResponse.model_validate(user))


@router.patch(
    "/{user_id}",
    response_model=GenericResponse[UserResponse],
    summary="Update a user",
)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: UsersWriter,
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[UserResponse]:
    repo = UserRepository(db)
    user = await _get_user_or_404(repo, user_id)

    # Only phone may be cleared
    fields = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key == "phone"
    }
    new_email = fields.get("email")
    new_phone = fields.get("phone")
    if new_email:
        fields["email"] = new_email.lower()
        other = await repo.get_by_email(new_email)
        if other and other.id != user.id:
            raise UserAlreadyExistsError(email=new_email)
    if new_phone:
        other = await repo.get_by_phone(new_phone)
        if other and other.id != user.id:
            raise UserAlreadyExistsError(phone=new_phone)
    if "password" in fields:
        password = fields.pop("password")
        if password:
            fields["password_hash"] = hash_password(password)

    user = await repo.update(user, fields)
    await db.commit()

    return GenericResponse(message="User updated successfully", data=UserResponse.model_validate(user))


@router.delete(
    "/{user_id}",
    response_model=GenericResponse[UserResponse],
    summary="Deactivate a user",
)
async def deactivate_user(
    user_id: int,
    current_user: UsersDeleter,
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[UserResponse]:
    repo = UserRepository(db)
    user = await _get_user_or_404(repo, user_id)
    user = await repo.update(user, {"is_active": False})
    await db.commit()

    logger.info("user_deactivated", user_id=user.id, deactivated_by=current_user.id)
    return GenericResponse(message="User deactivated", data=UserResponse.model_validate(user))


@router.put(
    "/{user_id}/roles",
    response_model=GenericResponse[UserResponse],
    summary="Replace a user's roles",
)
async def set_user_roles(
    user_id: int,
    payload: UserRolesUpdate,
    current_user: UsersWriter,
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[UserResponse]:
    user = await _get_user_or_404(UserRepository(db), user_id)
    user = await RBACService(db).set_user_roles(user, payload.role_ids, granted_by=current_user)
    return GenericResponse(message="User roles updated", data=UserResponse.model_validate(user))
