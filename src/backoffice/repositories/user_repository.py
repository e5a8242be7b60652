"""User Repository - Data access layer for staff users."""
from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.role import Role
from ..models.user import User

log = structlog.get_logger(__name__)


class UserRepository:
    """Repository for User CRUD operations.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, user_id: int, *, fresh: bool = False) -> User | None:
        """Load a user. ``fresh`` reloads roles and permissions from the database."""
        query = select(User).where(User.id == user_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        return await self.session.scalar(query)

    async def get_by_email(self, email: str) -> User | None:
        query = select(User).where(User.email == email.strip().lower())
        return await self.session.scalar(query)

    async def get_by_phone(self, phone: str) -> User | None:
        query = select(User).where(User.phone == phone.strip())
        return await self.session.scalar(query)

    async def exists_with_email_or_phone(self, email: str | None, phone: str | None) -> bool:
        conditions = []
        if email:
            conditions.append(User.email == email.strip().lower())
        if phone:
            conditions.append(User.phone == phone.strip())
        if not conditions:
            return False
        query = select(func.count(User.id)).where(or_(*conditions))
        result = await self.session.execute(query)
        return result.scalar_one() > 0

    def _filtered(self, query, search: str | None, is_active: bool | None):
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                    User.phone.like(pattern),
                )
            )
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))
        return query

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        search: str | None = None,
        is_active: bool | None = None,
    ) -> Sequence[User]:
        """Get users with optional filtering, newest first."""
        query = self._filtered(select(User), search, is_active)
        query = query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit)
        return (await self.session.scalars(query)).all()

    async def count_all(self, search: str | None = None, is_active: bool | None = None) -> int:
        """Count users matching the same filters as get_all."""
        query = self._filtered(select(func.count(User.id)), search, is_active)
        result = await self.session.execute(query)
        return result.scalar_one()

    # =========================================================================
    # CREATE / UPDATE OPERATIONS
    # =========================================================================

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
        is_active: bool = True,
        roles: Sequence[Role] = (),
    ) -> User:
        """Create a new user."""
        user = User(
            email=email.strip().lower(),
            phone=phone.strip() if phone else None,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            is_active=is_active,
            roles=list(roles),
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)

        log.info("user_created", user_id=user.id)
        return user

    async def update(self, user: User, fields: dict[str, Any]) -> User:
        """Apply ``fields`` to ``user`` and flush."""
        for key, value in fields.items():
            setattr(user, key, value)
        await self.session.flush()
        await self.session.refresh(user)

        log.info("user_updated", user_id=user.id, fields=sorted(fields))
        return user

    async def update_last_login(self, user: User) -> None:
        user.last_login_at = datetime.now(UTC)
        await self.session.flush()

    async def set_roles(self, user: User, roles: Sequence[Role]) -> tuple[list[str], list[str]]:
        """Make ``user.roles`` exactly ``roles``.

        Only the difference is written. Returns ``(added, removed)`` role names.
        """
        desired = {role.id: role for role in roles}
        current = {role.id: role for role in user.roles}

        removed = [current[role_id] for role_id in current.keys() - desired.keys()]
        added = [desired[role_id] for role_id in desired.keys() - current.keys()]

        for role in removed:
            user.roles.remove(role)
        user.roles.extend(added)

        await self.session.flush()
        return sorted(r.name for r in added), sorted(r.name for r in removed)
