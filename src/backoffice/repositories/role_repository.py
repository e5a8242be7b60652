"""Role Repository - Data access layer for roles and permissions."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.role import Permission, Role, user_roles

log = structlog.get_logger(__name__)


class RoleRepository:
    """Repository for Role and Permission rows.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # =========================================================================
    # ROLES
    # =========================================================================

    async def get_by_id(self, role_id: int) -> Role | None:
        query = select(Role).where(Role.id == role_id)
        return await self.session.scalar(query)

    async def get_by_name(self, name: str) -> Role | None:
        query = select(Role).where(Role.name == name)
        return await self.session.scalar(query)

    async def get_by_ids(self, role_ids: Iterable[int]) -> Sequence[Role]:
        ids = set(role_ids)
        if not ids:
            return []
        query = select(Role).where(Role.id.in_(ids))
        return (await self.session.scalars(query)).all()

    async def list_all(self) -> Sequence[Role]:
        """All roles ordered by name."""
        result = await self.session.execute(select(Role).order_by(Role.name))
        return result.scalars().all()

    async def count_users(self, role_id: int) -> int:
        query = select(func.count()).select_from(user_roles).where(user_roles.c.role_id == role_id)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def user_counts(self) -> dict[int, int]:
        """Number of users holding each role, keyed by role id."""
        query = select(user_roles.c.role_id, func.count()).group_by(user_roles.c.role_id)
        result = await self.session.execute(query)
        return {role_id: count for role_id, count in result.all()}

    async def create(
        self,
        *,
        name: str,
        description: str | None,
        permissions: Sequence[Permission],
        is_active: bool = True,
    ) -> Role:
        role = Role(
            name=name,
            description=description,
            is_active=is_active,
            permissions=list(permissions),
        )
        self.session.add(role)
        await self.session.flush()
        await self.session.refresh(role)

        log.info("role_created", role_id=role.id, name=name, permissions=len(permissions))
        return role

    async def update(self, role: Role, fields: dict[str, Any]) -> Role:
        for key, value in fields.items():
            setattr(role, key, value)
        await self.session.flush()
        await self.session.refresh(role)
        return role

    async def delete(self, role: Role) -> None:
        """Delete the role's permission links, then the role."""
        role.permissions.clear()
        await self.session.flush()
        await self.session.delete(role)
        await self.session.flush()

        log.info("role_deleted", role_id=role.id, name=role.name)

    # =========================================================================
    # PERMISSIONS
    # =========================================================================

    async def get_permissions_by_names(self, names: Iterable[str]) -> dict[str, Permission]:
        wanted = set(names)
        if not wanted:
            return {}
        query = select(Permission).where(Permission.name.in_(wanted))
        result = await self.session.execute(query)
        return {permission.name: permission for permission in result.scalars().all()}

    async def create_permission(
        self,
        *,
        name: str,
        resource: str,
        action: str,
        description: str | None = None,
    ) -> Permission:
        permission = Permission(
            name=name,
            resource=resource,
            action=action,
            description=description,
        )
        self.session.add(permission)
        await self.session.flush()

        log.info("permission_created", name=name)
        return permission
