"""RBAC Service.

Role management and permission resolution. Roles hold permissions through
``role_permissions``; users hold roles through ``user_roles``. Both links
are maintained as diffs inside the caller's transaction and committed here.

The role named ``SUPER_ADMIN_ROLE_NAME`` ("Super Admin") is implicitly
granted every permission and can never be deleted.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..core.exceptions import (
    ProtectedRoleError,
    RoleAlreadyExistsError,
    RoleInUseError,
    RoleNotFoundError,
    SuperAdminGrantError,
    ValidationError,
)
from ..core.permissions import (
    PRESET_ROLES,
    all_permission_names,
    normalize_permission_name,
    split_permission_name,
)
from ..models.role import Permission, Role
from ..models.user import User
from ..repositories.role_repository import RoleRepository
from ..repositories.user_repository import UserRepository

log = structlog.get_logger(__name__)

_UNSET = object()


class RBACService:
    """Roles, permissions and authorization decisions."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.roles = RoleRepository(session)
        self.users = UserRepository(session)

    # =========================================================================
    # AUTHORIZATION
    # =========================================================================

    def is_super_admin(self, user: User) -> bool:
        return any(role.name == self.settings.SUPER_ADMIN_ROLE_NAME for role in user.roles)

    def resolve_effective_permissions(self, user: User) -> set[str]:
        """Permission names granted to ``user`` through its roles.

        Inactive users get nothing. Super Admins get the whole catalog plus
        anything linked explicitly to their roles. Inactive roles grant
        nothing.
        """
        if not user.is_active:
            return set()

        granted = {
            permission.name
            for role in user.roles
            if role.is_active
            for permission in role.permissions
        }
        if self.is_super_admin(user):
            granted |= all_permission_names()
        return granted

    def authorize(self, user: User, permission: str) -> bool:
        """True when ``user`` may perform ``permission`` (``.`` or ``:`` form)."""
        if not user.is_active:
            return False
        if self.is_super_admin(user):
            return True
        return normalize_permission_name(permission) in self.resolve_effective_permissions(user)

    async def load_user(self, user_id: int) -> User | None:
        """Load a user with roles and permissions re-read from the database."""
        return await self.users.get_by_id(user_id, fresh=True)

    # =========================================================================
    # PERMISSIONS
    # =========================================================================

    async def _ensure_permissions(self, names: Iterable[str]) -> list[Permission]:
        """Permission rows for ``names``, creating the ones that do not exist yet."""
        canonical: list[str] = []
        for name in names:
            try:
                split_permission_name(name)
            except ValueError as exc:
                raise ValidationError(
                    message=str(exc),
                    errors=[{"field": "permissions", "message": str(exc), "value": name}],
                ) from exc
            normalized = normalize_permission_name(name)
            if normalized not in canonical:
                canonical.append(normalized)

        existing = await self.roles.get_permissions_by_names(canonical)
        permissions: list[Permission] = []
        for name in canonical:
            permission = existing.get(name)
            if permission is None:
                resource, action = split_permission_name(name)
                permission = await self.roles.create_permission(
                    name=name,
                    resource=resource,
                    action=action,
                    description=f"{action.capitalize()} access to {resource}",
                )
            permissions.append(permission)
        return permissions

    async def set_role_permissions(self, role: Role, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """Make the role's permissions exactly ``names``.

        Only missing links are inserted and only extra links removed.
        Returns ``(added, removed)``. Does not commit.
        """
        desired = {p.name: p for p in await self._ensure_permissions(names)}
        current = {p.name: p for p in role.permissions}

        removed = sorted(current.keys() - desired.keys())
        added = sorted(desired.keys() - current.keys())

        for name in removed:
            role.permissions.remove(current[name])
        role.permissions.extend(desired[name] for name in added)

        await self.session.flush()
        return added, removed

    # =========================================================================
    # ROLES
    # =========================================================================

    async def list_roles(self) -> list[tuple[Role, int]]:
        """All roles ordered by name, each with its user count."""
        roles = await self.roles.list_all()
        counts = await self.roles.user_counts()
        return [(role, counts.get(role.id, 0)) for role in roles]

    async def get_role(self, role_id: int) -> tuple[Role, int]:
        role = await self.roles.get_by_id(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)
        return role, await self.roles.count_users(role.id)

    async def _create_role(
        self,
        name: str,
        description: str | None,
        permissions: Sequence[str],
    ) -> Role:
        if await self.roles.get_by_name(name) is not None:
            raise RoleAlreadyExistsError(name)
        permission_rows = await self._ensure_permissions(permissions)
        return await self.roles.create(
            name=name,
            description=description,
            permissions=permission_rows,
        )

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        permissions: Sequence[str] = (),
    ) -> Role:
        name = name.strip()
        try:
            role = await self._create_role(name, description, permissions)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise RoleAlreadyExistsError(name) from exc

        log.info("role_created_with_permissions", role_id=role.id, name=role.name)
        return role

    async def update_role(
        self,
        role_id: int,
        *,
        name: str | None = None,
        description: str | None | object = _UNSET,
        permissions: Sequence[str] | None = None,
        is_active: bool | None = None,
    ) -> Role:
        """Partially update a role; ``permissions`` replaces the whole set."""
        role = await self.roles.get_by_id(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)

        fields: dict[str, object] = {}
        if name is not None and name.strip() != role.name:
            name = name.strip()
            if await self.roles.get_by_name(name) is not None:
                raise RoleAlreadyExistsError(name)
            fields["name"] = name
        if description is not _UNSET:
            fields["description"] = description
        if is_active is not None:
            fields["is_active"] = is_active

        target_name = str(fields.get("name", role.name))
        added: list[str] = []
        removed: list[str] = []
        try:
            if permissions is not None:
                added, removed = await self.set_role_permissions(role, permissions)
            if fields:
                role = await self.roles.update(role, fields)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise RoleAlreadyExistsError(target_name) from exc

        log.info(
            "role_updated",
            role_id=role.id,
            fields=sorted(fields),
            permissions_added=added,
            permissions_removed=removed,
        )
        return role

    async def delete_role(self, role_id: int) -> None:
        role = await self.roles.get_by_id(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)
        if role.name == self.settings.SUPER_ADMIN_ROLE_NAME:
            raise ProtectedRoleError(role.name)

        user_count = await self.roles.count_users(role.id)
        if user_count:
            raise RoleInUseError(role.name, user_count)

        await self.roles.delete(role)
        await self.session.commit()

    async def initialize_presets(self) -> list[dict[str, str]]:
        """Create the preset roles that do not exist yet.

        Existing roles are left untouched, so running this twice is a no-op.
        """
        results: list[dict[str, str]] = []
        for preset in PRESET_ROLES.values():
            name = preset["name"]
            if await self.roles.get_by_name(name) is not None:
                results.append({"exists": name})
                continue
            await self._create_role(name, preset["description"], preset["permissions"])
            results.append({"created": name})

        await self.session.commit()
        log.info(
            "preset_roles_initialized",
            created=sum(1 for r in results if "created" in r),
            existing=sum(1 for r in results if "exists" in r),
        )
        return results

    # =========================================================================
    # USER ROLES
    # =========================================================================

    async def set_user_roles(
        self,
        user: User,
        role_ids: Iterable[int],
        *,
        granted_by: User | None = None,
    ) -> User:
        """Make the user's roles exactly ``role_ids``.

        When ``granted_by`` is given, only a Super Admin may hand out the
        Super Admin role to someone who does not already hold it.
        """
        wanted = list(dict.fromkeys(role_ids))
        roles = await self.roles.get_by_ids(wanted)
        found = {role.id for role in roles}
        missing = [role_id for role_id in wanted if role_id not in found]
        if missing:
            raise RoleNotFoundError(missing[0])
        if granted_by is not None and not self.is_super_admin(granted_by):
            super_name = self.settings.SUPER_ADMIN_ROLE_NAME
            if any(role.name == super_name for role in roles) and not self.is_super_admin(user):
                raise SuperAdminGrantError(super_name)

        added, removed = await self.users.set_roles(user, roles)
        await self.session.commit()

        log.info("user_roles_updated", user_id=user.id, added=added, removed=removed)
        return user
