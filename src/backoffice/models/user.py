"""
Staff user model.

Users authenticate with email + password and receive permissions through
their roles (see ``models/role.py``). Users are never hard-deleted;
``is_active=False`` blocks authentication.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.session import Base, TimestampMixin
from .role import user_roles

if TYPE_CHECKING:
    from .role import Role


class User(TimestampMixin, Base):
    """
    Back-office staff account.

    Attributes:
        id: Primary key
        email: Unique login identifier
        phone: Optional unique phone number (used by OTP registration)
        password_hash: bcrypt hash
        is_active: Soft delete flag (inactive users cannot authenticate)
        roles: Assigned roles (many-to-many through ``user_roles``)
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Login email address (stored lower-case)"
    )
    phone: Mapped[str | None] = mapped_column(
        String(20),
        unique=True,
        nullable=True,
        comment="Phone number with country code (e.g., +971501234567)"
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt password hash"
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="Active status - inactive users cannot authenticate"
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last successful authentication timestamp"
    )

    roles: Mapped[list[Role]] = relationship(
        "Role",
        secondary=user_roles,
        lazy="selectin",
        order_by="Role.name",
    )

    __table_args__ = (
        Index("ix_users_email_active", "email", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', active={self.is_active})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]
