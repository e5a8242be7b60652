"""
Rider models.

Design:
    - ``phone`` is required and unique
    - email, emirates_id, passport_number, license_number and employee_id
      are unique when present; blank values are stored as NULL so they
      never collide
    - ``rider_code`` is allocated from ``rider_code_counters`` (one row per
      year, locked while incrementing)
    - Soft delete: ``is_active=False``
"""
from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.session import Base, TimestampMixin
from .enums import EmploymentStatus, OnboardingStatus

if TYPE_CHECKING:
    from .acknowledgement import Acknowledgement
    from .document import RiderDocument
    from .user import User

# Identity columns that must be unique across riders when not NULL.
UNIQUE_IDENTITY_FIELDS = (
    "phone",
    "email",
    "emirates_id",
    "passport_number",
    "license_number",
    "employee_id",
)


class Rider(TimestampMixin, Base):
    """Onboarded delivery rider."""

    __tablename__ = "riders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rider_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="Human-readable code: PREFIX + YY + zero-padded sequence"
    )

    # Personal
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    blood_group: Mapped[str | None] = mapped_column(String(5), nullable=True)
    language_spoken: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emergency_contact: Mapped[str | None] = mapped_column(String(200), nullable=True)
    emergency_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    health_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Compliance identity
    emirates_id: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    emirates_id_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    passport_number: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    passport_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    visa_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    license_number: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    license_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Employment
    employee_id: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    joining_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    employment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EmploymentStatus.PENDING.value,
        index=True,
        comment="PENDING | ACTIVE | SUSPENDED | TERMINATED"
    )
    onboarding_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OnboardingStatus.PENDING.value,
        index=True,
        comment="PENDING | IN_PROGRESS | COMPLETED | REJECTED"
    )
    city_of_work: Mapped[str | None] = mapped_column(String(100), nullable=True)
    company_sim: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Company SIM number issued to the rider"
    )
    delivery_partner: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delivery_partner_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    insurance_partner: Mapped[str | None] = mapped_column(String(100), nullable=True)
    insurance_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_by_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    created_by: Mapped[User] = relationship("User", lazy="selectin")
    documents: Mapped[list[RiderDocument]] = relationship(
        "RiderDocument",
        back_populates="rider",
        lazy="raise",
    )
    acknowledgements: Mapped[list[Acknowledgement]] = relationship(
        "Acknowledgement",
        back_populates="rider",
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_riders_status", "employment_status", "onboarding_status"),
    )

    def __repr__(self) -> str:
        return f"<Rider(id={self.id}, code='{self.rider_code}', active={self.is_active})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class RiderCodeCounter(Base):
    """Per-year rider code sequence."""

    __tablename__ = "rider_code_counters"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<RiderCodeCounter(year={self.year}, last_value={self.last_value})>"
