"""Acknowledgement model (generated compliance documents)."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.session import Base, TimestampMixin
from .enums import AcknowledgementStatus

if TYPE_CHECKING:
    from .rider import Rider
    from .user import User


class Acknowledgement(TimestampMixin, Base):
    """
    Generated document a rider must acknowledge (visa, SIM, equipment...).

    ``status`` starts at PENDING and moves to ACKNOWLEDGED once the rider
    has signed; ``acknowledged_at`` records when.
    """

    __tablename__ = "acknowledgements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rider_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("riders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, comment="AcknowledgementType value")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AcknowledgementStatus.PENDING.value,
        comment="PENDING | ACKNOWLEDGED"
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    file_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    generated_by_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rider: Mapped[Rider] = relationship("Rider", back_populates="acknowledgements", lazy="raise")
    generated_by: Mapped[User] = relationship("User", lazy="selectin")

    __table_args__ = (
        Index("ix_acknowledgements_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Acknowledgement(id={self.id}, rider_id={self.rider_id}, "
            f"type='{self.type}', status='{self.status}')>"
        )
