"""Business models for the Hearthstead game system.

Businesses are player-owned shops with their own treasury. They employ NPC
workers up to the capacity of their business type.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampCreatedMixin, TimestampMixin


class Business(Base, TimestampMixin):
    """Represents a player-owned business.

    Attributes:
        id: Primary key
        owner_id: Owning player
        type_key: Business type catalog key
        name: Display name
        location_type: Settlement kind
        location_id: Settlement identifier
        treasury: Gold held by the business
        status: active/suspended/closed
        last_upkeep_at: When weekly upkeep was last processed
    """

    __tablename__ = "businesses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    type_key: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    location_type: Mapped[str] = mapped_column(String, nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False)
    treasury: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    last_upkeep_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    employees: Mapped[list["Npc"]] = relationship("Npc", back_populates="employer")

    __table_args__ = (
        CheckConstraint("treasury >= 0", name="ck_businesses_treasury"),
        CheckConstraint(
            "status IN ('active', 'suspended', 'closed')", name="ck_businesses_status"
        ),
        Index("idx_businesses_owner_status", "owner_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name='{self.name}', status='{self.status}')>"


class Npc(Base, TimestampCreatedMixin):
    """A non-player worker who can be hired by one business at a time."""

    __tablename__ = "npcs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    location_type: Mapped[str] = mapped_column(String, nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False)
    weekly_wage: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    employer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("businesses.id", ondelete="SET NULL"), nullable=True
    )

    employer: Mapped[Optional["Business"]] = relationship("Business", back_populates="employees")

    def __repr__(self) -> str:
        return f"<Npc(id={self.id}, name='{self.name}', employer_id={self.employer_id})>"
