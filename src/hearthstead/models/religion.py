"""Religion models for the Hearthstead game system.

A religion starts life as a private cult and may be elevated to a public
religion. Its adopted beliefs are catalog entries whose effects are summed
into ``modifiers``.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampCreatedMixin, TimestampMixin, utc_now


class Religion(Base, TimestampMixin):
    """Represents a cult or religion.

    Attributes:
        id: Primary key
        name: Unique name
        type: cult or religion
        founder_id: Founding prophet
        is_public: Whether anyone may join
        modifiers: Cached ActiveModifierSet of adopted beliefs
    """

    __tablename__ = "religions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String, nullable=False, default="cult")
    founder_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    modifiers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    members: Mapped[list["ReligionMember"]] = relationship(
        "ReligionMember", back_populates="religion", cascade="all, delete-orphan"
    )
    beliefs: Mapped[list["ReligionBelief"]] = relationship(
        "ReligionBelief",
        back_populates="religion",
        cascade="all, delete-orphan",
        order_by="ReligionBelief.id",
    )

    __table_args__ = (CheckConstraint("type IN ('cult', 'religion')", name="ck_religions_type"),)

    def __repr__(self) -> str:
        return f"<Religion(id={self.id}, name='{self.name}', type='{self.type}')>"


class ReligionBelief(Base, TimestampCreatedMixin):
    __tablename__ = "religion_beliefs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    religion_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("religions.id", ondelete="CASCADE"), nullable=False
    )
    belief_key: Mapped[str] = mapped_column(String, nullable=False)

    religion: Mapped["Religion"] = relationship("Religion", back_populates="beliefs")

    __table_args__ = (UniqueConstraint("religion_id", "belief_key", name="uq_religion_beliefs"),)


class ReligionMember(Base):
    """A player's membership; a player follows at most one faith."""

    __tablename__ = "religion_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    religion_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("religions.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    rank: Mapped[str] = mapped_column(String, nullable=False, default="follower")
    devotion: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    # Action name -> ISO timestamp of the last time it was performed.
    last_actions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    religion: Mapped["Religion"] = relationship("Religion", back_populates="members")

    def __repr__(self) -> str:
        return (
            f"<ReligionMember(religion_id={self.religion_id}, player_id={self.player_id}, "
            f"rank='{self.rank}', devotion={self.devotion})>"
        )
