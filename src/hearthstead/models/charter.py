"""Settlement charter models for the Hearthstead game system."""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampCreatedMixin, TimestampMixin


class Charter(Base, TimestampMixin):
    """A petition to found a new settlement.

    Attributes:
        id: Primary key
        name: Unique name of the settlement to found
        charter_type: village/town/castle
        founder_id: Petitioning player
        kingdom_id: Kingdom whose king must approve
        status: Lifecycle status
        gold_paid: Gold escrowed at creation (basis for refunds)
        signatories_required: Signatures needed before approval
        signing_ends_at: Deadline for signatures once submitted
        approved_by_id: King who approved
        expires_at: Deadline to found once approved
        founded_at: When the settlement was founded
        vulnerability_ends_at: End of the new settlement's protection-free window
        refunded: Gold returned to the founder on rejection or cancellation
    """

    __tablename__ = "charters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    charter_type: Mapped[str] = mapped_column(String, nullable=False)
    founder_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)
    kingdom_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    gold_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    signatories_required: Mapped[int] = mapped_column(Integer, nullable=False)
    signing_ends_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approved_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    founded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    vulnerability_ends_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refunded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    signatories: Mapped[list["CharterSignatory"]] = relationship(
        "CharterSignatory",
        back_populates="charter",
        cascade="all, delete-orphan",
        order_by="CharterSignatory.id",
    )

    __table_args__ = (
        CheckConstraint(
            "charter_type IN ('village', 'town', 'castle')", name="ck_charters_type"
        ),
        Index("idx_charters_founder_status", "founder_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Charter(id={self.id}, name='{self.name}', status='{self.status}')>"


class CharterSignatory(Base, TimestampCreatedMixin):
    __tablename__ = "charter_signatories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    charter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("charters.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)

    charter: Mapped["Charter"] = relationship("Charter", back_populates="signatories")

    __table_args__ = (
        UniqueConstraint("charter_id", "player_id", name="uq_charter_signatories"),
    )
