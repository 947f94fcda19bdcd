"""Social-class history and class-change request models."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampCreatedMixin, TimestampMixin


class SocialClassHistory(Base, TimestampCreatedMixin):
    """Append-only record of every social class change."""

    __tablename__ = "social_class_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    old_class: Mapped[str] = mapped_column(String, nullable=False)
    new_class: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False)
    granted_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )

    __table_args__ = (Index("idx_social_class_history_player", "player_id"),)

    def __repr__(self) -> str:
        return (
            f"<SocialClassHistory(player_id={self.player_id}, "
            f"{self.old_class}->{self.new_class}, reason='{self.reason}')>"
        )


class ClassRequest(Base, TimestampMixin):
    """A manumission (serf -> freeman) or ennoblement (-> noble) request.

    Attributes:
        id: Primary key
        kind: manumission or ennoblement
        requester_id: Player asking for the change
        approver_id: Baron (manumission) or king (ennoblement) who decides
        request_type: purchase/service/petition/marriage
        gold_offered: Gold transferred on approval of a purchase
        spouse_id: Noble spouse for marriage-based ennoblement
        reason: Free-text justification
        status: Lifecycle status
        response_message: Approver's reply
        responded_at: When the approver answered
        expires_at: Deadline for an answer
        title_granted: Title awarded on ennoblement
    """

    __tablename__ = "class_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    approver_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)
    request_type: Mapped[str] = mapped_column(String, nullable=False)
    gold_offered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spouse_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("players.id"), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    response_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    title_granted: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("kind IN ('manumission', 'ennoblement')", name="ck_class_requests_kind"),
        Index("idx_class_requests_requester_status", "requester_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<ClassRequest(id={self.id}, kind='{self.kind}', status='{self.status}')>"
