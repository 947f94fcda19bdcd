"""Audit trail model."""

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampCreatedMixin


class AuditEntry(Base, TimestampCreatedMixin):
    """One committed transition on a subject.

    Attributes:
        id: Primary key
        subject_kind: house/guild/business/religion/charter/player/...
        subject_id: Primary key of the subject row
        action: Action name (build_room, close, approve, ...)
        actor_id: Player who performed the action, if any
        old_state: State before the action (status, class, tier)
        new_state: State after the action
        detail: Action-specific JSON payload
    """

    __tablename__ = "audit_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subject_kind: Mapped[str] = mapped_column(String, nullable=False)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    old_state: Mapped[str | None] = mapped_column(String, nullable=True)
    new_state: Mapped[str | None] = mapped_column(String, nullable=True)
    detail: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (Index("idx_audit_entries_subject", "subject_kind", "subject_id"),)

    def __repr__(self) -> str:
        return (
            f"<AuditEntry({self.subject_kind}:{self.subject_id} {self.action} "
            f"{self.old_state}->{self.new_state})>"
        )
