"""Declarative base, timestamp mixins and the UTC clock shared by the schema."""

from datetime import UTC, datetime
from typing import ClassVar

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base; datetimes are stored timezone-aware and dicts as JSON."""

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        dict: JSON,
    }


class TimestampMixin:
    """created_at/updated_at columns for guilds and other mutable rows."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class TimestampCreatedMixin:
    """created_at only, for election rounds and other append-only rows."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


def utc_now() -> datetime:
    """Default clock for services and the maintenance scheduler."""
    return datetime.now(UTC)
