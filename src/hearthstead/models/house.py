"""Housing models for the Hearthstead game system.

A player owns at most one house. Houses hold rooms on a square grid, and each
room holds at most one furniture piece per hotspot. The house caches its
ActiveModifierSet in ``modifiers``; services rewrite the cache in the same
transaction as every room or furniture change.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
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

if TYPE_CHECKING:
    from .player import Player


class House(Base, TimestampMixin):
    """Represents a player-owned house.

    Attributes:
        id: Primary key
        owner_id: Owning player (unique; one house per player)
        tier: House tier key (cottage/house/manor)
        condition: 0-100; the house is abandoned at 0
        upkeep_due_at: When the next weekly upkeep payment is due
        modifiers: Cached ActiveModifierSet
        storage: Stored item name -> quantity; each item occupies one slot
        location_type: Settlement kind the house stands in
        location_id: Settlement identifier
    """

    __tablename__ = "houses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    tier: Mapped[str] = mapped_column(String, nullable=False, default="cottage")
    condition: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    upkeep_due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    modifiers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    storage: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    location_type: Mapped[str] = mapped_column(String, nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    owner: Mapped["Player"] = relationship("Player", back_populates="house")
    rooms: Mapped[list["HouseRoom"]] = relationship(
        "HouseRoom",
        back_populates="house",
        cascade="all, delete-orphan",
        order_by="HouseRoom.id",
    )

    __table_args__ = (
        CheckConstraint("condition >= 0 AND condition <= 100", name="ck_houses_condition"),
        CheckConstraint("tier IN ('cottage', 'house', 'manor')", name="ck_houses_tier"),
    )

    def __repr__(self) -> str:
        return f"<House(id={self.id}, owner_id={self.owner_id}, tier='{self.tier}')>"


class HouseRoom(Base, TimestampCreatedMixin):
    """A room built on one grid cell of a house."""

    __tablename__ = "house_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    house_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("houses.id", ondelete="CASCADE"), nullable=False
    )
    room_type: Mapped[str] = mapped_column(String, nullable=False)
    grid_x: Mapped[int] = mapped_column(Integer, nullable=False)
    grid_y: Mapped[int] = mapped_column(Integer, nullable=False)

    house: Mapped["House"] = relationship("House", back_populates="rooms")
    furniture: Mapped[list["HouseFurniture"]] = relationship(
        "HouseFurniture",
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="HouseFurniture.id",
    )

    __table_args__ = (
        UniqueConstraint("house_id", "grid_x", "grid_y", name="uq_house_rooms_cell"),
        Index("idx_house_rooms_house", "house_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<HouseRoom(id={self.id}, room_type='{self.room_type}', "
            f"cell=({self.grid_x}, {self.grid_y}))>"
        )


class HouseFurniture(Base, TimestampCreatedMixin):
    """The furniture option currently installed on a room hotspot."""

    __tablename__ = "house_furniture"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("house_rooms.id", ondelete="CASCADE"), nullable=False
    )
    hotspot: Mapped[str] = mapped_column(String, nullable=False)
    option_key: Mapped[str] = mapped_column(String, nullable=False)

    room: Mapped["HouseRoom"] = relationship("HouseRoom", back_populates="furniture")

    __table_args__ = (UniqueConstraint("room_id", "hotspot", name="uq_house_furniture_hotspot"),)

    def __repr__(self) -> str:
        return f"<HouseFurniture(room_id={self.room_id}, {self.hotspot}='{self.option_key}')>"
