"""Player model for the Hearthstead game system.

Players hold gold, skill levels and an item inventory, belong to a social
class and live somewhere in a kingdom. Kings and barons are ordinary players
with a ruled kingdom or barony.
"""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .house import House


class Player(Base, TimestampMixin):
    """Represents a player character.

    Attributes:
        id: Primary key
        username: Unique username
        gold: Coins held on hand
        skills: Skill name -> level (missing skills count as level 0)
        inventory: Item name -> quantity
        experience: Skill name -> accumulated XP
        title_tier: Rank of the player's highest title (1 = untitled)
        social_class: serf/freeman/burgher/clergy/noble
        location_type: Kind of settlement the player lives in
        location_id: Identifier of that settlement
        kingdom_id: Kingdom of residence
        bound_to_barony_id: Barony a serf is bound to
        labor_days_owed: Labor obligation of a serf
        ruled_kingdom_id: Kingdom this player rules as king, if any
        ruled_barony_id: Barony this player rules as baron, if any
    """

    __tablename__ = "players"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    username: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    gold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skills: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    inventory: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    experience: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    title_tier: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    social_class: Mapped[str] = mapped_column(String, nullable=False, default="freeman")

    # Residence
    location_type: Mapped[str] = mapped_column(String, nullable=False, default="village")
    location_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    kingdom_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bound_to_barony_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    labor_days_owed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Offices
    ruled_kingdom_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ruled_barony_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Relationships
    house: Mapped[Optional["House"]] = relationship(
        "House", back_populates="owner", uselist=False
    )

    __table_args__ = (
        CheckConstraint("gold >= 0", name="ck_players_gold"),
        CheckConstraint(
            "social_class IN ('serf', 'freeman', 'burgher', 'clergy', 'noble')",
            name="ck_players_social_class",
        ),
        Index("idx_players_kingdom", "kingdom_id"),
    )

    def skill_level(self, skill: str | None) -> int:
        """Level in ``skill``; ``None`` means no skill gate."""
        if skill is None:
            return max(self.skills.values(), default=0)
        return int(self.skills.get(skill, 0))

    def item_count(self, item: str) -> int:
        return int(self.inventory.get(item, 0))

    def __repr__(self) -> str:
        return (
            f"<Player(id={self.id}, username='{self.username}', gold={self.gold}, "
            f"class='{self.social_class}')>"
        )
