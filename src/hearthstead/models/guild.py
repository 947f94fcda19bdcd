"""Guild models for the Hearthstead game system.

This module contains guilds, their members, and guildmaster elections with
their candidates and votes.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampCreatedMixin, TimestampMixin, utc_now


class Guild(Base, TimestampMixin):
    """Represents a craft guild registered in a town or barony.

    Guilds level up from accumulated member contributions; each level unlocks
    catalog benefits that are summed into ``modifiers``.

    Attributes:
        id: Primary key
        name: Unique guild name
        skill: Skill the guild is organised around
        location_type: town or barony
        location_id: Settlement identifier
        founder_id: Player who founded the guild
        guildmaster_id: Current guildmaster
        treasury: Gold held by the guild
        level: Guild level derived from total_contribution
        total_contribution: Sum of all member contributions
        membership_fee: Fee charged on joining
        weekly_dues: Dues members owe each week
        max_members: Member capacity
        is_public: Whether the guild accepts new members
        is_active: Whether the guild is still operating
        modifiers: Cached ActiveModifierSet of unlocked benefits
    """

    __tablename__ = "guilds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    skill: Mapped[str] = mapped_column(String, nullable=False)
    location_type: Mapped[str] = mapped_column(String, nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False)
    founder_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    guildmaster_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    treasury: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_contribution: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    membership_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=1_000)
    weekly_dues: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    max_members: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    modifiers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    members: Mapped[list["GuildMember"]] = relationship(
        "GuildMember", back_populates="guild", cascade="all, delete-orphan"
    )
    elections: Mapped[list["GuildElection"]] = relationship(
        "GuildElection", back_populates="guild", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("skill", "location_type", "location_id", name="uq_guilds_skill_location"),
        CheckConstraint("treasury >= 0", name="ck_guilds_treasury"),
        CheckConstraint("location_type IN ('town', 'barony')", name="ck_guilds_location_type"),
    )

    def __repr__(self) -> str:
        return f"<Guild(id={self.id}, name='{self.name}', skill='{self.skill}')>"


class GuildMember(Base):
    """Membership of a player in a guild."""

    __tablename__ = "guild_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guild_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("guilds.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    rank: Mapped[str] = mapped_column(String, nullable=False, default="apprentice")
    contribution: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dues_paid_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    guild: Mapped["Guild"] = relationship("Guild", back_populates="members")

    __table_args__ = (
        UniqueConstraint("guild_id", "player_id", name="uq_guild_members_player"),
        CheckConstraint(
            "rank IN ('apprentice', 'journeyman', 'master', 'guildmaster')",
            name="ck_guild_members_rank",
        ),
        Index("idx_guild_members_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<GuildMember(guild_id={self.guild_id}, player_id={self.player_id}, rank='{self.rank}')>"


class GuildElection(Base, TimestampCreatedMixin):
    """A guildmaster election.

    Moves through the shared lifecycle: draft while nominations are open,
    pending while voting, approved once tallied and active when the winner
    takes office.
    """

    __tablename__ = "guild_elections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guild_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("guilds.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    started_by_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)
    nomination_ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    voting_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    winner_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )

    guild: Mapped["Guild"] = relationship("Guild", back_populates="elections")
    candidates: Mapped[list["GuildElectionCandidate"]] = relationship(
        "GuildElectionCandidate", back_populates="election", cascade="all, delete-orphan"
    )
    votes: Mapped[list["GuildElectionVote"]] = relationship(
        "GuildElectionVote", back_populates="election", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_guild_elections_guild_status", "guild_id", "status"),)

    def __repr__(self) -> str:
        return f"<GuildElection(id={self.id}, guild_id={self.guild_id}, status='{self.status}')>"


class GuildElectionCandidate(Base):
    __tablename__ = "guild_election_candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    election_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("guild_elections.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)

    election: Mapped["GuildElection"] = relationship("GuildElection", back_populates="candidates")

    __table_args__ = (
        UniqueConstraint("election_id", "player_id", name="uq_guild_election_candidates"),
    )


class GuildElectionVote(Base, TimestampCreatedMixin):
    __tablename__ = "guild_election_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    election_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("guild_elections.id", ondelete="CASCADE"), nullable=False
    )
    voter_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)
    candidate_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)

    election: Mapped["GuildElection"] = relationship("GuildElection", back_populates="votes")

    __table_args__ = (UniqueConstraint("election_id", "voter_id", name="uq_guild_election_votes"),)
