"""Guild Service for Hearthstead.

This module handles founding and joining guilds, member contributions and
promotions, guild settings, and guildmaster elections.

Guild level follows total member contribution; the benefits unlocked at that
level are aggregated into the guild's cached ActiveModifierSet whenever the
level changes.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy import select

from hearthstead.domain import lifecycle
from hearthstead.domain.catalog import CatalogEntry, benefits_for_guild
from hearthstead.domain.effects import ActiveModifierSet, aggregate
from hearthstead.domain.eligibility import Condition, EligibilityCheck, check
from hearthstead.domain.enums import FailureReason, GuildRank, LifecycleStatus, LocationType
from hearthstead.domain.errors import (
    ConflictFailure,
    HearthsteadError,
    NotFound,
    ValidationFailure,
)
from hearthstead.domain.lifecycle import deadline_passed, ensure_open_window
from hearthstead.domain.models import SubjectSnapshot
from hearthstead.domain.rules_config import GuildRules
from hearthstead.models import (
    Guild,
    GuildElection,
    GuildElectionCandidate,
    GuildElectionVote,
    GuildMember,
    Player,
)
from hearthstead.services.base import TransitionService

logger = logging.getLogger(__name__)

GUILD_LOCATIONS = (LocationType.TOWN, LocationType.BARONY)

RANK_ORDER = {
    GuildRank.APPRENTICE: 0,
    GuildRank.JOURNEYMAN: 1,
    GuildRank.MASTER: 2,
    GuildRank.GUILDMASTER: 3,
}


def guild_level(total_contribution: int, rules: GuildRules) -> int:
    """Highest level whose contribution threshold has been reached."""
    level = 1
    for candidate, threshold in rules.level_thresholds:
        if total_contribution >= threshold:
            level = max(level, candidate)
    return level


def compute_guild_modifiers(guild: Guild) -> ActiveModifierSet:
    return aggregate(benefits_for_guild(guild.skill, guild.level))


class GuildService(TransitionService):
    """Service applying guild transitions."""

    # ---- Queries ------------------------------------------------------------

    def get_guild(self, guild_id: int) -> Guild:
        return self._get(Guild, guild_id, "Guild")

    def get_modifiers(self, guild_id: int) -> ActiveModifierSet:
        return compute_guild_modifiers(self.get_guild(guild_id))

    def guilds_at(self, location_type: str, location_id: int) -> list[Guild]:
        return list(
            self.session.execute(
                select(Guild)
                .where(
                    Guild.location_type == location_type,
                    Guild.location_id == location_id,
                    Guild.is_active.is_(True),
                )
                .order_by(Guild.name)
            ).scalars()
        )

    def snapshot(self, guild: Guild, **detail: object) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="guild",
            subject_id=guild.id,
            gold=guild.treasury,
            active_entries=sorted(b.key for b in benefits_for_guild(guild.skill, guild.level)),
            modifiers=dict(guild.modifiers),
            detail={"level": guild.level, "members": len(guild.members), **detail},
        )

    def _member(self, guild: Guild, player_id: int) -> GuildMember | None:
        return next((m for m in guild.members if m.player_id == player_id), None)

    def _require_member(self, guild: Guild, player_id: int) -> GuildMember:
        member = self._member(guild, player_id)
        if member is None:
            raise self._refuse(FailureReason.PERMISSION,
                               f"Player {player_id} is not a member of {guild.name}")
        return member

    def _require_guildmaster(self, guild: Guild, player_id: int) -> None:
        if guild.guildmaster_id != player_id:
            raise self._refuse(FailureReason.PERMISSION, "Only the guildmaster may do that")

    # ---- Founding and membership -------------------------------------------

    def check_create(self, player_id: int, name: str, skill: str) -> EligibilityCheck:
        player = self._player(player_id, lock=False)
        return self._create_check(player, name.strip(), skill)

    def _create_check(self, player: Player, name: str, skill: str) -> EligibilityCheck:
        rules = self.rules.guild
        entry = CatalogEntry(
            "guild_charter",
            "Guild charter",
            level_requirement=rules.min_founding_skill,
            cost=rules.founding_cost,
        )
        rival = self.session.execute(
            select(Guild.id).where(
                Guild.skill == skill,
                Guild.location_type == player.location_type,
                Guild.location_id == player.location_id,
            )
        ).first()
        name_taken = self.session.execute(select(Guild.id).where(Guild.name == name)).first()
        leads_other = self.session.execute(
            select(Guild.id).where(Guild.guildmaster_id == player.id, Guild.is_active.is_(True))
        ).first()
        return check(
            self._attributes(player, skill=skill),
            entry,
            conditions=[
                Condition(player.location_type in GUILD_LOCATIONS, FailureReason.LOCATION,
                          "Guilds can only be founded in towns or baronies"),
                Condition(leads_other is None, FailureReason.REQUIREMENT,
                          "Already the guildmaster of another guild"),
                Condition(name_taken is None, FailureReason.REQUIREMENT,
                          f"A guild named '{name}' already exists"),
                Condition(rival is None, FailureReason.REQUIREMENT,
                          f"A {skill} guild already exists at this location"),
            ],
        )

    def create_guild(
        self,
        founder_id: int,
        name: str,
        skill: str,
        *,
        membership_fee: int | None = None,
        weekly_dues: int | None = None,
        is_public: bool = True,
        expected_gold: int | None = None,
    ) -> SubjectSnapshot:
        """Found a guild with the founder as guildmaster.

        Raises:
            ValidationFailure: Blank name, unknown skill or fees out of range
            IneligibleAction: Skill level, founding cost, location or uniqueness
        """
        rules = self.rules.guild
        name = name.strip()
        if not name:
            raise ValidationFailure("Guild name must not be blank")
        if skill not in rules.skills:
            raise ValidationFailure(f"Invalid guild skill '{skill}'")
        fee = rules.default_membership_fee if membership_fee is None else membership_fee
        dues = rules.default_weekly_dues if weekly_dues is None else weekly_dues
        self._validate_fee(fee)
        self._validate_dues(dues)

        with self._transaction(("player", founder_id)):
            founder = self._player(founder_id)
            self._enforce(
                self._create_check(founder, name, skill),
                expected_gold=expected_gold,
                current_gold=founder.gold,
            )
            self._debit(founder, rules.founding_cost)
            now = self.clock()
            guild = Guild(
                name=name,
                skill=skill,
                location_type=founder.location_type,
                location_id=founder.location_id,
                founder_id=founder.id,
                guildmaster_id=founder.id,
                treasury=0,
                level=1,
                total_contribution=0,
                membership_fee=fee,
                weekly_dues=dues,
                max_members=rules.default_max_members,
                is_public=is_public,
                is_active=True,
            )
            guild.members.append(
                GuildMember(
                    player_id=founder.id,
                    rank=GuildRank.GUILDMASTER,
                    joined_at=now,
                    dues_paid_until=now + timedelta(days=7),
                )
            )
            guild.modifiers = compute_guild_modifiers(guild).as_dict()
            self.session.add(guild)
            self.session.flush()
            self._audit("guild", guild.id, "create", actor_id=founder.id, new_state="active",
                        name=name, skill=skill, cost=rules.founding_cost)
            return self.snapshot(guild, cost=rules.founding_cost)

    def check_join(self, player_id: int, guild_id: int) -> EligibilityCheck:
        return self._join_check(self._player(player_id, lock=False), self.get_guild(guild_id))

    def _join_check(self, player: Player, guild: Guild) -> EligibilityCheck:
        entry = CatalogEntry(
            f"guild_{guild.id}_membership",
            f"Membership of {guild.name}",
            level_requirement=self.rules.guild.min_join_skill,
            cost=guild.membership_fee,
        )
        return check(
            self._attributes(
                player,
                skill=guild.skill,
                occupancy=len(guild.members),
                capacity=guild.max_members,
            ),
            entry,
            conditions=[
                Condition(guild.is_active and guild.is_public, FailureReason.PERMISSION,
                          f"{guild.name} is not accepting new members"),
                Condition(
                    player.location_type == guild.location_type
                    and player.location_id == guild.location_id,
                    FailureReason.LOCATION,
                    "You must be at the guild location to join",
                ),
                Condition(self._member(guild, player.id) is None, FailureReason.REQUIREMENT,
                          f"Already a member of {guild.name}"),
            ],
        )

    def join_guild(
        self, player_id: int, guild_id: int, *, expected_gold: int | None = None
    ) -> SubjectSnapshot:
        """Join as an apprentice; the membership fee goes to the treasury."""
        with self._transaction(("guild", guild_id), ("player", player_id)):
            player = self._player(player_id)
            guild = self._load(Guild, guild_id, "Guild")
            self._enforce(self._join_check(player, guild), expected_gold=expected_gold,
                          current_gold=player.gold)
            self._debit(player, guild.membership_fee)
            guild.treasury += guild.membership_fee
            now = self.clock()
            guild.members.append(
                GuildMember(
                    player_id=player.id,
                    rank=GuildRank.APPRENTICE,
                    joined_at=now,
                    dues_paid_until=now + timedelta(days=7),
                )
            )
            self._audit("guild", guild.id, "join", actor_id=player.id,
                        new_state=GuildRank.APPRENTICE, fee=guild.membership_fee)
            return self.snapshot(guild, fee=guild.membership_fee)

    def leave_guild(self, player_id: int, guild_id: int) -> SubjectSnapshot:
        with self._transaction(("guild", guild_id), ("player", player_id)):
            guild = self._load(Guild, guild_id, "Guild")
            member = self._require_member(guild, player_id)
            if member.rank == GuildRank.GUILDMASTER:
                raise self._refuse(FailureReason.PERMISSION,
                                   "The guildmaster must hand over office before leaving")
            guild.members.remove(member)
            election = self._open_election(guild)
            if election is not None:
                self._withdraw_from(election, player_id)
            self._audit("guild", guild.id, "leave", actor_id=player_id, old_state=member.rank)
            return self.snapshot(guild)

    def donate(
        self, player_id: int, guild_id: int, amount: int, *, expected_gold: int | None = None
    ) -> SubjectSnapshot:
        """Move gold from a member to the treasury and recompute the guild level."""
        if amount < self.rules.guild.min_donation:
            raise ValidationFailure(f"Minimum donation is {self.rules.guild.min_donation} gold")
        with self._transaction(("guild", guild_id), ("player", player_id)):
            player = self._player(player_id)
            guild = self._load(Guild, guild_id, "Guild")
            member = self._require_member(guild, player_id)
            entry = CatalogEntry("guild_donation", "Donation", cost=amount)
            self._enforce(check(self._attributes(player, level=0), entry),
                          expected_gold=expected_gold, current_gold=player.gold)
            self._debit(player, amount)
            guild.treasury += amount
            member.contribution += amount
            guild.total_contribution += amount
            old_level = guild.level
            guild.level = guild_level(guild.total_contribution, self.rules.guild)
            if guild.level != old_level:
                guild.modifiers = compute_guild_modifiers(guild).as_dict()
                logger.info("guild %s reached level %d", guild.id, guild.level)
            self._audit("guild", guild.id, "donate", actor_id=player_id,
                        old_state=str(old_level), new_state=str(guild.level), amount=amount)
            return self.snapshot(guild, amount=amount, leveled_up=guild.level != old_level)

    def pay_dues(self, player_id: int, guild_id: int) -> SubjectSnapshot:
        """Pay one week of dues, extending the paid-until date by a week."""
        with self._transaction(("guild", guild_id), ("player", player_id)):
            player = self._player(player_id)
            guild = self._load(Guild, guild_id, "Guild")
            member = self._require_member(guild, player_id)
            self._debit(player, guild.weekly_dues)
            guild.treasury += guild.weekly_dues
            now = self.clock()
            start = member.dues_paid_until
            if start is None or deadline_passed(start, now):
                start = now
            member.dues_paid_until = start + timedelta(days=7)
            self._audit("guild", guild.id, "pay_dues", actor_id=player_id,
                        amount=guild.weekly_dues)
            return self.snapshot(guild, amount=guild.weekly_dues,
                                 paid_until=member.dues_paid_until.isoformat())

    def promote_member(self, actor_id: int, guild_id: int, player_id: int) -> SubjectSnapshot:
        """Promote a member one rank once tenure and contribution suffice."""
        rules = self.rules.guild
        with self._transaction(("guild", guild_id)):
            guild = self._load(Guild, guild_id, "Guild")
            self._require_guildmaster(guild, actor_id)
            member = self._require_member(guild, player_id)
            rank = GuildRank(member.rank)
            if rank == GuildRank.APPRENTICE:
                target, years, contribution = (
                    GuildRank.JOURNEYMAN, rules.journeyman_years, rules.journeyman_contribution
                )
            elif rank == GuildRank.JOURNEYMAN:
                target, years, contribution = (
                    GuildRank.MASTER, rules.master_years, rules.master_contribution
                )
            else:
                raise self._refuse(FailureReason.REQUIREMENT,
                                   "This member cannot be promoted further")
            missing = []
            served = self._years_served(member)
            if served < years:
                missing.append(f"{years} years of membership")
            if member.contribution < contribution:
                missing.append(f"{contribution:,} gold contributed")
            if missing:
                raise self._refuse(FailureReason.REQUIREMENT,
                                   "This member needs: " + " and ".join(missing))
            member.rank = target
            self._audit("guild", guild.id, "promote", actor_id=actor_id,
                        old_state=rank, new_state=target, member=player_id)
            return self.snapshot(guild, member=player_id, rank=str(target))

    def _years_served(self, member: GuildMember) -> int:
        joined = member.joined_at
        now = self.clock()
        if joined.tzinfo is None:
            now = now.replace(tzinfo=None)
        return (now - joined).days // self.rules.guild.days_per_guild_year

    # ---- Settings -----------------------------------------------------------

    def _validate_fee(self, fee: int) -> None:
        if not 0 <= fee <= self.rules.guild.max_membership_fee:
            raise ValidationFailure(
                f"Fee must be between 0 and {self.rules.guild.max_membership_fee:,} gold"
            )

    def _validate_dues(self, dues: int) -> None:
        if not 0 <= dues <= self.rules.guild.max_weekly_dues:
            raise ValidationFailure(
                f"Dues must be between 0 and {self.rules.guild.max_weekly_dues:,} gold"
            )

    def set_membership_fee(self, actor_id: int, guild_id: int, fee: int) -> SubjectSnapshot:
        self._validate_fee(fee)
        with self._transaction(("guild", guild_id)):
            guild = self._load(Guild, guild_id, "Guild")
            self._require_guildmaster(guild, actor_id)
            old = guild.membership_fee
            guild.membership_fee = fee
            self._audit("guild", guild.id, "set_membership_fee", actor_id=actor_id,
                        old_state=str(old), new_state=str(fee))
            return self.snapshot(guild)

    def set_weekly_dues(self, actor_id: int, guild_id: int, dues: int) -> SubjectSnapshot:
        self._validate_dues(dues)
        with self._transaction(("guild", guild_id)):
            guild = self._load(Guild, guild_id, "Guild")
            self._require_guildmaster(guild, actor_id)
            old = guild.weekly_dues
            guild.weekly_dues = dues
            self._audit("guild", guild.id, "set_weekly_dues", actor_id=actor_id,
                        old_state=str(old), new_state=str(dues))
            return self.snapshot(guild)

    def set_public(self, actor_id: int, guild_id: int, is_public: bool) -> SubjectSnapshot:
        with self._transaction(("guild", guild_id)):
            guild = self._load(Guild, guild_id, "Guild")
            self._require_guildmaster(guild, actor_id)
            guild.is_public = is_public
            self._audit("guild", guild.id, "set_public", actor_id=actor_id,
                        new_state=str(is_public))
            return self.snapshot(guild)

    # ---- Elections ----------------------------------------------------------

    def _open_election(self, guild: Guild) -> GuildElection | None:
        return next(
            (e for e in guild.elections if e.status in lifecycle.OPEN), None
        )

    def start_election(self, player_id: int, guild_id: int) -> SubjectSnapshot:
        """Call a guildmaster election; nominations open immediately."""
        rules = self.rules.guild
        with self._transaction(("guild", guild_id)):
            guild = self._load(Guild, guild_id, "Guild")
            member = self._require_member(guild, player_id)
            if RANK_ORDER[GuildRank(member.rank)] < RANK_ORDER[GuildRank.MASTER]:
                raise self._refuse(FailureReason.PERMISSION,
                                   "Only masters can call for an election")
            if self._open_election(guild) is not None:
                raise ConflictFailure("There is already an open election",
                                      reason=FailureReason.STATE)
            now = self.clock()
            nomination_ends = now + timedelta(days=rules.nomination_days)
            election = GuildElection(
                status=LifecycleStatus.DRAFT,
                started_by_id=player_id,
                nomination_ends_at=nomination_ends,
                voting_ends_at=nomination_ends + timedelta(days=rules.voting_days),
            )
            guild.elections.append(election)
            self.session.flush()
            self._audit("election", election.id, "start", actor_id=player_id,
                        new_state=LifecycleStatus.DRAFT, guild=guild.id)
            return self._election_snapshot(election)

    def _election(self, election_id: int) -> GuildElection:
        election = self._get(GuildElection, election_id, "Election")
        self.session.refresh(election)
        return election

    def declare_candidacy(self, player_id: int, election_id: int) -> SubjectSnapshot:
        guild_id = self._get(GuildElection, election_id, "Election").guild_id
        with self._transaction(("guild", guild_id)):
            guild = self._load(Guild, guild_id, "Guild")
            election = self._election(election_id)
            if election.status != LifecycleStatus.DRAFT:
                raise ConflictFailure("Nominations are no longer open",
                                      reason=FailureReason.STATE)
            ensure_open_window(election.nomination_ends_at, self.clock(), "nomination")
            member = self._require_member(guild, player_id)
            if RANK_ORDER[GuildRank(member.rank)] < RANK_ORDER[GuildRank.MASTER]:
                raise self._refuse(FailureReason.PERMISSION,
                                   "Only masters can run for guildmaster")
            if any(c.player_id == player_id for c in election.candidates):
                raise self._refuse(FailureReason.REQUIREMENT, "Already a candidate")
            election.candidates.append(GuildElectionCandidate(player_id=player_id))
            self._audit("election", election.id, "declare_candidacy", actor_id=player_id)
            return self._election_snapshot(election)

    def vote(self, voter_id: int, election_id: int, candidate_id: int) -> SubjectSnapshot:
        """Cast one vote for a candidate while voting is open.

        Votes at or after the voting deadline are refused.
        """
        guild_id = self._get(GuildElection, election_id, "Election").guild_id
        with self._transaction(("guild", guild_id)):
            guild = self._load(Guild, guild_id, "Guild")
            election = self._election(election_id)
            if election.status != LifecycleStatus.PENDING:
                raise ConflictFailure("Voting is not currently open",
                                      reason=FailureReason.STATE)
            ensure_open_window(election.voting_ends_at, self.clock(), "voting")
            member = self._require_member(guild, voter_id)
            if RANK_ORDER[GuildRank(member.rank)] < RANK_ORDER[GuildRank.MASTER]:
                raise self._refuse(FailureReason.PERMISSION, "Only masters can vote")
            if any(v.voter_id == voter_id for v in election.votes):
                raise self._refuse(FailureReason.REQUIREMENT, "You have already voted")
            if not any(c.player_id == candidate_id for c in election.candidates):
                raise NotFound(f"Player {candidate_id} is not a candidate")
            election.votes.append(GuildElectionVote(voter_id=voter_id, candidate_id=candidate_id))
            self._audit("election", election.id, "vote", actor_id=voter_id)
            return self._election_snapshot(election)

    def advance_elections(self, now: datetime | None = None) -> dict[str, int]:
        """Move elections whose phase deadline has passed.

        Nomination closes into voting (or rejection when nobody stood);
        voting closes into a tally that installs the winner, or expiry when
        no votes were cast.
        """
        now = now or self.clock()
        open_ids = self.session.execute(
            select(GuildElection.id, GuildElection.guild_id).where(
                GuildElection.status.in_([LifecycleStatus.DRAFT, LifecycleStatus.PENDING])
            )
        ).all()
        moved: Counter[str] = Counter()
        for election_id, guild_id in open_ids:
            try:
                with self._transaction(("guild", guild_id)):
                    guild = self._load(Guild, guild_id, "Guild")
                    election = self._election(election_id)
                    outcome = self._advance(guild, election, now)
            except HearthsteadError as exc:
                logger.warning("election %s could not advance: %s", election_id, exc.message)
                continue
            if outcome is not None:
                moved[outcome] += 1
        return dict(moved)

    def _advance(self, guild: Guild, election: GuildElection, now: datetime) -> str | None:
        status = LifecycleStatus(election.status)
        if status == LifecycleStatus.DRAFT and deadline_passed(election.nomination_ends_at, now):
            election.status = lifecycle.transition(status, LifecycleStatus.PENDING)
            target = LifecycleStatus.PENDING
            if not election.candidates:
                target = LifecycleStatus.REJECTED
                election.status = lifecycle.transition(LifecycleStatus.PENDING, target)
            self._audit("election", election.id, "close_nominations", old_state=status,
                        new_state=target)
            return str(target)

        if status == LifecycleStatus.PENDING and deadline_passed(election.voting_ends_at, now):
            if not election.votes:
                election.status = lifecycle.transition(status, LifecycleStatus.EXPIRED)
                self._audit("election", election.id, "expire", old_state=status,
                            new_state=LifecycleStatus.EXPIRED)
                return str(LifecycleStatus.EXPIRED)
            winner_id = self._tally(election, {m.player_id for m in guild.members})
            if winner_id is None:
                election.status = lifecycle.transition(status, LifecycleStatus.FAILED)
                self._audit("election", election.id, "fail", old_state=status,
                            new_state=LifecycleStatus.FAILED)
                return str(LifecycleStatus.FAILED)
            election.status = lifecycle.transition(status, LifecycleStatus.APPROVED)
            election.winner_id = winner_id
            self._install_guildmaster(guild, winner_id)
            election.status = lifecycle.transition(LifecycleStatus.APPROVED,
                                                   LifecycleStatus.ACTIVE)
            self._audit("election", election.id, "install_winner", old_state=status,
                        new_state=LifecycleStatus.ACTIVE, winner=winner_id)
            return str(LifecycleStatus.ACTIVE)
        return None

    @staticmethod
    def _tally(election: GuildElection, member_ids: set[int]) -> int | None:
        """Top-voted candidate still in the guild, or ``None``."""
        counts = Counter(v.candidate_id for v in election.votes if v.candidate_id in member_ids)
        if not counts:
            return None
        # Ties go to whoever declared first.
        order = {c.player_id: c.id for c in election.candidates}
        return max(counts, key=lambda pid: (counts[pid], -order.get(pid, 0)))

    @staticmethod
    def _withdraw_from(election: GuildElection, player_id: int) -> None:
        for candidate in [c for c in election.candidates if c.player_id == player_id]:
            election.candidates.remove(candidate)
        for ballot in [v for v in election.votes if player_id in (v.candidate_id, v.voter_id)]:
            election.votes.remove(ballot)

    def _install_guildmaster(self, guild: Guild, winner_id: int) -> None:
        winner = self._require_member(guild, winner_id)
        for member in guild.members:
            if member.rank == GuildRank.GUILDMASTER and member.player_id != winner_id:
                member.rank = GuildRank.MASTER
        winner.rank = GuildRank.GUILDMASTER
        guild.guildmaster_id = winner_id

    @staticmethod
    def _election_snapshot(election: GuildElection) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="election",
            subject_id=election.id,
            gold=0,
            active_entries=sorted(str(c.player_id) for c in election.candidates),
            detail={
                "status": election.status,
                "guild_id": election.guild_id,
                "votes": len(election.votes),
                "winner_id": election.winner_id,
            },
        )
