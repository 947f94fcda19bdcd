"""Religion Service for Hearthstead.

This module handles cults and religions: founding, membership, conversion
of a cult into a public religion, adopting and dropping beliefs, devotional
actions and the rank ladder.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import select

from hearthstead.domain import catalog
from hearthstead.domain.catalog import CatalogEntry
from hearthstead.domain.effects import ActiveModifierSet, aggregate
from hearthstead.domain.eligibility import Condition, check
from hearthstead.domain.enums import FailureReason, ReligionRank, ReligionType, ReligiousAction
from hearthstead.domain.errors import ValidationFailure
from hearthstead.domain.lifecycle import deadline_passed
from hearthstead.domain.models import SubjectSnapshot
from hearthstead.models import Player, Religion, ReligionBelief, ReligionMember
from hearthstead.services.base import TransitionService

logger = logging.getLogger(__name__)

# Rank ladders below the prophet, lowest first.
LADDERS = {
    ReligionType.CULT: (
        ReligionRank.FOLLOWER,
        ReligionRank.DISCIPLE,
        ReligionRank.ACOLYTE,
        ReligionRank.APOSTLE,
    ),
    ReligionType.RELIGION: (
        ReligionRank.FOLLOWER,
        ReligionRank.DEACON,
        ReligionRank.PRIEST,
        ReligionRank.ARCHBISHOP,
    ),
}

# Action-specific devotion modifiers; devotion_bonus/penalty apply to every action.
ACTION_BONUS = {
    ReligiousAction.DONATION: "donation_devotion_bonus",
    ReligiousAction.RITUAL: "ritual_devotion_bonus",
    ReligiousAction.PILGRIMAGE: "pilgrimage_bonus",
}


def compute_religion_modifiers(religion: Religion) -> ActiveModifierSet:
    return aggregate(catalog.get_belief(b.belief_key) for b in religion.beliefs)


class ReligionService(TransitionService):
    """Service applying religion transitions."""

    def get_religion(self, religion_id: int) -> Religion:
        return self._get(Religion, religion_id, "Religion")

    def get_modifiers(self, religion_id: int) -> ActiveModifierSet:
        return compute_religion_modifiers(self.get_religion(religion_id))

    def membership_of(self, player_id: int) -> ReligionMember | None:
        return self.session.execute(
            select(ReligionMember).where(ReligionMember.player_id == player_id)
        ).scalar_one_or_none()

    def snapshot(self, religion: Religion, **detail: object) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="religion",
            subject_id=religion.id,
            gold=0,
            active_entries=sorted(b.belief_key for b in religion.beliefs),
            modifiers=dict(religion.modifiers),
            detail={"type": religion.type, "members": len(religion.members), **detail},
        )

    def belief_limit(self, religion_type: str) -> int:
        if religion_type == ReligionType.RELIGION:
            return self.rules.religion.religion_belief_limit
        return self.rules.religion.cult_belief_limit

    @staticmethod
    def _member(religion: Religion, player_id: int) -> ReligionMember | None:
        return next((m for m in religion.members if m.player_id == player_id), None)

    def _require_prophet(self, religion: Religion, player_id: int) -> None:
        member = self._member(religion, player_id)
        if member is None or member.rank != ReligionRank.PROPHET:
            raise self._refuse(FailureReason.PERMISSION, "Only the prophet may do that")

    def _refresh_modifiers(self, religion: Religion) -> None:
        religion.modifiers = compute_religion_modifiers(religion).as_dict()

    # ---- Founding and membership -------------------------------------------

    def found_cult(
        self,
        founder_id: int,
        name: str,
        beliefs: list[str] | tuple[str, ...] = (),
        *,
        expected_gold: int | None = None,
    ) -> SubjectSnapshot:
        """Found a private cult with the founder as its prophet.

        Raises:
            ValidationFailure: Blank name or a belief listed twice
            NotFound: Unknown belief
            IneligibleAction: Already in a faith, name taken or too many beliefs
        """
        name = name.strip()
        if not name:
            raise ValidationFailure("Religion name must not be blank")
        if len(set(beliefs)) != len(beliefs):
            raise ValidationFailure("Each belief may only be chosen once")
        chosen = [catalog.get_belief(key) for key in beliefs]
        limit = self.rules.religion.cult_belief_limit

        with self._transaction(("player", founder_id)):
            founder = self._player(founder_id)
            name_taken = self.session.execute(
                select(Religion.id).where(Religion.name == name)
            ).first()
            entry = CatalogEntry("cult_founding", "Cult founding",
                                 cost=self.rules.religion.cult_founding_cost)
            result = check(
                self._attributes(founder, level=0),
                entry,
                conditions=[
                    Condition(len(chosen) <= limit, FailureReason.CAPACITY,
                              f"A cult may hold at most {limit} beliefs"),
                    Condition(self.membership_of(founder.id) is None, FailureReason.REQUIREMENT,
                              "Leave your current faith before founding a cult"),
                    Condition(name_taken is None, FailureReason.REQUIREMENT,
                              f"A faith named '{name}' already exists"),
                ],
            )
            self._enforce(result, expected_gold=expected_gold, current_gold=founder.gold)
            self._debit(founder, entry.cost)
            religion = Religion(
                name=name, type=ReligionType.CULT, founder_id=founder.id, is_public=False
            )
            for belief in chosen:
                religion.beliefs.append(ReligionBelief(belief_key=belief.key))
            religion.members.append(
                ReligionMember(player_id=founder.id, rank=ReligionRank.PROPHET,
                               joined_at=self.clock())
            )
            self._refresh_modifiers(religion)
            self.session.add(religion)
            self.session.flush()
            self._audit("religion", religion.id, "found_cult", actor_id=founder.id,
                        new_state=ReligionType.CULT, beliefs=[b.key for b in chosen])
            return self.snapshot(religion)

    def join(
        self, player_id: int, religion_id: int, *, invited_by: int | None = None
    ) -> SubjectSnapshot:
        """Join a faith. Private cults admit only players invited by a member."""
        with self._transaction(("religion", religion_id), ("player", player_id)):
            player = self._player(player_id)
            religion = self._load(Religion, religion_id, "Religion")
            if self.membership_of(player.id) is not None:
                raise self._refuse(FailureReason.REQUIREMENT, "Already a member of a faith")
            if not religion.is_public and (
                invited_by is None or self._member(religion, invited_by) is None
            ):
                raise self._refuse(FailureReason.PERMISSION,
                                   f"{religion.name} admits members by invitation only")
            religion.members.append(
                ReligionMember(player_id=player.id, rank=ReligionRank.FOLLOWER,
                               joined_at=self.clock())
            )
            self._audit("religion", religion.id, "join", actor_id=player.id,
                        new_state=ReligionRank.FOLLOWER, invited_by=invited_by)
            return self.snapshot(religion)

    def leave(self, player_id: int, religion_id: int) -> SubjectSnapshot:
        with self._transaction(("religion", religion_id), ("player", player_id)):
            religion = self._load(Religion, religion_id, "Religion")
            member = self._member(religion, player_id)
            if member is None:
                raise self._refuse(FailureReason.PERMISSION, "Not a member of this faith")
            if member.rank == ReligionRank.PROPHET:
                raise self._refuse(FailureReason.PERMISSION, "The prophet cannot leave")
            religion.members.remove(member)
            self._audit("religion", religion.id, "leave", actor_id=player_id,
                        old_state=member.rank)
            return self.snapshot(religion)

    def convert_to_religion(
        self, prophet_id: int, religion_id: int, *, expected_gold: int | None = None
    ) -> SubjectSnapshot:
        """Elevate a cult into a public religion, renaming ranks to religious titles."""
        rules = self.rules.religion
        with self._transaction(("religion", religion_id), ("player", prophet_id)):
            prophet = self._player(prophet_id)
            religion = self._load(Religion, religion_id, "Religion")
            self._require_prophet(religion, prophet_id)
            if religion.type != ReligionType.CULT:
                raise self._refuse(FailureReason.STATE, f"{religion.name} is already a religion")
            entry = CatalogEntry("religion_conversion", "Conversion to religion",
                                 cost=rules.religion_founding_cost)
            result = check(
                self._attributes(prophet, level=0),
                entry,
                conditions=[
                    Condition(
                        len(religion.members) >= rules.religion_min_members,
                        FailureReason.REQUIREMENT,
                        f"A religion needs at least {rules.religion_min_members} members",
                    )
                ],
            )
            self._enforce(result, expected_gold=expected_gold, current_gold=prophet.gold)
            self._debit(prophet, entry.cost)
            cult_ladder = LADDERS[ReligionType.CULT]
            religion_ladder = LADDERS[ReligionType.RELIGION]
            for member in religion.members:
                if member.rank in cult_ladder:
                    member.rank = religion_ladder[cult_ladder.index(ReligionRank(member.rank))]
            religion.type = ReligionType.RELIGION
            religion.is_public = True
            self._audit("religion", religion.id, "convert", actor_id=prophet_id,
                        old_state=ReligionType.CULT, new_state=ReligionType.RELIGION,
                        cost=entry.cost)
            return self.snapshot(religion, cost=entry.cost)

    # ---- Beliefs ------------------------------------------------------------

    def adopt_belief(self, prophet_id: int, religion_id: int, belief_key: str) -> SubjectSnapshot:
        belief = catalog.get_belief(belief_key)
        with self._transaction(("religion", religion_id)):
            religion = self._load(Religion, religion_id, "Religion")
            self._require_prophet(religion, prophet_id)
            held = {b.belief_key for b in religion.beliefs}
            if belief.key in held:
                raise self._refuse(FailureReason.REQUIREMENT,
                                   f"{religion.name} already holds {belief.display_name}")
            limit = self.belief_limit(religion.type)
            if len(held) >= limit:
                raise self._refuse(FailureReason.CAPACITY,
                                   f"A {religion.type} may hold at most {limit} beliefs")
            religion.beliefs.append(ReligionBelief(belief_key=belief.key))
            self._refresh_modifiers(religion)
            self._audit("religion", religion.id, "adopt_belief", actor_id=prophet_id,
                        new_state=belief.key)
            return self.snapshot(religion)

    def drop_belief(self, prophet_id: int, religion_id: int, belief_key: str) -> SubjectSnapshot:
        with self._transaction(("religion", religion_id)):
            religion = self._load(Religion, religion_id, "Religion")
            self._require_prophet(religion, prophet_id)
            held = next((b for b in religion.beliefs if b.belief_key == belief_key), None)
            if held is None:
                raise self._refuse(FailureReason.REQUIREMENT,
                                   f"{religion.name} does not hold '{belief_key}'")
            religion.beliefs.remove(held)
            self._refresh_modifiers(religion)
            self._audit("religion", religion.id, "drop_belief", actor_id=prophet_id,
                        old_state=belief_key)
            return self.snapshot(religion)

    # ---- Devotion -----------------------------------------------------------

    def devotion_for(
        self, modifiers: ActiveModifierSet, action: ReligiousAction, gold: int = 0
    ) -> int:
        """Devotion earned by ``action`` under a faith's belief modifiers."""
        rules = self.rules.religion
        if action == ReligiousAction.DONATION:
            rate = modifiers.apply("donation_cost_penalty", rules.gold_per_devotion)
            base = gold // math.ceil(rate)
        else:
            base = rules.base_devotion[action]
        percent = sum(
            modifiers.get(key, 0)
            for key in ("devotion_bonus", "devotion_penalty", ACTION_BONUS.get(action))
            if key is not None
        )
        return max(0, int(base * (1 + percent / 100)))

    def perform_action(
        self, player_id: int, religion_id: int, action: str, *, gold: int = 0
    ) -> SubjectSnapshot:
        """Perform a devotional action and bank the devotion earned.

        Raises:
            ValidationFailure: Unknown action or a donation below the minimum
            IneligibleAction: Not a member, still cooling down from the same
                action, or not enough gold to donate
        """
        try:
            kind = ReligiousAction(action)
        except ValueError:
            raise ValidationFailure(f"Unknown religious action '{action}'") from None
        if kind == ReligiousAction.DONATION and gold < self.rules.religion.min_donation:
            raise ValidationFailure(
                f"Minimum donation is {self.rules.religion.min_donation} gold"
            )
        with self._transaction(("religion", religion_id), ("player", player_id)):
            player = self._player(player_id)
            religion = self._load(Religion, religion_id, "Religion")
            member = self._member(religion, player_id)
            if member is None:
                raise self._refuse(FailureReason.PERMISSION, "Not a member of this faith")
            now = self.clock()
            last_actions = dict(member.last_actions or {})
            cooldown = self.rules.religion.action_cooldown_minutes.get(str(kind), 0)
            if cooldown and str(kind) in last_actions:
                available_at = datetime.fromisoformat(last_actions[str(kind)]) + timedelta(
                    minutes=cooldown
                )
                if not deadline_passed(available_at, now):
                    raise self._refuse(
                        FailureReason.REQUIREMENT,
                        f"You can {kind} again at {available_at:%Y-%m-%d %H:%M}",
                    )
            if kind == ReligiousAction.DONATION:
                self._debit(player, gold)
            earned = self.devotion_for(compute_religion_modifiers(religion), kind, gold)
            member.devotion += earned
            last_actions[str(kind)] = now.isoformat()
            member.last_actions = last_actions
            self._audit("religion", religion.id, "perform_action", actor_id=player_id,
                        action=str(kind), devotion=earned, gold=gold)
            return self.snapshot(religion, devotion=member.devotion, earned=earned)

    # ---- Ranks --------------------------------------------------------------

    def _ladder_position(self, religion: Religion, member: ReligionMember) -> int:
        ladder = LADDERS[ReligionType(religion.type)]
        if member.rank not in ladder:
            raise self._refuse(FailureReason.REQUIREMENT, "The prophet's rank cannot change")
        return ladder.index(ReligionRank(member.rank))

    def promote(self, prophet_id: int, religion_id: int, player_id: int) -> SubjectSnapshot:
        with self._transaction(("religion", religion_id)):
            religion = self._load(Religion, religion_id, "Religion")
            self._require_prophet(religion, prophet_id)
            member = self._member(religion, player_id)
            if member is None:
                raise self._refuse(FailureReason.REQUIREMENT, "Not a member of this faith")
            ladder = LADDERS[ReligionType(religion.type)]
            position = self._ladder_position(religion, member)
            if position + 1 >= len(ladder):
                raise self._refuse(FailureReason.REQUIREMENT, "Already at the highest rank")
            threshold = self.rules.religion.rank_thresholds[position + 1]
            if member.devotion < threshold:
                raise self._refuse(
                    FailureReason.LEVEL,
                    f"{ladder[position + 1]} requires {threshold:,} devotion; "
                    f"{member.devotion:,} earned",
                )
            old = member.rank
            member.rank = ladder[position + 1]
            self._audit("religion", religion.id, "promote", actor_id=prophet_id,
                        old_state=old, new_state=member.rank, member=player_id)
            return self.snapshot(religion, member=player_id, rank=str(member.rank))

    def demote(self, prophet_id: int, religion_id: int, player_id: int) -> SubjectSnapshot:
        with self._transaction(("religion", religion_id)):
            religion = self._load(Religion, religion_id, "Religion")
            self._require_prophet(religion, prophet_id)
            member = self._member(religion, player_id)
            if member is None:
                raise self._refuse(FailureReason.REQUIREMENT, "Not a member of this faith")
            position = self._ladder_position(religion, member)
            if position == 0:
                raise self._refuse(FailureReason.REQUIREMENT, "Already at the lowest rank")
            old = member.rank
            member.rank = LADDERS[ReligionType(religion.type)][position - 1]
            self._audit("religion", religion.id, "demote", actor_id=prophet_id,
                        old_state=old, new_state=member.rank, member=player_id)
            return self.snapshot(religion, member=player_id, rank=str(member.rank))

    def members_of(self, religion_id: int) -> list[Player]:
        return list(
            self.session.execute(
                select(Player)
                .join(ReligionMember, ReligionMember.player_id == Player.id)
                .where(ReligionMember.religion_id == religion_id)
                .order_by(Player.id)
            ).scalars()
        )
