"""Social Class Service for Hearthstead.

This module changes players' social class, binds serfs to baronies, admits
the office holders of a faith to the clergy, and runs the manumission and
ennoblement request workflows. Requests follow the shared lifecycle: created
pending, then approved and made active in the same transaction as the gold
transfer and class change, or rejected, or expired once the response window
closes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select

from hearthstead.domain import lifecycle
from hearthstead.domain.catalog import CatalogEntry
from hearthstead.domain.eligibility import Condition, check
from hearthstead.domain.enums import (
    ClassAction,
    FailureReason,
    LifecycleStatus,
    LocationType,
    ReligionRank,
    RequestType,
    SocialClass,
)
from hearthstead.domain.errors import ConflictFailure, NotFound, ValidationFailure
from hearthstead.domain.lifecycle import ensure_open_window, expiry_due
from hearthstead.domain.models import SubjectSnapshot
from hearthstead.models import ClassRequest, Player, ReligionMember, SocialClassHistory
from hearthstead.services.base import TransitionService

logger = logging.getLogger(__name__)

S = LifecycleStatus

MANUMISSION = "manumission"
ENNOBLEMENT = "ennoblement"

REQUEST_TYPES = {
    MANUMISSION: (RequestType.PURCHASE, RequestType.SERVICE, RequestType.PETITION),
    ENNOBLEMENT: (RequestType.PURCHASE, RequestType.SERVICE, RequestType.MARRIAGE),
}

# Classes allowed to perform each gated action.
_FREE = frozenset(SocialClass) - {SocialClass.SERF}
CLASS_PERMISSIONS: dict[ClassAction, frozenset[SocialClass]] = {
    ClassAction.VOTE: _FREE,
    ClassAction.JOIN_GUILD: frozenset({SocialClass.BURGHER, SocialClass.NOBLE}),
    ClassAction.OWN_BUSINESS: frozenset({SocialClass.BURGHER, SocialClass.NOBLE}),
    ClassAction.OWN_PROPERTY: _FREE,
    ClassAction.HOLD_HIGH_OFFICE: frozenset({SocialClass.NOBLE}),
    ClassAction.TRAVEL_FREELY: _FREE,
}

# Religious offices that qualify a player for the clergy; acolytes and
# apostles hold the cult tiers matching priest and archbishop.
CLERGY_RANKS = frozenset({
    ReligionRank.PRIEST,
    ReligionRank.ARCHBISHOP,
    ReligionRank.ACOLYTE,
    ReligionRank.APOSTLE,
    ReligionRank.PROPHET,
})


class SocialClassService(TransitionService):
    """Service applying social-class transitions."""

    # ---- Queries ------------------------------------------------------------

    def can_perform_action(self, player_id: int, action: str) -> bool:
        """Whether the player's class permits ``action``; ungated actions are allowed."""
        player = self._player(player_id, lock=False)
        try:
            allowed = CLASS_PERMISSIONS[ClassAction(action)]
        except ValueError:
            return True
        return SocialClass(player.social_class) in allowed

    def class_statistics(self) -> dict[str, int]:
        rows = self.session.execute(
            select(Player.social_class, func.count()).group_by(Player.social_class)
        ).all()
        return {social_class: count for social_class, count in rows}

    def history(self, player_id: int) -> list[SocialClassHistory]:
        return list(
            self.session.execute(
                select(SocialClassHistory)
                .where(SocialClassHistory.player_id == player_id)
                .order_by(SocialClassHistory.id)
            ).scalars()
        )

    def get_request(self, request_id: int) -> ClassRequest:
        return self._get(ClassRequest, request_id, "Request")

    def pending_for_approver(self, approver_id: int) -> list[ClassRequest]:
        return list(
            self.session.execute(
                select(ClassRequest)
                .where(ClassRequest.approver_id == approver_id, ClassRequest.status == S.PENDING)
                .order_by(ClassRequest.id)
            ).scalars()
        )

    def snapshot(self, player: Player, **detail: object) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="player",
            subject_id=player.id,
            gold=player.gold,
            active_entries=[player.social_class],
            detail={"social_class": player.social_class, "title_tier": player.title_tier,
                    **detail},
        )

    # ---- Class changes ------------------------------------------------------

    def _apply_class(
        self, player: Player, new_class: SocialClass, reason: str, granted_by: int | None
    ) -> bool:
        old = player.social_class
        if old == new_class:
            return False
        self.session.add(
            SocialClassHistory(
                player_id=player.id,
                old_class=old,
                new_class=new_class,
                reason=reason,
                granted_by_id=granted_by,
            )
        )
        player.social_class = new_class
        if new_class != SocialClass.SERF:
            player.bound_to_barony_id = None
            player.labor_days_owed = 0
        self._audit("player", player.id, "change_class", actor_id=granted_by,
                    old_state=old, new_state=new_class, reason=reason)
        return True

    def change_class(
        self, player_id: int, new_class: str, reason: str, *, granted_by: int | None = None
    ) -> SubjectSnapshot:
        try:
            target = SocialClass(new_class)
        except ValueError:
            raise ValidationFailure(f"Unknown social class '{new_class}'") from None
        with self._transaction(("player", player_id)):
            player = self._player(player_id)
            changed = self._apply_class(player, target, reason, granted_by)
            return self.snapshot(player, changed=changed)

    def enserf(
        self, player_id: int, barony_id: int, reason: str, *, granted_by: int | None = None
    ) -> SubjectSnapshot:
        """Bind a player to a barony as a serf owing seasonal labor."""
        with self._transaction(("player", player_id)):
            player = self._player(player_id)
            if player.social_class == SocialClass.NOBLE:
                raise self._refuse(FailureReason.REQUIREMENT, "Nobles cannot be enserfed")
            self._apply_class(player, SocialClass.SERF, reason, granted_by)
            player.bound_to_barony_id = barony_id
            player.labor_days_owed = self.rules.social.serf_labor_days
            return self.snapshot(player, barony_id=barony_id)

    def become_burgher(self, player_id: int) -> SubjectSnapshot:
        with self._transaction(("player", player_id)):
            player = self._player(player_id)
            current = SocialClass(player.social_class)
            if current == SocialClass.SERF:
                raise self._refuse(FailureReason.REQUIREMENT, "Serfs cannot become burghers")
            ranks = self.rules.social.class_ranks
            if ranks[current] >= ranks[SocialClass.BURGHER]:
                raise self._refuse(FailureReason.REQUIREMENT,
                                   "Already a burgher or higher class")
            if player.location_type != LocationType.TOWN:
                raise self._refuse(FailureReason.LOCATION,
                                   "You must live in a town to become a burgher")
            self._apply_class(player, SocialClass.BURGHER, "became_burgher", None)
            return self.snapshot(player)

    def join_clergy(self, player_id: int) -> SubjectSnapshot:
        """Take holy orders. Requires priest rank or higher in a faith."""
        with self._transaction(("player", player_id)):
            player = self._player(player_id)
            if player.social_class == SocialClass.SERF:
                raise self._refuse(FailureReason.REQUIREMENT, "Serfs cannot join the clergy")
            if player.social_class == SocialClass.CLERGY:
                raise self._refuse(FailureReason.REQUIREMENT, "You are already clergy")
            rank = self.session.execute(
                select(ReligionMember.rank).where(ReligionMember.player_id == player.id)
            ).scalar_one_or_none()
            if rank not in CLERGY_RANKS:
                raise self._refuse(FailureReason.PERMISSION,
                                   "You must hold a religious office to become clergy")
            self._apply_class(player, SocialClass.CLERGY, "joined_clergy", None)
            return self.snapshot(player, religion_rank=rank)

    # ---- Requests -----------------------------------------------------------

    def _validate_type(self, kind: str, request_type: str) -> RequestType:
        try:
            parsed = RequestType(request_type)
        except ValueError:
            parsed = None
        if parsed not in REQUEST_TYPES[kind]:
            raise ValidationFailure(f"Invalid {kind} request type '{request_type}'")
        return parsed

    def _has_pending(self, player_id: int) -> bool:
        return self.session.execute(
            select(ClassRequest.id).where(
                ClassRequest.requester_id == player_id, ClassRequest.status == S.PENDING
            )
        ).first() is not None

    def _ruler(self, column, ruled_id: int | None, title: str) -> Player:
        ruler = None
        if ruled_id is not None:
            ruler = self.session.execute(
                select(Player).where(column == ruled_id)
            ).scalars().first()
        if ruler is None:
            raise NotFound(f"No {title} found for your lands")
        return ruler

    def request_manumission(
        self, serf_id: int, request_type: str, *, reason: str | None = None
    ) -> SubjectSnapshot:
        """Ask the baron of the serf's barony for freedom.

        A purchase request offers the fixed manumission price, which must be
        affordable now and is transferred only on approval.
        """
        kind = self._validate_type(MANUMISSION, request_type)
        price = self.rules.social.manumission_cost if kind == RequestType.PURCHASE else 0
        with self._transaction(("player", serf_id)):
            serf = self._player(serf_id)
            result = check(
                self._attributes(serf, level=0),
                CatalogEntry("manumission", "Manumission", cost=price),
                conditions=[
                    Condition(serf.social_class == SocialClass.SERF, FailureReason.REQUIREMENT,
                              "You are not a serf"),
                    Condition(serf.bound_to_barony_id is not None, FailureReason.REQUIREMENT,
                              "You are not bound to a barony"),
                    Condition(not self._has_pending(serf.id), FailureReason.REQUIREMENT,
                              "You already have a pending request"),
                ],
            )
            self._enforce(result)
            baron = self._ruler(Player.ruled_barony_id, serf.bound_to_barony_id, "baron")
            request = self._open_request(MANUMISSION, serf, baron, kind, price, reason=reason)
            return self._request_snapshot(request)

    def request_ennoblement(
        self,
        player_id: int,
        request_type: str,
        *,
        spouse_id: int | None = None,
        reason: str | None = None,
    ) -> SubjectSnapshot:
        """Ask the king of the player's kingdom for a noble title."""
        kind = self._validate_type(ENNOBLEMENT, request_type)
        price = self.rules.social.ennoblement_cost if kind == RequestType.PURCHASE else 0
        with self._transaction(("player", player_id)):
            player = self._player(player_id)
            spouse = self._player(spouse_id, lock=False) if spouse_id is not None else None
            conditions = [
                Condition(
                    player.social_class in (SocialClass.FREEMAN, SocialClass.BURGHER),
                    FailureReason.REQUIREMENT,
                    "Only freemen and burghers may seek ennoblement",
                ),
                Condition(not self._has_pending(player.id), FailureReason.REQUIREMENT,
                          "You already have a pending request"),
            ]
            if kind == RequestType.MARRIAGE:
                conditions.append(
                    Condition(
                        spouse is not None and spouse.social_class == SocialClass.NOBLE,
                        FailureReason.REQUIREMENT,
                        "A marriage claim requires a noble spouse",
                    )
                )
            self._enforce(
                check(self._attributes(player, level=0),
                      CatalogEntry("ennoblement", "Ennoblement", cost=price),
                      conditions=conditions)
            )
            king = self._ruler(Player.ruled_kingdom_id, player.kingdom_id, "king")
            request = self._open_request(
                ENNOBLEMENT, player, king, kind, price, reason=reason, spouse_id=spouse_id
            )
            return self._request_snapshot(request)

    def _open_request(
        self,
        kind: str,
        requester: Player,
        approver: Player,
        request_type: RequestType,
        price: int,
        **extra: object,
    ) -> ClassRequest:
        request = ClassRequest(
            kind=kind,
            requester_id=requester.id,
            approver_id=approver.id,
            request_type=request_type,
            gold_offered=price,
            status=S.PENDING,
            expires_at=self.clock() + timedelta(days=self.rules.social.request_window_days),
            **extra,
        )
        self.session.add(request)
        self.session.flush()
        self._audit("class_request", request.id, "request", actor_id=requester.id,
                    new_state=S.PENDING, kind=kind, type=str(request_type))
        return request

    def approve_request(
        self,
        approver_id: int,
        request_id: int,
        *,
        message: str | None = None,
        title: str = "Knight",
    ) -> SubjectSnapshot:
        """Grant a pending request.

        Gold changes hands, the class changes and the request becomes
        active in one transaction; if any step fails none of them happen.
        """
        request = self.get_request(request_id)
        requester_id = request.requester_id
        with self._transaction(
            ("class_request", request_id), ("player", requester_id), ("player", approver_id)
        ):
            requester = self._player(requester_id)
            approver = self._player(approver_id)
            request = self._load(ClassRequest, request_id, "Request")
            self._check_decidable(request, approver_id)

            request.status = lifecycle.transition(request.status, S.APPROVED)
            if request.gold_offered:
                self._debit(requester, request.gold_offered)
                self._credit(approver, request.gold_offered)
            if request.kind == MANUMISSION:
                self._apply_class(requester, SocialClass.FREEMAN,
                                  f"manumission_{request.request_type}", approver_id)
            else:
                self._apply_class(requester, SocialClass.NOBLE,
                                  f"ennoblement_{request.request_type}", approver_id)
                requester.title_tier = max(requester.title_tier,
                                           self.rules.social.ennobled_title_tier)
                request.title_granted = title
            request.status = lifecycle.transition(S.APPROVED, S.ACTIVE)
            request.response_message = message
            request.responded_at = self.clock()
            self._audit("class_request", request.id, "approve", actor_id=approver_id,
                        old_state=S.PENDING, new_state=S.ACTIVE, gold=request.gold_offered)
            return self._request_snapshot(request, requester_gold=requester.gold)

    def deny_request(
        self, approver_id: int, request_id: int, *, message: str | None = None
    ) -> SubjectSnapshot:
        with self._transaction(("class_request", request_id)):
            request = self._load(ClassRequest, request_id, "Request")
            self._check_decidable(request, approver_id)
            request.status = lifecycle.transition(request.status, S.REJECTED)
            request.response_message = message
            request.responded_at = self.clock()
            self._audit("class_request", request.id, "deny", actor_id=approver_id,
                        old_state=S.PENDING, new_state=S.REJECTED)
            return self._request_snapshot(request)

    def _check_decidable(self, request: ClassRequest, approver_id: int) -> None:
        if request.approver_id != approver_id:
            raise self._refuse(FailureReason.PERMISSION,
                               "This request is addressed to someone else")
        if request.status != S.PENDING:
            raise ConflictFailure(f"Request is already {request.status}",
                                  reason=FailureReason.STATE)
        ensure_open_window(request.expires_at, self.clock(), "response")

    def expire_requests(self, now: datetime | None = None) -> int:
        """Expire pending requests whose response window has closed."""
        now = now or self.clock()
        ids = self.session.execute(
            select(ClassRequest.id).where(ClassRequest.status == S.PENDING)
        ).scalars().all()
        expired = 0
        for request_id in ids:
            with self._transaction(("class_request", request_id)):
                request = self._load(ClassRequest, request_id, "Request")
                if not expiry_due(request.status, request.expires_at, now):
                    continue
                request.status = lifecycle.transition(request.status, S.EXPIRED)
                self._audit("class_request", request.id, "expire", old_state=S.PENDING,
                            new_state=S.EXPIRED)
                expired += 1
        return expired

    @staticmethod
    def _request_snapshot(request: ClassRequest, **detail: object) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="class_request",
            subject_id=request.id,
            gold=request.gold_offered,
            active_entries=[request.kind],
            detail={
                "status": request.status,
                "request_type": request.request_type,
                "requester_id": request.requester_id,
                "approver_id": request.approver_id,
                "title_granted": request.title_granted,
                **detail,
            },
        )
