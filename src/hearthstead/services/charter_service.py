"""Charter Service for Hearthstead.

Charters are petitions to found a new settlement. The founder escrows the
charter cost at creation, gathers signatures from fellow subjects, and the
king of the realm approves or rejects. An approved charter must be used to
found the settlement before it expires.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select

from hearthstead.domain import catalog, lifecycle
from hearthstead.domain.eligibility import Condition, EligibilityCheck, check
from hearthstead.domain.enums import FailureReason, LifecycleStatus
from hearthstead.domain.errors import ConflictFailure, ValidationFailure
from hearthstead.domain.lifecycle import ensure_open_window, expiry_due
from hearthstead.domain.models import SubjectSnapshot
from hearthstead.models import Charter, CharterSignatory, Player
from hearthstead.services.base import TransitionService

logger = logging.getLogger(__name__)

S = LifecycleStatus


class CharterService(TransitionService):
    """Service applying charter transitions."""

    def get_charter(self, charter_id: int) -> Charter:
        return self._get(Charter, charter_id, "Charter")

    def charters_in(self, kingdom_id: int) -> list[Charter]:
        return list(
            self.session.execute(
                select(Charter).where(Charter.kingdom_id == kingdom_id).order_by(Charter.id)
            ).scalars()
        )

    def snapshot(self, charter: Charter, **detail: object) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="charter",
            subject_id=charter.id,
            gold=charter.gold_paid,
            active_entries=[charter.charter_type],
            detail={
                "status": charter.status,
                "signatories": len(charter.signatories),
                "signatories_required": charter.signatories_required,
                **detail,
            },
        )

    def _founded_charter(self, charter_id: int, founder_id: int) -> Charter:
        charter = self._load(Charter, charter_id, "Charter")
        if charter.founder_id != founder_id:
            raise self._refuse(FailureReason.PERMISSION, "Only the founder may do that")
        return charter

    def _require_king(self, player: Player, charter: Charter) -> None:
        if player.ruled_kingdom_id != charter.kingdom_id:
            raise self._refuse(
                FailureReason.PERMISSION,
                f"Only the king of kingdom {charter.kingdom_id} may decide",
            )

    def _move(self, charter: Charter, target: LifecycleStatus) -> LifecycleStatus:
        old = S(charter.status)
        charter.status = lifecycle.transition(old, target)
        return old

    # ---- Creation -----------------------------------------------------------

    def check_create(self, founder_id: int, name: str, charter_type: str) -> EligibilityCheck:
        founder = self._player(founder_id, lock=False)
        return self._create_check(founder, name.strip(), catalog.get_charter_spec(charter_type))

    def _create_check(
        self, founder: Player, name: str, spec: catalog.CharterSpec
    ) -> EligibilityCheck:
        name_taken = self.session.execute(select(Charter.id).where(Charter.name == name)).first()
        open_charter = self.session.execute(
            select(Charter.id).where(
                Charter.founder_id == founder.id,
                Charter.status.in_([str(s) for s in lifecycle.OPEN]),
            )
        ).first()
        return check(
            self._attributes(founder, level=0),
            spec,
            conditions=[
                Condition(founder.kingdom_id is not None, FailureReason.LOCATION,
                          "You must live in a kingdom to petition for a charter"),
                Condition(open_charter is None, FailureReason.REQUIREMENT,
                          "You already have an open charter"),
                Condition(name_taken is None, FailureReason.REQUIREMENT,
                          f"A settlement named '{name}' is already chartered"),
            ],
        )

    def create(
        self,
        founder_id: int,
        name: str,
        charter_type: str,
        *,
        expected_gold: int | None = None,
    ) -> SubjectSnapshot:
        """Draft a charter, escrowing its cost; the founder signs first.

        Raises:
            ValidationFailure: Blank settlement name
            NotFound: Unknown founder or charter type
            IneligibleAction: Funds, kingdom residence, open charter or name taken
        """
        name = name.strip()
        if not name:
            raise ValidationFailure("Settlement name must not be blank")
        spec = catalog.get_charter_spec(charter_type)
        with self._transaction(("player", founder_id)):
            founder = self._player(founder_id)
            self._enforce(self._create_check(founder, name, spec),
                          expected_gold=expected_gold, current_gold=founder.gold)
            self._debit(founder, spec.cost)
            charter = Charter(
                name=name,
                charter_type=spec.key,
                founder_id=founder.id,
                kingdom_id=founder.kingdom_id,
                status=S.DRAFT,
                gold_paid=spec.cost,
                signatories_required=spec.signatories_required,
            )
            charter.signatories.append(CharterSignatory(player_id=founder.id))
            self.session.add(charter)
            self.session.flush()
            self._audit("charter", charter.id, "create", actor_id=founder.id,
                        new_state=S.DRAFT, cost=spec.cost, type=spec.key)
            return self.snapshot(charter)

    def submit(self, founder_id: int, charter_id: int) -> SubjectSnapshot:
        """Open the charter for signatures."""
        with self._transaction(("charter", charter_id)):
            charter = self._founded_charter(charter_id, founder_id)
            old = self._move(charter, S.PENDING)
            charter.signing_ends_at = self.clock() + timedelta(
                days=self.rules.charter.signature_window_days
            )
            self._audit("charter", charter.id, "submit", actor_id=founder_id,
                        old_state=old, new_state=S.PENDING)
            return self.snapshot(charter)

    def sign(self, player_id: int, charter_id: int) -> SubjectSnapshot:
        with self._transaction(("charter", charter_id)):
            charter = self._load(Charter, charter_id, "Charter")
            player = self._player(player_id, lock=False)
            if charter.status != S.PENDING:
                raise ConflictFailure("The charter is not open for signatures",
                                      reason=FailureReason.STATE)
            ensure_open_window(charter.signing_ends_at, self.clock(), "signing")
            if player.kingdom_id != charter.kingdom_id:
                raise self._refuse(FailureReason.LOCATION,
                                   "Only subjects of the kingdom may sign")
            if any(s.player_id == player_id for s in charter.signatories):
                raise self._refuse(FailureReason.REQUIREMENT, "You have already signed")
            charter.signatories.append(CharterSignatory(player_id=player_id))
            self._audit("charter", charter.id, "sign", actor_id=player_id)
            return self.snapshot(charter)

    # ---- Royal decision -----------------------------------------------------

    def approve(self, king_id: int, charter_id: int) -> SubjectSnapshot:
        with self._transaction(("charter", charter_id)):
            charter = self._load(Charter, charter_id, "Charter")
            king = self._player(king_id, lock=False)
            self._require_king(king, charter)
            if charter.status != S.PENDING:
                raise ConflictFailure(f"Cannot approve a {charter.status} charter",
                                      reason=FailureReason.STATE)
            if len(charter.signatories) < charter.signatories_required:
                raise self._refuse(
                    FailureReason.REQUIREMENT,
                    f"Needs {charter.signatories_required} signatories; "
                    f"{len(charter.signatories)} signed",
                )
            old = self._move(charter, S.APPROVED)
            charter.approved_by_id = king_id
            charter.expires_at = self.clock() + timedelta(
                days=self.rules.charter.approval_expiry_days
            )
            self._audit("charter", charter.id, "approve", actor_id=king_id,
                        old_state=old, new_state=S.APPROVED)
            return self.snapshot(charter)

    def reject(self, king_id: int, charter_id: int, reason: str = "") -> SubjectSnapshot:
        """Reject a pending charter, refunding half the escrow to the founder."""
        founder_id = self.get_charter(charter_id).founder_id
        with self._transaction(("charter", charter_id), ("player", founder_id)):
            founder = self._player(founder_id)
            charter = self._load(Charter, charter_id, "Charter")
            self._require_king(self._player(king_id, lock=False), charter)
            old = self._move(charter, S.REJECTED)
            refund = self._refund(charter, founder, self.rules.charter.reject_refund_ratio)
            self._audit("charter", charter.id, "reject", actor_id=king_id, old_state=old,
                        new_state=S.REJECTED, refund=refund, reason=reason)
            return self.snapshot(charter, refund=refund)

    # ---- Founder actions ----------------------------------------------------

    def found(self, founder_id: int, charter_id: int) -> SubjectSnapshot:
        """Found the settlement of an approved, unexpired charter."""
        with self._transaction(("charter", charter_id)):
            charter = self._founded_charter(charter_id, founder_id)
            if charter.status != S.APPROVED:
                raise ConflictFailure(f"Cannot found from a {charter.status} charter",
                                      reason=FailureReason.STATE)
            now = self.clock()
            ensure_open_window(charter.expires_at, now, "founding")
            old = self._move(charter, S.ACTIVE)
            charter.founded_at = now
            charter.vulnerability_ends_at = now + timedelta(
                days=self.rules.charter.vulnerability_days
            )
            self._audit("charter", charter.id, "found", actor_id=founder_id,
                        old_state=old, new_state=S.ACTIVE)
            return self.snapshot(
                charter, vulnerability_ends_at=charter.vulnerability_ends_at.isoformat()
            )

    def cancel(self, founder_id: int, charter_id: int) -> SubjectSnapshot:
        """Withdraw a draft or pending charter, refunding three quarters of the escrow."""
        with self._transaction(("charter", charter_id), ("player", founder_id)):
            founder = self._player(founder_id)
            charter = self._founded_charter(charter_id, founder_id)
            if charter.status not in (S.DRAFT, S.PENDING):
                raise ConflictFailure(f"Cannot cancel a {charter.status} charter",
                                      reason=FailureReason.STATE)
            old = self._move(charter, S.FAILED)
            refund = self._refund(charter, founder, self.rules.charter.cancel_refund_ratio)
            self._audit("charter", charter.id, "cancel", actor_id=founder_id, old_state=old,
                        new_state=S.FAILED, refund=refund)
            return self.snapshot(charter, refund=refund)

    def _refund(self, charter: Charter, founder: Player, ratio: float) -> int:
        refund = int(charter.gold_paid * ratio)
        self._credit(founder, refund)
        charter.refunded = refund
        return refund

    # ---- Sweep --------------------------------------------------------------

    def expire_due(self, now: datetime | None = None) -> int:
        """Expire pending charters past their signing deadline and approved
        charters past their founding deadline. Escrow is not refunded."""
        now = now or self.clock()
        candidates = self.session.execute(
            select(Charter.id).where(Charter.status.in_([S.PENDING, S.APPROVED]))
        ).scalars().all()
        expired = 0
        for charter_id in candidates:
            with self._transaction(("charter", charter_id)):
                charter = self._load(Charter, charter_id, "Charter")
                deadline = (
                    charter.signing_ends_at if charter.status == S.PENDING else charter.expires_at
                )
                if not expiry_due(charter.status, deadline, now):
                    continue
                old = self._move(charter, S.EXPIRED)
                self._audit("charter", charter.id, "expire", old_state=old, new_state=S.EXPIRED)
                expired += 1
        if expired:
            logger.info("expired %d charters", expired)
        return expired
