"""Business Service for Hearthstead.

This module handles player-owned businesses: establishing and closing them,
moving gold between the owner and the business treasury, hiring and firing
NPC workers, and the weekly upkeep and payroll sweep.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy import func, select

from hearthstead.domain import catalog
from hearthstead.domain.catalog import CatalogEntry
from hearthstead.domain.eligibility import Condition, EligibilityCheck, check
from hearthstead.domain.enums import BusinessStatus, FailureReason
from hearthstead.domain.errors import NotFound, ValidationFailure
from hearthstead.domain.lifecycle import deadline_passed
from hearthstead.domain.models import SubjectSnapshot
from hearthstead.models import Business, Npc, Player
from hearthstead.services.base import TransitionService

logger = logging.getLogger(__name__)


class BusinessService(TransitionService):
    """Service applying business transitions.

    Every transfer between an owner and a business holds both subjects'
    locks, so the owner's balance and the treasury always move together.
    """

    def get_business(self, business_id: int) -> Business:
        return self._get(Business, business_id, "Business")

    def businesses_of(self, owner_id: int) -> list[Business]:
        return list(
            self.session.execute(
                select(Business).where(Business.owner_id == owner_id).order_by(Business.id)
            ).scalars()
        )

    def snapshot(self, business: Business, **detail: object) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="business",
            subject_id=business.id,
            gold=business.treasury,
            active_entries=[business.type_key],
            detail={
                "status": business.status,
                "employees": len(business.employees),
                **detail,
            },
        )

    def _owned(self, owner_id: int, business_id: int) -> Business:
        business = self._load(Business, business_id, "Business")
        if business.owner_id != owner_id:
            raise self._refuse(FailureReason.PERMISSION, "You do not own this business")
        return business

    def _active_count(self, owner_id: int) -> int:
        return self.session.scalar(
            select(func.count())
            .select_from(Business)
            .where(Business.owner_id == owner_id, Business.status != BusinessStatus.CLOSED)
        ) or 0

    # ---- Establish / close --------------------------------------------------

    def check_establish(self, owner_id: int, type_key: str) -> EligibilityCheck:
        owner = self._player(owner_id, lock=False)
        return self._establish_check(owner, catalog.get_business_type(type_key))

    def _establish_check(
        self, owner: Player, business_type: catalog.BusinessType
    ) -> EligibilityCheck:
        return check(
            self._attributes(
                owner,
                skill=business_type.skill,
                level=None if business_type.skill else 0,
                occupancy=self._active_count(owner.id),
                capacity=self.rules.business.max_per_owner,
            ),
            business_type,
            conditions=[
                Condition(
                    owner.location_type in business_type.locations,
                    FailureReason.LOCATION,
                    f"A {business_type.display_name} cannot be opened in a {owner.location_type}",
                ),
            ],
        )

    def establish(
        self,
        owner_id: int,
        type_key: str,
        name: str,
        *,
        expected_gold: int | None = None,
    ) -> SubjectSnapshot:
        """Open a business of ``type_key`` at the owner's location.

        Raises:
            ValidationFailure: Blank name
            NotFound: Unknown player or business type
            IneligibleAction: Skill level, funds, ownership limit or location
        """
        name = name.strip()
        if not name:
            raise ValidationFailure("Business name must not be blank")
        business_type = catalog.get_business_type(type_key)
        with self._transaction(("player", owner_id)):
            owner = self._player(owner_id)
            self._enforce(self._establish_check(owner, business_type),
                          expected_gold=expected_gold, current_gold=owner.gold)
            self._debit(owner, business_type.cost)
            business = Business(
                owner_id=owner.id,
                type_key=business_type.key,
                name=name,
                location_type=owner.location_type,
                location_id=owner.location_id,
                treasury=0,
                status=BusinessStatus.ACTIVE,
                last_upkeep_at=self.clock(),
            )
            self.session.add(business)
            self.session.flush()
            self._audit("business", business.id, "establish", actor_id=owner.id,
                        new_state=BusinessStatus.ACTIVE, type=business_type.key,
                        cost=business_type.cost)
            return self.snapshot(business, cost=business_type.cost)

    def close(self, owner_id: int, business_id: int) -> SubjectSnapshot:
        """Close a business, refunding its whole treasury to the owner.

        The refund, the release of every employee and the status change
        commit together or not at all.
        """
        with self._transaction(("business", business_id), ("player", owner_id)):
            owner = self._player(owner_id)
            business = self._owned(owner_id, business_id)
            if business.status == BusinessStatus.CLOSED:
                raise self._refuse(FailureReason.STATE, "Business is already closed")
            refund = business.treasury
            business.treasury = 0
            self._credit(owner, refund)
            released = [npc.id for npc in business.employees]
            for npc in list(business.employees):
                npc.employer = None
            old = business.status
            business.status = BusinessStatus.CLOSED
            self._audit("business", business.id, "close", actor_id=owner_id, old_state=old,
                        new_state=BusinessStatus.CLOSED, refund=refund, released=released)
            return self.snapshot(business, refund=refund, owner_gold=owner.gold)

    # ---- Treasury -----------------------------------------------------------

    def deposit(self, owner_id: int, business_id: int, amount: int) -> SubjectSnapshot:
        if amount <= 0:
            raise ValidationFailure("Deposit amount must be positive")
        with self._transaction(("business", business_id), ("player", owner_id)):
            owner = self._player(owner_id)
            business = self._owned(owner_id, business_id)
            if business.status == BusinessStatus.CLOSED:
                raise self._refuse(FailureReason.STATE, "Business is closed")
            self._debit(owner, amount)
            business.treasury += amount
            self._audit("business", business.id, "deposit", actor_id=owner_id, amount=amount)
            return self.snapshot(business, amount=amount, owner_gold=owner.gold)

    def withdraw(self, owner_id: int, business_id: int, amount: int) -> SubjectSnapshot:
        if amount <= 0:
            raise ValidationFailure("Withdrawal amount must be positive")
        with self._transaction(("business", business_id), ("player", owner_id)):
            owner = self._player(owner_id)
            business = self._owned(owner_id, business_id)
            if business.treasury < amount:
                raise self._refuse(
                    FailureReason.FUNDS,
                    f"Treasury holds {business.treasury:,} gold; {amount:,} requested",
                )
            business.treasury -= amount
            self._credit(owner, amount)
            self._audit("business", business.id, "withdraw", actor_id=owner_id, amount=amount)
            return self.snapshot(business, amount=amount, owner_gold=owner.gold)

    # ---- Staff --------------------------------------------------------------

    def hire(self, owner_id: int, business_id: int, npc_id: int) -> SubjectSnapshot:
        """Hire an unemployed NPC living where the business stands."""
        with self._transaction(("business", business_id), ("npc", npc_id)):
            business = self._owned(owner_id, business_id)
            npc = self._load(Npc, npc_id, "NPC")
            business_type = catalog.get_business_type(business.type_key)
            result = check(
                self._attributes(
                    self._player(owner_id, lock=False),
                    level=0,
                    occupancy=len(business.employees),
                    capacity=business_type.max_employees,
                ),
                CatalogEntry("npc_hire", f"Staff for {business.name}"),
                conditions=[
                    Condition(business.status == BusinessStatus.ACTIVE, FailureReason.STATE,
                              "Only an active business can hire"),
                    Condition(npc.employer_id is None, FailureReason.REQUIREMENT,
                              f"{npc.name} is already employed"),
                    Condition(
                        npc.location_type == business.location_type
                        and npc.location_id == business.location_id,
                        FailureReason.LOCATION,
                        f"{npc.name} does not live here",
                    ),
                ],
            )
            self._enforce(result)
            business.employees.append(npc)
            self._audit("business", business.id, "hire", actor_id=owner_id, npc=npc.id)
            return self.snapshot(business, npc=npc.id)

    def fire(self, owner_id: int, business_id: int, npc_id: int) -> SubjectSnapshot:
        with self._transaction(("business", business_id), ("npc", npc_id)):
            business = self._owned(owner_id, business_id)
            npc = next((e for e in business.employees if e.id == npc_id), None)
            if npc is None:
                raise NotFound(f"NPC {npc_id} does not work at {business.name}")
            business.employees.remove(npc)
            self._audit("business", business.id, "fire", actor_id=owner_id, npc=npc_id)
            return self.snapshot(business, npc=npc_id)

    # ---- Weekly sweep -------------------------------------------------------

    def process_weekly(self, now: datetime | None = None) -> dict[str, int]:
        """Charge upkeep and wages for every open business.

        A business whose treasury cannot cover upkeep is suspended and pays
        nothing. A suspended business whose treasury covers upkeep again is
        reactivated. Wages are paid only when the treasury covers them after
        upkeep.
        """
        now = now or self.clock()
        ids = self.session.execute(
            select(Business.id).where(Business.status != BusinessStatus.CLOSED)
        ).scalars().all()
        outcomes: Counter[str] = Counter()
        for business_id in ids:
            with self._transaction(("business", business_id)):
                business = self._load(Business, business_id, "Business")
                if not self._week_elapsed(business, now):
                    continue
                outcomes[self._settle_week(business, now)] += 1
        if outcomes:
            logger.info("weekly business sweep: %s", dict(outcomes))
        return dict(outcomes)

    @staticmethod
    def _week_elapsed(business: Business, now: datetime) -> bool:
        if business.last_upkeep_at is None:
            return True
        return deadline_passed(business.last_upkeep_at + timedelta(days=7), now)

    def _settle_week(self, business: Business, now: datetime) -> str:
        upkeep = catalog.get_business_type(business.type_key).weekly_upkeep
        old = business.status
        if business.treasury < upkeep:
            if old != BusinessStatus.SUSPENDED:
                business.status = BusinessStatus.SUSPENDED
                self._audit("business", business.id, "suspend", old_state=old,
                            new_state=BusinessStatus.SUSPENDED, upkeep=upkeep)
            return "suspended"

        business.treasury -= upkeep
        business.status = BusinessStatus.ACTIVE
        wages = sum(npc.weekly_wage for npc in business.employees)
        paid = business.treasury >= wages
        if paid:
            business.treasury -= wages
        business.last_upkeep_at = now
        self._audit("business", business.id, "weekly", old_state=old,
                    new_state=BusinessStatus.ACTIVE, upkeep=upkeep,
                    wages=wages if paid else 0)
        if old == BusinessStatus.SUSPENDED:
            return "reactivated"
        return "paid" if paid else "wages_unpaid"
