"""Shared machinery for services that apply transitions to persisted subjects."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from hearthstead.domain.eligibility import EligibilityCheck, SubjectAttributes
from hearthstead.domain.enums import FailureReason
from hearthstead.domain.errors import (
    ConflictFailure,
    HearthsteadError,
    IneligibleAction,
    NotFound,
)
from hearthstead.domain.rules_config import DEFAULT_RULES, RulesConfig
from hearthstead.models import AuditEntry, Player, utc_now
from hearthstead.services.locking import DEFAULT_LOCKS, SubjectKey, SubjectLocks

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class TransitionService:
    """Base class for services that mutate subjects.

    Subclasses run every mutation inside :meth:`_transaction`, which holds the
    per-subject locks, commits on success and rolls back on any exception so a
    failed step never leaves a half-applied change behind.
    """

    def __init__(
        self,
        session: Session,
        *,
        rules: RulesConfig = DEFAULT_RULES,
        locks: SubjectLocks | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.rules = rules
        self.locks = locks or DEFAULT_LOCKS
        self.clock = clock

    # ---- Transactions -------------------------------------------------------

    @contextmanager
    def _transaction(self, *subjects: SubjectKey | None) -> Iterator[None]:
        with self.locks.hold(*subjects):
            try:
                yield
                self.session.commit()
            except HearthsteadError as exc:
                self.session.rollback()
                logger.debug("refused %s: %s", subjects, exc.message)
                raise
            except Exception:
                self.session.rollback()
                raise

    def _load(self, model: type[ModelT], subject_id: int, label: str) -> ModelT:
        """Fetch a row, refreshing it from the database and locking it where supported."""
        row = self.session.get(model, subject_id, with_for_update=True, populate_existing=True)
        if row is None:
            raise NotFound(f"{label} {subject_id} not found")
        return row

    def _get(self, model: type[ModelT], subject_id: int, label: str) -> ModelT:
        row = self.session.get(model, subject_id)
        if row is None:
            raise NotFound(f"{label} {subject_id} not found")
        return row

    def _player(self, player_id: int, *, lock: bool = True) -> Player:
        if lock:
            return self._load(Player, player_id, "Player")
        return self._get(Player, player_id, "Player")

    # ---- Gate helpers -------------------------------------------------------

    @staticmethod
    def _attributes(
        player: Player,
        *,
        skill: str | None = None,
        level: int | None = None,
        gold: int | None = None,
        occupancy: int = 0,
        capacity: int | None = None,
    ) -> SubjectAttributes:
        return SubjectAttributes(
            level=player.skill_level(skill) if level is None else level,
            gold=player.gold if gold is None else gold,
            materials=dict(player.inventory),
            occupancy=occupancy,
            capacity=capacity,
        )

    @staticmethod
    def _enforce(
        result: EligibilityCheck,
        *,
        expected_gold: int | None = None,
        current_gold: int | None = None,
    ) -> EligibilityCheck:
        """Turn a failed re-check into the right exception.

        When the caller passes the balance its own pre-check saw and that
        balance has since changed, the refusal is reported as stale
        eligibility rather than a plain rule failure.
        """
        if result.can_proceed:
            return result
        if expected_gold is not None and current_gold is not None and expected_gold != current_gold:
            raise ConflictFailure(
                f"Eligibility is stale: balance changed from {expected_gold} to {current_gold}",
                reason=FailureReason.STALE,
            )
        raise IneligibleAction(result.message or "Action not allowed", reason=result.reason)

    @staticmethod
    def _refuse(reason: FailureReason, message: str) -> IneligibleAction:
        return IneligibleAction(message, reason=reason)

    # ---- Currency -----------------------------------------------------------

    @staticmethod
    def _debit(player: Player, amount: int) -> None:
        if amount < 0:
            raise ValueError("Debit amount must be non-negative")
        if player.gold < amount:
            raise IneligibleAction(
                f"Insufficient funds: {player.gold} < {amount}", reason=FailureReason.FUNDS
            )
        player.gold -= amount

    @staticmethod
    def _credit(player: Player, amount: int) -> None:
        if amount < 0:
            raise ValueError("Credit amount must be non-negative")
        player.gold += amount

    # ---- Inventory ----------------------------------------------------------

    @staticmethod
    def _consume_items(player: Player, items: dict[str, int]) -> None:
        inventory = dict(player.inventory)
        for name, quantity in items.items():
            held = inventory.get(name, 0)
            if held < quantity:
                raise IneligibleAction(
                    f"Needs {quantity} {name}; {held} held", reason=FailureReason.MATERIALS
                )
            remaining = held - quantity
            if remaining:
                inventory[name] = remaining
            else:
                inventory.pop(name, None)
        player.inventory = inventory

    @staticmethod
    def _give_items(player: Player, items: dict[str, int]) -> None:
        inventory = dict(player.inventory)
        for name, quantity in items.items():
            if quantity > 0:
                inventory[name] = inventory.get(name, 0) + quantity
        player.inventory = inventory

    # ---- Audit --------------------------------------------------------------

    def _audit(
        self,
        subject_kind: str,
        subject_id: int,
        action: str,
        *,
        actor_id: int | None = None,
        old_state: str | None = None,
        new_state: str | None = None,
        **detail: Any,
    ) -> AuditEntry:
        entry = AuditEntry(
            subject_kind=subject_kind,
            subject_id=subject_id,
            action=action,
            actor_id=actor_id,
            old_state=old_state,
            new_state=new_state,
            detail=detail,
        )
        self.session.add(entry)
        logger.info(
            "%s %s:%s %s -> %s", action, subject_kind, subject_id, old_state, new_state
        )
        return entry
