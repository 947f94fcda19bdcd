"""Pure eligibility gate shared by every catalog-driven action.

``check`` never mutates its inputs, so the HTTP layer can call it freely to
pre-validate a form and services call it again under the subject lock before
committing anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .catalog import CatalogEntry
from .enums import FailureReason
from .errors import IneligibleAction

_NO_MATERIALS: Mapping[str, int] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class SubjectAttributes:
    """Numeric snapshot of whoever is attempting an action.

    Attributes:
        level: Level in the skill or track the entry is gated on
        gold: Currency available to spend
        materials: Items held, by name
        occupancy: Slots already used in the capacity-bounded collection
        capacity: Maximum slots, or ``None`` when the action is unbounded
    """

    level: int
    gold: int
    materials: Mapping[str, int] = field(default_factory=lambda: _NO_MATERIALS)
    occupancy: int = 0
    capacity: int | None = None


@dataclass(frozen=True, slots=True)
class Condition:
    """Context requirement evaluated after level, cost and capacity."""

    satisfied: bool
    reason: FailureReason
    message: str


@dataclass(frozen=True, slots=True)
class EligibilityCheck:
    can_proceed: bool
    reason: FailureReason | None = None
    cost: int | None = None
    message: str | None = None

    def require(self) -> EligibilityCheck:
        """Raise :class:`IneligibleAction` unless the check passed."""
        if not self.can_proceed:
            raise IneligibleAction(self.message or "Action not allowed", reason=self.reason)
        return self


def _refuse(reason: FailureReason, message: str, cost: int) -> EligibilityCheck:
    return EligibilityCheck(can_proceed=False, reason=reason, cost=cost, message=message)


def check(
    subject: SubjectAttributes,
    entry: CatalogEntry,
    *,
    cost: int | None = None,
    materials: Mapping[str, int] | None = None,
    conditions: Iterable[Condition] = (),
) -> EligibilityCheck:
    """Evaluate whether ``subject`` may perform the action described by ``entry``.

    Requirements are tested in a fixed order so the refusal reason is
    deterministic: level, then cost (gold before materials), then capacity,
    then each context condition in the order given.

    Args:
        subject: Attributes of the acting subject
        entry: Catalog entry supplying the level, gold and material requirements
        cost: Gold cost overriding ``entry.cost`` (upgrades charge a difference)
        materials: Material requirements overriding ``entry.materials``
        conditions: Extra context requirements (location, title, permissions)

    Returns:
        EligibilityCheck naming the first unmet requirement, if any
    """
    price = entry.cost if cost is None else cost
    needed = entry.material_map if materials is None else materials

    if subject.level < entry.level_requirement:
        return _refuse(
            FailureReason.LEVEL,
            f"{entry.display_name} requires level {entry.level_requirement}",
            price,
        )

    if subject.gold < price:
        return _refuse(
            FailureReason.FUNDS,
            f"{entry.display_name} costs {price:,} gold; {subject.gold:,} available",
            price,
        )

    for name, quantity in needed.items():
        held = subject.materials.get(name, 0)
        if held < quantity:
            return _refuse(
                FailureReason.MATERIALS,
                f"{entry.display_name} needs {quantity} {name}; {held} held",
                price,
            )

    if subject.capacity is not None and subject.occupancy >= subject.capacity:
        return _refuse(
            FailureReason.CAPACITY,
            f"Capacity reached ({subject.occupancy}/{subject.capacity})",
            price,
        )

    for condition in conditions:
        if not condition.satisfied:
            return _refuse(condition.reason, condition.message, price)

    return EligibilityCheck(can_proceed=True, cost=price)
