"""Identifiers and snapshots returned by the transition executor.

Services mutate SQLAlchemy rows; callers receive these plain dataclasses so
that a response never holds a live session-bound object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NewType

# --- Strongly typed identifiers -------------------------------------------------

PlayerID = NewType("PlayerID", int)
HouseID = NewType("HouseID", int)
GuildID = NewType("GuildID", int)
ReligionID = NewType("ReligionID", int)
BusinessID = NewType("BusinessID", int)
CharterID = NewType("CharterID", int)
ElectionID = NewType("ElectionID", int)
RequestID = NewType("RequestID", int)


@dataclass(slots=True)
class SubjectSnapshot:
    """State of one subject immediately after a committed transition.

    Attributes:
        kind: Subject kind (``house``, ``guild``, ``business``, ...)
        subject_id: Primary key of the subject row
        gold: Balance that paid for the action (owner gold or treasury)
        active_entries: Sorted keys of the subject's active catalog entries
        modifiers: The subject's ActiveModifierSet as a plain dict
        detail: Action-specific extras (refunds, xp awarded, new status)
    """

    kind: str
    subject_id: int
    gold: int
    active_entries: list[str] = field(default_factory=list)
    modifiers: dict[str, int | float] = field(default_factory=dict)
    detail: dict[str, object] = field(default_factory=dict)
