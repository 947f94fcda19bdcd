"""Lifecycle state machine shared by charters, elections and class requests.

``draft -> pending -> {approved -> active | rejected}``; pending and approved
records expire once their deadline passes. ``failed`` records an abort
(cancellation or a finalisation that could not complete). Deadlines are
exclusive: at the deadline instant the window is already closed.
"""

from __future__ import annotations

from datetime import UTC, datetime

from .enums import FailureReason, LifecycleStatus
from .errors import ConflictFailure

S = LifecycleStatus

TRANSITIONS: dict[LifecycleStatus, frozenset[LifecycleStatus]] = {
    S.DRAFT: frozenset({S.PENDING, S.FAILED}),
    S.PENDING: frozenset({S.APPROVED, S.REJECTED, S.EXPIRED, S.FAILED}),
    S.APPROVED: frozenset({S.ACTIVE, S.EXPIRED, S.FAILED}),
    S.ACTIVE: frozenset(),
    S.REJECTED: frozenset(),
    S.EXPIRED: frozenset(),
    S.FAILED: frozenset(),
}

TERMINAL = frozenset(status for status, targets in TRANSITIONS.items() if not targets)
OPEN = frozenset({S.DRAFT, S.PENDING, S.APPROVED})


def can_transition(current: LifecycleStatus | str, target: LifecycleStatus | str) -> bool:
    return S(target) in TRANSITIONS[S(current)]


def transition(current: LifecycleStatus | str, target: LifecycleStatus | str) -> LifecycleStatus:
    """Validate ``current -> target`` and return the new status.

    Raises:
        ConflictFailure: If the move is not an edge of the state machine
    """
    if not can_transition(current, target):
        raise ConflictFailure(
            f"Cannot move from {S(current)} to {S(target)}", reason=FailureReason.STATE
        )
    return S(target)


def is_terminal(status: LifecycleStatus | str) -> bool:
    return S(status) in TERMINAL


def _aware(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)


def deadline_passed(deadline: datetime | None, now: datetime) -> bool:
    """True once ``now`` has reached ``deadline``; ``None`` never passes."""
    if deadline is None:
        return False
    return _aware(now) >= _aware(deadline)


def expiry_due(status: LifecycleStatus | str, deadline: datetime | None, now: datetime) -> bool:
    """Whether a record in ``status`` should move to ``expired`` at ``now``."""
    return S(status) in (S.PENDING, S.APPROVED) and deadline_passed(deadline, now)


def ensure_open_window(deadline: datetime | None, now: datetime, what: str) -> None:
    """Refuse an action whose window closed at ``deadline``."""
    if deadline_passed(deadline, now):
        raise ConflictFailure(f"The {what} window has closed", reason=FailureReason.STATE)
