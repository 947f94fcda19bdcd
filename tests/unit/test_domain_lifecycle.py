"""Tests for the shared lifecycle state machine and subject locks."""

from __future__ import annotations

import gc
import threading
from datetime import UTC, datetime, timedelta

import pytest

from hearthstead.domain import lifecycle
from hearthstead.domain.enums import FailureReason, LifecycleStatus
from hearthstead.domain.errors import ConflictFailure, HearthsteadError, IneligibleAction, NotFound
from hearthstead.services.locking import SubjectLocks

S = LifecycleStatus
NOW = datetime(2024, 6, 3, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (S.DRAFT, S.PENDING),
        (S.PENDING, S.APPROVED),
        (S.PENDING, S.REJECTED),
        (S.PENDING, S.EXPIRED),
        (S.APPROVED, S.ACTIVE),
        (S.APPROVED, S.EXPIRED),
        (S.DRAFT, S.FAILED),
    ],
)
def test_legal_transitions(current, target):
    assert lifecycle.transition(current, target) is target


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (S.DRAFT, S.APPROVED),
        (S.DRAFT, S.ACTIVE),
        (S.PENDING, S.ACTIVE),
        (S.ACTIVE, S.PENDING),
        (S.REJECTED, S.APPROVED),
        (S.EXPIRED, S.ACTIVE),
    ],
)
def test_illegal_transitions_raise_conflict(current, target):
    with pytest.raises(ConflictFailure) as excinfo:
        lifecycle.transition(current, target)

    assert excinfo.value.reason is FailureReason.STATE


def test_terminal_states_have_no_exits():
    for status in (S.ACTIVE, S.REJECTED, S.EXPIRED, S.FAILED):
        assert lifecycle.is_terminal(status)
    assert not lifecycle.is_terminal("pending")


def test_deadline_is_exclusive():
    deadline = NOW + timedelta(days=1)

    assert not lifecycle.deadline_passed(deadline, NOW)
    assert lifecycle.deadline_passed(deadline, deadline)
    assert not lifecycle.deadline_passed(None, NOW)


def test_naive_deadlines_are_treated_as_utc():
    naive = datetime(2024, 6, 3, 12, 0)

    assert lifecycle.deadline_passed(naive, NOW)
    assert not lifecycle.deadline_passed(naive + timedelta(seconds=1), NOW)


def test_expiry_due_only_for_open_records():
    past = NOW - timedelta(minutes=1)

    assert lifecycle.expiry_due(S.PENDING, past, NOW)
    assert lifecycle.expiry_due(S.APPROVED, past, NOW)
    assert not lifecycle.expiry_due(S.DRAFT, past, NOW)
    assert not lifecycle.expiry_due(S.ACTIVE, past, NOW)
    assert not lifecycle.expiry_due(S.PENDING, NOW + timedelta(days=1), NOW)


def test_ensure_open_window():
    lifecycle.ensure_open_window(NOW + timedelta(hours=1), NOW, "signing")

    with pytest.raises(ConflictFailure, match="signing"):
        lifecycle.ensure_open_window(NOW, NOW, "signing")


def test_error_payloads():
    error = IneligibleAction("too poor", reason=FailureReason.FUNDS)

    assert error.to_dict() == {
        "error": "IneligibleAction",
        "reason": "funds",
        "message": "too poor",
    }
    assert NotFound("gone").reason is FailureReason.NOT_FOUND
    assert isinstance(NotFound("gone"), LookupError)
    assert isinstance(ConflictFailure("late"), HearthsteadError)


def test_subject_locks_are_shared_per_subject():
    locks = SubjectLocks()
    house = locks.lock_for("house", 1)
    guild = locks.lock_for("guild", 1)

    assert locks.lock_for("house", 1) is house
    assert house is not guild
    assert len(locks) == 2


def test_unreferenced_locks_are_dropped():
    locks = SubjectLocks()
    house = locks.lock_for("house", 1)
    locks.lock_for("guild", 1)
    gc.collect()

    assert len(locks) == 1
    del house
    gc.collect()
    assert len(locks) == 0


def test_hold_is_reentrant_and_skips_none():
    locks = SubjectLocks()

    with locks.hold(("player", 1), None, ("player", 1)):
        with locks.hold(("player", 1), ("guild", 2)):
            assert len(locks) == 2
        gc.collect()
        assert len(locks) == 1

    gc.collect()
    assert len(locks) == 0


def test_hold_excludes_other_threads():
    locks = SubjectLocks()
    entered = threading.Event()
    release = threading.Event()
    order: list[str] = []

    def holder():
        with locks.hold(("guild", 1)):
            entered.set()
            release.wait(timeout=5)
            order.append("holder")

    def contender():
        with locks.hold(("player", 9), ("guild", 1)):
            order.append("contender")

    first = threading.Thread(target=holder)
    first.start()
    entered.wait(timeout=5)
    second = threading.Thread(target=contender)
    second.start()
    second.join(timeout=0.2)
    assert order == []
    release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert order == ["holder", "contender"]
