"""Unit tests for the business service."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from hearthstead.domain.enums import BusinessStatus, FailureReason
from hearthstead.domain.errors import IneligibleAction, NotFound, ValidationFailure
from hearthstead.models import AuditEntry, Npc
from hearthstead.services.business_service import BusinessService


@pytest.fixture
def service(session, locks, clock):
    return BusinessService(session, locks=locks, clock=clock)


@pytest.fixture
def owner(make_player):
    return make_player(gold=10_000, skills={"smithing": 15, "cooking": 10})


@pytest.fixture
def smithy_id(service, owner):
    return service.establish(owner.id, "smithy", "Anvil & Sons").subject_id


@pytest.fixture
def npcs(session):
    workers = [
        Npc(name="Wat", location_type="village", location_id=1, weekly_wage=10),
        Npc(name="Agnes", location_type="village", location_id=1, weekly_wage=10),
        Npc(name="Hob", location_type="town", location_id=1, weekly_wage=10),
    ]
    session.add_all(workers)
    session.commit()
    return workers


def test_establish_debits_cost(service, owner):
    snapshot = service.establish(owner.id, "smithy", "  Anvil & Sons ")

    business = service.get_business(snapshot.subject_id)
    assert business.name == "Anvil & Sons"
    assert business.status == BusinessStatus.ACTIVE
    assert owner.gold == 9_500
    assert snapshot.active_entries == ["smithy"]
    assert snapshot.detail["cost"] == 500


def test_establish_refusals(service, make_player, owner):
    unskilled = make_player(gold=10_000, skills={"smithing": 3})

    assert service.check_establish(unskilled.id, "smithy").reason is FailureReason.LEVEL
    assert service.check_establish(unskilled.id, "general_store").can_proceed
    assert service.check_establish(owner.id, "small_mine").reason is FailureReason.LEVEL
    with pytest.raises(ValidationFailure):
        service.establish(owner.id, "smithy", " ")
    with pytest.raises(NotFound):
        service.establish(owner.id, "brewery", "Hops")


def test_establish_location_rule(service, make_player):
    townsman = make_player(
        gold=10_000, skills={"mining": 30}, location_type="town", location_id=1
    )

    result = service.check_establish(townsman.id, "small_mine")

    assert result.reason is FailureReason.LOCATION


def test_owner_limit(service, owner):
    for index in range(3):
        service.establish(owner.id, "bakery", f"Bakery {index}")

    with pytest.raises(IneligibleAction) as excinfo:
        service.establish(owner.id, "bakery", "One too many")

    assert excinfo.value.reason is FailureReason.CAPACITY


def test_closed_businesses_free_a_slot(service, owner):
    ids = [service.establish(owner.id, "bakery", f"Bakery {i}").subject_id for i in range(3)]
    service.close(owner.id, ids[0])

    assert service.check_establish(owner.id, "bakery").can_proceed


def test_deposit_and_withdraw_move_gold_together(service, owner, smithy_id):
    snapshot = service.deposit(owner.id, smithy_id, 2_000)
    assert snapshot.gold == 2_000
    assert snapshot.detail["owner_gold"] == 7_500

    snapshot = service.withdraw(owner.id, smithy_id, 500)
    assert snapshot.gold == 1_500
    assert owner.gold == 8_000

    with pytest.raises(IneligibleAction) as excinfo:
        service.withdraw(owner.id, smithy_id, 5_000)
    assert excinfo.value.reason is FailureReason.FUNDS
    with pytest.raises(ValidationFailure):
        service.deposit(owner.id, smithy_id, 0)
    with pytest.raises(IneligibleAction) as excinfo:
        service.deposit(owner.id, smithy_id, 100_000)
    assert excinfo.value.reason is FailureReason.FUNDS
    assert service.get_business(smithy_id).treasury == 1_500


def test_only_owner_may_touch_treasury(service, make_player, smithy_id):
    stranger = make_player(gold=1_000)

    with pytest.raises(IneligibleAction) as excinfo:
        service.deposit(stranger.id, smithy_id, 100)

    assert excinfo.value.reason is FailureReason.PERMISSION


def test_close_refunds_treasury_and_releases_staff(session, service, owner, smithy_id, npcs):
    service.deposit(owner.id, smithy_id, 1_000)
    service.hire(owner.id, smithy_id, npcs[0].id)

    snapshot = service.close(owner.id, smithy_id)

    assert snapshot.gold == 0
    assert snapshot.detail["refund"] == 1_000
    assert snapshot.detail["owner_gold"] == 9_500
    assert snapshot.detail["status"] == BusinessStatus.CLOSED
    assert session.get(Npc, npcs[0].id).employer_id is None
    audit = session.execute(select(AuditEntry).where(AuditEntry.action == "close")).scalar_one()
    assert audit.detail == {"refund": 1_000, "released": [npcs[0].id]}
    with pytest.raises(IneligibleAction) as excinfo:
        service.close(owner.id, smithy_id)
    assert excinfo.value.reason is FailureReason.STATE


def test_hire_rules(service, owner, smithy_id, npcs, make_player):
    snapshot = service.hire(owner.id, smithy_id, npcs[0].id)
    assert snapshot.detail["employees"] == 1

    with pytest.raises(IneligibleAction) as excinfo:
        service.hire(owner.id, smithy_id, npcs[2].id)
    assert excinfo.value.reason is FailureReason.LOCATION

    rival = make_player(gold=10_000, skills={"cooking": 10})
    bakery_id = service.establish(rival.id, "bakery", "Crusts").subject_id
    with pytest.raises(IneligibleAction) as excinfo:
        service.hire(rival.id, bakery_id, npcs[0].id)
    assert excinfo.value.reason is FailureReason.REQUIREMENT


def test_hire_capacity(service, owner, session, npcs):
    bakery_id = service.establish(owner.id, "bakery", "Crusts").subject_id
    extra = Npc(name="Maud", location_type="village", location_id=1, weekly_wage=8)
    session.add(extra)
    session.commit()
    service.hire(owner.id, bakery_id, npcs[0].id)
    service.hire(owner.id, bakery_id, npcs[1].id)

    with pytest.raises(IneligibleAction) as excinfo:
        service.hire(owner.id, bakery_id, extra.id)

    assert excinfo.value.reason is FailureReason.CAPACITY


def test_fire(service, owner, smithy_id, npcs):
    service.hire(owner.id, smithy_id, npcs[0].id)

    snapshot = service.fire(owner.id, smithy_id, npcs[0].id)

    assert snapshot.detail["employees"] == 0
    with pytest.raises(NotFound):
        service.fire(owner.id, smithy_id, npcs[0].id)


def test_weekly_sweep_pays_upkeep_and_wages(service, owner, smithy_id, npcs, clock):
    service.deposit(owner.id, smithy_id, 100)
    service.hire(owner.id, smithy_id, npcs[0].id)

    assert service.process_weekly(clock.now + timedelta(days=6)) == {}
    assert service.process_weekly(clock.now + timedelta(days=7)) == {"paid": 1}
    assert service.get_business(smithy_id).treasury == 100 - 25 - 10
    assert service.process_weekly(clock.now + timedelta(days=8)) == {}


def test_weekly_sweep_suspends_then_reactivates(service, owner, smithy_id, clock):
    week = clock.now + timedelta(days=7)

    assert service.process_weekly(week) == {"suspended": 1}
    assert service.get_business(smithy_id).status == BusinessStatus.SUSPENDED

    service.deposit(owner.id, smithy_id, 30)
    assert service.process_weekly(week + timedelta(hours=1)) == {"reactivated": 1}
    business = service.get_business(smithy_id)
    assert business.status == BusinessStatus.ACTIVE
    assert business.treasury == 5


def test_weekly_sweep_skips_wages_it_cannot_cover(service, owner, smithy_id, npcs, clock):
    service.deposit(owner.id, smithy_id, 30)
    service.hire(owner.id, smithy_id, npcs[0].id)

    assert service.process_weekly(clock.now + timedelta(days=7)) == {"wages_unpaid": 1}
    assert service.get_business(smithy_id).treasury == 5
