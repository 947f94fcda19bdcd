"""Unit tests for the housing service."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from hearthstead.domain.enums import FailureReason
from hearthstead.domain.errors import (
    ConflictFailure,
    IneligibleAction,
    NotFound,
    ValidationFailure,
)
from hearthstead.models import AuditEntry, House
from hearthstead.services.house_service import HouseService

RICH = 10_000_000


@pytest.fixture
def service(session, locks, clock):
    return HouseService(session, locks=locks, clock=clock)


@pytest.fixture
def homeowner(make_player, service):
    player = make_player(
        gold=RICH,
        title_tier=3,
        skills={"construction": 25},
        inventory={"Plank": 10, "Nails": 6, "Oak Plank": 3, "Steel Bar": 2},
    )
    service.purchase_house(player.id)
    return player


def test_purchase_house_debits_gold_and_audits(session, make_player, service, clock):
    player = make_player(gold=60_000, title_tier=2, skills={"construction": 1})

    snapshot = service.purchase_house(player.id, expected_gold=60_000)

    assert snapshot.kind == "house"
    assert snapshot.gold == 10_000
    assert snapshot.active_entries == []
    house = service.get_house(player.id)
    assert house.tier == "cottage"
    assert house.condition == 100
    assert house.upkeep_due_at.replace(tzinfo=None) == (clock.now + timedelta(days=7)).replace(
        tzinfo=None
    )
    audit = session.execute(select(AuditEntry).where(AuditEntry.action == "purchase")).scalar_one()
    assert audit.subject_id == house.id
    assert audit.detail == {"cost": 50_000}


def test_purchase_requires_title(make_player, service):
    player = make_player(gold=60_000, title_tier=1, skills={"construction": 1})

    with pytest.raises(IneligibleAction) as excinfo:
        service.purchase_house(player.id)

    assert excinfo.value.reason is FailureReason.REQUIREMENT
    assert player.gold == 60_000


def test_second_purchase_hits_capacity(homeowner, service):
    with pytest.raises(IneligibleAction) as excinfo:
        service.purchase_house(homeowner.id)

    assert excinfo.value.reason is FailureReason.CAPACITY


def test_stale_balance_is_a_conflict(make_player, service):
    player = make_player(gold=10, title_tier=2, skills={"construction": 1})

    with pytest.raises(ConflictFailure) as excinfo:
        service.purchase_house(player.id, expected_gold=50_000)

    assert excinfo.value.reason is FailureReason.STALE


def test_check_purchase_does_not_change_state(make_player, service):
    player = make_player(gold=10, title_tier=2, skills={"construction": 1})

    result = service.check_purchase(player.id)

    assert not result.can_proceed
    assert result.reason is FailureReason.FUNDS
    assert result.cost == 50_000
    assert player.gold == 10


def test_unknown_player_is_not_found(service):
    with pytest.raises(NotFound):
        service.purchase_house(999)


def test_build_rooms_applies_adjacency_bonus(homeowner, service):
    service.build_room(homeowner.id, "kitchen", 0, 0)
    snapshot = service.build_room(homeowner.id, "dining_room", 0, 1)

    assert snapshot.active_entries == ["dining_room", "kitchen"]
    assert snapshot.modifiers == {"cooking_xp_bonus": 3}
    assert snapshot.gold == RICH - 50_000 - 50_000 - 75_000
    assert service.get_modifiers(homeowner.id).as_dict() == {"cooking_xp_bonus": 3}


@pytest.mark.parametrize(
    ("room", "cell", "reason"),
    [
        ("parlour", (3, 0), FailureReason.LOCATION),
        ("parlour", (0, 0), FailureReason.LOCATION),
        ("chapel", (2, 2), FailureReason.LEVEL),
    ],
)
def test_build_room_refusals(homeowner, service, room, cell, reason):
    service.build_room(homeowner.id, "kitchen", 0, 0)

    with pytest.raises(IneligibleAction) as excinfo:
        service.build_room(homeowner.id, room, *cell)

    assert excinfo.value.reason is reason
    assert len(service.get_house(homeowner.id).rooms) == 1


def test_same_room_type_can_be_built_twice(homeowner, service):
    service.build_room(homeowner.id, "kitchen", 0, 0)
    service.build_room(homeowner.id, "dining_room", 1, 0)

    snapshot = service.build_room(homeowner.id, "kitchen", 0, 1)

    assert snapshot.active_entries == ["dining_room", "kitchen", "kitchen"]
    assert snapshot.modifiers == {"cooking_xp_bonus": 3}
    assert [r.room_type for r in service.get_house(homeowner.id).rooms] == [
        "kitchen", "dining_room", "kitchen"
    ]


def test_room_capacity(homeowner, service):
    for index, room in enumerate(["parlour", "kitchen", "bedroom"]):
        service.build_room(homeowner.id, room, index, 0)

    result = service.check_room(homeowner.id, "dining_room", 0, 1)

    assert result.reason is FailureReason.CAPACITY


def test_build_furniture_consumes_materials_and_awards_xp(homeowner, service):
    room_id = service.build_room(homeowner.id, "kitchen", 0, 0).detail["room_id"]

    snapshot = service.build_furniture(homeowner.id, room_id, "stove", "firepit")

    assert snapshot.modifiers == {"burn_reduction": 25}
    assert "kitchen.stove" in snapshot.active_entries
    assert snapshot.detail == {"xp": 50, "replaced": None}
    assert homeowner.inventory["Plank"] == 5
    assert homeowner.inventory["Nails"] == 3
    assert homeowner.experience["construction"] == 50


def test_furniture_replacement_swaps_the_effect(homeowner, service):
    room_id = service.build_room(homeowner.id, "kitchen", 0, 0).detail["room_id"]
    service.build_furniture(homeowner.id, room_id, "stove", "firepit")

    snapshot = service.build_furniture(homeowner.id, room_id, "stove", "iron_stove")

    assert snapshot.modifiers == {"burn_reduction": 45}
    assert snapshot.detail["replaced"] == "firepit"
    room = service.get_house(homeowner.id).rooms[0]
    assert [piece.option_key for piece in room.furniture] == ["iron_stove"]
    assert "Oak Plank" not in homeowner.inventory


def test_furniture_without_materials_leaves_inventory_untouched(make_player, service):
    player = make_player(
        gold=RICH, title_tier=2, skills={"construction": 10}, inventory={"Plank": 5}
    )
    service.purchase_house(player.id)
    room_id = service.build_room(player.id, "kitchen", 0, 0).detail["room_id"]

    with pytest.raises(IneligibleAction) as excinfo:
        service.build_furniture(player.id, room_id, "stove", "firepit")

    assert excinfo.value.reason is FailureReason.MATERIALS
    assert player.inventory == {"Plank": 5}
    assert player.experience == {}


def test_demolish_furniture_returns_half_the_materials(homeowner, service):
    room_id = service.build_room(homeowner.id, "kitchen", 0, 0).detail["room_id"]
    service.build_furniture(homeowner.id, room_id, "stove", "firepit")

    snapshot = service.demolish_furniture(homeowner.id, room_id, "stove")

    assert snapshot.detail["materials"] == {"Plank": 2, "Nails": 1}
    assert snapshot.modifiers == {}
    assert homeowner.inventory["Plank"] == 7
    with pytest.raises(NotFound):
        service.demolish_furniture(homeowner.id, room_id, "stove")


def test_demolish_room_refunds_gold_and_furniture(homeowner, service):
    room_id = service.build_room(homeowner.id, "kitchen", 0, 0).detail["room_id"]
    service.build_furniture(homeowner.id, room_id, "stove", "firepit")
    gold_before = homeowner.gold

    snapshot = service.demolish_room(homeowner.id, room_id)

    assert snapshot.detail["gold_refund"] == 25_000
    assert snapshot.detail["materials"] == {"Plank": 2, "Nails": 1}
    assert homeowner.gold == gold_before + 25_000
    assert service.get_house(homeowner.id).rooms == []


def test_modifier_sources_break_down_totals(homeowner, service):
    room_id = service.build_room(homeowner.id, "kitchen", 0, 0).detail["room_id"]
    service.build_room(homeowner.id, "dining_room", 1, 0)
    service.build_furniture(homeowner.id, room_id, "stove", "firepit")

    sources = {(s.source, s.effect_key, s.value) for s in service.get_modifier_sources(homeowner.id)}

    assert ("Kitchen - Firepit", "burn_reduction", 25) in sources
    assert (
        "Adjacency: Kitchen + Dining Room: +3% Cooking XP",
        "cooking_xp_bonus",
        3,
    ) in sources


def test_upgrade_charges_the_difference(homeowner, service):
    snapshot = service.upgrade_house(homeowner.id)

    assert snapshot.detail["cost"] == 200_000
    assert service.get_house(homeowner.id).tier == "house"


def test_upgrade_requires_title_for_next_tier(make_player, service):
    player = make_player(gold=RICH, title_tier=2, skills={"construction": 30})
    service.purchase_house(player.id)

    with pytest.raises(IneligibleAction) as excinfo:
        service.upgrade_house(player.id)

    assert excinfo.value.reason is FailureReason.REQUIREMENT


def test_repair_and_upkeep(homeowner, service, clock):
    with pytest.raises(IneligibleAction):
        service.repair_house(homeowner.id)

    house = service.get_house(homeowner.id)
    house.condition = 70
    service.session.commit()
    gold_before = homeowner.gold

    snapshot = service.repair_house(homeowner.id)

    assert snapshot.detail["cost"] == 300
    assert homeowner.gold == gold_before - 300
    assert service.get_house(homeowner.id).condition == 100

    clock.now = clock.now + timedelta(days=3)
    service.pay_upkeep(homeowner.id)
    due = service.get_house(homeowner.id).upkeep_due_at
    assert due.replace(tzinfo=None) == (clock.now + timedelta(days=7)).replace(tzinfo=None)


def test_overdue_upkeep_degrades_then_abandons(homeowner, service, clock):
    later = clock.now + timedelta(days=8)

    assert service.process_upkeep_degradation(clock.now) == {"degraded": 0, "abandoned": 0}
    assert service.process_upkeep_degradation(later) == {"degraded": 1, "abandoned": 0}
    assert service.get_house(homeowner.id).condition == 90

    house = service.get_house(homeowner.id)
    house.condition = 10
    service.session.commit()

    assert service.process_upkeep_degradation(later) == {"degraded": 0, "abandoned": 1}
    with pytest.raises(NotFound):
        service.get_house(homeowner.id)


def test_storage_deposit_and_withdraw(homeowner, service):
    snapshot = service.deposit_item(homeowner.id, "Plank", 6)

    assert snapshot.detail == {"storage": {"Plank": 6}, "slots_used": 1}
    assert homeowner.inventory["Plank"] == 4
    service.deposit_item(homeowner.id, "Plank", 4)
    assert "Plank" not in homeowner.inventory

    snapshot = service.withdraw_item(homeowner.id, "Plank", 3)

    assert snapshot.detail["storage"] == {"Plank": 7}
    assert homeowner.inventory["Plank"] == 3
    service.withdraw_item(homeowner.id, "Plank", 7)
    assert service.get_house(homeowner.id).storage == {}
    assert homeowner.inventory["Plank"] == 10


def test_storage_refusals(homeowner, service):
    with pytest.raises(IneligibleAction) as excinfo:
        service.deposit_item(homeowner.id, "Nails", 7)
    assert excinfo.value.reason is FailureReason.MATERIALS

    with pytest.raises(IneligibleAction) as excinfo:
        service.withdraw_item(homeowner.id, "Nails", 1)
    assert excinfo.value.reason is FailureReason.MATERIALS

    with pytest.raises(ValidationFailure):
        service.deposit_item(homeowner.id, "Nails", 0)
    assert homeowner.inventory["Nails"] == 6


def test_storage_slots_are_capacity_bounded(homeowner, service):
    house = service.get_house(homeowner.id)
    capacity = service.storage_capacity(house)
    assert capacity == 100
    house.storage = {f"Trinket {index}": 1 for index in range(capacity)}
    service.session.commit()

    with pytest.raises(IneligibleAction) as excinfo:
        service.deposit_item(homeowner.id, "Nails", 1)
    assert excinfo.value.reason is FailureReason.CAPACITY
    assert homeowner.inventory["Nails"] == 6

    service.withdraw_item(homeowner.id, "Trinket 0", 1)
    service.deposit_item(homeowner.id, "Nails", 1)
    assert len(service.get_house(homeowner.id).storage) == capacity


def test_storage_closes_in_poor_condition(homeowner, service):
    service.deposit_item(homeowner.id, "Plank", 2)
    house = service.get_house(homeowner.id)
    house.condition = 25
    service.session.commit()

    with pytest.raises(IneligibleAction, match="poor condition"):
        service.withdraw_item(homeowner.id, "Plank", 2)

    house.condition = 26
    service.session.commit()
    service.withdraw_item(homeowner.id, "Plank", 2)
    assert homeowner.inventory["Plank"] == 10
