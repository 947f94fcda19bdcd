"""Tests for the transition executor and the service factory."""

from __future__ import annotations

from datetime import timedelta

import pytest

from hearthstead import factory
from hearthstead.domain.enums import FailureReason
from hearthstead.domain.errors import IneligibleAction, NotFound, ValidationFailure
from hearthstead.services.executor import TransitionExecutor


@pytest.fixture
def executor(session, locks, clock):
    return TransitionExecutor(session, locks=locks, clock=clock)


def test_every_action_is_listed(executor):
    actions = executor.actions

    assert ("house", "purchase") in actions
    assert ("election", "vote") in actions
    assert ("class_request", "approve") in actions
    assert actions == sorted(actions)


def test_apply_dispatches_to_the_owning_service(executor, make_player):
    player = make_player(gold=60_000, title_tier=2, skills={"construction": 1})

    snapshot = executor.apply("house", "purchase", player_id=player.id, expected_gold=60_000)

    assert snapshot.kind == "house"
    assert snapshot.gold == 10_000
    assert executor.houses.get_house(player.id).tier == "cottage"


def test_apply_propagates_refusals(executor, make_player):
    player = make_player(gold=10, title_tier=2, skills={"construction": 1})

    with pytest.raises(IneligibleAction) as excinfo:
        executor.apply("house", "purchase", player_id=player.id)

    assert excinfo.value.reason is FailureReason.FUNDS


def test_unknown_actions_are_not_found(executor):
    with pytest.raises(NotFound):
        executor.apply("castle", "storm")
    with pytest.raises(NotFound):
        executor.check("house", "demolish_room")


def test_bad_parameters_are_validation_failures(executor, make_player):
    player = make_player()

    with pytest.raises(ValidationFailure, match="house.purchase"):
        executor.apply("house", "purchase", player_id=player.id, colour="red")
    with pytest.raises(ValidationFailure):
        executor.check("guild", "join")


def test_parameters_are_type_checked(executor, make_player):
    player = make_player(gold=60_000, title_tier=2, skills={"construction": 1})
    executor.apply("house", "purchase", player_id=player.id)

    with pytest.raises(ValidationFailure, match="house.build_room") as excinfo:
        executor.apply("house", "build_room", player_id=player.id, room_key="kitchen",
                       x="0", y=0)
    assert "x" in excinfo.value.message
    with pytest.raises(ValidationFailure, match="guild.set_public"):
        executor.apply("guild", "set_public", actor_id=player.id, guild_id=1, is_public="yes")
    with pytest.raises(ValidationFailure, match="house.build_room"):
        executor.check("house", "build_room", player_id=player.id, room_key="kitchen",
                       x=0.5, y=0)
    assert executor.houses.get_house(player.id).rooms == []


def test_check_does_not_mutate(executor, make_player):
    player = make_player(gold=10, skills={"smithing": 20})

    result = executor.check("business", "establish", owner_id=player.id, type_key="smithy")

    assert not result.can_proceed
    assert result.reason is FailureReason.FUNDS
    assert executor.businesses.businesses_of(player.id) == []


def test_run_maintenance_reports_every_sweep(executor, make_player, clock):
    player = make_player(gold=60_000, title_tier=2, skills={"construction": 1})
    executor.apply("house", "purchase", player_id=player.id)

    results = executor.run_maintenance(clock.now + timedelta(days=8))

    assert set(results) == {"houses", "businesses", "charters", "elections", "class_requests"}
    assert results["houses"] == {"degraded": 1, "abandoned": 0}
    assert results["charters"] == 0


def test_run_maintenance_survives_a_failing_sweep(executor, monkeypatch, clock):
    def explode(now):
        raise RuntimeError("boom")

    monkeypatch.setattr(executor.charters, "expire_due", explode)

    results = executor.run_maintenance(clock.now)

    assert results["charters"] is None
    assert results["class_requests"] == 0


def test_factory_shares_one_lock_registry(session, locks):
    services = factory.create_all_services(session, locks=locks)

    assert set(services) == {"houses", "guilds", "businesses", "religions", "charters", "social"}
    assert all(service.locks is locks for service in services.values())
    assert factory.create_executor(session, locks=locks).houses.locks is locks
