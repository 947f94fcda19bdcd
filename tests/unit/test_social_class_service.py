"""Unit tests for the social class service."""

from __future__ import annotations

from datetime import timedelta

import pytest

from hearthstead.domain.enums import FailureReason, LifecycleStatus, ReligionRank, SocialClass
from hearthstead.domain.errors import (
    ConflictFailure,
    IneligibleAction,
    NotFound,
    ValidationFailure,
)
from hearthstead.services.religion_service import ReligionService
from hearthstead.services.social_class_service import SocialClassService

S = LifecycleStatus


@pytest.fixture
def service(session, locks, clock):
    return SocialClassService(session, locks=locks, clock=clock)


@pytest.fixture
def baron(make_player):
    return make_player(gold=0, social_class="noble", ruled_barony_id=7, kingdom_id=1)


@pytest.fixture
def king(make_player):
    return make_player(gold=0, social_class="noble", ruled_kingdom_id=1, kingdom_id=1)


@pytest.fixture
def serf(service, make_player, baron):
    player = make_player(gold=6_000, kingdom_id=1)
    service.enserf(player.id, 7, "debt", granted_by=baron.id)
    return player


def test_class_permissions(service, make_player):
    serf = make_player(social_class="serf")
    burgher = make_player(social_class="burgher")

    assert not service.can_perform_action(serf.id, "vote")
    assert service.can_perform_action(burgher.id, "own_business")
    assert not service.can_perform_action(burgher.id, "hold_high_office")
    assert service.can_perform_action(serf.id, "bake_bread")


def test_change_class_records_history(service, make_player):
    player = make_player()

    snapshot = service.change_class(player.id, "clergy", "ordained")

    assert snapshot.detail["changed"] is True
    assert service.change_class(player.id, "clergy", "again").detail["changed"] is False
    history = service.history(player.id)
    assert [(h.old_class, h.new_class, h.reason) for h in history] == [
        ("freeman", "clergy", "ordained")
    ]
    with pytest.raises(ValidationFailure):
        service.change_class(player.id, "peasant", "typo")


def test_enserf_binds_to_barony(service, serf, make_player):
    assert serf.social_class == SocialClass.SERF
    assert serf.bound_to_barony_id == 7
    assert serf.labor_days_owed == 10

    noble = make_player(social_class="noble")
    with pytest.raises(IneligibleAction):
        service.enserf(noble.id, 7, "rebellion")

    service.change_class(serf.id, "freeman", "pardon")
    assert serf.bound_to_barony_id is None
    assert serf.labor_days_owed == 0


def test_become_burgher(service, make_player, serf):
    townsman = make_player(location_type="town")
    villager = make_player()

    assert service.become_burgher(townsman.id).detail["social_class"] == SocialClass.BURGHER
    with pytest.raises(IneligibleAction) as excinfo:
        service.become_burgher(townsman.id)
    assert excinfo.value.reason is FailureReason.REQUIREMENT
    with pytest.raises(IneligibleAction) as excinfo:
        service.become_burgher(villager.id)
    assert excinfo.value.reason is FailureReason.LOCATION
    with pytest.raises(IneligibleAction):
        service.become_burgher(serf.id)


def test_join_clergy_needs_religious_office(service, session, locks, clock, make_player, serf):
    religions = ReligionService(session, locks=locks, clock=clock)
    prophet = make_player()
    cult_id = religions.found_cult(prophet.id, "The Ember Circle").subject_id
    follower = make_player()
    religions.join(follower.id, cult_id, invited_by=prophet.id)
    layman = make_player()

    with pytest.raises(IneligibleAction) as excinfo:
        service.join_clergy(follower.id)
    assert excinfo.value.reason is FailureReason.PERMISSION
    with pytest.raises(IneligibleAction) as excinfo:
        service.join_clergy(layman.id)
    assert excinfo.value.reason is FailureReason.PERMISSION
    with pytest.raises(IneligibleAction) as excinfo:
        service.join_clergy(serf.id)
    assert excinfo.value.reason is FailureReason.REQUIREMENT

    snapshot = service.join_clergy(prophet.id)
    assert snapshot.detail["social_class"] == SocialClass.CLERGY
    assert snapshot.detail["religion_rank"] == ReligionRank.PROPHET
    assert service.history(prophet.id)[-1].reason == "joined_clergy"
    with pytest.raises(IneligibleAction) as excinfo:
        service.join_clergy(prophet.id)
    assert excinfo.value.reason is FailureReason.REQUIREMENT

    religions.membership_of(follower.id).rank = ReligionRank.ACOLYTE
    session.commit()
    assert service.join_clergy(follower.id).detail["social_class"] == SocialClass.CLERGY


def test_purchased_manumission_pays_the_baron(service, serf, baron):
    snapshot = service.request_manumission(serf.id, "purchase", reason="Saved for years")

    assert snapshot.gold == 5_000
    assert snapshot.detail["status"] == S.PENDING
    assert snapshot.detail["approver_id"] == baron.id
    assert serf.gold == 6_000
    assert [r.id for r in service.pending_for_approver(baron.id)] == [snapshot.subject_id]

    result = service.approve_request(baron.id, snapshot.subject_id, message="Go in peace")

    assert result.detail["status"] == S.ACTIVE
    assert result.detail["requester_gold"] == 1_000
    assert baron.gold == 5_000
    assert serf.social_class == SocialClass.FREEMAN
    assert serf.bound_to_barony_id is None
    assert service.get_request(snapshot.subject_id).response_message == "Go in peace"
    assert service.history(serf.id)[-1].reason == "manumission_purchase"


def test_manumission_refusals(service, serf, make_player):
    freeman = make_player()

    with pytest.raises(ValidationFailure):
        service.request_manumission(serf.id, "marriage")
    with pytest.raises(IneligibleAction) as excinfo:
        service.request_manumission(freeman.id, "petition")
    assert excinfo.value.reason is FailureReason.REQUIREMENT

    service.request_manumission(serf.id, "petition")
    with pytest.raises(IneligibleAction) as excinfo:
        service.request_manumission(serf.id, "service")
    assert excinfo.value.reason is FailureReason.REQUIREMENT


def test_manumission_needs_a_baron(service, make_player):
    orphan = make_player(gold=10_000)
    service.enserf(orphan.id, 99, "debt")

    with pytest.raises(NotFound):
        service.request_manumission(orphan.id, "purchase")


def test_purchase_requires_funds_up_front(service, make_player, baron):
    poor = make_player(gold=10)
    service.enserf(poor.id, 7, "debt")

    with pytest.raises(IneligibleAction) as excinfo:
        service.request_manumission(poor.id, "purchase")

    assert excinfo.value.reason is FailureReason.FUNDS


def test_approval_fails_atomically_when_gold_is_gone(service, session, serf, baron):
    request_id = service.request_manumission(serf.id, "purchase").subject_id
    serf.gold = 100
    session.commit()

    with pytest.raises(IneligibleAction) as excinfo:
        service.approve_request(baron.id, request_id)

    assert excinfo.value.reason is FailureReason.FUNDS
    assert service.get_request(request_id).status == S.PENDING
    assert serf.social_class == SocialClass.SERF
    assert baron.gold == 0


def test_ennoblement_by_marriage(service, make_player, king):
    spouse = make_player(social_class="noble")
    suitor = make_player(kingdom_id=1)
    commoner = make_player()

    with pytest.raises(IneligibleAction):
        service.request_ennoblement(suitor.id, "marriage", spouse_id=commoner.id)

    request_id = service.request_ennoblement(
        suitor.id, "marriage", spouse_id=spouse.id
    ).subject_id
    snapshot = service.approve_request(king.id, request_id, title="Baronet")

    assert snapshot.detail["title_granted"] == "Baronet"
    assert suitor.social_class == SocialClass.NOBLE
    assert suitor.title_tier == 2


def test_ennoblement_refusals(service, make_player, king):
    cleric = make_player(social_class="clergy", kingdom_id=1)
    stateless = make_player()

    with pytest.raises(IneligibleAction):
        service.request_ennoblement(cleric.id, "service")
    with pytest.raises(ValidationFailure):
        service.request_ennoblement(cleric.id, "petition")
    with pytest.raises(NotFound):
        service.request_ennoblement(stateless.id, "service")


def test_deny_and_decision_rules(service, serf, baron, king):
    request_id = service.request_manumission(serf.id, "petition").subject_id

    with pytest.raises(IneligibleAction) as excinfo:
        service.approve_request(king.id, request_id)
    assert excinfo.value.reason is FailureReason.PERMISSION

    snapshot = service.deny_request(baron.id, request_id, message="No")
    assert snapshot.detail["status"] == S.REJECTED
    with pytest.raises(ConflictFailure):
        service.approve_request(baron.id, request_id)


def test_requests_expire_after_window(service, serf, baron, clock):
    request_id = service.request_manumission(serf.id, "petition").subject_id

    assert service.expire_requests(clock.now + timedelta(days=13)) == 0
    clock.now = clock.now + timedelta(days=14)
    with pytest.raises(ConflictFailure, match="response"):
        service.approve_request(baron.id, request_id)
    assert service.get_request(request_id).status == S.PENDING
    assert service.expire_requests() == 1
    assert service.get_request(request_id).status == S.EXPIRED


def test_class_statistics(service, make_player, serf, baron):
    make_player()

    assert service.class_statistics() == {"freeman": 1, "noble": 1, "serf": 1}
