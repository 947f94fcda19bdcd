"""Unit tests for the guild service."""

from __future__ import annotations

from datetime import timedelta

import pytest

from hearthstead.domain.enums import FailureReason, GuildRank, LifecycleStatus
from hearthstead.domain.errors import (
    ConflictFailure,
    IneligibleAction,
    NotFound,
    ValidationFailure,
)
from hearthstead.domain.rules_config import DEFAULT_RULES
from hearthstead.models import GuildElection
from hearthstead.services.guild_service import GuildService, guild_level

TOWN = {"location_type": "town", "location_id": 1}


@pytest.fixture
def service(session, locks, clock):
    return GuildService(session, locks=locks, clock=clock)


@pytest.fixture
def founder(make_player):
    return make_player(gold=100_000, skills={"smithing": 12}, **TOWN)


@pytest.fixture
def guild_id(service, founder):
    return service.create_guild(founder.id, "Ironhands", "smithing").subject_id


def _member(make_player, service, guild_id, **fields):
    fields.setdefault("gold", 50_000)
    fields.setdefault("skills", {"smithing": 1})
    player = make_player(**TOWN, **fields)
    service.join_guild(player.id, guild_id)
    return player


def _set_rank(service, guild_id, player_id, rank):
    guild = service.get_guild(guild_id)
    next(m for m in guild.members if m.player_id == player_id).rank = rank
    service.session.commit()


def test_guild_level_thresholds():
    rules = DEFAULT_RULES.guild

    assert guild_level(0, rules) == 1
    assert guild_level(9_999, rules) == 1
    assert guild_level(10_000, rules) == 2
    assert guild_level(150_000_000, rules) == 10


def test_create_guild_makes_founder_guildmaster(service, founder):
    snapshot = service.create_guild(founder.id, "  Ironhands ", "smithing")

    guild = service.get_guild(snapshot.subject_id)
    assert guild.name == "Ironhands"
    assert guild.guildmaster_id == founder.id
    assert [(m.player_id, m.rank) for m in guild.members] == [(founder.id, "guildmaster")]
    assert founder.gold == 50_000
    assert snapshot.modifiers == {"smithing_xp_bonus": 5}
    assert snapshot.active_entries == ["smithing_training"]
    assert snapshot.detail["members"] == 1


@pytest.mark.parametrize(
    ("name", "skill", "fee"),
    [("   ", "smithing", None), ("Guild", "alchemy", None), ("Guild", "smithing", -1)],
)
def test_create_guild_validation(service, founder, name, skill, fee):
    with pytest.raises(ValidationFailure):
        service.create_guild(founder.id, name, skill, membership_fee=fee)


def test_create_guild_refusals(service, make_player, founder, guild_id):
    villager = make_player(gold=100_000, skills={"cooking": 15})
    rival = make_player(gold=100_000, skills={"smithing": 20, "crafting": 20}, **TOWN)
    novice = make_player(gold=100_000, skills={"cooking": 5}, **TOWN)

    assert service.check_create(villager.id, "Bakers", "cooking").reason is FailureReason.LOCATION
    assert service.check_create(founder.id, "Second", "smithing").reason is (
        FailureReason.REQUIREMENT
    )
    assert service.check_create(rival.id, "Ironhands", "crafting").reason is (
        FailureReason.REQUIREMENT
    )
    assert service.check_create(rival.id, "Hammers", "smithing").reason is (
        FailureReason.REQUIREMENT
    )
    assert service.check_create(novice.id, "Bakers", "cooking").reason is FailureReason.LEVEL
    assert service.check_create(rival.id, "Hammers", "crafting").can_proceed


def test_join_pays_fee_into_treasury(service, make_player, guild_id):
    player = _member(make_player, service, guild_id)

    guild = service.get_guild(guild_id)
    assert guild.treasury == 1_000
    assert player.gold == 49_000
    assert any(m.player_id == player.id and m.rank == "apprentice" for m in guild.members)


def test_join_refusals(service, make_player, guild_id, founder):
    elsewhere = make_player(gold=50_000, skills={"smithing": 3})
    broke = make_player(gold=10, skills={"smithing": 3}, **TOWN)

    assert service.check_join(elsewhere.id, guild_id).reason is FailureReason.LOCATION
    assert service.check_join(broke.id, guild_id).reason is FailureReason.FUNDS
    with pytest.raises(IneligibleAction) as excinfo:
        service.join_guild(founder.id, guild_id)
    assert excinfo.value.reason is FailureReason.REQUIREMENT

    service.set_public(founder.id, guild_id, False)
    member = make_player(gold=50_000, skills={"smithing": 1}, **TOWN)
    assert service.check_join(member.id, guild_id).reason is FailureReason.PERMISSION


def test_join_respects_member_capacity(service, make_player, guild_id):
    guild = service.get_guild(guild_id)
    guild.max_members = 2
    service.session.commit()
    _member(make_player, service, guild_id)
    late = make_player(gold=50_000, skills={"smithing": 1}, **TOWN)

    with pytest.raises(IneligibleAction) as excinfo:
        service.join_guild(late.id, guild_id)

    assert excinfo.value.reason is FailureReason.CAPACITY


def test_guildmaster_cannot_leave(service, make_player, guild_id, founder):
    player = _member(make_player, service, guild_id)

    snapshot = service.leave_guild(player.id, guild_id)
    assert snapshot.detail["members"] == 1

    with pytest.raises(IneligibleAction) as excinfo:
        service.leave_guild(founder.id, guild_id)
    assert excinfo.value.reason is FailureReason.PERMISSION


def test_donation_levels_up_the_guild(service, founder, guild_id):
    with pytest.raises(ValidationFailure):
        service.donate(founder.id, guild_id, 5)

    snapshot = service.donate(founder.id, guild_id, 10_000)

    assert snapshot.detail["level"] == 2
    assert snapshot.detail["leveled_up"] is True
    assert snapshot.gold == 10_000
    assert snapshot.modifiers == {"shop_discount": 5, "smithing_xp_bonus": 5}
    assert service.get_modifiers(guild_id).as_dict() == snapshot.modifiers


def test_donation_needs_funds(service, founder, guild_id):
    with pytest.raises(IneligibleAction) as excinfo:
        service.donate(founder.id, guild_id, 60_000)

    assert excinfo.value.reason is FailureReason.FUNDS
    assert service.get_guild(guild_id).treasury == 0


def test_pay_dues_extends_paid_period(service, founder, guild_id, clock):
    snapshot = service.pay_dues(founder.id, guild_id)

    assert snapshot.detail["amount"] == 100
    member = service.get_guild(guild_id).members[0]
    expected = clock.now + timedelta(days=14)
    assert member.dues_paid_until.replace(tzinfo=None) == expected.replace(tzinfo=None)


def test_promotion_requires_tenure_and_contribution(
    service, make_player, guild_id, founder, clock
):
    player = _member(make_player, service, guild_id)

    with pytest.raises(IneligibleAction, match="2 years"):
        service.promote_member(founder.id, guild_id, player.id)

    service.donate(player.id, guild_id, 5_000)
    clock.now = clock.now + timedelta(days=14)
    snapshot = service.promote_member(founder.id, guild_id, player.id)

    assert snapshot.detail["rank"] == "journeyman"
    with pytest.raises(IneligibleAction) as excinfo:
        service.promote_member(player.id, guild_id, player.id)
    assert excinfo.value.reason is FailureReason.PERMISSION


def test_settings_are_guildmaster_only(service, make_player, guild_id, founder):
    player = _member(make_player, service, guild_id)

    with pytest.raises(IneligibleAction):
        service.set_membership_fee(player.id, guild_id, 10)
    with pytest.raises(ValidationFailure):
        service.set_weekly_dues(founder.id, guild_id, 1_000_000)

    service.set_membership_fee(founder.id, guild_id, 2_500)
    service.set_weekly_dues(founder.id, guild_id, 250)
    guild = service.get_guild(guild_id)
    assert (guild.membership_fee, guild.weekly_dues) == (2_500, 250)


def _election_setup(service, make_player, guild_id):
    first = _member(make_player, service, guild_id)
    second = _member(make_player, service, guild_id)
    voter = _member(make_player, service, guild_id)
    for player in (first, second, voter):
        _set_rank(service, guild_id, player.id, GuildRank.MASTER)
    return first, second, voter


def test_full_election_installs_winner(service, make_player, guild_id, founder, clock):
    first, second, voter = _election_setup(service, make_player, guild_id)

    election_id = service.start_election(first.id, guild_id).subject_id
    with pytest.raises(ConflictFailure):
        service.start_election(second.id, guild_id)
    service.declare_candidacy(first.id, election_id)
    service.declare_candidacy(second.id, election_id)

    with pytest.raises(ConflictFailure):
        service.vote(voter.id, election_id, first.id)

    clock.now = clock.now + timedelta(days=3)
    assert service.advance_elections(clock.now) == {"pending": 1}
    with pytest.raises(ConflictFailure):
        service.declare_candidacy(voter.id, election_id)

    service.vote(voter.id, election_id, second.id)
    service.vote(founder.id, election_id, second.id)
    snapshot = service.vote(first.id, election_id, first.id)
    assert snapshot.detail["votes"] == 3
    with pytest.raises(IneligibleAction):
        service.vote(voter.id, election_id, first.id)
    with pytest.raises(NotFound):
        service.vote(second.id, election_id, voter.id)

    clock.now = clock.now + timedelta(days=4)
    assert service.advance_elections(clock.now) == {"active": 1}

    guild = service.get_guild(guild_id)
    ranks = {m.player_id: m.rank for m in guild.members}
    assert guild.guildmaster_id == second.id
    assert ranks[second.id] == "guildmaster"
    assert ranks[founder.id] == "master"
    election = service.session.get(GuildElection, election_id)
    assert election.status == LifecycleStatus.ACTIVE
    assert election.winner_id == second.id


def test_tie_goes_to_first_candidate(service, make_player, guild_id, clock):
    first, second, voter = _election_setup(service, make_player, guild_id)
    election_id = service.start_election(voter.id, guild_id).subject_id
    service.declare_candidacy(second.id, election_id)
    service.declare_candidacy(first.id, election_id)

    clock.now = clock.now + timedelta(days=3)
    service.advance_elections(clock.now)
    service.vote(voter.id, election_id, first.id)
    service.vote(first.id, election_id, second.id)
    clock.now = clock.now + timedelta(days=4)
    service.advance_elections(clock.now)

    assert service.get_guild(guild_id).guildmaster_id == second.id


def test_leaving_withdraws_candidacy_and_ballots(
    service, make_player, guild_id, founder, clock
):
    first, second, voter = _election_setup(service, make_player, guild_id)
    election_id = service.start_election(voter.id, guild_id).subject_id
    service.declare_candidacy(first.id, election_id)
    service.declare_candidacy(second.id, election_id)
    clock.now = clock.now + timedelta(days=3)
    service.advance_elections(clock.now)
    service.vote(voter.id, election_id, first.id)
    service.vote(first.id, election_id, first.id)
    service.vote(founder.id, election_id, second.id)

    service.leave_guild(first.id, guild_id)

    election = service.session.get(GuildElection, election_id)
    assert [c.player_id for c in election.candidates] == [second.id]
    assert [v.voter_id for v in election.votes] == [founder.id]

    clock.now = clock.now + timedelta(days=4)
    assert service.advance_elections(clock.now) == {"active": 1}
    assert service.get_guild(guild_id).guildmaster_id == second.id


def test_election_fails_when_no_voted_candidate_remains(
    service, make_player, guild_id, founder, clock
):
    first, second, voter = _election_setup(service, make_player, guild_id)
    stalled = service.start_election(voter.id, guild_id).subject_id
    service.declare_candidacy(first.id, stalled)
    clock.now = clock.now + timedelta(days=3)
    service.advance_elections(clock.now)
    service.vote(voter.id, stalled, first.id)

    guild = service.get_guild(guild_id)
    guild.members.remove(next(m for m in guild.members if m.player_id == first.id))
    service.session.commit()

    clock.now = clock.now + timedelta(days=4)
    assert service.advance_elections(clock.now) == {"failed": 1}
    assert service.session.get(GuildElection, stalled).status == LifecycleStatus.FAILED
    assert service.get_guild(guild_id).guildmaster_id == founder.id

    follow_up = service.start_election(second.id, guild_id).subject_id
    service.declare_candidacy(second.id, follow_up)
    assert service.advance_elections(clock.now + timedelta(days=3)) == {"pending": 1}


def test_elections_without_candidates_or_votes_close(service, make_player, guild_id, clock):
    first, _, _ = _election_setup(service, make_player, guild_id)
    empty = service.start_election(first.id, guild_id).subject_id
    clock.now = clock.now + timedelta(days=3)

    assert service.advance_elections(clock.now) == {"rejected": 1}
    assert service.session.get(GuildElection, empty).status == LifecycleStatus.REJECTED

    silent = service.start_election(first.id, guild_id).subject_id
    service.declare_candidacy(first.id, silent)
    assert service.advance_elections(clock.now + timedelta(days=3)) == {"pending": 1}
    assert service.advance_elections(clock.now + timedelta(days=7)) == {"expired": 1}


def test_apprentices_cannot_call_elections(service, make_player, guild_id):
    player = _member(make_player, service, guild_id)

    with pytest.raises(IneligibleAction) as excinfo:
        service.start_election(player.id, guild_id)

    assert excinfo.value.reason is FailureReason.PERMISSION
