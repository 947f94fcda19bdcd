"""Enumerations shared across the Hearthstead rules layer."""

from __future__ import annotations

from enum import StrEnum


class EffectKind(StrEnum):
    """How consumers interpret an effect value."""

    PERCENT = "percent"
    FLAT = "flat"


class FailureReason(StrEnum):
    """Fixed vocabulary of refusal reasons."""

    LEVEL = "level"
    FUNDS = "funds"
    MATERIALS = "materials"
    CAPACITY = "capacity"
    LOCATION = "location"
    REQUIREMENT = "requirement"
    PERMISSION = "permission"
    STATE = "state"
    STALE = "stale"
    NOT_FOUND = "not_found"


class LifecycleStatus(StrEnum):
    """Generic petition/election/request lifecycle."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    REJECTED = "rejected"
    EXPIRED = "expired"
    FAILED = "failed"


class SocialClass(StrEnum):
    """Social classes a player can belong to."""

    SERF = "serf"
    FREEMAN = "freeman"
    BURGHER = "burgher"
    CLERGY = "clergy"
    NOBLE = "noble"


class LocationType(StrEnum):
    """Kinds of settlement a player or organisation can sit in."""

    VILLAGE = "village"
    TOWN = "town"
    BARONY = "barony"
    KINGDOM = "kingdom"


class GuildRank(StrEnum):
    """Guild membership ranks, lowest first."""

    APPRENTICE = "apprentice"
    JOURNEYMAN = "journeyman"
    MASTER = "master"
    GUILDMASTER = "guildmaster"


class ReligionType(StrEnum):
    CULT = "cult"
    RELIGION = "religion"


class ReligionRank(StrEnum):
    """Religious ranks; cults and religions share tiers but not titles."""

    FOLLOWER = "follower"
    DEACON = "deacon"
    PRIEST = "priest"
    ARCHBISHOP = "archbishop"
    DISCIPLE = "disciple"
    ACOLYTE = "acolyte"
    APOSTLE = "apostle"
    PROPHET = "prophet"


class ReligiousAction(StrEnum):
    PRAYER = "prayer"
    DONATION = "donation"
    RITUAL = "ritual"
    PILGRIMAGE = "pilgrimage"


class BusinessStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"


class CharterType(StrEnum):
    """Settlements a charter can found."""

    VILLAGE = "village"
    TOWN = "town"
    CASTLE = "castle"


class RequestType(StrEnum):
    """How a manumission or ennoblement request is justified."""

    PURCHASE = "purchase"
    SERVICE = "service"
    PETITION = "petition"
    MARRIAGE = "marriage"


class ClassAction(StrEnum):
    """Actions gated by social class."""

    VOTE = "vote"
    JOIN_GUILD = "join_guild"
    OWN_BUSINESS = "own_business"
    OWN_PROPERTY = "own_property"
    HOLD_HIGH_OFFICE = "hold_high_office"
    TRAVEL_FREELY = "travel_freely"
