"""SQLAlchemy models for the Hearthstead game system.

This module exports all database models and provides access to the
declarative base and seed data functions.
"""

# Audit trail
from .audit import AuditEntry
from .base import Base, TimestampCreatedMixin, TimestampMixin, utc_now

# Business models
from .business import Business, Npc

# Charter models
from .charter import Charter, CharterSignatory

# Guild models
from .guild import Guild, GuildElection, GuildElectionCandidate, GuildElectionVote, GuildMember

# Housing models
from .house import House, HouseFurniture, HouseRoom

# Player models
from .player import Player

# Religion models
from .religion import Religion, ReligionBelief, ReligionMember

# Seed data functions
from .seed_data import seed_all_demo_data, seed_npcs, seed_rulers

# Social class models
from .social import ClassRequest, SocialClassHistory

__all__ = [
    "AuditEntry",
    "Base",
    "Business",
    "Charter",
    "CharterSignatory",
    "ClassRequest",
    "Guild",
    "GuildElection",
    "GuildElectionCandidate",
    "GuildElectionVote",
    "GuildMember",
    "House",
    "HouseFurniture",
    "HouseRoom",
    "Npc",
    "Player",
    "Religion",
    "ReligionBelief",
    "ReligionMember",
    "SocialClassHistory",
    "TimestampCreatedMixin",
    "TimestampMixin",
    "seed_all_demo_data",
    "seed_npcs",
    "seed_rulers",
    "utc_now",
]
