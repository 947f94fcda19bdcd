"""Seed data for a small demonstration realm.

Creates one kingdom ruled by a king, one barony ruled by a baron, and a pool of
NPC workers in the starting town and village. Safe to call repeatedly.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from .business import Npc
from .player import Player

DEMO_KINGDOM_ID = 1
DEMO_BARONY_ID = 1
DEMO_TOWN_ID = 1
DEMO_VILLAGE_ID = 2


def seed_rulers(session: Session) -> None:
    """Seed the demo king and baron.

    Args:
        session: SQLAlchemy session to use for database operations
    """
    result = session.execute(select(Player).where(Player.ruled_kingdom_id.is_not(None)).limit(1))
    if result.scalar_one_or_none() is not None:
        return

    rulers = [
        Player(
            username="king_aldric",
            gold=5_000_000,
            social_class="noble",
            title_tier=6,
            location_type="town",
            location_id=DEMO_TOWN_ID,
            kingdom_id=DEMO_KINGDOM_ID,
            ruled_kingdom_id=DEMO_KINGDOM_ID,
        ),
        Player(
            username="baron_hollis",
            gold=500_000,
            social_class="noble",
            title_tier=4,
            location_type="barony",
            location_id=DEMO_BARONY_ID,
            kingdom_id=DEMO_KINGDOM_ID,
            ruled_barony_id=DEMO_BARONY_ID,
        ),
    ]
    session.add_all(rulers)
    session.commit()


def seed_npcs(session: Session) -> None:
    """Seed hireable NPC workers in the demo town and village."""
    result = session.execute(select(Npc).limit(1))
    if result.scalar_one_or_none() is not None:
        return

    names = ["Wat", "Agnes", "Hob", "Maud", "Piers", "Isolde"]
    npcs = [
        Npc(name=name, location_type="town", location_id=DEMO_TOWN_ID, weekly_wage=10)
        for name in names[:3]
    ] + [
        Npc(name=name, location_type="village", location_id=DEMO_VILLAGE_ID, weekly_wage=8)
        for name in names[3:]
    ]
    session.add_all(npcs)
    session.commit()


def seed_all_demo_data(session: Session) -> None:
    """Seed rulers and NPCs."""
    seed_rulers(session)
    seed_npcs(session)
