from .business import BusinessRead, NpcRead
from .charter import CharterRead
from .guild import GuildMemberRead, GuildRead
from .house import FurnitureRead, HouseRead, RoomRead
from .player import PlayerCreate, PlayerRead
from .religion import ReligionMemberRead, ReligionRead
from .snapshot import EligibilityRead, ModifierSourceRead, SnapshotRead

__all__ = [
    "BusinessRead",
    "CharterRead",
    "EligibilityRead",
    "FurnitureRead",
    "GuildMemberRead",
    "GuildRead",
    "HouseRead",
    "ModifierSourceRead",
    "NpcRead",
    "PlayerCreate",
    "PlayerRead",
    "ReligionMemberRead",
    "ReligionRead",
    "RoomRead",
    "SnapshotRead",
]
