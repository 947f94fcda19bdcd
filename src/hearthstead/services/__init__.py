"""Service layer for Hearthstead game rules.

Each service owns one kind of subject and applies its transitions inside a
transaction that holds the subject's lock:

- HouseService: Houses, rooms, furniture, upkeep and repair
- GuildService: Guild founding, membership, contributions and elections
- BusinessService: Businesses, treasuries, staff and weekly upkeep
- ReligionService: Cults, religions, beliefs and devotion
- CharterService: Settlement charters from draft to founding
- SocialClassService: Class changes, manumission and ennoblement requests

TransitionExecutor bundles them behind one ``apply(kind, action, ...)``
entry point and runs the periodic maintenance sweeps.

Production Usage:
    from hearthstead.factory import create_executor
    executor = create_executor(session)
    snapshot = executor.apply("house", "build_room", player_id, "kitchen", 0, 1)

Testing Usage:
    from hearthstead.services.house_service import HouseService

    service = HouseService(session, locks=SubjectLocks(), clock=lambda: fixed_now)
"""

from hearthstead.services.base import TransitionService
from hearthstead.services.business_service import BusinessService
from hearthstead.services.charter_service import CharterService
from hearthstead.services.executor import TransitionExecutor
from hearthstead.services.guild_service import GuildService
from hearthstead.services.house_service import HouseService
from hearthstead.services.locking import DEFAULT_LOCKS, SubjectLocks
from hearthstead.services.religion_service import ReligionService
from hearthstead.services.social_class_service import SocialClassService

__all__ = [
    "DEFAULT_LOCKS",
    "BusinessService",
    "CharterService",
    "GuildService",
    "HouseService",
    "ReligionService",
    "SocialClassService",
    "SubjectLocks",
    "TransitionExecutor",
    "TransitionService",
]
