"""Service Factory for Hearthstead.

This module provides factory functions for creating service instances that
share one lock registry and rule set. Use these functions in production code
so every request contends on the same per-subject locks.

For testing, construct services directly with a private ``SubjectLocks`` and
a fixed clock.

Example:
    # Production usage
    from hearthstead.factory import create_house_service
    houses = create_house_service(session)

    # Testing usage
    from hearthstead.services.house_service import HouseService
    houses = HouseService(session, locks=SubjectLocks(), clock=lambda: now)
"""

from sqlalchemy.orm import Session

from hearthstead.domain.rules_config import DEFAULT_RULES, RulesConfig
from hearthstead.services.business_service import BusinessService
from hearthstead.services.charter_service import CharterService
from hearthstead.services.executor import TransitionExecutor
from hearthstead.services.guild_service import GuildService
from hearthstead.services.house_service import HouseService
from hearthstead.services.locking import DEFAULT_LOCKS, SubjectLocks
from hearthstead.services.religion_service import ReligionService
from hearthstead.services.social_class_service import SocialClassService


def create_house_service(
    session: Session, *, rules: RulesConfig = DEFAULT_RULES, locks: SubjectLocks | None = None
) -> HouseService:
    """Create a HouseService.

    Args:
        session: Database session
        rules: Rule constants
        locks: Lock registry (defaults to the process-wide registry)

    Returns:
        Fully initialized HouseService
    """
    return HouseService(session, rules=rules, locks=locks or DEFAULT_LOCKS)


def create_guild_service(
    session: Session, *, rules: RulesConfig = DEFAULT_RULES, locks: SubjectLocks | None = None
) -> GuildService:
    return GuildService(session, rules=rules, locks=locks or DEFAULT_LOCKS)


def create_business_service(
    session: Session, *, rules: RulesConfig = DEFAULT_RULES, locks: SubjectLocks | None = None
) -> BusinessService:
    return BusinessService(session, rules=rules, locks=locks or DEFAULT_LOCKS)


def create_religion_service(
    session: Session, *, rules: RulesConfig = DEFAULT_RULES, locks: SubjectLocks | None = None
) -> ReligionService:
    return ReligionService(session, rules=rules, locks=locks or DEFAULT_LOCKS)


def create_charter_service(
    session: Session, *, rules: RulesConfig = DEFAULT_RULES, locks: SubjectLocks | None = None
) -> CharterService:
    return CharterService(session, rules=rules, locks=locks or DEFAULT_LOCKS)


def create_social_class_service(
    session: Session, *, rules: RulesConfig = DEFAULT_RULES, locks: SubjectLocks | None = None
) -> SocialClassService:
    return SocialClassService(session, rules=rules, locks=locks or DEFAULT_LOCKS)


def create_executor(
    session: Session, *, rules: RulesConfig = DEFAULT_RULES, locks: SubjectLocks | None = None
) -> TransitionExecutor:
    """Create a TransitionExecutor wiring every subject service.

    Args:
        session: Database session
        rules: Rule constants
        locks: Lock registry shared by all services

    Returns:
        TransitionExecutor whose services share ``session`` and ``locks``
    """
    return TransitionExecutor(session, rules=rules, locks=locks or DEFAULT_LOCKS)


def create_all_services(session: Session, *, locks: SubjectLocks | None = None) -> dict:
    """Create all services sharing one lock registry.

    Returns:
        Dictionary containing houses, guilds, businesses, religions,
        charters and social services
    """
    return {
        "houses": create_house_service(session, locks=locks),
        "guilds": create_guild_service(session, locks=locks),
        "businesses": create_business_service(session, locks=locks),
        "religions": create_religion_service(session, locks=locks),
        "charters": create_charter_service(session, locks=locks),
        "social": create_social_class_service(session, locks=locks),
    }
