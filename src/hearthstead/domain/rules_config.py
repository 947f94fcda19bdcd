"""Declarative rule configuration for the Hearthstead domain layer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class HousingRules:
    """Upkeep, repair and refund constants for player houses."""

    upkeep_period_days: int = 7
    degradation_per_sweep: int = 10
    max_condition: int = 100
    repair_cost_per_point: int = 10
    room_refund_ratio: float = 0.5
    material_refund_ratio: float = 0.5
    storage_disabled_at_condition: int = 25


@dataclass(frozen=True, slots=True)
class GuildRules:
    """Founding, fee and rank constants for guilds."""

    founding_cost: int = 50_000
    default_membership_fee: int = 1_000
    default_weekly_dues: int = 100
    max_membership_fee: int = 1_000_000
    max_weekly_dues: int = 10_000
    min_donation: int = 10
    min_founding_skill: int = 10
    min_join_skill: int = 1
    default_max_members: int = 50
    journeyman_years: int = 2
    journeyman_contribution: int = 5_000
    master_years: int = 5
    master_contribution: int = 25_000
    days_per_guild_year: int = 7  # one in-game year per real week
    nomination_days: int = 3
    voting_days: int = 4
    skills: tuple[str, ...] = (
        "smithing",
        "crafting",
        "cooking",
        "mining",
        "woodcutting",
        "fishing",
    )
    level_thresholds: tuple[tuple[int, int], ...] = (
        (1, 0),
        (2, 10_000),
        (3, 50_000),
        (4, 150_000),
        (5, 500_000),
        (6, 1_500_000),
        (7, 5_000_000),
        (8, 15_000_000),
        (9, 50_000_000),
        (10, 150_000_000),
    )


@dataclass(frozen=True, slots=True)
class BusinessRules:
    """Ownership limits and payroll constants for businesses."""

    max_per_owner: int = 3
    default_weekly_wage: int = 10


@dataclass(frozen=True, slots=True)
class ReligionRules:
    """Belief limits, conversion costs and devotion constants."""

    cult_belief_limit: int = 2
    religion_belief_limit: int = 5
    cult_founding_cost: int = 0
    religion_founding_cost: int = 100_000
    religion_min_members: int = 5
    gold_per_devotion: int = 10
    min_donation: int = 10
    base_devotion: dict[str, int] = field(
        default_factory=lambda: {
            "prayer": 1,
            "ritual": 5,
            "pilgrimage": 25,
        }
    )
    rank_thresholds: tuple[int, ...] = (0, 500, 1_500, 5_000)
    action_cooldown_minutes: dict[str, int] = field(
        default_factory=lambda: {
            "prayer": 30,
            "ritual": 60,
            "pilgrimage": 1_440,
        }
    )


@dataclass(frozen=True, slots=True)
class CharterRules:
    """Windows and refund ratios for settlement charters."""

    signature_window_days: int = 30
    approval_expiry_days: int = 30
    vulnerability_days: int = 14
    reject_refund_ratio: float = 0.5
    cancel_refund_ratio: float = 0.75


@dataclass(frozen=True, slots=True)
class SocialRules:
    """Social-class workflow constants."""

    serf_labor_days: int = 10
    manumission_cost: int = 5_000
    ennoblement_cost: int = 100_000
    ennobled_title_tier: int = 2
    request_window_days: int = 14
    class_ranks: dict[str, int] = field(
        default_factory=lambda: {
            "serf": 1,
            "freeman": 2,
            "burgher": 3,
            "clergy": 3,
            "noble": 4,
        }
    )


@dataclass(frozen=True, slots=True)
class RulesConfig:
    """Container bundling all rules."""

    housing: HousingRules = HousingRules()
    guild: GuildRules = GuildRules()
    business: BusinessRules = BusinessRules()
    religion: ReligionRules = ReligionRules()
    charter: CharterRules = CharterRules()
    social: SocialRules = SocialRules()


DEFAULT_RULES = RulesConfig()
