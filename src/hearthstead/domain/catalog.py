"""Static game-content tables.

Every table in this module is built once at import time and exposed through
read-only mappings. Entries are frozen dataclasses; effect keys are tagged
with an :class:`~hearthstead.domain.enums.EffectKind` while the tables are
built, so consumers never have to guess whether a bonus is a percentage or a
flat amount from its name.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from .enums import CharterType, EffectKind, LocationType
from .errors import NotFound

CATALOG_VERSION = "1.0"

# Every effect key a catalog entry may carry. Unknown keys fail at import.
EFFECT_KINDS: Mapping[str, EffectKind] = MappingProxyType(
    {
        # housing
        "burn_reduction": EffectKind.PERCENT,
        "energy_regen_bonus": EffectKind.PERCENT,
        "crafting_xp_bonus": EffectKind.PERCENT,
        "attack_bonus": EffectKind.FLAT,
        "gathering_xp_bonus": EffectKind.PERCENT,
        "farming_yield_bonus": EffectKind.PERCENT,
        "max_hp_bonus": EffectKind.FLAT,
        "smithing_xp_bonus": EffectKind.PERCENT,
        "smithing_speed_bonus": EffectKind.PERCENT,
        "servant_speed_bonus": EffectKind.PERCENT,
        "prayer_xp_bonus": EffectKind.PERCENT,
        "prayer_bonus": EffectKind.FLAT,
        "herblore_xp_bonus": EffectKind.PERCENT,
        "farming_xp_bonus": EffectKind.PERCENT,
        "cooking_xp_bonus": EffectKind.PERCENT,
        "auto_water": EffectKind.FLAT,
        "storage_bonus": EffectKind.FLAT,
        # beliefs
        "combat_xp_bonus": EffectKind.PERCENT,
        "donation_devotion_bonus": EffectKind.PERCENT,
        "daily_task_bonus": EffectKind.PERCENT,
        "quest_xp_bonus": EffectKind.PERCENT,
        "crafting_xp_penalty": EffectKind.PERCENT,
        "gold_bonus": EffectKind.PERCENT,
        "donation_cost_penalty": EffectKind.PERCENT,
        "energy_cost_reduction": EffectKind.PERCENT,
        "xp_penalty": EffectKind.PERCENT,
        "devotion_bonus": EffectKind.PERCENT,
        "devotion_penalty": EffectKind.PERCENT,
        "gold_penalty": EffectKind.PERCENT,
        "ritual_devotion_bonus": EffectKind.PERCENT,
        "pilgrimage_bonus": EffectKind.PERCENT,
        "structure_bonus": EffectKind.PERCENT,
        "travel_energy_penalty": EffectKind.PERCENT,
        # guild benefits
        "mining_xp_bonus": EffectKind.PERCENT,
        "woodcutting_xp_bonus": EffectKind.PERCENT,
        "fishing_xp_bonus": EffectKind.PERCENT,
        "cooking_speed_bonus": EffectKind.PERCENT,
        "crafting_speed_bonus": EffectKind.PERCENT,
        "mining_speed_bonus": EffectKind.PERCENT,
        "woodcutting_speed_bonus": EffectKind.PERCENT,
        "fishing_speed_bonus": EffectKind.PERCENT,
        "shop_discount": EffectKind.PERCENT,
    }
)


@dataclass(frozen=True, slots=True)
class Effect:
    """One tagged modifier contributed by a catalog entry."""

    key: str
    value: int | float
    kind: EffectKind


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Immutable catalog record; identity is ``key``."""

    key: str
    display_name: str
    level_requirement: int = 0
    cost: int = 0
    effects: tuple[Effect, ...] = ()
    materials: tuple[tuple[str, int], ...] = ()

    @property
    def effect(self) -> Mapping[str, int | float] | None:
        """Effect map, or ``None`` when the entry grants nothing."""
        if not self.effects:
            return None
        totals: dict[str, int | float] = {}
        for item in self.effects:
            totals[item.key] = totals.get(item.key, 0) + item.value
        return MappingProxyType(totals)

    @property
    def material_map(self) -> Mapping[str, int]:
        return MappingProxyType(dict(self.materials))


@dataclass(frozen=True, slots=True)
class AdjacencyRule:
    """Bonus granted while two entity types are active for the same owner."""

    entity_a: str
    entity_b: str
    effect_key: str
    value: int | float
    description: str
    kind: EffectKind = EffectKind.PERCENT

    def satisfied_by(self, active_types: frozenset[str] | set[str]) -> bool:
        return self.entity_a in active_types and self.entity_b in active_types


@dataclass(frozen=True, slots=True)
class HouseTier(CatalogEntry):
    rank: int = 0
    title_tier: int = 0
    grid_size: int = 0
    max_rooms: int = 0
    storage: int = 0
    weekly_upkeep: int = 0


@dataclass(frozen=True, slots=True)
class FurnitureOption(CatalogEntry):
    xp: int = 0


@dataclass(frozen=True, slots=True)
class Hotspot:
    key: str
    display_name: str
    options: tuple[FurnitureOption, ...]

    def option(self, key: str) -> FurnitureOption:
        for candidate in self.options:
            if candidate.key == key:
                return candidate
        raise NotFound(f"Unknown furniture option '{key}' for hotspot '{self.key}'")


@dataclass(frozen=True, slots=True)
class RoomType(CatalogEntry):
    description: str = ""
    hotspots: tuple[Hotspot, ...] = ()

    def hotspot(self, key: str) -> Hotspot:
        for candidate in self.hotspots:
            if candidate.key == key:
                return candidate
        raise NotFound(f"Room '{self.key}' has no hotspot '{key}'")


@dataclass(frozen=True, slots=True)
class ContractTier(CatalogEntry):
    plank_type: str = ""
    planks: tuple[int, int] = (0, 0)
    xp: tuple[int, int] = (0, 0)
    gold: tuple[int, int] = (0, 0)
    energy: int = 0


@dataclass(frozen=True, slots=True)
class ServantTier(CatalogEntry):
    weekly_wage: int = 0
    carry_capacity: int = 0
    base_speed: int = 0


@dataclass(frozen=True, slots=True)
class PlankRecipe(CatalogEntry):
    log: str = ""


@dataclass(frozen=True, slots=True)
class BusinessType(CatalogEntry):
    weekly_upkeep: int = 0
    max_employees: int = 0
    skill: str | None = None
    locations: tuple[LocationType, ...] = (LocationType.VILLAGE, LocationType.TOWN)


@dataclass(frozen=True, slots=True)
class Belief(CatalogEntry):
    description: str = ""


@dataclass(frozen=True, slots=True)
class GuildBenefit(CatalogEntry):
    """Benefit unlocked once a guild reaches ``level_requirement``."""

    skill: str | None = None


@dataclass(frozen=True, slots=True)
class CharterSpec(CatalogEntry):
    signatories_required: int = 0


# ---- Builders ---------------------------------------------------------------


def _effects(values: Mapping[str, int | float]) -> tuple[Effect, ...]:
    tagged = []
    for key, value in values.items():
        try:
            kind = EFFECT_KINDS[key]
        except KeyError:
            raise ValueError(f"Effect key '{key}' has no registered kind") from None
        tagged.append(Effect(key=key, value=value, kind=kind))
    return tuple(tagged)


def _option(
    key: str,
    name: str,
    level: int,
    materials: Mapping[str, int],
    xp: int,
    **effect: int | float,
) -> FurnitureOption:
    return FurnitureOption(
        key=key,
        display_name=name,
        level_requirement=level,
        materials=tuple(materials.items()),
        xp=xp,
        effects=_effects(effect),
    )


def _room(
    key: str, name: str, level: int, cost: int, description: str, *hotspots: Hotspot
) -> RoomType:
    return RoomType(
        key=key,
        display_name=name,
        level_requirement=level,
        cost=cost,
        description=description,
        hotspots=hotspots,
    )


def _adjacency(a: str, b: str, key: str, value: int, description: str) -> AdjacencyRule:
    return AdjacencyRule(a, b, key, value, description, kind=EFFECT_KINDS[key])


def _table(entries) -> Mapping:
    return MappingProxyType({entry.key: entry for entry in entries})


# ---- Housing ----------------------------------------------------------------

HOUSE_TIERS: Mapping[str, HouseTier] = _table(
    [
        HouseTier("cottage", "Cottage", 1, 50_000, rank=1, title_tier=2, grid_size=3,
                  max_rooms=3, storage=100, weekly_upkeep=250),
        HouseTier("house", "House", 20, 250_000, rank=2, title_tier=3, grid_size=4,
                  max_rooms=6, storage=250, weekly_upkeep=750),
        HouseTier("manor", "Manor", 40, 1_000_000, rank=3, title_tier=4, grid_size=5,
                  max_rooms=10, storage=500, weekly_upkeep=1_500),
    ]
)

_RUG = Hotspot(
    "rug",
    "Rug",
    (
        _option("brown_rug", "Brown Rug", 2, {"Cloth": 2}, 20),
        _option("patterned_rug", "Patterned Rug", 15, {"Cloth": 3}, 100),
    ),
)

ROOMS: Mapping[str, RoomType] = _table(
    [
        _room(
            "parlour", "Parlour", 1, 15_000, "A cosy room for relaxing and receiving visitors.",
            Hotspot("chair", "Chair", (
                _option("crude_chair", "Crude Chair", 1, {"Plank": 3, "Nails": 2}, 30),
                _option("wooden_chair", "Wooden Chair", 10, {"Oak Plank": 3}, 120),
            )),
            Hotspot("bookcase", "Bookcase", (
                _option("wooden_bookcase", "Wooden Bookcase", 4, {"Plank": 4, "Nails": 3}, 50),
                _option("oak_bookcase", "Oak Bookcase", 20, {"Oak Plank": 4}, 200),
            )),
            Hotspot("fireplace", "Fireplace", (
                _option("clay_fireplace", "Clay Fireplace", 3, {"Plank": 3, "Steel Bar": 1}, 40),
                _option("stone_fireplace", "Stone Fireplace", 30,
                        {"Oak Plank": 3, "Steel Bar": 3}, 250),
            )),
            _RUG,
        ),
        _room(
            "kitchen", "Kitchen", 5, 50_000, "Where meals are prepared.",
            Hotspot("stove", "Stove", (
                _option("firepit", "Firepit", 5, {"Plank": 5, "Nails": 3}, 50,
                        burn_reduction=25),
                _option("iron_stove", "Iron Stove", 20, {"Oak Plank": 3, "Steel Bar": 2}, 150,
                        burn_reduction=45),
            )),
            Hotspot("larder", "Larder", (
                _option("wooden_larder", "Wooden Larder", 9, {"Plank": 6, "Nails": 4}, 70),
                _option("oak_larder", "Oak Larder", 30, {"Oak Plank": 5}, 250),
            )),
            Hotspot("shelf", "Shelves", (
                _option("wooden_shelves", "Wooden Shelves", 6, {"Plank": 4, "Nails": 2}, 45),
                _option("oak_shelves", "Oak Shelves", 25, {"Oak Plank": 3}, 200),
            )),
            Hotspot("table", "Table", (
                _option("kitchen_table", "Kitchen Table", 8, {"Plank": 4, "Nails": 2}, 65),
                _option("oak_table", "Oak Table", 30, {"Oak Plank": 4}, 280),
            )),
        ),
        _room(
            "bedroom", "Bedroom", 10, 50_000, "A private room for rest.",
            Hotspot("bed", "Bed", (
                _option("straw_bed", "Straw Bed", 10, {"Plank": 5, "Cloth": 2}, 80,
                        energy_regen_bonus=5),
                _option("wooden_bed", "Wooden Bed", 20, {"Oak Plank": 4, "Cloth": 3}, 200,
                        energy_regen_bonus=10),
            )),
            Hotspot("wardrobe", "Wardrobe", (
                _option("wooden_wardrobe", "Wooden Wardrobe", 12, {"Plank": 4, "Nails": 3}, 90),
            )),
            Hotspot("dresser", "Dresser", (
                _option("wooden_dresser", "Wooden Dresser", 11, {"Plank": 3, "Nails": 2}, 75),
            )),
            _RUG,
        ),
        _room(
            "dining_room", "Dining Room", 15, 75_000,
            "A spacious room for meals and entertaining guests.",
            Hotspot("table", "Table", (
                _option("wooden_table", "Wooden Table", 15, {"Plank": 4, "Nails": 2}, 100),
                _option("oak_table", "Oak Table", 30, {"Oak Plank": 4}, 280),
                _option("willow_table", "Willow Table", 50,
                        {"Willow Plank": 5, "Gold Bar": 1}, 550),
            )),
            Hotspot("bench", "Bench", (
                _option("wooden_bench", "Wooden Bench", 15, {"Plank": 3, "Nails": 2}, 90),
                _option("oak_bench", "Oak Bench", 30, {"Oak Plank": 3}, 240),
            )),
            Hotspot("bell_pull", "Bell Pull", (
                _option("rope_bell", "Rope Bell", 20, {"Plank": 2, "Cloth": 2}, 130),
                _option("brass_bell", "Brass Bell", 40, {"Willow Plank": 2, "Steel Bar": 2}, 380,
                        servant_speed_bonus=10),
            )),
            Hotspot("decoration", "Decoration", (
                _option("wall_tapestry", "Wall Tapestry", 16, {"Cloth": 3}, 80),
                _option("fine_tapestry", "Fine Tapestry", 35, {"Cloth": 4, "Gold Bar": 1}, 300),
            )),
        ),
        _room(
            "workshop", "Workshop", 20, 150_000, "Benches and tools for crafting.",
            Hotspot("workbench", "Workbench", (
                _option("wooden_workbench", "Wooden Workbench", 20,
                        {"Oak Plank": 4, "Steel Bar": 2}, 180, crafting_xp_bonus=3),
                _option("oak_workbench", "Oak Workbench", 35,
                        {"Willow Plank": 5, "Steel Bar": 3}, 350, crafting_xp_bonus=5),
            )),
            Hotspot("tool_rack", "Tool Rack", (
                _option("wooden_tool_rack", "Wooden Tool Rack", 21,
                        {"Oak Plank": 3, "Nails": 2}, 160),
                _option("steel_tool_rack", "Steel Tool Rack", 38,
                        {"Willow Plank": 3, "Steel Bar": 3}, 360),
            )),
            Hotspot("whetstone", "Whetstone", (
                _option("rough_whetstone", "Rough Whetstone", 25,
                        {"Limestone Brick": 2, "Steel Bar": 1}, 220, attack_bonus=1),
                _option("fine_whetstone", "Fine Whetstone", 45,
                        {"Marble Block": 2, "Mithril Bar": 1}, 500, attack_bonus=3),
            )),
        ),
        _room(
            "study", "Study", 30, 200_000, "A quiet room for learning.",
            Hotspot("lectern", "Lectern", (
                _option("wooden_lectern", "Wooden Lectern", 30, {"Oak Plank": 4, "Cloth": 2}, 250),
            )),
            Hotspot("bookcase", "Bookcase", (
                _option("oak_bookcase", "Oak Bookcase", 30, {"Oak Plank": 5}, 260,
                        gathering_xp_bonus=2),
                _option("marble_bookcase", "Marble Bookcase", 55,
                        {"Marble Block": 3, "Gold Leaf": 2}, 700, gathering_xp_bonus=5),
            )),
            Hotspot("telescope", "Telescope", (
                _option("bronze_telescope", "Bronze Telescope", 35,
                        {"Willow Plank": 3, "Steel Bar": 2}, 320, farming_yield_bonus=3),
                _option("gilded_telescope", "Gilded Telescope", 60,
                        {"Yew Plank": 3, "Gold Leaf": 1}, 750, farming_yield_bonus=8),
            )),
        ),
        _room(
            "hearth_room", "Hearth Room", 30, 150_000, "A warm gathering place.",
            Hotspot("fireplace", "Fireplace", (
                _option("stone_fireplace", "Stone Fireplace", 30,
                        {"Limestone Brick": 3, "Oak Plank": 2}, 250, max_hp_bonus=3),
                _option("marble_fireplace", "Marble Fireplace", 55,
                        {"Marble Block": 3, "Gold Leaf": 1}, 700, max_hp_bonus=8),
            )),
            Hotspot("armchair", "Armchair", (
                _option("oak_armchair", "Oak Armchair", 30, {"Oak Plank": 3, "Cloth": 2}, 240),
                _option("cushioned_armchair", "Cushioned Armchair", 45,
                        {"Willow Plank": 3, "Cloth": 3}, 450),
            )),
        ),
        _room(
            "forge", "Forge", 35, 300_000, "Anvils and furnaces for metalwork.",
            Hotspot("anvil", "Anvil", (
                _option("iron_anvil", "Iron Anvil", 35, {"Steel Bar": 3, "Oak Plank": 3}, 300,
                        smithing_xp_bonus=3),
                _option("steel_anvil", "Steel Anvil", 55,
                        {"Mithril Bar": 3, "Willow Plank": 3}, 650, smithing_xp_bonus=6),
            )),
            Hotspot("furnace", "Furnace", (
                _option("basic_furnace", "Basic Furnace", 36,
                        {"Limestone Brick": 4, "Steel Bar": 3}, 320),
            )),
            Hotspot("bellows", "Bellows", (
                _option("leather_bellows", "Leather Bellows", 37, {"Oak Plank": 2, "Cloth": 3},
                        300, smithing_speed_bonus=5),
                _option("iron_bellows", "Iron Bellows", 50, {"Willow Plank": 2, "Steel Bar": 2},
                        500, smithing_speed_bonus=10),
            )),
        ),
        _room(
            "chapel", "Chapel", 40, 400_000, "A sacred space for prayer and spiritual reflection.",
            Hotspot("altar", "Altar", (
                _option("wooden_altar", "Wooden Altar", 40, {"Oak Plank": 6, "Cloth": 2}, 400,
                        prayer_xp_bonus=50),
                _option("stone_altar", "Stone Altar", 55,
                        {"Limestone Brick": 4, "Marble Block": 3}, 700, prayer_xp_bonus=100),
            )),
            Hotspot("incense_burner", "Incense Burner", (
                _option("wooden_burner", "Wooden Burner", 41, {"Oak Plank": 3}, 350,
                        prayer_xp_bonus=25),
                _option("steel_burner", "Steel Burner", 55, {"Steel Bar": 2, "Willow Plank": 2},
                        600, prayer_xp_bonus=50),
            )),
            Hotspot("icon", "Icon", (
                _option("holy_symbol", "Holy Symbol", 42, {"Oak Plank": 2, "Silver Bar": 1}, 360,
                        prayer_bonus=1),
                _option("icon_of_faith", "Icon of Faith", 60, {"Maple Plank": 2, "Gold Bar": 1},
                        650, prayer_bonus=2),
            )),
        ),
        _room(
            "garden", "Garden", 25, 125_000, "An indoor garden for growing herbs year-round.",
            Hotspot("compost_bin", "Compost Bin", (
                _option("basic_compost", "Basic Compost Bin", 25,
                        {"Plank": 3, "Steel Nails": 3}, 250),
                _option("advanced_compost", "Advanced Compost Bin", 45,
                        {"Willow Plank": 4, "Steel Bar": 2}, 700),
            )),
            Hotspot("irrigation", "Irrigation", (
                _option("basic_watering", "Watering Can Stand", 25,
                        {"Plank": 2, "Bronze Bar": 2}, 200, herblore_xp_bonus=2),
                _option("drip_system", "Drip System", 45, {"Willow Plank": 3, "Steel Bar": 3},
                        650, herblore_xp_bonus=3, auto_water=1),
                _option("sprinkler", "Sprinkler System", 65, {"Yew Plank": 3, "Gold Bar": 2},
                        1_100, herblore_xp_bonus=5, auto_water=1),
            )),
            Hotspot("lighting", "Grow Lights", (
                _option("candle_rack", "Candle Rack", 25, {"Plank": 2, "Bronze Bar": 1}, 200,
                        farming_xp_bonus=2),
                _option("lantern_array", "Lantern Array", 40,
                        {"Willow Plank": 3, "Steel Bar": 2}, 550, farming_xp_bonus=3),
                _option("crystal_lights", "Crystal Grow Lights", 60,
                        {"Yew Plank": 3, "Gold Bar": 2}, 1_000, farming_xp_bonus=5),
            )),
        ),
    ]
)

ADJACENCY_RULES: tuple[AdjacencyRule, ...] = (
    _adjacency("kitchen", "dining_room", "cooking_xp_bonus", 3,
               "Kitchen + Dining Room: +3% Cooking XP"),
    _adjacency("forge", "workshop", "smithing_xp_bonus", 3,
               "Forge + Workshop: +3% Smithing XP"),
    _adjacency("chapel", "study", "prayer_xp_bonus", 3,
               "Chapel + Study: +3% Prayer XP"),
    _adjacency("bedroom", "hearth_room", "energy_regen_bonus", 5,
               "Bedroom + Hearth Room: +5% Energy Regen"),
    _adjacency("garden", "kitchen", "herblore_xp_bonus", 3,
               "Garden + Kitchen: +3% Herblore XP"),
)

CONTRACT_TIERS: Mapping[str, ContractTier] = _table(
    [
        ContractTier("beginner", "Beginner", 1, plank_type="Plank", planks=(3, 5),
                     xp=(50, 80), gold=(10, 20), energy=3),
        ContractTier("apprentice", "Apprentice", 20, plank_type="Oak Plank", planks=(4, 6),
                     xp=(120, 180), gold=(25, 50), energy=4),
        ContractTier("journeyman", "Journeyman", 40, plank_type="Willow Plank", planks=(5, 8),
                     xp=(250, 400), gold=(50, 100), energy=5),
        ContractTier("expert", "Expert", 60, plank_type="Yew Plank", planks=(6, 10),
                     xp=(500, 750), gold=(100, 200), energy=6),
        ContractTier("master", "Master", 80, plank_type="Mahogany Plank", planks=(8, 12),
                     xp=(900, 1_200), gold=(200, 400), energy=7),
    ]
)

SERVANT_TIERS: Mapping[str, ServantTier] = _table(
    [
        ServantTier("handyman", "Handyman", 20, 5_000, weekly_wage=100, carry_capacity=6,
                    base_speed=60),
        ServantTier("maid", "Maid", 30, 15_000, weekly_wage=250, carry_capacity=10,
                    base_speed=30),
        ServantTier("butler", "Butler", 45, 50_000, weekly_wage=500, carry_capacity=16,
                    base_speed=15),
        ServantTier("head_butler", "Head Butler", 60, 150_000, weekly_wage=1_000,
                    carry_capacity=24, base_speed=8),
    ]
)

PLANK_RECIPES: Mapping[str, PlankRecipe] = _table(
    [
        PlankRecipe("Plank", "Plank", cost=10, log="Wood"),
        PlankRecipe("Oak Plank", "Oak Plank", cost=40, log="Oak Wood"),
        PlankRecipe("Willow Plank", "Willow Plank", cost=100, log="Willow Wood"),
        PlankRecipe("Maple Plank", "Maple Plank", cost=250, log="Maple Wood"),
        PlankRecipe("Yew Plank", "Yew Plank", cost=600, log="Yew Wood"),
        PlankRecipe("Mahogany Plank", "Mahogany Plank", cost=1_500, log="Mahogany Wood"),
    ]
)

# ---- Businesses -------------------------------------------------------------

_ANYWHERE = (LocationType.VILLAGE, LocationType.TOWN, LocationType.BARONY)

BUSINESS_TYPES: Mapping[str, BusinessType] = _table(
    [
        BusinessType("smithy", "Smithy", 15, 500, weekly_upkeep=25, max_employees=3,
                     skill="smithing"),
        BusinessType("bakery", "Bakery", 10, 300, weekly_upkeep=15, max_employees=2,
                     skill="cooking"),
        BusinessType("carpentry_workshop", "Carpentry Workshop", 12, 400, weekly_upkeep=20,
                     max_employees=3, skill="woodcutting"),
        BusinessType("inn", "Inn", 8, 600, weekly_upkeep=30, max_employees=4, skill="cooking",
                     locations=_ANYWHERE),
        BusinessType("general_store", "General Store", 0, 450, weekly_upkeep=20,
                     max_employees=2, locations=_ANYWHERE),
        BusinessType("small_mine", "Small Mine", 20, 800, weekly_upkeep=40, max_employees=5,
                     skill="mining", locations=(LocationType.VILLAGE, LocationType.BARONY)),
        BusinessType("farm", "Farm", 8, 350, weekly_upkeep=15, max_employees=4,
                     skill="foraging", locations=(LocationType.VILLAGE, LocationType.BARONY)),
    ]
)

# ---- Religion ---------------------------------------------------------------


def _belief(key: str, name: str, description: str, **effect: int | float) -> Belief:
    return Belief(key=key, display_name=name, description=description, effects=_effects(effect))


BELIEFS: Mapping[str, Belief] = _table(
    [
        _belief("industriousness", "Industriousness", "Hard work is sacred.",
                gathering_xp_bonus=10),
        _belief("martial_prowess", "Martial Prowess", "Strength in battle honours the gods.",
                combat_xp_bonus=10),
        _belief("craftsmanship", "Craftsmanship", "Creation is a form of worship.",
                crafting_xp_bonus=10),
        _belief("charity", "Charity", "Giving to others brings blessings.",
                donation_devotion_bonus=25),
        _belief("vigilance", "Vigilance", "Daily discipline strengthens the soul.",
                daily_task_bonus=15),
        _belief("temperance", "Temperance", "Moderation preserves the body.",
                energy_regen_bonus=5),
        _belief("wisdom", "Wisdom", "Knowledge is the path to enlightenment.", quest_xp_bonus=10),
        _belief("fortitude", "Fortitude", "Endurance is a virtue.", max_hp_bonus=5),
        _belief("bloodlust", "Bloodlust", "Glory through violence.",
                combat_xp_bonus=20, crafting_xp_penalty=-10),
        _belief("greed", "Greed", "Wealth is the true measure of worth.",
                gold_bonus=10, donation_cost_penalty=25),
        _belief("sloth", "Sloth", "Rest is the highest virtue.",
                energy_cost_reduction=10, xp_penalty=-5),
        _belief("pride", "Pride", "Excellence sets the faithful apart.",
                combat_xp_bonus=10, crafting_xp_bonus=10, devotion_penalty=-15),
        _belief("asceticism", "Asceticism", "Renounce wealth to draw nearer the divine.",
                devotion_bonus=20, gold_penalty=-10),
        _belief("mysticism", "Mysticism", "The rites reveal hidden truths.",
                ritual_devotion_bonus=25),
        _belief("communion", "Communion", "Worship together in holy places.", structure_bonus=15),
        _belief("pilgrimage", "Pilgrimage", "The journey is the prayer.",
                pilgrimage_bonus=100, travel_energy_penalty=10),
    ]
)

# ---- Guilds -----------------------------------------------------------------


def _guild_benefits() -> list[GuildBenefit]:
    benefits = [
        GuildBenefit("guild_discounts", "Guild Discounts", 2, effects=_effects({"shop_discount": 5})),
        GuildBenefit("guild_warehouse", "Guild Warehouse", 4,
                     effects=_effects({"storage_bonus": 50})),
    ]
    for skill in ("smithing", "crafting", "cooking", "mining", "woodcutting", "fishing"):
        title = skill.capitalize()
        benefits.append(
            GuildBenefit(f"{skill}_training", f"{title} Training", 1, skill=skill,
                         effects=_effects({f"{skill}_xp_bonus": 5}))
        )
        benefits.append(
            GuildBenefit(f"{skill}_techniques", f"{title} Techniques", 3, skill=skill,
                         effects=_effects({f"{skill}_speed_bonus": 5}))
        )
        benefits.append(
            GuildBenefit(f"{skill}_mastery", f"{title} Mastery", 5, skill=skill,
                         effects=_effects({f"{skill}_xp_bonus": 10}))
        )
    return benefits


GUILD_BENEFITS: Mapping[str, GuildBenefit] = _table(_guild_benefits())

# ---- Charters ---------------------------------------------------------------

CHARTER_TYPES: Mapping[CharterType, CharterSpec] = MappingProxyType(
    {
        CharterType.VILLAGE: CharterSpec("village", "Village Charter", cost=1_000_000,
                                         signatories_required=10),
        CharterType.TOWN: CharterSpec("town", "Town Charter", cost=2_500_000,
                                      signatories_required=25),
        CharterType.CASTLE: CharterSpec("castle", "Castle Charter", cost=5_000_000,
                                        signatories_required=50),
    }
)


# ---- Lookups ----------------------------------------------------------------


def _lookup(table: Mapping, key, label: str):
    try:
        return table[key]
    except KeyError:
        raise NotFound(f"Unknown {label} '{key}'") from None


def get_house_tier(key: str) -> HouseTier:
    return _lookup(HOUSE_TIERS, key, "house tier")


def next_house_tier(current: str) -> HouseTier | None:
    """Return the tier directly above ``current``, if any."""
    rank = get_house_tier(current).rank
    for tier in HOUSE_TIERS.values():
        if tier.rank == rank + 1:
            return tier
    return None


def get_room(key: str) -> RoomType:
    return _lookup(ROOMS, key, "room")


def get_furniture(room: str, hotspot: str, option: str) -> FurnitureOption:
    return get_room(room).hotspot(hotspot).option(option)


def get_business_type(key: str) -> BusinessType:
    return _lookup(BUSINESS_TYPES, key, "business type")


def get_belief(key: str) -> Belief:
    return _lookup(BELIEFS, key, "belief")


def get_charter_spec(charter_type: CharterType | str) -> CharterSpec:
    try:
        kind = CharterType(charter_type)
    except ValueError:
        raise NotFound(f"Unknown charter type '{charter_type}'") from None
    return CHARTER_TYPES[kind]


def benefits_for_guild(skill: str, level: int) -> list[GuildBenefit]:
    """Benefits a guild of ``skill`` enjoys at ``level``, in catalog order."""
    return [
        benefit
        for benefit in GUILD_BENEFITS.values()
        if benefit.level_requirement <= level and benefit.skill in (None, skill)
    ]


def catalog_tables() -> dict[str, Mapping]:
    """Name -> table view used by read-only catalog endpoints."""
    return {
        "house_tiers": HOUSE_TIERS,
        "rooms": ROOMS,
        "contract_tiers": CONTRACT_TIERS,
        "servant_tiers": SERVANT_TIERS,
        "plank_recipes": PLANK_RECIPES,
        "business_types": BUSINESS_TYPES,
        "beliefs": BELIEFS,
        "guild_benefits": GUILD_BENEFITS,
        "charter_types": CHARTER_TYPES,
    }
