"""Housing Service for Hearthstead.

This module buys and upgrades houses, builds and demolishes rooms and
furniture, and keeps each house's cached ActiveModifierSet in step with the
rooms and furniture it holds. Houses in fair condition also store items in a
fixed number of slots.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select

from hearthstead.domain import catalog
from hearthstead.domain.catalog import ADJACENCY_RULES, CatalogEntry
from hearthstead.domain.effects import ActiveModifierSet, ModifierSource, aggregate, effect_sources
from hearthstead.domain.eligibility import Condition, EligibilityCheck, check
from hearthstead.domain.enums import FailureReason
from hearthstead.domain.errors import IneligibleAction, NotFound, ValidationFailure
from hearthstead.domain.lifecycle import deadline_passed
from hearthstead.domain.models import SubjectSnapshot
from hearthstead.models import House, HouseFurniture, HouseRoom, Player
from hearthstead.services.base import TransitionService

logger = logging.getLogger(__name__)

CONSTRUCTION = "construction"


def house_entries(house: House) -> list[tuple[str, CatalogEntry]]:
    """Active catalog entries of a house, labelled for source breakdowns."""
    entries: list[tuple[str, CatalogEntry]] = []
    for room in house.rooms:
        room_type = catalog.get_room(room.room_type)
        entries.append((room_type.display_name, room_type))
        for piece in room.furniture:
            option = room_type.hotspot(piece.hotspot).option(piece.option_key)
            entries.append((f"{room_type.display_name} - {option.display_name}", option))
    return entries


def compute_house_modifiers(house: House) -> ActiveModifierSet:
    """Aggregate furniture effects and adjacency bonuses of ``house``."""
    return aggregate(
        (entry for _, entry in house_entries(house)),
        ADJACENCY_RULES,
        active_types=(room.room_type for room in house.rooms),
    )


class HouseService(TransitionService):
    """Service applying housing transitions."""

    # ---- Queries ------------------------------------------------------------

    def get_house(self, player_id: int) -> House:
        house = self.session.execute(
            select(House).where(House.owner_id == player_id)
        ).scalar_one_or_none()
        if house is None:
            raise NotFound(f"Player {player_id} does not own a house")
        return house

    def get_modifiers(self, player_id: int) -> ActiveModifierSet:
        """Freshly recomputed modifiers of the player's house."""
        return compute_house_modifiers(self.get_house(player_id))

    def get_modifier_sources(self, player_id: int) -> list[ModifierSource]:
        house = self.get_house(player_id)
        return effect_sources(
            house_entries(house),
            ADJACENCY_RULES,
            active_types=[room.room_type for room in house.rooms],
        )

    def snapshot(self, house: House, owner: Player, **detail: object) -> SubjectSnapshot:
        return SubjectSnapshot(
            kind="house",
            subject_id=house.id,
            gold=owner.gold,
            active_entries=sorted(
                [room.room_type for room in house.rooms]
                + [f"{room.room_type}.{piece.hotspot}" for room in house.rooms
                   for piece in room.furniture]
            ),
            modifiers=dict(house.modifiers),
            detail=dict(detail),
        )

    # ---- Eligibility --------------------------------------------------------

    def check_purchase(self, player_id: int, tier_key: str = "cottage") -> EligibilityCheck:
        """Pre-validate buying a house; never changes state."""
        player = self._player(player_id, lock=False)
        return self._purchase_check(player, catalog.get_house_tier(tier_key))

    def _purchase_check(self, player: Player, tier: catalog.HouseTier) -> EligibilityCheck:
        owns = player.house is not None
        return check(
            self._attributes(player, skill=CONSTRUCTION, occupancy=int(owns), capacity=1),
            tier,
            conditions=[
                Condition(
                    player.title_tier >= tier.title_tier,
                    FailureReason.REQUIREMENT,
                    f"{tier.display_name} requires title tier {tier.title_tier}",
                ),
            ],
        )

    def check_room(self, player_id: int, room_key: str, x: int, y: int) -> EligibilityCheck:
        player = self._player(player_id, lock=False)
        house = self.get_house(player_id)
        return self._room_check(player, house, catalog.get_room(room_key), x, y)

    def _room_check(
        self, player: Player, house: House, room: catalog.RoomType, x: int, y: int
    ) -> EligibilityCheck:
        tier = catalog.get_house_tier(house.tier)
        occupied = {(r.grid_x, r.grid_y) for r in house.rooms}
        return check(
            self._attributes(
                player, skill=CONSTRUCTION, occupancy=len(house.rooms), capacity=tier.max_rooms
            ),
            room,
            conditions=[
                Condition(
                    0 <= x < tier.grid_size and 0 <= y < tier.grid_size,
                    FailureReason.LOCATION,
                    f"Cell ({x}, {y}) is outside the {tier.grid_size}x{tier.grid_size} grid",
                ),
                Condition(
                    (x, y) not in occupied,
                    FailureReason.LOCATION,
                    f"Cell ({x}, {y}) is already occupied",
                ),
            ],
        )

    def check_furniture(
        self, player_id: int, room_id: int, hotspot: str, option_key: str
    ) -> EligibilityCheck:
        player = self._player(player_id, lock=False)
        room = self._room(self.get_house(player_id), room_id)
        option = catalog.get_furniture(room.room_type, hotspot, option_key)
        return check(self._attributes(player, skill=CONSTRUCTION), option)

    # ---- Transitions --------------------------------------------------------

    def purchase_house(
        self, player_id: int, tier_key: str = "cottage", *, expected_gold: int | None = None
    ) -> SubjectSnapshot:
        """Buy a house of ``tier_key`` at the player's current location.

        Raises:
            NotFound: Unknown player or tier
            IneligibleAction: Level, funds, existing house or title requirement
            ConflictFailure: ``expected_gold`` no longer matches the balance
        """
        tier = catalog.get_house_tier(tier_key)
        with self._transaction(("player", player_id)):
            player = self._player(player_id)
            self._enforce(
                self._purchase_check(player, tier),
                expected_gold=expected_gold,
                current_gold=player.gold,
            )
            self._debit(player, tier.cost)
            house = House(
                owner=player,
                tier=tier.key,
                condition=self.rules.housing.max_condition,
                upkeep_due_at=self.clock() + timedelta(days=self.rules.housing.upkeep_period_days),
                modifiers={},
                storage={},
                location_type=player.location_type,
                location_id=player.location_id,
            )
            self.session.add(house)
            self.session.flush()
            self._audit("house", house.id, "purchase", actor_id=player.id, new_state=tier.key,
                        cost=tier.cost)
            return self.snapshot(house, player, cost=tier.cost)

    def upgrade_house(
        self, player_id: int, *, expected_gold: int | None = None
    ) -> SubjectSnapshot:
        """Upgrade to the next tier, paying the difference in tier cost."""
        with self._transaction(("player", player_id)):
            player = self._player(player_id)
            house = self.get_house(player_id)
            current = catalog.get_house_tier(house.tier)
            target = catalog.next_house_tier(current.key)
            if target is None:
                raise IneligibleAction(
                    f"{current.display_name} is already the highest tier",
                    reason=FailureReason.REQUIREMENT,
                )
            cost = target.cost - current.cost
            result = check(
                self._attributes(player, skill=CONSTRUCTION),
                target,
                cost=cost,
                conditions=[
                    Condition(
                        player.title_tier >= target.title_tier,
                        FailureReason.REQUIREMENT,
                        f"{target.display_name} requires title tier {target.title_tier}",
                    )
                ],
            )
            self._enforce(result, expected_gold=expected_gold, current_gold=player.gold)
            self._debit(player, cost)
            house.tier = target.key
            self._audit("house", house.id, "upgrade", actor_id=player.id,
                        old_state=current.key, new_state=target.key, cost=cost)
            return self.snapshot(house, player, cost=cost)

    def build_room(
        self,
        player_id: int,
        room_key: str,
        x: int,
        y: int,
        *,
        expected_gold: int | None = None,
    ) -> SubjectSnapshot:
        """Build a room on a free grid cell.

        Raises:
            NotFound: No house or unknown room type
            IneligibleAction: Level, funds, room capacity or grid cell
            ConflictFailure: ``expected_gold`` no longer matches the balance
        """
        room_type = catalog.get_room(room_key)
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            self._enforce(
                self._room_check(player, house, room_type, x, y),
                expected_gold=expected_gold,
                current_gold=player.gold,
            )
            self._debit(player, room_type.cost)
            room = HouseRoom(room_type=room_type.key, grid_x=x, grid_y=y)
            house.rooms.append(room)
            self._refresh_modifiers(house)
            self.session.flush()
            self._audit("house", house.id, "build_room", actor_id=player.id,
                        new_state=room_type.key, cost=room_type.cost, cell=[x, y])
            return self.snapshot(house, player, room_id=room.id, cost=room_type.cost)

    def demolish_room(self, player_id: int, room_id: int) -> SubjectSnapshot:
        """Remove a room, refunding half its gold cost and half of its furniture materials."""
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            room = self._room(house, room_id)
            room_type = catalog.get_room(room.room_type)

            gold_refund = int(room_type.cost * self.rules.housing.room_refund_ratio)
            materials: dict[str, int] = {}
            for piece in room.furniture:
                option = room_type.hotspot(piece.hotspot).option(piece.option_key)
                for name, quantity in self._salvage(option).items():
                    materials[name] = materials.get(name, 0) + quantity

            self._credit(player, gold_refund)
            self._give_items(player, materials)
            house.rooms.remove(room)
            self._refresh_modifiers(house)
            self._audit("house", house.id, "demolish_room", actor_id=player.id,
                        old_state=room_type.key, gold_refund=gold_refund, materials=materials)
            return self.snapshot(house, player, gold_refund=gold_refund, materials=materials)

    def build_furniture(
        self,
        player_id: int,
        room_id: int,
        hotspot: str,
        option_key: str,
        *,
        expected_gold: int | None = None,
    ) -> SubjectSnapshot:
        """Install a furniture option on a hotspot, replacing whatever was there.

        Materials are consumed and construction XP awarded. The piece being
        replaced is discarded without salvage.
        """
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            room = self._room(house, room_id)
            option = catalog.get_furniture(room.room_type, hotspot, option_key)
            self._enforce(
                check(self._attributes(player, skill=CONSTRUCTION), option),
                expected_gold=expected_gold,
                current_gold=player.gold,
            )
            self._consume_items(player, dict(option.materials))

            previous = next((p for p in room.furniture if p.hotspot == hotspot), None)
            replaced = previous.option_key if previous is not None else None
            if previous is not None:
                room.furniture.remove(previous)
                # The unique (room, hotspot) row must be gone before the new one is inserted.
                self.session.flush()
            room.furniture.append(HouseFurniture(hotspot=hotspot, option_key=option.key))

            experience = dict(player.experience)
            experience[CONSTRUCTION] = experience.get(CONSTRUCTION, 0) + option.xp
            player.experience = experience

            self._refresh_modifiers(house)
            self._audit("house", house.id, "build_furniture", actor_id=player.id,
                        old_state=replaced, new_state=option.key, room=room.room_type,
                        hotspot=hotspot, xp=option.xp)
            return self.snapshot(house, player, xp=option.xp, replaced=replaced)

    def demolish_furniture(self, player_id: int, room_id: int, hotspot: str) -> SubjectSnapshot:
        """Remove the piece on ``hotspot`` and return half of its materials."""
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            room = self._room(house, room_id)
            piece = next((p for p in room.furniture if p.hotspot == hotspot), None)
            if piece is None:
                raise NotFound(f"No furniture on hotspot '{hotspot}'")
            option = catalog.get_furniture(room.room_type, hotspot, piece.option_key)
            returned = self._salvage(option)
            self._give_items(player, returned)
            room.furniture.remove(piece)
            self._refresh_modifiers(house)
            self._audit("house", house.id, "demolish_furniture", actor_id=player.id,
                        old_state=option.key, materials=returned)
            return self.snapshot(house, player, materials=returned)

    def pay_upkeep(self, player_id: int) -> SubjectSnapshot:
        """Pay one week of upkeep; the next payment falls due a week from now."""
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            upkeep = catalog.get_house_tier(house.tier).weekly_upkeep
            self._debit(player, upkeep)
            house.upkeep_due_at = self.clock() + timedelta(
                days=self.rules.housing.upkeep_period_days
            )
            self._audit("house", house.id, "pay_upkeep", actor_id=player.id, cost=upkeep)
            return self.snapshot(house, player, cost=upkeep)

    def repair_house(self, player_id: int) -> SubjectSnapshot:
        """Restore full condition at a fixed price per missing point."""
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            missing = self.rules.housing.max_condition - house.condition
            if missing <= 0:
                raise IneligibleAction("House is already in perfect condition",
                                       reason=FailureReason.REQUIREMENT)
            cost = missing * self.rules.housing.repair_cost_per_point
            self._debit(player, cost)
            old = house.condition
            house.condition = self.rules.housing.max_condition
            self._audit("house", house.id, "repair", actor_id=player.id,
                        old_state=str(old), new_state=str(house.condition), cost=cost)
            return self.snapshot(house, player, cost=cost)

    # ---- Storage ------------------------------------------------------------

    @staticmethod
    def storage_capacity(house: House) -> int:
        """Storage slots of the tier plus any furniture ``storage_bonus``."""
        bonus = compute_house_modifiers(house).get("storage_bonus", 0)
        return catalog.get_house_tier(house.tier).storage + int(bonus)

    def _require_storage(self, house: House) -> None:
        if house.condition <= self.rules.housing.storage_disabled_at_condition:
            raise self._refuse(
                FailureReason.REQUIREMENT,
                "House storage is disabled due to poor condition; repair the house first",
            )

    def deposit_item(self, player_id: int, item: str, quantity: int) -> SubjectSnapshot:
        """Move items from the inventory into house storage.

        Each distinct item occupies one slot; topping up an item already in
        storage needs no free slot.

        Raises:
            ValidationFailure: Quantity below one
            IneligibleAction: Poor condition, too few items held or no free slot
        """
        if quantity < 1:
            raise ValidationFailure("Quantity must be at least 1")
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            self._require_storage(house)
            storage = dict(house.storage)
            new_slot = item not in storage
            entry = CatalogEntry(f"storage_{item}", f"Storing {item}",
                                 materials=((item, quantity),))
            check(
                self._attributes(
                    player,
                    level=0,
                    occupancy=len(storage),
                    capacity=self.storage_capacity(house) if new_slot else None,
                ),
                entry,
            ).require()
            self._consume_items(player, {item: quantity})
            storage[item] = storage.get(item, 0) + quantity
            house.storage = storage
            self._audit("house", house.id, "deposit_item", actor_id=player.id,
                        item=item, quantity=quantity)
            return self.snapshot(house, player, storage=storage, slots_used=len(storage))

    def withdraw_item(self, player_id: int, item: str, quantity: int) -> SubjectSnapshot:
        """Move items from house storage back into the inventory."""
        if quantity < 1:
            raise ValidationFailure("Quantity must be at least 1")
        house_id = self.get_house(player_id).id
        with self._transaction(("player", player_id), ("house", house_id)):
            player = self._player(player_id)
            house = self._load(House, house_id, "House")
            self._require_storage(house)
            storage = dict(house.storage)
            stored = storage.get(item, 0)
            if stored < quantity:
                raise self._refuse(FailureReason.MATERIALS,
                                   f"Only {stored} {item} in storage")
            if stored == quantity:
                del storage[item]
            else:
                storage[item] = stored - quantity
            house.storage = storage
            self._give_items(player, {item: quantity})
            self._audit("house", house.id, "withdraw_item", actor_id=player.id,
                        item=item, quantity=quantity)
            return self.snapshot(house, player, storage=storage, slots_used=len(storage))

    def process_upkeep_degradation(self, now: datetime | None = None) -> dict[str, int]:
        """Degrade houses whose upkeep is overdue; abandon those that reach zero.

        Each house is handled in its own transaction so one failure does not
        block the rest of the sweep.
        """
        now = now or self.clock()
        due = self.session.execute(
            select(House.id, House.owner_id).where(House.upkeep_due_at.is_not(None))
        ).all()
        degraded = abandoned = 0
        for house_id, owner_id in due:
            with self._transaction(("player", owner_id), ("house", house_id)):
                house = self.session.get(House, house_id, populate_existing=True)
                if house is None or not deadline_passed(house.upkeep_due_at, now):
                    continue
                old = house.condition
                house.condition = max(0, old - self.rules.housing.degradation_per_sweep)
                if house.condition == 0:
                    self._audit("house", house.id, "abandon", old_state=str(old), new_state="0")
                    self.session.delete(house)
                    abandoned += 1
                else:
                    self._audit("house", house.id, "degrade", old_state=str(old),
                                new_state=str(house.condition))
                    degraded += 1
        if degraded or abandoned:
            logger.info("upkeep sweep degraded %d houses, abandoned %d", degraded, abandoned)
        return {"degraded": degraded, "abandoned": abandoned}

    # ---- Helpers ------------------------------------------------------------

    @staticmethod
    def _room(house: House, room_id: int) -> HouseRoom:
        for room in house.rooms:
            if room.id == room_id:
                return room
        raise NotFound(f"Room {room_id} not found in house {house.id}")

    def _salvage(self, option: CatalogEntry) -> dict[str, int]:
        ratio = self.rules.housing.material_refund_ratio
        returned = {name: int(quantity * ratio) for name, quantity in option.materials}
        return {name: quantity for name, quantity in returned.items() if quantity > 0}

    @staticmethod
    def _refresh_modifiers(house: House) -> None:
        house.modifiers = compute_house_modifiers(house).as_dict()
