from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar

from coven.content.items import MOON_PHASES, SEASONS, ItemDef

WEATHER_KINDS = ("normal", "rainy", "dry", "foggy", "windy", "stormy")
SKILL_NAMES = ("gardening", "brewing", "trading", "crafting", "herbalism", "astrology")
SKILL_CAP = 10.0
REPUTATION_CAP = 100
PRICE_HISTORY_LIMIT = 20
BLACK_MARKET_HISTORY_LIMIT = 10
DEFAULT_JOURNAL_MAX_ENTRIES = 200
DEFAULT_JOURNAL_TRIM_TO = 150


def _is_json_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str))


def _validate_json_value(value: Any, *, field_name: str) -> None:
    if _is_json_primitive(value):
        return
    if isinstance(value, list):
        for item in value:
            _validate_json_value(item, field_name=field_name)
        return
    if isinstance(value, dict):
        for key, nested_value in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{field_name} keys must be strings")
            _validate_json_value(nested_value, field_name=field_name)
        return
    raise ValueError(f"{field_name} must contain only canonical JSON primitives")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_range(value: Any, *, field_name: str, low: float, high: float) -> None:
    if not _is_number(value) or value < low or value > high:
        raise ValueError(f"{field_name} must be a number in [{low:g}, {high:g}]")


def _require_non_negative_int(value: Any, *, field_name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{field_name} must be a non-negative integer")


def _require_non_empty_str(value: Any, *, field_name: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{field_name} must be a non-empty string")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class GameClock:
    year: int = 1
    season: str = "Spring"
    phase_index: int = 0
    weather: str = "normal"
    previous_weather: str | None = None
    turn: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.year, int) or self.year < 1:
            raise ValueError("clock.year must be an integer >= 1")
        if self.season not in SEASONS:
            raise ValueError(f"clock.season must be one of: {', '.join(SEASONS)}")
        if not isinstance(self.phase_index, int) or not 0 <= self.phase_index < len(MOON_PHASES):
            raise ValueError("clock.phase_index must be an integer in [0, 8)")
        if not isinstance(self.weather, str) or not self.weather:
            raise ValueError("clock.weather must be a non-empty string")
        if self.previous_weather is not None and not isinstance(self.previous_weather, str):
            raise ValueError("clock.previous_weather must be a string or None")
        if not isinstance(self.turn, int) or self.turn < 1:
            raise ValueError("clock.turn must be an integer >= 1")

    @property
    def phase_name(self) -> str:
        return MOON_PHASES[self.phase_index]

    def date_label(self) -> str:
        return f"{self.phase_name}, {self.season} Y{self.year}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "season": self.season,
            "phase_index": self.phase_index,
            "phase_name": self.phase_name,
            "weather": self.weather,
            "previous_weather": self.previous_weather,
            "turn": self.turn,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameClock":
        return cls(
            year=int(data["year"]),
            season=str(data["season"]),
            phase_index=int(data["phase_index"]),
            weather=str(data.get("weather", "normal")),
            previous_weather=data.get("previous_weather"),
            turn=int(data["turn"]),
        )


@dataclass
class Plant:
    item_id: str
    name: str
    growth_required: float
    growth: float = 0.0
    health: float = 70
    age: int = 0
    mature: bool = False
    watered: bool = False
    death_chance: float = 0.0

    def __post_init__(self) -> None:
        _require_non_empty_str(self.item_id, field_name="plant.item_id")
        _require_non_empty_str(self.name, field_name="plant.name")
        if not _is_number(self.growth_required) or self.growth_required <= 0:
            raise ValueError("plant.growth_required must be a number > 0")
        if not _is_number(self.growth) or self.growth < 0:
            raise ValueError("plant.growth must be a number >= 0")
        _require_range(self.health, field_name="plant.health", low=0, high=100)
        _require_non_negative_int(self.age, field_name="plant.age")

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "growth": self.growth,
            "growth_required": self.growth_required,
            "health": self.health,
            "age": self.age,
            "mature": self.mature,
            "watered": self.watered,
            "death_chance": self.death_chance,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Plant":
        return cls(
            item_id=str(data["item_id"]),
            name=str(data["name"]),
            growth_required=data["growth_required"],
            growth=data.get("growth", 0.0),
            health=data.get("health", 70),
            age=int(data.get("age", 0)),
            mature=bool(data.get("mature", False)),
            watered=bool(data.get("watered", False)),
            death_chance=float(data.get("death_chance", 0.0)),
        )


@dataclass
class GardenSlot:
    slot_id: int
    plant: Plant | None = None
    fertility: float = 70
    moisture: float = 50
    sunlight: float = 70
    unlocked: bool = True

    def __post_init__(self) -> None:
        _require_non_negative_int(self.slot_id, field_name="slot.slot_id")
        _require_range(self.fertility, field_name="slot.fertility", low=0, high=100)
        _require_range(self.moisture, field_name="slot.moisture", low=0, high=100)
        _require_range(self.sunlight, field_name="slot.sunlight", low=0, high=100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot_id": self.slot_id,
            "plant": self.plant.to_dict() if self.plant is not None else None,
            "fertility": self.fertility,
            "moisture": self.moisture,
            "sunlight": self.sunlight,
            "unlocked": self.unlocked,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GardenSlot":
        plant = data.get("plant")
        return cls(
            slot_id=int(data["slot_id"]),
            plant=Plant.from_dict(plant) if isinstance(plant, dict) else None,
            fertility=data.get("fertility", 70),
            moisture=data.get("moisture", 50),
            sunlight=data.get("sunlight", 70),
            unlocked=bool(data.get("unlocked", True)),
        )


@dataclass
class InventoryItem:
    item_id: str
    name: str
    item_type: str
    category: str
    quantity: int
    quality: int = 70

    def __post_init__(self) -> None:
        _require_non_empty_str(self.item_id, field_name="inventory.item_id")
        _require_non_empty_str(self.name, field_name="inventory.name")
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError("inventory.quantity must be an integer >= 1")
        if not isinstance(self.quality, int) or not 0 <= self.quality <= 100:
            raise ValueError("inventory.quality must be an integer in [0, 100]")

    @property
    def inventory_id(self) -> str:
        return f"{self.item_id}:q{self.quality}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "inventory_id": self.inventory_id,
            "item_id": self.item_id,
            "name": self.name,
            "item_type": self.item_type,
            "category": self.category,
            "quantity": self.quantity,
            "quality": self.quality,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InventoryItem":
        return cls(
            item_id=str(data["item_id"]),
            name=str(data["name"]),
            item_type=str(data["item_type"]),
            category=str(data["category"]),
            quantity=int(data["quantity"]),
            quality=int(data.get("quality", 70)),
        )


def _default_skills() -> dict[str, float]:
    return {name: 1.0 for name in SKILL_NAMES}


@dataclass
class Player:
    player_id: str
    name: str
    gold: int = 100
    reputation: int = 10
    skills: dict[str, float] = field(default_factory=_default_skills)
    inventory: list[InventoryItem] = field(default_factory=list)
    garden: list[GardenSlot] = field(default_factory=list)
    known_recipes: list[str] = field(default_factory=list)
    completed_ritual_ids: list[str] = field(default_factory=list)
    days_survived: int = 0
    black_market_access: bool = False

    def __post_init__(self) -> None:
        _require_non_empty_str(self.player_id, field_name="player.player_id")
        if not isinstance(self.gold, int) or self.gold < 0:
            raise ValueError("player.gold must be a non-negative integer")
        if not isinstance(self.reputation, int) or not 0 <= self.reputation <= REPUTATION_CAP:
            raise ValueError("player.reputation must be an integer in [0, 100]")
        for skill in SKILL_NAMES:
            self.skills.setdefault(skill, 0.0)
        for skill, level in self.skills.items():
            if skill not in SKILL_NAMES:
                raise ValueError(f"player.skills has unknown skill: {skill}")
            _require_range(level, field_name=f"player.skills[{skill}]", low=0, high=SKILL_CAP)
        slot_ids = [slot.slot_id for slot in self.garden]
        if len(slot_ids) != len(set(slot_ids)):
            raise ValueError("player.garden slot_ids must be unique")

    def slot(self, slot_id: int) -> GardenSlot | None:
        for slot in self.garden:
            if slot.slot_id == slot_id:
                return slot
        return None

    def stack(self, inventory_id: str) -> InventoryItem | None:
        for item in self.inventory:
            if item.inventory_id == inventory_id:
                return item
        return None

    def quantity_by_name(self, name: str) -> int:
        return sum(item.quantity for item in self.inventory if item.name == name)

    def add_item(self, item: ItemDef, quantity: int, quality: int) -> InventoryItem:
        quality = int(clamp(round(quality), 0, 100))
        for existing in self.inventory:
            if existing.item_id == item.item_id and existing.quality == quality:
                existing.quantity += quantity
                return existing
        created = InventoryItem(
            item_id=item.item_id,
            name=item.name,
            item_type=item.item_type,
            category=item.category,
            quantity=quantity,
            quality=quality,
        )
        self.inventory.append(created)
        self.inventory.sort(key=lambda current: current.inventory_id)
        return created

    def remove_from_stack(self, inventory_id: str, quantity: int) -> bool:
        existing = self.stack(inventory_id)
        if existing is None or quantity < 1 or existing.quantity < quantity:
            return False
        existing.quantity -= quantity
        if existing.quantity == 0:
            self.inventory.remove(existing)
        return True

    def remove_by_name(self, name: str, quantity: int) -> list[int]:
        """Consume ``quantity`` units named ``name``, lowest quality first.

        Returns the qualities consumed. Callers must check availability first.
        """
        if self.quantity_by_name(name) < quantity:
            raise ValueError(f"player {self.player_id} lacks {quantity}x {name}")
        consumed: list[int] = []
        for stack in sorted(
            (item for item in self.inventory if item.name == name),
            key=lambda current: current.quality,
        ):
            take = min(stack.quantity, quantity - len(consumed))
            consumed.extend([stack.quality] * take)
            self.remove_from_stack(stack.inventory_id, take)
            if len(consumed) == quantity:
                break
        return consumed

    def add_skill_xp(self, skill: str, amount: float) -> None:
        if skill not in SKILL_NAMES:
            raise ValueError(f"unknown skill: {skill}")
        self.skills[skill] = round(clamp(self.skills.get(skill, 0.0) + amount, 0.0, SKILL_CAP), 4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "gold": self.gold,
            "reputation": self.reputation,
            "skills": dict(sorted(self.skills.items())),
            "inventory": [item.to_dict() for item in self.inventory],
            "garden": [slot.to_dict() for slot in sorted(self.garden, key=lambda slot: slot.slot_id)],
            "known_recipes": list(self.known_recipes),
            "completed_ritual_ids": list(self.completed_ritual_ids),
            "days_survived": self.days_survived,
            "black_market_access": self.black_market_access,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Player":
        return cls(
            player_id=str(data["player_id"]),
            name=str(data.get("name", data["player_id"])),
            gold=int(data.get("gold", 0)),
            reputation=int(data.get("reputation", 0)),
            skills={str(key): float(value) for key, value in dict(data.get("skills", {})).items()},
            inventory=[InventoryItem.from_dict(row) for row in data.get("inventory", [])],
            garden=[GardenSlot.from_dict(row) for row in data.get("garden", [])],
            known_recipes=[str(recipe_id) for recipe_id in data.get("known_recipes", [])],
            completed_ritual_ids=[str(ritual_id) for ritual_id in data.get("completed_ritual_ids", [])],
            days_survived=int(data.get("days_survived", 0)),
            black_market_access=bool(data.get("black_market_access", False)),
        )


@dataclass
class MarketItem:
    item_id: str
    name: str
    item_type: str
    category: str
    price: int
    base_price: int
    rarity: str = "common"
    volatility: float = 1.0
    price_history: list[int] = field(default_factory=list)
    last_price_change_turn: int | None = None
    seasonal_bonus: str | None = None
    black_market_only: bool = False

    def __post_init__(self) -> None:
        _require_non_empty_str(self.item_id, field_name="market.item_id")
        _require_non_empty_str(self.name, field_name="market.name")
        if not isinstance(self.price, int) or self.price < 1:
            raise ValueError("market.price must be an integer >= 1")
        if not isinstance(self.base_price, int) or self.base_price < 1:
            raise ValueError("market.base_price must be an integer >= 1")
        if not _is_number(self.volatility) or self.volatility <= 0:
            raise ValueError("market.volatility must be a number > 0")

    def price_floor(self) -> int:
        factor = 0.1 if self.black_market_only else 0.2
        return max(1, round(self.base_price * factor))

    def record_price(self, turn: int) -> None:
        self.last_price_change_turn = turn
        self.price_history.append(self.price)
        limit = BLACK_MARKET_HISTORY_LIMIT if self.black_market_only else PRICE_HISTORY_LIMIT
        if len(self.price_history) > limit:
            del self.price_history[: len(self.price_history) - limit]

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "item_type": self.item_type,
            "category": self.category,
            "price": self.price,
            "base_price": self.base_price,
            "rarity": self.rarity,
            "volatility": self.volatility,
            "price_history": list(self.price_history),
            "last_price_change_turn": self.last_price_change_turn,
            "seasonal_bonus": self.seasonal_bonus,
            "black_market_only": self.black_market_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketItem":
        last_change = data.get("last_price_change_turn")
        return cls(
            item_id=str(data["item_id"]),
            name=str(data["name"]),
            item_type=str(data["item_type"]),
            category=str(data["category"]),
            price=int(data["price"]),
            base_price=int(data["base_price"]),
            rarity=str(data.get("rarity", "common")),
            volatility=float(data.get("volatility", 1.0)),
            price_history=[int(price) for price in data.get("price_history", [])],
            last_price_change_turn=int(last_change) if last_change is not None else None,
            seasonal_bonus=data.get("seasonal_bonus"),
            black_market_only=bool(data.get("black_market_only", False)),
        )


@dataclass
class MarketData:
    inflation: float = 1.0
    supply: dict[str, float] = field(default_factory=dict)
    demand: dict[str, float] = field(default_factory=dict)
    trading_volume: float = 0
    black_market_access_cost: int = 100
    black_market_unlocked: bool = False

    def __post_init__(self) -> None:
        _require_range(self.inflation, field_name="market_data.inflation", low=0.8, high=1.5)
        for label, table in (("supply", self.supply), ("demand", self.demand)):
            if not isinstance(table, dict):
                raise ValueError(f"market_data.{label} must be an object")
            for name, value in table.items():
                _require_range(value, field_name=f"market_data.{label}[{name}]", low=5, high=95)
        if not _is_number(self.trading_volume) or self.trading_volume < 0:
            raise ValueError("market_data.trading_volume must be a number >= 0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "inflation": self.inflation,
            "supply": dict(sorted(self.supply.items())),
            "demand": dict(sorted(self.demand.items())),
            "trading_volume": self.trading_volume,
            "black_market_access_cost": self.black_market_access_cost,
            "black_market_unlocked": self.black_market_unlocked,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketData":
        return cls(
            inflation=float(data.get("inflation", 1.0)),
            supply=dict(data.get("supply", {})),
            demand=dict(data.get("demand", {})),
            trading_volume=data.get("trading_volume", 0),
            black_market_access_cost=int(data.get("black_market_access_cost", 100)),
            black_market_unlocked=bool(data.get("black_market_unlocked", False)),
        )


@dataclass
class Rumor:
    rumor_id: str
    content: str
    affected_item: str
    spread: int
    category: str = "special"
    price_effect: float | None = None
    duration: int | None = None
    verified: bool = False
    origin: str = "gossip"
    turns_active: int = 0

    def __post_init__(self) -> None:
        _require_non_empty_str(self.rumor_id, field_name="rumor.rumor_id")
        _require_non_empty_str(self.content, field_name="rumor.content")
        if not isinstance(self.spread, int) or not 0 <= self.spread <= 100:
            raise ValueError("rumor.spread must be an integer in [0, 100]")
        if self.price_effect is not None and not _is_number(self.price_effect):
            raise ValueError("rumor.price_effect must be a number or None")
        if self.duration is not None:
            _require_non_negative_int(self.duration, field_name="rumor.duration")
        _require_non_negative_int(self.turns_active, field_name="rumor.turns_active")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rumor_id": self.rumor_id,
            "content": self.content,
            "category": self.category,
            "affected_item": self.affected_item,
            "price_effect": self.price_effect,
            "spread": self.spread,
            "duration": self.duration,
            "verified": self.verified,
            "origin": self.origin,
            "turns_active": self.turns_active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rumor":
        return cls(
            rumor_id=str(data["rumor_id"]),
            content=str(data["content"]),
            category=str(data.get("category", "special")),
            affected_item=str(data["affected_item"]),
            price_effect=data.get("price_effect"),
            spread=int(data["spread"]),
            duration=data.get("duration"),
            verified=bool(data.get("verified", False)),
            origin=str(data.get("origin", "gossip")),
            turns_active=int(data.get("turns_active", 0)),
        )


@dataclass
class TownRequest:
    request_id: str
    item_name: str
    quantity: int
    reward_gold: int
    reward_influence: int
    requester: str
    description: str = ""
    difficulty: int = 1
    completed: bool = False

    def __post_init__(self) -> None:
        _require_non_empty_str(self.request_id, field_name="request.request_id")
        _require_non_empty_str(self.item_name, field_name="request.item_name")
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError("request.quantity must be an integer >= 1")
        _require_non_negative_int(self.reward_gold, field_name="request.reward_gold")
        _require_non_negative_int(self.reward_influence, field_name="request.reward_influence")
        if not isinstance(self.difficulty, int) or not 1 <= self.difficulty <= 5:
            raise ValueError("request.difficulty must be an integer in [1, 5]")

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "reward_gold": self.reward_gold,
            "reward_influence": self.reward_influence,
            "requester": self.requester,
            "description": self.description,
            "difficulty": self.difficulty,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TownRequest":
        return cls(
            request_id=str(data["request_id"]),
            item_name=str(data["item_name"]),
            quantity=int(data["quantity"]),
            reward_gold=int(data["reward_gold"]),
            reward_influence=int(data["reward_influence"]),
            requester=str(data["requester"]),
            description=str(data.get("description", "")),
            difficulty=int(data.get("difficulty", 1)),
            completed=bool(data.get("completed", False)),
        )


# Ritual steps and rewards are tagged variants keyed by ``kind``.


@dataclass
class RitualStep:
    kind: ClassVar[str] = ""

    description: str = ""
    completed: bool = False
    completed_date: str | None = None

    def __post_init__(self) -> None:
        _require_non_empty_str(self.description, field_name=f"{self.kind}.description")

    def _payload(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "description": self.description,
            "completed": self.completed,
            "completed_date": self.completed_date,
            **self._payload(),
        }


@dataclass
class BrewNamedStep(RitualStep):
    kind: ClassVar[str] = "brew_named"

    potion_name: str = ""
    min_quality: int | None = None
    moon_phase: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        _require_non_empty_str(self.potion_name, field_name="brew_named.potion_name")
        if self.moon_phase is not None and self.moon_phase not in MOON_PHASES:
            raise ValueError("brew_named.moon_phase must be a moon phase name")

    def _payload(self) -> dict[str, Any]:
        return {"potion_name": self.potion_name, "min_quality": self.min_quality, "moon_phase": self.moon_phase}


@dataclass
class HarvestNamedStep(RitualStep):
    kind: ClassVar[str] = "harvest_named"

    plant_name: str = ""
    min_quality: int | None = None
    target_count: int = 1
    current_count: int = 0

    def __post_init__(self) -> None:
        super().__post_init__()
        _require_non_empty_str(self.plant_name, field_name="harvest_named.plant_name")
        if not isinstance(self.target_count, int) or self.target_count < 1:
            raise ValueError("harvest_named.target_count must be an integer >= 1")
        _require_non_negative_int(self.current_count, field_name="harvest_named.current_count")

    def _payload(self) -> dict[str, Any]:
        return {
            "plant_name": self.plant_name,
            "min_quality": self.min_quality,
            "target_count": self.target_count,
            "current_count": self.current_count,
        }


@dataclass
class PlantDistinctStep(RitualStep):
    kind: ClassVar[str] = "plant_distinct"

    target_count: int = 1
    planted_names: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.target_count, int) or self.target_count < 1:
            raise ValueError("plant_distinct.target_count must be an integer >= 1")

    def _payload(self) -> dict[str, Any]:
        return {"target_count": self.target_count, "planted_names": list(self.planted_names)}


@dataclass
class SellNamedStep(RitualStep):
    kind: ClassVar[str] = "sell_named"

    item_name: str = ""
    target_count: int = 1
    current_count: int = 0

    def __post_init__(self) -> None:
        super().__post_init__()
        _require_non_empty_str(self.item_name, field_name="sell_named.item_name")
        if not isinstance(self.target_count, int) or self.target_count < 1:
            raise ValueError("sell_named.target_count must be an integer >= 1")

    def _payload(self) -> dict[str, Any]:
        return {"item_name": self.item_name, "target_count": self.target_count, "current_count": self.current_count}


STEP_TYPES: dict[str, type[RitualStep]] = {
    step_type.kind: step_type for step_type in (BrewNamedStep, HarvestNamedStep, PlantDistinctStep, SellNamedStep)
}


def step_from_dict(data: dict[str, Any]) -> RitualStep:
    if not isinstance(data, dict):
        raise ValueError("ritual step must be an object")
    kind = data.get("kind")
    step_type = STEP_TYPES.get(kind) if isinstance(kind, str) else None
    if step_type is None:
        raise ValueError(f"ritual step kind must be one of: {', '.join(sorted(STEP_TYPES))}")
    fields = {key: copy.deepcopy(value) for key, value in data.items() if key != "kind"}
    try:
        return step_type(**fields)
    except TypeError as exc:
        raise ValueError(f"invalid {kind} step fields: {exc}") from exc


@dataclass
class RitualReward:
    kind: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, **{key: copy.deepcopy(value) for key, value in self.__dict__.items()}}


@dataclass
class GoldReward(RitualReward):
    kind: ClassVar[str] = "gold"
    amount: int = 0


@dataclass
class ItemReward(RitualReward):
    kind: ClassVar[str] = "item"
    item_id: str = ""
    quantity: int = 1
    quality: int = 95


@dataclass
class SkillReward(RitualReward):
    kind: ClassVar[str] = "skill"
    skill: str = ""
    xp: float = 0.0

    def __post_init__(self) -> None:
        if self.skill not in SKILL_NAMES:
            raise ValueError(f"skill reward must name one of: {', '.join(SKILL_NAMES)}")


@dataclass
class ReputationReward(RitualReward):
    kind: ClassVar[str] = "reputation"
    amount: int = 0


@dataclass
class RecipeReward(RitualReward):
    kind: ClassVar[str] = "recipe"
    recipe_id: str = ""


@dataclass
class BlueprintReward(RitualReward):
    kind: ClassVar[str] = "blueprint"
    blueprint: str = ""


@dataclass
class GardenSlotReward(RitualReward):
    kind: ClassVar[str] = "garden_slot"


REWARD_TYPES: dict[str, type[RitualReward]] = {
    reward_type.kind: reward_type
    for reward_type in (
        GoldReward,
        ItemReward,
        SkillReward,
        ReputationReward,
        RecipeReward,
        BlueprintReward,
        GardenSlotReward,
    )
}


def reward_from_dict(data: dict[str, Any]) -> RitualReward:
    if not isinstance(data, dict):
        raise ValueError("ritual reward must be an object")
    kind = data.get("kind")
    reward_type = REWARD_TYPES.get(kind) if isinstance(kind, str) else None
    if reward_type is None:
        raise ValueError(f"ritual reward kind must be one of: {', '.join(sorted(REWARD_TYPES))}")
    fields = {key: value for key, value in data.items() if key != "kind"}
    try:
        return reward_type(**fields)
    except TypeError as exc:
        raise ValueError(f"invalid {kind} reward fields: {exc}") from exc


@dataclass
class RitualQuest:
    ritual_id: str
    name: str
    steps: list[RitualStep]
    rewards: list[RitualReward]
    description: str = ""
    required_season: str | None = None
    required_moon_phase: str | None = None
    prerequisite_ritual_id: str | None = None
    unlocked: bool = False
    steps_completed: int = 0

    def __post_init__(self) -> None:
        _require_non_empty_str(self.ritual_id, field_name="ritual.ritual_id")
        if not self.steps:
            raise ValueError("ritual.steps must not be empty")
        if self.required_season is not None and self.required_season not in SEASONS:
            raise ValueError("ritual.required_season must be a season name")
        if self.required_moon_phase is not None and self.required_moon_phase not in MOON_PHASES:
            raise ValueError("ritual.required_moon_phase must be a moon phase name")
        if not isinstance(self.steps_completed, int) or not 0 <= self.steps_completed <= len(self.steps):
            raise ValueError("ritual.steps_completed must be an integer in [0, total_steps]")

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def is_complete(self) -> bool:
        return self.steps_completed >= self.total_steps

    def current_step(self) -> RitualStep | None:
        if self.is_complete():
            return None
        return self.steps[self.steps_completed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ritual_id": self.ritual_id,
            "name": self.name,
            "description": self.description,
            "steps": [step.to_dict() for step in self.steps],
            "steps_completed": self.steps_completed,
            "total_steps": self.total_steps,
            "rewards": [reward.to_dict() for reward in self.rewards],
            "required_season": self.required_season,
            "required_moon_phase": self.required_moon_phase,
            "prerequisite_ritual_id": self.prerequisite_ritual_id,
            "unlocked": self.unlocked,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RitualQuest":
        return cls(
            ritual_id=str(data["ritual_id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            steps=[step_from_dict(row) for row in data.get("steps", [])],
            rewards=[reward_from_dict(row) for row in data.get("rewards", [])],
            required_season=data.get("required_season"),
            required_moon_phase=data.get("required_moon_phase"),
            prerequisite_ritual_id=data.get("prerequisite_ritual_id"),
            unlocked=bool(data.get("unlocked", False)),
            steps_completed=int(data.get("steps_completed", 0)),
        )


@dataclass
class JournalEntry:
    entry_id: str
    turn: int
    date: str
    text: str
    category: str
    importance: int = 2
    player_id: str | None = None
    read: bool = False

    def __post_init__(self) -> None:
        _require_non_empty_str(self.entry_id, field_name="journal.entry_id")
        if not isinstance(self.importance, int) or not 1 <= self.importance <= 5:
            raise ValueError("journal.importance must be an integer in [1, 5]")

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "turn": self.turn,
            "date": self.date,
            "text": self.text,
            "category": self.category,
            "importance": self.importance,
            "player_id": self.player_id,
            "read": self.read,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JournalEntry":
        return cls(
            entry_id=str(data["entry_id"]),
            turn=int(data["turn"]),
            date=str(data["date"]),
            text=str(data["text"]),
            category=str(data["category"]),
            importance=int(data.get("importance", 2)),
            player_id=data.get("player_id"),
            read=bool(data.get("read", False)),
        )


@dataclass(frozen=True)
class TurnNote:
    """A narrative line produced during a turn, folded into the journal afterwards."""

    text: str
    category: str
    importance: int = 2
    player_id: str | None = None


@dataclass
class GameState:
    clock: GameClock = field(default_factory=GameClock)
    players: dict[str, Player] = field(default_factory=dict)
    market: list[MarketItem] = field(default_factory=list)
    market_data: MarketData = field(default_factory=MarketData)
    rumors: list[Rumor] = field(default_factory=list)
    town_requests: list[TownRequest] = field(default_factory=list)
    rituals: list[RitualQuest] = field(default_factory=list)
    journal: list[JournalEntry] = field(default_factory=list)
    known_recipe_ids: list[str] = field(default_factory=list)
    id_counters: dict[str, int] = field(default_factory=dict)
    journal_seq: int = 0
    journal_max_entries: int = DEFAULT_JOURNAL_MAX_ENTRIES
    journal_trim_to: int = DEFAULT_JOURNAL_TRIM_TO

    def __post_init__(self) -> None:
        if not isinstance(self.journal_trim_to, int) or self.journal_trim_to < 1:
            raise ValueError("journal_trim_to must be an integer >= 1")
        if not isinstance(self.journal_max_entries, int) or self.journal_max_entries < self.journal_trim_to:
            raise ValueError("journal_max_entries must be an integer >= journal_trim_to")
        _validate_json_value(self.id_counters, field_name="id_counters")

    def next_id(self, prefix: str) -> str:
        counter = int(self.id_counters.get(prefix, 0)) + 1
        self.id_counters[prefix] = counter
        return f"{prefix}-{self.clock.turn}-{counter}"

    def add_journal_entry(
        self,
        text: str,
        *,
        category: str,
        importance: int = 2,
        player_id: str | None = None,
    ) -> JournalEntry:
        self.journal_seq += 1
        entry = JournalEntry(
            entry_id=f"j-{self.clock.turn}-{self.journal_seq}",
            turn=self.clock.turn,
            date=self.clock.date_label(),
            text=text,
            category=category,
            importance=importance,
            player_id=player_id,
        )
        self.journal.append(entry)
        if len(self.journal) > self.journal_max_entries:
            del self.journal[: len(self.journal) - self.journal_trim_to]
        return entry

    def fold_notes(self, notes: list[TurnNote]) -> None:
        for note in notes:
            self.add_journal_entry(
                note.text,
                category=note.category,
                importance=note.importance,
                player_id=note.player_id,
            )
        notes.clear()

    def player(self, player_id: str) -> Player | None:
        return self.players.get(player_id)

    def market_item(self, item_id: str) -> MarketItem | None:
        for item in self.market:
            if item.item_id == item_id:
                return item
        return None

    def rumor(self, rumor_id: str) -> Rumor | None:
        for rumor in self.rumors:
            if rumor.rumor_id == rumor_id:
                return rumor
        return None

    def request(self, request_id: str) -> TownRequest | None:
        for request in self.town_requests:
            if request.request_id == request_id:
                return request
        return None

    def ritual(self, ritual_id: str) -> RitualQuest | None:
        for ritual in self.rituals:
            if ritual.ritual_id == ritual_id:
                return ritual
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "clock": self.clock.to_dict(),
            "players": [self.players[player_id].to_dict() for player_id in sorted(self.players)],
            "market": [item.to_dict() for item in self.market],
            "market_data": self.market_data.to_dict(),
            "rumors": [rumor.to_dict() for rumor in self.rumors],
            "town_requests": [request.to_dict() for request in self.town_requests],
            "rituals": [ritual.to_dict() for ritual in self.rituals],
            "journal": [entry.to_dict() for entry in self.journal],
            "known_recipe_ids": list(self.known_recipe_ids),
            "id_counters": dict(sorted(self.id_counters.items())),
            "journal_seq": self.journal_seq,
            "journal_max_entries": self.journal_max_entries,
            "journal_trim_to": self.journal_trim_to,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        if not isinstance(data, dict):
            raise ValueError("game_state must be an object")
        players = [Player.from_dict(row) for row in data.get("players", [])]
        by_id = {player.player_id: player for player in players}
        if len(by_id) != len(players):
            raise ValueError("game_state.players must have unique player_id values")
        return cls(
            clock=GameClock.from_dict(data["clock"]),
            players=dict(sorted(by_id.items())),
            market=[MarketItem.from_dict(row) for row in data.get("market", [])],
            market_data=MarketData.from_dict(data.get("market_data", {})),
            rumors=[Rumor.from_dict(row) for row in data.get("rumors", [])],
            town_requests=[TownRequest.from_dict(row) for row in data.get("town_requests", [])],
            rituals=[RitualQuest.from_dict(row) for row in data.get("rituals", [])],
            journal=[JournalEntry.from_dict(row) for row in data.get("journal", [])],
            known_recipe_ids=[str(recipe_id) for recipe_id in data.get("known_recipe_ids", [])],
            id_counters={str(key): int(value) for key, value in dict(data.get("id_counters", {})).items()},
            journal_seq=int(data.get("journal_seq", 0)),
            journal_max_entries=int(data.get("journal_max_entries", DEFAULT_JOURNAL_MAX_ENTRIES)),
            journal_trim_to=int(data.get("journal_trim_to", DEFAULT_JOURNAL_TRIM_TO)),
        )
