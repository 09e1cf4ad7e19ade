from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

ITEMS_SCHEMA_VERSION = 1
DEFAULT_ITEMS_PATH = Path(__file__).resolve().parent / "data" / "items.json"

SEASONS = ("Spring", "Summer", "Fall", "Winter")
MOON_PHASES = (
    "New Moon",
    "Waxing Crescent",
    "First Quarter",
    "Waxing Gibbous",
    "Full Moon",
    "Waning Gibbous",
    "Last Quarter",
    "Waning Crescent",
)
RARITIES = {"common", "uncommon", "rare", "legendary"}
ITEM_TYPES = {"ingredient", "seed", "potion", "tool", "ritual_item"}


@dataclass(frozen=True)
class ItemDef:
    item_id: str
    name: str
    item_type: str
    category: str
    rarity: str
    value: int
    seasonal_bonus: str | None = None
    primary_property: str | None = None
    plant_source_id: str | None = None
    black_market_only: bool = False


@dataclass(frozen=True)
class IngredientDef:
    """Growth parameters for a plantable ingredient."""

    item_id: str
    name: str
    growth_time: int
    best_season: str
    worst_season: str
    ideal_moisture: int
    ideal_moon_phase: str | None = None
    ideal_sunlight: int | None = None
    harvest_bonus: str | None = None


@dataclass(frozen=True)
class ItemRegistry:
    schema_version: int
    items: tuple[ItemDef, ...]
    ingredients: tuple[IngredientDef, ...]

    def by_id(self) -> dict[str, ItemDef]:
        return {item.item_id: item for item in self.items}

    def by_name(self) -> dict[str, ItemDef]:
        return {item.name: item for item in self.items}

    def ingredients_by_id(self) -> dict[str, IngredientDef]:
        return {ingredient.item_id: ingredient for ingredient in self.ingredients}

    def ingredients_by_name(self) -> dict[str, IngredientDef]:
        return {ingredient.name: ingredient for ingredient in self.ingredients}


def seed_id_for(ingredient_name: str) -> str:
    return "seed_" + "_".join(ingredient_name.lower().split())


def load_items_json(path: str | Path) -> ItemRegistry:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _registry_from_payload(payload)


def _optional_str(row: dict[str, Any], key: str, *, where: str, allowed: Any = None) -> str | None:
    value = row.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ValueError(f"{where}.{key} must be a non-empty string when present")
    if allowed is not None and value not in allowed:
        raise ValueError(f"{where}.{key} must be one of: {', '.join(sorted(allowed))}")
    return value


def _require_str(row: dict[str, Any], key: str, *, where: str) -> str:
    value = row.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{where}.{key} must be a non-empty string")
    return value


def _require_int(row: dict[str, Any], key: str, *, where: str, minimum: int = 0, maximum: int | None = None) -> int:
    value = row.get(key)
    if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
        raise ValueError(f"{where}.{key} must be an integer >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{where}.{key} must be <= {maximum}")
    return value


def _registry_from_payload(payload: dict[str, Any]) -> ItemRegistry:
    if not isinstance(payload, dict):
        raise ValueError("item registry payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("item registry must contain integer field: schema_version")
    if schema_version != ITEMS_SCHEMA_VERSION:
        raise ValueError(f"unsupported item registry schema_version: {schema_version}")

    ingredient_rows = payload.get("ingredients")
    if not isinstance(ingredient_rows, list):
        raise ValueError("item registry must contain list field: ingredients")
    item_rows = payload.get("items")
    if not isinstance(item_rows, list):
        raise ValueError("item registry must contain list field: items")

    items: list[ItemDef] = []
    ingredients: list[IngredientDef] = []
    seen_item_ids: set[str] = set()
    seen_names: set[str] = set()

    def _claim(item_id: str, name: str) -> None:
        if item_id in seen_item_ids:
            raise ValueError(f"duplicate item_id: {item_id}")
        if name in seen_names:
            raise ValueError(f"duplicate item name: {name}")
        seen_item_ids.add(item_id)
        seen_names.add(name)

    for index, row in enumerate(ingredient_rows):
        where = f"ingredients[{index}]"
        if not isinstance(row, dict):
            raise ValueError(f"{where} must be an object")
        item_id = _require_str(row, "item_id", where=where)
        name = _require_str(row, "name", where=where)
        category = _require_str(row, "category", where=where)
        rarity = _require_str(row, "rarity", where=where)
        if rarity not in RARITIES:
            raise ValueError(f"{where}.rarity must be one of: {', '.join(sorted(RARITIES))}")
        value = _require_int(row, "value", where=where, minimum=1)
        growth_time = _require_int(row, "growth_time", where=where, minimum=1)
        best_season = _require_str(row, "best_season", where=where)
        worst_season = _require_str(row, "worst_season", where=where)
        for key, season in (("best_season", best_season), ("worst_season", worst_season)):
            if season not in SEASONS:
                raise ValueError(f"{where}.{key} must be one of: {', '.join(SEASONS)}")
        ideal_moisture = _require_int(row, "ideal_moisture", where=where, maximum=100)
        ideal_sunlight = row.get("ideal_sunlight")
        if ideal_sunlight is not None:
            ideal_sunlight = _require_int(row, "ideal_sunlight", where=where, maximum=100)

        _claim(item_id, name)
        items.append(
            ItemDef(
                item_id=item_id,
                name=name,
                item_type="ingredient",
                category=category,
                rarity=rarity,
                value=value,
                primary_property=_optional_str(row, "primary_property", where=where),
            )
        )
        ingredients.append(
            IngredientDef(
                item_id=item_id,
                name=name,
                growth_time=growth_time,
                best_season=best_season,
                worst_season=worst_season,
                ideal_moisture=ideal_moisture,
                ideal_moon_phase=_optional_str(row, "ideal_moon_phase", where=where, allowed=set(MOON_PHASES)),
                ideal_sunlight=ideal_sunlight,
                harvest_bonus=_optional_str(row, "harvest_bonus", where=where),
            )
        )

        # every plantable ingredient has a matching seed item
        seed_name = f"{name} Seed"
        _claim(seed_id_for(name), seed_name)
        items.append(
            ItemDef(
                item_id=seed_id_for(name),
                name=seed_name,
                item_type="seed",
                category="seed",
                rarity=rarity,
                value=max(3, value // 2),
                plant_source_id=item_id,
            )
        )

    for index, row in enumerate(item_rows):
        where = f"items[{index}]"
        if not isinstance(row, dict):
            raise ValueError(f"{where} must be an object")
        item_id = _require_str(row, "item_id", where=where)
        name = _require_str(row, "name", where=where)
        item_type = _require_str(row, "item_type", where=where)
        if item_type not in ITEM_TYPES:
            raise ValueError(f"{where}.item_type must be one of: {', '.join(sorted(ITEM_TYPES))}")
        rarity = _require_str(row, "rarity", where=where)
        if rarity not in RARITIES:
            raise ValueError(f"{where}.rarity must be one of: {', '.join(sorted(RARITIES))}")
        black_market_only = row.get("black_market_only", False)
        if not isinstance(black_market_only, bool):
            raise ValueError(f"{where}.black_market_only must be boolean when present")

        _claim(item_id, name)
        items.append(
            ItemDef(
                item_id=item_id,
                name=name,
                item_type=item_type,
                category=_require_str(row, "category", where=where),
                rarity=rarity,
                value=_require_int(row, "value", where=where, minimum=1),
                seasonal_bonus=_optional_str(row, "seasonal_bonus", where=where, allowed=set(SEASONS)),
                primary_property=_optional_str(row, "primary_property", where=where),
                black_market_only=black_market_only,
            )
        )

    items.sort(key=lambda item: item.item_id)
    ingredients.sort(key=lambda ingredient: ingredient.item_id)
    return ItemRegistry(schema_version=schema_version, items=tuple(items), ingredients=tuple(ingredients))
