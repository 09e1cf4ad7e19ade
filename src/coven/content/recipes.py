from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from coven.content.items import MOON_PHASES, ItemRegistry

RECIPES_SCHEMA_VERSION = 1
DEFAULT_RECIPES_PATH = Path(__file__).resolve().parent / "data" / "recipes.json"


@dataclass(frozen=True)
class RecipeIngredient:
    item_name: str
    quantity: int


@dataclass(frozen=True)
class RecipeDef:
    recipe_id: str
    name: str
    ingredients: tuple[RecipeIngredient, ...]
    result_item_id: str
    result_quantity: int
    difficulty: int
    category: str
    ideal_moon_phase: str | None = None

    def ingredient_names(self) -> tuple[str, ...]:
        return tuple(sorted(ingredient.item_name for ingredient in self.ingredients))


@dataclass(frozen=True)
class RecipeRegistry:
    schema_version: int
    recipes: tuple[RecipeDef, ...]
    starting_recipe_ids: tuple[str, ...]

    def by_id(self) -> dict[str, RecipeDef]:
        return {recipe.recipe_id: recipe for recipe in self.recipes}

    def by_name(self) -> dict[str, RecipeDef]:
        return {recipe.name: recipe for recipe in self.recipes}


def load_recipes_json(path: str | Path, *, items: ItemRegistry | None = None) -> RecipeRegistry:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _registry_from_payload(payload, items=items)


def _registry_from_payload(payload: dict[str, Any], *, items: ItemRegistry | None) -> RecipeRegistry:
    if not isinstance(payload, dict):
        raise ValueError("recipe registry payload must be an object")
    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("recipe registry must contain integer field: schema_version")
    if schema_version != RECIPES_SCHEMA_VERSION:
        raise ValueError(f"unsupported recipe registry schema_version: {schema_version}")

    rows = payload.get("recipes")
    if not isinstance(rows, list):
        raise ValueError("recipe registry must contain list field: recipes")

    known_item_ids = set(items.by_id()) if items is not None else None
    known_item_names = set(items.by_name()) if items is not None else None

    recipes: list[RecipeDef] = []
    seen: set[str] = set()
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ValueError(f"recipes[{index}] must be an object")
        recipe_id = row.get("recipe_id")
        if not isinstance(recipe_id, str) or not recipe_id:
            raise ValueError(f"recipes[{index}].recipe_id must be a non-empty string")
        if recipe_id in seen:
            raise ValueError(f"duplicate recipe_id: {recipe_id}")
        seen.add(recipe_id)

        name = row.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError(f"recipes[{index}].name must be a non-empty string")

        ingredient_rows = row.get("ingredients")
        if not isinstance(ingredient_rows, list) or len(ingredient_rows) != 2:
            raise ValueError(f"recipes[{index}].ingredients must be a list of exactly two entries")
        ingredients: list[RecipeIngredient] = []
        for ingredient_index, ingredient_row in enumerate(ingredient_rows):
            where = f"recipes[{index}].ingredients[{ingredient_index}]"
            if not isinstance(ingredient_row, dict):
                raise ValueError(f"{where} must be an object")
            item_name = ingredient_row.get("item_name")
            if not isinstance(item_name, str) or not item_name:
                raise ValueError(f"{where}.item_name must be a non-empty string")
            if known_item_names is not None and item_name not in known_item_names:
                raise ValueError(f"{where}.item_name references unknown item: {item_name}")
            quantity = ingredient_row.get("quantity")
            if not isinstance(quantity, int) or quantity < 1:
                raise ValueError(f"{where}.quantity must be an integer >= 1")
            ingredients.append(RecipeIngredient(item_name=item_name, quantity=quantity))

        result_item_id = row.get("result_item_id")
        if not isinstance(result_item_id, str) or not result_item_id:
            raise ValueError(f"recipes[{index}].result_item_id must be a non-empty string")
        if known_item_ids is not None and result_item_id not in known_item_ids:
            raise ValueError(f"recipes[{index}].result_item_id references unknown item: {result_item_id}")

        result_quantity = row.get("result_quantity", 1)
        if not isinstance(result_quantity, int) or result_quantity < 1:
            raise ValueError(f"recipes[{index}].result_quantity must be an integer >= 1")
        difficulty = row.get("difficulty")
        if not isinstance(difficulty, int) or difficulty < 0:
            raise ValueError(f"recipes[{index}].difficulty must be an integer >= 0")
        ideal_moon_phase = row.get("ideal_moon_phase")
        if ideal_moon_phase is not None and ideal_moon_phase not in MOON_PHASES:
            raise ValueError(f"recipes[{index}].ideal_moon_phase must be a moon phase name")

        recipes.append(
            RecipeDef(
                recipe_id=recipe_id,
                name=name,
                ingredients=tuple(ingredients),
                result_item_id=result_item_id,
                result_quantity=result_quantity,
                difficulty=difficulty,
                category=str(row.get("category", "potion")),
                ideal_moon_phase=ideal_moon_phase,
            )
        )

    starting = payload.get("starting_recipe_ids", [])
    if not isinstance(starting, list) or any(recipe_id not in seen for recipe_id in starting):
        raise ValueError("starting_recipe_ids must list known recipe ids")

    recipes.sort(key=lambda recipe: recipe.recipe_id)
    return RecipeRegistry(
        schema_version=schema_version,
        recipes=tuple(recipes),
        starting_recipe_ids=tuple(starting),
    )
