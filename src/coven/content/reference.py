from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from coven.content.items import DEFAULT_ITEMS_PATH, ItemRegistry, load_items_json
from coven.content.recipes import DEFAULT_RECIPES_PATH, RecipeRegistry, load_recipes_json
from coven.content.rituals import DEFAULT_RITUALS_PATH, RitualRegistry, load_rituals_json
from coven.content.tables import DEFAULT_TABLES_PATH, ReferenceTables, load_tables_json
from coven.sim.state import ItemReward, RecipeReward


@dataclass(frozen=True)
class ReferenceData:
    """Static content a game consumes by id. Never mutated after loading."""

    items: ItemRegistry
    recipes: RecipeRegistry
    rituals: RitualRegistry
    tables: ReferenceTables


def load_reference_data(
    *,
    items_path: str | Path = DEFAULT_ITEMS_PATH,
    recipes_path: str | Path = DEFAULT_RECIPES_PATH,
    rituals_path: str | Path = DEFAULT_RITUALS_PATH,
    tables_path: str | Path = DEFAULT_TABLES_PATH,
) -> ReferenceData:
    items = load_items_json(items_path)
    recipes = load_recipes_json(recipes_path, items=items)
    rituals = load_rituals_json(rituals_path)
    tables = load_tables_json(tables_path)
    reference = ReferenceData(items=items, recipes=recipes, rituals=rituals, tables=tables)
    validate_cross_references(reference)
    return reference


def validate_cross_references(reference: ReferenceData) -> None:
    item_ids = reference.items.by_id()
    recipe_ids = reference.recipes.by_id()

    for item_id in reference.tables.initial_market:
        if item_id not in item_ids:
            raise ValueError(f"initial_market references unknown item: {item_id}")
    for item_id in reference.tables.black_market:
        if item_id not in item_ids:
            raise ValueError(f"black_market references unknown item: {item_id}")
        if not item_ids[item_id].black_market_only:
            raise ValueError(f"black_market item must be flagged black_market_only: {item_id}")
    for item_id, phase in reference.tables.rotation_items().items():
        if item_id not in item_ids:
            raise ValueError(f"moon_effects[{phase}].items references unknown item: {item_id}")

    for template in reference.rituals.rituals:
        for reward in template.quest.rewards:
            if isinstance(reward, ItemReward) and reward.item_id not in item_ids:
                raise ValueError(f"ritual {template.ritual_id} rewards unknown item: {reward.item_id}")
            if isinstance(reward, RecipeReward) and reward.recipe_id not in recipe_ids:
                raise ValueError(f"ritual {template.ritual_id} rewards unknown recipe: {reward.recipe_id}")
