from __future__ import annotations

import random
from dataclasses import dataclass

from coven.content.recipes import RecipeDef, RecipeRegistry
from coven.sim.state import InventoryItem, Player, clamp

RUINED_BREWAGE_ID = "misc_ruined_brewage"
DEFAULT_INGREDIENT_QUALITY = 70
CRITICAL_MIN_SKILL = 5
CRITICAL_MIN_QUALITY = 75
CRITICAL_CHANCE = 0.10
FULL_MOON_BOOST_CHANCE = 0.15


@dataclass(frozen=True)
class BrewingOdds:
    success_chance: float
    potential_quality: int


@dataclass(frozen=True)
class BrewOutcome:
    success: bool
    result_item_id: str
    quantity: int
    quality: int
    bonus: str | None = None


def _moon_modifiers(recipe: RecipeDef, phase: str) -> tuple[float, int]:
    if recipe.ideal_moon_phase is not None and phase == recipe.ideal_moon_phase:
        return 0.15, 15
    if phase == "New Moon":
        return -0.05, -5
    if phase == "Full Moon":
        return 0.05, 5
    return 0.0, 0


def calculate_brewing_success(
    recipe: RecipeDef,
    qualities: list[int],
    skills: dict[str, float],
    phase: str,
) -> BrewingOdds:
    average = sum(qualities) / len(qualities) if qualities else DEFAULT_INGREDIENT_QUALITY
    brewing = skills.get("brewing", 0)

    chance = 0.6 + average / 250
    chance += brewing * 0.03
    moon_chance, moon_quality = _moon_modifiers(recipe, phase)
    chance += moon_chance
    chance -= max(0, recipe.difficulty - brewing) * 0.04

    quality = average + moon_quality + skills.get("astrology", 0) * 0.5
    return BrewingOdds(
        success_chance=clamp(chance, 0.15, 0.98),
        potential_quality=int(round(clamp(quality, 10, 100))),
    )


def brew_potion(
    recipe: RecipeDef,
    qualities: list[int],
    player: Player,
    phase: str,
    rng: random.Random,
) -> BrewOutcome:
    odds = calculate_brewing_success(recipe, qualities, player.skills, phase)
    if rng.random() >= odds.success_chance:
        return BrewOutcome(success=False, result_item_id=RUINED_BREWAGE_ID, quantity=0, quality=0)

    quality = odds.potential_quality
    bonuses: list[str] = []
    if (
        player.skills.get("brewing", 0) >= CRITICAL_MIN_SKILL
        and quality > CRITICAL_MIN_QUALITY
        and rng.random() < CRITICAL_CHANCE
    ):
        quality = min(100, quality + 10 + rng.randint(0, 10))
        bonuses.append("Critical Success!")
    if phase == "Full Moon" and recipe.ideal_moon_phase != "Full Moon" and rng.random() < FULL_MOON_BOOST_CHANCE:
        quality = min(100, quality + 5)
        bonuses.append("Full Moon potency boost.")

    return BrewOutcome(
        success=True,
        result_item_id=recipe.result_item_id,
        quantity=recipe.result_quantity,
        quality=quality,
        bonus=" ".join(bonuses) or None,
    )


def find_matching_recipe(
    known_recipe_ids: list[str],
    recipes: RecipeRegistry,
    ingredient_stacks: list[InventoryItem],
) -> RecipeDef | None:
    """Match two distinct inventory stacks against the player's known recipes."""
    if len(ingredient_stacks) != 2:
        return None
    names = tuple(sorted(stack.name for stack in ingredient_stacks))
    by_id = recipes.by_id()
    for recipe_id in known_recipe_ids:
        recipe = by_id.get(recipe_id)
        if recipe is None or recipe.ingredient_names() != names:
            continue
        enough = all(
            sum(stack.quantity for stack in ingredient_stacks if stack.name == ingredient.item_name) >= ingredient.quantity
            for ingredient in recipe.ingredients
        )
        if enough:
            return recipe
    return None
