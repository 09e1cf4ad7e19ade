from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from coven.content.items import IngredientDef, ItemRegistry
from coven.sim.state import GameState, GardenSlot, Plant, TurnNote, clamp

log = logging.getLogger(__name__)

RAIN_MOISTURE = {"rainy": 40, "stormy": 60}
EMPTY_SLOT_RAIN_MOISTURE = 30
EVAPORATION = {"dry": 25, "windy": 15, "foggy": 5}
DEFAULT_EVAPORATION = 10
WATERING_MOISTURE = 40
STORM_DAMAGE_CHANCE = 0.3
STORM_DAMAGE = 25
DRY_DAMAGE = 10
MIN_GROWTH_HEALTH = 30
MIN_GROWTH_STEP = 0.05
WITHER_FERTILITY_FLOOR = 40
WITHER_FERTILITY_LOSS = 10
FALLOW_FERTILITY_CAP = 90
FALLOW_FERTILITY_GAIN = 0.5


@dataclass
class GrowthResult:
    grew: bool = False
    withered: bool = False
    became_mature: bool = False
    health_delta: int = 0
    messages: list[str] = field(default_factory=list)


def is_rainy(weather: str) -> bool:
    return weather in RAIN_MOISTURE


def evaporation_rate(weather: str) -> int:
    if is_rainy(weather):
        return 0
    return EVAPORATION.get(weather, DEFAULT_EVAPORATION)


def calculate_growth_modifier(
    ingredient: IngredientDef,
    season: str,
    phase: str,
    moisture: float,
    sunlight: float = 70,
) -> float:
    modifier = 1.0
    if season == ingredient.best_season:
        modifier *= 1.5
    elif season == ingredient.worst_season:
        modifier *= 0.5

    if phase in ("Waxing Gibbous", "First Quarter"):
        modifier *= 1.1
    elif phase == "Waning Crescent":
        modifier *= 0.95

    moisture_diff = abs(moisture - ingredient.ideal_moisture)
    if moisture_diff < 10:
        modifier *= 1.2
    elif moisture_diff > 30:
        modifier *= 0.7
    elif moisture_diff > 20:
        modifier *= 0.9

    if ingredient.ideal_sunlight is not None:
        sunlight_diff = abs(sunlight - ingredient.ideal_sunlight)
        if sunlight_diff < 15:
            modifier *= 1.15
        elif sunlight_diff > 40:
            modifier *= 0.75
        elif sunlight_diff > 25:
            modifier *= 0.9
    elif 40 < sunlight < 80:
        modifier *= 1.05

    return max(0.1, modifier)


def calculate_harvest_quality(
    ingredient: IngredientDef,
    health: float,
    age: int,
    phase: str,
    season: str,
) -> int:
    quality = 50.0
    quality += (health - 50) * 0.5
    optimal_age = (ingredient.growth_time or 3) * 1.5
    quality += min(1.0, age / optimal_age) * 15

    moon_matched = ingredient.ideal_moon_phase is not None and phase == ingredient.ideal_moon_phase
    if moon_matched:
        quality += 20
    elif phase == "Full Moon":
        quality += 5

    if season == ingredient.best_season:
        quality += 10
    elif season == ingredient.worst_season:
        quality -= 15

    if ingredient.harvest_bonus and (moon_matched or season == ingredient.best_season):
        bonus = ingredient.harvest_bonus.lower()
        if "quality" in bonus or "potent" in bonus:
            quality += 10

    return int(round(clamp(quality, 10, 100)))


def growth_stage_description(name: str, growth: float | None, required: float | None) -> str:
    if growth is None or required is None or required <= 0:
        return f"{name} (Growth stage unknown)"
    percentage = clamp(growth / required * 100, 0, 100)
    if percentage >= 100:
        return f"Mature {name}"
    if percentage >= 75:
        return f"Maturing {name}"
    if percentage >= 50:
        return f"Developing {name}"
    if percentage >= 25:
        return f"Sprouting {name}"
    if percentage > 0:
        return f"Seedling {name}"
    return f"Planted {name} Seed"


def _moisture_health_delta(moisture: float, ideal: float) -> int:
    diff = abs(moisture - ideal)
    if diff < 15:
        return 5
    if diff > 35:
        return -15
    if diff > 20:
        return -5
    return 0


def apply_growth(
    plant: Plant,
    slot: GardenSlot,
    ingredient: IngredientDef,
    weather: str,
    phase: str,
    season: str,
    rng: random.Random,
) -> GrowthResult:
    """Advance one plant by one phase: moisture, health, wither check, then growth."""
    result = GrowthResult()

    moisture = slot.moisture
    if is_rainy(weather):
        moisture = min(100, moisture + RAIN_MOISTURE[weather])
        result.messages.append(f"Rain watered {plant.name}.")
    if plant.watered:
        moisture = min(100, moisture + WATERING_MOISTURE)
        plant.watered = False
        if not is_rainy(weather):
            result.messages.append("Watering helped.")
    moisture = clamp(moisture - evaporation_rate(weather), 0, 100)
    slot.moisture = moisture

    health_delta = _moisture_health_delta(moisture, ingredient.ideal_moisture)
    if health_delta == -15:
        condition = "dryness" if moisture < ingredient.ideal_moisture else "oversaturation"
        result.messages.append(f"Suffers from {condition}.")
    if weather == "stormy" and rng.random() < STORM_DAMAGE_CHANCE:
        health_delta -= STORM_DAMAGE
        result.messages.append("Storm battered!")
    elif weather == "dry" and moisture < 20:
        health_delta -= DRY_DAMAGE
    result.health_delta = health_delta

    plant.health = clamp(plant.health + health_delta, 0, 100)
    plant.death_chance = clamp((25 - plant.health) / 25, 0, 1)

    # r1 and r2 are drawn lazily, in order, only when their health band applies
    withered = plant.health <= 0
    if not withered and plant.health < 10:
        withered = rng.random() < plant.death_chance * 2
    if not withered and plant.health < 25:
        withered = rng.random() < plant.death_chance
    if withered:
        result.withered = True
        result.messages.append(f"{plant.name} withered!")
        return result

    if not plant.mature and plant.health > MIN_GROWTH_HEALTH:
        modifier = calculate_growth_modifier(ingredient, season, phase, moisture, slot.sunlight)
        plant.growth += max(MIN_GROWTH_STEP, modifier * plant.health / 100)
        plant.age += 1
        result.grew = True
        if plant.growth >= plant.growth_required:
            plant.mature = True
            plant.growth = plant.growth_required
            result.became_mature = True
            result.messages.append(f"{plant.name} mature!")
        result.messages.append(growth_stage_description(plant.name, plant.growth, plant.growth_required))
    elif not plant.mature:
        result.messages.append("Too unhealthy to grow.")
    return result


def _tend_empty_slot(slot: GardenSlot, weather: str) -> None:
    slot.fertility = min(FALLOW_FERTILITY_CAP, slot.fertility + FALLOW_FERTILITY_GAIN)
    moisture = slot.moisture
    if is_rainy(weather):
        moisture = min(100, moisture + EMPTY_SLOT_RAIN_MOISTURE)
    slot.moisture = clamp(moisture - evaporation_rate(weather), 0, 100)


def process_garden(state: GameState, items: ItemRegistry, rng: random.Random, notes: list[TurnNote]) -> None:
    ingredients = items.ingredients_by_id()
    clock = state.clock
    for player_id in sorted(state.players):
        player = state.players[player_id]
        for slot in sorted(player.garden, key=lambda current: current.slot_id):
            if not slot.unlocked:
                continue
            plot = f"Plot {slot.slot_id + 1}"
            if slot.plant is None:
                _tend_empty_slot(slot, clock.weather)
                continue
            ingredient = ingredients.get(slot.plant.item_id)
            if ingredient is None:
                log.warning("missing ingredient data for plant %s in %s slot %s", slot.plant.item_id, player_id, slot.slot_id)
                continue
            try:
                result = apply_growth(slot.plant, slot, ingredient, clock.weather, clock.phase_name, clock.season, rng)
            except (ValueError, KeyError, TypeError):
                log.exception("growth failed for %s slot %s", player_id, slot.slot_id)
                continue
            for message in result.messages:
                notes.append(TurnNote(f"{plot}: {message}", "garden", 2, player_id))
            if result.withered:
                slot.plant = None
                slot.fertility = max(WITHER_FERTILITY_FLOOR, slot.fertility - WITHER_FERTILITY_LOSS)
                notes.append(TurnNote(f"{plot} fertility decreased.", "garden", 1, player_id))
        player.days_survived += 1
