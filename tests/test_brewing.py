import pytest

from coven.content.reference import load_reference_data
from coven.sim.brewing import (
    RUINED_BREWAGE_ID,
    brew_potion,
    calculate_brewing_success,
    find_matching_recipe,
)
from coven.sim.state import InventoryItem, Player


class _ScriptedRng:
    def __init__(self, values: list[float], randint_value: int = 0) -> None:
        self.values = list(values)
        self.randint_value = randint_value

    def random(self) -> float:
        return self.values.pop(0)

    def randint(self, low: int, high: int) -> int:
        return self.randint_value


def _serum():
    return load_reference_data().recipes.by_id()["recipe_moon_glow_serum"]


def _stack(item_id: str, name: str, quantity: int, quality: int = 70) -> InventoryItem:
    return InventoryItem(
        item_id=item_id,
        name=name,
        item_type="ingredient",
        category="flower",
        quantity=quantity,
        quality=quality,
    )


def _player(**skills: float) -> Player:
    player = Player(player_id="p1", name="Rowan")
    player.skills.update(skills)
    return player


def test_brewing_odds_combine_quality_skill_and_difficulty() -> None:
    odds = calculate_brewing_success(_serum(), [70, 70, 70], {"brewing": 1, "astrology": 2}, "Waxing Crescent")

    assert odds.success_chance == pytest.approx(0.79)
    assert odds.potential_quality == 71


def test_ideal_moon_phase_boosts_chance_and_quality() -> None:
    plain = calculate_brewing_success(_serum(), [70], {"brewing": 1, "astrology": 2}, "Waxing Crescent")
    ideal = calculate_brewing_success(_serum(), [70], {"brewing": 1, "astrology": 2}, "Waxing Gibbous")

    assert ideal.success_chance == pytest.approx(plain.success_chance + 0.15)
    assert ideal.potential_quality == plain.potential_quality + 15


def test_brewing_odds_are_clamped() -> None:
    worst = calculate_brewing_success(_serum(), [0], {"brewing": 0}, "New Moon")
    best = calculate_brewing_success(_serum(), [100, 100], {"brewing": 10, "astrology": 10}, "Waxing Gibbous")

    assert worst.success_chance == pytest.approx(0.39)
    assert worst.potential_quality == 10
    assert best.success_chance == pytest.approx(0.98)
    assert best.potential_quality == 100


def test_missing_ingredient_qualities_default_to_seventy() -> None:
    assert calculate_brewing_success(_serum(), [], {}, "Waxing Crescent") == calculate_brewing_success(
        _serum(), [70], {}, "Waxing Crescent"
    )


def test_failed_brew_yields_ruined_brewage() -> None:
    outcome = brew_potion(_serum(), [70, 70, 70], _player(), "Waxing Crescent", _ScriptedRng([0.99]))

    assert outcome.success is False
    assert outcome.result_item_id == RUINED_BREWAGE_ID
    assert outcome.quantity == 0
    assert outcome.quality == 0


def test_successful_brew_without_bonuses_draws_once() -> None:
    rng = _ScriptedRng([0.0])

    outcome = brew_potion(_serum(), [70, 70, 70], _player(astrology=2), "Waxing Crescent", rng)

    assert outcome.success is True
    assert outcome.result_item_id == "potion_moonglow"
    assert outcome.quality == 71
    assert outcome.bonus is None
    assert rng.values == []


def test_critical_success_adds_quality() -> None:
    rng = _ScriptedRng([0.0, 0.0], randint_value=4)

    outcome = brew_potion(_serum(), [90, 90, 90], _player(brewing=5, astrology=0), "Waxing Crescent", rng)

    assert outcome.quality == 100
    assert outcome.bonus == "Critical Success!"


def test_full_moon_boost_applies_to_other_recipes() -> None:
    rng = _ScriptedRng([0.0, 0.0])

    outcome = brew_potion(_serum(), [60, 60, 60], _player(astrology=0), "Full Moon", rng)

    assert outcome.quality == 70
    assert outcome.bonus == "Full Moon potency boost."


def test_find_matching_recipe_needs_two_stacks_with_enough_quantity() -> None:
    recipes = load_reference_data().recipes
    known = ["recipe_moon_glow_serum"]
    moonbud = _stack("ing_moonbud", "Moonbud", 2)
    glimmerroot = _stack("ing_glimmerroot", "Glimmerroot", 1)

    assert find_matching_recipe(known, recipes, [glimmerroot, moonbud]).recipe_id == "recipe_moon_glow_serum"
    assert find_matching_recipe(known, recipes, [_stack("ing_moonbud", "Moonbud", 1), glimmerroot]) is None
    assert find_matching_recipe([], recipes, [moonbud, glimmerroot]) is None
    assert find_matching_recipe(known, recipes, [moonbud]) is None
