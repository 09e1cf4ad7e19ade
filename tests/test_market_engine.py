import random

import pytest

from coven.content.reference import load_reference_data
from coven.sim.market import (
    adjust_prices_by_supply_and_demand,
    apply_moon_phase_effects,
    apply_price_memory,
    apply_rumor_effects,
    apply_seasonal_effects,
    ensure_market_data,
    initial_market,
    update_black_market_prices,
    update_inflation,
)
from coven.sim.state import GameClock, GameState, MarketData, MarketItem, Rumor


def _build_item(
    item_id: str = "seed_moonbud",
    name: str = "Moonbud Seed",
    *,
    item_type: str = "seed",
    category: str = "seed",
    price: int = 20,
    base_price: int = 20,
    black_market_only: bool = False,
    last_price_change_turn: int | None = None,
) -> MarketItem:
    return MarketItem(
        item_id=item_id,
        name=name,
        item_type=item_type,
        category=category,
        price=price,
        base_price=base_price,
        price_history=[price],
        black_market_only=black_market_only,
        last_price_change_turn=last_price_change_turn,
    )


def _build_state(*items: MarketItem, turn: int = 2, phase_index: int = 0, season: str = "Spring") -> GameState:
    return GameState(
        clock=GameClock(turn=turn, phase_index=phase_index, season=season),
        market=list(items),
        market_data=MarketData(supply={item.name: 50 for item in items}, demand={item.name: 50 for item in items}),
    )


def test_initial_market_prices_at_value_and_includes_new_moon_rotation() -> None:
    reference = load_reference_data()
    market = {item.item_id: item for item in initial_market(reference.items, reference.tables)}
    values = reference.items.by_id()

    assert "ing_nightcap" in market
    assert "ing_moonbud" not in market
    for item_id, item in market.items():
        assert item.price == item.base_price == values[item_id].value
        assert item.price_history == [values[item_id].value]
    assert market["ritual_obsidian_bowl"].volatility == 1.5
    assert market["ritual_obsidian_bowl"].black_market_only is True


def test_ensure_market_data_seeds_unseen_names_only() -> None:
    data = MarketData(supply={"Known": 80}, demand={"Known": 20})
    rng = random.Random(0)

    ensure_market_data(data, "Known", rng)
    ensure_market_data(data, "Fresh", rng)

    assert data.supply["Known"] == 80
    assert data.demand["Known"] == 20
    assert 40 <= data.supply["Fresh"] <= 59
    assert 40 <= data.demand["Fresh"] <= 59


def test_seasonal_price_multiplier_applies_only_on_season_start() -> None:
    tables = load_reference_data().tables
    mid_season = _build_state(_build_item(), turn=2)
    season_start = _build_state(_build_item(), turn=25)

    apply_seasonal_effects(mid_season, tables, random.Random(0))
    apply_seasonal_effects(season_start, tables, random.Random(0))

    assert mid_season.market[0].price == 20
    assert season_start.market[0].price == 22
    assert mid_season.market_data.supply["Moonbud Seed"] == 47
    assert mid_season.market_data.demand["Moonbud Seed"] == 55


def test_moon_rotation_swaps_items_at_full_moon() -> None:
    reference = load_reference_data()
    nightcap = _build_item("ing_nightcap", "Nightcap", item_type="ingredient", category="mushroom", price=9, base_price=9)
    state = _build_state(nightcap, phase_index=4)
    notes: list = []

    apply_moon_phase_effects(state, reference.tables, reference.items, random.Random(0), notes)

    ids = [item.item_id for item in state.market]
    assert "ing_nightcap" not in ids
    assert "Nightcap" not in state.market_data.supply
    assert {"ritual_moonstone", "ing_sacred_lotus", "ing_moonbud"} <= set(ids)
    moonbud = state.market_item("ing_moonbud")
    assert moonbud.base_price == 10
    assert moonbud.price == 11
    assert "Moonbud" in state.market_data.demand


def test_rumor_effect_moves_price_and_pressure() -> None:
    item = _build_item("ing_silverleaf", "Silverleaf", item_type="ingredient", category="leaf", price=100, base_price=100)
    state = _build_state(item)
    state.rumors.append(
        Rumor(rumor_id="rumor-1-1", content="scarce", affected_item="Silverleaf", spread=50, price_effect=0.2)
    )

    apply_rumor_effects(state)

    assert item.price == 110
    assert state.market_data.demand["Silverleaf"] == pytest.approx(60)
    assert state.market_data.supply["Silverleaf"] == pytest.approx(42.5)


def test_rumor_without_price_effect_is_ignored() -> None:
    item = _build_item("ing_silverleaf", "Silverleaf", price=100, base_price=100)
    state = _build_state(item)
    state.rumors.append(Rumor(rumor_id="rumor-1-1", content="odd", affected_item="Silverleaf", spread=90))

    apply_rumor_effects(state)

    assert item.price == 100
    assert state.market_data.demand["Silverleaf"] == 50


def test_price_memory_is_idempotent_for_undiverged_price() -> None:
    item = _build_item(last_price_change_turn=1)
    state = _build_state(item, turn=30)

    apply_price_memory(state)
    apply_price_memory(state)

    assert item.price == item.base_price


def test_price_memory_waits_for_grace_period_then_reverts() -> None:
    waiting = _build_item(price=20, base_price=10, last_price_change_turn=1)
    reverting = _build_item(price=20, base_price=10, last_price_change_turn=1)

    apply_price_memory(_build_state(waiting, turn=4))
    apply_price_memory(_build_state(reverting, turn=10))

    assert waiting.price == 20
    assert reverting.price == 17


def test_demand_pressure_never_lowers_price() -> None:
    item = _build_item(price=10, base_price=10)
    state = _build_state(item)
    state.market_data.demand[item.name] = 70
    state.market_data.supply[item.name] = 30

    adjust_prices_by_supply_and_demand(state, random.Random(0))

    assert item.price >= 10


def test_supply_glut_lowers_price_and_records_history() -> None:
    item = _build_item(price=200, base_price=200)
    state = _build_state(item, turn=7)
    state.market_data.demand[item.name] = 5
    state.market_data.supply[item.name] = 95

    adjust_prices_by_supply_and_demand(state, random.Random(0))

    assert item.price == 191
    assert item.price_history == [200, 191]
    assert item.last_price_change_turn == 7


def test_black_market_drift_requires_unlock_and_respects_floor() -> None:
    item = _build_item("ritual_obsidian_bowl", "Obsidian Scrying Bowl", price=150, base_price=150, black_market_only=True)
    state = _build_state(item)

    update_black_market_prices(state, random.Random(0))
    assert item.price == 150

    state.market_data.black_market_unlocked = True
    rng = random.Random(1)
    for _ in range(200):
        update_black_market_prices(state, rng)
        assert item.price >= item.price_floor()
    assert len(item.price_history) <= 10


def test_high_volume_inflates_and_resets_volume() -> None:
    item = _build_item(price=100, base_price=100)
    state = _build_state(item)
    state.market_data.trading_volume = 300

    update_inflation(state, [])

    assert state.market_data.inflation == pytest.approx(1.003)
    assert state.market_data.trading_volume == 0


def test_low_volume_deflates_within_bounds() -> None:
    state = _build_state(_build_item())

    for _ in range(500):
        update_inflation(state, [])

    assert state.market_data.inflation == pytest.approx(0.8)
