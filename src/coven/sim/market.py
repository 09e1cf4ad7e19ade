from __future__ import annotations

import logging
import random
from typing import Callable

from coven.content.items import ItemDef, ItemRegistry
from coven.content.tables import ReferenceTables
from coven.sim.clock import is_season_start
from coven.sim.state import GameState, MarketData, MarketItem, TurnNote, clamp

log = logging.getLogger(__name__)

BASE_SUPPLY = 50
BASE_DEMAND = 50
SUPPLY_DEMAND_MIN = 5
SUPPLY_DEMAND_MAX = 95
PRICE_MEMORY_DECAY_RATE = 0.05
PRICE_MEMORY_GRACE_PERIOD = 3
PRICE_MEMORY_MAX_REVERT = 0.3
VOLATILITY_MULTIPLIER_BASE = 0.05
MAX_PRICE_JUMP_FACTOR = 0.3
INFLATION_RATE_PER_VOLUME = 0.00002
DEFLATION_RATE_LOW_VOLUME = 0.001
TRADING_VOLUME_THRESHOLD = 150
INFLATION_MIN = 0.8
INFLATION_MAX = 1.5
RUMOR_MIN_SPREAD = 10
BLACK_MARKET_NOISE = 0.15
BLACK_MARKET_REVERSION = 0.01
BLACK_MARKET_VOLATILITY = 1.5
RARITY_VOLATILITY = {"rare": 1.2, "uncommon": 1.1}


def clamp_supply_demand(value: float) -> float:
    return clamp(value, SUPPLY_DEMAND_MIN, SUPPLY_DEMAND_MAX)


def ensure_market_data(market_data: MarketData, name: str, rng: random.Random) -> None:
    if name not in market_data.demand:
        market_data.demand[name] = BASE_DEMAND + rng.randint(-10, 9)
    if name not in market_data.supply:
        market_data.supply[name] = BASE_SUPPLY + rng.randint(-10, 9)


def _market_item_from_def(item: ItemDef, *, price: int, turn: int | None) -> MarketItem:
    if item.black_market_only:
        volatility = BLACK_MARKET_VOLATILITY
    else:
        volatility = RARITY_VOLATILITY.get(item.rarity, 1.0)
    return MarketItem(
        item_id=item.item_id,
        name=item.name,
        item_type=item.item_type,
        category=item.category,
        price=max(1, price),
        base_price=item.value,
        rarity=item.rarity,
        volatility=volatility,
        price_history=[max(1, price)],
        last_price_change_turn=turn,
        seasonal_bonus=item.seasonal_bonus,
        black_market_only=item.black_market_only,
    )


def initial_market(items: ItemRegistry, tables: ReferenceTables, phase: str = "New Moon") -> list[MarketItem]:
    """Opening stock: the standing list, the black market, and the starting phase's rotation."""
    by_id = items.by_id()
    rotation = tables.rotation_items()
    opening: list[str] = []
    for item_id in (*tables.initial_market, *tables.black_market):
        if item_id not in opening:
            opening.append(item_id)
    for item_id, item_phase in sorted(rotation.items()):
        if item_phase == phase and item_id not in opening:
            opening.append(item_id)

    market: list[MarketItem] = []
    for item_id in opening:
        item = by_id.get(item_id)
        if item is None:
            log.warning("initial market references unknown item %s", item_id)
            continue
        market.append(_market_item_from_def(item, price=item.value, turn=None))
    return market


def _multiplier_for(item: MarketItem, table: dict[str, float]) -> float:
    category_multiplier = table.get(item.category, 1.0)
    if category_multiplier != 1.0:
        return category_multiplier
    return table.get(item.item_type, 1.0)


def _for_each_item(state: GameState, stage: str, apply: Callable[[MarketItem], None]) -> None:
    for item in list(state.market):
        try:
            apply(item)
        except (ValueError, KeyError, TypeError):
            log.exception("market stage %s failed for %s", stage, item.item_id)


def _apply_multiplier(item: MarketItem, multiplier: float, turn: int) -> None:
    if multiplier == 1.0:
        return
    new_price = max(item.price_floor(), round(item.price * multiplier))
    if new_price != item.price:
        item.price = new_price
        item.last_price_change_turn = turn


def apply_seasonal_effects(state: GameState, tables: ReferenceTables, rng: random.Random) -> None:
    clock = state.clock
    effect = tables.seasonal_effects.get(clock.season)
    # price multipliers land once per season; supply and demand drift every phase
    reprice = is_season_start(clock.turn)
    data = state.market_data

    def apply(item: MarketItem) -> None:
        if effect is not None and reprice:
            _apply_multiplier(item, _multiplier_for(item, effect.price), clock.turn)
        ensure_market_data(data, item.name, rng)
        if effect is not None:
            shift = effect.supply_demand.get(item.category) or effect.supply_demand.get(item.item_type)
            if shift:
                data.supply[item.name] = clamp_supply_demand(data.supply[item.name] + shift["supply"])
                data.demand[item.name] = clamp_supply_demand(data.demand[item.name] + shift["demand"])
        if item.seasonal_bonus == clock.season:
            data.supply[item.name] = clamp_supply_demand(data.supply[item.name] + 10)
            data.demand[item.name] = clamp_supply_demand(data.demand[item.name] + 5)

    _for_each_item(state, "seasonal", apply)


def apply_moon_phase_effects(
    state: GameState,
    tables: ReferenceTables,
    items: ItemRegistry,
    rng: random.Random,
    notes: list[TurnNote],
) -> None:
    clock = state.clock
    effect = tables.moon_effects.get(clock.phase_name)
    if effect is not None and effect.price:
        _for_each_item(
            state,
            "moon",
            lambda item: _apply_multiplier(item, _multiplier_for(item, effect.price), clock.turn),
        )

    rotation = tables.rotation_items()
    stocked_now = set(effect.items) if effect is not None else set()
    kept: list[MarketItem] = []
    for item in state.market:
        if item.item_id in rotation and item.item_id not in stocked_now:
            state.market_data.supply.pop(item.name, None)
            state.market_data.demand.pop(item.name, None)
            notes.append(TurnNote(f"{item.name} unavailable.", "market", 1))
            continue
        kept.append(item)
    state.market = kept

    by_id = items.by_id()
    for item_id in (effect.items if effect is not None else ()):
        if state.market_item(item_id) is not None:
            continue
        item = by_id.get(item_id)
        if item is None:
            log.warning("moon rotation references unknown item %s", item_id)
            continue
        probe = _market_item_from_def(item, price=item.value, turn=clock.turn)
        price = round(item.value * _multiplier_for(probe, effect.price))
        stocked = _market_item_from_def(item, price=price, turn=clock.turn)
        state.market.append(stocked)
        ensure_market_data(state.market_data, stocked.name, rng)
        notes.append(TurnNote(f"{stocked.name} available.", "market", 1))


def apply_rumor_effects(state: GameState) -> None:
    data = state.market_data
    for rumor in state.rumors:
        if rumor.spread <= RUMOR_MIN_SPREAD or not rumor.affected_item:
            continue
        affected = [item for item in state.market if item.name == rumor.affected_item]
        if not affected:
            continue
        spread_factor = rumor.spread / 100
        effect = rumor.price_effect
        if not effect:
            continue
        for item in affected:
            try:
                new_price = max(item.price_floor(), round(item.price * (1 + spread_factor * effect)))
                if new_price != item.price:
                    item.price = new_price
                    item.last_price_change_turn = state.clock.turn
            except (ValueError, KeyError, TypeError):
                log.exception("rumor %s failed to reprice %s", rumor.rumor_id, item.item_id)
        direction = 1 if effect > 0 else -1
        name = rumor.affected_item
        data.demand[name] = clamp_supply_demand(data.demand.get(name, BASE_DEMAND) + direction * spread_factor * 20)
        data.supply[name] = clamp_supply_demand(data.supply.get(name, BASE_SUPPLY) - direction * spread_factor * 15)


def apply_price_memory(state: GameState) -> None:
    turn = state.clock.turn

    def apply(item: MarketItem) -> None:
        base = item.base_price
        if item.price == base or item.last_price_change_turn is None:
            return
        turns_since = turn - item.last_price_change_turn
        if turns_since <= PRICE_MEMORY_GRACE_PERIOD:
            return
        strength = min(PRICE_MEMORY_MAX_REVERT, PRICE_MEMORY_DECAY_RATE * (turns_since - PRICE_MEMORY_GRACE_PERIOD))
        difference = item.price - base
        if abs(difference) > 1:
            adjustment = int(difference * strength)
            if adjustment != 0:
                item.price = max(item.price_floor(), item.price - adjustment)
        if abs(item.price - base) <= 1:
            item.price = base

    _for_each_item(state, "price_memory", apply)


def adjust_prices_by_supply_and_demand(state: GameState, rng: random.Random) -> None:
    data = state.market_data
    turn = state.clock.turn

    def apply(item: MarketItem) -> None:
        ensure_market_data(data, item.name, rng)
        pressure = clamp((data.demand[item.name] - data.supply[item.name]) / 100, -1, 1)
        change = pressure * VOLATILITY_MULTIPLIER_BASE * item.volatility
        max_jump = item.price * MAX_PRICE_JUMP_FACTOR
        new_price = clamp(item.price * (1 + change), item.price - max_jump, item.price + max_jump)
        floor = max(1, round(item.base_price * 0.2))
        new_price = max(floor, round(new_price))
        if new_price != item.price:
            item.price = new_price
            item.record_price(turn)

    _for_each_item(state, "supply_demand", apply)


def update_black_market_prices(state: GameState, rng: random.Random) -> None:
    if not state.market_data.black_market_unlocked:
        return
    turn = state.clock.turn

    def apply(item: MarketItem) -> None:
        if not item.black_market_only:
            return
        noise = (rng.random() * 2 - 1) * BLACK_MARKET_NOISE * item.volatility
        reversion = (item.base_price - item.price) * BLACK_MARKET_REVERSION
        new_price = max(item.price_floor(), round(item.price * (1 + noise) + reversion))
        if new_price != item.price:
            item.price = new_price
            item.record_price(turn)

    _for_each_item(state, "black_market", apply)


def update_inflation(state: GameState, notes: list[TurnNote]) -> None:
    data = state.market_data
    previous = data.inflation
    volume = data.trading_volume
    if volume > TRADING_VOLUME_THRESHOLD * 1.5:
        delta = INFLATION_RATE_PER_VOLUME * (volume - TRADING_VOLUME_THRESHOLD)
    elif volume < TRADING_VOLUME_THRESHOLD * 0.5:
        delta = -DEFLATION_RATE_LOW_VOLUME
    else:
        delta = (1.0 - previous) * 0.01
    updated = clamp(previous + delta, INFLATION_MIN, INFLATION_MAX)
    data.inflation = updated

    if abs(updated - previous) > 0.001:
        factor = 1 + (updated - previous) * 0.1
        for item in state.market:
            if item.black_market_only:
                continue
            item.base_price = max(1, round(item.base_price * factor))
            item.price = max(item.price_floor(), item.price)
        if abs(updated - 1.0) > 0.05:
            mood = "inflated" if updated > 1.0 else "deflated"
            notes.append(TurnNote(f"Market prices feel {mood} ({updated:.2f}).", "market", 2))
    data.trading_volume = 0


def apply_market_events(
    state: GameState,
    tables: ReferenceTables,
    items: ItemRegistry,
    rng: random.Random,
    notes: list[TurnNote],
) -> None:
    apply_seasonal_effects(state, tables, rng)
    apply_moon_phase_effects(state, tables, items, rng, notes)
    apply_rumor_effects(state)
    apply_price_memory(state)
    adjust_prices_by_supply_and_demand(state, rng)
    update_black_market_prices(state, rng)
    update_inflation(state, notes)
