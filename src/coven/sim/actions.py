from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from coven.sim.brewing import RUINED_BREWAGE_ID, brew_potion, find_matching_recipe
from coven.sim.garden import calculate_harvest_quality
from coven.sim.market import clamp_supply_demand
from coven.sim.rituals import check_quest_step_completion, claim_ritual_rewards
from coven.sim.rng import RNG_ACTIONS_STREAM_NAME, RNG_BREWING_STREAM_NAME
from coven.sim.rumors import MIN_SPREAD_REPUTATION, spread_rumor, verify_rumor
from coven.sim.state import REPUTATION_CAP, Plant, Player

if TYPE_CHECKING:
    from coven.sim.core import ActionResult, Game

log = logging.getLogger(__name__)

GARDENING_XP_PER_HARVEST = 0.1
BREWING_XP_PER_BREW = 0.2
TRADING_XP_PER_SALE = 0.05
PURCHASE_QUALITY = 70
SEED_PURCHASE_QUALITY = 100
SELL_PRICE_FACTOR = 0.8
MARKET_PRESSURE_STEP = 2

ActionHandler = Callable[["Game", Player, dict[str, Any]], "ActionResult"]


class InvalidPayloadError(ValueError):
    pass


def _result(success: bool, outcome: str, **details: Any) -> ActionResult:
    from coven.sim.core import ActionResult

    return ActionResult(success=success, outcome=outcome, details=details)


def _failed(outcome: str, **details: Any) -> ActionResult:
    return _result(False, outcome, **details)


def _require_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidPayloadError(f"{key} must be a non-empty string")
    return value


def _require_int(payload: dict[str, Any], key: str, *, default: int | None = None, minimum: int = 0) -> int:
    value = payload.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
        raise InvalidPayloadError(f"{key} must be an integer >= {minimum}")
    return value


def _journal(game: Game, player: Player, text: str, *, category: str, importance: int = 2) -> None:
    game.state.add_journal_entry(text, category=category, importance=importance, player_id=player.player_id)


def _shift_market_pressure(game: Game, name: str, *, supply: int, demand: int) -> None:
    market_data = game.state.market_data
    market_data.supply[name] = clamp_supply_demand(market_data.supply.get(name, 50) + supply)
    market_data.demand[name] = clamp_supply_demand(market_data.demand.get(name, 50) + demand)


def plant_seed(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    slot_id = _require_int(payload, "slot_id")
    inventory_id = _require_str(payload, "inventory_id")

    slot = player.slot(slot_id)
    if slot is None:
        return _failed("unknown_slot", slot_id=slot_id)
    if not slot.unlocked:
        return _failed("slot_locked", slot_id=slot_id)
    if slot.plant is not None:
        return _failed("slot_occupied", slot_id=slot_id)
    stack = player.stack(inventory_id)
    if stack is None:
        return _failed("unknown_stack", inventory_id=inventory_id)
    seed = game.reference.items.by_id().get(stack.item_id)
    if seed is None or seed.item_type != "seed" or seed.plant_source_id is None:
        return _failed("not_a_seed", inventory_id=inventory_id)
    ingredient = game.reference.items.ingredients_by_id().get(seed.plant_source_id)
    if ingredient is None:
        log.warning("seed %s has no ingredient data for %s", seed.item_id, seed.plant_source_id)
        return _failed("not_a_seed", inventory_id=inventory_id)

    player.remove_from_stack(inventory_id, 1)
    slot.plant = Plant(item_id=ingredient.item_id, name=ingredient.name, growth_required=ingredient.growth_time)
    _journal(game, player, f"Planted {ingredient.name} in Plot {slot_id + 1}.", category="garden")
    check_quest_step_completion(game.state, player, "plant", {"plant_name": ingredient.name})
    return _result(True, "planted", slot_id=slot_id, plant_name=ingredient.name)


def water_garden(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    planted = [slot for slot in player.garden if slot.unlocked and slot.plant is not None]
    if not planted:
        return _failed("nothing_to_water")
    for slot in planted:
        slot.plant.watered = True
    _journal(game, player, f"Watered {len(planted)} plants.", category="garden", importance=1)
    return _result(True, "watered", slot_ids=sorted(slot.slot_id for slot in planted))


def harvest_plant(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    slot_id = _require_int(payload, "slot_id")
    slot = player.slot(slot_id)
    if slot is None:
        return _failed("unknown_slot", slot_id=slot_id)
    plant = slot.plant
    if plant is None:
        return _failed("no_plant", slot_id=slot_id)
    if not plant.mature:
        return _failed("not_mature", slot_id=slot_id)
    ingredient = game.reference.items.ingredients_by_id().get(plant.item_id)
    item = game.reference.items.by_id().get(plant.item_id)
    if ingredient is None or item is None:
        log.warning("missing ingredient data for harvested plant %s", plant.item_id)
        return _failed("unknown_item", item_id=plant.item_id)

    clock = game.state.clock
    quality = calculate_harvest_quality(ingredient, plant.health, plant.age, clock.phase_name, clock.season)
    player.add_item(item, 1, quality)
    slot.plant = None
    player.add_skill_xp("gardening", GARDENING_XP_PER_HARVEST)
    _journal(game, player, f"Harvested {item.name} (Q{quality}) from Plot {slot_id + 1}.", category="garden", importance=3)
    check_quest_step_completion(game.state, player, "harvest", {"plant_name": item.name, "quality": quality})
    return _result(True, "harvested", slot_id=slot_id, item_id=item.item_id, quality=quality)


def brew(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    inventory_ids = payload.get("inventory_ids")
    if (
        not isinstance(inventory_ids, list)
        or len(inventory_ids) != 2
        or not all(isinstance(inventory_id, str) for inventory_id in inventory_ids)
        or inventory_ids[0] == inventory_ids[1]
    ):
        raise InvalidPayloadError("inventory_ids must list exactly two distinct stack ids")

    stacks = [player.stack(inventory_id) for inventory_id in inventory_ids]
    if any(stack is None for stack in stacks):
        return _failed("unknown_stack", inventory_ids=list(inventory_ids))
    recipe = find_matching_recipe(player.known_recipes, game.reference.recipes, stacks)
    if recipe is None:
        return _failed("no_matching_recipe", inventory_ids=list(inventory_ids))
    items = game.reference.items.by_id()
    result_item = items.get(recipe.result_item_id)
    if result_item is None:
        log.warning("recipe %s produces unknown item %s", recipe.recipe_id, recipe.result_item_id)
        return _failed("unknown_item", item_id=recipe.result_item_id)

    qualities: list[int] = []
    for ingredient in recipe.ingredients:
        stack = next(stack for stack in stacks if stack.name == ingredient.item_name)
        qualities.extend([stack.quality] * ingredient.quantity)
        player.remove_from_stack(stack.inventory_id, ingredient.quantity)

    clock = game.state.clock
    outcome = brew_potion(recipe, qualities, player, clock.phase_name, game.rng_stream(RNG_BREWING_STREAM_NAME))
    if not outcome.success:
        ruined = items.get(RUINED_BREWAGE_ID)
        if ruined is not None:
            player.add_item(ruined, 1, 0)
        _journal(game, player, f"The {recipe.name} failed and left only a ruined brewage.", category="brewing")
        return _result(True, "brew_ruined", recipe_id=recipe.recipe_id)

    player.add_item(result_item, outcome.quantity, outcome.quality)
    player.add_skill_xp("brewing", BREWING_XP_PER_BREW)
    text = f"Brewed {outcome.quantity}x {result_item.name} (Q{outcome.quality})."
    if outcome.bonus:
        text = f"{text} {outcome.bonus}"
    _journal(game, player, text, category="brewing", importance=3)
    check_quest_step_completion(
        game.state,
        player,
        "brew",
        {"potion_name": result_item.name, "quality": outcome.quality},
    )
    return _result(
        True,
        "brewed",
        recipe_id=recipe.recipe_id,
        item_id=result_item.item_id,
        quantity=outcome.quantity,
        quality=outcome.quality,
    )


def buy_item(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    item_id = _require_str(payload, "item_id")
    quantity = _require_int(payload, "quantity", default=1, minimum=1)

    market_item = game.state.market_item(item_id)
    item = game.reference.items.by_id().get(item_id)
    if market_item is None or item is None:
        return _failed("not_on_market", item_id=item_id)
    if market_item.black_market_only and not player.black_market_access:
        return _failed("black_market_access_required", item_id=item_id)
    unit_cost = max(1, round(market_item.price * game.state.market_data.inflation))
    cost = unit_cost * quantity
    if player.gold < cost:
        return _failed("insufficient_gold", item_id=item_id, cost=cost)

    player.gold -= cost
    quality = SEED_PURCHASE_QUALITY if item.item_type == "seed" else PURCHASE_QUALITY
    player.add_item(item, quantity, quality)
    _shift_market_pressure(game, item.name, supply=-MARKET_PRESSURE_STEP, demand=MARKET_PRESSURE_STEP)
    game.state.market_data.trading_volume += cost
    _journal(game, player, f"Bought {quantity}x {item.name} for {cost} gold.", category="market")
    return _result(True, "bought", item_id=item_id, quantity=quantity, cost=cost)


def buy_black_market_access(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    market_data = game.state.market_data
    if not market_data.black_market_unlocked:
        return _failed("black_market_locked")
    if player.black_market_access:
        return _failed("already_has_access")
    if player.gold < market_data.black_market_access_cost:
        return _failed("insufficient_gold", cost=market_data.black_market_access_cost)

    player.gold -= market_data.black_market_access_cost
    player.black_market_access = True
    _journal(game, player, "A hooded figure slips you the black market password.", category="market", importance=4)
    return _result(True, "black_market_access_granted", cost=market_data.black_market_access_cost)


def sell_item(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    inventory_id = _require_str(payload, "inventory_id")
    quantity = _require_int(payload, "quantity", default=1, minimum=1)

    stack = player.stack(inventory_id)
    if stack is None:
        return _failed("unknown_stack", inventory_id=inventory_id)
    if stack.quantity < quantity:
        return _failed("insufficient_quantity", inventory_id=inventory_id)
    market_item = game.state.market_item(stack.item_id)
    if market_item is None:
        return _failed("not_on_market", item_id=stack.item_id)

    unit_payout = max(
        1,
        round(market_item.price * game.state.market_data.inflation * SELL_PRICE_FACTOR * (0.5 + stack.quality / 200)),
    )
    payout = unit_payout * quantity
    name = stack.name
    player.remove_from_stack(inventory_id, quantity)
    player.gold += payout
    _shift_market_pressure(game, name, supply=MARKET_PRESSURE_STEP, demand=-MARKET_PRESSURE_STEP)
    game.state.market_data.trading_volume += payout
    player.add_skill_xp("trading", TRADING_XP_PER_SALE)
    _journal(game, player, f"Sold {quantity}x {name} for {payout} gold.", category="market")
    check_quest_step_completion(game.state, player, "sell", {"item_name": name, "quantity": quantity})
    return _result(True, "sold", item_id=market_item.item_id, quantity=quantity, payout=payout)


def fulfill_request(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    request_id = _require_str(payload, "request_id")
    request = game.state.request(request_id)
    if request is None:
        return _failed("unknown_request", request_id=request_id)
    if request.completed:
        return _failed("request_completed", request_id=request_id)
    if player.quantity_by_name(request.item_name) < request.quantity:
        return _failed("insufficient_items", request_id=request_id)

    player.remove_by_name(request.item_name, request.quantity)
    player.gold += request.reward_gold
    player.reputation = min(REPUTATION_CAP, player.reputation + request.reward_influence)
    request.completed = True
    _journal(
        game,
        player,
        f"Delivered {request.quantity}x {request.item_name} to {request.requester} for {request.reward_gold} gold.",
        category="requests",
        importance=3,
    )
    return _result(True, "request_fulfilled", request_id=request_id, reward_gold=request.reward_gold)


def spread_rumor_action(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    rumor_id = _require_str(payload, "rumor_id")
    if game.state.rumor(rumor_id) is None:
        return _failed("unknown_rumor", rumor_id=rumor_id)
    if player.reputation < MIN_SPREAD_REPUTATION:
        return _failed("reputation_too_low", rumor_id=rumor_id)
    spread_rumor(game.state, player, rumor_id)
    return _result(True, "rumor_spread", rumor_id=rumor_id, spread=game.state.rumor(rumor_id).spread)


def verify_rumor_action(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    rumor_id = _require_str(payload, "rumor_id")
    rumor = game.state.rumor(rumor_id)
    if rumor is None:
        return _failed("unknown_rumor", rumor_id=rumor_id)
    if rumor.verified:
        return _failed("rumor_already_verified", rumor_id=rumor_id)
    confirmed = verify_rumor(game.state, player.player_id, rumor_id, game.rng_stream(RNG_ACTIONS_STREAM_NAME))
    return _result(True, "rumor_verified" if confirmed else "rumor_unconfirmed", rumor_id=rumor_id)


def claim_rewards_action(game: Game, player: Player, payload: dict[str, Any]) -> ActionResult:
    ritual_id = _require_str(payload, "ritual_id")
    ritual = game.state.ritual(ritual_id)
    if ritual is None:
        return _failed("unknown_ritual", ritual_id=ritual_id)
    if not ritual.is_complete():
        return _failed("ritual_incomplete", ritual_id=ritual_id)
    if ritual_id in player.completed_ritual_ids:
        return _failed("already_claimed", ritual_id=ritual_id)
    reference = game.reference
    claim_ritual_rewards(game.state, player, ritual_id, reference.items, reference.recipes)
    return _result(True, "rewards_claimed", ritual_id=ritual_id)


ACTION_HANDLERS: dict[str, ActionHandler] = {
    "plant": plant_seed,
    "water": water_garden,
    "harvest": harvest_plant,
    "brew": brew,
    "buy_item": buy_item,
    "buy_black_market_access": buy_black_market_access,
    "sell_item": sell_item,
    "fulfill_request": fulfill_request,
    "spread_rumor": spread_rumor_action,
    "verify_rumor": verify_rumor_action,
    "claim_ritual_rewards": claim_rewards_action,
}


def apply_action(game: Game, player_id: str, action_kind: str, payload: dict[str, Any]) -> ActionResult:
    """Validate and apply one player action; failures leave the state untouched."""
    player = game.state.player(player_id)
    if player is None:
        return _failed("unknown_player", player_id=player_id)
    handler = ACTION_HANDLERS.get(action_kind)
    if handler is None:
        return _failed("unknown_action", action=action_kind)
    if not isinstance(payload, dict):
        return _failed("invalid_payload", reason="payload must be an object")
    try:
        return handler(game, player, payload)
    except InvalidPayloadError as exc:
        return _failed("invalid_payload", reason=str(exc))
