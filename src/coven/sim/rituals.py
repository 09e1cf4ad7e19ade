from __future__ import annotations

import logging
from typing import Any

from coven.content.items import ItemRegistry
from coven.content.recipes import RecipeRegistry
from coven.content.rituals import RitualRegistry
from coven.sim.state import (
    REPUTATION_CAP,
    BlueprintReward,
    BrewNamedStep,
    GameState,
    GardenSlotReward,
    GoldReward,
    HarvestNamedStep,
    ItemReward,
    PlantDistinctStep,
    Player,
    RecipeReward,
    ReputationReward,
    RitualQuest,
    RitualReward,
    RitualStep,
    SellNamedStep,
    SkillReward,
)

log = logging.getLogger(__name__)

QUEST_ACTION_TYPES = ("plant", "harvest", "brew", "sell")


def _journal(state: GameState, text: str, importance: int = 3, player_id: str | None = None) -> None:
    state.add_journal_entry(text, category="ritual", importance=importance, player_id=player_id)


def unlock_ritual_quest(state: GameState, templates: RitualRegistry, ritual_id: str) -> bool:
    template = templates.by_id().get(ritual_id)
    if template is None or state.ritual(ritual_id) is not None:
        return False
    state.rituals.append(template.instantiate())
    _journal(state, f'A new ritual quest has become available: "{template.quest.name}"', 4)
    log.info("unlocked ritual %s", ritual_id)
    return True


def progress_rituals(state: GameState, templates: RitualRegistry) -> list[str]:
    """Unlock rituals whose season has come or whose prerequisite has been claimed."""
    claimed = {ritual_id for player in state.players.values() for ritual_id in player.completed_ritual_ids}
    unlocked: list[str] = []
    for template in templates.rituals:
        if state.ritual(template.ritual_id) is not None:
            continue
        seasonal = template.required_season is not None and template.required_season == state.clock.season
        prerequisite_met = template.prerequisite_ritual_id is not None and template.prerequisite_ritual_id in claimed
        if (seasonal or prerequisite_met) and unlock_ritual_quest(state, templates, template.ritual_id):
            unlocked.append(template.ritual_id)
    return unlocked


def _eligible(state: GameState, player: Player, ritual: RitualQuest) -> bool:
    if not ritual.unlocked or ritual.ritual_id in player.completed_ritual_ids or ritual.is_complete():
        return False
    if ritual.required_season is not None and ritual.required_season != state.clock.season:
        return False
    if ritual.required_moon_phase is not None and ritual.required_moon_phase != state.clock.phase_name:
        return False
    return True


def _meets_quality(min_quality: int | None, details: dict[str, Any]) -> bool:
    return min_quality is None or int(details.get("quality", 0)) >= min_quality


def _step_satisfied(
    state: GameState,
    player: Player,
    ritual: RitualQuest,
    step: RitualStep,
    action_type: str,
    details: dict[str, Any],
) -> bool:
    if isinstance(step, BrewNamedStep):
        return (
            action_type == "brew"
            and details.get("potion_name") == step.potion_name
            and _meets_quality(step.min_quality, details)
            and (step.moon_phase is None or step.moon_phase == state.clock.phase_name)
        )
    if isinstance(step, HarvestNamedStep):
        if action_type != "harvest" or details.get("plant_name") != step.plant_name:
            return False
        if not _meets_quality(step.min_quality, details):
            return False
        step.current_count += 1
        if step.current_count >= step.target_count:
            return True
        _journal(
            state,
            f'Harvested {step.plant_name} ({step.current_count}/{step.target_count}) for "{ritual.name}".',
            2,
            player.player_id,
        )
        return False
    if isinstance(step, PlantDistinctStep):
        plant_name = details.get("plant_name")
        if action_type != "plant" or not isinstance(plant_name, str):
            return False
        if plant_name not in step.planted_names:
            step.planted_names.append(plant_name)
        return len(step.planted_names) >= step.target_count
    if isinstance(step, SellNamedStep):
        if action_type != "sell" or details.get("item_name") != step.item_name:
            return False
        step.current_count += int(details.get("quantity", 1))
        return step.current_count >= step.target_count
    log.warning("ritual %s has unsupported step kind %s", ritual.ritual_id, step.kind)
    return False


def check_quest_step_completion(state: GameState, player: Player, action_type: str, details: dict[str, Any]) -> list[str]:
    """Evaluate the current step of each eligible ritual against one action.

    Returns the ids of rituals whose step completed.
    """
    advanced: list[str] = []
    for ritual in state.rituals:
        if not _eligible(state, player, ritual):
            continue
        step = ritual.current_step()
        if step is None or step.completed:
            continue
        if not _step_satisfied(state, player, ritual, step, action_type, details):
            continue
        step.completed = True
        step.completed_date = state.clock.date_label()
        ritual.steps_completed += 1
        advanced.append(ritual.ritual_id)
        _journal(
            state,
            f'Ritual progress: "{ritual.name}" step completed - {step.description}! '
            f"({ritual.steps_completed}/{ritual.total_steps})",
            4,
            player.player_id,
        )
        if ritual.is_complete():
            _journal(state, f'Ritual complete: You have finished "{ritual.name}"! Rewards await.', 5, player.player_id)
    return advanced


def _apply_reward(
    state: GameState,
    player: Player,
    reward: RitualReward,
    items: ItemRegistry,
    recipes: RecipeRegistry,
) -> None:
    who = player.player_id
    if isinstance(reward, GoldReward):
        player.gold += reward.amount
        _journal(state, f"Received {reward.amount} gold.", player_id=who)
    elif isinstance(reward, ItemReward):
        item = items.by_id().get(reward.item_id)
        if item is None:
            log.warning("ritual reward references unknown item %s", reward.item_id)
            _journal(state, f"Error: Could not find reward item {reward.item_id}.", 1, who)
            return
        player.add_item(item, reward.quantity, reward.quality)
        _journal(state, f"Received {reward.quantity}x {item.name}.", player_id=who)
    elif isinstance(reward, SkillReward):
        player.add_skill_xp(reward.skill, reward.xp)
        _journal(state, f"{reward.skill.capitalize()} skill increased.", player_id=who)
    elif isinstance(reward, ReputationReward):
        player.reputation = min(REPUTATION_CAP, player.reputation + reward.amount)
        _journal(state, f"Gained {reward.amount} reputation.", player_id=who)
    elif isinstance(reward, RecipeReward):
        if reward.recipe_id in player.known_recipes:
            return
        player.known_recipes.append(reward.recipe_id)
        recipe = recipes.by_id().get(reward.recipe_id)
        _journal(state, f"Learned new recipe: {recipe.name if recipe else reward.recipe_id}!", 4, who)
        if recipe is not None and reward.recipe_id not in state.known_recipe_ids:
            state.known_recipe_ids.append(reward.recipe_id)
    elif isinstance(reward, BlueprintReward):
        _journal(state, f"Received blueprint: {reward.blueprint}!", 4, who)
    elif isinstance(reward, GardenSlotReward):
        locked = [slot for slot in sorted(player.garden, key=lambda slot: slot.slot_id) if not slot.unlocked]
        if locked:
            locked[0].unlocked = True
            _journal(state, f"Unlocked a new garden plot (Plot {locked[0].slot_id + 1})!", 4, who)
        else:
            for slot in player.garden:
                slot.fertility = min(100, slot.fertility + 5)
            _journal(state, "Received bonus garden fertility instead!", 3, who)
    else:
        log.warning("unknown ritual reward kind %s", reward.kind)


def claim_ritual_rewards(
    state: GameState,
    player: Player,
    ritual_id: str,
    items: ItemRegistry,
    recipes: RecipeRegistry,
) -> bool:
    ritual = state.ritual(ritual_id)
    if ritual is None:
        return False
    if not ritual.is_complete():
        _journal(state, f'Cannot claim rewards for "{ritual.name}" yet. Ritual is incomplete.', 2, player.player_id)
        return False
    if ritual_id in player.completed_ritual_ids:
        _journal(state, f'You have already claimed the rewards for "{ritual.name}".', 1, player.player_id)
        return False

    player.completed_ritual_ids.append(ritual_id)
    _journal(state, f'Rewards claimed for completing the ritual: "{ritual.name}"!', 5, player.player_id)
    for reward in ritual.rewards:
        try:
            _apply_reward(state, player, reward, items, recipes)
        except (ValueError, KeyError, TypeError):
            log.exception("failed to apply %s reward for ritual %s", reward.kind, ritual_id)
            _journal(state, f'Error processing a reward for "{ritual.name}".', 1, player.player_id)
    return True
