from coven.content.config import GameConfig, PlayerConfig
from coven.sim.core import Game
from coven.sim.rituals import (
    check_quest_step_completion,
    claim_ritual_rewards,
    progress_rituals,
    unlock_ritual_quest,
)
from coven.sim.state import GardenSlotReward, RitualQuest


def _build_game(players: int = 1) -> Game:
    config = GameConfig(
        seed=4,
        players=tuple(PlayerConfig(player_id=f"p{index}", name=f"Witch {index}") for index in range(1, players + 1)),
    )
    return Game(config)


def _complete_initiate(game: Game, player_id: str = "p1") -> RitualQuest:
    player = game.state.player(player_id)
    check_quest_step_completion(game.state, player, "brew", {"potion_name": "Moon Glow Serum", "quality": 70})
    for _ in range(3):
        check_quest_step_completion(game.state, player, "harvest", {"plant_name": "Moonbud", "quality": 60})
    return game.state.ritual("essence_mastery_1")


def test_initial_and_seasonal_rituals_are_available_at_start() -> None:
    game = _build_game()

    ids = [ritual.ritual_id for ritual in game.state.rituals]
    assert "essence_mastery_1" in ids
    assert "spring_awakening" in ids
    assert "harvest_market" not in ids
    assert "essence_mastery_2" not in ids


def test_only_the_current_step_is_evaluated() -> None:
    game = _build_game()
    player = game.state.player("p1")

    advanced = check_quest_step_completion(game.state, player, "harvest", {"plant_name": "Moonbud", "quality": 90})

    ritual = game.state.ritual("essence_mastery_1")
    assert advanced == []
    assert ritual.steps_completed == 0
    assert ritual.steps[1].current_count == 0


def test_brew_step_completes_and_records_date() -> None:
    game = _build_game()
    player = game.state.player("p1")

    advanced = check_quest_step_completion(game.state, player, "brew", {"potion_name": "Moon Glow Serum", "quality": 50})

    ritual = game.state.ritual("essence_mastery_1")
    assert advanced == ["essence_mastery_1"]
    assert ritual.steps_completed == 1
    assert ritual.steps[0].completed_date == "New Moon, Spring Y1"


def test_harvest_step_counts_up_to_target() -> None:
    game = _build_game()
    player = game.state.player("p1")
    check_quest_step_completion(game.state, player, "brew", {"potion_name": "Moon Glow Serum", "quality": 50})

    check_quest_step_completion(game.state, player, "harvest", {"plant_name": "Moonbud", "quality": 50})
    check_quest_step_completion(game.state, player, "harvest", {"plant_name": "Moonbud", "quality": 50})

    ritual = game.state.ritual("essence_mastery_1")
    assert ritual.steps[1].current_count == 2
    assert ritual.is_complete() is False
    assert "(2/3)" in game.state.journal[-1].text

    check_quest_step_completion(game.state, player, "harvest", {"plant_name": "Moonbud", "quality": 50})
    assert ritual.is_complete() is True


def test_plant_distinct_step_ignores_repeats() -> None:
    game = _build_game()
    player = game.state.player("p1")
    ritual = game.state.ritual("spring_awakening")

    for name in ("Moonbud", "Moonbud", "Silverleaf"):
        check_quest_step_completion(game.state, player, "plant", {"plant_name": name})
    assert ritual.steps_completed == 0

    check_quest_step_completion(game.state, player, "plant", {"plant_name": "Glimmerroot"})
    assert ritual.steps_completed == 1


def test_harvest_quality_gate_blocks_low_quality() -> None:
    game = _build_game()
    player = game.state.player("p1")
    ritual = game.state.ritual("spring_awakening")
    for name in ("Moonbud", "Silverleaf", "Glimmerroot"):
        check_quest_step_completion(game.state, player, "plant", {"plant_name": name})

    check_quest_step_completion(game.state, player, "harvest", {"plant_name": "Glimmerroot", "quality": 79})
    assert ritual.steps_completed == 1

    check_quest_step_completion(game.state, player, "harvest", {"plant_name": "Glimmerroot", "quality": 80})
    assert ritual.steps_completed == 2


def test_claim_fails_while_incomplete() -> None:
    game = _build_game()
    player = game.state.player("p1")

    claimed = claim_ritual_rewards(game.state, player, "essence_mastery_1", game.reference.items, game.reference.recipes)

    assert claimed is False
    assert player.completed_ritual_ids == []
    assert "incomplete" in game.state.journal[-1].text


def test_claim_applies_rewards_once_per_player() -> None:
    game = _build_game(players=2)
    _complete_initiate(game)
    first, second = game.state.player("p1"), game.state.player("p2")
    items, recipes = game.reference.items, game.reference.recipes
    brewing_before = first.skills["brewing"]

    assert claim_ritual_rewards(game.state, first, "essence_mastery_1", items, recipes) is True
    assert claim_ritual_rewards(game.state, first, "essence_mastery_1", items, recipes) is False
    assert first.skills["brewing"] == brewing_before + 0.5
    assert "recipe_radiant_moon_mask" in first.known_recipes
    assert "recipe_radiant_moon_mask" not in second.known_recipes
    assert "recipe_radiant_moon_mask" in game.state.known_recipe_ids
    assert first.completed_ritual_ids == ["essence_mastery_1"]

    assert claim_ritual_rewards(game.state, second, "essence_mastery_1", items, recipes) is True
    assert second.completed_ritual_ids == ["essence_mastery_1"]


def test_claiming_prerequisite_unlocks_follow_up() -> None:
    game = _build_game()
    _complete_initiate(game)
    player = game.state.player("p1")
    claim_ritual_rewards(game.state, player, "essence_mastery_1", game.reference.items, game.reference.recipes)

    unlocked = progress_rituals(game.state, game.reference.rituals)

    assert unlocked == ["essence_mastery_2"]
    assert game.state.ritual("essence_mastery_2").unlocked is True


def test_moon_gated_brew_step_waits_for_full_moon() -> None:
    game = _build_game()
    unlock_ritual_quest(game.state, game.reference.rituals, "essence_mastery_2")
    player = game.state.player("p1")
    ritual = game.state.ritual("essence_mastery_2")

    check_quest_step_completion(game.state, player, "brew", {"potion_name": "Moon Glow Serum", "quality": 90})
    assert ritual.steps_completed == 0

    game.state.clock.phase_index = 4
    check_quest_step_completion(game.state, player, "brew", {"potion_name": "Moon Glow Serum", "quality": 90})
    assert ritual.steps_completed == 1


def test_seasonal_ritual_unlocks_when_season_arrives() -> None:
    game = _build_game()
    game.state.clock.season = "Fall"

    assert progress_rituals(game.state, game.reference.rituals) == ["harvest_market"]
    assert unlock_ritual_quest(game.state, game.reference.rituals, "harvest_market") is False
    assert unlock_ritual_quest(game.state, game.reference.rituals, "no_such_ritual") is False


def test_garden_slot_reward_unlocks_first_locked_slot_or_enriches_soil() -> None:
    from coven.sim.rituals import _apply_reward

    game = _build_game()
    player = game.state.player("p1")
    items, recipes = game.reference.items, game.reference.recipes

    _apply_reward(game.state, player, GardenSlotReward(), items, recipes)
    assert [slot.unlocked for slot in player.garden] == [True, True, True, True, False, False]

    for slot in player.garden:
        slot.unlocked = True
        slot.fertility = 98
    _apply_reward(game.state, player, GardenSlotReward(), items, recipes)
    assert all(slot.fertility == 100 for slot in player.garden)
