import pytest

from coven.content.config import GameConfig
from coven.sim import debug
from coven.sim.core import Game

PLAYER = "player-1"


def _build_game() -> Game:
    return Game(GameConfig(seed=3))


def test_set_moon_phase_and_season_update_the_clock() -> None:
    game = _build_game()

    debug.set_moon_phase(game, "Full Moon")
    debug.set_season(game, "Winter")

    assert game.state.clock.phase_name == "Full Moon"
    assert game.state.clock.season == "Winter"
    assert game.state.journal[-1].text == "[debug] Season set to Winter."
    assert game.state.journal[-1].category == "debug"


def test_give_item_adds_a_stack_at_the_given_quality() -> None:
    game = _build_game()

    debug.give_item(game, PLAYER, "ing_everdew", quantity=3, quality=88)

    stack = game.state.player(PLAYER).stack("ing_everdew:q88")
    assert stack is not None
    assert stack.quantity == 3


def test_skill_and_gold_adjustments() -> None:
    game = _build_game()
    player = game.state.player(PLAYER)

    debug.add_skill_xp(game, PLAYER, "astrology", 2.5)
    debug.add_gold(game, PLAYER, -500)

    assert player.skills["astrology"] == 3.5
    assert player.gold == 0


def test_advance_phase_moves_only_the_clock() -> None:
    game = _build_game()
    market_before = [item.to_dict() for item in game.state.market]

    debug.advance_phase(game)

    assert game.state.clock.turn == 2
    assert game.state.clock.phase_name == "Waxing Crescent"
    assert [item.to_dict() for item in game.state.market] == market_before
    assert game.state.journal[-1].text.startswith("[debug] Advanced to Waxing Crescent")


def test_unknown_ids_raise() -> None:
    game = _build_game()

    with pytest.raises(ValueError, match="unknown moon phase"):
        debug.set_moon_phase(game, "Blue Moon")
    with pytest.raises(ValueError, match="unknown season"):
        debug.set_season(game, "Monsoon")
    with pytest.raises(ValueError, match="unknown player_id: ghost"):
        debug.add_gold(game, "ghost", 10)
    with pytest.raises(ValueError, match="unknown item_id"):
        debug.give_item(game, PLAYER, "ing_unobtainium")
    with pytest.raises(ValueError, match="unknown skill"):
        debug.add_skill_xp(game, PLAYER, "juggling", 1)
