"""Debug affordances for tooling and tests.

These mutate the game directly and skip action validation; unknown ids
raise ``ValueError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from coven.content.items import MOON_PHASES, SEASONS
from coven.sim.clock import advance_clock
from coven.sim.rng import RNG_WEATHER_STREAM_NAME
from coven.sim.state import Player

if TYPE_CHECKING:
    from coven.sim.core import Game

log = logging.getLogger(__name__)


def _note(game: Game, text: str, player_id: str | None = None) -> None:
    game.state.add_journal_entry(f"[debug] {text}", category="debug", importance=1, player_id=player_id)
    log.debug(text)


def _player(game: Game, player_id: str) -> Player:
    player = game.state.player(player_id)
    if player is None:
        raise ValueError(f"unknown player_id: {player_id}")
    return player


def set_moon_phase(game: Game, name: str) -> None:
    if name not in MOON_PHASES:
        raise ValueError(f"unknown moon phase: {name}")
    game.state.clock.phase_index = MOON_PHASES.index(name)
    _note(game, f"Moon phase set to {name}.")


def set_season(game: Game, season: str) -> None:
    if season not in SEASONS:
        raise ValueError(f"unknown season: {season}")
    game.state.clock.season = season
    _note(game, f"Season set to {season}.")


def give_item(game: Game, player_id: str, item_id: str, quantity: int = 1, quality: int = 70) -> None:
    player = _player(game, player_id)
    item = game.reference.items.by_id().get(item_id)
    if item is None:
        raise ValueError(f"unknown item_id: {item_id}")
    if quantity < 1:
        raise ValueError("quantity must be >= 1")
    player.add_item(item, quantity, quality)
    _note(game, f"Gave {quantity}x {item.name} (Q{quality}).", player_id)


def add_skill_xp(game: Game, player_id: str, skill: str, amount: float) -> None:
    player = _player(game, player_id)
    player.add_skill_xp(skill, amount)
    _note(game, f"{skill} +{amount} (now {player.skills[skill]}).", player_id)


def add_gold(game: Game, player_id: str, amount: int) -> None:
    player = _player(game, player_id)
    player.gold = max(0, player.gold + amount)
    _note(game, f"Gold {amount:+d} (now {player.gold}).", player_id)


def advance_phase(game: Game) -> None:
    """Advance the clock by one phase without running any other turn module."""
    state = game.state
    state.fold_notes(advance_clock(state.clock, game.rng_stream(RNG_WEATHER_STREAM_NAME), game.reference.tables.weather))
    _note(game, f"Advanced to {state.clock.date_label()}.")
