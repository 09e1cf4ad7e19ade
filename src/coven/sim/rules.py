from __future__ import annotations

from typing import TYPE_CHECKING, Any

from coven.sim.clock import advance_clock
from coven.sim.garden import process_garden
from coven.sim.market import apply_market_events, ensure_market_data
from coven.sim.requests import refresh_town_requests
from coven.sim.rituals import progress_rituals
from coven.sim.rng import (
    RNG_GARDEN_STREAM_NAME,
    RNG_MARKET_STREAM_NAME,
    RNG_REQUESTS_STREAM_NAME,
    RNG_RUMORS_STREAM_NAME,
    RNG_WEATHER_STREAM_NAME,
)
from coven.sim.rumors import generate_rumors, process_rumor_effects
from coven.sim.state import TurnNote

if TYPE_CHECKING:
    from coven.sim.core import Game


class TurnModule:
    """Deterministic turn-module substrate.

    Turn modules are registered on a ``Game`` instance and are executed in
    stable registration order for every lifecycle hook.
    """

    name: str

    def on_game_start(self, game: Game) -> None:
        """Called once, immediately when the module is registered."""

    def on_turn(self, game: Game, turn: int) -> None:
        """Called once per turn; ``turn`` is the clock turn before advancing."""

    def on_action(self, game: Game, event: dict[str, Any]) -> None:
        """Called after each player action with its trace record."""


class ClockModule(TurnModule):
    name = "clock"

    def on_turn(self, game: Game, turn: int) -> None:
        state = game.state
        notes = advance_clock(state.clock, game.rng_stream(RNG_WEATHER_STREAM_NAME), game.reference.tables.weather)
        state.fold_notes(notes)


class GardenModule(TurnModule):
    name = "garden"

    def on_turn(self, game: Game, turn: int) -> None:
        notes: list[TurnNote] = []
        process_garden(game.state, game.reference.items, game.rng_stream(RNG_GARDEN_STREAM_NAME), notes)
        game.state.fold_notes(notes)


class MarketModule(TurnModule):
    name = "market"

    def on_game_start(self, game: Game) -> None:
        rng = game.rng_stream(RNG_MARKET_STREAM_NAME)
        for item in game.state.market:
            ensure_market_data(game.state.market_data, item.name, rng)

    def on_turn(self, game: Game, turn: int) -> None:
        notes: list[TurnNote] = []
        reference = game.reference
        apply_market_events(game.state, reference.tables, reference.items, game.rng_stream(RNG_MARKET_STREAM_NAME), notes)
        game.state.fold_notes(notes)


class RumorModule(TurnModule):
    name = "rumors"

    def on_turn(self, game: Game, turn: int) -> None:
        state = game.state
        process_rumor_effects(state)
        created = generate_rumors(
            state,
            game.reference.tables,
            game.reference.items,
            game.rng_stream(RNG_RUMORS_STREAM_NAME),
            chance=game.config.rumor_chance,
        )
        state.rumors.extend(created)
        if created:
            module_state = game.get_rules_state(self.name)
            module_state["generated_total"] = int(module_state.get("generated_total", 0)) + len(created)
            game.set_rules_state(self.name, module_state)


class TownRequestModule(TurnModule):
    name = "town_requests"

    def on_turn(self, game: Game, turn: int) -> None:
        created = refresh_town_requests(
            game.state,
            game.reference.tables,
            game.reference.items,
            game.rng_stream(RNG_REQUESTS_STREAM_NAME),
            max_open=game.config.max_open_requests,
        )
        module_state = game.get_rules_state(self.name)
        module_state["posted_total"] = int(module_state.get("posted_total", 0)) + len(created)
        game.set_rules_state(self.name, module_state)

    def on_action(self, game: Game, event: dict[str, Any]) -> None:
        params = event.get("params", {})
        if params.get("action") != "fulfill_request" or not params.get("success"):
            return
        module_state = game.get_rules_state(self.name)
        module_state["fulfilled_total"] = int(module_state.get("fulfilled_total", 0)) + 1
        game.set_rules_state(self.name, module_state)


class RitualModule(TurnModule):
    name = "rituals"

    def on_game_start(self, game: Game) -> None:
        progress_rituals(game.state, game.reference.rituals)

    def on_turn(self, game: Game, turn: int) -> None:
        progress_rituals(game.state, game.reference.rituals)


def default_turn_modules() -> list[TurnModule]:
    return [
        ClockModule(),
        GardenModule(),
        MarketModule(),
        RumorModule(),
        TownRequestModule(),
        RitualModule(),
    ]
