from __future__ import annotations

import copy
import hashlib
import logging
import random
from dataclasses import dataclass, field
from typing import Any

from coven.content.config import GameConfig
from coven.content.reference import ReferenceData, load_reference_data
from coven.sim.market import initial_market
from coven.sim.rng import derive_stream_seed
from coven.sim.rules import TurnModule, default_turn_modules
from coven.sim.state import (
    GameState,
    GardenSlot,
    MarketData,
    Player,
    _validate_json_value,
)

log = logging.getLogger(__name__)

GAME_SCHEMA_VERSION = 1
MAX_ACTION_TRACE = 256
ACTION_OUTCOME_EVENT_TYPE = "action_outcome"
STARTING_SEED_QUALITY = 100
STARTING_INVENTORY = (
    ("seed_moonbud", 2),
    ("seed_glimmerroot", 2),
    ("seed_silverleaf", 2),
)


def _json_list_to_tuple(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_json_list_to_tuple(item) for item in value)
    return value


@dataclass
class ActionResult:
    success: bool
    outcome: str
    details: dict[str, Any] = field(default_factory=dict)
    state: GameState | None = None


def new_game_state(config: GameConfig, reference: ReferenceData) -> GameState:
    items = reference.items.by_id()
    starting_recipes = list(reference.recipes.starting_recipe_ids)
    players: dict[str, Player] = {}
    for player_config in config.players:
        player = Player(
            player_id=player_config.player_id,
            name=player_config.name,
            gold=config.starting_gold,
            reputation=config.starting_reputation,
            garden=[
                GardenSlot(slot_id=slot_id, unlocked=slot_id < config.unlocked_slots)
                for slot_id in range(config.garden_slots)
            ],
            known_recipes=list(starting_recipes),
        )
        for item_id, quantity in STARTING_INVENTORY:
            if item_id in items:
                player.add_item(items[item_id], quantity, STARTING_SEED_QUALITY)
        players[player.player_id] = player

    rituals = [template.instantiate() for template in reference.rituals.rituals if template.initially_available]
    return GameState(
        players=dict(sorted(players.items())),
        market=initial_market(reference.items, reference.tables),
        market_data=MarketData(
            black_market_unlocked=config.black_market_unlocked,
            black_market_access_cost=config.black_market_access_cost,
        ),
        rituals=rituals,
        known_recipe_ids=list(starting_recipes),
        journal_max_entries=config.journal_max_entries,
        journal_trim_to=config.journal_trim_to,
    )


class Game:
    """Single-writer turn orchestrator for one shared world.

    Not thread-safe: callers serialise ``advance_turn`` and
    ``apply_player_action``.
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        reference: ReferenceData | None = None,
        *,
        state: GameState | None = None,
        modules: list[TurnModule] | None = None,
    ) -> None:
        self.config = config if config is not None else GameConfig()
        self.reference = reference if reference is not None else load_reference_data()
        self.master_seed = self.config.seed
        self._rng_streams: dict[str, random.Random] = {}
        self.state = state if state is not None else new_game_state(self.config, self.reference)
        self.rules_state: dict[str, dict[str, Any]] = {}
        self.action_trace: list[dict[str, Any]] = []
        self.turn_modules: list[TurnModule] = []
        for module in modules if modules is not None else default_turn_modules():
            self.register_turn_module(module)

    def rng_stream(self, name: str) -> random.Random:
        if name not in self._rng_streams:
            self._rng_streams[name] = random.Random(derive_stream_seed(master_seed=self.master_seed, stream_name=name))
        return self._rng_streams[name]

    def rng_state_payload(self) -> dict[str, Any]:
        return {
            "master_seed": self.master_seed,
            "rng_stream_states": {
                name: stream.getstate() for name, stream in sorted(self._rng_streams.items(), key=lambda item: item[0])
            },
        }

    def restore_rng_state(self, payload: dict[str, Any]) -> None:
        self.master_seed = int(payload["master_seed"])
        stream_states = payload.get("rng_stream_states", {})
        if not isinstance(stream_states, dict):
            raise ValueError("rng_state.rng_stream_states must be an object")
        restored: dict[str, random.Random] = {}
        for name in sorted(stream_states):
            stream = random.Random(derive_stream_seed(master_seed=self.master_seed, stream_name=name))
            stream.setstate(_json_list_to_tuple(stream_states[name]))
            restored[name] = stream
        self._rng_streams = restored

    def get_turn_module(self, module_name: str) -> TurnModule | None:
        for module in self.turn_modules:
            if module.name == module_name:
                return module
        return None

    def register_turn_module(self, module: TurnModule) -> None:
        if any(existing.name == module.name for existing in self.turn_modules):
            raise ValueError(f"duplicate turn module name: {module.name}")
        self.turn_modules.append(module)
        module.on_game_start(self)

    def get_rules_state(self, module_name: str) -> dict[str, Any]:
        return copy.deepcopy(self.rules_state.get(module_name, {}))

    def set_rules_state(self, module_name: str, state: dict[str, Any]) -> None:
        if not isinstance(module_name, str) or not module_name:
            raise ValueError("module_name must be a non-empty string")
        if not isinstance(state, dict):
            raise ValueError("rules_state value must be a dict")
        _validate_json_value(state, field_name="rules_state")
        self.rules_state[module_name] = copy.deepcopy(state)

    def advance_turn(self) -> GameState:
        turn = self.state.clock.turn
        for module in self.turn_modules:
            module.on_turn(self, turn)
        log.debug("advanced turn %s -> %s", turn, self.state.clock.turn)
        return self.state

    def advance_turns(self, turns: int) -> GameState:
        for _ in range(turns):
            self.advance_turn()
        return self.state

    def apply_player_action(self, player_id: str, action_kind: str, payload: dict[str, Any] | None = None) -> ActionResult:
        from coven.sim.actions import apply_action

        result = apply_action(self, player_id, action_kind, payload if payload is not None else {})
        result.state = self.state
        entry = self._append_action_outcome(player_id, action_kind, result)
        for module in self.turn_modules:
            module.on_action(self, entry)
        return result

    def get_action_trace(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self.action_trace)

    def _append_action_outcome(self, player_id: str, action_kind: str, result: ActionResult) -> dict[str, Any]:
        turn = self.state.clock.turn
        sequence = len(self.action_trace)
        entry = {
            "turn": turn,
            "event_id": self._trace_event_id_as_int(f"action:{turn}:{player_id}:{action_kind}:{sequence}:{result.outcome}"),
            "event_type": ACTION_OUTCOME_EVENT_TYPE,
            "params": {
                "player_id": player_id,
                "action": action_kind,
                "success": result.success,
                "outcome": result.outcome,
                "details": copy.deepcopy(result.details),
            },
        }
        self._append_action_trace_entry(entry)
        return entry

    def _append_action_trace_entry(self, entry: dict[str, Any]) -> None:
        if not isinstance(entry, dict):
            raise ValueError("action_trace entries must be objects")
        required = {"turn", "event_id", "event_type", "params"}
        if not required.issubset(entry):
            raise ValueError("action_trace entries missing required fields")
        if not isinstance(entry["turn"], int) or entry["turn"] < 1:
            raise ValueError("action_trace turn must be a positive integer")
        if not isinstance(entry["event_id"], int):
            raise ValueError("action_trace event_id must be an integer")
        if not isinstance(entry["params"], dict):
            raise ValueError("action_trace params must be an object")
        _validate_json_value(entry["params"], field_name="action_trace.params")
        self.action_trace.append(copy.deepcopy(entry))
        if len(self.action_trace) > MAX_ACTION_TRACE:
            overflow = len(self.action_trace) - MAX_ACTION_TRACE
            del self.action_trace[:overflow]

    @staticmethod
    def _trace_event_id_as_int(event_id: str) -> int:
        digest = hashlib.sha256(event_id.encode("utf-8")).hexdigest()
        return int(digest[:16], 16)

    def game_payload(self) -> dict[str, Any]:
        return {
            "schema_version": GAME_SCHEMA_VERSION,
            "game_state": self.state.to_dict(),
            "rng_state": self.rng_state_payload(),
            "rules_state": dict(sorted(self.rules_state.items())),
            "action_trace": copy.deepcopy(self.action_trace),
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_game_payload(cls, payload: dict[str, Any], reference: ReferenceData | None = None) -> "Game":
        if not isinstance(payload, dict):
            raise ValueError("game payload must be an object")
        schema_version = payload.get("schema_version")
        if schema_version != GAME_SCHEMA_VERSION:
            raise ValueError(f"unsupported game schema_version: {schema_version}")
        config = GameConfig.from_dict(payload["config"])
        state = GameState.from_dict(payload["game_state"])
        game = cls(config=config, reference=reference, state=state, modules=[])
        game.load_payload_extras(payload)
        for module in default_turn_modules():
            game.turn_modules.append(module)
        return game

    def load_payload_extras(self, payload: dict[str, Any]) -> None:
        raw_rules_state = payload.get("rules_state", {})
        if not isinstance(raw_rules_state, dict):
            raise ValueError("rules_state must be an object")
        self.rules_state = {}
        for module_name, module_state in raw_rules_state.items():
            if not isinstance(module_state, dict):
                raise ValueError("rules_state entries must be objects")
            self.set_rules_state(module_name, module_state)

        raw_trace = payload.get("action_trace", [])
        if not isinstance(raw_trace, list):
            raise ValueError("action_trace must be a list")
        self.action_trace = []
        for entry in raw_trace:
            self._append_action_trace_entry(entry)

        self.restore_rng_state(payload["rng_state"])
