from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from coven.sim.core import Game

SAVE_HASH_FIELDS = ("schema_version", "game_state", "rng_state", "rules_state", "action_trace", "config")


def _digest(payload: Any) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def save_hash(payload: dict[str, Any]) -> str:
    hash_payload = {key: payload[key] for key in SAVE_HASH_FIELDS if key in payload}
    return _digest(hash_payload)


def state_hash(game: Game) -> str:
    """Determinism fingerprint over world state, RNG streams, module state and action trace."""
    payload = game.game_payload()
    payload.pop("config", None)
    return _digest(payload)
