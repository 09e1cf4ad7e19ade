from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from coven.content.reference import ReferenceData
from coven.sim.core import GAME_SCHEMA_VERSION, Game
from coven.sim.hash import save_hash

log = logging.getLogger(__name__)

CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")
REQUIRED_SAVE_FIELDS = ("schema_version", "game_state", "rng_state", "rules_state", "config", "save_hash")


def _build_game_payload(game: Game) -> dict[str, Any]:
    payload = game.game_payload()
    payload["save_hash"] = save_hash(payload)
    return payload


def _canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def _write_atomic_json(path: str | Path, payload: dict[str, Any]) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    serialized = _canonical_json(payload)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_file.write(serialized)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_path = Path(temp_file.name)
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def validate_save_payload(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValueError("save payload must be an object")
    missing = [key for key in REQUIRED_SAVE_FIELDS if key not in payload]
    if missing:
        raise ValueError(f"save payload missing fields: {', '.join(missing)}")
    if payload["schema_version"] != GAME_SCHEMA_VERSION:
        raise ValueError(f"unsupported save schema_version: {payload['schema_version']}")
    for key in ("game_state", "rng_state", "rules_state", "config"):
        if not isinstance(payload[key], dict):
            raise ValueError(f"{key} must be an object")
    if not isinstance(payload["save_hash"], str):
        raise ValueError("save_hash must be a string")


def _game_from_payload(payload: Any, reference: ReferenceData | None) -> Game:
    validate_save_payload(payload)
    expected_hash = payload["save_hash"]
    actual_hash = save_hash(payload)
    if expected_hash != actual_hash:
        raise ValueError(
            f"save_hash mismatch while loading save (stored={expected_hash}, recomputed={actual_hash})"
        )
    return Game.from_game_payload(payload, reference=reference)


def export_state(game: Game) -> str:
    return _canonical_json(_build_game_payload(game))


def import_state(game: Game, blob: str) -> bool:
    """Replace ``game``'s state with an exported document.

    Returns False, leaving ``game`` untouched, when the document cannot be used.
    """
    try:
        payload = json.loads(blob)
        restored = _game_from_payload(payload, game.reference)
    except (ValueError, KeyError, TypeError) as exc:
        log.warning("rejected imported state: %s", exc)
        return False

    game.config = restored.config
    game.master_seed = restored.master_seed
    game._rng_streams = restored._rng_streams
    game.state = restored.state
    game.rules_state = restored.rules_state
    game.action_trace = restored.action_trace
    return True


def save_game_json(path: str | Path, game: Game) -> None:
    payload = _build_game_payload(game)
    validate_save_payload(payload)
    _write_atomic_json(path, payload)


def load_game_json(path: str | Path, *, reference: ReferenceData | None = None) -> Game:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _game_from_payload(payload, reference)
