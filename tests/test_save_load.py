import json
from pathlib import Path

import pytest

from coven.content.config import GameConfig
from coven.content.io import export_state, import_state, load_game_json, save_game_json
from coven.sim.core import Game
from coven.sim.hash import save_hash, state_hash


def _build_game(seed: int = 123) -> Game:
    game = Game(GameConfig(seed=seed))
    game.apply_player_action("player-1", "plant", {"slot_id": 0, "inventory_id": "seed_moonbud:q100"})
    game.apply_player_action("player-1", "buy_item", {"item_id": "ing_silverleaf"})
    game.advance_turns(7)
    return game


def test_save_then_load_round_trip_matches_state_hash(tmp_path: Path) -> None:
    game = _build_game()
    out_path = tmp_path / "coven_save.json"

    save_game_json(out_path, game)
    loaded = load_game_json(out_path)

    assert state_hash(loaded) == state_hash(game)
    assert loaded.get_action_trace() == game.get_action_trace()
    assert loaded.get_rules_state("town_requests") == game.get_rules_state("town_requests")


def test_loaded_game_continues_identically(tmp_path: Path) -> None:
    game = _build_game()
    out_path = tmp_path / "coven_save.json"
    save_game_json(out_path, game)
    loaded = load_game_json(out_path)

    game.advance_turns(12)
    loaded.advance_turns(12)

    assert state_hash(loaded) == state_hash(game)


def test_save_payload_is_canonical_and_carries_save_hash(tmp_path: Path) -> None:
    game = _build_game()
    out_path = tmp_path / "coven_save.json"

    save_game_json(out_path, game)
    text = out_path.read_text(encoding="utf-8")
    payload = json.loads(text)

    assert payload["schema_version"] == 1
    assert payload["save_hash"] == save_hash(payload)
    assert text == json.dumps(payload, indent=2, sort_keys=True)
    assert not list(tmp_path.glob("*.tmp"))


def test_loader_fails_when_save_hash_does_not_match(tmp_path: Path) -> None:
    out_path = tmp_path / "coven_save.json"
    save_game_json(out_path, _build_game())

    payload = json.loads(out_path.read_text(encoding="utf-8"))
    payload["game_state"]["players"][0]["gold"] = 9999
    out_path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(ValueError, match="save_hash mismatch"):
        load_game_json(out_path)


def test_loader_rejects_missing_fields_and_unknown_schema(tmp_path: Path) -> None:
    out_path = tmp_path / "coven_save.json"
    save_game_json(out_path, _build_game())
    payload = json.loads(out_path.read_text(encoding="utf-8"))

    del payload["rng_state"]
    out_path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError, match="missing fields: rng_state"):
        load_game_json(out_path)

    payload["rng_state"] = {}
    payload["schema_version"] = 7
    out_path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError, match="unsupported save schema_version: 7"):
        load_game_json(out_path)


def test_export_then_import_restores_the_exported_world() -> None:
    source = _build_game(seed=8)
    blob = export_state(source)
    target = Game(GameConfig(seed=500))

    assert import_state(target, blob) is True
    assert state_hash(target) == state_hash(source)
    assert target.master_seed == 8

    source.advance_turns(3)
    target.advance_turns(3)
    assert state_hash(target) == state_hash(source)


def test_import_rejects_bad_documents_without_touching_the_game() -> None:
    game = _build_game()
    before = state_hash(game)
    tampered = json.loads(export_state(game))
    tampered["rules_state"]["town_requests"] = {"tampered": True}

    assert import_state(game, "{not json") is False
    assert import_state(game, "[]") is False
    assert import_state(game, json.dumps(tampered)) is False
    assert state_hash(game) == before
