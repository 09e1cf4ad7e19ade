from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:  # Python < 3.11
    import tomli as tomllib

DEFAULT_SEED = 0
DEFAULT_RUMOR_CHANCE = 0.35
DEFAULT_MAX_OPEN_REQUESTS = 8


@dataclass(frozen=True)
class PlayerConfig:
    player_id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"player_id": self.player_id, "name": self.name}


def _default_players() -> tuple[PlayerConfig, ...]:
    return (PlayerConfig(player_id="player-1", name="Hedge Witch"),)


@dataclass(frozen=True)
class GameConfig:
    seed: int = DEFAULT_SEED
    players: tuple[PlayerConfig, ...] = field(default_factory=_default_players)
    starting_gold: int = 100
    starting_reputation: int = 10
    garden_slots: int = 6
    unlocked_slots: int = 3
    rumor_chance: float = DEFAULT_RUMOR_CHANCE
    journal_max_entries: int = 200
    journal_trim_to: int = 150
    max_open_requests: int = DEFAULT_MAX_OPEN_REQUESTS
    black_market_unlocked: bool = False
    black_market_access_cost: int = 100

    def __post_init__(self) -> None:
        if not isinstance(self.seed, int) or isinstance(self.seed, bool):
            raise ValueError("seed must be an integer")
        if not self.players:
            raise ValueError("players must not be empty")
        player_ids = [player.player_id for player in self.players]
        if len(player_ids) != len(set(player_ids)):
            raise ValueError("players must have unique player_id values")
        if not isinstance(self.starting_gold, int) or self.starting_gold < 0:
            raise ValueError("starting_gold must be a non-negative integer")
        if not isinstance(self.starting_reputation, int) or not 0 <= self.starting_reputation <= 100:
            raise ValueError("starting_reputation must be an integer in [0, 100]")
        if not isinstance(self.garden_slots, int) or self.garden_slots < 1:
            raise ValueError("garden_slots must be an integer >= 1")
        if not isinstance(self.unlocked_slots, int) or not 0 <= self.unlocked_slots <= self.garden_slots:
            raise ValueError("unlocked_slots must be an integer in [0, garden_slots]")
        if not isinstance(self.rumor_chance, (int, float)) or not 0 <= self.rumor_chance <= 1:
            raise ValueError("rumor_chance must be a number in [0, 1]")
        if not isinstance(self.journal_trim_to, int) or self.journal_trim_to < 1:
            raise ValueError("journal_trim_to must be an integer >= 1")
        if not isinstance(self.journal_max_entries, int) or self.journal_max_entries < self.journal_trim_to:
            raise ValueError("journal_max_entries must be an integer >= journal_trim_to")
        if not isinstance(self.max_open_requests, int) or self.max_open_requests < 1:
            raise ValueError("max_open_requests must be an integer >= 1")
        if not isinstance(self.black_market_access_cost, int) or self.black_market_access_cost < 0:
            raise ValueError("black_market_access_cost must be a non-negative integer")

    def to_dict(self) -> dict[str, Any]:
        return {
            "seed": self.seed,
            "players": [player.to_dict() for player in self.players],
            "starting_gold": self.starting_gold,
            "starting_reputation": self.starting_reputation,
            "garden_slots": self.garden_slots,
            "unlocked_slots": self.unlocked_slots,
            "rumor_chance": self.rumor_chance,
            "journal_max_entries": self.journal_max_entries,
            "journal_trim_to": self.journal_trim_to,
            "max_open_requests": self.max_open_requests,
            "black_market_unlocked": self.black_market_unlocked,
            "black_market_access_cost": self.black_market_access_cost,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameConfig":
        if not isinstance(data, dict):
            raise ValueError("config must be an object")
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"config has unknown keys: {', '.join(unknown)}")
        values = dict(data)
        if "players" in values:
            rows = values["players"]
            if not isinstance(rows, list):
                raise ValueError("players must be a list of tables")
            players = []
            for index, row in enumerate(rows):
                if not isinstance(row, dict) or not isinstance(row.get("player_id"), str) or not row["player_id"]:
                    raise ValueError(f"players[{index}].player_id must be a non-empty string")
                players.append(PlayerConfig(player_id=row["player_id"], name=str(row.get("name", row["player_id"]))))
            values["players"] = tuple(players)
        return cls(**values)


def load_config_toml(path: str | Path) -> GameConfig:
    with Path(path).open("rb") as handle:
        data = tomllib.load(handle)
    return GameConfig.from_dict(data)
