from __future__ import annotations

import random
from typing import Any

from coven.content.items import MOON_PHASES, SEASONS
from coven.sim.state import WEATHER_KINDS, GameClock, TurnNote

MONTHS_PER_SEASON = 3
PHASES_PER_SEASON = len(MOON_PHASES) * MONTHS_PER_SEASON
WEATHER_REPEAT_CHANCE = 0.3
DEFAULT_WEATHER = "normal"


def next_season(season: str) -> str:
    return SEASONS[(SEASONS.index(season) + 1) % len(SEASONS)]


def is_season_start(turn: int) -> bool:
    return turn > 1 and (turn - 1) % PHASES_PER_SEASON == 0


def _usable_weights(table: Any) -> list[tuple[str, float]]:
    if not isinstance(table, dict):
        return []
    ordered = [kind for kind in WEATHER_KINDS if kind in table]
    ordered.extend(sorted(key for key in table if key not in WEATHER_KINDS and isinstance(key, str)))
    weights: list[tuple[str, float]] = []
    for kind in ordered:
        weight = table[kind]
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight <= 0:
            continue
        weights.append((kind, float(weight)))
    return weights


def determine_weather(
    season: str,
    previous_weather: str | None,
    rng: random.Random,
    weather_tables: dict[str, Any] | None,
) -> str:
    """Draw the next weather for ``season``.

    Malformed or empty tables yield ``normal``. The previous weather repeats
    with a flat chance when the season table still allows it.
    """
    table = weather_tables.get(season) if isinstance(weather_tables, dict) else None
    weights = _usable_weights(table)
    if not weights:
        return DEFAULT_WEATHER

    if previous_weather is not None and any(kind == previous_weather for kind, _ in weights):
        if rng.random() < WEATHER_REPEAT_CHANCE:
            return previous_weather

    total = sum(weight for _, weight in weights)
    roll = rng.random()
    cumulative = 0.0
    for kind, weight in weights:
        cumulative += weight / total
        if roll < cumulative:
            return kind
    return weights[-1][0]


def advance_clock(clock: GameClock, rng: random.Random, weather_tables: dict[str, Any] | None) -> list[TurnNote]:
    notes: list[TurnNote] = []
    clock.phase_index = (clock.phase_index + 1) % len(MOON_PHASES)
    clock.turn += 1

    if is_season_start(clock.turn):
        clock.season = next_season(clock.season)
        notes.append(TurnNote(f"Welcome, {clock.season}!", "season", 5))
        if clock.season == "Spring":
            clock.year += 1
            notes.append(TurnNote(f"Year {clock.year} dawns.", "event", 5))

    notes.append(TurnNote(f"{clock.phase_name} begins.", "moon", 3))

    clock.previous_weather = clock.weather
    clock.weather = determine_weather(clock.season, clock.previous_weather, rng, weather_tables)
    notes.append(TurnNote(f"Weather: {clock.weather}.", "weather", 3))
    return notes
