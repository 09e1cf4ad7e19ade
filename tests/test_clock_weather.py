import random

from coven.content.items import MOON_PHASES
from coven.content.reference import load_reference_data
from coven.sim.clock import PHASES_PER_SEASON, advance_clock, determine_weather, is_season_start
from coven.sim.state import GameClock


class _ScriptedRng:
    def __init__(self, values: list[float]) -> None:
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0)


def _weather_tables() -> dict:
    return load_reference_data().tables.weather


def test_eight_turns_cycle_through_every_phase_name() -> None:
    clock = GameClock()
    rng = random.Random(1)
    seen = []

    for _ in range(len(MOON_PHASES)):
        advance_clock(clock, rng, _weather_tables())
        seen.append(clock.phase_name)

    assert sorted(seen) == sorted(MOON_PHASES)
    assert clock.phase_name == "New Moon"


def test_season_advances_once_every_twenty_four_turns() -> None:
    clock = GameClock()
    rng = random.Random(2)
    tables = _weather_tables()

    for _ in range(PHASES_PER_SEASON - 1):
        advance_clock(clock, rng, tables)
    assert clock.season == "Spring"

    notes = advance_clock(clock, rng, tables)
    assert clock.season == "Summer"
    assert clock.turn == 25
    assert any(note.text == "Welcome, Summer!" for note in notes)


def test_year_increments_when_spring_returns() -> None:
    clock = GameClock()
    rng = random.Random(3)
    tables = _weather_tables()

    for _ in range(PHASES_PER_SEASON * 4):
        advance_clock(clock, rng, tables)

    assert clock.season == "Spring"
    assert clock.year == 2


def test_is_season_start_skips_first_turn() -> None:
    assert is_season_start(1) is False
    assert is_season_start(25) is True
    assert is_season_start(26) is False


def test_previous_weather_repeats_on_low_draw() -> None:
    weather = determine_weather("Spring", "rainy", _ScriptedRng([0.1]), _weather_tables())

    assert weather == "rainy"


def test_weather_absent_from_season_skips_repeat_draw() -> None:
    rng = _ScriptedRng([0.0])

    weather = determine_weather("Spring", "dry", rng, _weather_tables())

    assert weather == "normal"
    assert rng.values == []


def test_cumulative_draw_walks_weights_in_stable_order() -> None:
    weather = determine_weather("Spring", None, _ScriptedRng([0.5]), _weather_tables())

    assert weather == "rainy"


def test_malformed_weather_table_falls_back_to_normal() -> None:
    tables = {"Spring": {"rainy": "lots", "stormy": -1}}

    assert determine_weather("Spring", None, _ScriptedRng([]), tables) == "normal"
    assert determine_weather("Summer", None, _ScriptedRng([]), None) == "normal"


def test_clock_advance_tracks_previous_weather() -> None:
    clock = GameClock(weather="foggy")

    advance_clock(clock, random.Random(4), _weather_tables())

    assert clock.previous_weather == "foggy"
