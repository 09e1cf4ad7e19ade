import random

from coven.content.reference import load_reference_data
from coven.content.tables import RUMOR_CATEGORIES
from coven.sim.rumors import (
    create_custom_rumor,
    generate_rumors,
    process_rumor_effects,
    rumor_price_effect,
    spread_rumor,
    verify_rumor,
)
from coven.sim.state import GameState, Player, Rumor


class _ScriptedRng:
    def __init__(self, values: list[float]) -> None:
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0)


def _build_state(*rumors: Rumor, reputation: int = 10) -> GameState:
    player = Player(player_id="p1", name="Rowan", reputation=reputation)
    return GameState(players={"p1": player}, rumors=list(rumors))


def _build_rumor(**overrides) -> Rumor:
    values = {
        "rumor_id": "rumor-1-1",
        "content": "Moonbud is scarce.",
        "affected_item": "Moonbud",
        "spread": 10,
        "category": "shortage",
        "price_effect": 0.2,
        "duration": 4,
    }
    values.update(overrides)
    return Rumor(**values)


def _turns_until_removed(state: GameState) -> int:
    turns = 0
    while state.rumors:
        process_rumor_effects(state)
        turns += 1
        assert turns < 50
    return turns


def test_generate_rumors_emits_at_most_one_rumor() -> None:
    reference = load_reference_data()
    state = _build_state()

    created = generate_rumors(state, reference.tables, reference.items, random.Random(3), chance=1.0)

    assert len(created) == 1
    rumor = created[0]
    assert rumor.category in RUMOR_CATEGORIES
    assert 5 <= rumor.spread <= 14
    assert 4 <= rumor.duration <= 8
    assert rumor.origin in reference.tables.rumor_origins
    assert "{" not in rumor.content
    assert rumor.rumor_id == "rumor-1-1"


def test_generate_rumors_respects_zero_chance() -> None:
    reference = load_reference_data()

    assert generate_rumors(_build_state(), reference.tables, reference.items, random.Random(3), chance=0.0) == []


def test_price_effect_ranges_by_category() -> None:
    rng = random.Random(11)
    for _ in range(200):
        assert 0.10 <= rumor_price_effect("shortage", rng) <= 0.25
        assert -0.25 <= rumor_price_effect("surplus", rng) <= -0.10
        assert 0.05 <= rumor_price_effect("quality_good", rng) <= 0.15
        assert -0.15 <= rumor_price_effect("quality_bad", rng) <= -0.05
        special = rumor_price_effect("special", rng)
        assert special is None or 0.05 <= special <= 0.15


def test_unverified_rumor_fades_within_bounded_turns() -> None:
    state = _build_state(_build_rumor())

    assert _turns_until_removed(state) == 5


def test_verified_rumor_decays_slower() -> None:
    unverified = _build_state(_build_rumor())
    verified = _build_state(_build_rumor(verified=True))

    assert _turns_until_removed(verified) > _turns_until_removed(unverified)


def test_spread_is_clamped_while_growing() -> None:
    rumor = _build_rumor(spread=95, duration=None)
    state = _build_state(rumor)

    process_rumor_effects(state)

    assert rumor.spread == 100
    assert rumor.turns_active == 1


def test_verified_popular_rumor_nudges_supply() -> None:
    rumor = _build_rumor(spread=70, verified=True)
    state = _build_state(rumor)
    state.market_data.supply["Moonbud"] = 50

    process_rumor_effects(state)

    assert state.market_data.supply["Moonbud"] == 48


def test_verify_rumor_success_boosts_spread_and_duration() -> None:
    rumor = _build_rumor(spread=20, duration=3)
    state = _build_state(rumor)

    assert verify_rumor(state, "p1", rumor.rumor_id, _ScriptedRng([0.0])) is True
    assert rumor.verified is True
    assert rumor.spread == 35
    assert rumor.duration == 4
    assert state.journal[-1].text.startswith("You verified")


def test_verify_rumor_failure_still_writes_journal() -> None:
    rumor = _build_rumor(spread=20)
    state = _build_state(rumor)

    assert verify_rumor(state, "p1", rumor.rumor_id, _ScriptedRng([0.99])) is False
    assert rumor.verified is False
    assert "confirm" in state.journal[-1].text


def test_verify_rumor_rejects_unknown_or_verified() -> None:
    state = _build_state(_build_rumor(verified=True))

    assert verify_rumor(state, "p1", "rumor-9-9", _ScriptedRng([])) is False
    assert verify_rumor(state, "p1", "rumor-1-1", _ScriptedRng([])) is False
    assert state.journal == []


def test_spread_rumor_costs_reputation() -> None:
    rumor = _build_rumor(spread=20, duration=12)
    state = _build_state(rumor)
    player = state.players["p1"]

    assert spread_rumor(state, player, rumor.rumor_id) is True
    assert player.reputation == 9
    assert rumor.spread == 42
    assert rumor.duration == 12


def test_spread_rumor_needs_reputation() -> None:
    rumor = _build_rumor(spread=20)
    state = _build_state(rumor, reputation=1)

    assert spread_rumor(state, state.players["p1"], rumor.rumor_id) is False
    assert rumor.spread == 20
    assert state.journal[-1].text == "Reputation too low to spread rumors."


def test_custom_rumor_is_verified_and_journaled() -> None:
    state = _build_state()

    rumor = create_custom_rumor(state, "Silverleaf cures everything.", "Silverleaf", 0.15)

    assert rumor.verified is True
    assert rumor.spread == 15
    assert rumor.duration == 5
    assert state.rumors == [rumor]
    assert state.journal[-1].category == "market"


def test_faulty_rumor_is_kept_and_siblings_still_age() -> None:
    broken = _build_rumor(rumor_id="rumor-1-1")
    broken.spread = None
    healthy = _build_rumor(rumor_id="rumor-1-2")
    state = _build_state(broken, healthy)

    process_rumor_effects(state)

    assert state.rumors == [broken, healthy]
    assert healthy.spread == 20
    assert healthy.duration == 3
