from __future__ import annotations

import logging
import random

from coven.content.config import DEFAULT_RUMOR_CHANCE
from coven.content.items import ItemRegistry
from coven.content.tables import RUMOR_CATEGORIES, ReferenceTables
from coven.sim.state import REPUTATION_CAP, GameState, Player, Rumor, clamp

log = logging.getLogger(__name__)

RUMOR_ID_PREFIX = "rumor"
FALLBACK_RUMOR_ITEM = "local herbs"
BASE_SPREAD_GAIN = 10
BASE_FADE_RATE = 25
VERIFIED_SPREAD_BONUS = 15
VERIFIED_SUPPLY_NUDGE_SPREAD = 60
MIN_SPREAD_REPUTATION = 2
MAX_SPREAD_DURATION = 12


def _candidate_item_names(state: GameState, items: ItemRegistry) -> list[str]:
    names = {item.name for item in state.market if item.name}
    names.update(item.name for item in items.items if item.item_type in ("ingredient", "potion"))
    return sorted(names)


def rumor_price_effect(category: str, rng: random.Random) -> float | None:
    if category == "shortage":
        return 0.10 + rng.random() * 0.15
    if category == "surplus":
        return -(0.10 + rng.random() * 0.15)
    if category == "quality_good":
        return 0.05 + rng.random() * 0.10
    if category == "quality_bad":
        return -(0.05 + rng.random() * 0.10)
    if rng.random() < 0.5:
        return 0.05 + rng.random() * 0.10
    return None


def generate_rumors(
    state: GameState,
    tables: ReferenceTables,
    items: ItemRegistry,
    rng: random.Random,
    chance: float = DEFAULT_RUMOR_CHANCE,
) -> list[Rumor]:
    """Roll for this turn's gossip. At most one rumor is produced."""
    if rng.random() >= chance:
        return []
    clock = state.clock
    category = rng.choice(RUMOR_CATEGORIES)
    template = rng.choice(tables.rumor_templates[category])
    candidates = _candidate_item_names(state, items)
    item_name = rng.choice(candidates) if candidates else FALLBACK_RUMOR_ITEM
    content = (
        template.replace("{item}", item_name)
        .replace("{season}", clock.season)
        .replace("{moonPhase}", clock.phase_name)
        .replace("{weather}", clock.weather)
    )
    price_effect = rumor_price_effect(category, rng)
    spread = 5 + rng.randint(0, 9)
    duration = 4 + rng.randint(0, 4)
    origin = rng.choice(tables.rumor_origins) if tables.rumor_origins else "gossip"
    rumor = Rumor(
        rumor_id=state.next_id(RUMOR_ID_PREFIX),
        content=content,
        category=category,
        affected_item=item_name,
        price_effect=price_effect,
        spread=spread,
        duration=duration,
        origin=origin,
    )
    log.debug("generated rumor %s: %s", rumor.rumor_id, rumor.content)
    return [rumor]


def _age_rumor(rumor: Rumor, supply: dict[str, float]) -> None:
    rumor.turns_active += 1
    if rumor.duration is not None and rumor.duration > 0:
        rumor.duration -= 1
    if rumor.duration is None or rumor.duration > 0:
        gain = BASE_SPREAD_GAIN * 1.5 if rumor.verified else BASE_SPREAD_GAIN
        rumor.spread = int(clamp(rumor.spread + round(gain), 0, 100))
    else:
        fade = BASE_FADE_RATE if rumor.verified else BASE_FADE_RATE * 1.5
        rumor.spread = int(clamp(rumor.spread - round(fade), 0, 100))

    if rumor.verified and rumor.spread > VERIFIED_SUPPLY_NUDGE_SPREAD and supply.get(rumor.affected_item):
        effect = rumor.price_effect or 0
        if effect > 0.1:
            supply[rumor.affected_item] = max(5, supply[rumor.affected_item] - 2)
        elif effect < -0.1:
            supply[rumor.affected_item] = min(95, supply[rumor.affected_item] + 2)


def process_rumor_effects(state: GameState) -> None:
    supply = state.market_data.supply
    survivors: list[Rumor] = []
    for rumor in state.rumors:
        try:
            _age_rumor(rumor, supply)
        except (ValueError, KeyError, TypeError):
            log.exception("failed to age rumor %s", rumor.rumor_id)
            survivors.append(rumor)
            continue
        if rumor.spread > 0:
            survivors.append(rumor)
    removed = len(state.rumors) - len(survivors)
    if removed:
        log.debug("removed %d faded rumors", removed)
    state.rumors = survivors


def verify_rumor(state: GameState, player_id: str, rumor_id: str, rng: random.Random) -> bool:
    rumor = state.rumor(rumor_id)
    if rumor is None or rumor.verified:
        return False
    player = state.player(player_id)
    trading = (player.skills.get("trading", 0) if player is not None else 0) or 1
    if rng.random() < 0.5 + trading / 20:
        rumor.verified = True
        rumor.spread = min(100, rumor.spread + VERIFIED_SPREAD_BONUS)
        if rumor.duration is not None:
            rumor.duration += 1
        state.add_journal_entry(f'You verified: "{rumor.content}"', category="market", importance=3, player_id=player_id)
        return True
    state.add_journal_entry(f'Couldn\'t confirm: "{rumor.content}"', category="market", importance=2, player_id=player_id)
    return False


def spread_rumor(state: GameState, player: Player, rumor_id: str) -> bool:
    rumor = state.rumor(rumor_id)
    if rumor is None:
        return False
    if player.reputation < MIN_SPREAD_REPUTATION:
        state.add_journal_entry(
            "Reputation too low to spread rumors.",
            category="market",
            importance=1,
            player_id=player.player_id,
        )
        return False
    player.reputation = int(clamp(player.reputation - 1, 0, REPUTATION_CAP))
    trading = player.skills.get("trading", 0) or 1
    rumor.spread = min(100, rumor.spread + 20 + round(trading / 10 * 15))
    if rumor.duration is not None:
        rumor.duration = min(MAX_SPREAD_DURATION, rumor.duration + 1)
    state.add_journal_entry(f'Helped spread: "{rumor.content}"', category="market", importance=2, player_id=player.player_id)
    return True


def create_custom_rumor(
    state: GameState,
    content: str,
    item_name: str,
    price_effect: float,
    *,
    origin: str = "your whispers",
    initial_spread: int = 15,
    duration: int = 5,
    verified: bool = True,
) -> Rumor:
    rumor = Rumor(
        rumor_id=state.next_id(RUMOR_ID_PREFIX),
        content=content,
        category="special",
        affected_item=item_name,
        price_effect=price_effect,
        spread=initial_spread,
        duration=duration,
        verified=verified,
        origin=origin,
    )
    state.rumors.append(rumor)
    state.add_journal_entry(f'New rumor: "{content}"', category="market", importance=3)
    return rumor
