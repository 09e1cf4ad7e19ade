from __future__ import annotations

import logging
import random

from coven.content.config import DEFAULT_MAX_OPEN_REQUESTS
from coven.content.items import ItemDef, ItemRegistry
from coven.content.tables import ReferenceTables, RequestTemplate, Requester
from coven.sim.state import GameState, TownRequest

log = logging.getLogger(__name__)

REQUEST_ID_PREFIX = "req"
DESCRIPTION_TEMPLATES = (
    "{requester} needs {quantity} {item} before the next moon.",
    "{requester} is asking around for {quantity} {item}.",
    "{requester} will pay well for {quantity} {item}.",
)


def _suitable_requesters(tables: ReferenceTables, item: ItemDef) -> list[Requester]:
    suitable: list[Requester] = []
    for requester in tables.requesters:
        roles = requester.roles
        if "any" in roles or item.item_type in roles or item.category in roles:
            suitable.append(requester)
        elif item.rarity != "common" and any("rare" in role for role in roles):
            suitable.append(requester)
        elif item.primary_property and any(item.primary_property in role for role in roles):
            suitable.append(requester)
    return suitable


def request_difficulty(reward_gold: int, item: ItemDef, difficulty_boost: int) -> int:
    rare_bonus = 1 if item.rarity == "rare" else 0
    return min(5, max(1, round(reward_gold / 25) + rare_bonus + difficulty_boost))


def generate_town_requests(
    state: GameState,
    tables: ReferenceTables,
    items: ItemRegistry,
    rng: random.Random,
) -> list[TownRequest]:
    templates = tables.request_templates.get(state.clock.season, ())
    requests: list[TownRequest] = []
    if not templates:
        return requests
    taken = {request.item_name for request in state.town_requests}
    candidates = [item for item in items.items if not item.black_market_only]

    for _ in range(1 + rng.randint(0, 2)):
        template = rng.choice(templates)
        matching = [item for item in candidates if template.matches(item)]
        if not matching:
            continue
        available = [item for item in matching if item.name not in taken]
        if not available:
            continue
        item = rng.choice(available)
        try:
            request = _build_request(state, tables, template, item, rng)
        except (ValueError, KeyError, TypeError):
            log.exception("failed to post a request for %s", item.item_id)
            continue
        requests.append(request)
        taken.add(item.name)
    log.debug("generated %d town requests for %s", len(requests), state.clock.season)
    return requests


def _build_request(
    state: GameState,
    tables: ReferenceTables,
    template: RequestTemplate,
    item: ItemDef,
    rng: random.Random,
) -> TownRequest:
    quantity = rng.randint(template.min_quantity, template.max_quantity)
    reward_mult = template.reward_mult
    if item.primary_property == "soothing":
        reward_mult *= 1.1
    reward_gold = round(quantity * item.value * reward_mult * (1 + rng.random() * 0.2))
    rarity_bonus = {"rare": 2, "uncommon": 1}.get(item.rarity, 0)
    reward_influence = max(1, int(quantity * (reward_mult / 2)) + rarity_bonus)

    suitable = _suitable_requesters(tables, item)
    requester = rng.choice(suitable or list(tables.requesters))
    description = rng.choice(DESCRIPTION_TEMPLATES).format(
        requester=requester.name,
        quantity=quantity,
        item=item.name,
    )
    difficulty = request_difficulty(reward_gold, item, template.difficulty_boost)
    return TownRequest(
        request_id=state.next_id(REQUEST_ID_PREFIX),
        item_name=item.name,
        quantity=quantity,
        reward_gold=reward_gold,
        reward_influence=reward_influence,
        requester=requester.name,
        description=description,
        difficulty=difficulty,
    )


def refresh_town_requests(
    state: GameState,
    tables: ReferenceTables,
    items: ItemRegistry,
    rng: random.Random,
    *,
    max_open: int = DEFAULT_MAX_OPEN_REQUESTS,
) -> list[TownRequest]:
    """Drop fulfilled orders, post new ones, and keep the newest ``max_open``."""
    state.town_requests = [request for request in state.town_requests if not request.completed]
    created = generate_town_requests(state, tables, items, rng)
    state.town_requests.extend(created)
    if len(state.town_requests) > max_open:
        del state.town_requests[: len(state.town_requests) - max_open]
    return created
