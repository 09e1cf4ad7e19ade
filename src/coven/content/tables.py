from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from coven.content.items import MOON_PHASES, SEASONS, ItemDef

TABLES_SCHEMA_VERSION = 1
DEFAULT_TABLES_PATH = Path(__file__).resolve().parent / "data" / "tables.json"

RUMOR_CATEGORIES = ("shortage", "surplus", "quality_good", "quality_bad", "special")
REQUEST_MATCH_KEYS = {"item_type", "category", "rarity", "rarity_not", "name"}


@dataclass(frozen=True)
class MoonEffect:
    price: dict[str, float]
    items: tuple[str, ...] = ()


@dataclass(frozen=True)
class SeasonalEffect:
    price: dict[str, float]
    supply_demand: dict[str, dict[str, float]]


@dataclass(frozen=True)
class Requester:
    name: str
    roles: tuple[str, ...]


@dataclass(frozen=True)
class RequestTemplate:
    match: dict[str, str]
    min_quantity: int
    max_quantity: int
    reward_mult: float
    difficulty_boost: int = 0

    def matches(self, item: ItemDef) -> bool:
        for key, expected in self.match.items():
            if key == "rarity_not":
                if item.rarity == expected:
                    return False
                continue
            if key == "item_type":
                actual = item.item_type
            else:
                actual = getattr(item, key)
            if actual != expected:
                return False
        return True


@dataclass(frozen=True)
class ReferenceTables:
    schema_version: int
    weather: dict[str, Any]
    moon_effects: dict[str, MoonEffect]
    seasonal_effects: dict[str, SeasonalEffect]
    initial_market: tuple[str, ...]
    black_market: tuple[str, ...]
    rumor_templates: dict[str, tuple[str, ...]]
    rumor_origins: tuple[str, ...]
    requesters: tuple[Requester, ...]
    request_templates: dict[str, tuple[RequestTemplate, ...]]

    def rotation_items(self) -> dict[str, str]:
        """Map each lunar rotation item id to the phase that stocks it."""
        rotation: dict[str, str] = {}
        for phase in MOON_PHASES:
            effect = self.moon_effects.get(phase)
            if effect is None:
                continue
            for item_id in effect.items:
                rotation[item_id] = phase
        return rotation


def load_tables_json(path: str | Path) -> ReferenceTables:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _tables_from_payload(payload)


def _multipliers(value: Any, *, where: str) -> dict[str, float]:
    if not isinstance(value, dict):
        raise ValueError(f"{where} must be an object")
    result: dict[str, float] = {}
    for key in sorted(value):
        multiplier = value[key]
        if not isinstance(multiplier, (int, float)) or isinstance(multiplier, bool) or multiplier <= 0:
            raise ValueError(f"{where}.{key} must be a positive number")
        result[key] = float(multiplier)
    return result


def _string_list(value: Any, *, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or any(not isinstance(entry, str) or not entry for entry in value):
        raise ValueError(f"{where} must be a list of non-empty strings")
    return tuple(value)


def _tables_from_payload(payload: dict[str, Any]) -> ReferenceTables:
    if not isinstance(payload, dict):
        raise ValueError("reference tables payload must be an object")
    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("reference tables must contain integer field: schema_version")
    if schema_version != TABLES_SCHEMA_VERSION:
        raise ValueError(f"unsupported reference tables schema_version: {schema_version}")

    # weather weights are sanitised when drawn, so malformed seasons survive loading
    weather = payload.get("weather", {})
    if not isinstance(weather, dict):
        weather = {}

    raw_moon = payload.get("moon_effects", {})
    if not isinstance(raw_moon, dict):
        raise ValueError("moon_effects must be an object")
    moon_effects: dict[str, MoonEffect] = {}
    for phase, row in raw_moon.items():
        where = f"moon_effects[{phase}]"
        if phase not in MOON_PHASES:
            raise ValueError(f"{where} must be keyed by a moon phase name")
        if not isinstance(row, dict):
            raise ValueError(f"{where} must be an object")
        moon_effects[phase] = MoonEffect(
            price=_multipliers(row.get("price", {}), where=f"{where}.price"),
            items=_string_list(row.get("items", []), where=f"{where}.items"),
        )

    raw_seasonal = payload.get("seasonal_effects", {})
    if not isinstance(raw_seasonal, dict):
        raise ValueError("seasonal_effects must be an object")
    seasonal_effects: dict[str, SeasonalEffect] = {}
    for season, row in raw_seasonal.items():
        where = f"seasonal_effects[{season}]"
        if season not in SEASONS:
            raise ValueError(f"{where} must be keyed by a season name")
        if not isinstance(row, dict):
            raise ValueError(f"{where} must be an object")
        shifts: dict[str, dict[str, float]] = {}
        raw_shifts = row.get("supply_demand", {})
        if not isinstance(raw_shifts, dict):
            raise ValueError(f"{where}.supply_demand must be an object")
        for key in sorted(raw_shifts):
            shift = raw_shifts[key]
            if not isinstance(shift, dict):
                raise ValueError(f"{where}.supply_demand.{key} must be an object")
            shifts[key] = {
                "supply": float(shift.get("supply", 0)),
                "demand": float(shift.get("demand", 0)),
            }
        seasonal_effects[season] = SeasonalEffect(
            price=_multipliers(row.get("price", {}), where=f"{where}.price"),
            supply_demand=shifts,
        )

    raw_templates = payload.get("rumor_templates")
    if not isinstance(raw_templates, dict):
        raise ValueError("reference tables must contain object field: rumor_templates")
    rumor_templates: dict[str, tuple[str, ...]] = {}
    for category in RUMOR_CATEGORIES:
        templates = _string_list(raw_templates.get(category), where=f"rumor_templates.{category}")
        if not templates:
            raise ValueError(f"rumor_templates.{category} must not be empty")
        rumor_templates[category] = templates

    requesters: list[Requester] = []
    raw_requesters = payload.get("requesters")
    if not isinstance(raw_requesters, list) or not raw_requesters:
        raise ValueError("reference tables must contain non-empty list field: requesters")
    for index, row in enumerate(raw_requesters):
        where = f"requesters[{index}]"
        if not isinstance(row, dict) or not isinstance(row.get("name"), str) or not row["name"]:
            raise ValueError(f"{where}.name must be a non-empty string")
        requesters.append(Requester(name=row["name"], roles=_string_list(row.get("roles", []), where=f"{where}.roles")))

    raw_request_templates = payload.get("request_templates", {})
    if not isinstance(raw_request_templates, dict):
        raise ValueError("request_templates must be an object")
    request_templates: dict[str, tuple[RequestTemplate, ...]] = {}
    for season, rows in raw_request_templates.items():
        if season not in SEASONS:
            raise ValueError(f"request_templates[{season}] must be keyed by a season name")
        if not isinstance(rows, list):
            raise ValueError(f"request_templates[{season}] must be a list")
        parsed: list[RequestTemplate] = []
        for index, row in enumerate(rows):
            where = f"request_templates[{season}][{index}]"
            if not isinstance(row, dict):
                raise ValueError(f"{where} must be an object")
            match = row.get("match")
            if not isinstance(match, dict) or not match or not set(match) <= REQUEST_MATCH_KEYS:
                raise ValueError(f"{where}.match must be an object keyed by: {', '.join(sorted(REQUEST_MATCH_KEYS))}")
            minimum = row.get("min")
            maximum = row.get("max")
            if not isinstance(minimum, int) or not isinstance(maximum, int) or not 1 <= minimum <= maximum:
                raise ValueError(f"{where}.min/max must be integers with 1 <= min <= max")
            reward_mult = row.get("reward_mult", 1.0)
            if not isinstance(reward_mult, (int, float)) or reward_mult <= 0:
                raise ValueError(f"{where}.reward_mult must be a positive number")
            difficulty_boost = row.get("difficulty_boost", 0)
            if not isinstance(difficulty_boost, int) or difficulty_boost < 0:
                raise ValueError(f"{where}.difficulty_boost must be a non-negative integer")
            parsed.append(
                RequestTemplate(
                    match={key: str(match[key]) for key in sorted(match)},
                    min_quantity=minimum,
                    max_quantity=maximum,
                    reward_mult=float(reward_mult),
                    difficulty_boost=difficulty_boost,
                )
            )
        request_templates[season] = tuple(parsed)

    return ReferenceTables(
        schema_version=schema_version,
        weather=copy.deepcopy(weather),
        moon_effects=moon_effects,
        seasonal_effects=seasonal_effects,
        initial_market=_string_list(payload.get("initial_market", []), where="initial_market"),
        black_market=_string_list(payload.get("black_market", []), where="black_market"),
        rumor_templates=rumor_templates,
        rumor_origins=_string_list(payload.get("rumor_origins", ["gossip"]), where="rumor_origins"),
        requesters=tuple(requesters),
        request_templates=request_templates,
    )
