from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from coven.content.items import MOON_PHASES, SEASONS
from coven.sim.state import RitualQuest, reward_from_dict, step_from_dict

RITUALS_SCHEMA_VERSION = 1
DEFAULT_RITUALS_PATH = Path(__file__).resolve().parent / "data" / "rituals.json"


@dataclass(frozen=True)
class RitualTemplate:
    """A ritual as shipped in content; games hold deep copies of ``quest``."""

    quest: RitualQuest
    initially_available: bool = False

    @property
    def ritual_id(self) -> str:
        return self.quest.ritual_id

    @property
    def required_season(self) -> str | None:
        return self.quest.required_season

    @property
    def prerequisite_ritual_id(self) -> str | None:
        return self.quest.prerequisite_ritual_id

    def instantiate(self) -> RitualQuest:
        quest = copy.deepcopy(self.quest)
        quest.unlocked = True
        return quest


@dataclass(frozen=True)
class RitualRegistry:
    schema_version: int
    rituals: tuple[RitualTemplate, ...]

    def by_id(self) -> dict[str, RitualTemplate]:
        return {template.ritual_id: template for template in self.rituals}


def load_rituals_json(path: str | Path) -> RitualRegistry:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return _registry_from_payload(payload)


def _registry_from_payload(payload: dict[str, Any]) -> RitualRegistry:
    if not isinstance(payload, dict):
        raise ValueError("ritual registry payload must be an object")
    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("ritual registry must contain integer field: schema_version")
    if schema_version != RITUALS_SCHEMA_VERSION:
        raise ValueError(f"unsupported ritual registry schema_version: {schema_version}")

    rows = payload.get("rituals")
    if not isinstance(rows, list):
        raise ValueError("ritual registry must contain list field: rituals")

    templates: list[RitualTemplate] = []
    seen: set[str] = set()
    for index, row in enumerate(rows):
        where = f"rituals[{index}]"
        if not isinstance(row, dict):
            raise ValueError(f"{where} must be an object")
        ritual_id = row.get("ritual_id")
        if not isinstance(ritual_id, str) or not ritual_id:
            raise ValueError(f"{where}.ritual_id must be a non-empty string")
        if ritual_id in seen:
            raise ValueError(f"duplicate ritual_id: {ritual_id}")
        seen.add(ritual_id)
        name = row.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError(f"{where}.name must be a non-empty string")

        required_season = row.get("required_season")
        if required_season is not None and required_season not in SEASONS:
            raise ValueError(f"{where}.required_season must be one of: {', '.join(SEASONS)}")
        required_moon_phase = row.get("required_moon_phase")
        if required_moon_phase is not None and required_moon_phase not in MOON_PHASES:
            raise ValueError(f"{where}.required_moon_phase must be a moon phase name")
        initially_available = row.get("initially_available", False)
        if not isinstance(initially_available, bool):
            raise ValueError(f"{where}.initially_available must be boolean when present")

        step_rows = row.get("steps")
        if not isinstance(step_rows, list) or not step_rows:
            raise ValueError(f"{where}.steps must be a non-empty list")
        steps = []
        for step_index, step_row in enumerate(step_rows):
            try:
                steps.append(step_from_dict(step_row))
            except ValueError as exc:
                raise ValueError(f"{where}.steps[{step_index}]: {exc}") from exc

        reward_rows = row.get("rewards", [])
        if not isinstance(reward_rows, list):
            raise ValueError(f"{where}.rewards must be a list")
        rewards = []
        for reward_index, reward_row in enumerate(reward_rows):
            try:
                rewards.append(reward_from_dict(reward_row))
            except ValueError as exc:
                raise ValueError(f"{where}.rewards[{reward_index}]: {exc}") from exc

        templates.append(
            RitualTemplate(
                quest=RitualQuest(
                    ritual_id=ritual_id,
                    name=name,
                    description=str(row.get("description", "")),
                    steps=steps,
                    rewards=rewards,
                    required_season=required_season,
                    required_moon_phase=required_moon_phase,
                    prerequisite_ritual_id=row.get("prerequisite_ritual_id"),
                ),
                initially_available=initially_available,
            )
        )

    for template in templates:
        prerequisite = template.prerequisite_ritual_id
        if prerequisite is not None and prerequisite not in seen:
            raise ValueError(f"ritual {template.ritual_id} has unknown prerequisite_ritual_id: {prerequisite}")

    templates.sort(key=lambda template: template.ritual_id)
    return RitualRegistry(schema_version=schema_version, rituals=tuple(templates))
