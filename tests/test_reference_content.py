import json
from pathlib import Path

import pytest

from coven.content.items import DEFAULT_ITEMS_PATH, load_items_json, seed_id_for
from coven.content.recipes import DEFAULT_RECIPES_PATH, load_recipes_json
from coven.content.reference import load_reference_data
from coven.content.rituals import DEFAULT_RITUALS_PATH, load_rituals_json
from coven.content.tables import load_tables_json
from coven.sim.state import BrewNamedStep, HarvestNamedStep


def _write_json(path: Path, payload: dict) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_default_reference_data_loads_and_cross_validates() -> None:
    reference = load_reference_data()

    assert reference.items.by_id()["ing_moonbud"].name == "Moonbud"
    assert "recipe_moon_glow_serum" in reference.recipes.starting_recipe_ids
    assert "essence_mastery_1" in reference.rituals.by_id()
    assert reference.tables.rotation_items()["ing_nightcap"] == "New Moon"


def test_every_ingredient_has_a_derived_seed() -> None:
    registry = load_items_json(DEFAULT_ITEMS_PATH)
    by_id = registry.by_id()

    for ingredient in registry.ingredients:
        seed = by_id[seed_id_for(ingredient.name)]
        assert seed.item_type == "seed"
        assert seed.name == f"{ingredient.name} Seed"
        assert seed.plant_source_id == ingredient.item_id
        assert seed.value == max(3, by_id[ingredient.item_id].value // 2)


def test_seed_id_uses_snake_case_name() -> None:
    assert seed_id_for("Ancient Ginseng") == "seed_ancient_ginseng"


def test_item_loader_rejects_unknown_schema_version(tmp_path: Path) -> None:
    payload = json.loads(DEFAULT_ITEMS_PATH.read_text(encoding="utf-8"))
    payload["schema_version"] = 2

    with pytest.raises(ValueError, match="unsupported item registry schema_version"):
        load_items_json(_write_json(tmp_path / "items.json", payload))


def test_item_loader_reports_indexed_field_errors(tmp_path: Path) -> None:
    payload = json.loads(DEFAULT_ITEMS_PATH.read_text(encoding="utf-8"))
    payload["ingredients"][1]["value"] = 0

    with pytest.raises(ValueError, match=r"ingredients\[1\]\.value must be an integer >= 1"):
        load_items_json(_write_json(tmp_path / "items.json", payload))


def test_recipe_loader_rejects_unknown_ingredient_names(tmp_path: Path) -> None:
    items = load_items_json(DEFAULT_ITEMS_PATH)
    payload = json.loads(DEFAULT_RECIPES_PATH.read_text(encoding="utf-8"))
    payload["recipes"][0]["ingredients"][0]["item_name"] = "Dragon Scale"

    with pytest.raises(ValueError, match="references unknown item: Dragon Scale"):
        load_recipes_json(_write_json(tmp_path / "recipes.json", payload), items=items)


def test_ritual_templates_are_tagged_variants() -> None:
    registry = load_rituals_json(DEFAULT_RITUALS_PATH)
    initiate = registry.by_id()["essence_mastery_1"]

    assert initiate.initially_available is True
    assert isinstance(initiate.quest.steps[0], BrewNamedStep)
    harvest_step = initiate.quest.steps[1]
    assert isinstance(harvest_step, HarvestNamedStep)
    assert harvest_step.target_count == 3
    assert harvest_step.current_count == 0


def test_ritual_instantiation_does_not_share_step_state() -> None:
    template = load_rituals_json(DEFAULT_RITUALS_PATH).by_id()["essence_mastery_1"]

    first = template.instantiate()
    first.steps[1].current_count = 2

    second = template.instantiate()
    assert second.steps[1].current_count == 0
    assert second.unlocked is True


def test_ritual_loader_reports_step_index(tmp_path: Path) -> None:
    payload = json.loads(DEFAULT_RITUALS_PATH.read_text(encoding="utf-8"))
    payload["rituals"][0]["steps"][1]["kind"] = "dance_named"

    with pytest.raises(ValueError, match=r"rituals\[0\]\.steps\[1\]"):
        load_rituals_json(_write_json(tmp_path / "rituals.json", payload))


def test_tables_loader_rejects_missing_schema_version(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="schema_version"):
        load_tables_json(_write_json(tmp_path / "tables.json", {"weather": {}}))
