import pytest

from terrabot.planning.validator import (
    normalize_boss,
    normalize_ore,
    normalize_structure,
    normalize_task,
    validate,
)
from terrabot.tasks.base import Task


@pytest.mark.parametrize("params", [{}, {"direction": "sideways"}, {"direction": ""}, {"direction": 3}])
def test_dig_requires_a_cardinal_direction(params):
    assert not validate(Task("dig", params)).ok


@pytest.mark.parametrize("direction", ["up", "down", "left", "right"])
def test_dig_accepts_cardinal_directions(direction):
    assert validate(Task("dig", {"direction": direction})).ok


def test_direction_synonyms_normalize_before_validation():
    task = normalize_task(Task("tunnel", {"direction": "South"}))

    assert task.action == "dig"
    assert task.get_str("direction") == "down"
    assert validate(task).ok


def test_unknown_action_fails():
    verdict = validate(Task("teleport", {"x": 1}))

    assert not verdict.ok
    assert verdict.reason == "Unknown action type: teleport"


def test_missing_parameters_are_named():
    verdict = validate(Task("build"))

    assert not verdict.ok
    assert "structure" in verdict.reason


def test_build_structure_catalog():
    assert validate(Task("build", {"structure": "tower"})).ok
    assert not validate(Task("build", {"structure": "castle"})).ok


def test_pathfind_needs_both_coordinates():
    assert validate(Task("pathfind")).ok
    assert validate(Task("pathfind", {"x": 1, "y": 2})).ok
    assert not validate(Task("pathfind", {"x": 1})).ok


def test_say_and_mine_need_text():
    assert not validate(Task("say", {"message": "  "})).ok
    assert not validate(Task("mine", {"target": ""})).ok
    assert validate(Task("mine", {"target": "iron"})).ok


def test_npchousing_actions():
    assert validate(Task("npchousing", {"housing_action": "check"})).ok
    assert not validate(Task("npchousing", {"housing_action": "demolish"})).ok
    assert not validate(Task("npchousing", {"npc": "Guide"})).ok


def test_sub_action_moves_off_the_action_key():
    housing = normalize_task(Task("npcHousing", {"npc": "Guide", "action": " Assign "}))
    boss = normalize_task(Task("boss", {"boss": "twins", "action": "dance"}))

    assert dict(housing.parameters) == {"npc": "Guide", "housing_action": "assign"}
    assert validate(housing).ok
    assert boss.get_str("step") == "dance"
    assert not validate(boss).ok
    assert validate(Task("boss", {"boss": "TheTwins"})).ok


def test_fuzzy_names():
    assert normalize_ore("Gold Bars") == "gold"
    assert normalize_ore("mithril") == "mythril"
    assert normalize_ore("platnum") == "platinum"
    assert normalize_structure("Boss Arena") == "arena"
    assert normalize_structure("towr") == "tower"
    assert normalize_boss("eye of cthulhu") == "EyeOfCthulhu"
    assert normalize_boss("The Destroyer") == "TheDestroyer"
    assert normalize_boss("wof") == "WallOfFlesh"
