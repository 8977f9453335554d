"""Canonicalization and validation of planned tasks."""

from __future__ import annotations

import difflib
import re
from typing import Any, Dict, FrozenSet, Iterable, Mapping, NamedTuple, Optional, Tuple

from ..tasks.base import Task

DIRECTIONS = frozenset({"up", "down", "left", "right"})

STRUCTURES = frozenset({"house", "tower", "arena", "hellevator", "bridge", "wall", "platform"})

BOSSES = (
    "KingSlime",
    "EyeOfCthulhu",
    "EaterOfWorlds",
    "BrainOfCthulhu",
    "QueenBee",
    "Skeletron",
    "WallOfFlesh",
    "TheTwins",
    "TheDestroyer",
    "SkeletronPrime",
    "Plantera",
    "Golem",
    "DukeFishron",
    "Cultist",
    "MoonLord",
)

ORES = (
    "copper",
    "tin",
    "iron",
    "lead",
    "silver",
    "tungsten",
    "gold",
    "platinum",
    "meteorite",
    "demonite",
    "crimtane",
    "obsidian",
    "hellstone",
    "cobalt",
    "palladium",
    "mythril",
    "orichalcum",
    "adamantite",
    "titanium",
    "chlorophyte",
    "stone",
    "dirt",
    "clay",
    "sand",
    "mud",
)

HOUSING_ACTIONS = frozenset({"build", "check", "assign"})
BOSS_STEPS = frozenset({"prepare", "summon", "fight"})

# Tasks whose own sub-action is spelled "action" inside nested parameters.
SUB_ACTION_KEYS: Mapping[str, str] = {"boss": "step", "npchousing": "housing_action"}

# Whole words that signal a generic intent in free text, checked in this order.
INTENT_WORDS: Tuple[Tuple[str, FrozenSet[str]], ...] = (
    ("follow", frozenset({"follow", "following"})),
    ("mine", frozenset({"mine", "mining", "dig", "digging"})),
    ("build", frozenset({"build", "building"})),
    ("attack", frozenset({"attack", "attacking", "fight", "fighting"})),
)

ACTION_ALIASES: Dict[str, str] = {
    "mineore": "mine",
    "minetile": "mine",
    "minetiles": "mine",
    "gather": "mine",
    "collect": "mine",
    "goto": "pathfind",
    "gotonull": "pathfind",
    "moveto": "pathfind",
    "move": "pathfind",
    "walk": "pathfind",
    "walkto": "pathfind",
    "navigate": "pathfind",
    "travel": "pathfind",
    "placetile": "place",
    "placeblock": "place",
    "buildstructure": "build",
    "construct": "build",
    "fight": "attack",
    "kill": "attack",
    "combat": "attack",
    "followplayer": "follow",
    "excavate": "dig",
    "tunnel": "dig",
    "chat": "say",
    "speak": "say",
    "talk": "say",
    "reply": "say",
    "bossfight": "boss",
    "housing": "npchousing",
    "npchouse": "npchousing",
    "scout": "explore",
}

DIRECTION_SYNONYMS: Dict[str, str] = {
    "u": "up",
    "upward": "up",
    "upwards": "up",
    "above": "up",
    "north": "up",
    "skyward": "up",
    "d": "down",
    "downward": "down",
    "downwards": "down",
    "below": "down",
    "south": "down",
    "deeper": "down",
    "l": "left",
    "west": "left",
    "leftward": "left",
    "r": "right",
    "east": "right",
    "rightward": "right",
}

STRUCTURE_ALIASES: Dict[str, str] = {
    "npchouse": "house",
    "housing": "house",
    "home": "house",
    "hut": "house",
    "bossarena": "arena",
    "shaft": "hellevator",
    "elevator": "hellevator",
    "platforms": "platform",
    "walls": "wall",
    "barrier": "wall",
}

ORE_ALIASES: Dict[str, str] = {
    "meteor": "meteorite",
    "crimson": "crimtane",
    "demon": "demonite",
    "hell": "hellstone",
    "mithril": "mythril",
    "adamantium": "adamantite",
    "chloro": "chlorophyte",
    "rock": "stone",
}

BOSS_ALIASES: Dict[str, str] = {
    "eoc": "EyeOfCthulhu",
    "eye": "EyeOfCthulhu",
    "wof": "WallOfFlesh",
    "eow": "EaterOfWorlds",
    "boc": "BrainOfCthulhu",
    "twins": "TheTwins",
    "destroyer": "TheDestroyer",
    "prime": "SkeletronPrime",
    "lunaticcultist": "Cultist",
    "duke": "DukeFishron",
    "slime": "KingSlime",
    "queen": "QueenBee",
}

REQUIRED: Mapping[str, FrozenSet[str]] = {
    "dig": frozenset({"direction"}),
    "mine": frozenset({"target"}),
    "place": frozenset({"tile"}),
    "build": frozenset({"structure"}),
    "attack": frozenset(),
    "follow": frozenset(),
    "explore": frozenset(),
    "pathfind": frozenset(),
    "boss": frozenset({"boss"}),
    "npchousing": frozenset({"housing_action"}),
    "say": frozenset({"message"}),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class ValidationResult(NamedTuple):
    ok: bool
    reason: Optional[str] = None


def _compact(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def _closest(value: str, choices: Mapping[str, str], cutoff: float = 0.8) -> Optional[str]:
    match = difflib.get_close_matches(value, list(choices), n=1, cutoff=cutoff)
    return choices[match[0]] if match else None


def keyword_intent(words: Iterable[str]) -> Optional[str]:
    """First generic intent whose keywords appear among ``words`` (already lower-cased)."""

    present = set(words)
    for intent, keywords in INTENT_WORDS:
        if present & keywords:
            return intent
    return None


def normalize_action(name: str) -> str:
    """Lower-case an action name and fold known aliases onto the canonical one."""

    compact = _compact(name)
    return ACTION_ALIASES.get(compact, compact)


def normalize_direction(value: str) -> str:
    word = value.strip().lower()
    return DIRECTION_SYNONYMS.get(word, word)


def normalize_structure(value: str) -> str:
    compact = _compact(value)
    if compact in STRUCTURES:
        return compact
    if compact in STRUCTURE_ALIASES:
        return STRUCTURE_ALIASES[compact]
    return _closest(compact, {name: name for name in STRUCTURES}) or compact


def normalize_ore(value: str) -> str:
    compact = _compact(value)
    for suffix in ("ores", "ore", "bars", "bar", "blocks", "block"):
        if compact.endswith(suffix) and len(compact) > len(suffix):
            compact = compact[: -len(suffix)]
            break
    if compact in ORE_ALIASES:
        return ORE_ALIASES[compact]
    if compact in ORES:
        return compact
    return _closest(compact, {name: name for name in ORES}) or compact


def normalize_boss(value: str) -> str:
    compact = _compact(value)
    if compact.startswith("the") and compact[3:] in {b.lower() for b in BOSSES}:
        compact = compact[3:]
    lookup = {boss.lower(): boss for boss in BOSSES}
    lookup.update({boss.lower()[3:]: boss for boss in BOSSES if boss.startswith("The")})
    if compact in lookup:
        return lookup[compact]
    if compact in BOSS_ALIASES:
        return BOSS_ALIASES[compact]
    return _closest(compact, lookup) or value.strip()


def _rename_sub_action(params: Dict[str, Any], key: str) -> None:
    # Nested "parameters": {"action": ...} carries the sub-action; sibling form must use ``key``.
    if key not in params and "action" in params:
        params[key] = params.pop("action")
    if isinstance(params.get(key), str):
        params[key] = params[key].strip().lower()


def normalize_parameters(action: str, parameters: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply per-action value canonicalization; unknown keys pass through untouched."""

    params = dict(parameters)
    if action == "mine":
        if "target" not in params:
            for key in ("tile", "ore", "block", "type"):
                if isinstance(params.get(key), str):
                    params["target"] = params[key]
                    break
        if isinstance(params.get("target"), str):
            params["target"] = normalize_ore(params["target"])
        if "quantity" not in params and "amount" in params:
            params["quantity"] = params["amount"]
    elif action == "build":
        if "structure" not in params and isinstance(params.get("type"), str):
            params["structure"] = params["type"]
        if isinstance(params.get("structure"), str):
            params["structure"] = normalize_structure(params["structure"])
    elif action == "boss":
        if isinstance(params.get("boss"), str):
            params["boss"] = normalize_boss(params["boss"])
        _rename_sub_action(params, SUB_ACTION_KEYS[action])
    elif action == "npchousing":
        _rename_sub_action(params, SUB_ACTION_KEYS[action])
    elif action == "say":
        if "message" not in params:
            for key in ("text", "content", "msg"):
                if isinstance(params.get(key), str):
                    params["message"] = params[key]
                    break
    elif action == "follow":
        if "target" not in params and isinstance(params.get("player"), str):
            params["target"] = params["player"]
    if action in {"dig", "explore"} and isinstance(params.get("direction"), str):
        params["direction"] = normalize_direction(params["direction"])
    return params


def normalize_task(task: Task) -> Task:
    action = normalize_action(task.action)
    return Task(action, normalize_parameters(action, task.parameters))


def validate(task: Task) -> ValidationResult:
    """Check a (normalized) task against its required parameter set."""

    if not task.action:
        return ValidationResult(False, "Task has no action")
    required = REQUIRED.get(task.action)
    if required is None:
        return ValidationResult(False, f"Unknown action type: {task.action}")
    missing = sorted(key for key in required if key not in task.parameters)
    if missing:
        return ValidationResult(
            False, f"Action '{task.action}' is missing required parameters: {', '.join(missing)}"
        )
    if task.action in {"dig", "explore"} and task.has("direction"):
        direction = task.get_str("direction")
        if direction not in DIRECTIONS:
            return ValidationResult(False, f"Invalid direction: {task.get('direction')}")
    if task.action == "build":
        structure = task.get_str("structure")
        if structure not in STRUCTURES:
            return ValidationResult(False, f"Unknown structure: {task.get('structure')}")
    if task.action == "npchousing":
        if task.get_str("housing_action") not in HOUSING_ACTIONS:
            return ValidationResult(False, f"Invalid npcHousing action: {task.get('housing_action')}")
    if task.action == "boss" and task.has("step"):
        if task.get_str("step") not in BOSS_STEPS:
            return ValidationResult(False, f"Invalid boss step: {task.get('step')}")
    if task.action == "mine" and not task.get_str("target").strip():
        return ValidationResult(False, "Mine target must be a non-empty name")
    if task.action == "say" and not task.get_str("message").strip():
        return ValidationResult(False, "Say requires a non-empty message")
    if task.action == "pathfind" and task.has("x") != task.has("y"):
        return ValidationResult(False, "Pathfind needs both x and y when coordinates are given")
    return ValidationResult(True)
