"""Cascading parser that turns raw model text into a ``PlanResult``."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..tasks.base import PlanResult, PlanStatus, Task
from .validator import SUB_ACTION_KEYS, keyword_intent, normalize_action, normalize_parameters

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_ERROR = "Empty response received from AI"
PARTIAL_PARSE_ERROR = "Partial parse - some data may be missing"
KEYWORD_PARSE_ERROR = "No structured plan found - inferred a single task from keywords"

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_ACTION_PATTERN = re.compile(r'"action"\s*:\s*"(\w+)"', re.IGNORECASE)
_SIBLING_PAIR = re.compile(
    r'"(\w+)"\s*:\s*("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?|true|false|null)', re.IGNORECASE
)

# Object-boundary and quote repairs only. Each pattern targets one common model mistake.
_REPAIRS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"}\s*{"), "}, {"),
    (re.compile(r'"(\s*)\n(\s*)"'), '",\n"'),
    (re.compile(r'"([ \t]+)"(?=\w+"\s*:)'), '",\\1"'),
    (re.compile(r"(\d|true|false|null)(\s+)\"(?=\w+\"\s*:)"), r'\1,\2"'),
    (re.compile(r",(\s*)\]"), r"\1]"),
    (re.compile(r",(\s*)}"), r"\1}"),
)

_WORDS = re.compile(r"[a-z]+")
_INTENT_DEFAULTS: Mapping[str, Mapping[str, str]] = {
    "follow": {"target": "player"},
    "mine": {"target": "stone"},
    "build": {"structure": "house"},
    "attack": {"target": "nearest"},
}

_SAY_PREFIX = re.compile(r"^\s*(?:say|tell\s+\w+|announce)\b[:,]?\s*", re.IGNORECASE)
_MAX_SAY_LENGTH = 200


def clean_response(text: str) -> str:
    """Strip a fenced code block, then keep the span from the first ``{`` to the last ``}``."""

    cleaned = text.strip()
    match = _CODE_FENCE.search(cleaned)
    if match:
        cleaned = match.group(1).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start >= 0 and end > start:
        cleaned = cleaned[start : end + 1]
    return cleaned


def fix_single_quotes(text: str) -> str:
    """Turn quote characters outside a double-quoted run into double quotes."""

    out: List[str] = []
    in_double = False
    in_single = False
    previous = ""
    for char in text:
        if char == '"' and not in_single and previous != "\\":
            in_double = not in_double
            out.append(char)
        elif char == "'" and not in_double and previous != "\\":
            in_single = not in_single
            out.append('"')
        else:
            out.append(char)
        previous = char
    return "".join(out)


def repair_json(text: str) -> str:
    for pattern, replacement in _REPAIRS:
        text = pattern.sub(replacement, text)
    return fix_single_quotes(text)


def build_task(action: Any, parameters: Mapping[str, Any]) -> Optional[Task]:
    if not isinstance(action, str) or not action.strip():
        return None
    canonical = normalize_action(action) or action.strip().lower()
    return Task(canonical, normalize_parameters(canonical, parameters))


def task_from_mapping(element: Any) -> Optional[Task]:
    """Build a task from one ``tasks`` element; parameters may be nested or siblings."""

    if not isinstance(element, Mapping):
        return None
    params: Dict[str, Any] = {}
    nested = element.get("parameters")
    if isinstance(nested, Mapping):
        params.update(nested)
    for key, value in element.items():
        if key not in ("action", "parameters"):
            params[key] = value
    return build_task(element.get("action"), params)


def _extract_tasks(payload: Mapping[str, Any]) -> List[Task]:
    raw_tasks = payload.get("tasks")
    if raw_tasks is None and "action" in payload:
        # A bare task object with no plan envelope around it.
        raw_tasks = [payload]
    if not isinstance(raw_tasks, list):
        return []
    tasks: List[Task] = []
    for element in raw_tasks:
        task = task_from_mapping(element)
        if task is None:
            logger.warning("Skipping malformed task element: %r", element)
            continue
        tasks.append(task)
    return tasks


def _text_field(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else ""


def _enclosing_span(text: str, index: int) -> Tuple[int, str]:
    start = text.rfind("{", 0, index)
    end = text.find("}", index)
    start = 0 if start < 0 else start
    end = len(text) if end < 0 else end + 1
    return start, text[start:end]


def _decode_scalar(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw.strip('"')


def extract_actions(text: str) -> List[Task]:
    """Regex recovery: one task per ``"action": "<word>"`` with nearby sibling pairs."""

    tasks: List[Task] = []
    # Offsets of "action" keys already read as a sub-action of an earlier task.
    consumed = set()
    for match in _ACTION_PATTERN.finditer(text):
        if match.start() in consumed:
            continue
        takes_sub_action = normalize_action(match.group(1)) in SUB_ACTION_KEYS
        offset, span = _enclosing_span(text, match.start())
        params: Dict[str, Any] = {}
        for pair in _SIBLING_PAIR.finditer(span):
            key, raw = pair.group(1), pair.group(2)
            if key.lower() == "action":
                position = offset + pair.start()
                if takes_sub_action and position > match.start() and "action" not in params:
                    params["action"] = _decode_scalar(raw)
                    consumed.add(position)
                continue
            if key.lower() in ("reasoning", "plan"):
                continue
            params[key] = _decode_scalar(raw)
        task = build_task(match.group(1), params)
        if task is not None:
            tasks.append(task)
    return tasks


def infer_from_keywords(text: str) -> Optional[Task]:
    """Map free text onto one generic task; the floor of the cascade."""

    intent = keyword_intent(_WORDS.findall(text.lower()))
    if intent is not None:
        return Task(intent, dict(_INTENT_DEFAULTS[intent]))
    message = _SAY_PREFIX.sub("", text.strip()).strip().strip('"')
    if not message:
        return None
    return Task("say", {"message": message[:_MAX_SAY_LENGTH]})


def _load_json(candidate: str) -> Any:
    """Parse as-is first; the repair pass only runs on text that does not parse."""

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        repaired = repair_json(candidate)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as exc:
        logger.warning("ResponseParser JSON error: %s", exc)
        return None


def parse_response(text: Optional[str]) -> PlanResult:
    """Parse a model reply, degrading through repair, regex and keyword layers."""

    if text is None or not text.strip():
        return PlanResult.failure(EMPTY_RESPONSE_ERROR)

    payload = _load_json(clean_response(text))

    if isinstance(payload, Mapping):
        result = PlanResult(
            reasoning=_text_field(payload, "reasoning"),
            plan=_text_field(payload, "plan"),
            tasks=_extract_tasks(payload),
            status=PlanStatus.SUCCESS,
        )
        if result.tasks or not _ACTION_PATTERN.search(text):
            return result
        # Valid JSON, but the actions sit somewhere other than a tasks array.
        recovered = extract_actions(text)
        logger.warning("Recovered %d task(s) outside the tasks array", len(recovered))
        return result.with_tasks(recovered, status=PlanStatus.PARTIAL, error=PARTIAL_PARSE_ERROR)
    if payload is not None:
        logger.warning("ResponseParser expected a JSON object, got %s", type(payload).__name__)

    tasks = extract_actions(text)
    if tasks:
        logger.warning("Recovered %d task(s) from malformed response", len(tasks))
        return PlanResult(
            plan="Extracted from malformed response",
            tasks=tasks,
            status=PlanStatus.PARTIAL,
            error=PARTIAL_PARSE_ERROR,
        )

    task = infer_from_keywords(text)
    if task is None:
        return PlanResult.failure("Could not extract any actions from response")
    logger.warning("Falling back to keyword intent '%s'", task.action)
    return PlanResult(
        plan="Inferred from unstructured response",
        tasks=[task],
        status=PlanStatus.PARTIAL,
        error=KEYWORD_PARSE_ERROR,
    )
