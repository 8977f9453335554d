"""Command planners: the model-backed planner and its offline keyword variant."""

from __future__ import annotations

import logging
import re
from typing import List, Mapping, Optional, Protocol, Sequence, Tuple

from ..config import FALLBACK_PROVIDER, AgentSettings
from ..llm.provider import LLMProvider, ProviderError, create_provider
from ..tasks.base import PlanResult, PlanStatus, Task
from .parser import parse_response
from .prompts import AgentContext, build_system_prompt, build_user_prompt
from .validator import (
    DIRECTION_SYNONYMS,
    DIRECTIONS,
    ORE_ALIASES,
    ORES,
    STRUCTURE_ALIASES,
    STRUCTURES,
    keyword_intent,
    validate,
)

logger = logging.getLogger(__name__)

EMPTY_COMMAND_ERROR = "Empty command provided"
ALL_INVALID_ERROR = "All planned tasks were invalid"


class CommandPlanner(Protocol):
    def plan(self, context: AgentContext, command: str) -> PlanResult:  # pragma: no cover - interface
        """Turn one natural-language command into a validated plan."""


def filter_valid(result: PlanResult) -> PlanResult:
    """Drop tasks that fail validation, keeping a note of why each was rejected."""

    if not result.succeeded:
        return result
    valid: List[Task] = []
    rejected: List[str] = list(result.rejected)
    for task in result.tasks:
        verdict = validate(task)
        if verdict.ok:
            valid.append(task)
        else:
            logger.warning("Dropping invalid task %s: %s", task.describe(), verdict.reason)
            rejected.append(f"{task.action}: {verdict.reason}")
    if result.tasks and not valid:
        return result.with_tasks([], status=PlanStatus.FAILURE, error=ALL_INVALID_ERROR, rejected=rejected)
    return result.with_tasks(valid, rejected=rejected)


class Planner:
    """Asks the primary provider, then the fallback provider once, then parses and validates."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        fallback: Optional[LLMProvider] = None,
        agent_name: str = "Terra",
    ) -> None:
        self.provider = provider
        self.fallback = fallback
        self.agent_name = agent_name

    @classmethod
    def from_settings(cls, settings: AgentSettings, agent_name: str = "Terra") -> "Planner":
        primary = create_provider(settings.ai_provider, settings)
        fallback = None
        usable = settings.api_key(FALLBACK_PROVIDER) or settings.provider_factory
        if settings.ai_provider != FALLBACK_PROVIDER and usable:
            fallback = create_provider(FALLBACK_PROVIDER, settings)
        return cls(primary, fallback=fallback, agent_name=agent_name)

    def plan(self, context: AgentContext, command: str) -> PlanResult:
        if not command or not command.strip():
            return PlanResult.failure(EMPTY_COMMAND_ERROR)
        system_prompt = build_system_prompt(self.agent_name)
        user_prompt = build_user_prompt(context, command)
        try:
            text = self._request(system_prompt, user_prompt)
        except ProviderError as exc:
            logger.error("AI request failed for %s: %s", context.name, exc)
            return PlanResult.failure(f"AI request failed: {exc}")

        result = parse_response(text)
        if not result.succeeded:
            logger.warning("Could not parse plan for %s: %s", context.name, result.error)
            return result
        if result.status is PlanStatus.PARTIAL:
            logger.warning("Partial plan for %s: %s", context.name, result.error)
        result = filter_valid(result)
        logger.info(
            "Plan for %s: status=%s tasks=%d plan=%s",
            context.name,
            result.status.value,
            len(result.tasks),
            result.plan,
        )
        return result

    def _request(self, system_prompt: str, user_prompt: str) -> str:
        try:
            return self.provider.send(system_prompt, user_prompt)
        except ProviderError as exc:
            if self.fallback is None:
                raise
            logger.warning(
                "%s failed (%s), falling back to %s",
                getattr(self.provider, "name", "provider"),
                exc,
                getattr(self.fallback, "name", "fallback"),
            )
        return self.fallback.send(system_prompt, user_prompt)


_WORDS = re.compile(r"[a-z]+")
_INTEGERS = re.compile(r"-?\d+")
_MOVE_TO = re.compile(r"\b(?:go|move|walk)\s+to\b")
_SAY_COMMAND = re.compile(r"^\s*(?:say|tell\s+\w+|ask\s+\w+)\b[:,]?\s*(.*)$", re.IGNORECASE | re.DOTALL)


def _first_named(words: Sequence[str], catalog: Sequence[str], aliases: Mapping[str, str]) -> Optional[str]:
    for word in words:
        stem = word[:-3] if word.endswith("ore") and len(word) > 3 else word
        for candidate in (word, stem):
            if candidate in catalog:
                return candidate
            if candidate in aliases:
                return aliases[candidate]
    return None


class OfflinePlanner:
    """Keyword planner used when no provider credential is configured."""

    def plan(self, context: AgentContext, command: str) -> PlanResult:
        if not command or not command.strip():
            return PlanResult.failure(EMPTY_COMMAND_ERROR)
        plan, task = self.classify(command)
        logger.info("Offline plan for %s: %s -> %s", context.name, plan, task.describe())
        return filter_valid(
            PlanResult(
                reasoning="No AI provider configured; matched the command against keywords.",
                plan=plan,
                tasks=[task],
                status=PlanStatus.SUCCESS,
            )
        )

    @staticmethod
    def classify(command: str) -> Tuple[str, Task]:
        lowered = command.lower()
        words = _WORDS.findall(lowered)
        say = _SAY_COMMAND.match(command)
        if say and say.group(1).strip():
            return "Saying something", Task("say", {"message": say.group(1).strip()})
        intent = keyword_intent(words)
        if intent == "follow":
            return "Following the player", Task("follow", {"target": "player"})
        if intent == "mine":
            direction = next(
                (DIRECTION_SYNONYMS.get(w, w) for w in words if DIRECTION_SYNONYMS.get(w, w) in DIRECTIONS),
                None,
            )
            ore = _first_named(words, ORES, ORE_ALIASES)
            if {"dig", "digging"} & set(words) and direction and not ore:
                return f"Digging {direction}", Task("dig", {"direction": direction})
            target = ore or "stone"
            return f"Mining {target}", Task("mine", {"target": target})
        if intent == "build":
            structure = _first_named(words, sorted(STRUCTURES), STRUCTURE_ALIASES) or "house"
            return f"Building a {structure}", Task("build", {"structure": structure})
        if intent == "attack":
            return "Engaging in combat", Task("attack", {"target": "nearest"})
        if _MOVE_TO.search(lowered):
            numbers = [int(n) for n in _INTEGERS.findall(lowered)]
            params = {"x": numbers[0], "y": numbers[1]} if len(numbers) >= 2 else {"target": "player"}
            return "Moving to location", Task("pathfind", params)
        return "Following the player", Task("follow", {"target": "player"})


def create_planner(settings: AgentSettings, agent_name: str = "Terra") -> CommandPlanner:
    """Pick the model-backed planner when any credential exists, else the offline one."""

    if settings.has_credentials():
        return Planner.from_settings(settings, agent_name=agent_name)
    logger.info("No API key configured, using offline keyword planner for %s", agent_name)
    return OfflinePlanner()
