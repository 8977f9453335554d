"""Command planning: prompts, response parsing, validation and planners."""

from .parser import parse_response
from .planner import CommandPlanner, OfflinePlanner, Planner, create_planner
from .prompts import AgentContext
from .validator import ValidationResult, normalize_task, validate

__all__ = [
    "AgentContext",
    "CommandPlanner",
    "OfflinePlanner",
    "Planner",
    "ValidationResult",
    "create_planner",
    "normalize_task",
    "parse_response",
    "validate",
]
