"""Task primitives."""

from .base import ActionOutcome, PlanResult, PlanStatus, Task, Value

__all__ = ["Task", "Value", "PlanResult", "PlanStatus", "ActionOutcome"]
