"""Task dataclasses shared by the planner and the executor."""

from __future__ import annotations

import enum
import types
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

Value = Union[str, int, float, bool, None, List["Value"], Dict[str, "Value"]]


def freeze_value(raw: Any) -> Value:
    """Coerce decoded JSON (or caller supplied data) into the ``Value`` union."""

    if raw is None or isinstance(raw, (str, bool, int, float)):
        return raw
    if isinstance(raw, Mapping):
        return {str(key): freeze_value(item) for key, item in raw.items()}
    if isinstance(raw, (list, tuple)):
        return [freeze_value(item) for item in raw]
    return str(raw)


@dataclass(frozen=True)
class Task:
    """A canonical action name plus its parameter bag."""

    action: str
    parameters: Mapping[str, Value] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", self.action.strip().lower())
        object.__setattr__(
            self,
            "parameters",
            types.MappingProxyType({str(k): freeze_value(v) for k, v in dict(self.parameters).items()}),
        )

    def has(self, *keys: str) -> bool:
        return all(key in self.parameters for key in keys)

    def get(self, key: str, default: Value = None) -> Value:
        return self.parameters.get(key, default)

    def get_str(self, key: str, default: str = "") -> str:
        value = self.parameters.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return default

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.parameters.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            try:
                return int(float(value.strip()))
            except ValueError:
                return default
        return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.parameters.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return default
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.parameters.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "yes", "1"}:
            return True
        if isinstance(value, str) and value.strip().lower() in {"false", "no", "0"}:
            return False
        return default

    def describe(self) -> str:
        if not self.parameters:
            return self.action
        args = ", ".join(f"{key}={value}" for key, value in self.parameters.items())
        return f"{self.action}({args})"


class PlanStatus(enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(frozen=True)
class PlanResult:
    """Structured outcome of turning one command into tasks."""

    reasoning: str = ""
    plan: str = ""
    tasks: Tuple[Task, ...] = ()
    status: PlanStatus = PlanStatus.FAILURE
    error: Optional[str] = None
    rejected: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tasks", tuple(self.tasks))
        object.__setattr__(self, "rejected", tuple(self.rejected))

    @property
    def succeeded(self) -> bool:
        return self.status is not PlanStatus.FAILURE

    @property
    def goal(self) -> str:
        return self.plan or self.reasoning or "Executing command"

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> "PlanResult":
        return cls(status=PlanStatus.FAILURE, error=error, **kwargs)

    def with_tasks(self, tasks: Sequence[Task], **changes: Any) -> "PlanResult":
        values = {
            "reasoning": self.reasoning,
            "plan": self.plan,
            "tasks": tuple(tasks),
            "status": self.status,
            "error": self.error,
            "rejected": self.rejected,
        }
        values.update(changes)
        return PlanResult(**values)


@dataclass(frozen=True)
class ActionOutcome:
    """Terminal result produced once by an action state machine."""

    succeeded: bool
    message: str
    requires_replanning: bool = False

    @classmethod
    def succeed(cls, message: str) -> "ActionOutcome":
        return cls(succeeded=True, message=message, requires_replanning=False)

    @classmethod
    def fail(cls, message: str, replan: bool = True) -> "ActionOutcome":
        return cls(succeeded=False, message=message, requires_replanning=replan)
