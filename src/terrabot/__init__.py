"""Natural-language agents that plan and execute work in a tile world."""

from .config import AgentSettings, SessionConfig
from .coordinator import WorkCoordinator
from .executor import Executor
from .session import WorldSession
from .tasks.base import ActionOutcome, PlanResult, PlanStatus, Task

__all__ = [
    "ActionOutcome",
    "AgentSettings",
    "Executor",
    "PlanResult",
    "PlanStatus",
    "SessionConfig",
    "Task",
    "WorkCoordinator",
    "WorldSession",
]

__version__ = "0.1.0"
