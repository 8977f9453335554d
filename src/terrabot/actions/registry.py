"""Registry that maps task action names to action classes."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping, Optional

from ..config import import_string
from ..tasks.base import Task
from .base import ActionContext, BaseAction
from .building import BuildAction, PlaceAction
from .chat import SayAction
from .combat import CombatAction
from .mining import DigAction, MineAction
from .movement import ExploreAction, FollowAction, PathfindAction

logger = logging.getLogger(__name__)

ActionFactory = Callable[[ActionContext, Task], BaseAction]


class ActionRegistry:
    """Stores action factories keyed by canonical task action name."""

    def __init__(self) -> None:
        self._factories: Dict[str, ActionFactory] = {}

    def register(self, name: str, factory: ActionFactory, *, overwrite: bool = False) -> None:
        key = name.strip().lower()
        if key in self._factories and not overwrite:
            raise ValueError(f"Action {key} already registered")
        self._factories[key] = factory

    def register_path(self, name: str, path: str) -> None:
        """Register an action class given as ``module:qualname``."""

        factory = import_string(path)
        if not callable(factory):  # pragma: no cover - guard
            raise TypeError(f"Action '{name}' must be callable")
        self.register(name, factory, overwrite=True)

    def create(self, task: Task, context: ActionContext) -> Optional[BaseAction]:
        factory = self._factories.get(task.action)
        if factory is None:
            logger.warning("%s could not create action for task %s", context.agent_name, task.action)
            return None
        return factory(context, task)

    def __contains__(self, name: str) -> bool:
        return name.strip().lower() in self._factories

    def available(self) -> Dict[str, ActionFactory]:
        return dict(self._factories)


def default_registry(extra: Optional[Mapping[str, str]] = None) -> ActionRegistry:
    """Built-in actions plus ``extra`` name to ``module:qualname`` overrides from the session config."""

    registry = ActionRegistry()
    registry.register("pathfind", PathfindAction)
    registry.register("mine", MineAction)
    registry.register("place", PlaceAction)
    registry.register("build", BuildAction)
    registry.register("attack", CombatAction)
    registry.register("follow", FollowAction)
    registry.register("dig", DigAction)
    registry.register("say", SayAction)
    registry.register("explore", ExploreAction)
    for name, path in (extra or {}).items():
        registry.register_path(name, path)
        logger.info("Registered action %s from %s", name, path)
    return registry
