"""Action state machines driven by the executor."""

from .base import ActionContext, BaseAction
from .building import BuildAction, PlaceAction
from .chat import SayAction
from .combat import CombatAction, CombatState
from .mining import DigAction, MineAction
from .movement import ExploreAction, FollowAction, IdleFollowAction, PathfindAction
from .registry import ActionRegistry, default_registry

__all__ = [
    "ActionContext",
    "ActionRegistry",
    "BaseAction",
    "BuildAction",
    "CombatAction",
    "CombatState",
    "DigAction",
    "ExploreAction",
    "FollowAction",
    "IdleFollowAction",
    "MineAction",
    "PathfindAction",
    "PlaceAction",
    "SayAction",
    "default_registry",
]
