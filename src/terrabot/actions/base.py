"""Base classes for action state machines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from ..coordinator import WorkCoordinator
from ..tasks.base import ActionOutcome, Task
from ..world import Body, Navigator, PathFollower, World


@dataclass
class ActionContext:
    """Collaborators an action may touch while it runs."""

    body: Body
    world: World
    navigator: Navigator
    coordinator: WorkCoordinator
    chat: Callable[[str], None]

    @property
    def agent_name(self) -> str:
        return self.body.name

    def say(self, message: str) -> None:
        self.chat(message)

    def follower(self, **kwargs: int) -> PathFollower:
        return PathFollower(self.body, self.world, self.navigator, **kwargs)


class BaseAction:
    """Lifecycle shared by every action: not started, running, then complete.

    Subclasses implement ``on_start``/``on_tick``/``on_cancel`` and call ``finish`` with a
    terminal outcome. ``tick`` is a no-op before ``start`` and after completion, and the
    first outcome set wins.
    """

    name = "action"
    timeout_ticks: Optional[int] = None

    def __init__(self, context: ActionContext, task: Task) -> None:
        self.context = context
        self.task = task
        self.outcome: Optional[ActionOutcome] = None
        self.ticks = 0
        self._started = False
        self._cancelled = False

    @property
    def description(self) -> str:
        return self.task.describe()

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_complete(self) -> bool:
        return self.outcome is not None or self._cancelled

    def start(self) -> None:
        if self._started or self.is_complete:
            return
        self._started = True
        self.on_start()

    def tick(self) -> None:
        if not self._started or self.is_complete:
            return
        self.ticks += 1
        if self.timeout_ticks is not None and self.ticks >= self.timeout_ticks:
            self.finish(self.on_timeout())
            self.on_cancel()
            return
        self.on_tick()

    def cancel(self) -> None:
        if self.is_complete:
            return
        self._cancelled = True
        self.outcome = ActionOutcome.fail("Cancelled", replan=False)
        self.on_cancel()

    def finish(self, outcome: ActionOutcome) -> None:
        if self.outcome is None:
            self.outcome = outcome

    def succeed(self, message: str) -> None:
        self.finish(ActionOutcome.succeed(message))

    def fail(self, message: str, replan: bool = True) -> None:
        self.finish(ActionOutcome.fail(message, replan=replan))

    def on_start(self) -> None:  # pragma: no cover - hook
        pass

    def on_tick(self) -> None:  # pragma: no cover - hook
        pass

    def on_cancel(self) -> None:
        pass

    def on_timeout(self) -> ActionOutcome:
        return ActionOutcome.fail(f"{self.description} timed out after {self.ticks} ticks")

    def __repr__(self) -> str:
        state = "complete" if self.is_complete else "running" if self._started else "not started"
        return f"<{self.__class__.__name__} {self.description!r} {state}>"
