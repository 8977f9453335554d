"""Per-agent scheduler: task queue, tick loop, idle behavior and goal tracking.

Planning runs on a background thread. Its only way into the tick domain is the executor's
inbox queue, which ``tick`` drains first on every step. Chat lines produced off-thread take the
separate outbox queue and are spoken during the same drain. Going the other way, every tick ends
by publishing a fresh planning context and status dict; other threads read only those copies.
"""

from __future__ import annotations

import collections
import copy
import logging
import queue
from typing import Any, Counter, Deque, Dict, List, Optional, Tuple

from .actions.base import ActionContext, BaseAction
from .actions.movement import IdleFollowAction
from .actions.registry import ActionRegistry, default_registry
from .coordinator import WorkCoordinator
from .memory.simple import AgentMemory
from .planning.planner import CommandPlanner
from .planning.prompts import AgentContext, describe_depth
from .planning.validator import ORES
from .tasks.base import PlanResult, PlanStatus, Task
from .world import Body, ChatSink, Navigator, World, distance

logger = logging.getLogger(__name__)

PLAYER_SIGHT = 50.0
HOSTILE_SIGHT = 30.0
TILE_SIGHT = 20
PROMPT_CONVERSATION = 6
STATUS_RECENT_ACTIONS = 10
NOTABLE_TILES = frozenset(ORES) - {"stone", "dirt", "clay", "sand", "mud"}

_STOP = object()


class Executor:
    """Drives one agent: at most one action runs at a time, the rest wait in FIFO order."""

    def __init__(
        self,
        body: Body,
        world: World,
        navigator: Navigator,
        coordinator: WorkCoordinator,
        *,
        planner: Optional[CommandPlanner] = None,
        registry: Optional[ActionRegistry] = None,
        chat: Optional[ChatSink] = None,
        memory: Optional[AgentMemory] = None,
        action_tick_delay: int = 30,
        enable_chat_responses: bool = True,
    ) -> None:
        if body is None:
            raise ValueError("Executor requires an agent body")
        self.body = body
        self.world = world
        self.planner = planner
        self.registry = registry or default_registry()
        self.chat = chat
        self.memory = memory or AgentMemory()
        self.action_tick_delay = action_tick_delay
        self.enable_chat_responses = enable_chat_responses
        self.context = ActionContext(
            body=body, world=world, navigator=navigator, coordinator=coordinator, chat=self.say
        )
        self.tasks: Deque[Task] = collections.deque()
        self.current: Optional[BaseAction] = None
        self.ticks_since_action = 0
        self.tick_count = 0
        self.replan_reason: Optional[str] = None
        self._inbox: "queue.Queue[Any]" = queue.Queue()
        self._outbox: "queue.Queue[str]" = queue.Queue()
        self._published_context = self.snapshot()
        self._published_status = self._build_status()

    @property
    def name(self) -> str:
        return self.body.name

    @property
    def current_goal(self) -> Optional[str]:
        return self.memory.current_goal

    @property
    def is_idle(self) -> bool:
        return (self.current is None or isinstance(self.current, IdleFollowAction)) and not self.tasks

    # Background domain -------------------------------------------------

    def process(self, command: str, context: Optional[AgentContext] = None) -> Optional[PlanResult]:
        """Stop current work, plan ``command`` and hand the result to the tick loop.

        Runs on a worker thread. Never raises: any failure becomes a chat line instead.
        """

        self.request_stop()
        if self.planner is None:
            self.post_chat("I had trouble understanding that command: no planner configured")
            return None
        try:
            result = self.planner.plan(context or self.latest_context(), command)
        except Exception as exc:
            logger.exception("Planning crashed for %s", self.name)
            self.post_chat(f"Sorry, I encountered an error: {exc}")
            return None
        self.submit(result, command)
        return result

    def submit(self, result: PlanResult, command: Optional[str] = None) -> None:
        self._inbox.put((command, result))

    def request_stop(self) -> None:
        self._inbox.put(_STOP)

    def post_chat(self, message: str) -> None:
        self._outbox.put(message)

    # Tick domain -------------------------------------------------------

    def say(self, message: str) -> None:
        self.memory.remember("assistant", message)
        if self.chat is not None:
            self.chat.say(self.name, message)

    def tick(self) -> None:
        self.tick_count += 1
        self._drain()
        self._step()
        self._publish()

    def _step(self) -> None:
        if self.current is not None and self.current.is_complete:
            self._finish_current()

        if self.current is not None:
            self.current.tick()
            return

        self.ticks_since_action += 1
        if self.tasks and self.ticks_since_action >= self.action_tick_delay:
            self._start_next()
            return

        if not self.tasks and self.current_goal is None:
            self._start_idle()

    def _publish(self) -> None:
        # Whole-object swaps; a reader sees either the old copy or the new one.
        self._published_context = self.snapshot()
        self._published_status = self._build_status()

    def _drain(self) -> None:
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                break
            if item is _STOP:
                self.stop()
                continue
            command, result = item
            if command:
                self.memory.remember("user", command)
            self._accept(result)
        while True:
            try:
                line = self._outbox.get_nowait()
            except queue.Empty:
                break
            self.say(line)

    def stop(self) -> None:
        """Cancel the running action and forget queued work."""

        if self.current is not None:
            self.current.cancel()
            if not isinstance(self.current, IdleFollowAction):
                logger.info("%s stopped %s", self.name, self.current.description)
        self.current = None
        self.tasks.clear()
        self.memory.current_goal = None
        self.ticks_since_action = 0

    def retire(self) -> None:
        """Final tick-domain step for a removed agent: drop pending work and cancel the action."""

        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                break
        self.stop()
        self._publish()

    def _accept(self, result: PlanResult) -> None:
        if not result.succeeded:
            self.say(f"I had trouble understanding that command: {result.error}")
            return
        if not result.tasks:
            self.say(result.reasoning or "There is nothing for me to do.")
            return
        if result.status is PlanStatus.PARTIAL:
            logger.warning("%s executing partial plan: %s", self.name, result.error)
        if isinstance(self.current, IdleFollowAction):
            self.current.cancel()
            self.current = None
        self.tasks.extend(result.tasks)
        self.memory.current_goal = result.goal
        self.replan_reason = None
        logger.info("%s queued %d tasks for goal: %s", self.name, len(result.tasks), result.goal)
        if self.enable_chat_responses and result.plan:
            self.say(result.plan)

    def _finish_current(self) -> None:
        action = self.current
        self.current = None
        self.ticks_since_action = 0
        if isinstance(action, IdleFollowAction):
            return
        outcome = action.outcome
        if outcome.succeeded:
            entry = f"Action '{action.description}' completed successfully"
            logger.info("%s: %s", self.name, entry)
        else:
            entry = f"Action '{action.description}' failed: {outcome.message}"
            logger.info("%s: %s", self.name, entry)
        self.memory.add_action(entry)
        if not outcome.succeeded and outcome.requires_replanning:
            self.replan_reason = outcome.message
            self.memory.add_action(f"Action failed, may require replanning: {outcome.message}")
            logger.warning("%s action failed, may require replanning: %s", self.name, outcome.message)
        if self.tasks:
            return
        goal = self.memory.current_goal
        self.memory.current_goal = None
        if goal is None:
            return
        if outcome.succeeded:
            self.memory.add_action(f"Goal completed: {goal}")
            if self.enable_chat_responses:
                self.say(f"I've completed: {goal}")
        else:
            logger.info("%s gave up on goal: %s", self.name, goal)

    def _start_next(self) -> None:
        task = self.tasks.popleft()
        action = self.registry.create(task, self.context)
        if action is None:
            self.memory.add_action(f"Skipped unsupported task {task.describe()}")
            self.say(f"I don't know how to {task.action} yet.")
            if not self.tasks:
                self.memory.current_goal = None
            return
        self.ticks_since_action = 0
        self.current = action
        logger.info("%s starting %s", self.name, task.describe())
        action.start()

    def _start_idle(self) -> None:
        self.current = IdleFollowAction(self.context, Task("idle_follow"))
        self.current.start()

    # Introspection ------------------------------------------------------

    def snapshot(self) -> AgentContext:
        """Situation summary for the planning prompt. Tick domain only."""

        position = self.body.position
        players = [
            (player.name, int(distance(position, player.position)))
            for player in self.world.entities("player")
            if distance(position, player.position) <= PLAYER_SIGHT
        ]
        hostiles = [
            (enemy.name, int(distance(position, enemy.position)))
            for enemy in self.world.entities("hostile")
            if distance(position, enemy.position) <= HOSTILE_SIGHT
        ]
        inventory = [f"{name} x{count}" for name, count in sorted(self.body.inventory.items())]
        conversation = [record.describe() for record in self.memory.conversation.recent(PROMPT_CONVERSATION)]
        return AgentContext(
            name=self.name,
            position=position,
            depth=describe_depth(position[1], self.world.surface, self.world.height),
            current_goal=self.current_goal,
            recent_actions=self.memory.recent_actions(5),
            nearby_players=sorted(players, key=lambda item: item[1]),
            nearby_hostiles=sorted(hostiles, key=lambda item: item[1])[:5],
            nearby_tiles=self._notable_tiles(position),
            inventory=inventory,
            conversation=conversation,
        )

    def _notable_tiles(self, position: Tuple[int, int]) -> List[Tuple[str, int, int]]:
        """Ore kinds within ``TILE_SIGHT``: name, count and distance to the nearest one."""

        counts: Counter[str] = collections.Counter()
        closest: Dict[str, int] = {}
        for cell, material in self.world.tiles_near(position, TILE_SIGHT):
            if material not in NOTABLE_TILES:
                continue
            counts[material] += 1
            gap = int(distance(position, cell))
            closest[material] = min(gap, closest.get(material, gap))
        return sorted(
            ((material, counts[material], closest[material]) for material in counts),
            key=lambda item: (item[2], item[0]),
        )

    def _build_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "position": list(self.body.position),
            "health": self.body.health,
            "goal": self.current_goal,
            "action": self.current.description if self.current else None,
            "queued": [task.describe() for task in self.tasks],
            "replan_reason": self.replan_reason,
            "recent_actions": self.memory.recent_actions(STATUS_RECENT_ACTIONS),
        }

    def latest_context(self) -> AgentContext:
        """Planning context as of the end of the last tick; safe from any thread."""

        return self._published_context

    def status(self) -> Dict[str, Any]:
        """Status as of the end of the last tick; safe from any thread."""

        return copy.deepcopy(self._published_status)

    def recent_actions(self, count: int = 5) -> List[str]:
        return self.memory.recent_actions(count)
