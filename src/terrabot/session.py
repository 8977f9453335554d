"""World session: the agent table, the shared coordinator and the planning worker pool."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from .actions.registry import ActionRegistry, default_registry
from .config import AgentSettings
from .coordinator import WorkCoordinator
from .executor import Executor
from .planning.planner import CommandPlanner, create_planner
from .world import Body, Cell, ChatSink, Navigator, World

logger = logging.getLogger(__name__)

PlannerFactory = Callable[[AgentSettings, str], CommandPlanner]


class SessionError(RuntimeError):
    """Raised for agent table violations: duplicates, unknown names, capacity."""


class WorldSession:
    """Owns every agent living in one world, for as long as that world runs."""

    def __init__(
        self,
        world: World,
        navigator: Navigator,
        settings: Optional[AgentSettings] = None,
        *,
        chat: Optional[ChatSink] = None,
        planner_factory: Optional[PlannerFactory] = None,
        registry: Optional[ActionRegistry] = None,
        max_workers: int = 4,
    ) -> None:
        self.world = world
        self.navigator = navigator
        self.settings = settings or AgentSettings()
        self.chat = chat
        self.coordinator = WorkCoordinator()
        self.registry = registry or default_registry()
        self._planner_factory = planner_factory or create_planner
        self._agents: Dict[str, Executor] = {}
        self._retired: List[Executor] = []
        self._lock = threading.Lock()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="terrabot-plan")

    def spawn(self, name: str, position: Optional[Cell] = None) -> Executor:
        name = name.strip()
        if not name:
            raise SessionError("Agent name must not be empty")
        with self._lock:
            if name in self._agents:
                raise SessionError(f"Agent '{name}' already exists")
            if len(self._agents) >= self.settings.max_active_agents:
                raise SessionError(
                    f"Cannot spawn '{name}': max active agents ({self.settings.max_active_agents}) reached"
                )
            body = Body(name=name, position=position or self._spawn_point())
            executor = Executor(
                body,
                self.world,
                self.navigator,
                self.coordinator,
                planner=self._planner_factory(self.settings, name),
                registry=self.registry,
                chat=self.chat,
                action_tick_delay=self.settings.action_tick_delay,
                enable_chat_responses=self.settings.enable_chat_responses,
            )
            self._agents[name] = executor
        logger.info("Spawned agent %s at %s", name, body.position)
        return executor

    def _spawn_point(self) -> Cell:
        players = self.world.entities("player")
        x = players[0].position[0] + 2 if players else self.world.width // 2
        return (x, self.world.surface - 1)

    def remove(self, name: str) -> bool:
        """Drop ``name`` from the table; its running action is cancelled on the tick thread."""

        with self._lock:
            executor = self._agents.pop(name, None)
            if executor is None:
                return False
            self._retired.append(executor)
        logger.info("Removed agent %s", name)
        return True

    def get(self, name: str) -> Optional[Executor]:
        with self._lock:
            return self._agents.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._agents)

    def agents(self) -> List[Executor]:
        with self._lock:
            return list(self._agents.values())

    def _require(self, name: str) -> Executor:
        executor = self.get(name)
        if executor is None:
            raise SessionError(f"Unknown agent '{name}'")
        return executor

    def submit_command(self, name: str, text: str) -> Future:
        """Plan ``text`` for agent ``name`` in the background; the tick loop picks up the result."""

        executor = self._require(name)
        context = executor.latest_context()
        logger.info("Command for %s: %s", name, text)
        return self._pool.submit(executor.process, text, context)

    def stop(self, name: str) -> None:
        self._require(name).request_stop()

    def stop_all(self) -> None:
        for executor in self.agents():
            executor.request_stop()

    def tick(self) -> None:
        with self._lock:
            retired, self._retired = self._retired, []
        for executor in retired:
            executor.retire()
        for executor in self.agents():
            executor.tick()

    def cleanup(self) -> List[str]:
        """Drop agents whose body has died."""

        with self._lock:
            dead = [name for name, executor in self._agents.items() if not executor.body.alive]
        for name in dead:
            self.remove(name)
        return dead

    def shutdown(self, wait: bool = True) -> None:
        self.stop_all()
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "WorldSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
