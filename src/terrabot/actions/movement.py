"""Movement actions: walking to a cell, following players and exploring."""

from __future__ import annotations

import logging
from typing import Optional

from ..tasks.base import ActionOutcome
from ..world import Cell, Entity, World, distance, find_player, step_toward
from .base import ActionContext, BaseAction

logger = logging.getLogger(__name__)

DIRECTION_VECTORS = {"left": (-1, 0), "right": (1, 0), "up": (0, -1), "down": (0, 1)}


def open_cell_near(world: World, cell: Cell, span: int = 20) -> Optional[Cell]:
    """Closest open cell with solid ground below and headroom above, scanning nearby columns."""

    for offset in (0, -1, 1, -2, 2, -3, 3):
        x = cell[0] + offset
        for y in range(cell[1] - 5, cell[1] + span):
            here, below, above = (x, y), (x, y + 1), (x, y - 1)
            if not world.is_solid(here) and world.is_solid(below) and not world.is_solid(above):
                return here
    return None


class PathfindAction(BaseAction):
    """Walk to absolute tile coordinates, or to a player when none are given."""

    name = "pathfind"
    timeout_ticks = 600

    def __init__(self, context: ActionContext, task) -> None:
        super().__init__(context, task)
        self.goal: Optional[Cell] = None
        self.follower = context.follower()

    @property
    def description(self) -> str:
        if self.goal is None:
            return "Pathfinding"
        return f"Pathfinding to ({self.goal[0]}, {self.goal[1]})"

    def on_start(self) -> None:
        if self.task.has("x", "y"):
            self.goal = (self.task.get_int("x"), self.task.get_int("y"))
        else:
            player = find_player(
                self.context.world, self.task.get_str("target", "nearest"), self.context.body.position
            )
            if player is None:
                self.fail("No destination given and no player to walk to")
                return
            self.goal = player.position
        if not self.follower.go_to(self.goal):
            self.fail("No path found")

    def on_tick(self) -> None:
        done = self.follower.tick()
        if self.follower.is_stuck:
            self.fail("Got stuck")
        elif done:
            self.succeed(f"Arrived at ({self.goal[0]}, {self.goal[1]})")

    def on_cancel(self) -> None:
        self.follower.clear()


class FollowAction(BaseAction):
    """Stay near a player for ``duration`` ticks, teleporting when left far behind."""

    name = "follow"
    teleport_distance = 50.0
    stop_distance = 2.0
    pathfind_distance = 4.0
    repath_interval = 60
    default_duration = 6000

    def __init__(self, context: ActionContext, task) -> None:
        super().__init__(context, task)
        self.player_name = task.get_str("target") or task.get_str("player") or "nearest"
        self.player: Optional[Entity] = None
        self.follower = context.follower()
        self._last_path_tick = -self.repath_interval

    @property
    def description(self) -> str:
        return f"Following {self.player.name if self.player else self.player_name}"

    def on_start(self) -> None:
        self.timeout_ticks = max(1, self.task.get_int("duration", self.default_duration))
        self.player = find_player(self.context.world, self.player_name, self.context.body.position)
        if self.player is None:
            self.fail(f"Could not find player '{self.player_name}'")
            return
        self.context.body.owner = self.player.name

    def on_tick(self) -> None:
        if self.player is None or not self.player.active:
            self.player = find_player(self.context.world, self.player_name, self.context.body.position)
            if self.player is None:
                self.fail(f"Player '{self.player_name}' is no longer available")
                return
        stop = max(self.stop_distance, self.task.get_float("distance", self.stop_distance))
        self.keep_up(self.player, min(stop, self.teleport_distance - 1))

    def on_timeout(self) -> ActionOutcome:
        name = self.player.name if self.player else self.player_name
        return ActionOutcome.succeed(f"Finished following {name}")

    def on_cancel(self) -> None:
        self.follower.clear()

    def keep_up(self, player: Entity, stop: float) -> None:
        body = self.context.body
        gap = distance(body.position, player.position)
        if gap > self.teleport_distance:
            self.teleport_near(player)
            return
        if gap <= stop:
            self.follower.clear()
            return
        if gap > self.pathfind_distance:
            stale = self.ticks - self._last_path_tick >= self.repath_interval
            if stale or self.follower.is_complete or self.follower.is_stuck:
                self.follower.go_to(player.position)
                self._last_path_tick = self.ticks
            self.follower.tick()
            return
        nxt = step_toward(body.position, player.position)
        if not self.context.world.is_solid(nxt):
            body.position = nxt

    def teleport_near(self, player: Entity) -> None:
        cell = open_cell_near(self.context.world, player.position) or player.position
        self.follower.clear()
        self.context.body.position = cell
        logger.debug("%s teleported next to %s at %s", self.context.agent_name, player.name, cell)


class IdleFollowAction(FollowAction):
    """Standing behavior between commands; never completes on its own."""

    name = "idle_follow"
    search_interval = 100
    idle_distance = 3.0

    @property
    def description(self) -> str:
        return "Idle (following nearest player)"

    def on_start(self) -> None:
        self.timeout_ticks = None
        self.player = find_player(self.context.world, None, self.context.body.position)

    def on_tick(self) -> None:
        if self.ticks % self.search_interval == 0 or self.player is None or not self.player.active:
            self.player = find_player(self.context.world, None, self.context.body.position)
        if self.player is None:
            return
        self.keep_up(self.player, self.idle_distance)


class ExploreAction(BaseAction):
    """Travel ``distance`` tiles in a direction, shortening the trip when the way is blocked."""

    name = "explore"
    ticks_per_tile = 120
    default_distance = 50

    def __init__(self, context: ActionContext, task) -> None:
        super().__init__(context, task)
        self.direction = task.get_str("direction", "right")
        self.follower = context.follower()
        self.goal: Optional[Cell] = None

    @property
    def description(self) -> str:
        return f"Exploring {self.direction}"

    def on_start(self) -> None:
        vector = DIRECTION_VECTORS.get(self.direction)
        if vector is None:
            self.fail(f"Invalid direction: {self.direction}", replan=False)
            return
        reach = max(1, self.task.get_int("distance", self.default_distance))
        self.timeout_ticks = reach * self.ticks_per_tile
        origin = self.context.body.position
        while True:
            target = (origin[0] + vector[0] * reach, origin[1] + vector[1] * reach)
            cell = open_cell_near(self.context.world, target)
            if cell is not None and self.follower.go_to(cell):
                self.goal = cell
                return
            if reach <= 5:
                break
            reach //= 2
        self.fail(f"Nothing reachable to the {self.direction}")

    def on_tick(self) -> None:
        done = self.follower.tick()
        if self.follower.is_stuck:
            self.fail("Got stuck")
        elif done:
            self.succeed(f"Explored {self.direction} to ({self.goal[0]}, {self.goal[1]})")

    def on_cancel(self) -> None:
        self.follower.clear()
