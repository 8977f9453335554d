"""Mining and digging actions."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..planning.validator import normalize_ore
from ..tasks.base import ActionOutcome, Task
from ..world import Cell, distance, step_toward
from .base import ActionContext, BaseAction
from .movement import DIRECTION_VECTORS

logger = logging.getLogger(__name__)


class _Excavator:
    """Breaks one solid cell at a time, ``ticks_per_tile`` ticks per cell."""

    def __init__(self, context: ActionContext, ticks_per_tile: int) -> None:
        self.context = context
        self.ticks_per_tile = ticks_per_tile
        self.cell: Optional[Cell] = None
        self.progress = 0

    def work(self, cell: Cell) -> Optional[str]:
        """Hit ``cell`` once; returns the removed material when it breaks."""

        if cell != self.cell:
            self.cell = cell
            self.progress = 0
        self.progress += 1
        if self.progress < self.ticks_per_tile:
            return None
        self.cell = None
        self.progress = 0
        material = self.context.world.remove(cell)
        if material:
            self.context.body.collect(material)
        return material


class MineAction(BaseAction):
    """Find tiles of one material nearby and mine ``quantity`` of them."""

    name = "mine"
    timeout_ticks = 12000
    mining_range = 4.0
    search_radius = 30
    ticks_per_tile = 10

    def __init__(self, context: ActionContext, task: Task) -> None:
        super().__init__(context, task)
        raw = task.get_str("target") or task.get_str("tile")
        self.material = normalize_ore(raw) if raw else ""
        self.quantity = 1
        self.mined = 0
        self.target: Optional[Cell] = None
        self.excavator = _Excavator(context, self.ticks_per_tile)

    @property
    def description(self) -> str:
        return f"Mining {self.material or 'tiles'} ({self.mined}/{self.quantity})"

    def on_start(self) -> None:
        if not self.material:
            self.fail("No tile type given to mine", replan=True)
            return
        self.quantity = self.task.get_int("quantity", self.task.get_int("amount", 1))
        if self.quantity <= 0:
            self.quantity = 1
        if not self._find_next_target():
            self.fail(f"No {self.material} tiles found within range")

    def on_tick(self) -> None:
        if self.mined >= self.quantity:
            self.succeed(f"Successfully mined {self.mined} {self.material} tiles")
            return
        world = self.context.world
        if self.target is None or world.tile_at(self.target) != self.material:
            if not self._find_next_target():
                if self.mined > 0:
                    self.succeed(
                        f"Mined {self.mined}/{self.quantity} {self.material} tiles (no more targets found)"
                    )
                else:
                    self.fail(f"No {self.material} tiles found")
                return
        body = self.context.body
        if distance(body.position, self.target) > self.mining_range:
            self._tunnel_toward(self.target)
            return
        if self.excavator.work(self.target) == self.material:
            self.mined += 1
            self.target = None
            if self.mined >= self.quantity:
                self.succeed(f"Successfully mined {self.mined} {self.material} tiles")

    def on_timeout(self) -> ActionOutcome:
        return ActionOutcome.fail(
            f"Mining timed out after {self.timeout_ticks} ticks. Mined {self.mined}/{self.quantity}"
        )

    def _find_next_target(self) -> bool:
        found = self.context.world.find_tiles(
            self.context.body.position, self.material, self.search_radius
        )
        self.target = found[0] if found else None
        if self.target is not None:
            logger.debug("%s targeting %s at %s", self.context.agent_name, self.material, self.target)
        return self.target is not None

    def _tunnel_toward(self, goal: Cell) -> None:
        body = self.context.body
        nxt = step_toward(body.position, goal)
        if self.context.world.is_solid(nxt):
            if self.excavator.work(nxt) == self.material:
                self.mined += 1
            return
        body.position = nxt


class DigAction(BaseAction):
    """Dig a straight tunnel of ``width`` cells in one direction."""

    name = "dig"
    ticks_per_tile = 10
    ticks_per_distance = 120
    default_vertical = 100
    default_horizontal = 50

    def __init__(self, context: ActionContext, task: Task) -> None:
        super().__init__(context, task)
        self.direction = task.get_str("direction")
        self.length = 0
        self.width = max(1, task.get_int("width", 1))
        self.dug = 0
        self.excavator = _Excavator(context, self.ticks_per_tile)

    @property
    def description(self) -> str:
        return f"Digging {self.direction or 'tunnel'} ({self.dug}/{self.length})"

    def on_start(self) -> None:
        if self.direction not in DIRECTION_VECTORS:
            self.fail(f"Invalid dig direction: {self.direction or 'none'}", replan=True)
            return
        default = self.default_vertical if self.direction in ("up", "down") else self.default_horizontal
        self.length = self.task.get_int("depth", self.task.get_int("distance", default))
        if self.length <= 0:
            self.length = default
        self.timeout_ticks = self.length * self.ticks_per_distance

    def on_tick(self) -> None:
        if self.dug >= self.length:
            self.succeed(f"Dug {self.dug} tiles {self.direction}")
            return
        dx, dy = DIRECTION_VECTORS[self.direction]
        body = self.context.body
        front = (body.position[0] + dx, body.position[1] + dy)
        if not self._in_bounds(front):
            if self.dug > 0:
                self.succeed(f"Reached the edge of the world after {self.dug} tiles")
            else:
                self.fail("Cannot dig past the edge of the world", replan=False)
            return
        for cell in self._slice(front, dx, dy):
            if self.context.world.is_solid(cell) and self._in_bounds(cell):
                self.excavator.work(cell)
                return
        body.position = front
        self.dug += 1
        if self.dug >= self.length:
            self.succeed(f"Dug {self.dug} tiles {self.direction}")

    def on_timeout(self) -> ActionOutcome:
        return ActionOutcome.fail(f"Digging timed out after {self.dug}/{self.length} tiles")

    def _slice(self, front: Cell, dx: int, dy: int) -> List[Cell]:
        # Cells across the tunnel, centred on the agent's line of travel.
        offsets = [i - (self.width - 1) // 2 for i in range(self.width)]
        if dx == 0:
            return [(front[0] + o, front[1]) for o in offsets]
        return [(front[0], front[1] + o) for o in offsets]

    def _in_bounds(self, cell: Cell) -> bool:
        world = self.context.world
        return 0 <= cell[0] < world.width and 0 <= cell[1] < world.height
