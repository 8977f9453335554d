"""In-memory grid world used by ``terrabot simulate`` and the test-suite."""

from __future__ import annotations

import collections
import itertools
from typing import Dict, Iterable, List, Optional, Tuple

from .world import Cell, Entity, distance

NON_SOLID = frozenset(
    {"torch", "rope", "platform", "door", "table", "chair", "campfire", "lantern", "air"}
)


class GridWorld:
    """Dense-enough tile grid: rows at or below ``surface`` start filled with dirt and stone."""

    def __init__(self, width: int = 200, height: int = 150, surface: int = 60) -> None:
        self.width = width
        self.height = height
        self.surface = surface
        self._tiles: Dict[Cell, str] = {}
        self._walls: Dict[Cell, str] = {}
        self._entities: List[Entity] = []
        self._ids = itertools.count(1)
        for x in range(width):
            for y in range(surface, height):
                self._tiles[(x, y)] = "dirt" if y < surface + 10 else "stone"

    def in_bounds(self, cell: Cell) -> bool:
        return 0 <= cell[0] < self.width and 0 <= cell[1] < self.height

    def tile_at(self, cell: Cell) -> Optional[str]:
        return self._tiles.get(cell)

    def wall_at(self, cell: Cell) -> Optional[str]:
        return self._walls.get(cell)

    def is_solid(self, cell: Cell) -> bool:
        if not self.in_bounds(cell):
            return True
        tile = self._tiles.get(cell)
        return tile is not None and tile not in NON_SOLID

    def place(self, cell: Cell, material: str, layer: str = "tile") -> bool:
        if not self.in_bounds(cell):
            return False
        if layer == "wall":
            self._walls[cell] = material
        else:
            self._tiles[cell] = material
        return True

    def remove(self, cell: Cell) -> Optional[str]:
        if not self.in_bounds(cell):
            return None
        return self._tiles.pop(cell, None)

    def fill(self, cells: Iterable[Cell], material: str) -> None:
        for cell in cells:
            self.place(cell, material)

    def clear(self, cells: Iterable[Cell]) -> None:
        for cell in cells:
            self._tiles.pop(cell, None)

    def find_tiles(self, near: Cell, material: str, radius: int) -> List[Cell]:
        found = [
            cell
            for cell, tile in self._tiles.items()
            if tile == material and distance(near, cell) <= radius
        ]
        return sorted(found, key=lambda cell: (distance(near, cell), cell))

    def tiles_near(self, near: Cell, radius: int) -> List[Tuple[Cell, str]]:
        x0, y0 = near
        found = []
        for x in range(max(x0 - radius, 0), min(x0 + radius + 1, self.width)):
            for y in range(max(y0 - radius, 0), min(y0 + radius + 1, self.height)):
                tile = self._tiles.get((x, y))
                if tile is not None and distance(near, (x, y)) <= radius:
                    found.append(((x, y), tile))
        return found

    def ground_below(self, x: int, start_y: int) -> Optional[int]:
        """Row of the first open cell that rests on solid ground in column ``x``."""

        for y in range(max(start_y, 0), self.height):
            if self.is_solid((x, y)):
                return y - 1 if y > 0 else None
        return None

    def find_build_site(self, near: Cell, width: int, height: int) -> Optional[Cell]:
        for radius in range(5, 50, 3):
            for offset in range(-radius, radius + 1):
                x = near[0] + offset
                if x < 0 or x + width >= self.width:
                    continue
                ground = self.ground_below(x, near[1] - height)
                if ground is None:
                    continue
                if self._is_flat(x, ground, width) and self._has_headroom(x, ground, width, height):
                    return (x, ground)
        return None

    def _is_flat(self, x: int, ground: int, width: int, tolerance: int = 2) -> bool:
        for column in range(x, x + width):
            level = self.ground_below(column, ground - tolerance)
            if level is None or abs(level - ground) > tolerance:
                return False
        return True

    def _has_headroom(self, x: int, ground: int, width: int, height: int) -> bool:
        return not any(
            self.is_solid((column, ground - j))
            for column in range(x, x + width)
            for j in range(0, height)
        )

    def add_entity(
        self, name: str, kind: str, position: Cell, health: int = 100
    ) -> Entity:
        entity = Entity(
            id=next(self._ids), name=name, kind=kind, position=position, health=health, max_health=health
        )
        self._entities.append(entity)
        return entity

    def entities(self, kind: Optional[str] = None) -> List[Entity]:
        return [e for e in self._entities if e.active and (kind is None or e.kind == kind)]

    def damage(self, entity: Entity, amount: int) -> None:
        entity.health = max(0, entity.health - amount)


class GridNavigator:
    """Breadth-first search over open cells, bounded by ``max_nodes`` expansions."""

    def __init__(self, world: GridWorld, max_nodes: int = 20000) -> None:
        self.world = world
        self.max_nodes = max_nodes

    def find_path(self, start: Cell, goal: Cell) -> Optional[List[Cell]]:
        if start == goal:
            return []
        if self.world.is_solid(goal):
            return None
        parents: Dict[Cell, Optional[Cell]] = {start: None}
        frontier = collections.deque([start])
        expanded = 0
        while frontier and expanded < self.max_nodes:
            current = frontier.popleft()
            expanded += 1
            for dx, dy in ((1, 0), (-1, 0), (0, 1), (0, -1)):
                nxt = (current[0] + dx, current[1] + dy)
                if nxt in parents or self.world.is_solid(nxt):
                    continue
                parents[nxt] = current
                if nxt == goal:
                    return self._unwind(parents, goal)
                frontier.append(nxt)
        return None

    @staticmethod
    def _unwind(parents: Dict[Cell, Optional[Cell]], goal: Cell) -> List[Cell]:
        path = [goal]
        while parents[path[-1]] is not None:
            path.append(parents[path[-1]])
        path.pop()
        path.reverse()
        return path


class ChatLog:
    """Chat sink that records every line for later display."""

    def __init__(self) -> None:
        self.lines: List[Tuple[str, str]] = []

    def say(self, speaker: str, message: str) -> None:
        self.lines.append((speaker, message))

    def said(self, speaker: Optional[str] = None) -> List[str]:
        return [message for who, message in self.lines if speaker is None or who == speaker]
