"""Interfaces to the simulated world that actions drive.

The world itself (tiles, physics, rendering) lives outside this package. Actions only talk to
it through the protocols below, so any simulation that implements them can host agents.
``terrabot.sim`` ships a small in-memory grid implementation used by the CLI and the tests.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

Cell = Tuple[int, int]


def distance(a: Cell, b: Cell) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def step_toward(origin: Cell, goal: Cell) -> Cell:
    """Next cell on a straight 4-connected walk from ``origin`` to ``goal``."""

    dx = goal[0] - origin[0]
    dy = goal[1] - origin[1]
    if abs(dx) >= abs(dy) and dx != 0:
        return (origin[0] + (1 if dx > 0 else -1), origin[1])
    if dy != 0:
        return (origin[0], origin[1] + (1 if dy > 0 else -1))
    return origin


@dataclass
class Entity:
    """A player or creature the agent can see."""

    id: int
    name: str
    kind: str
    position: Cell
    health: int = 100
    max_health: int = 100

    @property
    def active(self) -> bool:
        return self.health > 0


@dataclass
class Body:
    """The agent's own avatar: where it stands and how healthy it is."""

    name: str
    position: Cell
    health: int = 250
    max_health: int = 250
    owner: Optional[str] = None
    attack_damage: int = 12
    ranged: bool = False
    inventory: Dict[str, int] = field(default_factory=dict)

    @property
    def alive(self) -> bool:
        return self.health > 0

    @property
    def health_fraction(self) -> float:
        return self.health / self.max_health if self.max_health else 0.0

    def collect(self, material: str, amount: int = 1) -> None:
        self.inventory[material] = self.inventory.get(material, 0) + amount


class Navigator(Protocol):
    """Path search over walkable cells."""

    def find_path(self, start: Cell, goal: Cell) -> Optional[List[Cell]]:  # pragma: no cover - interface
        """Ordered cells from ``start`` (exclusive) to ``goal`` (inclusive), or ``None``."""


class World(Protocol):
    """Tile and entity primitives consumed by actions."""

    width: int
    height: int
    surface: int

    def tile_at(self, cell: Cell) -> Optional[str]:  # pragma: no cover - interface
        ...

    def is_solid(self, cell: Cell) -> bool:  # pragma: no cover - interface
        ...

    def place(self, cell: Cell, material: str, layer: str = "tile") -> bool:  # pragma: no cover - interface
        ...

    def remove(self, cell: Cell) -> Optional[str]:  # pragma: no cover - interface
        ...

    def find_tiles(self, near: Cell, material: str, radius: int) -> List[Cell]:  # pragma: no cover - interface
        """Cells holding ``material`` within ``radius``, nearest first."""

    def tiles_near(self, near: Cell, radius: int) -> List[Tuple[Cell, str]]:  # pragma: no cover - interface
        """Every occupied cell within ``radius`` paired with its tile name."""

    def find_build_site(self, near: Cell, width: int, height: int) -> Optional[Cell]:  # pragma: no cover
        """Bottom-left cell of a flat, clear footprint near ``near``."""

    def entities(self, kind: Optional[str] = None) -> List[Entity]:  # pragma: no cover - interface
        ...

    def damage(self, entity: Entity, amount: int) -> None:  # pragma: no cover - interface
        ...


class ChatSink(Protocol):
    def say(self, speaker: str, message: str) -> None:  # pragma: no cover - interface
        ...


def nearest(entities: Iterable[Entity], origin: Cell, radius: Optional[float] = None) -> Optional[Entity]:
    best: Optional[Entity] = None
    best_distance = math.inf
    for entity in entities:
        if not entity.active:
            continue
        gap = distance(origin, entity.position)
        if radius is not None and gap > radius:
            continue
        if gap < best_distance:
            best, best_distance = entity, gap
    return best


def find_player(world: World, name: Optional[str], origin: Cell) -> Optional[Entity]:
    """Named player if present, else the nearest one (``player``/``nearest`` mean nearest)."""

    players = world.entities("player")
    if name and name.lower() not in {"player", "nearest", "me", "any"}:
        for player in players:
            if player.active and player.name.lower() == name.lower():
                return player
    return nearest(players, origin)


class PathFollower:
    """Moves a body along navigator paths, one cell every ``ticks_per_step`` ticks."""

    def __init__(
        self,
        body: Body,
        world: World,
        navigator: Navigator,
        *,
        ticks_per_step: int = 2,
        stuck_after: int = 60,
    ) -> None:
        self.body = body
        self.world = world
        self.navigator = navigator
        self.ticks_per_step = max(1, ticks_per_step)
        self.stuck_after = stuck_after
        self._path: List[Cell] = []
        self._cooldown = 0
        self._blocked_ticks = 0
        self.goal: Optional[Cell] = None

    @property
    def is_complete(self) -> bool:
        return not self._path

    @property
    def is_stuck(self) -> bool:
        return self._blocked_ticks >= self.stuck_after

    def go_to(self, goal: Cell) -> bool:
        """Plan a route to ``goal``; returns False when the navigator finds none."""

        self.clear()
        if goal == self.body.position:
            self.goal = goal
            return True
        path = self.navigator.find_path(self.body.position, goal)
        if not path:
            return False
        self._path = list(path)
        self.goal = goal
        return True

    def clear(self) -> None:
        self._path = []
        self._cooldown = 0
        self._blocked_ticks = 0
        self.goal = None

    def tick(self) -> bool:
        """Advance along the path; returns True once the path is exhausted."""

        if not self._path:
            return True
        if self._cooldown > 0:
            self._cooldown -= 1
            return False
        nxt = self._path[0]
        if self.world.is_solid(nxt):
            self._blocked_ticks += 1
            return False
        self._blocked_ticks = 0
        self.body.position = nxt
        self._path.pop(0)
        self._cooldown = self.ticks_per_step - 1
        return not self._path
