"""Blueprints that expand a structure request into work items."""

from __future__ import annotations

from typing import Callable, Dict, List, Tuple

from ..coordinator import WorkItem
from ..world import Cell

DEFAULT_SIZES: Dict[str, Tuple[int, int]] = {
    "house": (10, 6),
    "tower": (8, 30),
    "bridge": (30, 1),
    "arena": (100, 40),
    "hellevator": (3, 0),
    "wall": (3, 10),
    "platform": (20, 4),
}

MIN_HOUSE_WIDTH = 10
MIN_HOUSE_HEIGHT = 6
FLOOR_HEIGHT = 6


def house(origin: Cell, width: int, height: int, material: str) -> List[WorkItem]:
    """NPC house: shell, a three-tall door gap on the left, background wall, torch and furniture."""

    width = max(width, MIN_HOUSE_WIDTH)
    height = max(height, MIN_HOUSE_HEIGHT)
    x, y = origin
    items = [WorkItem(x + i, y, material) for i in range(width)]
    items += [WorkItem(x + i, y - height + 1, material) for i in range(width)]
    door_rows = {y - 1, y - 2, y - 3}
    items += [WorkItem(x, y - j, material) for j in range(1, height - 1) if y - j not in door_rows]
    items += [WorkItem(x + width - 1, y - j, material) for j in range(1, height - 1)]
    items += [
        WorkItem(x + i, y - j, material, layer="wall")
        for i in range(1, width - 1)
        for j in range(1, height - 1)
    ]
    items.append(WorkItem(x, y - 1, "door"))
    items.append(WorkItem(x + width - 2, y - height + 2, "torch"))
    items.append(WorkItem(x + 4, y - 1, "table"))
    items.append(WorkItem(x + 6, y - 1, "chair"))
    return items


def tower(origin: Cell, width: int, height: int, material: str) -> List[WorkItem]:
    x, y = origin
    floors = max(1, height // FLOOR_HEIGHT)
    items: List[WorkItem] = []
    for floor in range(floors):
        floor_y = y - floor * FLOOR_HEIGHT
        floor_tile = material if floor == 0 else "platform"
        items += [WorkItem(x + i, floor_y, floor_tile) for i in range(width)]
        items += [WorkItem(x, floor_y - j, material) for j in range(1, FLOOR_HEIGHT)]
        items += [WorkItem(x + width - 1, floor_y - j, material) for j in range(1, FLOOR_HEIGHT)]
        items += [
            WorkItem(x + i, floor_y - j, material, layer="wall")
            for i in range(1, width - 1)
            for j in range(1, FLOOR_HEIGHT)
        ]
        if floor < floors - 1:
            items += [WorkItem(x + width // 2, floor_y - j, "rope") for j in range(1, FLOOR_HEIGHT)]
        items.append(WorkItem(x + 1, floor_y - 2, "torch"))
    roof_y = y - floors * FLOOR_HEIGHT
    items += [WorkItem(x + i, roof_y, material) for i in range(width)]
    return items


def bridge(origin: Cell, width: int, height: int, material: str) -> List[WorkItem]:
    x, y = origin
    items = [WorkItem(x + i, y, "platform") for i in range(width)]
    pillars = sorted(set(range(0, width, 8)) | ({width - 1} if width > 1 else set()))
    items += [WorkItem(x + i, y + j, material) for i in pillars for j in range(1, 6)]
    items += [WorkItem(x + i, y - 1, "torch") for i in range(0, width, 10)]
    return items


def arena(origin: Cell, width: int, height: int, material: str) -> List[WorkItem]:
    """Boss arena centred on the origin: ground row, gapped platform rows, campfires, lanterns."""

    x = origin[0] - width // 2
    y = origin[1]
    items = [WorkItem(x + i, y, material) for i in range(width)]
    for row in range(1, height // 8 + 1):
        items += [WorkItem(x + i, y - row * 8, "platform") for i in range(width) if i % 12 < 8]
    items += [WorkItem(x + i, y - 1, "campfire") for i in range(5, width - 5, 20)]
    items += [WorkItem(x + i, y - 3, "lantern") for i in range(10, width - 10, 30)]
    for j in range(4, height, 4):
        if j % 8 == 0:
            continue
        items.append(WorkItem(x, y - j, "torch"))
        items.append(WorkItem(x + width - 1, y - j, "torch"))
    return items


def hellevator(origin: Cell, width: int, height: int, material: str, world_height: int = 0) -> List[WorkItem]:
    """Rope shaft from the origin down to 85% of world depth."""

    x, y = origin
    depth = int(world_height * 0.85) - y
    items: List[WorkItem] = []
    for j in range(max(depth, 0)):
        items.append(WorkItem(x, y + j, "rope"))
        if j % 50 == 0:
            items.append(WorkItem(x - 1, y + j, "torch"))
        if j % 100 == 0:
            items.append(WorkItem(x - 1, y + j, "platform"))
            items.append(WorkItem(x + 1, y + j, "platform"))
    return items


def wall(origin: Cell, width: int, height: int, material: str) -> List[WorkItem]:
    x, y = origin
    thickness = max(width, 1)
    return [WorkItem(x + i, y - j, material) for i in range(thickness) for j in range(height)]


def platform(origin: Cell, width: int, height: int, material: str) -> List[WorkItem]:
    x, y = origin
    return [WorkItem(x + i, y - height, "platform") for i in range(width)]


_BUILDERS: Dict[str, Callable[..., List[WorkItem]]] = {
    "house": house,
    "tower": tower,
    "bridge": bridge,
    "arena": arena,
    "wall": wall,
    "platform": platform,
}


def blueprint(
    structure: str,
    origin: Cell,
    width: int,
    height: int,
    material: str = "wood",
    world_height: int = 0,
) -> List[WorkItem]:
    """Work items for ``structure``; unknown names fall back to a house."""

    if structure == "hellevator":
        items = hellevator(origin, width, height, material, world_height=world_height)
    else:
        items = _BUILDERS.get(structure, house)(origin, width, height, material)
    # Later entries win when two parts of a blueprint land on the same cell and layer.
    unique: Dict[Tuple[int, int, str], WorkItem] = {}
    for item in items:
        unique[(item.x, item.y, item.layer)] = item
    return list(unique.values())
