"""Placing single tiles and building shared structures."""

from __future__ import annotations

import logging
from typing import Optional

from ..coordinator import CollaborativeJob, WorkItem
from ..planning.validator import normalize_structure
from ..tasks.base import ActionOutcome, Task
from ..world import distance, find_player
from .base import ActionContext, BaseAction
from .structures import DEFAULT_SIZES, blueprint

logger = logging.getLogger(__name__)


class PlaceAction(BaseAction):
    """Place one tile at an offset from the agent, walking into range first."""

    name = "place"
    timeout_ticks = 600
    place_range = 5.0

    def __init__(self, context: ActionContext, task: Task) -> None:
        super().__init__(context, task)
        self.material = task.get_str("tile") or task.get_str("block")
        origin = context.body.position
        self.cell = (origin[0] + task.get_int("x", 0), origin[1] + task.get_int("y", 0))
        self.follower = context.follower()

    @property
    def description(self) -> str:
        return f"Placing {self.material or 'tile'} at ({self.cell[0]}, {self.cell[1]})"

    def on_start(self) -> None:
        if not self.material:
            self.fail("No tile type given to place")
            return
        if distance(self.context.body.position, self.cell) > self.place_range:
            if not self.follower.go_to(self.cell):
                self.fail(f"Could not reach ({self.cell[0]}, {self.cell[1]})")

    def on_tick(self) -> None:
        if distance(self.context.body.position, self.cell) > self.place_range:
            self.follower.tick()
            if self.follower.is_stuck:
                self.fail("Got stuck")
            return
        if self.context.world.place(self.cell, self.material):
            self.succeed(f"Placed {self.material} at ({self.cell[0]}, {self.cell[1]})")
        else:
            self.fail(f"Could not place {self.material} at ({self.cell[0]}, {self.cell[1]})")

    def on_cancel(self) -> None:
        self.follower.clear()


class BuildAction(BaseAction):
    """Build a named structure, sharing the work with any other agent building the same kind.

    The first builder picks a site and registers the blueprint with the coordinator. Later
    builders of the same structure join that job and receive their own quadrant.
    """

    name = "build"
    timeout_ticks = 18000
    place_range = 5.0

    def __init__(self, context: ActionContext, task: Task) -> None:
        super().__init__(context, task)
        self.structure = normalize_structure(task.get_str("structure")) or "house"
        self.material = task.get_str("material", "wood") or "wood"
        self.job: Optional[CollaborativeJob] = None
        self.item: Optional[WorkItem] = None
        self.final_item = False
        self.placed = 0
        self.follower = context.follower()

    @property
    def description(self) -> str:
        return f"Building {self.structure} ({self.placed} placed)"

    def on_start(self) -> None:
        coordinator = self.context.coordinator
        job = coordinator.find_active(self.structure)
        if job is not None:
            self.context.say(f"Joining collaborative build of {self.structure}")
        else:
            job = self._start_new_job()
            if job is None:
                return
        self.job = job
        coordinator.assign(job, self.context.agent_name)

    def _start_new_job(self) -> Optional[CollaborativeJob]:
        default_w, default_h = DEFAULT_SIZES.get(self.structure, DEFAULT_SIZES["house"])
        width = self.task.get_int("width", default_w)
        height = self.task.get_int("height", default_h)
        world = self.context.world
        near = self.context.body.position
        owner = find_player(world, self.context.body.owner, near)
        if owner is not None:
            near = owner.position
        site = world.find_build_site(near, max(width, 1), max(height, 1))
        if site is None:
            self.fail("Could not find a suitable build location")
            return None
        items = blueprint(
            self.structure, site, width, height, self.material, world_height=world.height
        )
        if not items:
            self.fail(f"Failed to generate build plan for {self.structure}")
            return None
        job = self.context.coordinator.register(self.structure, items, origin=site)
        self.context.say(f"Starting to build a {self.structure} at ({site[0]}, {site[1]})")
        return job

    def on_tick(self) -> None:
        if self.job is None:
            self.fail(f"Failed to generate build plan for {self.structure}")
            return
        if self.item is None:
            self.item = self.context.coordinator.next_item(self.job, self.context.agent_name)
            if self.item is None:
                self.succeed(f"Completed my part of building {self.structure}")
                return
            self.final_item = self.job.is_complete
        if distance(self.context.body.position, self.item.cell) > self.place_range:
            if self.follower.goal != self.item.cell and not self.follower.go_to(self.item.cell):
                # Unreachable cells are placed from where the agent stands.
                self._place_current()
                return
            self.follower.tick()
            if not self.follower.is_stuck:
                return
        self._place_current()

    def _place_current(self) -> None:
        item = self.item
        self.item = None
        self.follower.clear()
        if self.context.world.place(item.cell, item.material, item.layer):
            self.placed += 1
        else:
            logger.debug("%s could not place %s at %s", self.context.agent_name, item.material, item.cell)
        if self.final_item:
            self.succeed(f"Successfully built {self.structure}")
            self.context.say(f"Finished building {self.structure}!")

    def on_timeout(self) -> ActionOutcome:
        return ActionOutcome.fail(
            f"Building {self.structure} timed out after {self.timeout_ticks} ticks ({self.placed} placed)"
        )

    def on_cancel(self) -> None:
        self.follower.clear()
