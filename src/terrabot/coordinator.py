"""Shared work coordination so several agents can finish one large job together.

A job's items are split into four spatial quadrants. Each agent claims a quadrant and pulls
items from it one at a time; agents that run out help with whatever quadrant still has work.
All cursor and assignment state of a job sits behind that job's lock, and the lock is held
only for a single lookup or cursor increment.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .world import Cell

logger = logging.getLogger(__name__)

SECTION_NAMES = ("top-left", "top-right", "bottom-left", "bottom-right")


@dataclass(frozen=True)
class WorkItem:
    """Place ``material`` at (x, y); ``layer`` is "tile" or "wall"."""

    x: int
    y: int
    material: str
    layer: str = "tile"

    @property
    def cell(self) -> Cell:
        return (self.x, self.y)


class WorkSection:
    """An ordered, disjoint slice of a job with a claim cursor."""

    def __init__(self, name: str, items: Sequence[WorkItem]) -> None:
        self.name = name
        self.items: Tuple[WorkItem, ...] = tuple(items)
        self.cursor = 0

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.items)

    @property
    def remaining(self) -> int:
        return len(self.items) - self.cursor

    def claim(self) -> Optional[WorkItem]:
        if self.exhausted:
            return None
        item = self.items[self.cursor]
        self.cursor += 1
        return item

    def __repr__(self) -> str:
        return f"WorkSection({self.name!r}, {self.cursor}/{len(self.items)})"


def partition(items: Sequence[WorkItem]) -> List[WorkSection]:
    """Split items into quadrants around the bounding-box midpoint.

    Each quadrant is ordered by descending row then ascending column, so the bottom of the
    structure (largest y) is laid first.
    """

    if not items:
        raise ValueError("Cannot partition an empty job")
    xs = [item.x for item in items]
    ys = [item.y for item in items]
    mid_x = (min(xs) + max(xs)) // 2
    mid_y = (min(ys) + max(ys)) // 2
    buckets: Dict[str, List[WorkItem]] = {name: [] for name in SECTION_NAMES}
    for item in items:
        vertical = "top" if item.y <= mid_y else "bottom"
        horizontal = "left" if item.x <= mid_x else "right"
        buckets[f"{vertical}-{horizontal}"].append(item)
    return [
        WorkSection(name, sorted(buckets[name], key=lambda item: (-item.y, item.x)))
        for name in SECTION_NAMES
    ]


class JobProgress(NamedTuple):
    claimed: int
    total: int
    percent: float


class CollaborativeJob:
    """One shared job; agents are identified by name."""

    def __init__(
        self, job_id: str, job_type: str, items: Sequence[WorkItem], origin: Optional[Cell] = None
    ) -> None:
        self.job_id = job_id
        self.job_type = job_type
        self.origin = origin
        self.items: Tuple[WorkItem, ...] = tuple(items)
        self.sections = partition(self.items)
        self.assignment: Dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return all(section.exhausted for section in self.sections)

    def participants(self) -> List[str]:
        with self._lock:
            return sorted(self.assignment)

    def progress(self) -> JobProgress:
        with self._lock:
            claimed = sum(section.cursor for section in self.sections)
        total = len(self.items)
        percent = round(100.0 * claimed / total, 1) if total else 100.0
        return JobProgress(claimed, total, percent)

    def assign(self, agent_id: str) -> Optional[WorkSection]:
        with self._lock:
            return self._assign_locked(agent_id)

    def next_item(self, agent_id: str) -> Optional[WorkItem]:
        with self._lock:
            index = self.assignment.get(agent_id)
            if index is None or self.sections[index].exhausted:
                section = self._assign_locked(agent_id)
                if section is None:
                    return None
                index = self.assignment[agent_id]
            return self.sections[index].claim()

    def _assign_locked(self, agent_id: str) -> Optional[WorkSection]:
        current = self.assignment.get(agent_id)
        if current is not None and not self.sections[current].exhausted:
            return self.sections[current]
        taken = {idx for agent, idx in self.assignment.items() if agent != agent_id}
        open_sections = [i for i, section in enumerate(self.sections) if not section.exhausted]
        if not open_sections:
            return None
        free = [i for i in open_sections if i not in taken]
        if free:
            choice = free[0]
        else:
            choice = max(open_sections, key=lambda i: self.sections[i].remaining)
        self.assignment[agent_id] = choice
        return self.sections[choice]

    def __repr__(self) -> str:
        return f"CollaborativeJob({self.job_id!r}, sections={self.sections!r})"


class WorkCoordinator:
    """Session-scoped registry holding at most one in-flight job per job type."""

    def __init__(self) -> None:
        self._jobs: Dict[str, CollaborativeJob] = {}
        self._lock = threading.Lock()
        self._counter = itertools.count(1)

    def register(
        self, job_type: str, items: Iterable[WorkItem], origin: Optional[Cell] = None
    ) -> CollaborativeJob:
        """Return the in-flight job of ``job_type``, creating it when there is none."""

        key = job_type.lower()
        with self._lock:
            existing = self._jobs.get(key)
            if existing is not None and not existing.is_complete:
                return existing
            job = CollaborativeJob(f"{key}-{next(self._counter)}", key, list(items), origin)
            self._jobs[key] = job
        logger.info("Registered job %s with %d items", job.job_id, len(job.items))
        return job

    def find_active(self, job_type: str) -> Optional[CollaborativeJob]:
        with self._lock:
            job = self._jobs.get(job_type.lower())
        if job is None or job.is_complete:
            return None
        return job

    def assign(self, job: CollaborativeJob, agent_id: str) -> Optional[WorkSection]:
        section = job.assign(agent_id)
        if section is not None:
            logger.info("%s assigned to %s section of %s", agent_id, section.name, job.job_id)
        return section

    def next_item(self, job: CollaborativeJob, agent_id: str) -> Optional[WorkItem]:
        item = job.next_item(agent_id)
        if job.is_complete:
            self.retire(job)
        return item

    def retire(self, job: CollaborativeJob) -> None:
        with self._lock:
            if self._jobs.get(job.job_type) is job:
                del self._jobs[job.job_type]
                logger.info("Retired job %s", job.job_id)

    def active_jobs(self) -> List[CollaborativeJob]:
        with self._lock:
            return list(self._jobs.values())
