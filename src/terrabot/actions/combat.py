"""Combat: hunt hostiles of a kind until enough are killed or time runs out."""

from __future__ import annotations

import enum
import logging
from typing import List, Optional

from ..tasks.base import ActionOutcome, Task
from ..world import Cell, Entity, distance, nearest, step_toward
from .base import ActionContext, BaseAction

logger = logging.getLogger(__name__)


class CombatState(enum.Enum):
    SEARCHING = "searching"
    APPROACHING = "approaching"
    ATTACKING = "attacking"
    RETREATING = "retreating"


class CombatAction(BaseAction):
    """Inner state machine: search, approach, attack, and retreat when badly hurt."""

    name = "attack"
    melee_range = 3.0
    ranged_range = 30.0
    retreat_health = 0.3
    search_interval = 30
    max_search_ticks = 600
    attack_cooldown = 15
    safe_distance = 10.0
    search_radius = 60.0
    default_timeout_seconds = 60

    def __init__(self, context: ActionContext, task: Task) -> None:
        super().__init__(context, task)
        self.target_kind = (task.get_str("target") or task.get_str("enemy") or "any").lower()
        self.kill_goal = max(0, task.get_int("killCount", task.get_int("count", 0)))
        self.kills = 0
        self.state = CombatState.SEARCHING
        self.enemy: Optional[Entity] = None
        self.searching_for = 0
        self.cooldown = 0
        self.follower = context.follower()

    @property
    def description(self) -> str:
        return f"Fighting {self.target_kind} ({self.kills} kills, {self.state.value})"

    @property
    def attack_range(self) -> float:
        return self.ranged_range if self.context.body.ranged else self.melee_range

    def on_start(self) -> None:
        seconds = self.task.get_int("timeout", self.default_timeout_seconds)
        self.timeout_ticks = max(1, seconds) * 60
        self.enemy = self._find_enemy()
        if self.enemy is not None:
            self.state = CombatState.APPROACHING

    def on_tick(self) -> None:
        body = self.context.body
        if not body.alive:
            self.fail(f"Died while fighting. Killed {self.kills} enemies.")
            return
        if self.cooldown > 0:
            self.cooldown -= 1
        if self.state is not CombatState.RETREATING and body.health_fraction < self.retreat_health:
            logger.info("%s retreating at %.0f%% health", self.context.agent_name, body.health_fraction * 100)
            self.state = CombatState.RETREATING
        handler = {
            CombatState.SEARCHING: self._search,
            CombatState.APPROACHING: self._approach,
            CombatState.ATTACKING: self._attack,
            CombatState.RETREATING: self._retreat,
        }[self.state]
        handler()

    def on_timeout(self) -> ActionOutcome:
        return ActionOutcome.succeed(f"Combat complete! Killed {self.kills} enemies.")

    def on_cancel(self) -> None:
        self.follower.clear()

    def _search(self) -> None:
        self.searching_for += 1
        if self.searching_for % self.search_interval == 0 or self.searching_for == 1:
            self.enemy = self._find_enemy()
            if self.enemy is not None:
                self.searching_for = 0
                self.state = CombatState.APPROACHING
                return
        if self.searching_for >= self.max_search_ticks:
            if self.kills > 0:
                self.succeed(f"No more targets found. Killed {self.kills} enemies.")
            else:
                seconds = self.max_search_ticks // 60
                self.fail(f"No {self.target_kind} targets found after searching for {seconds} seconds.")

    def _approach(self) -> None:
        if not self._enemy_alive():
            return
        gap = distance(self.context.body.position, self.enemy.position)
        if gap <= self.attack_range:
            self.follower.clear()
            self.state = CombatState.ATTACKING
            return
        if self.follower.goal != self.enemy.position:
            if not self.follower.go_to(self.enemy.position):
                self._step(self.enemy.position)
                return
        self.follower.tick()

    def _attack(self) -> None:
        if not self._enemy_alive():
            return
        if distance(self.context.body.position, self.enemy.position) > self.attack_range:
            self.state = CombatState.APPROACHING
            return
        if self.cooldown > 0:
            return
        self.context.world.damage(self.enemy, self.context.body.attack_damage)
        self.cooldown = self.attack_cooldown
        if not self.enemy.active:
            self._record_kill()

    def _retreat(self) -> None:
        body = self.context.body
        threat = self.enemy if self.enemy is not None and self.enemy.active else self._find_enemy()
        if body.health_fraction >= self.retreat_health * 2 or threat is None:
            self.state = CombatState.SEARCHING if threat is None else CombatState.APPROACHING
            self.enemy = threat
            return
        if distance(body.position, threat.position) >= self.safe_distance:
            return
        away = (2 * body.position[0] - threat.position[0], 2 * body.position[1] - threat.position[1])
        self._step(away)

    def _enemy_alive(self) -> bool:
        if self.enemy is not None and self.enemy.active:
            return True
        if self.enemy is not None:
            self._record_kill()
        else:
            self.state = CombatState.SEARCHING
        return False

    def _record_kill(self) -> None:
        self.kills += 1
        self.context.say(f"Defeated {self.enemy.name}! ({self.kills} kills)")
        self.enemy = None
        self.follower.clear()
        if self.kill_goal and self.kills >= self.kill_goal:
            self.succeed(f"Combat complete! Killed {self.kills} enemies.")
            return
        self.enemy = self._find_enemy()
        self.searching_for = 0
        self.state = CombatState.APPROACHING if self.enemy is not None else CombatState.SEARCHING

    def _find_enemy(self) -> Optional[Entity]:
        hostiles: List[Entity] = self.context.world.entities("hostile")
        if self.target_kind not in ("any", "nearest", "enemy", "enemies", "hostile", "hostiles"):
            hostiles = [e for e in hostiles if self.target_kind in e.name.lower()]
        return nearest(hostiles, self.context.body.position, self.search_radius)

    def _step(self, goal: Cell) -> None:
        body = self.context.body
        nxt = step_toward(body.position, goal)
        if not self.context.world.is_solid(nxt):
            body.position = nxt
