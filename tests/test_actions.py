import pytest

from terrabot.actions import (
    BuildAction,
    CombatAction,
    CombatState,
    DigAction,
    ExploreAction,
    FollowAction,
    MineAction,
    PathfindAction,
    PlaceAction,
    SayAction,
    default_registry,
)
from terrabot.actions.base import BaseAction
from terrabot.config import ConfigError
from terrabot.tasks.base import Task
from terrabot.world import distance

from conftest import SURFACE

GROUND = SURFACE - 1


class CountingAction(BaseAction):
    name = "counting"
    timeout_ticks = 3

    def __init__(self, context, task):
        super().__init__(context, task)
        self.started = 0
        self.ticked = 0
        self.cancelled = 0

    def on_start(self):
        self.started += 1

    def on_tick(self):
        self.ticked += 1

    def on_cancel(self):
        self.cancelled += 1


def test_tick_before_start_is_a_noop(make_context):
    action = CountingAction(make_context(), Task("counting"))

    action.tick()

    assert action.ticked == 0
    assert not action.is_started


def test_timeout_forces_failure(make_context, run_action):
    action = CountingAction(make_context(), Task("counting"))

    outcome = run_action(action)

    assert not outcome.succeeded
    assert "timed out" in outcome.message
    assert action.ticked == 2
    assert action.cancelled == 1


def test_cancel_is_terminal_and_runs_hook_once(make_context):
    action = CountingAction(make_context(), Task("counting"))
    action.start()

    action.cancel()
    action.cancel()
    action.tick()

    assert action.is_complete and action.is_cancelled
    assert action.outcome.message == "Cancelled"
    assert not action.outcome.requires_replanning
    assert action.cancelled == 1
    assert action.ticked == 0


def test_tick_after_complete_keeps_outcome(make_context, chat):
    action = SayAction(make_context(), Task("say", {"message": "hi there"}))
    action.start()
    outcome = action.outcome

    for _ in range(5):
        action.tick()

    assert action.outcome is outcome
    assert outcome.succeeded
    assert chat.said("Terra") == ["hi there"]


def test_registry_maps_actions(make_context):
    registry = default_registry()
    context = make_context()

    assert isinstance(registry.create(Task("attack"), context), CombatAction)
    assert isinstance(registry.create(Task("explore", {"direction": "left"}), context), ExploreAction)
    assert registry.create(Task("boss", {"boss": "Golem"}), context) is None
    assert "mine" in registry


def test_registry_overrides_from_import_paths(make_context):
    registry = default_registry({"boss": "terrabot.actions.chat:SayAction"})

    action = registry.create(Task("boss", {"boss": "Golem", "message": "on my way"}), make_context())

    assert isinstance(action, SayAction)
    with pytest.raises(ConfigError):
        default_registry({"boss": "terrabot.actions.chat.SayAction"})


def test_explore_walks_the_requested_distance(make_context, run_action):
    context = make_context()
    action = ExploreAction(context, Task("explore", {"direction": "right", "distance": 8}))

    outcome = run_action(action)

    assert outcome.succeeded
    assert outcome.message == f"Explored right to (18, {GROUND})"
    assert context.body.position == (18, GROUND)
    assert action.timeout_ticks == 8 * 120


def test_explore_rejects_bad_direction(make_context, run_action):
    outcome = run_action(ExploreAction(make_context(), Task("explore", {"direction": "sideways"})))

    assert not outcome.succeeded
    assert outcome.message == "Invalid direction: sideways"
    assert not outcome.requires_replanning


def test_explore_halves_reach_past_the_world_edge(make_context, run_action):
    context = make_context()

    outcome = run_action(ExploreAction(context, Task("explore", {"direction": "right", "distance": 200})))

    assert outcome.succeeded
    assert context.body.position == (60, GROUND)


def test_explore_fails_when_walled_in(make_context, world, run_action):
    world.fill([(9, y) for y in range(20, SURFACE)] + [(11, y) for y in range(20, SURFACE)], "stone")
    world.place((10, 20), "stone")

    outcome = run_action(ExploreAction(make_context(), Task("explore", {"direction": "right", "distance": 40})))

    assert not outcome.succeeded
    assert outcome.message == "Nothing reachable to the right"


def test_pathfind_arrives(make_context, run_action):
    context = make_context()

    outcome = run_action(PathfindAction(context, Task("pathfind", {"x": 15, "y": GROUND})))

    assert outcome.succeeded
    assert outcome.message == f"Arrived at (15, {GROUND})"
    assert context.body.position == (15, GROUND)


def test_pathfind_into_rock_fails(make_context, run_action):
    outcome = run_action(PathfindAction(make_context(), Task("pathfind", {"x": 15, "y": SURFACE + 5})))

    assert outcome.message == "No path found"


def test_follow_closes_the_gap(make_context, world, run_action):
    world.add_entity("Steve", "player", (20, GROUND))
    context = make_context()
    action = FollowAction(context, Task("follow", {"target": "Steve"}))

    run_action(action, limit=120)

    assert not action.is_complete
    assert distance(context.body.position, (20, GROUND)) <= 2
    assert context.body.owner == "Steve"


def test_follow_teleports_when_far_behind(make_context, world):
    world.add_entity("Steve", "player", (70, GROUND))
    context = make_context()
    action = FollowAction(context, Task("follow"))
    action.start()

    action.tick()

    assert distance(context.body.position, (70, GROUND)) <= 2


def test_follow_finishes_after_duration(make_context, world, run_action):
    world.add_entity("Steve", "player", (12, GROUND))

    outcome = run_action(FollowAction(make_context(), Task("follow", {"duration": 5})))

    assert outcome.succeeded
    assert outcome.message == "Finished following Steve"


def test_follow_without_player_fails(make_context, run_action):
    outcome = run_action(FollowAction(make_context(), Task("follow", {"target": "Ghost"})))

    assert not outcome.succeeded


def test_mine_collects_target_tile(make_context, world, run_action):
    world.place((11, SURFACE), "iron")
    context = make_context()

    outcome = run_action(MineAction(context, Task("mine", {"target": "iron"})))

    assert outcome.succeeded
    assert outcome.message == "Successfully mined 1 iron tiles"
    assert world.tile_at((11, SURFACE)) is None
    assert context.body.inventory["iron"] == 1


def test_mine_partial_when_targets_run_out(make_context, world, run_action):
    world.place((11, SURFACE), "gold")
    world.place((12, SURFACE), "gold")

    outcome = run_action(MineAction(make_context(), Task("mine", {"target": "gold", "quantity": 5})))

    assert outcome.succeeded
    assert outcome.message == "Mined 2/5 gold tiles (no more targets found)"


def test_mine_without_targets_fails(make_context, run_action):
    outcome = run_action(MineAction(make_context(), Task("mine", {"target": "hellstone"})))

    assert not outcome.succeeded
    assert outcome.requires_replanning
    assert outcome.message == "No hellstone tiles found within range"


def test_dig_down(make_context, world, run_action):
    context = make_context()

    outcome = run_action(DigAction(context, Task("dig", {"direction": "down", "depth": 3})))

    assert outcome.succeeded
    assert context.body.position == (10, GROUND + 3)
    assert world.tile_at((10, SURFACE)) is None
    assert context.body.inventory["dirt"] == 3


def test_dig_rejects_bad_direction(make_context, run_action):
    outcome = run_action(DigAction(make_context(), Task("dig", {"direction": "diagonal"})))

    assert not outcome.succeeded


def test_place_relative_tile(make_context, world, run_action):
    outcome = run_action(PlaceAction(make_context(), Task("place", {"tile": "torch", "x": 2, "y": -1})))

    assert outcome.succeeded
    assert world.tile_at((12, GROUND - 1)) == "torch"


def test_build_house_alone(make_context, world, coordinator, chat, run_action):
    context = make_context(position=(40, GROUND))

    outcome = run_action(BuildAction(context, Task("build", {"structure": "house"})), limit=20000)

    assert outcome.succeeded
    assert outcome.message == "Successfully built house"
    lines = chat.said("Terra")
    assert lines[0].startswith("Starting to build a house at (")
    assert lines[-1] == "Finished building house!"
    assert coordinator.active_jobs() == []
    assert "door" in {world.tile_at((x, GROUND - 1)) for x in range(20, 60)}


def test_two_builders_share_one_job(make_context, coordinator, chat):
    first = BuildAction(make_context("Terra", (40, GROUND)), Task("build", {"structure": "house"}))
    second = BuildAction(make_context("Nova", (44, GROUND)), Task("build", {"structure": "house"}))
    first.start()
    second.start()

    assert len(coordinator.active_jobs()) == 1
    assert first.job is second.job
    assert first.job.participants() == ["Nova", "Terra"]
    assert chat.said("Nova") == ["Joining collaborative build of house"]

    for _ in range(20000):
        if first.is_complete and second.is_complete:
            break
        first.tick()
        second.tick()

    messages = sorted([first.outcome.message, second.outcome.message])
    assert messages == ["Completed my part of building house", "Successfully built house"]
    assert first.placed + second.placed == len(first.job.items)


def test_combat_kills_target(make_context, world, chat, run_action):
    world.add_entity("zombie", "hostile", (13, GROUND), health=30)

    outcome = run_action(
        CombatAction(make_context(), Task("attack", {"target": "zombie", "killCount": 1})), limit=300
    )

    assert outcome.succeeded
    assert outcome.message == "Combat complete! Killed 1 enemies."
    assert chat.said("Terra") == ["Defeated zombie! (1 kills)"]


def test_combat_gives_up_when_nothing_found(make_context, run_action):
    outcome = run_action(CombatAction(make_context(), Task("attack", {"target": "slime"})), limit=700)

    assert not outcome.succeeded
    assert outcome.message == "No slime targets found after searching for 10 seconds."


def test_combat_retreats_when_hurt(make_context, world):
    world.add_entity("zombie", "hostile", (12, GROUND), health=500)
    context = make_context()
    context.body.health = 50
    action = CombatAction(context, Task("attack"))
    action.start()

    action.tick()

    assert action.state is CombatState.RETREATING
    assert context.body.position[0] < 10
