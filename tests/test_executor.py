import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from terrabot.actions import FollowAction, IdleFollowAction, MineAction
from terrabot.executor import Executor
from terrabot.planning.planner import OfflinePlanner
from terrabot.tasks.base import PlanResult, PlanStatus, Task
from terrabot.world import Body

from conftest import SURFACE

GROUND = SURFACE - 1


class ScriptedPlanner:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.commands = []

    def plan(self, context, command):
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def make_executor(world, navigator, coordinator, chat):
    def factory(planner=None, delay=0, position=(10, GROUND), **kwargs):
        return Executor(
            Body(name="Terra", position=position),
            world,
            navigator,
            coordinator,
            planner=planner,
            chat=chat,
            action_tick_delay=delay,
            **kwargs,
        )

    return factory


def _plan(*tasks, plan="Chatting", status=PlanStatus.SUCCESS, error=None):
    return PlanResult(reasoning="asked to", plan=plan, tasks=tasks, status=status, error=error)


def _say(message):
    return Task("say", {"message": message})


def _run_until_idle(executor, limit=500):
    for _ in range(limit):
        executor.tick()
        if executor.current_goal is None and not executor.tasks:
            break


def test_requires_body(world, navigator, coordinator):
    with pytest.raises(ValueError):
        Executor(None, world, navigator, coordinator)


def test_mine_command_runs_to_completion(make_executor, world, chat):
    world.place((11, SURFACE), "iron")
    executor = make_executor(planner=OfflinePlanner())

    result = executor.process("mine iron")
    executor.tick()

    assert result.tasks[0].action == "mine"
    assert isinstance(executor.current, MineAction)
    assert executor.current_goal == "Mining iron"

    _run_until_idle(executor)
    executor.tick()

    assert chat.said("Terra") == ["Mining iron", "I've completed: Mining iron"]
    assert "Goal completed: Mining iron" in executor.recent_actions()
    assert executor.body.inventory == {"iron": 1}
    assert isinstance(executor.current, IdleFollowAction)


def test_action_delay_paces_tasks(make_executor, chat):
    executor = make_executor(delay=5)
    executor.submit(_plan(_say("one"), _say("two")))

    for _ in range(4):
        executor.tick()
    assert chat.said("Terra") == ["Chatting"]

    executor.tick()
    assert chat.said("Terra") == ["Chatting", "one"]

    for _ in range(4):
        executor.tick()
    assert chat.said("Terra") == ["Chatting", "one"]

    executor.tick()
    executor.tick()
    assert chat.said("Terra") == ["Chatting", "one", "two", "I've completed: Chatting"]


def test_idle_behavior_yields_to_new_work(make_executor, chat):
    executor = make_executor()
    executor.tick()
    idle = executor.current
    assert isinstance(idle, IdleFollowAction)
    assert executor.is_idle

    executor.submit(_plan(_say("hello")))
    executor.tick()

    assert idle.is_cancelled
    assert "hello" in chat.said("Terra")


def test_stop_clears_queue_and_goal(make_executor, world):
    world.add_entity("Steve", "player", (20, GROUND))
    executor = make_executor()
    executor.submit(_plan(Task("follow", {"target": "Steve"}), _say("later"), plan="Following Steve"))
    executor.tick()
    follow = executor.current
    assert isinstance(follow, FollowAction)
    assert executor.status()["action"] == "Following Steve"

    executor.request_stop()
    executor.tick()

    assert follow.is_cancelled
    assert not executor.tasks
    assert executor.current_goal is None
    assert isinstance(executor.current, IdleFollowAction)


def test_new_command_replaces_current_work(make_executor, world):
    world.add_entity("Steve", "player", (20, GROUND))
    executor = make_executor(planner=OfflinePlanner())
    executor.process("follow me")
    executor.tick()
    follow = executor.current

    executor.process("say hi")
    executor.tick()

    assert follow.is_cancelled
    assert executor.current_goal == "Saying something"


def test_failed_plan_is_reported(make_executor, chat):
    executor = make_executor()
    executor.submit(PlanResult.failure("AI request failed: timeout"))

    executor.tick()

    assert chat.said("Terra") == ["I had trouble understanding that command: AI request failed: timeout"]
    assert executor.current_goal is None


def test_empty_plan_says_reasoning(make_executor, chat):
    executor = make_executor()
    executor.submit(PlanResult(reasoning="Just saying hello back.", status=PlanStatus.SUCCESS))

    executor.tick()

    assert chat.said("Terra") == ["Just saying hello back."]


def test_failed_action_records_replan_reason(make_executor, chat):
    planner = ScriptedPlanner(_plan(Task("mine", {"target": "hellstone"}), plan="Mining hellstone"))
    executor = make_executor(planner=planner)

    executor.process("get hellstone")
    executor.tick()
    executor.tick()

    assert executor.replan_reason == "No hellstone tiles found within range"
    assert "Action failed, may require replanning: No hellstone tiles found within range" in (
        executor.recent_actions()
    )
    assert executor.current_goal is None
    assert planner.commands == ["get hellstone"]
    assert chat.said("Terra") == ["Mining hellstone"]


def test_unsupported_task_is_skipped(make_executor, chat):
    executor = make_executor()
    executor.submit(_plan(Task("boss", {"boss": "KingSlime"}), plan="Fighting King Slime"))

    executor.tick()

    assert chat.said("Terra") == ["Fighting King Slime", "I don't know how to boss yet."]
    assert executor.current_goal is None


def test_planner_crash_becomes_chat(make_executor, chat):
    executor = make_executor(planner=ScriptedPlanner(error=RuntimeError("boom")))

    assert executor.process("do something") is None
    executor.tick()

    assert chat.said("Terra") == ["Sorry, I encountered an error: boom"]


def test_missing_planner_is_reported(make_executor, chat):
    executor = make_executor()

    executor.process("mine iron")
    executor.tick()

    assert chat.said("Terra") == ["I had trouble understanding that command: no planner configured"]


def test_partial_plan_still_executes(make_executor, chat, caplog):
    executor = make_executor()
    partial = _plan(_say("salvaged"), status=PlanStatus.PARTIAL, error="Recovered tasks from malformed reply")

    with caplog.at_level(logging.WARNING, logger="terrabot.executor"):
        executor.tick()
        executor.submit(partial)
        executor.tick()

    assert "salvaged" in chat.said("Terra")
    assert "partial plan" in caplog.text


def test_chat_responses_can_be_silenced(make_executor, chat):
    executor = make_executor(enable_chat_responses=False)
    executor.submit(_plan(_say("still spoken")))

    executor.tick()
    executor.tick()

    assert chat.said("Terra") == ["still spoken"]


def test_snapshot_describes_surroundings(make_executor, world):
    world.add_entity("Steve", "player", (20, GROUND))
    world.add_entity("zombie", "hostile", (15, GROUND))
    world.add_entity("Alex", "player", (79, GROUND))
    executor = make_executor()
    executor.body.collect("wood", 12)

    context = executor.snapshot()

    assert context.depth == "Surface"
    assert context.nearby_players == [("Steve", 10)]
    assert context.nearby_hostiles == [("zombie", 5)]
    assert context.inventory == ["wood x12"]


def test_snapshot_lists_notable_tiles_and_conversation(make_executor, world):
    world.place((12, SURFACE + 2), "iron")
    world.place((14, SURFACE + 3), "iron")
    world.place((10, SURFACE + 5), "gold")
    world.place((60, SURFACE + 5), "gold")
    executor = make_executor()
    executor.submit(_plan(_say("hi")), "say hi")
    executor.tick()

    context = executor.snapshot()

    assert context.nearby_tiles == [("iron", 2, 3), ("gold", 1, 6)]
    assert context.conversation == ["user: say hi", "assistant: Chatting", "assistant: hi"]


def test_background_planning_leaves_tick_state_alone(make_executor):
    executor = make_executor(planner=OfflinePlanner())
    executor.tick()
    idle = executor.current
    published = executor.latest_context()

    with ThreadPoolExecutor(max_workers=1) as pool:
        result = pool.submit(executor.process, "say hi").result(timeout=5)

    assert result.succeeded
    assert not idle.is_cancelled
    assert executor.memory.conversation.dump() == []
    assert executor.latest_context() is published

    executor.tick()

    assert idle.is_cancelled
    assert executor.memory.conversation.dump()[0].describe() == "user: say hi"
    assert executor.latest_context() is not published


def test_status_is_published_at_end_of_tick(make_executor):
    executor = make_executor()
    executor.submit(_plan(_say("one"), _say("two"), plan="Talking"))

    assert executor.status()["goal"] is None

    executor.tick()
    status = executor.status()
    status["queued"].append("tampered")

    assert executor.status()["goal"] == "Talking"
    assert executor.status()["queued"] == ["say(message=two)"]
