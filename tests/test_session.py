import threading

import pytest

from terrabot.actions import BuildAction, FollowAction
from terrabot.config import AgentSettings
from terrabot.planning.planner import OfflinePlanner
from terrabot.session import SessionError, WorldSession
from terrabot.tasks.base import PlanResult, PlanStatus, Task

from conftest import SURFACE

GROUND = SURFACE - 1


@pytest.fixture
def session(world, navigator, chat):
    with WorldSession(world, navigator, AgentSettings(action_tick_delay=0), chat=chat) as session:
        yield session


def test_spawn_uses_offline_planner_without_keys(session):
    executor = session.spawn("Terra", (10, GROUND))

    assert isinstance(executor.planner, OfflinePlanner)
    assert session.get("Terra") is executor
    assert session.names() == ["Terra"]


def test_spawn_rejects_duplicates_and_overflow(world, navigator):
    with WorldSession(world, navigator, AgentSettings(max_active_agents=2)) as session:
        session.spawn("Terra")
        with pytest.raises(SessionError):
            session.spawn("Terra")
        session.spawn("Nova")
        with pytest.raises(SessionError):
            session.spawn("Luna")
        with pytest.raises(SessionError):
            session.spawn("  ")

        assert session.names() == ["Nova", "Terra"]


def test_spawn_point_is_next_to_a_player(session, world):
    world.add_entity("Steve", "player", (20, GROUND))

    executor = session.spawn("Terra")

    assert executor.body.position == (22, GROUND)


def test_two_agents_join_one_build(session, chat):
    session.spawn("Terra", (40, GROUND))
    session.spawn("Nova", (44, GROUND))

    futures = [session.submit_command(name, "build a house") for name in ("Terra", "Nova")]
    for future in futures:
        future.result(timeout=5)
    session.tick()

    jobs = session.coordinator.active_jobs()
    assert len(jobs) == 1
    assert jobs[0].participants() == ["Nova", "Terra"]
    assert isinstance(session.get("Terra").current, BuildAction)
    assert "Joining collaborative build of house" in chat.said("Nova")


def test_remove_and_unknown_agents(session):
    session.spawn("Terra", (10, GROUND))

    assert session.remove("Terra") is True
    assert session.remove("Terra") is False
    assert session.get("Terra") is None
    with pytest.raises(SessionError):
        session.stop("Terra")
    with pytest.raises(SessionError):
        session.submit_command("Terra", "mine iron")


def test_cleanup_drops_dead_agents(session):
    session.spawn("Terra", (10, GROUND))
    nova = session.spawn("Nova", (12, GROUND))
    nova.body.health = 0

    assert session.cleanup() == ["Nova"]
    assert session.names() == ["Terra"]


def test_stop_all_reaches_every_agent(session, world):
    world.add_entity("Steve", "player", (20, GROUND))
    for name in ("Terra", "Nova"):
        session.spawn(name, (10, GROUND)).process("follow me")
    session.tick()

    session.stop_all()
    session.tick()

    assert all(executor.current_goal is None for executor in session.agents())


def test_remove_cancels_on_next_tick(session, world):
    world.add_entity("Steve", "player", (20, GROUND))
    executor = session.spawn("Terra", (10, GROUND))
    executor.submit(
        PlanResult(plan="Following Steve", tasks=[Task("follow", {"target": "Steve"})], status=PlanStatus.SUCCESS)
    )
    session.tick()
    follow = executor.current
    assert isinstance(follow, FollowAction)

    session.remove("Terra")

    assert not follow.is_cancelled
    assert executor.current is follow

    session.tick()

    assert follow.is_cancelled
    assert executor.current is None
    assert executor.status()["action"] is None


def test_commands_and_removal_from_other_threads(session):
    executor = session.spawn("Terra", (10, GROUND))
    halt = threading.Event()
    errors = []

    def drive():
        try:
            while not halt.is_set():
                session.tick()
        except Exception as exc:
            errors.append(exc)

    ticker = threading.Thread(target=drive)
    ticker.start()
    try:
        futures = [session.submit_command("Terra", f"say round {n}") for n in range(5)]
        for future in futures:
            assert future.result(timeout=5).succeeded
        assert session.get("Terra").status()["name"] == "Terra"
        assert session.remove("Terra")
    finally:
        halt.set()
        ticker.join(timeout=5)
    session.tick()

    assert errors == []
    assert executor.current is None
    assert executor.status()["action"] is None
