import pytest
from fastapi.testclient import TestClient

from terrabot.config import AgentSettings
from terrabot.session import WorldSession
from terrabot.web import create_app

from conftest import SURFACE

GROUND = SURFACE - 1


@pytest.fixture
def session(world, navigator, chat):
    with WorldSession(world, navigator, AgentSettings(action_tick_delay=0), chat=chat) as session:
        yield session


@pytest.fixture
def client(session):
    with TestClient(create_app(session)) as client:
        yield client


def test_spawn_and_list_agents(client):
    response = client.post("/agents", json={"name": "Terra", "x": 10, "y": GROUND})

    assert response.status_code == 201
    assert response.json()["position"] == [10, GROUND]
    assert [agent["name"] for agent in client.get("/agents").json()] == ["Terra"]


def test_duplicate_spawn_conflicts(client):
    client.post("/agents", json={"name": "Terra"})

    response = client.post("/agents", json={"name": "Terra"})

    assert response.status_code == 409


def test_agent_detail_includes_recent_actions(client, session):
    client.post("/agents", json={"name": "Terra", "x": 10, "y": GROUND})
    session.get("Terra").memory.add_action("Action 'Saying something' completed successfully")
    before = client.get("/agents/Terra").json()
    session.tick()

    body = client.get("/agents/Terra").json()

    assert before["recent_actions"] == []
    assert body["recent_actions"] == ["Action 'Saying something' completed successfully"]
    assert client.get("/agents/Nova").status_code == 404


def test_commands_are_accepted(client):
    client.post("/agents", json={"name": "Terra"})

    accepted = client.post("/agents/Terra/commands", json={"text": "mine iron"})
    empty = client.post("/agents/Terra/commands", json={"text": "  "})
    unknown = client.post("/agents/Nova/commands", json={"text": "mine iron"})

    assert accepted.status_code == 202
    assert accepted.json() == {"agent": "Terra", "accepted": "mine iron"}
    assert empty.status_code == 400
    assert unknown.status_code == 404


def test_stop_and_delete(client, session):
    client.post("/agents", json={"name": "Terra"})

    assert client.post("/agents/Terra/stop").status_code == 202
    assert client.post("/agents/Nova/stop").status_code == 404
    assert client.delete("/agents/Terra").json() == {"removed": "Terra"}
    assert client.delete("/agents/Terra").status_code == 404
    assert session.names() == []


def test_jobs_report_progress(client, session):
    client.post("/agents", json={"name": "Terra", "x": 40, "y": GROUND})
    session.submit_command("Terra", "build a house").result(timeout=5)
    session.tick()

    jobs = client.get("/jobs").json()

    assert len(jobs) == 1
    assert jobs[0]["type"] == "house"
    assert jobs[0]["participants"] == ["Terra"]
    assert jobs[0]["total"] > 0
    assert 0 <= jobs[0]["percent"] < 100
