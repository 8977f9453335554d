import pytest

from terrabot.actions.base import ActionContext
from terrabot.coordinator import WorkCoordinator
from terrabot.sim import ChatLog, GridNavigator, GridWorld
from terrabot.world import Body

SURFACE = 30


@pytest.fixture(autouse=True)
def _no_api_keys(monkeypatch):
    for variable in ("OPENAI_API_KEY", "GROQ_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(variable, raising=False)


@pytest.fixture
def world():
    return GridWorld(width=80, height=60, surface=SURFACE)


@pytest.fixture
def navigator(world):
    return GridNavigator(world)


@pytest.fixture
def coordinator():
    return WorkCoordinator()


@pytest.fixture
def chat():
    return ChatLog()


@pytest.fixture
def make_context(world, navigator, coordinator, chat):
    def factory(name="Terra", position=(10, SURFACE - 1)):
        body = Body(name=name, position=position)
        return ActionContext(
            body=body,
            world=world,
            navigator=navigator,
            coordinator=coordinator,
            chat=lambda message: chat.say(name, message),
        )

    return factory


@pytest.fixture
def run_action():
    def runner(action, limit=1000):
        action.start()
        for _ in range(limit):
            if action.is_complete:
                break
            action.tick()
        return action.outcome

    return runner
