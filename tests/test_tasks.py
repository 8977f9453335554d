import pytest

from terrabot.tasks.base import ActionOutcome, PlanResult, PlanStatus, Task


def test_task_normalizes_action_and_freezes_parameters():
    task = Task("  Mine ", {"target": "iron", "quantity": 3})

    assert task.action == "mine"
    assert task.get_str("target") == "iron"
    with pytest.raises(TypeError):
        task.parameters["target"] = "gold"


def test_typed_accessors_fall_back_to_defaults():
    task = Task("dig", {"depth": "12", "width": "wide", "fast": "yes", "nested": {"a": 1}})

    assert task.get_int("depth") == 12
    assert task.get_int("width", 1) == 1
    assert task.get_int("missing", 7) == 7
    assert task.get_float("depth") == 12.0
    assert task.get_bool("fast") is True
    assert task.get_bool("nested", False) is False
    assert task.get_str("nested", "none") == "none"
    assert task.get("nested") == {"a": 1}


def test_bool_is_not_an_int():
    task = Task("mine", {"quantity": True})

    assert task.get_int("quantity", 1) == 1


def test_describe_lists_parameters():
    assert Task("follow").describe() == "follow"
    assert Task("mine", {"target": "iron"}).describe() == "mine(target=iron)"


def test_plan_status_drives_succeeded():
    partial = PlanResult(plan="x", tasks=[Task("follow")], status=PlanStatus.PARTIAL)
    failure = PlanResult.failure("nope")

    assert partial.succeeded
    assert isinstance(partial.tasks, tuple)
    assert not failure.succeeded
    assert failure.error == "nope"
    assert failure.tasks == ()


def test_goal_prefers_plan_then_reasoning():
    assert PlanResult(plan="Build", reasoning="why").goal == "Build"
    assert PlanResult(reasoning="why").goal == "why"
    assert PlanResult().goal == "Executing command"


def test_action_outcome_constructors():
    assert ActionOutcome.succeed("ok") == ActionOutcome(True, "ok", False)
    assert ActionOutcome.fail("bad").requires_replanning
    assert not ActionOutcome.fail("bad", replan=False).requires_replanning
