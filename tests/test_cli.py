import pathlib

from typer.testing import CliRunner

from terrabot.cli import _parse_commands, app

CONFIG = pathlib.Path(__file__).resolve().parents[1] / "configs" / "session.yaml"

runner = CliRunner()


def test_plan_offline():
    result = runner.invoke(app, ["plan", "mine iron", "--offline"])

    assert result.exit_code == 0, result.output
    assert "SUCCESS" in result.output
    assert "target=iron" in result.output


def test_providers_without_keys():
    result = runner.invoke(app, ["providers"])

    assert result.exit_code == 0, result.output
    assert "offline keyword planner" in result.output


def test_simulate_shipped_config():
    result = runner.invoke(app, ["simulate", str(CONFIG), "--ticks", "30"])

    assert result.exit_code == 0, result.output
    assert "Starting to build a house" in result.output
    assert "Joining collaborative build of house" in result.output


def test_command_routing():
    routed = _parse_commands(["Nova: dig down", "follow me"], ["Terra", "Nova"])

    assert routed == {"Terra": ["follow me"], "Nova": ["dig down", "follow me"]}
