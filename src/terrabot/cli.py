"""Command line interface for terrabot."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .actions.registry import default_registry
from .config import PROVIDERS, AgentSettings, SessionConfig
from .log import setup_logging
from .planning.planner import OfflinePlanner, create_planner
from .planning.prompts import AgentContext
from .session import WorldSession
from .sim import ChatLog, GridNavigator, GridWorld
from .tasks.base import PlanResult

app = typer.Typer(help="Natural-language agents for a tile world")
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Root log level"),
    log_file: Optional[Path] = typer.Option(None, help="Also write logs to this file"),
) -> None:
    setup_logging(log_level.upper(), str(log_file) if log_file else None)


def _load(config_path: Optional[Path]) -> SessionConfig:
    if config_path is None:
        return SessionConfig(name="session", settings=AgentSettings().with_environment())
    return SessionConfig.from_file(config_path)


def _render_result(result: PlanResult) -> None:
    colour = {"success": "green", "partial": "yellow", "failure": "red"}[result.status.value]
    console.print(f"[bold {colour}]{result.status.value.upper()}[/] {result.plan or ''}")
    if result.reasoning:
        console.print(f"[dim]{result.reasoning}[/]")
    if result.error:
        console.print(f"[yellow]{result.error}[/]")
    table = Table(title="Tasks", show_lines=True)
    table.add_column("#")
    table.add_column("Action")
    table.add_column("Parameters")
    for index, task in enumerate(result.tasks, start=1):
        params = ", ".join(f"{key}={value}" for key, value in task.parameters.items())
        table.add_row(str(index), task.action, params)
    console.print(table)
    for note in result.rejected:
        console.print(f"[red]rejected[/] {note}")


@app.command()
def plan(
    command: str = typer.Argument(..., help="Natural-language command"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Session YAML"),
    offline: bool = typer.Option(False, help="Use the keyword planner even when keys are set"),
    agent: str = typer.Option("Terra", help="Agent name used in the prompt"),
) -> None:
    """Plan one command and print the resulting task list."""

    config = _load(config_path)
    planner = OfflinePlanner() if offline else create_planner(config.settings, agent)
    context = AgentContext(name=agent, position=(0, 0))
    _render_result(planner.plan(context, command))


def _parse_commands(lines: List[str], agents: List[str]) -> Dict[str, List[str]]:
    """``"name: text"`` targets one agent; anything else goes to every agent."""

    routed: Dict[str, List[str]] = {name: [] for name in agents}
    for line in lines:
        head, sep, tail = line.partition(":")
        if sep and head.strip() in routed:
            routed[head.strip()].append(tail.strip())
        else:
            for name in agents:
                routed[name].append(line)
    return routed


@app.command()
def simulate(
    config_path: Path = typer.Argument(..., help="Session YAML"),
    command: List[str] = typer.Option([], "--command", "-c", help="'agent: text' or text for all"),
    ticks: int = typer.Option(600, help="Ticks to run"),
) -> None:
    """Run agents in the in-memory grid world and report what they did."""

    config = SessionConfig.from_file(config_path)
    spec = config.world
    world = GridWorld(spec.width, spec.height, spec.surface)
    for index, player in enumerate(spec.players):
        world.add_entity(player, "player", (spec.width // 2 + index * 3, spec.surface - 1))
    chat = ChatLog()
    agents = config.agents or ["Terra"]
    console.print(f"[bold green]Simulating[/] {config.name} with {', '.join(agents)}")

    registry = default_registry(config.actions)
    with WorldSession(world, GridNavigator(world), config.settings, chat=chat, registry=registry) as session:
        for offset, name in enumerate(agents):
            x = spec.width // 2 - 3 - offset * 2
            session.spawn(name, (x, spec.surface - 1))
        routed = _parse_commands(command, agents)
        for name, lines in config.commands.items():
            routed[name] = lines + routed.get(name, [])
        pending = []
        for name, lines in routed.items():
            for line in lines:
                pending.append(session.submit_command(name, line))
                # A new command replaces queued work, so plans must land in submission order.
                pending[-1].result()

        progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
        )
        with progress:
            bar = progress.add_task("ticking", total=ticks)
            for _ in range(ticks):
                session.tick()
                session.cleanup()
                progress.advance(bar)

        table = Table(title="Agents", show_lines=True)
        table.add_column("Agent")
        table.add_column("Position")
        table.add_column("Current action")
        table.add_column("Recent actions")
        for executor in session.agents():
            status = executor.status()
            table.add_row(
                executor.name,
                str(tuple(status["position"])),
                status["action"] or "-",
                "\n".join(executor.recent_actions(5)) or "-",
            )
        console.print(table)

        jobs = session.coordinator.active_jobs()
        if jobs:
            job_table = Table(title="Shared jobs")
            job_table.add_column("Job")
            job_table.add_column("Participants")
            job_table.add_column("Progress")
            for job in jobs:
                claimed, total, percent = job.progress()
                job_table.add_row(job.job_id, ", ".join(job.participants()), f"{claimed}/{total} ({percent}%)")
            console.print(job_table)

    console.rule("Chat")
    for speaker, message in chat.lines:
        console.print(f"[bold]{speaker}[/]: {message}")


@app.command()
def providers(config_path: Optional[Path] = typer.Option(None, "--config", help="Session YAML")) -> None:
    """Show the configured provider and which credentials are present."""

    settings = _load(config_path).settings
    table = Table(title="Providers")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Key")
    table.add_column("Active")
    for name in PROVIDERS:
        key = "[green]set[/]" if settings.api_key(name) else "[red]missing[/]"
        active = "*" if name == settings.ai_provider else ""
        table.add_row(name, getattr(settings, f"{name}_model"), key, active)
    console.print(table)
    if not settings.has_credentials():
        console.print("[yellow]No credentials found; commands use the offline keyword planner.[/]")


@app.command()
def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Session YAML"),
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(8000),
    tick_rate: float = typer.Option(60.0, help="World ticks per second"),
) -> None:
    """Serve the HTTP command intake over an in-memory world."""

    import uvicorn

    from .web.server import create_app

    config = _load(config_path)
    spec = config.world
    world = GridWorld(spec.width, spec.height, spec.surface)
    for index, player in enumerate(spec.players):
        world.add_entity(player, "player", (spec.width // 2 + index * 3, spec.surface - 1))
    registry = default_registry(config.actions)
    session = WorldSession(world, GridNavigator(world), config.settings, registry=registry)
    for name in config.agents:
        session.spawn(name)
    console.print(f"[bold green]Serving[/] {config.name} on http://{host}:{port}")
    try:
        uvicorn.run(create_app(session, tick_rate=tick_rate), host=host, port=port)
    finally:
        session.shutdown(wait=False)


if __name__ == "__main__":  # pragma: no cover
    app()
