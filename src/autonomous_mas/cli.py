"""
Command Line Interface for the Autonomous MAS engine.

This module provides CLI commands for inspecting the default roster and the
effective configuration, and for running the engine against an in-memory
task store and the echo backend.
"""

import asyncio
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from autonomous_mas import __version__
from autonomous_mas.agents.roster import DEFAULT_ROSTER
from autonomous_mas.config.settings import EngineSettings, get_settings
from autonomous_mas.core.logging import get_logger, setup_logging
from autonomous_mas.models import Task, TaskPriority, TaskStatus
from autonomous_mas.orchestration.backend import EchoExecutor
from autonomous_mas.orchestration.engine import AutonomousExecutionEngine
from autonomous_mas.orchestration.store import InMemoryTaskStore

app = typer.Typer(
    name="autonomous-mas",
    help="Autonomous MAS execution engine CLI",
    add_completion=False,
)
console = Console()

DEMO_TASKS = [
    ("development", "Generate the billing service endpoint code"),
    ("creative", "Write the launch announcement blog post"),
    ("analysis", "Analyze weekly signup conversion data"),
]


@app.command()
def version():
    """Show version information."""
    console.print(f"Autonomous MAS v{__version__}")


@app.command()
def roster():
    """Show the default agent roster."""
    table = Table(title="Default Roster")
    table.add_column("Agent", style="cyan")
    table.add_column("Role", style="magenta")
    table.add_column("Capabilities")
    table.add_column("Healing")
    table.add_column("Retries", justify="right")

    for entry in DEFAULT_ROSTER:
        table.add_row(
            entry["agent_id"],
            entry["role"],
            ", ".join(entry["capabilities"]),
            ", ".join(entry["strategies"]),
            str(entry["max_retries"]),
        )
    console.print(table)


@app.command()
def show_config():
    """Show the effective engine configuration."""
    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"❌ Configuration invalid: {e}", style="red")
        sys.exit(1)

    table = Table(title="Engine Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


@app.command()
def run(
    tasks: int = typer.Option(9, help="Number of demo tasks to seed"),
    duration: float = typer.Option(10.0, help="Seconds to run the engine"),
    delay: float = typer.Option(0.1, help="Echo backend delay per task"),
    fail_type: Optional[List[str]] = typer.Option(None, help="Task types the backend fails"),
    execution_interval: float = typer.Option(0.5, help="Execution cycle interval in seconds"),
    log_level: str = typer.Option("WARNING", help="Log level"),
):
    """Run the engine on seeded demo tasks and print the outcome."""
    setup_logging(log_level)
    logger = get_logger("cli")

    try:
        settings = EngineSettings(
            execution_interval=execution_interval,
            health_interval=max(execution_interval * 5, 1.0),
            conflict_interval=max(execution_interval * 2, 0.5),
            log_level=log_level,
        )
    except Exception as e:
        console.print(f"❌ Configuration invalid: {e}", style="red")
        sys.exit(1)

    store = InMemoryTaskStore(seed_tasks(tasks))
    executor = EchoExecutor(delay=delay, fail_types=set(fail_type or ()))
    engine = AutonomousExecutionEngine(store, executor, settings=settings)

    logger.info("Running engine", tasks=tasks, duration=duration)
    console.print(f"🚀 Running engine for {duration:.1f}s with {tasks} tasks", style="blue")
    asyncio.run(_run_for(engine, duration))

    print_agents(engine)
    print_healing(engine)
    console.print(
        f"Tasks: {store.count(TaskStatus.COMPLETED)} completed, "
        f"{store.count(TaskStatus.FAILED)} failed, "
        f"{store.count(TaskStatus.PENDING) + store.count(TaskStatus.PROCESSING)} outstanding",
        style="green",
    )


def seed_tasks(count: int) -> List[Task]:
    """Demo tasks cycling through the mapped task types."""
    priorities = list(TaskPriority)
    seeded = []
    for i in range(count):
        task_type, description = DEMO_TASKS[i % len(DEMO_TASKS)]
        seeded.append(Task(
            task_id=f"demo-{i + 1:03d}",
            task_type=task_type,
            priority=priorities[i % len(priorities)],
            description=description,
            payload={"index": i},
        ))
    return seeded


async def _run_for(engine: AutonomousExecutionEngine, duration: float) -> None:
    await engine.start()
    try:
        await asyncio.sleep(duration)
    finally:
        await engine.stop()


def print_agents(engine: AutonomousExecutionEngine) -> None:
    table = Table(title="Agents")
    table.add_column("Agent", style="cyan")
    table.add_column("Status", style="magenta")
    table.add_column("Queue", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Success Rate", justify="right")

    for agent_id, snapshot in engine.agent_status().items():
        table.add_row(
            agent_id,
            snapshot.status,
            str(snapshot.queue_length),
            str(snapshot.tasks_completed),
            str(snapshot.tasks_failed),
            f"{snapshot.success_rate:.2f}",
        )
    console.print(table)


def print_healing(engine: AutonomousExecutionEngine) -> None:
    actions = engine.healing_history()
    if not actions:
        return

    table = Table(title="Healing Actions")
    table.add_column("Agent", style="cyan")
    table.add_column("Issue")
    table.add_column("Strategy", style="magenta")
    table.add_column("Result")
    table.add_column("Recovery (ms)", justify="right")

    for action in actions:
        table.add_row(
            action.agent_id,
            action.issue.value,
            action.strategy.value,
            "✅" if action.success else "❌",
            f"{action.recovery_time * 1000:.1f}",
        )
    console.print(table)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
