"""
Unit tests for the command line interface.
"""

from typer.testing import CliRunner

from autonomous_mas import __version__
from autonomous_mas.cli import app, seed_tasks
from autonomous_mas.models import TaskPriority

runner = CliRunner()


class TestCommands:
    """Test CLI commands."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_roster(self):
        result = runner.invoke(app, ["roster"])

        assert result.exit_code == 0
        assert "Default Roster" in result.output

    def test_show_config(self):
        result = runner.invoke(app, ["show-config"])

        assert result.exit_code == 0
        assert "execution_interval" in result.output

    def test_short_run(self):
        """Test a short run processes the seeded tasks and prints a summary."""
        result = runner.invoke(app, [
            "run",
            "--tasks", "3",
            "--duration", "0.5",
            "--delay", "0",
            "--execution-interval", "0.05",
            "--log-level", "ERROR",
        ])

        assert result.exit_code == 0
        assert "3 completed" in result.output


class TestSeedTasks:
    """Test demo task seeding."""

    def test_cycles_types_and_priorities(self):
        tasks = seed_tasks(6)

        assert [t.task_type for t in tasks[:3]] == ["development", "creative", "analysis"]
        assert tasks[3].task_type == "development"
        assert tasks[0].priority is TaskPriority.LOW
        assert tasks[0].task_id == "demo-001"
        assert len({t.task_id for t in tasks}) == 6
