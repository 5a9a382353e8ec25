"""Unit tests for CLI commands."""

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
import yaml
from typer.testing import CliRunner

from rigging.cli import app

runner = CliRunner()

VALID = "registry_samples:registry"
BROKEN = "registry_samples:broken_registry"


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo the logging configuration each invocation installs."""
    yield
    structlog.reset_defaults()


class TestMainApp:
    """Tests for main app options."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "Rigging" in result.stdout

    def test_help_lists_commands(self) -> None:
        """Top-level help lists every command."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ["check", "plan", "describe"]:
            assert command in result.stdout


class TestCheckCommand:
    """Tests for the check command."""

    def test_valid_registry(self) -> None:
        """A consistent registry passes."""
        result = runner.invoke(app, ["check", VALID])
        assert result.exit_code == 0
        assert "no problems found" in result.stdout

    def test_broken_registry_exits_nonzero(self) -> None:
        """Problems are listed and the exit code is 1."""
        result = runner.invoke(app, ["check", BROKEN])
        assert result.exit_code == 1
        assert "problem(s) found" in result.stdout

    def test_json_output(self) -> None:
        """JSON output carries every problem."""
        result = runner.invoke(app, ["check", BROKEN, "--format", "json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert data["fixtures"] == 3
        assert any("about_page" in problem for problem in data["problems"])

    def test_bad_target(self) -> None:
        """A target without ':attribute' is a usage error."""
        result = runner.invoke(app, ["check", "registry_samples"])
        assert result.exit_code == 2

    def test_target_not_a_registry(self) -> None:
        """A target that is not a registry is a usage error."""
        result = runner.invoke(app, ["check", "registry_samples:not_a_registry"])
        assert result.exit_code == 2

    def test_missing_module(self) -> None:
        """An unimportable module is a usage error."""
        result = runner.invoke(app, ["check", "no_such_module_here:registry"])
        assert result.exit_code == 2


class TestPlanCommand:
    """Tests for the plan command."""

    def test_plan_includes_auto_fixtures(self) -> None:
        """The plan shows the construction order with auto fixtures."""
        result = runner.invoke(app, ["plan", VALID, "home_steps"])
        assert result.exit_code == 0
        assert "browser → page → console_errors → home_steps" in result.stdout
        assert "home_steps → console_errors → page" in result.stdout

    def test_plan_without_auto(self) -> None:
        """--no-auto leaves auto fixtures out."""
        result = runner.invoke(app, ["plan", VALID, "home_steps", "--no-auto"])
        assert result.exit_code == 0
        assert "Setup: browser → page → home_steps" in result.stdout

    def test_plan_unknown_fixture(self) -> None:
        """An unknown fixture is reported as an error."""
        result = runner.invoke(app, ["plan", VALID, "missing"])
        assert result.exit_code == 1
        assert "Error:" in result.stdout


class TestDescribeCommand:
    """Tests for the describe command."""

    def test_describe_to_stdout(self) -> None:
        """Declarations are printed as YAML."""
        result = runner.invoke(app, ["describe", VALID])
        assert result.exit_code == 0

        data = yaml.safe_load(result.stdout)
        names = [f["name"] for f in data["fixtures"]]
        assert names == ["browser", "page", "console_errors", "home_steps"]

    def test_describe_to_file(self, tmp_path: Path) -> None:
        """--output writes the YAML to a file."""
        output = tmp_path / "fixtures.yaml"
        result = runner.invoke(app, ["describe", VALID, "--output", str(output)])

        assert result.exit_code == 0
        assert yaml.safe_load(output.read_text())["fixtures"][0]["scope"] == "run"
