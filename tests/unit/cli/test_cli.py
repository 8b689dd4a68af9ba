"""Unit tests for the agent-dispatch CLI."""

from __future__ import annotations

from pathlib import Path
import re

import pytest
import typer
from typer.testing import CliRunner
import yaml

from agent_dispatch import __version__
from agent_dispatch.cli.commands.route import parse_attachment
from agent_dispatch.cli.formatters import console
from agent_dispatch.cli.main import app
from agent_dispatch.config.loader import CONFIG_ENV_VAR

runner = CliRunner()


def plain(output: str) -> str:
    """Strip ANSI escape codes from Rich output."""
    return re.sub(r"\x1b\[[0-9;]*m", "", output)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a config path that does not exist yet."""
    path = tmp_path / "config.yaml"
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    monkeypatch.setattr(console, "width", 200)
    return path


def write_config(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestMainApp:
    """Test the top-level application."""

    def test_version(self) -> None:
        """--version prints the package version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"agent-dispatch version {__version__}" in plain(result.output)

    def test_no_args_shows_help(self) -> None:
        """Running without a command prints usage."""
        result = runner.invoke(app, [])
        assert result.exit_code == 2
        assert "Usage" in plain(result.output)


class TestParseAttachment:
    """Test the --attach value parser."""

    def test_name_only(self) -> None:
        """A bare name has no type and zero size."""
        attachment = parse_attachment("photo.jpg")
        assert attachment.name == "photo.jpg"
        assert attachment.declared_type is None
        assert attachment.size_bytes == 0

    def test_full_form(self) -> None:
        """name:type:size fills every field."""
        attachment = parse_attachment("scan.pdf:application/pdf:2048")
        assert attachment.name == "scan.pdf"
        assert attachment.declared_type == "application/pdf"
        assert attachment.size_bytes == 2048

    @pytest.mark.parametrize("value", [":image/png", "a.png:image/png:big", "a.png::-5"])
    def test_rejects_bad_values(self, value: str) -> None:
        """Empty names and invalid sizes are rejected."""
        with pytest.raises(typer.BadParameter):
            parse_attachment(value)


class TestRouteCommand:
    """Test the route command."""

    def test_recommends_from_default_roster(self) -> None:
        """Without a config file the built-in agents are used."""
        result = runner.invoke(
            app,
            ["route", "Possible fraud on this claim", "--attach", "damage.jpg:image/jpeg:4096"],
        )
        output = plain(result.output)
        assert result.exit_code == 0, output
        assert "Requirements" in output
        assert "Ranking" in output
        assert "Recommendation" in output
        assert "confidence" in output

    def test_shows_extracted_fields(self) -> None:
        """Fields found in the query get their own table."""
        result = runner.invoke(app, ["route", "Repair estimate of $1,500 dated 12/03/2024"])
        output = plain(result.output)
        assert result.exit_code == 0, output
        assert "Extracted Fields" in output

    def test_no_agents(self, isolated_config: Path) -> None:
        """An empty roster exits with code 1."""
        write_config(isolated_config, {"agents": []})
        result = runner.invoke(app, ["route", "scan this receipt"])
        assert result.exit_code == 1
        assert "No Eligible Agent" in plain(result.output)

    def test_bad_attachment(self) -> None:
        """A malformed --attach value is a usage error."""
        result = runner.invoke(app, ["route", "hello", "--attach", "x:y:z"])
        assert result.exit_code != 0


class TestAgentsCommand:
    """Test the agents command group."""

    def test_list_default_roster(self) -> None:
        """agents list shows every configured agent."""
        result = runner.invoke(app, ["agents", "list"])
        output = plain(result.output)
        assert result.exit_code == 0, output
        assert "Agents" in output
        assert "claims-processor" in output
        assert "fraud-detector" in output

    def test_list_from_config(self, isolated_config: Path) -> None:
        """--config selects an explicit file."""
        other = write_config(
            isolated_config.parent / "other.yaml",
            {"agents": [{"id": "solo", "capabilities": ["ocr"], "base_capacity": 2}]},
        )
        result = runner.invoke(app, ["agents", "list", "--config", str(other)])
        output = plain(result.output)
        assert result.exit_code == 0, output
        assert "solo" in output
        assert "claims-processor" not in output

    def test_invalid_config(self, isolated_config: Path) -> None:
        """An invalid config file exits with code 1."""
        write_config(isolated_config, {"tracker": {"alpha": 5}})
        result = runner.invoke(app, ["agents", "list"])
        assert result.exit_code == 1
        assert "Configuration Error" in plain(result.output)


class TestLoadCommand:
    """Test the load command group."""

    def test_show_idle_roster(self) -> None:
        """A fresh engine reports every agent as ok."""
        result = runner.invoke(app, ["load", "show"])
        output = plain(result.output)
        assert result.exit_code == 0, output
        assert "Load" in output
        assert "ok" in output
        assert "overloaded" not in output


class TestConfigCommand:
    """Test the config command group."""

    def test_init_then_show(self, isolated_config: Path) -> None:
        """init writes the file, show reads it back."""
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 0, plain(result.output)
        assert "Configuration written to" in plain(result.output)
        assert isolated_config.exists()

        result = runner.invoke(app, ["config", "show"])
        output = plain(result.output)
        assert result.exit_code == 0, output
        assert "Current Configuration" in output
        assert "fraud-detector" in output

    def test_init_refuses_existing(self, isolated_config: Path) -> None:
        """init without --force keeps an existing file."""
        isolated_config.write_text("session:\n  max_handoffs: 1\n")
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 1
        assert isolated_config.read_text() == "session:\n  max_handoffs: 1\n"

        result = runner.invoke(app, ["config", "init", "--force"])
        assert result.exit_code == 0

    def test_init_custom_path(self, tmp_path: Path) -> None:
        """--path writes somewhere else."""
        target = tmp_path / "elsewhere" / "config.yaml"
        result = runner.invoke(app, ["config", "init", "--path", str(target)])
        assert result.exit_code == 0
        assert target.exists()

    def test_show_missing(self) -> None:
        """show fails when no config file exists."""
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 1
        assert "not found" in plain(result.output)
