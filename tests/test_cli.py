"""Tests for the technocrat CLI."""

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from technocrat import __version__
from technocrat.cli import main
from technocrat.templates import list_commands


@pytest.fixture(autouse=True)
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Run every command in an isolated directory without git."""
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("TCHNCRT_FEATURE", raising=False)
    monkeypatch.chdir(project)
    with patch("technocrat.git.operations.shutil.which", return_value=None):
        yield project


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def feature(workspace: Path) -> Path:
    """Create a marked project with one feature holding spec and plan."""
    (workspace / ".tchncrt").mkdir()
    feature_dir = workspace / "specs" / "001-user-login"
    feature_dir.mkdir(parents=True)
    (feature_dir / "spec.md").write_text("# Spec\n")
    (feature_dir / "plan.md").write_text(
        "**Language/Version**: Python 3.12\n**Primary Dependencies**: Click\n"
    )
    return feature_dir


# ── General ──────────────────────────────────────────────────────────


class TestGeneral:
    """Tests for version and help output."""

    def test_version_flag(self, runner: CliRunner) -> None:
        """Test --version prints the version."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert f"technocrat {__version__}" in result.output

    def test_version_command(self, runner: CliRunner) -> None:
        """Test the version command."""
        result = runner.invoke(main, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_command_shows_banner(self, runner: CliRunner) -> None:
        """Test running without a command prints usage hints."""
        result = runner.invoke(main, [])
        assert result.exit_code == 0
        assert "technocrat --help" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        """Test every command is registered."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in (
            "init",
            "check",
            "create-feature",
            "setup-plan",
            "check-prerequisites",
            "update-agent-context",
            "server",
            "prompts",
        ):
            assert command in result.output


# ── init ─────────────────────────────────────────────────────────────


class TestInitCommand:
    """Tests for the init command."""

    def test_init_new_directory(self, runner: CliRunner, workspace: Path) -> None:
        """Test a new project directory is scaffolded."""
        result = runner.invoke(main, ["init", "acme", "--no-git"])
        assert result.exit_code == 0, result.output
        assert "Created memory/constitution.md" in result.output
        assert "Copied" in result.output
        assert (workspace / "acme" / "memory" / "constitution.md").is_file()
        assert (workspace / "acme" / ".tchncrt" / "templates" / "spec-template.md").is_file()

    def test_init_here(self, runner: CliRunner, workspace: Path) -> None:
        """Test '.' initializes the current directory."""
        result = runner.invoke(main, ["init", ".", "--no-git"])
        assert result.exit_code == 0, result.output
        assert (workspace / "specs").is_dir()
        assert workspace.name in (workspace / "memory" / "constitution.md").read_text()

    def test_init_name_and_here(self, runner: CliRunner) -> None:
        """Test a name and --here are mutually exclusive."""
        result = runner.invoke(main, ["init", "acme", "--here"])
        assert result.exit_code == 1
        assert "Cannot specify both" in result.output

    def test_init_without_target(self, runner: CliRunner) -> None:
        """Test a name or --here is required."""
        result = runner.invoke(main, ["init"])
        assert result.exit_code == 1

    def test_init_existing_directory(self, runner: CliRunner, workspace: Path) -> None:
        """Test an existing directory needs --force."""
        (workspace / "acme").mkdir()
        result = runner.invoke(main, ["init", "acme"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_init_here_not_empty(self, runner: CliRunner, workspace: Path) -> None:
        """Test a non-empty current directory needs --force."""
        (workspace / "notes.txt").write_text("x")
        result = runner.invoke(main, ["init", "--here"])
        assert result.exit_code == 1
        assert "not empty" in result.output

        result = runner.invoke(main, ["init", "--here", "--force", "--no-git"])
        assert result.exit_code == 0, result.output


# ── Feature workflow ─────────────────────────────────────────────────


class TestFeatureCommands:
    """Tests for create-feature, setup-plan and check-prerequisites."""

    def test_create_feature_json(self, runner: CliRunner, workspace: Path) -> None:
        """Test create-feature prints its result as JSON."""
        (workspace / ".tchncrt").mkdir()
        result = runner.invoke(main, ["create-feature", "--json", "Add", "user", "login"])
        assert result.exit_code == 0, result.output

        data = json.loads(result.stdout)
        assert data["BRANCH_NAME"] == "001-add-user-login"
        assert data["FEATURE_NUM"] == "001"
        assert Path(data["SPEC_FILE"]).is_file()

    def test_create_feature_text(self, runner: CliRunner, workspace: Path) -> None:
        """Test create-feature prints key: value lines."""
        (workspace / ".tchncrt").mkdir()
        result = runner.invoke(main, ["create-feature", "export csv"])
        assert result.exit_code == 0, result.output
        assert "BRANCH_NAME: 001-export-csv" in result.output

    def test_setup_plan_json(self, runner: CliRunner, workspace: Path) -> None:
        """Test setup-plan creates plan.md for the latest feature."""
        (workspace / ".tchncrt").mkdir()
        (workspace / "specs" / "002-search").mkdir(parents=True)

        result = runner.invoke(main, ["setup-plan", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["BRANCH"] == "002-search"
        assert data["HAS_GIT"] == "false"
        assert Path(data["IMPL_PLAN"]).is_file()

    def test_check_prerequisites_json(self, runner: CliRunner, feature: Path) -> None:
        """Test the JSON report lists available documents."""
        (feature / "research.md").write_text("# Research\n")
        result = runner.invoke(main, ["check-prerequisites", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["AVAILABLE_DOCS"] == ["research.md"]
        assert data["FEATURE_DIR"].endswith("001-user-login")

    def test_check_prerequisites_text(self, runner: CliRunner, feature: Path) -> None:
        """Test the text report marks each document."""
        result = runner.invoke(main, ["check-prerequisites", "--include-tasks"])
        assert result.exit_code == 0, result.output
        assert "AVAILABLE_DOCS:" in result.output
        assert "  ✗ research.md" in result.output
        assert "  ✗ tasks.md" in result.output

    def test_check_prerequisites_require_tasks(
        self, runner: CliRunner, feature: Path
    ) -> None:
        """Test --require-tasks fails without tasks.md."""
        result = runner.invoke(main, ["check-prerequisites", "--require-tasks"])
        assert result.exit_code == 1
        assert "tasks.md not found" in result.output

    def test_check_prerequisites_paths_only(self, runner: CliRunner, feature: Path) -> None:
        """Test --paths-only prints paths without checking documents."""
        (feature / "plan.md").unlink()
        result = runner.invoke(main, ["check-prerequisites", "--paths-only", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["BRANCH"] == "001-user-login"
        assert data["IMPL_PLAN"].endswith("plan.md")


# ── update-agent-context ─────────────────────────────────────────────


class TestUpdateAgentContextCommand:
    """Tests for the update-agent-context command."""

    def test_creates_agent_file(
        self, runner: CliRunner, workspace: Path, feature: Path
    ) -> None:
        """Test a named agent's file is created."""
        result = runner.invoke(main, ["update-agent-context", "gemini"])
        assert result.exit_code == 0, result.output
        assert "Created Gemini CLI context file" in result.output
        assert "Language: Python 3.12" in result.output
        assert "Python 3.12 + Click" in (workspace / "GEMINI.md").read_text()

    def test_default_agent_from_config(
        self, runner: CliRunner, workspace: Path, feature: Path
    ) -> None:
        """Test the configured default agent is used."""
        (workspace / ".tchncrt" / "config.yaml").write_text("default_agent: qwen\n")
        result = runner.invoke(main, ["update-agent-context"])
        assert result.exit_code == 0, result.output
        assert (workspace / "QWEN.md").is_file()
        assert not (workspace / "CLAUDE.md").exists()

    def test_unknown_agent(self, runner: CliRunner, feature: Path) -> None:
        """Test an unknown agent is rejected by click."""
        result = runner.invoke(main, ["update-agent-context", "emacs"])
        assert result.exit_code == 2

    def test_missing_plan(self, runner: CliRunner, feature: Path) -> None:
        """Test a missing plan fails."""
        (feature / "plan.md").unlink()
        result = runner.invoke(main, ["update-agent-context", "claude"])
        assert result.exit_code == 1
        assert "No plan.md found" in result.output


# ── prompts and server ───────────────────────────────────────────────


class TestPromptsCommand:
    """Tests for the prompts command."""

    def test_list(self, runner: CliRunner) -> None:
        """Test all prompts are listed."""
        result = runner.invoke(main, ["prompts"])
        assert result.exit_code == 0, result.output
        assert f"Prompts ({len(list_commands()) + 1}):" in result.output
        assert "tchncrt.spec" in result.output
        assert "welcome" in result.output

    def test_render(self, runner: CliRunner) -> None:
        """Test a command prompt is rendered with the input."""
        result = runner.invoke(main, ["prompts", "tchncrt.plan", "-i", "use sqlite"])
        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("# Technocrat Plan Workflow")
        assert "use sqlite" in result.output

    def test_unknown(self, runner: CliRunner) -> None:
        """Test an unknown prompt fails."""
        result = runner.invoke(main, ["prompts", "nope"])
        assert result.exit_code == 1
        assert "prompt not found: nope" in result.output


class TestServerCommand:
    """Tests for the server command."""

    @patch("technocrat.mcp.server.TechnocratMCPServer")
    def test_http(self, mock_server: MagicMock, runner: CliRunner) -> None:
        """Test the HTTP server starts with CLI options over defaults."""
        result = runner.invoke(main, ["server", "--port", "9000"])
        assert result.exit_code == 0, result.output

        kwargs = mock_server.call_args.kwargs
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9000
        mock_server.return_value.serve.assert_called_once()

    @patch("technocrat.mcp.stdio.StdioServer")
    def test_stdio(self, mock_server: MagicMock, runner: CliRunner) -> None:
        """Test the stdio transport writes nothing else to stdout."""
        result = runner.invoke(main, ["server", "-t", "stdio"])
        assert result.exit_code == 0, result.output
        mock_server.return_value.serve.assert_called_once()
        assert result.stdout == ""

    @patch("technocrat.mcp.stdio.StdioServer")
    def test_transport_from_config(
        self, mock_server: MagicMock, runner: CliRunner, workspace: Path
    ) -> None:
        """Test the transport can come from the project config."""
        (workspace / ".tchncrt").mkdir()
        (workspace / ".tchncrt" / "config.yaml").write_text("transport: stdio\n")
        result = runner.invoke(main, ["server"])
        assert result.exit_code == 0, result.output
        mock_server.return_value.serve.assert_called_once()

    def test_invalid_transport(self, runner: CliRunner) -> None:
        """Test unsupported transports are rejected."""
        result = runner.invoke(main, ["server", "--transport", "sse"])
        assert result.exit_code == 2
