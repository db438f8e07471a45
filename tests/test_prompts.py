"""Tests for command template parsing and prompt assembly."""

from pathlib import Path

import pytest

from technocrat.mcp.context import WorkspaceContext
from technocrat.mcp.errors import TemplateParseError
from technocrat.mcp.prompts import (
    DEFAULT_DESCRIPTION,
    build_prompt_message,
    parse_command_template,
)

EMPTY_WORKSPACE = WorkspaceContext()


class TestParseCommandTemplate:
    """Tests for parse_command_template."""

    def test_front_matter_description(self) -> None:
        """Test the description is read and quotes are stripped."""
        content = '---\ndescription: "Plan the feature"\nscripts: x\n---\n\n\nStep 1\n\nStep 2'
        description, workflow = parse_command_template(content)
        assert description == "Plan the feature"
        assert workflow == "Step 1\n\nStep 2"

    def test_unquoted_description(self) -> None:
        """Test an unquoted description value."""
        description, _ = parse_command_template("---\ndescription: Do it\n---\nBody")
        assert description == "Do it"

    def test_no_front_matter(self) -> None:
        """Test content without front matter is all workflow."""
        description, workflow = parse_command_template("\n\nJust steps\n---\nmore")
        assert description == DEFAULT_DESCRIPTION
        assert workflow == "Just steps\n---\nmore"

    def test_front_matter_without_description(self) -> None:
        """Test the default description when the key is missing."""
        description, workflow = parse_command_template("---\ntitle: x\n---\nBody")
        assert description == DEFAULT_DESCRIPTION
        assert workflow == "Body"

    def test_delimiter_not_on_first_line(self) -> None:
        """Test a --- later in the file is not front matter."""
        description, workflow = parse_command_template("Intro\n---\ndescription: x")
        assert description == DEFAULT_DESCRIPTION
        assert workflow == "Intro\n---\ndescription: x"


class TestBuildPromptMessage:
    """Tests for build_prompt_message."""

    def test_without_user_input(self) -> None:
        """Test the message has a title and instructions only."""
        message = build_prompt_message(
            "plan", "Do {{.Arguments}}", "", workspace=EMPTY_WORKSPACE
        )
        assert message == "# Technocrat Plan Workflow\n\n## Workflow Instructions\n\nDo "

    def test_with_user_input(self) -> None:
        """Test user input is quoted before the instructions."""
        message = build_prompt_message(
            "spec", "Describe: {{.Arguments}}", "a login page", workspace=EMPTY_WORKSPACE
        )
        assert message == (
            "# Technocrat Spec Workflow\n\n"
            "## User Input\n\na login page\n\n---\n\n"
            "## Workflow Instructions\n\nDescribe: a login page"
        )

    def test_command_name_available(self) -> None:
        """Test the workflow can use .CommandName."""
        message = build_prompt_message(
            "tasks", "cmd={{.CommandName}}", "", workspace=EMPTY_WORKSPACE
        )
        assert message.endswith("cmd=tasks")

    def test_workspace_files_rendered(self, tmp_path: Path) -> None:
        """Test readSpec resolves against the workspace's feature."""
        feature = tmp_path / "specs" / "002-search"
        feature.mkdir(parents=True)
        (feature / "spec.md").write_text("Search spec")
        workspace = WorkspaceContext(
            root=str(tmp_path), project_name="Acme", feature_name="002-search"
        )
        message = build_prompt_message(
            "analyze",
            "{{.ProjectName}}/{{.FeatureName}}: {{readSpec}}",
            "",
            workspace=workspace,
        )
        assert message.endswith("Acme/002-search: Search spec")

    def test_detects_workspace_by_default(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the working directory is inspected when no workspace is given."""
        (tmp_path / "memory").mkdir()
        (tmp_path / "specs" / "003-export").mkdir(parents=True)
        monkeypatch.chdir(tmp_path / "specs" / "003-export")
        message = build_prompt_message("plan", "feature={{.FeatureName}}", "")
        assert message.endswith("feature=003-export")

    def test_invalid_workflow_raises(self) -> None:
        """Test template errors propagate."""
        with pytest.raises(TemplateParseError):
            build_prompt_message(
                "plan", "{{if .Arguments}}open", "", workspace=EMPTY_WORKSPACE
            )
