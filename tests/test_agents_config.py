"""Tests for agents_config module."""

from pathlib import Path

import pytest
from unittest.mock import patch

from ralph.lib.agents_config import (
    AgentsConfig,
    DEFAULT_TOOL_COMMANDS,
    build_tool_command,
    detect_agents,
    get_template_binary,
    get_tool_template,
    load_agents_config,
    resolve_tool,
    tool_not_found_message,
)
from ralph.lib.config import Settings


class TestLoadAgentsConfig:
    """Tests for load_agents_config()."""

    def test_returns_defaults_when_no_dir(self):
        assert load_agents_config(None).tools == DEFAULT_TOOL_COMMANDS

    def test_returns_defaults_when_file_missing(self, tmp_path):
        assert load_agents_config(tmp_path).tools == DEFAULT_TOOL_COMMANDS

    def test_loads_custom_tools(self, tmp_path):
        (tmp_path / "agents.yaml").write_text(
            "tools:\n"
            "  claude: claude --print --model opus\n"
            "  mytool: my-agent run {prompt}\n"
        )
        config = load_agents_config(tmp_path)
        assert config.tools["claude"] == "claude --print --model opus"
        assert config.tools["mytool"] == "my-agent run {prompt}"
        # Other tools keep their defaults
        assert config.tools["amp"] == DEFAULT_TOOL_COMMANDS["amp"]

    def test_handles_invalid_yaml(self, tmp_path):
        (tmp_path / "agents.yaml").write_text("tools: [not: valid: {{{")
        assert load_agents_config(tmp_path).tools == DEFAULT_TOOL_COMMANDS

    def test_defaults_not_shared(self):
        config = AgentsConfig()
        config.tools["amp"] = "changed"
        assert DEFAULT_TOOL_COMMANDS["amp"] == "amp --dangerously-allow-all"


class TestBuildToolCommand:
    """Tests for build_tool_command()."""

    def test_prompt_via_stdin_when_not_in_template(self):
        result = build_tool_command("claude --dangerously-skip-permissions --print", "do stuff", Path("/repo"))
        assert result.cmd == ["claude", "--dangerously-skip-permissions", "--print"]
        assert result.prompt_via_stdin is True
        assert result.get_stdin_input("do stuff") == "do stuff"

    def test_prompt_as_argument(self):
        result = build_tool_command("agent -p {prompt}", "fix 'the' \"bug\"", Path("/repo"))
        assert result.cmd == ["agent", "-p", "fix 'the' \"bug\""]
        assert result.prompt_via_stdin is False
        assert result.get_stdin_input("x") is None

    def test_workdir_substitution(self):
        result = build_tool_command("agent --cwd {workdir}", "p", Path("/my repo"))
        assert result.cmd == ["agent", "--cwd", "/my repo"]

    def test_empty_template(self):
        with pytest.raises(ValueError):
            build_tool_command("", "p", Path("/repo"))


class TestTemplates:
    def test_unknown_tool_runs_bare_binary(self):
        assert get_tool_template(AgentsConfig(), "aider") == "aider"

    def test_binary(self):
        assert get_template_binary("codebuddy -p --tools default") == "codebuddy"
        assert get_template_binary("") == ""


class TestResolveTool:
    """Tests for resolve_tool()."""

    def test_explicit_tool_wins(self):
        assert resolve_tool("claude", Settings(default_tool="amp"), AgentsConfig()) == "claude"

    @patch("ralph.lib.agents_config.shutil.which")
    def test_auto_uses_installed_default(self, mock_which):
        mock_which.return_value = "/usr/bin/x"
        assert resolve_tool("auto", Settings(default_tool="codebuddy"), AgentsConfig()) == "codebuddy"

    @patch("ralph.lib.agents_config.shutil.which")
    def test_auto_falls_back_to_detection(self, mock_which):
        mock_which.side_effect = lambda binary: "/usr/bin/claude" if binary == "claude" else None
        assert resolve_tool("auto", Settings(default_tool="amp"), AgentsConfig()) == "claude"

    @patch("ralph.lib.agents_config.shutil.which", return_value=None)
    def test_auto_nothing_installed(self, mock_which):
        assert resolve_tool("auto", Settings(), AgentsConfig()) is None

    @patch("ralph.lib.agents_config.shutil.which")
    def test_detection_order(self, mock_which):
        mock_which.return_value = "/usr/bin/x"
        assert detect_agents() == ["amp", "claude", "codebuddy"]


class TestToolNotFoundMessage:
    def test_names_binary_and_fixes(self):
        message = tool_not_found_message("claude", AgentsConfig())
        assert "'claude' is not installed" in message
        assert "--tool" in message
        assert "agents.yaml" in message

    def test_nothing_detected(self):
        message = tool_not_found_message(None, AgentsConfig())
        assert "No AI agent CLI detected" in message
