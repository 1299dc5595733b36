"""
Agent tool configuration.

Maps a tool name to the CLI command template used to launch one agent
session. Built-in templates cover the supported agents; a project can
override them or add its own tools in <ralph_dir>/agents.yaml:

    tools:
      claude: claude --dangerously-skip-permissions --print --model opus
      mytool: my-agent run --cwd {workdir} {prompt}

Variable Handling:
- {prompt}: If present in the template, the prompt is passed as a CLI arg.
  If absent, the prompt is written to the agent's stdin.
- {workdir}: The working directory the agent runs in.
"""

import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from ralph.lib.config import Settings
from ralph.lib.constants import AGENTS_CONFIG_FILENAME

logger = logging.getLogger(__name__)


# Detection order for "auto": first installed wins
DEFAULT_TOOL_COMMANDS = {
    "amp": "amp --dangerously-allow-all",
    # Reads the prompt from stdin

    "claude": "claude --dangerously-skip-permissions --print",
    # Non-interactive print mode, prompt on stdin

    "codebuddy": "codebuddy -p --dangerously-skip-permissions --tools default",
}

TOOL_DISPLAY_NAMES = {
    "amp": "Amp",
    "claude": "Claude Code",
    "codebuddy": "CodeBuddy",
}

AUTO_TOOL = "auto"


@dataclass
class AgentsConfig:
    """Tool command templates, defaults merged with agents.yaml."""
    tools: dict[str, str] = field(default_factory=lambda: DEFAULT_TOOL_COMMANDS.copy())


def load_agents_config(ralph_dir: Optional[Path]) -> AgentsConfig:
    """Load agents.yaml and return AgentsConfig.

    If ralph_dir is None or the file doesn't exist, returns defaults.
    """
    if ralph_dir is None:
        return AgentsConfig()

    config_path = ralph_dir / AGENTS_CONFIG_FILENAME
    if not config_path.exists():
        return AgentsConfig()

    try:
        data = yaml.safe_load(config_path.read_text())
        tools = DEFAULT_TOOL_COMMANDS.copy()
        if data and "tools" in data:
            tools.update({str(k): str(v) for k, v in data["tools"].items()})
        return AgentsConfig(tools=tools)
    except (yaml.YAMLError, AttributeError) as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return AgentsConfig()


@dataclass
class ToolCommand:
    """Result of building a tool command."""
    cmd: list[str]  # Command ready for subprocess
    prompt_via_stdin: bool  # True if prompt should be passed via stdin

    def get_stdin_input(self, prompt: str) -> str | None:
        """Return prompt if it should be passed via stdin, else None."""
        return prompt if self.prompt_via_stdin else None


def get_tool_template(config: AgentsConfig, tool: str) -> str:
    """Get the command template for a tool.

    Tools without a configured template run as a bare binary with the
    prompt on stdin.
    """
    return config.tools.get(tool, tool)


def build_tool_command(template: str, prompt: str, workdir: Path) -> ToolCommand:
    """Build the command list for one session with variable substitution.

    Example:
        >>> result = build_tool_command("claude --print", "do stuff", Path("/repo"))
        >>> result.cmd
        ['claude', '--print']
        >>> result.prompt_via_stdin
        True
    """
    prompt_via_stdin = "{prompt}" not in template

    # Placeholder keeps shlex away from quotes inside the prompt
    cmd_template = template.replace("{prompt}", "__PROMPT_PLACEHOLDER__")
    cmd_template = cmd_template.replace("{workdir}", shlex.quote(str(workdir)))

    remaining_vars = re.findall(r'\{(\w+)\}', cmd_template)
    if remaining_vars:
        logger.error(f"Tool template has unsubstituted variables: {remaining_vars}. Template: {template}")

    cmd = shlex.split(cmd_template)
    if not cmd:
        raise ValueError("Tool command template is empty")

    if not prompt_via_stdin:
        cmd = [prompt if arg == "__PROMPT_PLACEHOLDER__" else arg for arg in cmd]

    return ToolCommand(cmd=cmd, prompt_via_stdin=prompt_via_stdin)


def get_template_binary(template: str) -> str:
    """Get the binary name of a template (first element of the command)."""
    parts = shlex.split(template)
    return parts[0] if parts else ""


def check_binary_available(binary: str) -> bool:
    """Check if a binary is available in PATH."""
    return bool(binary) and shutil.which(binary) is not None


def detect_agents(config: AgentsConfig | None = None) -> list[str]:
    """Known tools whose binaries are installed, in detection order."""
    config = config or AgentsConfig()
    return [
        tool for tool in DEFAULT_TOOL_COMMANDS
        if check_binary_available(get_template_binary(get_tool_template(config, tool)))
    ]


def resolve_tool(requested: str, settings: Settings, config: AgentsConfig) -> Optional[str]:
    """Pick the tool for a run.

    An explicit name always wins (availability is checked separately so the
    operator gets a precise error). "auto" uses default_tool if its binary is
    installed, otherwise the first detected agent. Returns None when "auto"
    finds nothing.
    """
    if requested and requested != AUTO_TOOL:
        return requested

    if settings.default_tool:
        binary = get_template_binary(get_tool_template(config, settings.default_tool))
        if check_binary_available(binary):
            return settings.default_tool
        logger.warning(f"Configured default_tool '{settings.default_tool}' is not installed, auto-detecting")

    detected = detect_agents(config)
    return detected[0] if detected else None


def tool_not_found_message(tool: str | None, config: AgentsConfig) -> str:
    """Remediation text for a missing agent binary."""
    if tool is None:
        known = ", ".join(TOOL_DISPLAY_NAMES[t] for t in DEFAULT_TOOL_COMMANDS)
        return "\n".join([
            "No AI agent CLI detected.",
            "",
            f"Install one of: {known}",
            "or choose a tool explicitly: ralph run --tool <name>",
        ])

    binary = get_template_binary(get_tool_template(config, tool))
    lines = [
        f"Required tool '{binary}' is not installed.",
        "",
        "To fix this, either:",
        f"  1. Install {TOOL_DISPLAY_NAMES.get(tool, binary)} so '{binary}' is on your PATH",
        "  2. Pick another agent: ralph run --tool <amp|claude|codebuddy>",
        f"  3. Add a command for '{tool}' to {AGENTS_CONFIG_FILENAME}:",
        "",
        "     tools:",
        f"       {tool}: <binary> <args> {{prompt}}",
    ]
    return "\n".join(lines)
