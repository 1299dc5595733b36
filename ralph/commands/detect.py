"""
ralph detect - List supported agent CLIs and whether they are installed.
"""

from pathlib import Path

from ralph.lib.agents_config import (
    TOOL_DISPLAY_NAMES,
    check_binary_available,
    get_template_binary,
    load_agents_config,
)
from ralph.lib.output import header, marker


def cmd_detect(args) -> int:
    config = load_agents_config(Path(args.prd).parent)

    header("Agent tools")
    found = 0
    for tool, template in config.tools.items():
        binary = get_template_binary(template)
        name = TOOL_DISPLAY_NAMES.get(tool, tool)
        if check_binary_available(binary):
            found += 1
            print(marker("success", f"{tool:<12} {name} ({template})"))
        else:
            print(marker("failure", f"{tool:<12} {name} ('{binary}' not on PATH)"))

    print()
    if not found:
        print("No agent CLI found. Install one, or add a command to agents.yaml.")
        return 1
    print(f"{found} tool(s) available")
    return 0
