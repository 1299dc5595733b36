"""
ralph run - Work through the backlog with an AI agent.
"""

import logging
from pathlib import Path

from ralph.agents.launcher import AgentLauncher, ToolNotFoundError
from ralph.git import get_current_branch
from ralph.lib.agents_config import (
    check_binary_available,
    get_template_binary,
    get_tool_template,
    load_agents_config,
    resolve_tool,
    tool_not_found_message,
)
from ralph.lib.config import ConfigError, RunConfig, load_settings, resolve_run_config
from ralph.lib.output import echo_agent_line, header, print_marker
from ralph.pm import backlog as store
from ralph.pm.backlog import BacklogError, BacklogNotFoundError
from ralph.pm.models import Backlog
from ralph.runner.interrupts import interrupt_on_sigterm
from ralph.workflow.archive import ArchiveAction, maybe_archive, read_last_branch, write_last_branch
from ralph.workflow.engine import IterationEngine, RunOutcome, RunResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def check_branch(config: RunConfig, backlog: Backlog) -> ArchiveAction:
    """Archive the previous branch's progress if the branch changed, then record the current one."""
    current = backlog.branch_name or get_current_branch(config.working_directory)
    stored = read_last_branch(config.last_branch_path) or backlog.source_branch or None

    result = maybe_archive(
        current_branch=current,
        stored_branch=stored,
        backlog_path=config.backlog_path,
        progress_path=config.progress_path,
        archive_root=config.archive_root,
        auto_archive=config.auto_archive,
    )
    if result.action == ArchiveAction.ARCHIVED:
        print_marker("info", f"Branch changed ({stored} -> {current}), archived previous run to {result.archive_dir}")
    elif result.action == ArchiveAction.SKIPPED:
        print_marker("warning", f"Branch changed ({stored} -> {current}) but auto_archive is off, keeping history")

    if current:
        write_last_branch(config.last_branch_path, current)
    return result.action


def print_summary(result: RunResult) -> None:
    print()
    header("Run summary")
    print(f"Result:      {result.reason}")
    print(f"Iterations:  {result.iterations}")
    print(f"Stories:     {result.completed} completed, {result.pending} pending, {result.failed} failed")

    if result.outcome == RunOutcome.COMPLETE and not result.failed:
        print_marker("success", "All stories complete")
    elif result.outcome == RunOutcome.COMPLETE:
        print_marker("warning", "Some stories failed; fix their notes and set them back to pending to retry")
    elif result.outcome == RunOutcome.MAX_ITERATIONS:
        print_marker("info", "Iteration budget used up; run again to continue")
    else:
        print_marker("warning", "Run interrupted; the story in progress will be retried next run")


def cmd_run(args) -> int:
    """Resolve configuration, check the tool, then run the iteration engine."""
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"ERROR: {e}")
        return EXIT_USAGE

    backlog_path = Path(args.prd)
    agents_config = load_agents_config(backlog_path.parent)

    tool = resolve_tool(args.tool, settings, agents_config)
    if tool is None:
        print(tool_not_found_message(None, agents_config))
        return EXIT_USAGE

    template = get_tool_template(agents_config, tool)
    if not check_binary_available(get_template_binary(template)):
        print(tool_not_found_message(tool, agents_config))
        return EXIT_USAGE

    try:
        config = resolve_run_config(
            settings,
            tool=tool,
            tool_command=template,
            backlog_path=backlog_path,
            working_directory=Path(args.workdir) if args.workdir else Path.cwd(),
            max_iterations=args.max_iterations,
            auto_archive=False if args.no_archive else None,
            keep_logs=not args.no_logs,
        )
    except ConfigError as e:
        print(f"ERROR: {e}")
        return EXIT_USAGE

    try:
        backlog = store.load(config.backlog_path)
    except BacklogNotFoundError as e:
        print(f"ERROR: {e}")
        print("  Create a prd.json backlog first, or point at one with --prd")
        return EXIT_USAGE
    except BacklogError as e:
        print(f"ERROR: {e}")
        return EXIT_USAGE

    logger.info(f"Resolved run config: {config}")

    header(f"ralph: {backlog.project or config.working_directory.name}")
    print(f"Tool:            {tool} ({template})")
    print(f"Backlog:         {config.backlog_path}")
    print(f"Max iterations:  {config.max_iterations}")
    print()

    engine = IterationEngine(config, launcher=AgentLauncher(echo=echo_agent_line))
    try:
        with interrupt_on_sigterm():
            check_branch(config, backlog)
            result = engine.run()
    except ToolNotFoundError as e:
        print(f"ERROR: {e}")
        print(tool_not_found_message(tool, agents_config))
        return EXIT_USAGE
    except (OSError, BacklogError) as e:
        print_marker("failure", f"Run aborted: {e}")
        return EXIT_ABORTED
    except KeyboardInterrupt:
        # Interrupt outside the engine loop (e.g. while archiving)
        print_marker("warning", "Interrupted")
        return EXIT_INTERRUPTED

    print_summary(result)
    if result.outcome == RunOutcome.ABORTED:
        return EXIT_INTERRUPTED
    return EXIT_OK
