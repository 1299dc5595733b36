#!/usr/bin/env python3
"""ralph CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from ralph.commands import archive as cmd_archive_module
from ralph.commands import config as cmd_config_module
from ralph.commands import detect as cmd_detect_module
from ralph.commands import log as cmd_log_module
from ralph.commands import run as cmd_run_module
from ralph.commands import status as cmd_status_module
from ralph.lib.agents_config import AUTO_TOOL
from ralph.lib.constants import BACKLOG_FILENAME, DEFAULT_RALPH_DIR

DEFAULT_PRD = str(Path(".") / DEFAULT_RALPH_DIR / BACKLOG_FILENAME)


def configure_logging(verbosity: int) -> None:
    """WARNING by default, INFO with -v, DEBUG with -vv. Always to stderr."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # transitions logs every trigger at INFO; our own [FSM] lines cover that
    logging.getLogger("transitions").setLevel(max(level, logging.WARNING))


def positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got '{value}'") from None
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got '{value}'")
    return parsed


def non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number >= 0, got '{value}'") from None
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"expected a number >= 0, got '{value}'")
    return parsed


def cmd_run(args):
    return cmd_run_module.cmd_run(args)


def cmd_config(args):
    return cmd_config_module.cmd_config(args)


def cmd_detect(args):
    return cmd_detect_module.cmd_detect(args)


def cmd_status(args):
    return cmd_status_module.cmd_status(args)


def cmd_log(args):
    return cmd_log_module.cmd_log(args)


def cmd_archive(args):
    return cmd_archive_module.cmd_archive(args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ralph',
        description='Run an AI coding agent in a loop until every story in the backlog is done',
    )
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Log progress to stderr (-vv for debug)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # ralph run
    p_run = subparsers.add_parser('run', help='Work through the backlog')
    p_run.add_argument('--tool', '-t', default=AUTO_TOOL,
                       help='Agent tool: auto, amp, claude, codebuddy, or one from agents.yaml (default: auto)')
    p_run.add_argument('--max-iterations', '-n', type=positive_int, default=None,
                       help='Maximum iterations for this run (default: from config, 10)')
    p_run.add_argument('--prd', default=DEFAULT_PRD, help=f'Backlog file (default: {DEFAULT_PRD})')
    p_run.add_argument('--workdir', '-C', help='Directory the agent works in (default: current directory)')
    p_run.add_argument('--no-archive', action='store_true',
                       help='Keep history on branch change instead of archiving it')
    p_run.add_argument('--no-logs', action='store_true', help='Do not write per-iteration transcripts')
    p_run.set_defaults(func=cmd_run)

    # ralph config
    p_config = subparsers.add_parser('config', help='Show or change settings')
    config_group = p_config.add_mutually_exclusive_group()
    config_group.add_argument('--get', metavar='KEY', help='Print one setting')
    config_group.add_argument('--set', nargs=2, metavar=('KEY', 'VALUE'), help='Change one setting')
    p_config.set_defaults(func=cmd_config)

    # ralph detect
    p_detect = subparsers.add_parser('detect', help='List agent CLIs and whether they are installed')
    p_detect.add_argument('--prd', default=DEFAULT_PRD, help='Backlog file (agents.yaml is read beside it)')
    p_detect.set_defaults(func=cmd_detect)

    # ralph status
    p_status = subparsers.add_parser('status', help='Show backlog progress')
    p_status.add_argument('--prd', default=DEFAULT_PRD, help='Backlog file')
    p_status.set_defaults(func=cmd_status)

    # ralph log
    p_log = subparsers.add_parser('log', help='Show recent iterations from the progress ledger')
    p_log.add_argument('--prd', default=DEFAULT_PRD, help='Backlog file (progress.txt is read beside it)')
    p_log.add_argument('-n', '--limit', type=non_negative_int, default=20, help='Number of entries (0 for all, default: 20)')
    p_log.add_argument('--oneline', action='store_true', help='Hide entry summaries')
    p_log.set_defaults(func=cmd_log)

    # ralph archive
    p_archive = subparsers.add_parser('archive', help='List archived runs')
    p_archive.add_argument('--prd', default=DEFAULT_PRD, help='Backlog file')
    p_archive.set_defaults(func=cmd_archive)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
