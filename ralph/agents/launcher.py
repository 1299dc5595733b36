"""
Agent process launcher for ralph.

Runs one agent session as a subprocess and tees its output: every line is
forwarded to the operator as soon as it arrives and also collected for the
completion detector. One process per call; nothing is reused across
iterations.

The launcher does not interpret output. A nonzero exit is an ordinary
result, not an error.
"""

import logging
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ralph.lib.constants import TERMINATE_GRACE_SECONDS

logger = logging.getLogger(__name__)


class ToolNotFoundError(Exception):
    """The agent binary is missing or can't be executed."""

    def __init__(self, binary: str, message: str = ""):
        self.binary = binary
        super().__init__(message or f"Agent tool '{binary}' not found or not executable")


class AgentInterrupted(Exception):
    """The session was interrupted by the operator; the child has been stopped."""

    def __init__(self, output: str = "", exit_code: Optional[int] = None):
        self.output = output
        self.exit_code = exit_code
        super().__init__("Agent session interrupted")


@dataclass
class LaunchResult:
    cmd: list[str]
    exit_code: int
    output: str
    duration: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def _default_echo(line: str) -> None:
    sys.stdout.write(line)
    sys.stdout.flush()


class AgentLauncher:
    def __init__(
        self,
        echo: Callable[[str], None] | None = None,
        grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ):
        self.echo = echo or _default_echo
        self.grace_seconds = grace_seconds

    def run(
        self,
        cmd: list[str],
        cwd: Path,
        stdin_input: Optional[str] = None,
        log_file: Path = None,
    ) -> LaunchResult:
        """
        Run one agent session to completion.

        stdout and stderr are merged, streamed line by line through echo and
        accumulated. If stdin_input is given it's written to the child's stdin,
        which is then closed so the agent sees EOF.

        Raises:
            ToolNotFoundError: binary missing or could not be started
            AgentInterrupted: KeyboardInterrupt arrived while the agent was running
        """
        logger.info(f"Launching agent: {cmd[0]} (cwd={cwd})")
        start = time.time()
        captured: list[str] = []

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd),
                stdin=subprocess.PIPE if stdin_input is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            # Missing binary or one the kernel refuses to exec
            raise ToolNotFoundError(cmd[0], f"Failed to start '{cmd[0]}': {e}") from e

        writer = None
        with proc:
            try:
                if stdin_input is not None:
                    # Fed from a thread so a chatty agent can't fill stdout while we block on stdin
                    writer = threading.Thread(
                        target=self._feed_stdin, args=(proc, stdin_input, cmd[0]), daemon=True,
                    )
                    writer.start()

                for line in proc.stdout:
                    captured.append(line)
                    self.echo(line)

                if writer:
                    writer.join()
                exit_code = proc.wait()
            except KeyboardInterrupt:
                exit_code = self._stop(proc)
                if writer:
                    writer.join(timeout=self.grace_seconds)
                output = "".join(captured)
                self._write_log(log_file, cmd, exit_code, output, interrupted=True)
                raise AgentInterrupted(output, exit_code) from None

        output = "".join(captured)
        duration = time.time() - start
        logger.info(f"{cmd[0]} exited with status {exit_code} after {duration:.1f}s")
        self._write_log(log_file, cmd, exit_code, output)

        return LaunchResult(cmd=cmd, exit_code=exit_code, output=output, duration=duration)

    @staticmethod
    def _feed_stdin(proc: subprocess.Popen, text: str, binary: str) -> None:
        """Write the prompt and close stdin so the agent sees EOF."""
        try:
            proc.stdin.write(text)
            proc.stdin.close()
        except BrokenPipeError:
            # Agent exited before reading its prompt; its output says why.
            # The second close only releases the fd (buffered data is lost either way).
            logger.warning(f"{binary} closed stdin before the prompt was written")
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass

    def _stop(self, proc: subprocess.Popen) -> Optional[int]:
        """Ask the child to terminate, escalate to kill after the grace period, and reap it."""
        if proc.poll() is not None:
            return proc.returncode

        logger.info(f"Terminating agent process {proc.pid}")
        proc.terminate()
        try:
            return proc.wait(timeout=self.grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"Agent process {proc.pid} ignored terminate, killing")
            proc.kill()
            return proc.wait()

    @staticmethod
    def _write_log(log_file: Path | None, cmd: list[str], exit_code, output: str,
                   interrupted: bool = False) -> None:
        if not log_file:
            return
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(
                f"=== COMMAND ===\n{' '.join(cmd)}\n\n"
                f"=== EXIT CODE ===\n{exit_code}{' (interrupted)' if interrupted else ''}\n\n"
                f"=== OUTPUT ===\n{output}\n"
            )
        except OSError as e:
            logger.warning(f"Failed to write agent log {log_file}: {e}")
