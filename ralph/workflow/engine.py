"""
Iteration engine for ralph.

Drives the select -> dispatch -> await -> evaluate cycle until the backlog
is complete, the iteration budget is used up, or the operator interrupts.
Each iteration hands one story to a fresh agent process; the backlog and
progress ledger are the only state carried between iterations.

Persistence rules:
- The backlog is reloaded at every selection and saved after every mutation.
- Exactly one ledger entry is appended per evaluated iteration. The verdict
  save and the append run with interrupts deferred so neither lands alone.
- An interrupted iteration leaves its story in_progress and writes no entry;
  the next run requeues it.
- Storage failures abort the run immediately; nothing continues on stale state.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ralph.agents.detector import CompletionDetector, Outcome
from ralph.agents.launcher import AgentInterrupted, AgentLauncher, LaunchResult, ToolNotFoundError
from ralph.lib.agents_config import build_tool_command
from ralph.lib.config import RunConfig
from ralph.lib.constants import COMPLETION_MARKER, HISTORY_ENTRIES_IN_PROMPT
from ralph.lib.history import format_progress_history
from ralph.lib.output import iteration_banner, print_marker
from ralph.lib.prompts import render_prompt
from ralph.pm import backlog as store
from ralph.pm import progress
from ralph.pm.backlog import BacklogError
from ralph.pm.models import STATUS_COMPLETED, STATUS_FAILED, STATUS_PENDING, Backlog, Story
from ralph.runner.interrupts import deferred_interrupts
from ralph.workflow.fsm import EngineFSM

logger = logging.getLogger(__name__)


class RunOutcome(Enum):
    COMPLETE = "complete"
    MAX_ITERATIONS = "max_iterations"
    ABORTED = "aborted"


@dataclass
class RunResult:
    """How a run ended and where the backlog stands afterwards."""
    outcome: RunOutcome
    iterations: int                            # Iterations evaluated in this run
    reason: str
    completed: int = 0
    pending: int = 0
    failed: int = 0


@dataclass
class Evaluation:
    """Verdict for one finished agent session."""
    outcome: Outcome
    ledger_outcome: str                        # success | failure | max_reached
    summary: str


def _safe_filename(value: str) -> str:
    return re.sub(r"[^\w.-]", "_", value)


class IterationEngine:
    """Runs stories through the agent one at a time.

    Configuration is passed in once and never re-read. The launcher and
    detector are injectable so tests can script agent sessions.
    """

    def __init__(
        self,
        config: RunConfig,
        launcher: AgentLauncher | None = None,
        detector: CompletionDetector | None = None,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        self.config = config
        self.launcher = launcher or AgentLauncher()
        self.detector = detector or CompletionDetector()
        self.fsm = EngineFSM(on_transition=on_transition)
        self.iterations = 0
        self.backlog: Optional[Backlog] = None

    @property
    def state(self) -> str:
        return self.fsm.state

    def run(self) -> RunResult:
        """Run until complete, out of budget, or interrupted.

        Raises:
            BacklogError: backlog missing, unparseable, or violated mid-run
            OSError: backlog or ledger could not be read or written
            ToolNotFoundError: agent binary disappeared mid-run
        """
        try:
            self._prepare()
            self.fsm.start()
            while True:
                story = self._select()
                if story is None:
                    return self._finish()
                self._dispatch(story)
        except (AgentInterrupted, KeyboardInterrupt):
            return self._abort()
        except (OSError, BacklogError, ToolNotFoundError) as e:
            logger.error(f"[ENGINE] Run aborted: {e}")
            if self.fsm.can("abort"):
                self.fsm.abort()
            raise

    def _prepare(self) -> None:
        """Load the backlog, requeue stories a previous run left in progress."""
        backlog = store.load(self.config.backlog_path)
        requeued = store.requeue_interrupted(backlog)
        if requeued:
            ids = ", ".join(s.id for s in requeued)
            print_marker("warning", f"Resuming interrupted story {ids}")
            store.save(backlog, self.config.backlog_path)
        progress.init_progress_file(self.config.progress_path)
        self.backlog = backlog

    def _select(self) -> Optional[Story]:
        """Pick the next story, or None when the run should finish."""
        self.backlog = store.load(self.config.backlog_path)
        story = store.next_pending(self.backlog)
        if story is None:
            return None
        if self.iterations >= self.config.max_iterations:
            return None
        logger.info(f"[ENGINE] Selected {story.id} (priority {story.priority})")
        return story

    def _dispatch(self, story: Story) -> None:
        """One full iteration for story: launch, evaluate, persist."""
        self.fsm.dispatch()
        backlog = self.backlog
        iteration = backlog.total_iterations_used + 1

        store.mark_in_progress(backlog, story.id)
        store.save(backlog, self.config.backlog_path)

        iteration_banner(self.iterations + 1, self.config.max_iterations, story.id, story.title)

        prompt = self._build_prompt(backlog, story)
        command = build_tool_command(self.config.tool_command, prompt, self.config.working_directory)
        log_file = self._log_file(iteration, story)

        self.fsm.launch()
        try:
            result = self.launcher.run(
                command.cmd,
                cwd=self.config.working_directory,
                stdin_input=command.get_stdin_input(prompt),
                log_file=log_file,
            )
        except ToolNotFoundError:
            # Nothing ran; release the story so the next run picks it up cleanly
            store.mark_pending(backlog, story.id)
            store.save(backlog, self.config.backlog_path)
            raise

        self.fsm.evaluate()
        evaluation = self._evaluate(backlog, story, result)

        self.iterations += 1
        backlog.total_iterations_used += 1
        with deferred_interrupts():
            store.save(backlog, self.config.backlog_path)
            progress.append(
                self.config.progress_path,
                progress.ProgressEntry(
                    timestamp=datetime.now(),
                    story_id=story.id,
                    iteration=iteration,
                    outcome=evaluation.ledger_outcome,
                    summary=evaluation.summary,
                ),
            )
        self._report(story, evaluation, result)
        self.fsm.next_story()

    def _evaluate(self, backlog: Backlog, story: Story, result: LaunchResult) -> Evaluation:
        """Classify the session and move the story along its lifecycle."""
        outcome = self.detector.classify(result.output, result.exit_code)
        summary = self.detector.summarize(result.output, result.exit_code, outcome)
        logger.info(f"[ENGINE] {story.id}: {outcome.value} (exit {result.exit_code})")

        if outcome == Outcome.COMPLETE:
            store.mark_completed(backlog, story.id)
            return Evaluation(outcome, progress.OUTCOME_SUCCESS, summary)

        attempts = store.record_failure(backlog, story.id)
        if attempts >= self.config.max_story_attempts:
            store.mark_failed(backlog, story.id)
            summary = f"{summary}\nGave up after {attempts} failed attempt(s)."
            return Evaluation(outcome, progress.OUTCOME_MAX_REACHED, summary)

        store.mark_pending(backlog, story.id)
        return Evaluation(outcome, progress.OUTCOME_FAILURE, summary)

    def _report(self, story: Story, evaluation: Evaluation, result: LaunchResult) -> None:
        elapsed = f"{result.duration:.0f}s"
        if evaluation.ledger_outcome == progress.OUTCOME_SUCCESS:
            print_marker("success", f"{story.id} completed ({elapsed})")
        elif evaluation.ledger_outcome == progress.OUTCOME_MAX_REACHED:
            print_marker("failure", f"{story.id} failed {self.config.max_story_attempts} time(s), marked failed")
        elif evaluation.outcome == Outcome.ERRORED:
            print_marker("failure", f"{story.id} not complete: agent exited with status {result.exit_code} ({elapsed})")
        else:
            print_marker("failure", f"{story.id} not complete: no completion marker ({elapsed})")

    def _build_prompt(self, backlog: Backlog, story: Story) -> str:
        entries = progress.read_all(self.config.progress_path)
        criteria = "\n".join(f"- {c}" for c in story.acceptance_criteria) or "(none listed)"
        return render_prompt(
            "agent",
            story_id=story.id,
            story_title=story.title,
            story_description=story.description or "(no description)",
            acceptance_criteria=criteria,
            story_notes=story.notes or "(none)",
            attempt=story.attempts + 1,
            project=backlog.project or self.config.working_directory.name,
            backlog_path=self.config.backlog_path,
            progress_path=self.config.progress_path,
            workdir=self.config.working_directory,
            history_section=format_progress_history(entries, HISTORY_ENTRIES_IN_PROMPT),
            completion_marker=COMPLETION_MARKER,
        )

    def _log_file(self, iteration: int, story: Story) -> Optional[Path]:
        if self.config.log_dir is None:
            return None
        return self.config.log_dir / f"iteration-{iteration:03d}-{_safe_filename(story.id)}.log"

    def _finish(self) -> RunResult:
        counts = store.count_by_status(self.backlog)
        if counts[STATUS_PENDING] == 0:
            outcome = RunOutcome.COMPLETE
            if counts[STATUS_FAILED]:
                reason = f"no pending stories left ({counts[STATUS_FAILED]} failed)"
            else:
                reason = "all stories completed"
        else:
            outcome = RunOutcome.MAX_ITERATIONS
            reason = f"max iterations reached ({self.config.max_iterations})"

        self.fsm.finish()
        logger.info(f"[ENGINE] Finished: {reason}")
        return self._result(outcome, reason)

    def _abort(self) -> RunResult:
        if self.fsm.can("abort"):
            self.fsm.abort()
        print()
        print_marker("warning", "Interrupted, stopping")
        return self._result(RunOutcome.ABORTED, "interrupted by operator")

    def _result(self, outcome: RunOutcome, reason: str) -> RunResult:
        counts = store.count_by_status(self.backlog) if self.backlog else {}
        return RunResult(
            outcome=outcome,
            iterations=self.iterations,
            reason=reason,
            completed=counts.get(STATUS_COMPLETED, 0),
            pending=counts.get(STATUS_PENDING, 0),
            failed=counts.get(STATUS_FAILED, 0),
        )
