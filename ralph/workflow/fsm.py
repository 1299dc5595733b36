"""Iteration engine state machine using transitions library.

One instance per run. The engine fires named triggers as it moves through
a cycle; anything not listed in TRANSITIONS raises MachineError, so the
engine can't skip a step (e.g., evaluate a session it never launched).

    idle -> selecting -> dispatching -> awaiting_result -> evaluating
                ^                                              |
                +----------------------------------------------+
    selecting | evaluating                       -> finished
    selecting | dispatching | awaiting_result | evaluating -> aborted

Usage:
    from ralph.workflow.fsm import EngineFSM

    fsm = EngineFSM()
    fsm.start()        # idle -> selecting
    fsm.dispatch()     # story picked
    fsm.launch()       # agent running
"""

import logging
from typing import Callable

from transitions import Machine

logger = logging.getLogger(__name__)


STATES = [
    "idle",
    "selecting",
    "dispatching",
    "awaiting_result",
    "evaluating",
    "finished",
    "aborted",
]

TERMINAL_STATES = ("finished", "aborted")

# Transitions defined as (trigger, source, dest)
# Each trigger becomes a method on the FSM
TRANSITIONS = [
    {"trigger": "start", "source": "idle", "dest": "selecting"},

    # A pending story was picked
    {"trigger": "dispatch", "source": "selecting", "dest": "dispatching"},

    # Agent process started
    {"trigger": "launch", "source": "dispatching", "dest": "awaiting_result"},

    # Agent process exited
    {"trigger": "evaluate", "source": "awaiting_result", "dest": "evaluating"},

    # Result recorded, pick the next story
    {"trigger": "next_story", "source": "evaluating", "dest": "selecting"},

    # Backlog done or iteration budget used up
    {"trigger": "finish", "source": "selecting", "dest": "finished"},
    {"trigger": "finish", "source": "evaluating", "dest": "finished"},

    # Interrupt or storage failure
    {"trigger": "abort", "source": "idle", "dest": "aborted"},
    {"trigger": "abort", "source": "selecting", "dest": "aborted"},
    {"trigger": "abort", "source": "dispatching", "dest": "aborted"},
    {"trigger": "abort", "source": "awaiting_result", "dest": "aborted"},
    {"trigger": "abort", "source": "evaluating", "dest": "aborted"},
]


class EngineFSM:
    """State machine for one run of the iteration engine.

    Wraps the transitions library with engine-specific logic:
    - Logs all transitions
    - Optional observer callback (used by tests and for tracing)
    """

    def __init__(self, on_transition: Callable[[str, str, str], None] | None = None):
        """Initialize FSM in the idle state.

        Args:
            on_transition: Optional callback(from_state, to_state, trigger) called after transitions
        """
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="idle",
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        """Callback after any state transition."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[FSM] {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)

    def get_available_triggers(self) -> list[str]:
        """Get list of triggers available in current state."""
        return self.machine.get_triggers(self.state)
