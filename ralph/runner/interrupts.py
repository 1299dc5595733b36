"""
Interrupt handling for a run.

Ctrl+C already raises KeyboardInterrupt in the main thread. SIGTERM is
mapped onto the same exception for the duration of a run, so a terminated
controller stops its agent and leaves resumable state exactly as an
operator interrupt does.
"""

import logging
import signal
from contextlib import contextmanager

logger = logging.getLogger(__name__)


def _raise_interrupt(signum, frame):
    logger.info(f"Received signal {signum}, interrupting run")
    raise KeyboardInterrupt


@contextmanager
def interrupt_on_sigterm():
    """Translate SIGTERM into KeyboardInterrupt, restoring the old handler on exit."""
    original_sigterm = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, original_sigterm)


@contextmanager
def deferred_interrupts():
    """Hold SIGINT and SIGTERM until the block finishes, then raise KeyboardInterrupt.

    Used around writes that must land together, so an interrupt can't
    separate a saved verdict from its ledger entry. Errors raised inside
    the block propagate as usual.
    """
    received = []

    def _defer(signum, frame):
        logger.info(f"Received signal {signum}, deferring until the iteration is recorded")
        received.append(signum)

    original_sigint = signal.signal(signal.SIGINT, _defer)
    original_sigterm = signal.signal(signal.SIGTERM, _defer)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
    if received:
        raise KeyboardInterrupt
