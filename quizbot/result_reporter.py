"""
Result reporting boundary for the Discord Quiz Bot.

The hosting shell is an optional capability. Every call into it is guarded:
a missing shell is a no-op and a failing shell is logged and ignored, so the
quiz session never depends on it.
"""
import json
import logging
import time
from typing import Optional

from .models import QuizOutcome


class HostShell:
    """
    Capability interface of the container hosting the quiz.

    The base implementation does nothing; concrete shells override the
    operations they support.
    """

    def ready(self) -> None:
        """Signal that the quiz is ready to be shown."""

    def expand(self) -> None:
        """Ask the container to give the quiz its full viewport."""

    def send_data(self, payload: str) -> None:
        """Deliver a serialized result payload."""


class ResultReporter:
    """Serializes session outcomes and hands them to the hosting shell."""

    def __init__(self, shell: Optional[HostShell] = None):
        """
        Initialize the reporter.

        Args:
            shell: Hosting shell, or None when running without one
        """
        self.logger = logging.getLogger(__name__)
        self.shell = shell

    @property
    def has_shell(self) -> bool:
        """Check whether a hosting shell is attached."""
        return self.shell is not None

    @staticmethod
    def serialize(outcome: QuizOutcome) -> str:
        """Serialize an outcome into its JSON wire form."""
        return json.dumps(outcome.to_payload(), ensure_ascii=False)

    def announce_session_start(self) -> None:
        """Tell the shell a session is starting (ready, then expand)."""
        if self.shell is None:
            return

        try:
            self.shell.ready()
            self.shell.expand()
        except Exception as e:
            self.logger.warning(
                f"Hosting shell failed during session start: {e}",
                extra={
                    'event_type': 'shell_start_failed',
                    'error_type': type(e).__name__,
                    'timestamp': time.time()
                }
            )

    def report(self, outcome: QuizOutcome) -> bool:
        """
        Hand a completed session's outcome to the hosting shell.

        Args:
            outcome: Final tally of the session

        Returns:
            True if the payload was delivered to the shell, False if there is
            no shell or the shell failed
        """
        if self.shell is None:
            self.logger.debug("No hosting shell attached, result not reported")
            return False

        try:
            payload = self.serialize(outcome)
            self.shell.send_data(payload)
        except Exception as e:
            self.logger.warning(
                f"Failed to report quiz result: {e}",
                extra={
                    'event_type': 'result_report_failed',
                    'error_type': type(e).__name__,
                    'timestamp': time.time()
                }
            )
            return False

        self.logger.info(
            f"Reported quiz result: {outcome.correct}/{outcome.total}, passed: {outcome.passed}",
            extra={
                'event_type': 'result_reported',
                'correct': outcome.correct,
                'total': outcome.total,
                'passed': outcome.passed,
                'timestamp': time.time()
            }
        )
        return True
