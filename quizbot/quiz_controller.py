"""
Quiz session controller for the Discord Quiz Bot.
Owns one quiz session: sampling, answer recording, completion and restart.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Sequence
from datetime import datetime
from enum import Enum

from .models import QuizSession, Question, QuizSettings, QuizOutcome
from .quiz_engine import QuizEngine
from .result_reporter import ResultReporter


class SessionState(Enum):
    """Enumeration of possible quiz session states."""
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    NO_QUESTIONS = "no_questions"


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class EmptyQuestionBankError(QuizControllerError):
    """Raised when a question is required but the session has none."""
    pass


class QuizController:
    """
    Orchestrates a single quiz session.

    The controller samples its questions from the bank when created and
    again on every restart. Answers are the only source of truth for the
    score; the tally is recomputed on each query.
    """

    def __init__(
        self,
        bank: Sequence[Question],
        settings: Optional[QuizSettings] = None,
        quiz_engine: Optional[QuizEngine] = None,
        reporter: Optional[ResultReporter] = None
    ):
        """
        Initialize the quiz controller and start the first session.

        Args:
            bank: Full question bank, read-only
            settings: Session size and pass threshold, defaults if None
            quiz_engine: Engine used for sampling and scoring
            reporter: Result reporter called once per completed session
        """
        self.logger = logging.getLogger(__name__)
        self.bank = tuple(bank)
        self.settings = settings if settings is not None else QuizSettings()
        self.quiz_engine = quiz_engine if quiz_engine is not None else QuizEngine()
        self.reporter = reporter if reporter is not None else ResultReporter()

        self._session = self._create_session()
        self.reporter.announce_session_start()

        self.logger.info(
            f"QuizController initialized with {len(self._session.questions)} of "
            f"{len(self.bank)} questions"
        )

    def _create_session(self) -> QuizSession:
        """Sample a fresh set of questions and build a new session."""
        questions = self.quiz_engine.sample_questions(self.bank, self.settings.question_count)
        if not questions:
            self.logger.warning(
                "Question bank has no questions for a session",
                extra={
                    'event_type': 'session_no_questions',
                    'bank_size': len(self.bank),
                    'timestamp': time.time()
                }
            )

        return QuizSession(
            questions=tuple(questions),
            current_index=0,
            answers={},
            is_finished=False,
            settings=self.settings,
            start_time=datetime.now()
        )

    @property
    def session(self) -> QuizSession:
        """The active session."""
        return self._session

    def has_questions(self) -> bool:
        """Check whether the session has anything to ask."""
        return len(self._session.questions) > 0

    def is_finished(self) -> bool:
        """Check whether the last question has been answered."""
        return self._session.is_finished

    def get_session_state(self) -> SessionState:
        """
        Get the current state of the session.

        Returns:
            NO_QUESTIONS when the session could not sample anything,
            FINISHED once the last answer is in, IN_PROGRESS otherwise
        """
        if self._session.is_finished:
            return SessionState.FINISHED

        if not self.has_questions():
            return SessionState.NO_QUESTIONS

        return SessionState.IN_PROGRESS

    def get_current_question(self) -> Optional[Question]:
        """
        Get the question at the current position.

        Returns:
            Current Question, or None when the position is out of range
        """
        session = self._session
        if session.current_index >= len(session.questions):
            return None
        return session.questions[session.current_index]

    def require_current_question(self) -> Question:
        """
        Get the current question, raising if there is none.

        Raises:
            EmptyQuestionBankError: If the session has no question to ask
        """
        question = self.get_current_question()
        if question is None:
            raise EmptyQuestionBankError("No question available in the current session")
        return question

    def submit_answer(self, option_id: str) -> bool:
        """
        Record an answer for the current question and move on.

        Submitting the answer to the last question finishes the session and
        reports the outcome. Submissions with no current question, or after
        the session finished, are ignored.

        Args:
            option_id: Identifier of the chosen option

        Returns:
            True if the answer was recorded, False if it was ignored
        """
        session = self._session
        question = self.get_current_question()

        if session.is_finished or question is None:
            self.logger.info(
                f"Ignoring answer '{option_id}': no question awaiting an answer",
                extra={
                    'event_type': 'answer_ignored',
                    'state': self.get_session_state().value,
                    'timestamp': time.time()
                }
            )
            return False

        session.answers[question.id] = option_id

        if session.current_index == len(session.questions) - 1:
            session.is_finished = True
            session.completion_time = datetime.now()
            outcome = self.get_outcome()

            self.logger.info(
                f"Quiz finished: {outcome.correct}/{outcome.total} correct, passed: {outcome.passed}",
                extra={
                    'event_type': 'session_finished',
                    'correct': outcome.correct,
                    'total': outcome.total,
                    'passed': outcome.passed,
                    'timestamp': time.time()
                }
            )
            self.reporter.report(outcome)
        else:
            session.current_index += 1
            self.logger.debug(f"Advanced to question {session.current_index + 1} "
                              f"of {len(session.questions)}")

        return True

    def restart(self) -> None:
        """Replace the session with a freshly sampled one."""
        previous = self._session
        self._session = self._create_session()
        self.reporter.announce_session_start()

        self.logger.info(
            f"Restarted quiz session with {len(self._session.questions)} questions",
            extra={
                'event_type': 'session_restarted',
                'previous_answered': len(previous.answers),
                'previous_finished': previous.is_finished,
                'timestamp': time.time()
            }
        )

    def correct_count(self) -> int:
        """Number of correct answers so far."""
        return self.quiz_engine.score(self._session.questions, self._session.answers)

    def is_passed(self) -> bool:
        """Check whether the current tally reaches the pass threshold."""
        return self.quiz_engine.is_passed(self.correct_count(), self.settings.pass_threshold)

    def get_outcome(self) -> QuizOutcome:
        """Build the outcome for the session as it stands."""
        correct = self.correct_count()
        return QuizOutcome(
            correct=correct,
            total=len(self._session.questions),
            passed=self.quiz_engine.is_passed(correct, self.settings.pass_threshold),
            answers=dict(self._session.answers)
        )

    def get_session_progress(self) -> Dict[str, Any]:
        """
        Get progress information for the session.

        Returns:
            Dictionary with position, tally and state for presentation
        """
        session = self._session
        total = len(session.questions)
        return {
            'state': self.get_session_state().value,
            'current_question': min(session.current_index + 1, total),
            'total_questions': total,
            'answered': len(session.answers),
            'correct': self.correct_count(),
            'pass_threshold': self.settings.pass_threshold,
            'is_finished': session.is_finished,
            'start_time': session.start_time,
            'completion_time': session.completion_time
        }

    def validate_session_state(self) -> Dict[str, Any]:
        """
        Validate the state of the session and return diagnostic information.

        Returns:
            Dictionary with validation results and session state info
        """
        session = self._session
        issues: List[str] = []
        question_ids = {question.id for question in session.questions}

        if session.current_index < 0:
            issues.append("Current question index is negative")
        elif session.current_index > len(session.questions):
            issues.append("Current question index exceeds available questions")

        if len(session.answers) > len(session.questions):
            issues.append("More answers than questions")

        stray = [qid for qid in session.answers if qid not in question_ids]
        if stray:
            issues.append(f"Answers recorded for questions outside the session: {stray}")

        if session.is_finished and len(session.answers) != len(session.questions):
            issues.append("Session finished with unanswered questions")

        if len(question_ids) != len(session.questions):
            issues.append("Session contains duplicate questions")

        return {
            'valid': len(issues) == 0,
            'state': self.get_session_state().value,
            'issues': issues,
            'session_info': self.get_session_progress()
        }

    def get_session_status_summary(self) -> str:
        """
        Get a one-line human-readable status of the session.

        Returns:
            Status text for the presentation layer
        """
        state = self.get_session_state()
        progress = self.get_session_progress()

        if state == SessionState.NO_QUESTIONS:
            return "Not enough questions in the bank to start a quiz"

        if state == SessionState.FINISHED:
            verdict = "passed" if self.is_passed() else "failed"
            return (f"Finished: {progress['correct']}/{progress['total_questions']} correct "
                    f"({verdict}, need {progress['pass_threshold']})")

        return (f"Question {progress['current_question']}/{progress['total_questions']} | "
                f"Correct: {progress['correct']}")
