"""
Core data models for the Discord Quiz Bot.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from datetime import datetime


QUIZ_RESULT_KIND = "quizResult"


@dataclass(frozen=True)
class AnswerOption:
    """A single answer choice inside a question."""
    id: str
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class Question:
    """Represents a single multiple-choice question from the bank."""
    id: int
    text: str
    options: Tuple[AnswerOption, ...] = field(default_factory=tuple)


@dataclass
class QuizSettings:
    """Configuration settings for a quiz session."""
    question_count: int = 20
    pass_threshold: int = 16


@dataclass
class QuizSession:
    """One run of the quiz, from sampling to completion or restart."""
    questions: Tuple[Question, ...]
    current_index: int
    answers: Dict[int, str]
    is_finished: bool
    settings: QuizSettings
    start_time: datetime
    completion_time: Optional[datetime] = None


@dataclass
class QuizOutcome:
    """Result of a completed session as handed to the hosting shell."""
    correct: int
    total: int
    passed: bool
    answers: Dict[int, str]
    kind: str = QUIZ_RESULT_KIND

    def to_payload(self) -> dict:
        """Build the wire-level payload (question ids become string keys)."""
        return {
            'type': self.kind,
            'correct': self.correct,
            'total': self.total,
            'passed': self.passed,
            'answers': {str(question_id): option_id for question_id, option_id in self.answers.items()},
        }
