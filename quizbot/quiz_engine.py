"""
Quiz engine core logic for the Discord Quiz Bot.
Handles question sampling, ordering, and scoring.
"""
import random
import logging
from typing import Dict, List, Optional, Sequence

from .models import AnswerOption, Question

logger = logging.getLogger(__name__)


class QuizEngine:
    """Core quiz engine that handles question sampling and scoring."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the quiz engine.

        Args:
            rng: Random source used for sampling. A fresh ``random.Random``
                is created when omitted; tests pass a seeded one.
        """
        self._rng = rng if rng is not None else random.Random()

    def sample_questions(self, bank: Sequence[Question], count: int) -> List[Question]:
        """
        Draw a random, non-repeating subset of the bank for one session.

        Args:
            bank: Full question bank
            count: Number of questions wanted

        Returns:
            List of ``min(count, len(bank))`` distinct questions in random order

        Note:
            If count exceeds the bank size the whole bank is returned shuffled.
            An empty bank yields an empty list.
        """
        if not bank:
            logger.debug("Sampling from empty question bank")
            return []

        selected = self.limit_question_count(self.shuffle_questions(bank), count)

        logger.debug(
            f"Sampled {len(selected)} of {len(bank)} questions",
            extra={
                'event_type': 'questions_sampled',
                'requested': count,
                'bank_size': len(bank),
                'selected': len(selected)
            }
        )
        return selected

    def shuffle_questions(self, questions: Sequence[Question]) -> List[Question]:
        """
        Shuffle questions with a Fisher-Yates pass over a copy.

        Args:
            questions: Questions to shuffle

        Returns:
            New list with questions in random order
        """
        shuffled = list(questions)
        for i in range(len(shuffled) - 1, 0, -1):
            j = self._rng.randint(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled

    def limit_question_count(self, questions: Sequence[Question], count: int) -> List[Question]:
        """
        Limit the number of questions to the specified count.

        Args:
            questions: List of questions to limit
            count: Maximum number of questions to return

        Returns:
            List limited to the specified count

        Note:
            If count is greater than available questions, returns all questions.
            If count is less than 1, returns empty list.
        """
        if count < 1:
            return []

        return list(questions[:count])

    @staticmethod
    def find_correct_option(question: Question) -> Optional[AnswerOption]:
        """
        Return the single option marked correct.

        Questions with no correct option, or with several, are unscoreable
        and return None.
        """
        correct = [option for option in question.options if option.is_correct]
        if len(correct) != 1:
            return None
        return correct[0]

    @classmethod
    def is_answer_correct(cls, question: Question, option_id: Optional[str]) -> bool:
        """Check whether the given option id is the question's correct answer."""
        correct_option = cls.find_correct_option(question)
        if correct_option is None or option_id is None:
            return False
        return correct_option.id == option_id

    @classmethod
    def score(cls, questions: Sequence[Question], answers: Dict[int, str]) -> int:
        """
        Count correctly answered questions.

        Args:
            questions: Active questions of the session
            answers: Mapping of question id to selected option id

        Returns:
            Number of correct answers, between 0 and len(questions)
        """
        tally = 0
        for question in questions:
            if cls.is_answer_correct(question, answers.get(question.id)):
                tally += 1
        return tally

    @staticmethod
    def is_passed(score: int, threshold: int) -> bool:
        """A score passes when it reaches the threshold."""
        return score >= threshold
