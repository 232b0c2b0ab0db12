"""
Unit tests for the QuizEngine class.
"""
import unittest
import random

from quizbot.quiz_engine import QuizEngine
from quizbot.models import AnswerOption, Question
from tests.test_fixtures import TestFixtures


class TestQuizEngineSampling(unittest.TestCase):
    """Test cases for QuizEngine question sampling."""

    def setUp(self):
        """Set up test fixtures."""
        self.engine = QuizEngine(random.Random(7))
        self.bank = TestFixtures.create_sample_bank(10)

    def test_sample_returns_requested_count(self):
        """Test sampling fewer questions than the bank holds."""
        result = self.engine.sample_questions(self.bank, 4)

        self.assertEqual(len(result), 4)
        for question in result:
            self.assertIn(question, self.bank)

    def test_sample_has_no_duplicates(self):
        """Test that every sampled question appears once."""
        for count in range(0, 12):
            result = self.engine.sample_questions(self.bank, count)
            ids = [q.id for q in result]
            self.assertEqual(len(ids), len(set(ids)))
            self.assertEqual(len(result), min(count, len(self.bank)))

    def test_sample_count_exceeds_bank(self):
        """Test that an oversized count returns a permutation of the bank."""
        result = self.engine.sample_questions(self.bank, 50)

        self.assertEqual(len(result), len(self.bank))
        self.assertEqual(sorted(q.id for q in result), sorted(q.id for q in self.bank))

    def test_sample_empty_bank(self):
        """Test sampling from an empty bank."""
        self.assertEqual(self.engine.sample_questions([], 5), [])

    def test_sample_zero_and_negative_count(self):
        """Test that non-positive counts yield nothing."""
        self.assertEqual(self.engine.sample_questions(self.bank, 0), [])
        self.assertEqual(self.engine.sample_questions(self.bank, -3), [])

    def test_sample_does_not_modify_bank(self):
        """Test that sampling leaves the bank untouched."""
        original = list(self.bank)
        self.engine.sample_questions(self.bank, 5)

        self.assertEqual(self.bank, original)

    def test_sample_returns_bank_objects(self):
        """Test that sampled questions are the bank's own objects."""
        result = self.engine.sample_questions(self.bank, 3)

        bank_ids = {id(q) for q in self.bank}
        for question in result:
            self.assertIn(id(question), bank_ids)

    def test_sample_is_reproducible_with_seed(self):
        """Test that the same seed gives the same draw."""
        first = QuizEngine(random.Random(123)).sample_questions(self.bank, 5)
        second = QuizEngine(random.Random(123)).sample_questions(self.bank, 5)

        self.assertEqual([q.id for q in first], [q.id for q in second])

    def test_repeated_samples_draw_fresh_randomness(self):
        """Test that consecutive draws from one engine differ."""
        draws = [tuple(q.id for q in self.engine.sample_questions(self.bank, 10)) for _ in range(10)]

        self.assertGreater(len(set(draws)), 1)

    def test_shuffle_covers_every_position(self):
        """Test that the shuffle can place the first question anywhere."""
        engine = QuizEngine(random.Random(0))
        small_bank = TestFixtures.create_sample_bank(4)
        first_positions = set()
        for _ in range(200):
            shuffled = engine.shuffle_questions(small_bank)
            first_positions.add(shuffled.index(small_bank[0]))

        self.assertEqual(first_positions, {0, 1, 2, 3})

    def test_shuffle_single_question(self):
        """Test shuffling a one-question bank."""
        single = TestFixtures.create_sample_bank(1)
        self.assertEqual(self.engine.shuffle_questions(single), single)

    def test_limit_question_count(self):
        """Test question count limiting."""
        self.assertEqual(self.engine.limit_question_count(self.bank, 3), self.bank[:3])
        self.assertEqual(self.engine.limit_question_count(self.bank, 0), [])
        self.assertEqual(self.engine.limit_question_count(self.bank, 20), self.bank)


class TestQuizEngineScoring(unittest.TestCase):
    """Test cases for QuizEngine scoring."""

    def setUp(self):
        """Set up test fixtures."""
        self.questions = TestFixtures.create_sample_bank(4)

    def test_score_no_answers(self):
        """Test that an empty answer map scores zero."""
        self.assertEqual(QuizEngine.score(self.questions, {}), 0)

    def test_score_all_correct(self):
        """Test a perfect answer map."""
        answers = {q.id: TestFixtures.correct_option_id(q) for q in self.questions}

        self.assertEqual(QuizEngine.score(self.questions, answers), 4)

    def test_correct_answer_adds_exactly_one(self):
        """Test that answering correctly increments the score by one."""
        question = self.questions[0]
        before = QuizEngine.score(self.questions, {})

        correct = QuizEngine.score(self.questions, {question.id: TestFixtures.correct_option_id(question)})
        wrong = QuizEngine.score(self.questions, {question.id: TestFixtures.wrong_option_id(question)})

        self.assertEqual(correct, before + 1)
        self.assertEqual(wrong, before)

    def test_score_ignores_answers_outside_questions(self):
        """Test that answers for other questions do not count."""
        answers = {999: "999a"}

        self.assertEqual(QuizEngine.score(self.questions, answers), 0)

    def test_unscoreable_question_counts_as_incorrect(self):
        """Test that a question without a correct option never scores."""
        broken = TestFixtures.create_unscoreable_question()
        questions = self.questions + [broken]

        for option in broken.options:
            self.assertEqual(QuizEngine.score(questions, {broken.id: option.id}), 0)

    def test_multiple_correct_options_counts_as_incorrect(self):
        """Test that a question with two correct options never scores."""
        ambiguous = Question(
            id=50,
            text="Pick one",
            options=(
                AnswerOption(id="50a", text="A", is_correct=True),
                AnswerOption(id="50b", text="B", is_correct=True)
            )
        )

        self.assertIsNone(QuizEngine.find_correct_option(ambiguous))
        self.assertEqual(QuizEngine.score([ambiguous], {50: "50a"}), 0)

    def test_find_correct_option(self):
        """Test looking up the correct option."""
        option = QuizEngine.find_correct_option(self.questions[0])

        self.assertIsNotNone(option)
        self.assertEqual(option.id, "1a")

    def test_is_answer_correct(self):
        """Test single-answer correctness checks."""
        question = self.questions[1]

        self.assertTrue(QuizEngine.is_answer_correct(question, "2a"))
        self.assertFalse(QuizEngine.is_answer_correct(question, "2b"))
        self.assertFalse(QuizEngine.is_answer_correct(question, None))
        self.assertFalse(QuizEngine.is_answer_correct(question, "unknown"))

    def test_is_passed_boundary(self):
        """Test the pass threshold boundary."""
        threshold = 16

        self.assertTrue(QuizEngine.is_passed(threshold, threshold))
        self.assertFalse(QuizEngine.is_passed(threshold - 1, threshold))
        self.assertTrue(QuizEngine.is_passed(threshold + 1, threshold))

    def test_is_passed_zero_threshold(self):
        """Test that a zero threshold always passes."""
        self.assertTrue(QuizEngine.is_passed(0, 0))


if __name__ == '__main__':
    unittest.main()
