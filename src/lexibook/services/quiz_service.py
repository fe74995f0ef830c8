"""Practice questions drawn from the saved vocabulary.

A question never shows the word itself: it describes the word through the
explanations stored with it and asks the learner to recall the original.
"""
import logging
import random
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from lexibook.clock import Clock, current_millis
from lexibook.models.records import VocabularyRecord
from lexibook.services.vocab_service import VocabularyService

logger = logging.getLogger(__name__)


@dataclass
class QuizQuestion:
    """A generated question and the word it was built from."""
    id: str
    scenario: str
    correct_answer: str
    word: VocabularyRecord


def build_scenario(word: VocabularyRecord, rng: random.Random) -> str:
    """Describe a word from the richest explanation it carries."""
    life_analogy = word.extra.get("lifeAnalogy")
    if isinstance(life_analogy, str) and life_analogy.strip():
        return f"想一想：{life_analogy}"

    scenarios = word.extra.get("usageScenarios")
    if isinstance(scenarios, list) and scenarios:
        return f"在这个场景中会用到什么词？{rng.choice(scenarios)}"

    essence = word.extra.get("essenceExplanation")
    if isinstance(essence, str) and essence.strip():
        return f"本质上是：{essence}，这是什么词？"

    return f"这个词的意思是：{word.extra.get('plainExplanation', '')}"


def normalize_answer(answer: str) -> str:
    return answer.strip().lower()


class QuizService:
    """Service for generating and checking practice questions.

    Questions are kept by this instance until it is discarded or cleared.
    """

    def __init__(
        self,
        vocab_service: VocabularyService,
        clock: Clock = current_millis,
        rng: Optional[random.Random] = None,
    ):
        self.vocab_service = vocab_service
        self.clock = clock
        self.rng = rng or random.Random()
        self.questions: Dict[str, QuizQuestion] = {}

    def generate_question(self) -> Optional[QuizQuestion]:
        """Build a question from a random saved word, or None if none are saved."""
        words = self.vocab_service.get_all_words()
        if not words:
            return None

        word = self.rng.choice(words)
        question = QuizQuestion(
            id=f"quiz_{self.clock()}_{uuid.uuid4().hex[:9]}",
            scenario=build_scenario(word, self.rng),
            correct_answer=word.original_word,
            word=word,
        )
        self.questions[question.id] = question
        logger.debug("Generated question %s for %r", question.id, word.original_word)
        return question

    def check_answer(self, question_id: str, user_answer: str) -> bool:
        """Compare an answer with the expected word, ignoring case and outer whitespace.

        An unknown question id is never correct.
        """
        question = self.questions.get(question_id)
        if question is None:
            return False
        return normalize_answer(user_answer) == normalize_answer(question.correct_answer)

    def get_question(self, question_id: str) -> Optional[QuizQuestion]:
        return self.questions.get(question_id)

    def clear_questions(self) -> None:
        self.questions.clear()
