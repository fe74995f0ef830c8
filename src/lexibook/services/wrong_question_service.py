"""Service for the log of missed quiz questions."""
import logging
from typing import Any, Dict, List, Optional

from lexibook.clock import Clock, current_millis
from lexibook.config import WRONG_QUESTION_TYPES, WRONG_QUESTIONS_KEY
from lexibook.models.records import WrongQuestion
from lexibook.storage import KeyValueStore, RecordListStore

logger = logging.getLogger(__name__)


class WrongQuestionService:
    """Service for recording and reviewing wrong answers."""

    def __init__(self, store: KeyValueStore, clock: Clock = current_millis):
        """Initialize the service with a key-value store and a clock."""
        self.collection = RecordListStore(store, WRONG_QUESTIONS_KEY, WrongQuestion)
        self.clock = clock

    def get_all_wrong_questions(self) -> List[WrongQuestion]:
        """Get every recorded question, mastered or not."""
        return self.collection.load()

    def _save(self, questions: List[WrongQuestion]) -> None:
        self.collection.save(questions)

    def _find(self, questions: List[WrongQuestion], question_id: str) -> Optional[WrongQuestion]:
        return next((q for q in questions if q.id == question_id), None)

    def add_wrong_question(
        self,
        word: str,
        question: str,
        user_answer: str,
        correct_answer: str,
        type: str,
        explanation: Optional[str] = None,
    ) -> WrongQuestion:
        """Record a wrong answer.

        An unmastered entry for the same word and question type is updated
        in place instead of adding a duplicate.
        """
        if type not in WRONG_QUESTION_TYPES:
            raise ValueError(f"Unknown question type: {type}")

        questions = self.get_all_wrong_questions()
        now = self.clock()
        existing = next(
            (q for q in questions if q.word == word and q.type == type and not q.mastered),
            None,
        )

        if existing is not None:
            existing.question = question
            existing.user_answer = user_answer
            existing.correct_answer = correct_answer
            existing.explanation = explanation
            existing.timestamp = now
            entry = existing
        else:
            entry = WrongQuestion(
                id=f"{type}_{word}_{now}",
                word=word,
                question=question,
                user_answer=user_answer,
                correct_answer=correct_answer,
                type=type,
                timestamp=now,
                explanation=explanation,
            )
            questions.append(entry)

        self._save(questions)
        return entry

    def mark_as_mastered(self, question_id: str) -> None:
        """Mark a question as mastered."""
        questions = self.get_all_wrong_questions()
        question = self._find(questions, question_id)
        if question is None:
            return
        question.mastered = True
        question.last_review_time = self.clock()
        self._save(questions)

    def increment_review_count(self, question_id: str) -> None:
        """Count one more review of a question."""
        questions = self.get_all_wrong_questions()
        question = self._find(questions, question_id)
        if question is None:
            return
        question.review_count += 1
        question.last_review_time = self.clock()
        self._save(questions)

    def delete_wrong_question(self, question_id: str) -> None:
        """Delete a question."""
        questions = self.get_all_wrong_questions()
        self._save([q for q in questions if q.id != question_id])

    def get_unmastered_questions(self) -> List[WrongQuestion]:
        return [q for q in self.get_all_wrong_questions() if not q.mastered]

    def get_mastered_questions(self) -> List[WrongQuestion]:
        return [q for q in self.get_all_wrong_questions() if q.mastered]

    def get_questions_by_type(self, type: str) -> List[WrongQuestion]:
        """Unmastered questions of one quiz mode."""
        return [q for q in self.get_unmastered_questions() if q.type == type]

    def get_stats(self) -> Dict[str, Any]:
        """Totals, plus unmastered counts per question type."""
        questions = self.get_all_wrong_questions()
        unmastered = [q for q in questions if not q.mastered]
        return {
            "total": len(questions),
            "unmastered": len(unmastered),
            "mastered": len(questions) - len(unmastered),
            "byType": {
                type_: sum(1 for q in unmastered if q.type == type_)
                for type_ in WRONG_QUESTION_TYPES
            },
        }

    def clear_all(self) -> None:
        """Remove the whole log."""
        self.collection.remove()

    def clear_mastered(self) -> None:
        """Drop mastered questions, keeping the rest."""
        self._save(self.get_unmastered_questions())
