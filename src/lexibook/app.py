"""Client application: wires every local service around one store."""
import logging
from typing import Optional

import httpx

from lexibook.clock import Clock, current_millis
from lexibook.models.records import VocabularyRecord
from lexibook.services.api_client import ApiClient
from lexibook.services.auth_service import AuthClient
from lexibook.services.checkin_service import CheckInService
from lexibook.services.data_manager import DataManager
from lexibook.services.quiz_service import QuizService
from lexibook.services.review_service import ReviewService
from lexibook.services.sync_service import SyncService
from lexibook.services.vocab_service import VocabularyService
from lexibook.services.wrong_question_service import WrongQuestionService
from lexibook.storage import KeyValueStore, SqlKeyValueStore


class LexibookClient:
    """Main client class."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        api_url: Optional[str] = None,
        clock: Clock = current_millis,
        http_client: Optional[httpx.AsyncClient] = None,
        auto_sync_interval: Optional[float] = None,
    ):
        """Initialize the services. Without a store, the configured local database is used."""
        self.store = store if store is not None else SqlKeyValueStore()
        self.api = ApiClient(api_url, http_client=http_client)
        self.vocab = VocabularyService(self.store)
        self.reviews = ReviewService(self.store, self.vocab, clock=clock)
        self.wrong_questions = WrongQuestionService(self.store, clock=clock)
        self.quiz = QuizService(self.vocab, clock=clock)
        self.check_ins = CheckInService(self.store, clock=clock)
        self.data_manager = DataManager(self.store)
        self.auth = AuthClient(self.store, self.api)
        self.sync = SyncService(self.store, self.auth, self.api, auto_sync_interval=auto_sync_interval)
        self.running = False
        self.logger = logging.getLogger(__name__)

    def learn_word(self, record: VocabularyRecord) -> bool:
        """Save a word, schedule its reviews and count it for today.

        Returns False if the word was already saved.
        """
        if not self.vocab.add_word(record):
            return False
        self.reviews.create_review_plan(record)
        self.check_ins.update_today_progress(words_learned=1)
        return True

    def answer_quiz(self, question_id: str, user_answer: str) -> bool:
        """Check a quiz answer and record the outcome.

        The answer counts towards today's progress and the word's review
        schedule; a wrong answer is also added to the wrong question log.
        """
        question = self.quiz.get_question(question_id)
        if question is None:
            return False
        is_correct = self.quiz.check_answer(question_id, user_answer)

        item = self.reviews.get_word_review_info(question.word.english_word)
        if item is not None:
            self.reviews.record_review(item.word_id, is_correct)
        if not is_correct:
            self.wrong_questions.add_wrong_question(
                word=question.correct_answer,
                question=question.scenario,
                user_answer=user_answer,
                correct_answer=question.correct_answer,
                type="quiz",
            )
        self.check_ins.update_today_progress(questions_answered=1)
        return is_correct

    async def start(self) -> None:
        """Backfill review plans and start auto sync when logged in."""
        if self.running:
            return

        created = self.reviews.initialize_review_plans()
        if created:
            self.logger.info("Backfilled %d review plans", created)

        if self.auth.is_authenticated():
            self.sync.start_auto_sync()
        self.running = True

    async def stop(self) -> None:
        """Stop auto sync and release the HTTP client."""
        if not self.running:
            return

        await self.sync.stop_auto_sync()
        await self.api.close()
        self.running = False
        self.logger.info("Client stopped")
