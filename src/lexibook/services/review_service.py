"""Review scheduling service.

Each saved word owns one review item whose mastery level indexes a fixed
interval ladder. A correct answer moves the word one step up the ladder and a
wrong answer one step down; the next review is always scheduled from the
moment of the last review.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from lexibook.clock import Clock, current_millis, day_start_millis, local_date
from lexibook.config import DAY_MS, REVIEW_INTERVALS, REVIEW_SCHEDULE_KEY, UPCOMING_WINDOW_DAYS
from lexibook.models.records import ReviewItem, VocabularyRecord
from lexibook.monitoring import reviews_recorded
from lexibook.services.vocab_service import VocabularyService
from lexibook.storage import KeyValueStore, RecordListStore

logger = logging.getLogger(__name__)

MAX_MASTERY_LEVEL = len(REVIEW_INTERVALS) - 1


def interval_millis(mastery_level: int) -> int:
    """Delay before the next review for a mastery level."""
    return REVIEW_INTERVALS[mastery_level] * DAY_MS


class ReviewService:
    """Service for scheduling vocabulary reviews."""

    def __init__(
        self,
        store: KeyValueStore,
        vocab_service: Optional[VocabularyService] = None,
        clock: Clock = current_millis,
    ):
        """Initialize the service with a key-value store and a clock."""
        self.collection = RecordListStore(store, REVIEW_SCHEDULE_KEY, ReviewItem)
        self.vocab_service = vocab_service or VocabularyService(store)
        self.clock = clock

    def get_all_review_items(self) -> List[ReviewItem]:
        """Get every review item."""
        return self.collection.load()

    def _save(self, items: List[ReviewItem]) -> None:
        self.collection.save(items)

    def create_review_plan(self, word: VocabularyRecord) -> Optional[ReviewItem]:
        """Create the review item for a newly saved word.

        Does nothing and returns None if the word already has one.
        """
        items = self.get_all_review_items()
        if any(item.word == word.english_word for item in items):
            return None

        now = self.clock()
        item = ReviewItem(
            word_id=f"{word.english_word}_{now}",
            word=word.english_word,
            added_time=word.timestamp,
            last_review_time=now,
            next_review_time=now + interval_millis(0),
        )
        items.append(item)
        self._save(items)
        logger.debug("Created review plan %s", item.word_id)
        return item

    def initialize_review_plans(self) -> int:
        """Backfill review items for saved words that have none.

        Backfilled items are scheduled from when the word was saved, not from
        now. Returns the number of items created.
        """
        existing = self.get_all_review_items()
        known_words = {item.word for item in existing}

        new_items = []
        for word in self.vocab_service.get_all_words():
            if word.english_word in known_words:
                continue
            known_words.add(word.english_word)
            new_items.append(
                ReviewItem(
                    word_id=f"{word.english_word}_{word.timestamp}",
                    word=word.english_word,
                    added_time=word.timestamp,
                    last_review_time=word.timestamp,
                    next_review_time=word.timestamp + interval_millis(0),
                )
            )

        if new_items:
            self._save(existing + new_items)
            logger.info("Initialized %d review plans", len(new_items))
        return len(new_items)

    def record_review(self, word_id: str, is_correct: bool) -> Optional[ReviewItem]:
        """Apply a review outcome and reschedule the word.

        An unknown word_id is ignored, it only means the item was removed
        while a review was in progress.
        """
        items = self.get_all_review_items()
        item = next((i for i in items if i.word_id == word_id), None)
        if item is None:
            logger.debug("Review item %s not found, ignoring outcome", word_id)
            return None

        item.review_count += 1
        if is_correct:
            item.correct_count += 1
            item.mastery_level = min(item.mastery_level + 1, MAX_MASTERY_LEVEL)
        else:
            item.wrong_count += 1
            item.mastery_level = max(item.mastery_level - 1, 0)

        now = self.clock()
        item.last_review_time = now
        item.next_review_time = now + interval_millis(item.mastery_level)

        self._save(items)
        reviews_recorded.labels(outcome="correct" if is_correct else "wrong").inc()
        return item

    def get_today_review_words(self) -> List[ReviewItem]:
        """Items that are due now, oldest due first."""
        now = self.clock()
        due = [item for item in self.get_all_review_items() if item.next_review_time <= now]
        return sorted(due, key=lambda item: item.next_review_time)

    def get_upcoming_review_words(self) -> List[ReviewItem]:
        """Items due within the next few days, soonest first."""
        now = self.clock()
        horizon = now + UPCOMING_WINDOW_DAYS * DAY_MS
        upcoming = [
            item for item in self.get_all_review_items()
            if now < item.next_review_time <= horizon
        ]
        return sorted(upcoming, key=lambda item: item.next_review_time)

    def get_stats(self) -> Dict[str, Any]:
        """Aggregate counts, mastery buckets and answer accuracy."""
        items = self.get_all_review_items()
        now = self.clock()
        horizon = now + UPCOMING_WINDOW_DAYS * DAY_MS

        total_correct = sum(item.correct_count for item in items)
        total_wrong = sum(item.wrong_count for item in items)
        total_attempts = total_correct + total_wrong
        # Halves round up
        accuracy = int(100 * total_correct / total_attempts + 0.5) if total_attempts else 0

        return {
            "total": len(items),
            "todayReview": sum(1 for item in items if item.next_review_time <= now),
            "upcomingReview": sum(1 for item in items if now < item.next_review_time <= horizon),
            "byMastery": {
                "beginner": sum(1 for item in items if item.mastery_level <= 1),
                "intermediate": sum(1 for item in items if 2 <= item.mastery_level <= 4),
                "advanced": sum(1 for item in items if item.mastery_level >= 5),
            },
            "accuracy": accuracy,
            "totalReviews": sum(item.review_count for item in items),
        }

    def get_word_review_info(self, word: str) -> Optional[ReviewItem]:
        """Get the review item of a word, if any."""
        return next((item for item in self.get_all_review_items() if item.word == word), None)

    def reset_word_progress(self, word_id: str) -> None:
        """Put a word back at the bottom of the ladder, scheduled from now."""
        items = self.get_all_review_items()
        item = next((i for i in items if i.word_id == word_id), None)
        if item is None:
            return

        now = self.clock()
        item.mastery_level = 0
        item.review_count = 0
        item.correct_count = 0
        item.wrong_count = 0
        item.last_review_time = now
        item.next_review_time = now + interval_millis(0)
        self._save(items)

    def delete_review_plan(self, word_id: str) -> None:
        """Delete the review item with the given id."""
        items = self.get_all_review_items()
        self._save([item for item in items if item.word_id != word_id])

    def get_review_calendar(self, days: int = 30) -> List[Dict[str, Any]]:
        """Number of reviews falling on each of the next local calendar days."""
        items = self.get_all_review_items()
        today = local_date(self.clock())

        calendar = []
        for offset in range(days):
            day = today + timedelta(days=offset)
            start = day_start_millis(day)
            end = day_start_millis(day + timedelta(days=1))
            count = sum(1 for item in items if start <= item.next_review_time < end)
            calendar.append({"date": day.isoformat(), "count": count})
        return calendar

    @staticmethod
    def get_mastery_label(level: int) -> str:
        """Human-readable name of a mastery level."""
        if level <= 1:
            return "Beginner"
        if level <= 3:
            return "Familiar"
        if level <= 5:
            return "Proficient"
        return "Expert"
