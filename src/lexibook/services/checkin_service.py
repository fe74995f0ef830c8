"""Daily check-in, streak and achievement tracking."""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from lexibook.clock import Clock, current_millis, local_date
from lexibook.config import CHECKIN_KEY, STATS_KEY
from lexibook.models.records import Achievement, CheckInRecord, StudyStats
from lexibook.storage import JsonCollectionStore, KeyValueStore, RecordListStore

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = ("study_minutes", "words_learned", "questions_answered", "lessons_completed")


def calculate_streaks(dates: List[date], today: date) -> Tuple[int, int]:
    """Return (current, longest) runs of consecutive days.

    The current streak only counts if the latest day is today or yesterday.
    """
    if not dates:
        return 0, 0

    days = sorted(set(dates))
    longest = run = 1
    for prev, curr in zip(days, days[1:]):
        if (curr - prev).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1

    if days[-1] not in (today, today - timedelta(days=1)):
        return 0, longest

    current = 1
    for i in range(len(days) - 1, 0, -1):
        if (days[i] - days[i - 1]).days != 1:
            break
        current += 1
    return current, longest


class CheckInService:
    """Service for daily check-ins and the statistics derived from them."""

    def __init__(self, store: KeyValueStore, clock: Clock = current_millis):
        """Initialize the service with a key-value store and a clock."""
        self.history_collection = RecordListStore(store, CHECKIN_KEY, CheckInRecord)
        self.stats_collection = JsonCollectionStore(store, STATS_KEY, default_factory=dict)
        self.clock = clock

    def _today(self) -> date:
        return local_date(self.clock())

    def get_check_in_history(self) -> List[CheckInRecord]:
        """Get every check-in record."""
        return self.history_collection.load()

    def _save_history(self, history: List[CheckInRecord]) -> None:
        self.history_collection.save(history)

    def get_stats(self) -> StudyStats:
        """Get the stored statistics, or the defaults if none exist yet."""
        data = self.stats_collection.load()
        if not data:
            return StudyStats()
        try:
            return StudyStats.from_dict(data)
        except TypeError as e:
            logger.warning("Malformed study stats, using defaults: %s", e)
            return StudyStats()

    def has_checked_in_today(self) -> bool:
        return self.get_today_check_in() is not None

    def get_today_check_in(self) -> Optional[CheckInRecord]:
        """Get today's record, if the user has checked in."""
        today = self._today().isoformat()
        return next((r for r in self.get_check_in_history() if r.date == today), None)

    def check_in(self) -> bool:
        """Check in for today. Returns False if already checked in."""
        history = self.get_check_in_history()
        today = self._today().isoformat()
        if any(record.date == today for record in history):
            return False

        history.append(CheckInRecord(date=today, timestamp=self.clock()))
        self._save_history(history)
        self._update_stats(history)
        logger.info("Checked in for %s", today)
        return True

    def update_today_progress(self, **progress: int) -> CheckInRecord:
        """Add to today's counters, checking in first if needed.

        Accepts study_minutes, words_learned, questions_answered and
        lessons_completed.
        """
        unknown = set(progress) - set(PROGRESS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown progress fields: {', '.join(sorted(unknown))}")

        self.check_in()
        history = self.get_check_in_history()
        today = self._today().isoformat()
        record = next(r for r in history if r.date == today)

        for name, amount in progress.items():
            if amount:
                setattr(record, name, getattr(record, name) + amount)

        self._save_history(history)
        self._update_stats(history)
        return record

    def _update_stats(self, history: List[CheckInRecord]) -> StudyStats:
        stats = self.get_stats()

        current, longest = calculate_streaks(
            [date.fromisoformat(record.date) for record in history],
            self._today(),
        )
        stats.total_days = len(history)
        stats.current_streak = current
        stats.longest_streak = max(longest, stats.longest_streak)

        stats.total_study_minutes = sum(r.study_minutes for r in history)
        stats.total_words = sum(r.words_learned for r in history)
        stats.total_questions = sum(r.questions_answered for r in history)
        stats.total_lessons = sum(r.lessons_completed for r in history)

        stats.exp = (
            stats.total_days * 10
            + stats.total_words * 2
            + stats.total_questions * 5
            + stats.total_lessons * 20
        )
        stats.level = stats.exp // 100 + 1

        self.stats_collection.save(stats.to_dict())
        return stats

    def get_achievements(self) -> List[Achievement]:
        """Fixed achievement list with unlock state from the current stats."""
        stats = self.get_stats()
        return [
            Achievement("first_day", "First Steps", "Complete your first day of study", "🎯",
                        stats.total_days >= 1),
            Achievement("week_warrior", "Week Warrior", "Study 7 days in a row", "🔥",
                        stats.current_streak >= 7),
            Achievement("month_master", "Month Master", "Study 30 days in a row", "👑",
                        stats.current_streak >= 30),
            Achievement("vocab_100", "Word Collector", "Learn 100 words", "📚",
                        stats.total_words >= 100),
            Achievement("vocab_500", "Word Hoarder", "Learn 500 words", "📖",
                        stats.total_words >= 500),
            Achievement("quiz_100", "Quiz Rookie", "Answer 100 questions", "✏️",
                        stats.total_questions >= 100),
            Achievement("quiz_500", "Quiz Expert", "Answer 500 questions", "✍️",
                        stats.total_questions >= 500),
            Achievement("time_10h", "Time Investor", "Study for 10 hours in total", "⏰",
                        stats.total_study_minutes >= 600),
            Achievement("level_5", "Rising Star", "Reach level 5", "⭐",
                        stats.level >= 5),
            Achievement("level_10", "Study Master", "Reach level 10", "🌟",
                        stats.level >= 10),
        ]

    def get_calendar_data(self, days: int = 90) -> List[Dict[str, Any]]:
        """Check-in state of each of the last days, oldest first."""
        by_date = {record.date: record for record in self.get_check_in_history()}
        today = self._today()

        calendar = []
        for offset in range(days - 1, -1, -1):
            day = (today - timedelta(days=offset)).isoformat()
            record = by_date.get(day)
            calendar.append({
                "date": day,
                "hasCheckedIn": record is not None,
                "data": record.to_dict() if record else None,
            })
        return calendar
