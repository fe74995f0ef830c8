"""Vocabulary service for the personal word list."""
import logging
from typing import Dict, List

from lexibook.config import DEFAULT_CATEGORY, VOCAB_CATEGORIES, VOCAB_KEY
from lexibook.models.records import VocabularyRecord
from lexibook.storage import KeyValueStore, RecordListStore

logger = logging.getLogger(__name__)


class VocabularyService:
    """Service for managing saved words, keyed by their original spelling."""

    def __init__(self, store: KeyValueStore):
        """Initialize the service with a key-value store."""
        self.collection = RecordListStore(store, VOCAB_KEY, VocabularyRecord)

    def _load(self) -> List[VocabularyRecord]:
        return self.collection.load()

    def _save(self, words: List[VocabularyRecord]) -> None:
        self.collection.save(words)

    def add_word(self, record: VocabularyRecord) -> bool:
        """Add a word. Returns False if the same original word is already saved."""
        words = self._load()
        if any(w.original_word == record.original_word for w in words):
            return False

        words.append(record)
        self._save(words)
        logger.info("Added word %r to vocabulary", record.original_word)
        return True

    def remove_word(self, original_word: str) -> None:
        """Remove a word by its original spelling."""
        words = self._load()
        self._save([w for w in words if w.original_word != original_word])

    def get_all_words(self) -> List[VocabularyRecord]:
        """Get all saved words."""
        return self._load()

    def get_word_count(self) -> int:
        """Get the number of saved words."""
        return len(self._load())

    def has_word(self, original_word: str) -> bool:
        """Check whether a word is saved."""
        return any(w.original_word == original_word for w in self._load())

    def clear(self) -> None:
        """Remove every saved word."""
        self.collection.clear()

    def get_words_by_category(self, category: str) -> List[VocabularyRecord]:
        """Get the words tagged with a category."""
        return [w for w in self._load() if w.category == category]

    def get_category_stats(self) -> Dict[str, int]:
        """Count words per category; every category is present."""
        stats = {category: 0 for category in VOCAB_CATEGORIES}
        for word in self._load():
            category = word.category if word.category in stats else DEFAULT_CATEGORY
            stats[category] += 1
        return stats
