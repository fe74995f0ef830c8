"""Records kept in the local key-value store.

Each collection is serialised as one JSON array (or object) under a single
storage key, with camelCase field names so the stored blob stays readable by
the web client that shares the same sync account.
"""
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from lexibook.config import DEFAULT_CATEGORY, REVIEW_INTERVALS, VOCAB_CATEGORIES

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="JsonRecord")


def to_camel(name: str) -> str:
    """Convert a snake_case attribute name to its camelCase storage key."""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class JsonRecord:
    """Mixin for dataclasses stored as camelCase JSON objects."""

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        extra: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.metadata.get("extra"):
                extra = value
                continue
            if value is None and f.metadata.get("omit_none"):
                continue
            data[to_camel(f.name)] = value
        return {**extra, **data}

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """Build a record from its stored form.

        Raises TypeError when a required field is missing, so that callers can
        skip malformed entries instead of persisting half-built records.
        """
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} expects an object, got {type(data).__name__}")
        kwargs = {}
        known = set()
        extra_field = None
        for f in fields(cls):
            if f.metadata.get("extra"):
                extra_field = f.name
                continue
            key = to_camel(f.name)
            known.add(key)
            if key in data:
                kwargs[f.name] = data[key]
        if extra_field is not None:
            kwargs[extra_field] = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs)


@dataclass
class VocabularyRecord(JsonRecord):
    """A saved word, as returned by the lookup service."""
    original_word: str
    english_word: str
    timestamp: int
    phonetic: str = ""
    category: str = DEFAULT_CATEGORY
    # Explanatory fields produced by the lookup service, kept verbatim
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.category not in VOCAB_CATEGORIES:
            self.category = DEFAULT_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "originalWord": self.original_word,
            "englishWord": self.english_word,
            "phonetic": self.phonetic,
            "timestamp": self.timestamp,
            "category": self.category,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VocabularyRecord":
        if not isinstance(data, dict):
            raise TypeError(f"VocabularyRecord expects an object, got {type(data).__name__}")
        if "originalWord" not in data:
            raise TypeError("missing required field 'originalWord'")
        known = {"originalWord", "englishWord", "phonetic", "timestamp", "category"}
        return cls(
            original_word=data["originalWord"],
            english_word=data.get("englishWord") or data["originalWord"],
            timestamp=int(data.get("timestamp") or 0),
            phonetic=data.get("phonetic") or "",
            category=data.get("category") or DEFAULT_CATEGORY,
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class ReviewItem(JsonRecord):
    """Review schedule of one vocabulary word."""
    word_id: str
    word: str
    added_time: int
    last_review_time: int
    next_review_time: int
    review_count: int = 0
    mastery_level: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    # Fields written by other clients of the same account, kept verbatim
    extra: Dict[str, Any] = field(default_factory=dict, metadata={"extra": True})

    def __post_init__(self):
        # Keep the level a valid index into the interval ladder
        self.mastery_level = min(max(int(self.mastery_level), 0), len(REVIEW_INTERVALS) - 1)


@dataclass
class WrongQuestion(JsonRecord):
    """A missed question from one of the quiz modes."""
    id: str
    word: str
    question: str
    user_answer: str
    correct_answer: str
    type: str
    timestamp: int
    review_count: int = 0
    mastered: bool = False
    explanation: Optional[str] = field(default=None, metadata={"omit_none": True})
    last_review_time: Optional[int] = field(default=None, metadata={"omit_none": True})
    extra: Dict[str, Any] = field(default_factory=dict, metadata={"extra": True})


@dataclass
class CheckInRecord(JsonRecord):
    """Aggregated study activity of one local calendar day."""
    date: str  # YYYY-MM-DD
    timestamp: int
    study_minutes: int = 0
    words_learned: int = 0
    questions_answered: int = 0
    lessons_completed: int = 0


@dataclass
class StudyStats(JsonRecord):
    """Totals derived from the check-in history."""
    total_days: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    total_study_minutes: int = 0
    total_words: int = 0
    total_questions: int = 0
    total_lessons: int = 0
    level: int = 1
    exp: int = 0


@dataclass
class Achievement(JsonRecord):
    """An unlockable milestone."""
    id: str
    name: str
    description: str
    icon: str
    unlocked: bool = False


def split_records(cls: Type[T], items: List[Any]) -> Tuple[List[T], List[Any]]:
    """Build records from a stored list.

    Returns the records and, separately, the raw entries that could not be
    read, so that callers can write those back untouched.
    """
    records = []
    malformed = []
    for item in items:
        try:
            records.append(cls.from_dict(item))
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("Skipping malformed %s entry: %s", cls.__name__, e)
            malformed.append(item)
    return records, malformed

