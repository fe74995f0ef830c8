"""Tests for the wrong question service."""
import pytest

from lexibook.config import WRONG_QUESTIONS_KEY
from lexibook.services.wrong_question_service import WrongQuestionService
from lexibook.storage import MemoryKeyValueStore


@pytest.fixture
def wrong_question_service(store: MemoryKeyValueStore, clock) -> WrongQuestionService:
    """Create a wrong question service instance."""
    return WrongQuestionService(store, clock=clock)


def add(service: WrongQuestionService, word: str, type: str = "quiz", **kwargs):
    return service.add_wrong_question(
        word=word,
        question=kwargs.pop("question", f"What is {word}?"),
        user_answer=kwargs.pop("user_answer", "no idea"),
        correct_answer=kwargs.pop("correct_answer", word),
        type=type,
        **kwargs,
    )


def test_add_wrong_question(wrong_question_service: WrongQuestionService, clock) -> None:
    """Test recording a question."""
    question = add(wrong_question_service, "apple")

    assert question.id == f"quiz_apple_{clock.now}"
    assert question.timestamp == clock.now
    assert question.review_count == 0
    assert not question.mastered
    assert "explanation" not in question.to_dict()


def test_add_updates_unmastered_duplicate(wrong_question_service: WrongQuestionService, clock) -> None:
    """Test that the same word and type are recorded once while unmastered."""
    first = add(wrong_question_service, "apple", user_answer="pear")
    clock.advance(millis=1_000)
    second = add(wrong_question_service, "apple", user_answer="plum", explanation="fruit")

    assert second.id == first.id
    assert second.timestamp == clock.now
    questions = wrong_question_service.get_all_wrong_questions()
    assert len(questions) == 1
    assert questions[0].user_answer == "plum"
    assert questions[0].explanation == "fruit"

    add(wrong_question_service, "apple", type="dictate")
    assert len(wrong_question_service.get_all_wrong_questions()) == 2

    wrong_question_service.mark_as_mastered(first.id)
    clock.advance(millis=1_000)
    add(wrong_question_service, "apple")
    assert len(wrong_question_service.get_all_wrong_questions()) == 3


def test_add_rejects_unknown_type(wrong_question_service: WrongQuestionService) -> None:
    """Test that only known quiz modes are accepted."""
    with pytest.raises(ValueError):
        add(wrong_question_service, "apple", type="essay")


def test_review_and_master(wrong_question_service: WrongQuestionService, clock) -> None:
    """Test review counting and mastering."""
    question = add(wrong_question_service, "apple")

    clock.advance(millis=500)
    wrong_question_service.increment_review_count(question.id)
    wrong_question_service.increment_review_count(question.id)
    wrong_question_service.increment_review_count("missing")

    stored = wrong_question_service.get_all_wrong_questions()[0]
    assert stored.review_count == 2
    assert stored.last_review_time == clock.now

    wrong_question_service.mark_as_mastered(question.id)
    assert wrong_question_service.get_unmastered_questions() == []
    assert [q.id for q in wrong_question_service.get_mastered_questions()] == [question.id]


def test_stats_and_filters(wrong_question_service: WrongQuestionService) -> None:
    """Test per-type filtering and statistics."""
    add(wrong_question_service, "apple")
    add(wrong_question_service, "pear")
    deep = add(wrong_question_service, "plum", type="deep")
    add(wrong_question_service, "fig", type="term")
    wrong_question_service.mark_as_mastered(deep.id)

    assert [q.word for q in wrong_question_service.get_questions_by_type("quiz")] == ["apple", "pear"]
    assert wrong_question_service.get_questions_by_type("deep") == []

    stats = wrong_question_service.get_stats()
    assert stats["total"] == 4
    assert stats["unmastered"] == 3
    assert stats["mastered"] == 1
    assert stats["byType"] == {"quiz": 2, "dictate": 0, "term": 1, "deep": 0}


def test_delete_and_clear(store: MemoryKeyValueStore, wrong_question_service: WrongQuestionService) -> None:
    """Test deleting and clearing questions."""
    apple = add(wrong_question_service, "apple")
    pear = add(wrong_question_service, "pear")
    add(wrong_question_service, "plum")

    wrong_question_service.delete_wrong_question(apple.id)
    wrong_question_service.mark_as_mastered(pear.id)
    wrong_question_service.clear_mastered()
    assert [q.word for q in wrong_question_service.get_all_wrong_questions()] == ["plum"]

    wrong_question_service.clear_all()
    assert store.get_item(WRONG_QUESTIONS_KEY) is None
    assert wrong_question_service.get_stats()["total"] == 0


if __name__ == "__main__":
    pytest.main([__file__])
