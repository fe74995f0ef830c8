"""Tests for the key-value store layer."""
import json

import pytest

from lexibook.models.records import CheckInRecord
from lexibook.storage import (
    JsonCollectionStore,
    KeyValueStore,
    MemoryKeyValueStore,
    RecordListStore,
    SqlKeyValueStore,
    decode_value,
    encode_value,
    parse_json,
)


@pytest.fixture(params=["memory", "sql"])
def any_store(request, tmp_path) -> KeyValueStore:
    """Each store implementation in turn."""
    if request.param == "memory":
        yield MemoryKeyValueStore()
        return
    store = SqlKeyValueStore(f"sqlite:///{tmp_path / 'local.db'}")
    yield store
    store.close()


def test_set_get_remove(any_store: KeyValueStore) -> None:
    """Test basic item operations."""
    assert any_store.get_item("missing") is None

    any_store.set_item("a", "1")
    any_store.set_item("a", "2")
    assert any_store.get_item("a") == "2"
    assert "a" in any_store
    assert any_store.keys() == ["a"]

    any_store.remove_item("a")
    any_store.remove_item("a")
    assert any_store.get_item("a") is None
    assert len(any_store) == 0


def test_set_many_and_items(any_store: KeyValueStore) -> None:
    """Test batch writes."""
    any_store.set_item("a", "old")
    any_store.set_many({"a": "new", "b": "2"})
    assert dict(any_store.items()) == {"a": "new", "b": "2"}


def test_set_many_rejects_non_strings_without_writing(any_store: KeyValueStore) -> None:
    """Test that a bad batch leaves the store untouched."""
    any_store.set_item("a", "1")
    with pytest.raises(TypeError):
        any_store.set_many({"a": "2", "b": 3})
    assert dict(any_store.items()) == {"a": "1"}


def test_replace_all(any_store: KeyValueStore) -> None:
    """Test swapping the whole content."""
    any_store.set_many({"a": "1", "b": "2"})
    any_store.replace_all({"c": "3"})
    assert dict(any_store.items()) == {"c": "3"}

    any_store.clear()
    assert any_store.keys() == []


def test_sql_store_persists_across_instances(tmp_path) -> None:
    """Test that the database-backed store survives a reopen."""
    url = f"sqlite:///{tmp_path / 'local.db'}"
    first = SqlKeyValueStore(url)
    first.set_item("vocab_book", "[]")
    first.close()

    second = SqlKeyValueStore(url)
    assert second.get_item("vocab_book") == "[]"
    second.close()


def test_parse_json() -> None:
    """Test explicit parse results."""
    assert parse_json('{"a": 1}').value == {"a": 1}
    assert parse_json('{"a": 1}').ok

    broken = parse_json("{not json")
    assert not broken.ok
    assert broken.value is None

    assert not parse_json(None).ok


def test_decode_and_encode_value() -> None:
    """Test the value codec used for sync payloads."""
    assert decode_value('[1, 2]') == [1, 2]
    assert decode_value("plain text") == "plain text"
    assert decode_value("") == ""
    assert decode_value("null") is None

    assert encode_value("plain text") == "plain text"
    assert encode_value([1, 2]) == "[1, 2]"
    assert encode_value({"word": "猫"}) == '{"word": "猫"}'
    assert encode_value(None) == "null"


def test_collection_store_fallbacks(store: MemoryKeyValueStore, caplog) -> None:
    """Test that missing, malformed and mistyped values load as empty."""
    collection = JsonCollectionStore(store, "items")
    assert collection.load() == []

    store.set_item("items", "{broken")
    assert collection.load() == []
    assert "Malformed JSON" in caplog.text

    store.set_item("items", json.dumps({"not": "a list"}))
    assert collection.load() == []

    collection.save([{"a": 1}])
    assert collection.load() == [{"a": 1}]

    collection.remove()
    assert store.get_item("items") is None


def test_record_list_store_keeps_unreadable_entries(store: MemoryKeyValueStore) -> None:
    """Test that saving records never drops entries it could not read."""
    store.set_item("history", json.dumps([{"date": "2024-03-19", "timestamp": 1}, {"date": "2024-03-20"}]))
    records = RecordListStore(store, "history", CheckInRecord)

    history = records.load()
    assert [r.date for r in history] == ["2024-03-19"]

    history[0].study_minutes = 5
    history.append(CheckInRecord(date="2024-03-21", timestamp=3))
    records.save(history)
    assert json.loads(store.get_item("history")) == [
        {"date": "2024-03-19", "timestamp": 1, "studyMinutes": 5, "wordsLearned": 0,
         "questionsAnswered": 0, "lessonsCompleted": 0},
        {"date": "2024-03-21", "timestamp": 3, "studyMinutes": 0, "wordsLearned": 0,
         "questionsAnswered": 0, "lessonsCompleted": 0},
        {"date": "2024-03-20"},
    ]

    records.clear()
    assert store.get_item("history") == "[]"


if __name__ == "__main__":
    pytest.main([__file__])
