"""Client-side key-value persistence.

Every feature of the client keeps its data in one string-keyed store. A whole
collection lives under a single key as a JSON document, which is also the unit
the sync engine transfers and merges.
"""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Type

from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from lexibook.config import settings
from lexibook.models.base import make_engine, make_session_factory
from lexibook.models.local_models import LocalBase, LocalItem
from lexibook.models.records import T, split_records

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Outcome of decoding a stored JSON value."""
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_json(raw: Optional[str]) -> ParseResult:
    """Decode a stored value, reporting malformed input instead of raising."""
    if raw is None:
        return ParseResult(error="no value")
    try:
        return ParseResult(value=json.loads(raw))
    except (TypeError, ValueError) as e:
        return ParseResult(error=str(e))


def decode_value(raw: Optional[str]) -> Any:
    """JSON-decode a value where possible, otherwise keep the raw string."""
    if not raw:
        return raw
    result = parse_json(raw)
    return result.value if result.ok else raw


def encode_value(value: Any) -> str:
    """Inverse of decode_value: strings are written verbatim, the rest as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class KeyValueStore(ABC):
    """A persistent string-keyed map."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value, replacing any existing one."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""

    @abstractmethod
    def keys(self) -> List[str]:
        """List every stored key."""

    @abstractmethod
    def set_many(self, items: Mapping[str, str]) -> None:
        """Store several values, applying all of them or none."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""

    @abstractmethod
    def replace_all(self, items: Mapping[str, str]) -> None:
        """Swap the whole content of the store for the given items, atomically."""

    def items(self) -> Iterator[Tuple[str, str]]:
        for key in self.keys():
            value = self.get_item(key)
            if value is not None:
                yield key, value

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: str) -> bool:
        return self.get_item(key) is not None


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("store values must be strings")
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def set_many(self, items: Mapping[str, str]) -> None:
        if any(not isinstance(value, str) for value in items.values()):
            raise TypeError("store values must be strings")
        self._data.update(items)

    def clear(self) -> None:
        self._data.clear()

    def replace_all(self, items: Mapping[str, str]) -> None:
        if any(not isinstance(value, str) for value in items.values()):
            raise TypeError("store values must be strings")
        self._data = dict(items)


class SqlKeyValueStore(KeyValueStore):
    """Store persisted in a local database through SQLAlchemy."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.local_store.url
        self.engine = make_engine(self.url, echo=False)
        LocalBase.metadata.create_all(bind=self.engine)
        self._session_factory: sessionmaker = make_session_factory(self.engine)
        logger.debug("Local store opened at %s", self.url)

    def get_item(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            item = db.get(LocalItem, key)
            return item.value if item else None

    def set_item(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def remove_item(self, key: str) -> None:
        with self._session_factory.begin() as db:
            db.execute(delete(LocalItem).where(LocalItem.key == key))

    def keys(self) -> List[str]:
        with self._session_factory() as db:
            return list(db.scalars(select(LocalItem.key).order_by(LocalItem.key)))

    def items(self) -> Iterator[Tuple[str, str]]:
        with self._session_factory() as db:
            rows = db.execute(select(LocalItem.key, LocalItem.value).order_by(LocalItem.key)).all()
        for key, value in rows:
            yield key, value

    def set_many(self, items: Mapping[str, str]) -> None:
        if any(not isinstance(value, str) for value in items.values()):
            raise TypeError("store values must be strings")
        # One transaction: either every key is written or the block rolls back
        with self._session_factory.begin() as db:
            for key, value in items.items():
                db.merge(LocalItem(key=key, value=value))

    def clear(self) -> None:
        with self._session_factory.begin() as db:
            db.execute(delete(LocalItem))

    def replace_all(self, items: Mapping[str, str]) -> None:
        if any(not isinstance(value, str) for value in items.values()):
            raise TypeError("store values must be strings")
        with self._session_factory.begin() as db:
            db.execute(delete(LocalItem))
            db.add_all(LocalItem(key=key, value=value) for key, value in items.items())

    def close(self) -> None:
        self.engine.dispose()


class JsonCollectionStore:
    """A JSON document kept under one key of a KeyValueStore."""

    def __init__(self, store: KeyValueStore, key: str, default_factory: Callable[[], Any] = list):
        self.store = store
        self.key = key
        self.default_factory = default_factory

    def load(self) -> Any:
        """Load the document.

        A missing key yields the empty default. A malformed or mistyped value
        also falls back to the empty default, with a warning, so one corrupt
        entry never blocks the feature that owns it.
        """
        raw = self.store.get_item(self.key)
        if raw is None:
            return self.default_factory()

        result = parse_json(raw)
        default = self.default_factory()
        if not result.ok:
            logger.warning("Malformed JSON under %r, using empty value: %s", self.key, result.error)
            return default
        if not isinstance(result.value, type(default)):
            logger.warning(
                "Unexpected %s under %r, using empty value",
                type(result.value).__name__,
                self.key,
            )
            return default
        return result.value

    def save(self, value: Any) -> None:
        self.store.set_item(self.key, json.dumps(value, ensure_ascii=False))

    def remove(self) -> None:
        self.store.remove_item(self.key)


class RecordListStore:
    """A list of JsonRecord dataclasses kept under one key.

    Entries that cannot be read are never dropped: every save writes them
    back after the records, exactly as they were stored.
    """

    def __init__(self, store: KeyValueStore, key: str, record_type: Type[T]):
        self.collection = JsonCollectionStore(store, key)
        self.record_type = record_type

    def load(self) -> List[T]:
        return split_records(self.record_type, self.collection.load())[0]

    def save(self, records: List[T]) -> None:
        _, malformed = split_records(self.record_type, self.collection.load())
        self.collection.save([record.to_dict() for record in records] + malformed)

    def clear(self) -> None:
        """Empty the list, unreadable entries included."""
        self.collection.save([])

    def remove(self) -> None:
        self.collection.remove()
