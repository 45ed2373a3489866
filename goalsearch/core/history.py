"""Persisted search history and recently viewed items."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Generic, List, Mapping, Optional, Protocol, TypeVar

from loguru import logger

from .errors import PersistenceError
from .models import HistoryEntry, RecentItem


class KeyValueStore(Protocol):
    """Minimal persistence backend."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStore:
    """In-process store, mainly for tests and one-shot sessions."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStore:
    """
    Key-value store backed by one JSON object on disk.

    Writes go to a temporary file that replaces the original, so a crash
    never leaves a half-written store behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except PersistenceError:
            logger.warning(f"Replacing unreadable store at {self.path}")
            data = {}
        data[key] = value

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix='.store-', suffix='.json')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e


T = TypeVar('T', HistoryEntry, RecentItem)


class _BoundedStore(Generic[T]):
    """Deduplicated, most-recent-first list persisted under one key."""

    def __init__(self, store: KeyValueStore, key: str, cap: int):
        if cap < 1:
            raise ValueError("cap must be at least 1")
        self.store = store
        self.key = key
        self.cap = cap
        self.entries: List[T] = []

    def _decode(self, data: Mapping[str, Any]) -> T:
        raise NotImplementedError

    def load(self) -> List[T]:
        """Read entries; anything missing or malformed reads as an empty list."""
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.warning(f"Could not read {self.key}: {e}")
            raw = None

        entries: List[T] = []
        if raw:
            try:
                items = json.loads(raw)
            except ValueError:
                logger.warning(f"Ignoring malformed {self.key} data")
                items = []
            if not isinstance(items, list):
                items = []
            for item in items:
                try:
                    entries.append(self._decode(item))
                except (KeyError, TypeError, ValueError, AttributeError):
                    logger.debug(f"Skipping malformed {self.key} entry: {item!r}")

        self.entries = entries[:self.cap]
        return self.entries

    def save(self) -> None:
        """Write entries; failures are logged and otherwise ignored."""
        try:
            self.store.set(self.key, json.dumps([e.to_dict() for e in self.entries]))
        except Exception as e:
            logger.warning(f"Could not persist {self.key}: {e}")

    def add(self, entry: T) -> T:
        self.entries = [e for e in self.entries if e.key != entry.key]
        self.entries.insert(0, entry)
        del self.entries[self.cap:]
        self.save()
        return entry

    def clear(self) -> None:
        self.entries = []
        self.save()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


class HistoryStore(_BoundedStore[HistoryEntry]):
    """Past queries, unique by (query, type, title), newest first."""

    def __init__(self, store: KeyValueStore, key: str = 'search-history', cap: int = 50):
        super().__init__(store, key, cap)

    def _decode(self, data: Mapping[str, Any]) -> HistoryEntry:
        return HistoryEntry.from_dict(data)

    def record(self, query: str, type: str, title: str, timestamp: float) -> HistoryEntry:
        return self.add(HistoryEntry(query=query, type=type, title=title, timestamp=timestamp))


class RecentItemStore(_BoundedStore[RecentItem]):
    """Visited entities, unique by (id, type), newest first."""

    def __init__(self, store: KeyValueStore, key: str = 'recent-items', cap: int = 20):
        super().__init__(store, key, cap)

    def _decode(self, data: Mapping[str, Any]) -> RecentItem:
        return RecentItem.from_dict(data)

    def record(self, entity: Mapping[str, Any], type: str, timestamp: float) -> RecentItem:
        return self.add(RecentItem(entity=dict(entity), type=type, timestamp=timestamp))

    def contains(self, entity_id: Any, type: str) -> bool:
        return any(item.id == entity_id and item.type == type for item in self.entries)
