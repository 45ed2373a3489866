"""Data models for the global search core."""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from .errors import CacheKeyError


class Scope(Enum):
    """Entity collections a search can target."""
    ALL = "all"
    PROJECTS = "projects"
    GOALS = "goals"
    TASKS = "tasks"
    CONTEXTS = "contexts"
    TAGS = "tags"
    NOTES = "notes"

    @classmethod
    def parse(cls, value: "str | Scope") -> "Scope":
        if isinstance(value, Scope):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown scope: {value}") from None

    @property
    def collections(self) -> List["Scope"]:
        """Collections queried for this scope."""
        if self is Scope.ALL:
            return list(COLLECTIONS)
        return [self]


# Fan-out order for the "all" scope
COLLECTIONS = (
    Scope.PROJECTS,
    Scope.GOALS,
    Scope.TASKS,
    Scope.CONTEXTS,
    Scope.NOTES,
    Scope.TAGS,
)

SCOPE_INFO: Dict[Scope, Dict[str, str]] = {
    Scope.ALL: {"name": "All", "icon": "🔍"},
    Scope.PROJECTS: {"name": "Projects", "icon": "📁"},
    Scope.GOALS: {"name": "Goals", "icon": "🎯"},
    Scope.TASKS: {"name": "Tasks", "icon": "✓"},
    Scope.CONTEXTS: {"name": "Contexts", "icon": "🌈"},
    Scope.TAGS: {"name": "Tags", "icon": "🏷️"},
    Scope.NOTES: {"name": "Notes", "icon": "📝"},
}

TYPE_PRIORITY: Dict[Scope, int] = {
    Scope.PROJECTS: 5,
    Scope.GOALS: 4,
    Scope.TASKS: 3,
    Scope.CONTEXTS: 2,
    Scope.NOTES: 1,
    Scope.TAGS: 0,
}

URL_PREFIXES: Dict[Scope, str] = {
    Scope.PROJECTS: "/projects",
    Scope.GOALS: "/goals",
    Scope.TASKS: "/tasks",
    Scope.CONTEXTS: "/contexts",
    Scope.NOTES: "/notes",
    Scope.TAGS: "/tags",
}

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an entity date into an aware datetime.

    Numbers are read as epoch milliseconds, strings as ISO 8601. Anything
    that cannot be parsed sorts as the epoch.
    """
    if value is None or value == "":
        return EPOCH
    try:
        if isinstance(value, bool):
            return EPOCH
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    except (ValueError, OverflowError, OSError):
        return EPOCH
    return EPOCH


def tag_names(entity: Mapping[str, Any]) -> List[str]:
    """Tag names of an entity; tags may be plain strings or {name: ...} objects."""
    tags = entity.get("tags")
    if not isinstance(tags, (list, tuple)):
        return []
    names = []
    for tag in tags:
        if isinstance(tag, Mapping):
            name = tag.get("name")
            if name:
                names.append(str(name))
        elif tag is not None:
            names.append(str(tag))
    return names


def entity_label(entity: Mapping[str, Any]) -> str:
    return str(entity.get("title") or entity.get("name") or "")


def entity_description(entity: Mapping[str, Any]) -> str:
    return str(entity.get("description") or entity.get("content") or "")


@dataclass(frozen=True)
class SearchQuery:
    """One search invocation: text, scope and filters."""
    text: str
    scope: Scope = Scope.ALL
    filters: Mapping[str, str] = field(default_factory=dict)

    @property
    def cache_key(self) -> str:
        """Cache key built from scope, query text and serialised filters."""
        try:
            filters = json.dumps(dict(self.filters), sort_keys=True)
        except (TypeError, ValueError) as e:
            raise CacheKeyError(f"Cannot serialise filters: {e}") from e
        return f"{self.scope.value}:{self.text}:{filters}"


@dataclass(frozen=True)
class SearchResult:
    """A scored candidate from one collection."""
    entity: Mapping[str, Any]
    type: Scope
    relevance_score: int

    def __post_init__(self):
        if self.type is Scope.ALL:
            raise ValueError("A search result must belong to a single collection")
        if not isinstance(self.entity, MappingProxyType):
            object.__setattr__(self, "entity", MappingProxyType(dict(self.entity)))

    @property
    def id(self) -> Any:
        return self.entity.get("id")

    @property
    def label(self) -> str:
        return entity_label(self.entity)

    @property
    def description(self) -> str:
        return entity_description(self.entity)

    @property
    def tags(self) -> List[str]:
        return tag_names(self.entity)

    @property
    def status(self) -> Optional[str]:
        return self.entity.get("status")

    @property
    def priority(self) -> Any:
        return self.entity.get("priority")

    @property
    def due_date(self) -> Any:
        return self.entity.get("dueDate") or self.entity.get("due_date")

    @property
    def created_at(self) -> datetime:
        return parse_timestamp(self.entity.get("createdAt") or self.entity.get("created_at"))

    @property
    def url(self) -> str:
        return f"{URL_PREFIXES[self.type]}/{self.id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            **dict(self.entity),
            'type': self.type.value,
            'relevanceScore': self.relevance_score,
        }


@dataclass(frozen=True)
class ResultGroup:
    """Results of one type in rank order."""
    type: Scope
    items: tuple

    @property
    def name(self) -> str:
        return SCOPE_INFO[self.type]["name"]

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class HistoryEntry:
    """A past query together with the result it led to."""
    query: str
    type: str
    title: str
    timestamp: float

    @property
    def key(self) -> tuple:
        return (self.query, self.type, self.title)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoryEntry":
        return cls(
            query=str(data["query"]),
            type=str(data["type"]),
            title=str(data.get("title") or ""),
            timestamp=float(data.get("timestamp") or 0),
        )


@dataclass
class RecentItem:
    """Snapshot of a visited entity."""
    entity: Dict[str, Any]
    type: str
    timestamp: float

    @property
    def id(self) -> Any:
        return self.entity.get("id")

    @property
    def key(self) -> tuple:
        return (self.id, self.type)

    @property
    def title(self) -> str:
        return entity_label(self.entity)

    @property
    def description(self) -> str:
        return entity_description(self.entity)

    @property
    def url(self) -> str:
        return f"{URL_PREFIXES[Scope(self.type)]}/{self.id}"

    def to_dict(self) -> Dict[str, Any]:
        return {**self.entity, 'type': self.type, 'timestamp': self.timestamp}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecentItem":
        entity = {k: v for k, v in data.items() if k not in ("type", "timestamp")}
        if "id" not in entity:
            raise KeyError("id")
        scope = Scope(data["type"])
        if scope is Scope.ALL:
            raise ValueError("Recent items must belong to a single collection")
        return cls(
            entity=entity,
            type=scope.value,
            timestamp=float(data.get("timestamp") or 0),
        )


class RenderState(Enum):
    """Mutually exclusive states of the result pane."""
    LOADING = "loading"
    ERROR = "error"
    NO_RESULTS = "no-results"
    RESULTS = "results"
    RECENT = "recent"
