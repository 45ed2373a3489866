"""Filtering, relevance scoring, ordering and grouping of search results.

Scoring is additive:
- label equals the query (case-insensitive): +100
- otherwise label contains the query: +50
- description/content contains the query: +25
- entity is in the recently viewed list: +10

Results are ordered by score, then type priority, then creation date (newest
first). Groups follow the order in which each type first appears in the
ranked list.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

from .models import (
    ResultGroup,
    Scope,
    SearchResult,
    TYPE_PRIORITY,
    entity_description,
    entity_label,
    tag_names,
)


EXACT_LABEL_POINTS = 100
LABEL_POINTS = 50
DESCRIPTION_POINTS = 25
RECENT_POINTS = 10


def searchable_text(entity: Mapping[str, Any]) -> str:
    """Label, description, content and tag names joined and lower-cased."""
    parts = [
        entity_label(entity),
        str(entity.get("description") or ""),
        str(entity.get("content") or ""),
        *tag_names(entity),
    ]
    return " ".join(parts).lower()


def matches(entity: Mapping[str, Any], text: str) -> bool:
    return text.lower() in searchable_text(entity)


def score(entity: Mapping[str, Any], text: str, is_recent: bool = False) -> int:
    query = text.lower()
    label = entity_label(entity).lower()
    description = entity_description(entity).lower()

    points = 0
    if label == query:
        points += EXACT_LABEL_POINTS
    elif query in label:
        points += LABEL_POINTS

    if query in description:
        points += DESCRIPTION_POINTS

    if is_recent:
        points += RECENT_POINTS

    return points


def sort_key(result: SearchResult) -> tuple:
    return (
        result.relevance_score,
        TYPE_PRIORITY.get(result.type, 0),
        result.created_at,
    )


def rank(results: Iterable[SearchResult]) -> List[SearchResult]:
    """Stable sort, best first."""
    return sorted(results, key=sort_key, reverse=True)


def group(results: Sequence[SearchResult]) -> List[ResultGroup]:
    """Partition a ranked list by type, in first-occurrence order."""
    buckets: Dict[Scope, List[SearchResult]] = {}
    for result in results:
        buckets.setdefault(result.type, []).append(result)
    return [ResultGroup(type=scope, items=tuple(items)) for scope, items in buckets.items()]


def flatten(groups: Sequence[ResultGroup]) -> List[SearchResult]:
    """Results in render order (group by group)."""
    return [item for g in groups for item in g.items]


class RelevanceRanker:
    """
    Turns one collection's raw entities into scored candidates.

    Args:
        is_recent: Predicate (entity id, collection name) -> bool used for the
            recently viewed bonus
    """

    def __init__(self, is_recent: Callable[[Any, str], bool] = lambda _id, _type: False):
        self.is_recent = is_recent

    def candidates(self,
                   entities: Iterable[Any],
                   text: str,
                   collection: Scope) -> List[SearchResult]:
        results = []
        for entity in entities:
            if not isinstance(entity, Mapping) or not matches(entity, text):
                continue
            points = score(entity, text, self.is_recent(entity.get("id"), collection.value))
            results.append(SearchResult(entity=entity, type=collection, relevance_score=points))
        return results

    def rank(self, results: Iterable[SearchResult]) -> List[SearchResult]:
        return rank(results)
