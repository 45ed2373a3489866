"""Pure presentation helpers: every function returns plain data."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    EPOCH,
    HistoryEntry,
    RecentItem,
    RenderState,
    ResultGroup,
    SCOPE_INFO,
    Scope,
    SearchResult,
    parse_timestamp,
)


MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


@dataclass
class View:
    """What the result pane shows."""
    state: RenderState
    payload: Dict[str, Any] = field(default_factory=dict)


def highlight(text: str, query: str) -> str:
    """Wrap each case-insensitive occurrence of query in <mark> tags."""
    if not query or not text:
        return text
    pattern = re.compile(f"({re.escape(query)})", re.IGNORECASE)
    return pattern.sub(r"<mark>\1</mark>", text)


def truncate(text: str, width: int) -> str:
    if len(text) > width:
        return text[:width] + "..."
    return text


def relative_time(timestamp_ms: float, now_ms: float) -> str:
    diff = now_ms - timestamp_ms
    if diff < MINUTE_MS:
        return "Just now"
    if diff < HOUR_MS:
        return f"{int(diff // MINUTE_MS)}m ago"
    if diff < DAY_MS:
        return f"{int(diff // HOUR_MS)}h ago"
    return f"{int(diff // DAY_MS)}d ago"


def placeholder(scope: Scope) -> str:
    if scope is Scope.ALL:
        return "Search across all your data..."
    return f"Search {SCOPE_INFO[scope]['name'].lower()}..."


def status_badge(result: SearchResult) -> Optional[str]:
    return result.status or None


def metadata(result: SearchResult) -> List[str]:
    """Priority, due date and up to three tag names."""
    items = []
    if result.priority:
        items.append(f"P{result.priority}")
    if result.due_date:
        due = parse_timestamp(result.due_date)
        # Unparseable dates come back as the epoch
        if due != EPOCH:
            items.append(f"Due {due.date().isoformat()}")
    tags = result.tags[:3]
    if tags:
        items.append(", ".join(tags))
    return items


def result_item(result: SearchResult, query: str, width: int = 100) -> Dict[str, Any]:
    title = result.label or "Untitled"
    return {
        'id': result.id,
        'type': result.type.value,
        'title': title,
        'title_html': highlight(title, query),
        'description_html': highlight(truncate(result.description, width), query),
        'url': result.url,
        'score': result.relevance_score,
        'status': status_badge(result),
        'metadata': metadata(result),
        'icon': SCOPE_INFO[result.type]['icon'],
    }


def results_view(groups: Sequence[ResultGroup], query: str, width: int = 100) -> View:
    return View(RenderState.RESULTS, {
        'query': query,
        'groups': [
            {
                'type': g.type.value,
                'name': g.name,
                'icon': SCOPE_INFO[g.type]['icon'],
                'count': len(g),
                'items': [result_item(r, query, width) for r in g.items],
            }
            for g in groups if len(g)
        ],
    })


def recent_view(history: Sequence[HistoryEntry],
                recent: Sequence[RecentItem],
                now_ms: float,
                max_history: int = 5,
                max_items: int = 8) -> View:
    searches = [
        {
            'query': h.query,
            'meta': f"{h.type} • {h.title}",
            'time': relative_time(h.timestamp, now_ms),
        }
        for h in list(history)[:max_history]
    ]
    items = [
        {
            'id': r.id,
            'type': r.type,
            'title': r.title,
            'description': truncate(r.description, 60),
            'url': r.url,
            'icon': SCOPE_INFO[Scope(r.type)]['icon'],
        }
        for r in list(recent)[:max_items]
    ]
    payload: Dict[str, Any] = {'searches': searches, 'items': items}
    if not searches and not items:
        payload['empty'] = {
            'title': "Start typing to search",
            'description': "Search across all your projects, goals, tasks, and more",
        }
    return View(RenderState.RECENT, payload)


def loading_view() -> View:
    return View(RenderState.LOADING, {'text': "Searching..."})


def error_view(message: str) -> View:
    return View(RenderState.ERROR, {'message': message})


def no_results_view(query: str, scope: Scope = Scope.ALL) -> View:
    return View(RenderState.NO_RESULTS, {
        'query': query,
        'title': "No results found",
        'suggest_all_scopes': scope is not Scope.ALL,
    })
