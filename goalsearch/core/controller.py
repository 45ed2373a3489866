"""Search modal controller: input, scope, debounce, rendering and activation.

Every search takes a new generation number. A finished search only updates
the view when its generation is still the latest and the modal is open, so a
slow response for an older query never overwrites a newer one.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Set

from loguru import logger

from .cache import QueryCache
from .config import Config
from .errors import SEARCH_FAILED_MESSAGE, SearchError
from .history import HistoryStore, KeyValueStore, RecentItemStore
from .models import Scope, SearchQuery, SearchResult
from .navigator import Activate, Cancel, KeyboardNavigator, key_from_name
from .pipeline import SearchPipeline
from .ranking import flatten
from .render import (
    View,
    error_view,
    loading_view,
    no_results_view,
    placeholder,
    recent_view,
    results_view,
)
from .sources import DataSource, SourceFanOut


class Navigator(Protocol):
    """Receives the URL of an activated result."""

    def open(self, url: str, new_tab: bool = False) -> None:
        ...


class Notifier(Protocol):
    """Receives user-facing error text."""

    def error(self, message: str) -> None:
        ...


class SearchController:
    """Owns the state of one search modal."""

    def __init__(self,
                 source: DataSource,
                 store: KeyValueStore,
                 clock: Callable[[], float] = time.time,
                 navigator: Optional[Navigator] = None,
                 notifier: Optional[Notifier] = None,
                 config: Optional[Config] = None):
        """
        Args:
            source: Remote collections
            store: Persistence for history and recent items
            clock: Wall clock in seconds; drives timestamps and cache expiry
            navigator: Opens activated result URLs
            notifier: Shows error text to the user
            config: Settings, defaults when omitted
        """
        self.config = config or Config()
        self.clock = clock
        self.navigator = navigator
        self.notifier = notifier

        self.history = HistoryStore(
            store, self.config.history.history_key, self.config.history.max_history
        )
        self.recent = RecentItemStore(
            store, self.config.history.recent_key, self.config.history.max_recent
        )
        self.history.load()
        self.recent.load()

        self.fanout = SourceFanOut(source, limit=self.config.api.limit)
        self.cache = QueryCache(
            max_size=self.config.search.cache_max_size,
            ttl_seconds=self.config.search.cache_ttl_seconds,
            clock=clock,
        )
        self.pipeline = SearchPipeline(self.fanout, self.cache, self.recent.contains)
        self.keyboard = KeyboardNavigator()

        self.is_open = False
        self.scope = Scope.ALL
        self.filters: Dict[str, str] = {}
        self.text = ""
        self.placeholder = placeholder(Scope.ALL)
        self.view: Optional[View] = None
        self.results: List[SearchResult] = []

        self._generation = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._stats = {'searches': 0, 'failures': 0, 'discarded': 0, 'activations': 0}

    @property
    def debounce_seconds(self) -> float:
        return self.config.search.debounce_ms / 1000.0

    @property
    def generation(self) -> int:
        return self._generation

    # Modal lifecycle

    def open(self) -> None:
        self.is_open = True
        self.show_recent()

    def close(self) -> None:
        """Hide the modal and reset input, scope, selection and view."""
        self.is_open = False
        self._cancel_pending()
        # Late responses from searches already in flight are dropped
        self._generation += 1
        self.text = ""
        self.set_scope(Scope.ALL)
        self.keyboard.clear()
        self.results = []
        self.view = None

    def toggle(self) -> None:
        if self.is_open:
            self.close()
        else:
            self.open()

    # Input

    def set_scope(self, scope: "Scope | str") -> None:
        """Switch scope; re-runs the current query under the new scope."""
        self.scope = Scope.parse(scope)
        self.placeholder = placeholder(self.scope)
        logger.debug(f"Scope set to {self.scope.value}")

        if self.text.strip():
            self._schedule(self.text, 0)

    def set_filters(self, filters: Mapping[str, str]) -> None:
        self.filters = dict(filters)

    def handle_input(self, text: str) -> None:
        """Record new input text and debounce the search."""
        self.text = text
        self._cancel_pending()

        if not text.strip():
            self.show_recent()
            return

        self._schedule(text, self.debounce_seconds)

    async def search_now(self, text: Optional[str] = None) -> Optional[View]:
        """Search immediately, bypassing the debounce window."""
        if text is not None:
            self.text = text
        self._cancel_pending()
        return await self._perform_search(self.text)

    async def execute_recent_search(self, query: str) -> Optional[View]:
        return await self.search_now(query)

    async def wait_idle(self) -> None:
        """Wait until no debounced or in-flight search remains."""
        while True:
            pending = [
                t for t in (self._debounce_task, *self._inflight)
                if t is not None and not t.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # Keyboard and activation

    def handle_key(self, name: str, meta: bool = False, ctrl: bool = False) -> Optional[str]:
        """
        Apply a raw key event.

        Returns the activated URL, if the key activated a result.
        """
        event = key_from_name(name, meta=meta, ctrl=ctrl)
        if event is None:
            return None

        action = self.keyboard.handle(event)
        if isinstance(action, Activate):
            return self.activate(action.index, new_tab=action.new_tab)
        if isinstance(action, Cancel):
            self.close()
        return None

    def activate(self, index: int, new_tab: bool = False) -> Optional[str]:
        """Open a rendered result, record it in history, then close."""
        if not 0 <= index < len(self.results):
            return None

        result = self.results[index]
        timestamp = self.clock() * 1000
        query = self.text.strip()

        if query:
            self.history.record(query, result.type.value, result.label, timestamp)
        self.recent.record(result.entity, result.type.value, timestamp)

        url = result.url
        if self.navigator is not None:
            self.navigator.open(url, new_tab=new_tab)

        self._stats['activations'] += 1
        logger.info(f"Opening {url}{' in new tab' if new_tab else ''}")
        self.close()
        return url

    # Rendering

    def show_recent(self) -> View:
        self._generation += 1
        view = recent_view(
            self.history.entries,
            self.recent.entries,
            now_ms=self.clock() * 1000,
            max_history=self.config.history.recent_view_history,
            max_items=self.config.history.recent_view_items,
        )
        shown = self.recent.entries[:self.config.history.recent_view_items]
        self.results = [
            SearchResult(entity=item.entity, type=Scope(item.type), relevance_score=0)
            for item in shown
        ]
        self.view = view
        # Recent items are navigable but not preselected
        self.keyboard.reset(len(self.results), select_first=False)
        return view

    def _apply(self, generation: int, view: View,
               results: Optional[List[SearchResult]] = None) -> bool:
        if generation != self._generation or not self.is_open:
            self._stats['discarded'] += 1
            logger.debug(f"Discarding stale {view.state.value} view (generation {generation})")
            return False

        self.view = view
        self.results = results or []
        self.keyboard.reset(len(self.results))
        return True

    async def _perform_search(self, text: str) -> Optional[View]:
        query_text = text.strip()
        if not query_text:
            return self.show_recent()

        self._generation += 1
        generation = self._generation
        self._stats['searches'] += 1

        query = SearchQuery(text=query_text, scope=self.scope, filters=dict(self.filters))
        self._apply(generation, loading_view())

        try:
            groups = await self.pipeline.grouped(query)
        except Exception as e:
            self._stats['failures'] += 1
            if isinstance(e, SearchError):
                logger.error(f"Search failed for {query_text!r}: {e}")
            else:
                logger.exception(f"Unexpected error searching for {query_text!r}")
            view = error_view(SEARCH_FAILED_MESSAGE)
            if not self._apply(generation, view):
                return None
            if self.notifier is not None:
                self.notifier.error(SEARCH_FAILED_MESSAGE)
            return view

        if not groups:
            view = no_results_view(query_text, self.scope)
            applied = self._apply(generation, view)
        else:
            view = results_view(groups, query_text, self.config.search.description_preview)
            applied = self._apply(generation, view, flatten(groups))

        return view if applied else None

    # Scheduling

    def _schedule(self, text: str, delay: float) -> None:
        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._debounce_task = loop.create_task(self._debounced(text, delay))

    async def _debounced(self, text: str, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)

        task = asyncio.current_task()
        # From here on the search can no longer be cancelled by new input
        if self._debounce_task is task:
            self._debounce_task = None
        self._inflight.add(task)
        try:
            await self._perform_search(text)
        finally:
            self._inflight.discard(task)

    def _cancel_pending(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    def stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            'generation': self._generation,
            'cache': self.cache.stats(),
            'sources': self.fanout.health(),
            'history_size': len(self.history),
            'recent_size': len(self.recent),
        }
