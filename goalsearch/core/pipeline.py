"""Cache -> fan-out -> rank -> group, with no presentation concerns."""

from typing import Any, Callable, List

from loguru import logger

from .cache import QueryCache
from .models import ResultGroup, SearchQuery, SearchResult
from .ranking import group, rank
from .sources import SourceFanOut


class SearchPipeline:
    """
    Produces ranked results for a query.

    A cache hit returns the stored list itself and never reaches the data
    source. Only completed searches are cached; a total failure propagates.
    """

    def __init__(self,
                 fanout: SourceFanOut,
                 cache: QueryCache,
                 is_recent: Callable[[Any, str], bool] = lambda _id, _type: False):
        self.fanout = fanout
        self.cache = cache
        self.is_recent = is_recent

    async def search(self, query: SearchQuery) -> List[SearchResult]:
        key = query.cache_key

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for query: {query.text!r} ({query.scope.value})")
            return cached

        candidates = await self.fanout.gather(query, self.is_recent)
        results = rank(candidates)
        self.cache.put(key, results)
        return results

    async def grouped(self, query: SearchQuery) -> List[ResultGroup]:
        return group(await self.search(query))
