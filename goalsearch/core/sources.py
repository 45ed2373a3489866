"""Remote data source and concurrent fan-out across entity collections."""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx
from loguru import logger

from .errors import SourceError, SourceHealth, TotalSearchFailure
from .models import COLLECTIONS, Scope, SearchQuery, SearchResult
from .ranking import RelevanceRanker


class DataSource(Protocol):
    """Anything that can return raw entities for one collection."""

    async def fetch(self, collection: str, text: str, limit: int) -> List[Dict[str, Any]]:
        ...


class HttpDataSource:
    """
    REST client for `GET {base_url}/{collection}?q=<text>&limit=<n>`.

    Any transport error, non-2xx status or body that is not a JSON array is
    raised as SourceError.
    """

    def __init__(self,
                 base_url: str,
                 timeout: float = 30.0,
                 headers: Optional[Dict[str, str]] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip('/')
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers=headers or {'Accept': 'application/json'},
        )

    async def fetch(self, collection: str, text: str, limit: int) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/{collection}"
        try:
            response = await self._client.get(url, params={'q': text, 'limit': limit})
        except httpx.HTTPError as e:
            raise SourceError(collection, f"request failed: {e}") from e

        if not response.is_success:
            raise SourceError(collection, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise SourceError(collection, "malformed JSON body") from e

        # Envelope responses: {"data": [...]}
        if isinstance(body, dict) and isinstance(body.get('data'), list):
            body = body['data']

        if not isinstance(body, list):
            raise SourceError(collection, f"expected a JSON array, got {type(body).__name__}")

        return body

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpDataSource":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


class SourceFanOut:
    """Queries every collection in scope concurrently and keeps what succeeds."""

    def __init__(self, source: DataSource, limit: int = 20):
        self.source = source
        self.limit = limit
        self._health: Dict[str, SourceHealth] = {
            c.value: SourceHealth(name=c.value) for c in COLLECTIONS
        }
        self.calls = 0

    async def gather(self,
                     query: SearchQuery,
                     is_recent: Callable[[Any, str], bool] = lambda _id, _type: False
                     ) -> List[SearchResult]:
        """
        Fan the query out and return unranked candidates.

        Failed collections are dropped. Raises TotalSearchFailure only when
        every request failed.
        """
        self.calls += 1
        collections = query.scope.collections
        ranker = RelevanceRanker(is_recent)

        outcomes = await asyncio.gather(
            *(self._fetch_one(c, query.text) for c in collections),
            return_exceptions=True
        )

        candidates: List[SearchResult] = []
        errors: List[BaseException] = []

        for collection, outcome in zip(collections, outcomes):
            health = self._health[collection.value]
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                health.record_failure(outcome)
                errors.append(outcome)
                logger.warning(f"Source {collection.value} dropped: {outcome}")
                continue

            try:
                found = ranker.candidates(outcome, query.text, collection)
            except (TypeError, ValueError, AttributeError) as e:
                error = SourceError(collection.value, f"malformed entity: {e}")
                health.record_failure(error)
                errors.append(error)
                logger.warning(f"Source {collection.value} dropped: {error}")
                continue

            health.record_success()
            candidates.extend(found)

        if errors and len(errors) == len(collections):
            raise TotalSearchFailure(errors)

        return candidates

    async def _fetch_one(self, collection: Scope, text: str) -> List[Any]:
        start = time.perf_counter()
        try:
            data = await self.source.fetch(collection.value, text, self.limit)
        except SourceError:
            raise
        except Exception as e:
            raise SourceError(collection.value, str(e)) from e

        if not isinstance(data, list):
            raise SourceError(collection.value, "expected a list of entities")

        logger.debug(
            f"Source {collection.value} returned {len(data)} entities "
            f"in {(time.perf_counter() - start) * 1000:.1f}ms"
        )
        return data

    def health(self) -> Dict[str, Dict[str, Any]]:
        return {name: h.to_dict() for name, h in self._health.items()}
