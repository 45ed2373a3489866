"""Error taxonomy and per-source health tracking.

Failures are classified by how far they reach:
- A source failure drops one collection from the aggregate result
- A total failure (every source failed, or the search could not start) renders
  the error state
- A persistence failure degrades history to an empty list or a no-op
None of them is fatal to the host application.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


SEARCH_FAILED_MESSAGE = "Search failed. Please try again."


class SearchError(Exception):
    """Base class for search errors."""


class SourceError(SearchError):
    """One collection request failed (transport, status or body)."""

    def __init__(self, collection: str, reason: str):
        super().__init__(f"{collection}: {reason}")
        self.collection = collection
        self.reason = reason


class TotalSearchFailure(SearchError):
    """Every request of a fan-out failed."""

    def __init__(self, errors: List[BaseException]):
        super().__init__(f"All {len(errors)} source(s) failed")
        self.errors = errors


class CacheKeyError(SearchError):
    """The cache key for a query could not be built."""


class PersistenceError(SearchError):
    """The key-value store could not be read or written."""


class SourceState(Enum):
    """Source health states."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ErrorEvent:
    """A recorded source failure."""
    timestamp: datetime
    source: str
    error_type: str
    message: str

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'source': self.source,
            'error_type': self.error_type,
            'message': self.message,
        }


@dataclass
class SourceHealth:
    """
    Tracks the health of one collection.

    Health is informational only: a degraded or unhealthy source is still
    queried on every search.
    """
    name: str
    state: SourceState = SourceState.HEALTHY
    error_count: int = 0
    success_count: int = 0
    consecutive_failures: int = 0
    last_error: Optional[ErrorEvent] = None
    last_success: Optional[datetime] = None

    @property
    def error_rate(self) -> float:
        total = self.error_count + self.success_count
        if total == 0:
            return 0.0
        return self.error_count / total

    def record_success(self) -> None:
        self.success_count += 1
        self.consecutive_failures = 0
        self.last_success = datetime.now()
        self._update_state()

    def record_failure(self, error: BaseException) -> None:
        self.error_count += 1
        self.consecutive_failures += 1
        self.last_error = ErrorEvent(
            timestamp=datetime.now(),
            source=self.name,
            error_type=type(error).__name__,
            message=str(error),
        )
        self._update_state()

    def _update_state(self) -> None:
        if self.error_rate > 0.5:
            self.state = SourceState.UNHEALTHY
        elif self.error_rate > 0.2:
            self.state = SourceState.DEGRADED
        else:
            self.state = SourceState.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'error_count': self.error_count,
            'success_count': self.success_count,
            'consecutive_failures': self.consecutive_failures,
            'error_rate': self.error_rate,
            'last_error': self.last_error.to_dict() if self.last_error else None,
        }
