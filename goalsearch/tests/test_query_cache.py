"""Tests for the query cache."""

import pytest

from goalsearch.core.cache import QueryCache
from goalsearch.core.errors import CacheKeyError
from goalsearch.core.models import Scope, SearchQuery, SearchResult


def results(label):
    return [SearchResult(entity={"id": 1, "title": label}, type=Scope.NOTES, relevance_score=50)]


def test_hit_returns_same_list(clock):
    cache = QueryCache(clock=clock)
    stored = results("a")
    cache.put("k", stored)

    assert cache.get("k") is stored
    assert cache.stats()['hits'] == 1


def test_miss():
    cache = QueryCache()
    assert cache.get("nope") is None
    assert cache.stats()['misses'] == 1


def test_lru_eviction(clock):
    cache = QueryCache(max_size=2, clock=clock)
    cache.put("a", results("a"))
    cache.put("b", results("b"))
    cache.get("a")
    cache.put("c", results("c"))

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert cache.stats()['evictions'] == 1


def test_ttl_expiry(clock):
    cache = QueryCache(ttl_seconds=10, clock=clock)
    cache.put("k", results("k"))

    clock.advance(5)
    assert cache.get("k") is not None

    clock.advance(6)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_no_ttl_keeps_entries_for_session(clock):
    cache = QueryCache(ttl_seconds=None, clock=clock)
    cache.put("k", results("k"))
    clock.advance(10**6)
    assert cache.get("k") is not None


def test_invalid_size():
    with pytest.raises(ValueError):
        QueryCache(max_size=0)


def test_cache_key_includes_scope_text_and_filters():
    a = SearchQuery("plan", Scope.ALL, {"status": "active"})
    b = SearchQuery("plan", Scope.GOALS, {"status": "active"})
    c = SearchQuery("plan", Scope.ALL, {"status": "done"})

    assert a.cache_key == 'all:plan:{"status": "active"}'
    assert len({a.cache_key, b.cache_key, c.cache_key}) == 3
    assert SearchQuery("plan", Scope.ALL, {"b": "1", "a": "2"}).cache_key == \
        SearchQuery("plan", Scope.ALL, {"a": "2", "b": "1"}).cache_key


def test_unserialisable_filters_raise_cache_key_error():
    query = SearchQuery("plan", Scope.ALL, {"when": object()})
    with pytest.raises(CacheKeyError):
        query.cache_key
