"""Tests for the HTTP data source and the fan-out."""

import httpx
import pytest

from goalsearch.core.errors import SourceError, TotalSearchFailure
from goalsearch.core.models import COLLECTIONS, Scope, SearchQuery
from goalsearch.core.sources import HttpDataSource, SourceFanOut

from conftest import FakeSource


def http_source(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpDataSource("http://api.test/api/v1/", client=client)


class TestHttpDataSource:

    @pytest.mark.asyncio
    async def test_fetch_sends_query_and_limit(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['path'] = request.url.path
            seen['params'] = dict(request.url.params)
            return httpx.Response(200, json=[{"id": 1, "title": "Alpha"}])

        source = http_source(handler)
        data = await source.fetch("projects", "alp", 20)

        assert data == [{"id": 1, "title": "Alpha"}]
        assert seen['path'] == "/api/v1/projects"
        assert seen['params'] == {"q": "alp", "limit": "20"}

    @pytest.mark.asyncio
    async def test_envelope_body_is_unwrapped(self):
        source = http_source(lambda r: httpx.Response(200, json={"data": [{"id": 3}]}))
        assert await source.fetch("tasks", "x", 20) == [{"id": 3}]

    @pytest.mark.asyncio
    async def test_non_2xx_is_source_error(self):
        source = http_source(lambda r: httpx.Response(503, text="down"))
        with pytest.raises(SourceError) as exc:
            await source.fetch("goals", "x", 20)
        assert exc.value.collection == "goals"
        assert "503" in exc.value.reason

    @pytest.mark.asyncio
    async def test_malformed_body_is_source_error(self):
        source = http_source(lambda r: httpx.Response(200, text="<html>oops"))
        with pytest.raises(SourceError):
            await source.fetch("notes", "x", 20)

    @pytest.mark.asyncio
    async def test_non_array_body_is_source_error(self):
        source = http_source(lambda r: httpx.Response(200, json={"error": "nope"}))
        with pytest.raises(SourceError):
            await source.fetch("notes", "x", 20)

    @pytest.mark.asyncio
    async def test_transport_error_is_source_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        source = http_source(handler)
        with pytest.raises(SourceError):
            await source.fetch("tags", "x", 20)


class TestSourceFanOut:

    @pytest.mark.asyncio
    async def test_all_scope_queries_every_collection(self, sample_data):
        source = FakeSource(sample_data)
        fanout = SourceFanOut(source, limit=20)

        await fanout.gather(SearchQuery("project"))

        assert sorted(c for c, _, _ in source.calls) == sorted(c.value for c in COLLECTIONS)
        assert all(limit == 20 for _, _, limit in source.calls)

    @pytest.mark.asyncio
    async def test_single_scope_queries_one_collection(self, sample_data):
        source = FakeSource(sample_data)
        fanout = SourceFanOut(source)

        found = await fanout.gather(SearchQuery("project", Scope.TASKS))

        assert [c for c, _, _ in source.calls] == ["tasks"]
        assert [r.id for r in found] == [20]
        assert all(r.type is Scope.TASKS for r in found)

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_fulfilled_sources(self, sample_data):
        source = FakeSource(sample_data, failing={"goals", "notes"})
        fanout = SourceFanOut(source)

        found = await fanout.gather(SearchQuery("project"))

        assert len(source.calls) == 6
        types = {r.type for r in found}
        assert Scope.GOALS not in types
        assert Scope.NOTES not in types
        assert types == {Scope.PROJECTS, Scope.TASKS, Scope.CONTEXTS, Scope.TAGS}

        health = fanout.health()
        assert health["goals"]["error_count"] == 1
        assert health["projects"]["success_count"] == 1

    @pytest.mark.asyncio
    async def test_total_failure_raises(self):
        source = FakeSource(failing={c.value for c in COLLECTIONS})
        fanout = SourceFanOut(source)

        with pytest.raises(TotalSearchFailure) as exc:
            await fanout.gather(SearchQuery("anything"))
        assert len(exc.value.errors) == 6

    @pytest.mark.asyncio
    async def test_single_scope_failure_is_total(self):
        fanout = SourceFanOut(FakeSource(failing={"tasks"}))
        with pytest.raises(TotalSearchFailure):
            await fanout.gather(SearchQuery("x", Scope.TASKS))

    @pytest.mark.asyncio
    async def test_unexpected_source_exception_is_dropped(self, sample_data):
        class Flaky(FakeSource):
            async def fetch(self, collection, text, limit):
                if collection == "tags":
                    raise RuntimeError("socket closed")
                return await super().fetch(collection, text, limit)

        found = await SourceFanOut(Flaky(sample_data)).gather(SearchQuery("project"))
        assert Scope.TAGS not in {r.type for r in found}

    @pytest.mark.asyncio
    async def test_non_list_payload_is_dropped(self):
        class Weird(FakeSource):
            async def fetch(self, collection, text, limit):
                if collection == "projects":
                    return {"id": 1}
                return [{"id": 2, "title": "x marks"}]

        found = await SourceFanOut(Weird()).gather(SearchQuery("x"))
        assert len(found) == 5

    @pytest.mark.asyncio
    async def test_non_list_tags_are_ignored(self):
        source = FakeSource({
            "projects": [{"id": 1, "title": "Project Alpha"}],
            "tasks": [{"id": 2, "title": "Project Review", "tags": 5}],
        })

        found = await SourceFanOut(source).gather(SearchQuery("Project"))

        assert {r.label for r in found} == {"Project Alpha", "Project Review"}
        assert found[1].tags == []

    @pytest.mark.asyncio
    async def test_entity_that_cannot_be_scored_drops_its_source(self):
        source = FakeSource({
            "projects": [{"id": 1, "title": "Project Alpha"}],
            "tasks": [{"id": [2], "title": "Project Review"}],
        })
        recent_keys = {(7, "projects")}
        fanout = SourceFanOut(source)

        found = await fanout.gather(
            SearchQuery("Project"),
            is_recent=lambda id_, type_: (id_, type_) in recent_keys
        )

        assert [r.label for r in found] == ["Project Alpha"]
        health = fanout.health()
        assert health["tasks"]["error_count"] == 1
        assert "malformed entity" in health["tasks"]["last_error"]["message"]
        assert health["projects"]["error_count"] == 0

    @pytest.mark.asyncio
    async def test_unscorable_entities_everywhere_is_total_failure(self):
        source = FakeSource({"notes": [{"id": {}, "title": "Meeting"}]})

        with pytest.raises(TotalSearchFailure):
            await SourceFanOut(source).gather(
                SearchQuery("Meeting", Scope.NOTES),
                is_recent=lambda id_, type_: (id_, type_) in set()
            )

    @pytest.mark.asyncio
    async def test_recent_predicate_adds_bonus(self, sample_data):
        fanout = SourceFanOut(FakeSource(sample_data))

        found = await fanout.gather(
            SearchQuery("Project Review", Scope.TASKS),
            is_recent=lambda id_, type_: (id_, type_) == (20, "tasks")
        )
        assert found[0].relevance_score == 110
