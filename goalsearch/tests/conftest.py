"""Shared fakes for the search tests."""

import asyncio
from typing import Any, Dict, List

import pytest

from goalsearch.core.config import Config
from goalsearch.core.errors import SourceError
from goalsearch.core.history import MemoryStore


class FakeSource:
    """Returns canned entities per collection; named collections fail."""

    def __init__(self, data: Dict[str, List[Dict[str, Any]]] = None, failing=()):
        self.data = data or {}
        self.failing = set(failing)
        self.calls = []

    async def fetch(self, collection: str, text: str, limit: int):
        self.calls.append((collection, text, limit))
        if collection in self.failing:
            raise SourceError(collection, "HTTP 500")
        return list(self.data.get(collection, []))


class GatedSource(FakeSource):
    """Each query text waits on its own gate before answering."""

    def __init__(self, data=None):
        super().__init__(data)
        self.gates: Dict[str, asyncio.Event] = {}

    def gate(self, text: str) -> asyncio.Event:
        return self.gates.setdefault(text, asyncio.Event())

    async def fetch(self, collection: str, text: str, limit: int):
        await self.gate(text).wait()
        return await super().fetch(collection, text, limit)


class RecordingNavigator:
    def __init__(self):
        self.opened = []

    def open(self, url: str, new_tab: bool = False) -> None:
        self.opened.append((url, new_tab))


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def error(self, message: str) -> None:
        self.messages.append(message)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sample_data():
    return {
        "projects": [
            {"id": 1, "title": "Project Alpha", "description": "Launch plan", "createdAt": "2024-03-01T10:00:00Z"},
            {"id": 2, "title": "Garden", "description": "Spring beds"},
        ],
        "goals": [
            {"id": 10, "title": "Alpha Plan", "description": "Ship Alpha by June", "status": "active"},
        ],
        "tasks": [
            {"id": 20, "title": "Project Review", "tags": [{"name": "work"}], "priority": 2},
            {"id": 21, "title": "Water plants", "tags": ["home"]},
        ],
        "contexts": [
            {"id": 30, "name": "Office", "description": "Project desk"},
        ],
        "notes": [
            {"id": 40, "title": "Meeting", "content": "Discussed project budget"},
        ],
        "tags": [
            {"id": 50, "name": "project"},
        ],
    }


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def config():
    return Config()
