"""Shared fixtures: in-memory queue and store"""
from collections import Counter, deque
from typing import Any, Dict, List, Optional

import pytest

from ingest import EventIngestor
from models import StoredEvent
from worker import QueueDrainer


class FakeQueue:
    """In-memory FIFO standing in for the broker queue"""

    def __init__(self, name: str = "analytics_events"):
        self.name = name
        self.entries = deque()
        self.pops = 0
        self.is_connected = True

    async def push(self, body: bytes):
        self.entries.append(body)

    async def pop(self) -> Optional[bytes]:
        self.pops += 1
        return self.entries.popleft() if self.entries else None

    async def length(self) -> int:
        return len(self.entries)


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for field, cond in query.items():
        value = doc[field]
        if isinstance(cond, dict):
            if "$gte" in cond and not value >= cond["$gte"]:
                return False
            if "$lte" in cond and not value <= cond["$lte"]:
                return False
        elif value != cond:
            return False
    return True


class FakeStore:
    """In-memory store answering the same query shapes as EventStore"""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []

    async def ping(self) -> bool:
        return True

    async def insert(self, event: StoredEvent):
        self.docs.append(event.model_dump())

    def _find(self, query):
        return [doc for doc in self.docs if _matches(doc, query)]

    async def count(self, query) -> int:
        return len(self._find(query))

    async def distinct(self, field, query) -> list:
        return list({doc[field] for doc in self._find(query)})

    async def top_values(self, field, query, limit):
        counts = Counter(doc[field] for doc in self._find(query))
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def ingestor(queue):
    return EventIngestor(queue)


@pytest.fixture
def drainer(queue, store):
    return QueueDrainer(queue, store, batch_size=10)


@pytest.fixture
def raw_event():
    return {
        "site_id": "s1",
        "event_type": "page_view",
        "path": "/home",
        "user_id": "u1",
        "timestamp": "2025-11-12T19:30:01Z",
    }
