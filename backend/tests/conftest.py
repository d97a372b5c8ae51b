import copy
import sys
from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

# Allow importing from backend/travel_agent
sys.path.insert(0, str(Path(__file__).parent.parent))

from travel_agent.agents.itinerary_generator import get_generator
from travel_agent.core.errors import ProviderError
from travel_agent.main import app
from travel_agent.models.itinerary import ItineraryDocument, assign_identifiers, validate_itinerary
from travel_agent.services.store import ItineraryStore, get_store


def print_section(title: str) -> None:
    print("\n" + "=" * 80)
    print(f"  {title}")
    print("=" * 80)


# ====== In-memory stand-in for a Motor collection ======


def _matches(doc: dict, query: dict) -> bool:
    return all(doc.get(key) == value for key, value in query.items())


class FakeCursor:
    def __init__(self, docs: list[dict]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, n: int):
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    def __init__(self) -> None:
        self.docs: list[dict] = []
        self.fail_writes = False

    async def insert_one(self, doc: dict):
        if self.fail_writes:
            from pymongo.errors import ServerSelectionTimeoutError

            raise ServerSelectionTimeoutError("store unreachable")
        stored = copy.deepcopy(doc)
        stored["_id"] = ObjectId()
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one(self, query: dict):
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query: dict, projection: dict | None = None):
        found = []
        for doc in self.docs:
            if _matches(doc, query):
                item = copy.deepcopy(doc)
                if projection:
                    item = {k: v for k, v in item.items() if k == "_id" or projection.get(k)}
                found.append(item)
        return FakeCursor(found)

    async def update_one(self, query: dict, update: dict):
        for doc in self.docs:
            if _matches(doc, query):
                for key, value in (update.get("$set") or {}).items():
                    doc[key] = copy.deepcopy(value)
                for key, value in (update.get("$inc") or {}).items():
                    doc[key] = (doc.get(key) or 0) + value
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)


# ====== Fake provider ======


class FakeGenerator:
    """Streams a fixed completion in pieces; optionally fails mid-stream."""

    def __init__(self, text: str, pieces: int = 4, fail_after: int | None = None) -> None:
        self.text = text
        self.pieces = pieces
        self.fail_after = fail_after
        self.calls: list[tuple[str, int]] = []

    def _split(self) -> list[str]:
        size = max(1, len(self.text) // self.pieces)
        return [self.text[i : i + size] for i in range(0, len(self.text), size)]

    async def stream(self, prompt: str, days: int):
        self.calls.append((prompt, days))
        for idx, piece in enumerate(self._split()):
            if self.fail_after is not None and idx >= self.fail_after:
                raise ProviderError("生成失敗", details="connection reset")
            yield piece

    async def generate(self, prompt: str, days: int) -> str:
        self.calls.append((prompt, days))
        if self.fail_after is not None:
            raise ProviderError("Failed to generate", details="connection reset")
        if not self.text:
            raise ProviderError("AI returned empty response")
        return self.text


# ====== Sample data ======


def make_itinerary(days: int = 2, stops_per_day: int = 3) -> dict:
    return {
        "title": "京都賞楓",
        "days": [
            {
                "day": d + 1,
                "theme": f"第{d + 1}天主題",
                "stops": [
                    {
                        "name": f"景點{d + 1}-{s + 1}",
                        "description": "...",
                        "duration_minutes": 60 + 30 * s,
                    }
                    for s in range(stops_per_day)
                ],
            }
            for d in range(days)
        ],
    }


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def store(collection) -> ItineraryStore:
    return ItineraryStore(collection)


@pytest.fixture
def saved(collection) -> dict:
    """A persisted two-day itinerary with three stops per day."""
    itinerary = validate_itinerary(make_itinerary())
    doc = ItineraryDocument(
        userId="guest:test", title=itinerary.title, days=assign_identifiers(itinerary)
    ).model_dump()
    doc["_id"] = ObjectId()
    collection.docs.append(doc)
    record = copy.deepcopy(doc)
    record["id"] = str(record.pop("_id"))
    return record


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def use_generator(generator) -> None:
    app.dependency_overrides[get_generator] = lambda: generator


@pytest.fixture
async def live_api(store):
    """ItineraryApi wired to the app in-process."""
    from travel_agent.client.api import ItineraryApi

    app.dependency_overrides[get_store] = lambda: store
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test/api/v1")
    try:
        yield ItineraryApi(client=http)
    finally:
        await http.aclose()
        app.dependency_overrides.clear()
