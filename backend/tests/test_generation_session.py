"""
Tests for GenerationSession: state transitions, validation, identifiers and
best-effort persistence
"""

import json

import pytest

from conftest import FakeGenerator, make_itinerary, print_section
from travel_agent.core.errors import PersistenceError, ProviderError, SchemaValidationError
from travel_agent.services.generation import (
    GenerationSession,
    SessionState,
    format_sse,
    parse_completion,
)


def _session(generator, store, days=2, **kwargs) -> GenerationSession:
    return GenerationSession(generator, store, "2-day Kyoto trip", days, "guest:abc", **kwargs)


async def _collect(session: GenerationSession) -> tuple[list[dict], list[SessionState]]:
    events, states = [], []
    async for event in session.events():
        events.append(event)
        states.append(session.state)
    return events, states


async def test_stream_emits_growing_chunks_then_complete(store):
    text = json.dumps(make_itinerary(days=2), ensure_ascii=False)
    session = _session(FakeGenerator(text, pieces=5), store)
    assert session.state is SessionState.IDLE

    events, states = await _collect(session)

    print_section("SESSION EVENTS")
    print([e["type"] for e in events])

    chunks = [e for e in events if e["type"] == "chunk"]
    assert len(chunks) >= 5
    assert all(b["content"].startswith(a["content"]) for a, b in zip(chunks, chunks[1:]))
    assert chunks[-1]["content"] == text
    assert all(s is SessionState.STREAMING for s in states[:-1])

    final = events[-1]
    assert final["type"] == "complete"
    assert final["id"] is not None
    assert session.state is SessionState.COMPLETE
    assert len(final["data"]["days"]) == 2


async def test_complete_assigns_unique_ids_and_order(store):
    text = json.dumps(make_itinerary(days=3, stops_per_day=4))
    events, _ = await _collect(_session(FakeGenerator(text), store, days=3))

    days = events[-1]["data"]["days"]
    stop_ids = [s["id"] for d in days for s in d["stops"]]
    assert len(stop_ids) == len(set(stop_ids)) == 12
    for day in days:
        assert day["id"]
        assert [s["orderIndex"] for s in day["stops"]] == [0, 1, 2, 3]


async def test_complete_record_is_persisted(store):
    text = json.dumps(make_itinerary(days=2))
    events, _ = await _collect(_session(FakeGenerator(text), store))

    record = await store.get(events[-1]["id"])
    assert record["days"] == events[-1]["data"]["days"]
    assert record["userId"] == "guest:abc"
    assert record["config"]["generatedWith"] == "2-day Kyoto trip"
    assert record["config"]["totalDays"] == 2
    assert record["config"]["isStreamed"] is True


async def test_invalid_json_ends_in_error_without_saving(collection, store):
    events, _ = await _collect(_session(FakeGenerator('{"title": "x", "days": ['), store))

    assert events[-1]["type"] == "error"
    assert events[-1]["error"] == "資料格式驗證失敗"
    assert collection.docs == []


async def test_schema_failure_ends_in_error(collection, store):
    data = make_itinerary(days=1)
    del data["days"][0]["stops"][0]["description"]
    session = _session(FakeGenerator(json.dumps(data)), store)

    events, _ = await _collect(session)

    assert events[-1]["type"] == "error"
    assert "days.0.stops.0.description" in events[-1]["details"]
    assert session.state is SessionState.ERROR
    assert collection.docs == []


async def test_provider_failure_mid_stream(collection, store):
    text = json.dumps(make_itinerary())
    session = _session(FakeGenerator(text, pieces=4, fail_after=2), store)

    events, _ = await _collect(session)

    assert [e["type"] for e in events] == ["chunk", "chunk", "error"]
    assert events[-1]["error"] == "生成失敗"
    assert session.state is SessionState.ERROR
    assert collection.docs == []


async def test_empty_completion_is_a_provider_error(store):
    events, _ = await _collect(_session(FakeGenerator(""), store))
    assert events == [
        {"type": "error", "error": "生成失敗", "details": "AI returned empty response"}
    ]


async def test_best_effort_persistence_reports_null_id(collection, store):
    collection.fail_writes = True
    events, _ = await _collect(_session(FakeGenerator(json.dumps(make_itinerary())), store))

    assert events[-1]["type"] == "complete"
    assert events[-1]["id"] is None
    assert len(events[-1]["data"]["days"]) == 2


async def test_required_persistence_turns_save_failure_into_error(collection, store):
    collection.fail_writes = True
    session = _session(
        FakeGenerator(json.dumps(make_itinerary())), store, persistence_policy="required"
    )

    events, _ = await _collect(session)

    assert events[-1]["type"] == "error"
    assert session.state is SessionState.ERROR


async def test_terminal_state_cannot_be_left(store):
    session = _session(FakeGenerator(json.dumps(make_itinerary())), store)
    await _collect(session)

    with pytest.raises(RuntimeError):
        session._transition(SessionState.STREAMING)


async def test_run_returns_identified_data(store):
    session = _session(FakeGenerator(json.dumps(make_itinerary(days=5))), store, days=5)

    result = await session.run()

    assert session.state is SessionState.COMPLETE
    assert len(result["data"]["days"]) == 5
    record = await store.get(result["id"])
    assert record["config"]["isStreamed"] is False


async def test_run_raises_provider_error(store):
    session = _session(FakeGenerator("{}", fail_after=0), store)
    with pytest.raises(ProviderError):
        await session.run()
    assert session.state is SessionState.ERROR


async def test_run_raises_persistence_error_when_required(collection, store):
    collection.fail_writes = True
    session = _session(
        FakeGenerator(json.dumps(make_itinerary())), store, persistence_policy="required"
    )
    with pytest.raises(PersistenceError):
        await session.run()


def test_parse_completion_rejects_non_json():
    with pytest.raises(SchemaValidationError):
        parse_completion("Sure! Here is your trip:")


def test_format_sse_keeps_unicode():
    line = format_sse({"type": "chunk", "content": "清水寺"})
    assert line == 'data: {"type": "chunk", "content": "清水寺"}\n\n'
