"""
Tests for the streaming generate client: event handling, chunk superseding,
terminal-once semantics and transport failures
"""

import json

import httpx

from conftest import FakeGenerator, make_itinerary, use_generator
from travel_agent.client.api import ItineraryApi
from travel_agent.client.streaming import StreamingGenerateClient, parse_event_block
from travel_agent.services.generation import SessionState, format_sse


def _block(event: dict) -> str:
    return format_sse(event).strip()


def _offline_client(updates: list | None = None) -> StreamingGenerateClient:
    api = ItineraryApi(client=httpx.AsyncClient(base_url="http://test"))
    on_update = (lambda c: updates.append(c.partial_text)) if updates is not None else None
    return StreamingGenerateClient(api, on_update=on_update)


def test_parse_event_block():
    assert parse_event_block('data: {"type": "chunk", "content": "{"}') == {
        "type": "chunk",
        "content": "{",
    }
    assert parse_event_block(": keep-alive") is None
    assert parse_event_block("data: {not json") is None
    assert parse_event_block("data: [1, 2]") is None


def test_latest_chunk_supersedes_earlier_ones():
    updates: list[str] = []
    client = _offline_client(updates)

    finished = client.feed(
        [
            _block({"type": "chunk", "content": '{"title": "京'}),
            _block({"type": "chunk", "content": '{"title": "京都", "days": ['}),
        ]
    )

    assert finished is False
    assert updates == ['{"title": "京都", "days": [']
    assert client.partial == {"title": "京都", "days": []}


def test_first_terminal_event_wins():
    client = _offline_client()
    data = {"title": "x", "days": []}

    finished = client.feed(
        [
            _block({"type": "chunk", "content": "{"}),
            _block({"type": "complete", "data": data, "id": "abc"}),
            _block({"type": "error", "error": "late", "details": ""}),
        ]
    )

    assert finished is True
    assert client.state is SessionState.COMPLETE
    assert client.result == data
    assert client.id == "abc"
    assert client.error == ""

    assert client.feed([_block({"type": "error", "error": "later", "details": ""})]) is True
    assert client.state is SessionState.COMPLETE


def test_error_event_message():
    client = _offline_client()
    client.feed([_block({"type": "error", "error": "生成失敗", "details": "connection reset"})])

    assert client.state is SessionState.ERROR
    assert client.error == "生成失敗: connection reset"
    assert client.is_loading is False


def test_complete_without_id_keeps_result():
    client = _offline_client()
    client.feed([_block({"type": "complete", "data": {"title": "x", "days": []}, "id": None})])
    assert client.state is SessionState.COMPLETE
    assert client.id is None


async def test_generate_against_app(live_api, collection):
    use_generator(FakeGenerator(json.dumps(make_itinerary(days=2), ensure_ascii=False), pieces=5))
    states = []
    client = StreamingGenerateClient(live_api, on_update=lambda c: states.append(c.state))

    result = await client.generate("2-day Kyoto trip", 2)

    assert client.state is SessionState.COMPLETE
    assert len(result["days"]) == 2
    assert client.id == str(collection.docs[0]["_id"])
    assert states[0] is SessionState.CONNECTING
    assert SessionState.STREAMING in states
    assert client.partial["title"] == "京都賞楓"


async def test_generate_reports_server_side_error(live_api):
    use_generator(FakeGenerator(json.dumps(make_itinerary()), fail_after=1))
    client = StreamingGenerateClient(live_api)

    assert await client.generate("trip", 2) is None
    assert client.state is SessionState.ERROR
    assert client.error.startswith("生成失敗")


async def test_http_error_before_stream():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
    api = ItineraryApi(client=httpx.AsyncClient(transport=transport, base_url="http://test"))
    client = StreamingGenerateClient(api)

    assert await client.generate("trip", 1) is None
    assert client.state is SessionState.ERROR
    assert "boom" in client.error


async def test_stream_closed_without_terminal_event_leaves_state():
    body = format_sse({"type": "chunk", "content": '{"title": "半'})
    transport = httpx.MockTransport(
        lambda request: httpx.Response(
            200, content=body.encode(), headers={"content-type": "text/event-stream"}
        )
    )
    api = ItineraryApi(client=httpx.AsyncClient(transport=transport, base_url="http://test"))
    client = StreamingGenerateClient(api)

    assert await client.generate("trip", 1) is None
    assert client.state is SessionState.STREAMING
    assert client.partial_text == '{"title": "半'
    assert client.error == ""
