"""
Tests for the itinerary generator against a scripted chat model
"""

import json

import pytest
from langchain_core.language_models import FakeListChatModel

from conftest import make_itinerary
from travel_agent.agents.itinerary_generator import ItineraryGenerator, build_prompt
from travel_agent.core.errors import ProviderError


def test_prompt_renders_days_and_literal_schema():
    messages = build_prompt().format_messages(days=4, prompt="京都賞楓")

    system, user = messages
    assert "4 天" in system.content
    assert '"duration_minutes": 180' in system.content
    assert "{{" not in system.content
    assert user.content.endswith("京都賞楓")


async def test_stream_yields_deltas_that_join_to_completion():
    text = json.dumps(make_itinerary(days=1), ensure_ascii=False)
    generator = ItineraryGenerator(llm=FakeListChatModel(responses=[text]))

    deltas = [delta async for delta in generator.stream("trip", 1)]

    assert len(deltas) > 1
    assert "".join(deltas) == text


async def test_generate_returns_full_text():
    generator = ItineraryGenerator(llm=FakeListChatModel(responses=['{"title": "x", "days": []}']))
    assert await generator.generate("trip", 1) == '{"title": "x", "days": []}'


async def test_generate_empty_response_is_provider_error():
    generator = ItineraryGenerator(llm=FakeListChatModel(responses=[""]))
    with pytest.raises(ProviderError):
        await generator.generate("trip", 1)


async def test_stream_failure_is_provider_error():
    llm = FakeListChatModel(responses=['{"title": "abcdef"}'], error_on_chunk_number=3)
    generator = ItineraryGenerator(llm=llm)

    received = []
    with pytest.raises(ProviderError) as exc_info:
        async for delta in generator.stream("trip", 1):
            received.append(delta)

    assert len(received) == 3
    assert exc_info.value.message == "生成失敗"


async def test_missing_api_key_is_provider_error(monkeypatch):
    monkeypatch.setattr("travel_agent.agents.itinerary_generator.OPENAI_API_KEY", None)
    generator = ItineraryGenerator()

    assert generator.llm is None
    with pytest.raises(ProviderError) as exc_info:
        await generator.generate("trip", 1)
    assert "OPENAI_API_KEY" in exc_info.value.details
