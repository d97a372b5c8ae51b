"""
Generation Session

Drives one itinerary request: streams text from the provider, validates the
final JSON, assigns identifiers, persists the result and reports status.

    idle -> connecting -> streaming -> complete | error

`connecting` lasts until the first delta arrives; `complete` and `error` are
terminal and each is reported exactly once.
"""

import json
from enum import Enum
from typing import Any, AsyncIterator

from travel_agent.agents.itinerary_generator import ItineraryGenerator
from travel_agent.core.config import PERSISTENCE_POLICY
from travel_agent.core.errors import (
    ItineraryError,
    PersistenceError,
    ProviderError,
    SchemaValidationError,
)
from travel_agent.models.itinerary import GenerationConfig, assign_identifiers, validate_itinerary
from travel_agent.services.store import ItineraryStore


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATES = (SessionState.COMPLETE, SessionState.ERROR)

VALIDATION_FAILED = "資料格式驗證失敗"
GENERATION_FAILED = "生成失敗"
SAVE_FAILED = "儲存失敗"


def parse_completion(text: str) -> dict:
    """Parse and validate the provider's final text into identified itinerary data."""
    if not text or not text.strip():
        raise ProviderError("AI returned empty response")
    try:
        parsed = json.loads(text)
    except ValueError as e:
        raise SchemaValidationError("", f"AI response is not valid JSON: {e}") from e

    itinerary = validate_itinerary(parsed)
    return {"title": itinerary.title, "days": assign_identifiers(itinerary)}


class GenerationSession:
    def __init__(
        self,
        generator: ItineraryGenerator,
        store: ItineraryStore,
        prompt: str,
        days: int,
        owner_id: str,
        persistence_policy: str = PERSISTENCE_POLICY,
    ) -> None:
        self.generator = generator
        self.store = store
        self.prompt = prompt
        self.days = days
        self.owner_id = owner_id
        self.persistence_policy = persistence_policy

        self.state = SessionState.IDLE
        self.text = ""
        self.data: dict | None = None
        self.itinerary_id: str | None = None
        self.error: str | None = None

    def _transition(self, state: SessionState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Session already {self.state.value}")
        print(f"[GenerationSession] {self.state.value} -> {state.value}")
        self.state = state

    def _fail(self, error: str, details: Any) -> dict:
        self.error = error
        self._transition(SessionState.ERROR)
        return {"type": "error", "error": error, "details": details}

    async def _persist(self, data: dict, streamed: bool) -> str | None:
        config = GenerationConfig(
            generatedWith=self.prompt, totalDays=self.days, isStreamed=streamed
        ).model_dump()
        try:
            record = await self.store.create(data["title"], data["days"], self.owner_id, config)
        except PersistenceError as e:
            print(f"[GenerationSession] DB save error: {e.message} ({e.details})")
            if self.persistence_policy == "required":
                raise
            return None
        return record["id"]

    async def events(self) -> AsyncIterator[dict]:
        """
        Yield `chunk` events carrying the accumulated text, then exactly one
        `complete` or `error` event.
        """
        self._transition(SessionState.CONNECTING)
        try:
            async for delta in self.generator.stream(self.prompt, self.days):
                if self.state is SessionState.CONNECTING:
                    self._transition(SessionState.STREAMING)
                if not delta:
                    continue
                self.text += delta
                yield {"type": "chunk", "content": self.text}
        except ProviderError as e:
            yield self._fail(GENERATION_FAILED, e.details or e.message)
            return

        if self.state is SessionState.CONNECTING:
            self._transition(SessionState.STREAMING)

        try:
            data = parse_completion(self.text)
        except SchemaValidationError as e:
            yield self._fail(VALIDATION_FAILED, e.message)
            return
        except ProviderError as e:
            yield self._fail(GENERATION_FAILED, e.message)
            return

        try:
            self.itinerary_id = await self._persist(data, streamed=True)
        except PersistenceError as e:
            yield self._fail(SAVE_FAILED, e.message)
            return

        self.data = data
        self._transition(SessionState.COMPLETE)
        yield {"type": "complete", "data": data, "id": self.itinerary_id}

    async def run(self) -> dict:
        """
        Non-streaming generation. Returns {"id", "data"}; raises
        ItineraryError subclasses on failure.
        """
        self._transition(SessionState.CONNECTING)
        try:
            text = await self.generator.generate(self.prompt, self.days)
            self._transition(SessionState.STREAMING)
            self.text = text
            data = parse_completion(text)
            self.itinerary_id = await self._persist(data, streamed=False)
        except ItineraryError as e:
            self._fail(e.message, e.details)
            raise

        self.data = data
        self._transition(SessionState.COMPLETE)
        return {"id": self.itinerary_id, "data": data}


def format_sse(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
