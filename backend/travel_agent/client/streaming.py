"""
Consumer side of the generate-stream endpoint.

Events arrive as `data: <json>` blocks separated by a blank line. Chunk
events carry the whole accumulated text, so only the latest one in each read
is previewed. The first `complete` or `error` event ends the session and
nothing after it is processed.
"""

import json
from typing import Callable

import httpx

from travel_agent.client.api import ApiError, ItineraryApi
from travel_agent.services.generation import TERMINAL_STATES, SessionState
from travel_agent.services.preview import StreamingPreview

UNKNOWN_ERROR = "發生未知錯誤"


def parse_event_block(block: str) -> dict | None:
    data_lines = [line[len("data:"):].lstrip() for line in block.splitlines() if line.startswith("data:")]
    if not data_lines:
        return None
    try:
        event = json.loads("\n".join(data_lines))
    except ValueError:
        return None
    return event if isinstance(event, dict) else None


class StreamingGenerateClient:
    def __init__(
        self,
        api: ItineraryApi,
        on_update: Callable[["StreamingGenerateClient"], None] | None = None,
    ) -> None:
        self.api = api
        self.on_update = on_update
        self.reset()

    def reset(self) -> None:
        self.state = SessionState.IDLE
        self.partial_text = ""
        self.preview = StreamingPreview()
        self.result: dict | None = None
        self.id: str | None = None
        self.error = ""

    @property
    def is_loading(self) -> bool:
        return self.state in (SessionState.CONNECTING, SessionState.STREAMING)

    @property
    def partial(self) -> dict | None:
        return self.preview.snapshot()

    def _notify(self) -> None:
        if self.on_update:
            self.on_update(self)

    def _apply_chunk(self, content: str) -> None:
        self.partial_text = content
        self.preview.update(content)
        self._notify()

    def handle_event(self, event: dict) -> bool:
        """Apply one terminal event; returns True once the session is finished."""
        if self.state in TERMINAL_STATES:
            return True

        kind = event.get("type")
        if kind == "complete":
            self.result = event.get("data")
            self.id = event.get("id") or None
            self.state = SessionState.COMPLETE
        elif kind == "error":
            details = event.get("details") or ""
            self.error = f"{event.get('error', UNKNOWN_ERROR)}: {details}"
            self.state = SessionState.ERROR
        else:
            return False
        self._notify()
        return True

    def feed(self, blocks: list[str]) -> bool:
        """
        Process a batch of event blocks. Intermediate chunk snapshots are
        superseded by the last one; processing stops at the first terminal event.
        """
        if self.state in TERMINAL_STATES:
            return True

        latest_chunk: str | None = None
        for block in blocks:
            event = parse_event_block(block)
            if event is None:
                continue
            if event.get("type") == "chunk":
                latest_chunk = event.get("content") or ""
                continue
            if event.get("type") in ("complete", "error"):
                if latest_chunk is not None:
                    self._apply_chunk(latest_chunk)
                return self.handle_event(event)

        if latest_chunk is not None:
            self._apply_chunk(latest_chunk)
        return False

    async def generate(self, prompt: str, days: int) -> dict | None:
        self.reset()
        self.state = SessionState.CONNECTING
        self._notify()

        try:
            async with self.api.stream_generate(prompt, days) as response:
                self.state = SessionState.STREAMING
                self._notify()

                buffer = ""
                async for text in response.aiter_text():
                    buffer += text.replace("\r\n", "\n")
                    if "\n\n" not in buffer:
                        continue
                    *blocks, buffer = buffer.split("\n\n")
                    if self.feed(blocks):
                        return self.result

                if buffer.strip() and self.feed([buffer]):
                    return self.result
        except (ApiError, httpx.HTTPError) as e:
            self.error = str(e) or UNKNOWN_ERROR
            self.state = SessionState.ERROR
            self._notify()
            return None

        # Transport closed without a terminal event: the state is left as is
        return self.result
