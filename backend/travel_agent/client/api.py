"""
Async HTTP wrapper around the itinerary endpoints.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

DEFAULT_BASE_URL = "http://localhost:8060/api/v1"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, details: Any = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.details = details


def _raise_for_error(response: httpx.Response, fallback: str) -> None:
    if not response.is_error:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = body.get("error") or body.get("detail") or fallback
    raise ApiError(response.status_code, str(message), body.get("details"))


class ItineraryApi:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
        token: str | None = None,
        guest_session: str | None = None,
        timeout: float | None = None,
    ) -> None:
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if guest_session:
            headers["X-Guest-Session"] = guest_session
        # Generation streams have no per-chunk timeout
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.client.headers.update(headers)

    async def aclose(self) -> None:
        await self.client.aclose()

    @asynccontextmanager
    async def stream_generate(self, prompt: str, days: int) -> AsyncIterator[httpx.Response]:
        async with self.client.stream(
            "POST", "/generate-stream", json={"prompt": prompt, "days": days}
        ) as response:
            if response.is_error:
                await response.aread()
                _raise_for_error(response, "Failed to connect to streaming API")
            yield response

    async def generate(self, prompt: str, days: int, user_id: str | None = None) -> dict:
        payload: dict[str, Any] = {"prompt": prompt, "days": days}
        if user_id:
            payload["userId"] = user_id
        response = await self.client.post("/generate", json=payload)
        _raise_for_error(response, "Failed to generate")
        return response.json()

    async def get_itinerary(self, itinerary_id: str) -> dict:
        response = await self.client.get(f"/itinerary/{itinerary_id}")
        _raise_for_error(response, "Failed to fetch")
        return response.json()

    async def update_stop(
        self, itinerary_id: str, stop_id: str, version: int | None = None, **fields
    ) -> dict:
        payload = {"itineraryId": itinerary_id, "version": version, **fields}
        response = await self.client.patch(f"/stops/{stop_id}", json=payload)
        _raise_for_error(response, "更新失敗")
        return response.json()

    async def delete_stop(
        self, itinerary_id: str, stop_id: str, version: int | None = None
    ) -> dict:
        response = await self.client.request(
            "DELETE", f"/stops/{stop_id}", json={"itineraryId": itinerary_id, "version": version}
        )
        _raise_for_error(response, "刪除失敗")
        return response.json()

    async def reorder_stops(
        self, itinerary_id: str, days: list[dict], version: int | None = None
    ) -> dict:
        response = await self.client.post(
            "/stops/reorder", json={"itineraryId": itinerary_id, "days": days, "version": version}
        )
        _raise_for_error(response, "排序失敗")
        return response.json()
