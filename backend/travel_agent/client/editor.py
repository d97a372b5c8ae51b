"""
Editable Itinerary Controller

Keeps a working copy of a persisted itinerary and mediates optimistic
edits against the API:

- edit: applied locally first; a failed request is reported, the edit stands
- delete: refused locally for a day's last stop, needs confirmation
- drag: the working copy is snapshotted on drag start and restored if the
  reorder request fails
"""

import asyncio
import copy
import time
from typing import Callable

import httpx

from travel_agent.client.api import ApiError, ItineraryApi
from travel_agent.core.config import ERROR_DISPLAY_SECONDS
from travel_agent.models.itinerary import day_duration, format_duration

LAST_STOP_ERROR = "每天至少需要一個景點"
UPDATE_FAILED = "更新失敗"
DELETE_FAILED = "刪除失敗"
REORDER_FAILED = "排序失敗"


def _error_message(error: Exception, fallback: str) -> str:
    if isinstance(error, ApiError):
        return error.message or fallback
    return fallback


def array_move(items: list, old_index: int, new_index: int) -> list:
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


class EditableItinerary:
    def __init__(
        self,
        record: dict,
        api: ItineraryApi,
        confirm: Callable[[dict], bool] | None = None,
        error_display_seconds: float = ERROR_DISPLAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        `record` is the body returned by GET itinerary/{id}.
        `confirm` is asked before every delete; without it deletes are refused.
        """
        self.itinerary_id: str = record["id"]
        self.itinerary: dict = copy.deepcopy(record["data"])
        self.version: int | None = record.get("version")
        self.api = api
        self.confirm = confirm
        self.error_display_seconds = error_display_seconds
        self._clock = clock

        self.loading: set[str] = set()
        # Writes go out one at a time so each carries the version the previous one returned
        self._write_lock = asyncio.Lock()
        self.active_id: str | None = None
        self.snapshot: dict | None = None
        self._error: str | None = None
        self._error_at = 0.0

    # ---- Errors ----

    @property
    def error(self) -> str | None:
        if self._error is None:
            return None
        if self._clock() - self._error_at >= self.error_display_seconds:
            self._error = None
        return self._error

    def _set_error(self, message: str) -> None:
        self._error = message
        self._error_at = self._clock()

    def clear_error(self) -> None:
        self._error = None

    # ---- Lookups ----

    @property
    def days(self) -> list[dict]:
        return self.itinerary.get("days") or []

    def find_stop(self, stop_id: str) -> dict | None:
        for day in self.days:
            for stop in day.get("stops") or []:
                if stop.get("id") == stop_id:
                    return stop
        return None

    def find_day_index(self, stop_id: str) -> int:
        for idx, day in enumerate(self.days):
            if any(stop.get("id") == stop_id for stop in day.get("stops") or []):
                return idx
        return -1

    def is_busy(self, stop_id: str) -> bool:
        return stop_id in self.loading

    def stop_duration_label(self, stop_id: str) -> str | None:
        stop = self.find_stop(stop_id)
        if stop is None:
            return None
        return format_duration(stop.get("duration_minutes") or 0)

    def day_duration_label(self, day_index: int) -> str:
        return format_duration(day_duration(self.days[day_index].get("stops") or []))

    # ---- Edit ----

    async def edit_stop(self, stop_id: str, **fields) -> bool:
        stop = self.find_stop(stop_id)
        if stop is None or self.is_busy(stop_id):
            return False

        changes = {
            k: v
            for k, v in fields.items()
            if k in ("name", "description", "duration_minutes") and v is not None
        }
        stop.update(changes)

        self.loading.add(stop_id)
        self.clear_error()
        try:
            async with self._write_lock:
                result = await self.api.update_stop(
                    self.itinerary_id, stop_id, version=self.version, **changes
                )
                self.version = result.get("version", self.version)
            return True
        except (ApiError, httpx.HTTPError) as e:
            self._set_error(_error_message(e, UPDATE_FAILED))
            return False
        finally:
            self.loading.discard(stop_id)

    # ---- Delete ----

    async def delete_stop(self, stop_id: str) -> bool:
        day_index = self.find_day_index(stop_id)
        if day_index == -1 or self.is_busy(stop_id):
            return False

        day = self.days[day_index]
        if len(day["stops"]) <= 1:
            self._set_error(LAST_STOP_ERROR)
            return False

        stop = self.find_stop(stop_id)
        if self.confirm is None or not self.confirm(stop):
            return False

        day["stops"] = [s for s in day["stops"] if s.get("id") != stop_id]

        self.loading.add(stop_id)
        self.clear_error()
        try:
            async with self._write_lock:
                result = await self.api.delete_stop(
                    self.itinerary_id, stop_id, version=self.version
                )
                self.version = result.get("version", self.version)
            return True
        except (ApiError, httpx.HTTPError) as e:
            self._set_error(_error_message(e, DELETE_FAILED))
            return False
        finally:
            self.loading.discard(stop_id)

    # ---- Drag and drop ----

    def drag_start(self, stop_id: str) -> None:
        self.active_id = stop_id
        self.snapshot = copy.deepcopy(self.itinerary)

    def drag_over(self, active_stop_id: str, over_stop_id: str | None) -> None:
        """Speculatively move the dragged stop into the day it hovers over."""
        if over_stop_id is None:
            return
        active_day = self.find_day_index(active_stop_id)
        over_day = self.find_day_index(over_stop_id)
        if active_day == -1 or over_day == -1 or active_day == over_day:
            return

        source = self.days[active_day]["stops"]
        if len(source) <= 1:
            return

        target = self.days[over_day]["stops"]
        stop_index = next(i for i, s in enumerate(source) if s.get("id") == active_stop_id)
        moved = source.pop(stop_index)
        over_index = next((i for i, s in enumerate(target) if s.get("id") == over_stop_id), len(target))
        target.insert(over_index, moved)

    async def drag_end(self, active_stop_id: str, over_stop_id: str | None) -> bool:
        """
        Finish a drag. A same-day drop reorders locally; any change is then
        persisted with one reorder request covering every identified day.
        """
        self.active_id = None

        if over_stop_id is not None and over_stop_id != active_stop_id:
            active_day = self.find_day_index(active_stop_id)
            over_day = self.find_day_index(over_stop_id)
            if active_day != -1 and active_day == over_day:
                day = self.days[active_day]
                ids = [s.get("id") for s in day["stops"]]
                day["stops"] = array_move(
                    day["stops"], ids.index(active_stop_id), ids.index(over_stop_id)
                )

        if self.snapshot is not None and self.snapshot == self.itinerary:
            self.snapshot = None
            return False

        return await self.persist_reorder()

    async def persist_reorder(self) -> bool:
        orderings = [
            {
                "dayId": day["id"],
                "stopIds": [s["id"] for s in day.get("stops") or [] if s.get("id")],
            }
            for day in self.days
            if day.get("id")
        ]
        try:
            async with self._write_lock:
                result = await self.api.reorder_stops(
                    self.itinerary_id, orderings, version=self.version
                )
                self.version = result.get("version", self.version)
        except (ApiError, httpx.HTTPError) as e:
            if self.snapshot is not None:
                self.itinerary = self.snapshot
            self.snapshot = None
            self._set_error(_error_message(e, REORDER_FAILED))
            return False

        self.snapshot = None
        for day in self.days:
            for idx, stop in enumerate(day.get("stops") or []):
                stop["orderIndex"] = idx
        return True
