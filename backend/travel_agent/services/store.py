"""
Itinerary Store

CRUD over persisted itineraries. Every mutation reads the whole `days`
structure, changes it in memory and writes it back with a compare-and-swap
on the document's `version`, so a stale write raises ConflictError instead
of silently discarding another writer's change.
"""

from datetime import datetime
from typing import Any

from bson import ObjectId
from pymongo.errors import PyMongoError

from travel_agent.core.errors import (
    ConflictError,
    InvariantViolation,
    NotFoundError,
    PersistenceError,
)
from travel_agent.db.database import get_itineraries_collection
from travel_agent.models.itinerary import ItineraryDocument, validate_stop

EDITABLE_STOP_FIELDS = ("name", "description", "duration_minutes")

LIST_PROJECTION = {"title": 1, "createdAt": 1, "config": 1, "userId": 1}


def _to_object_id(itinerary_id: str) -> ObjectId:
    if not itinerary_id or not ObjectId.is_valid(itinerary_id):
        raise NotFoundError("Itinerary not found", details={"itineraryId": itinerary_id})
    return ObjectId(itinerary_id)


def _serialize(doc: dict) -> dict:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def find_stop(days: list[dict], stop_id: str) -> tuple[int, int] | None:
    """Return (day index, stop index) for a stop id, scanning every day."""
    for day_idx, day in enumerate(days):
        for stop_idx, stop in enumerate(day.get("stops") or []):
            if stop.get("id") == stop_id:
                return day_idx, stop_idx
    return None


def renumber(stops: list[dict]) -> list[dict]:
    """Recompute orderIndex from sequence position."""
    return [{**stop, "orderIndex": idx} for idx, stop in enumerate(stops)]


def apply_reorder(days: list[dict], orderings: list[dict]) -> list[dict]:
    """
    Reorder each listed day to match its id sequence. The sequence is
    authoritative: stops of the day missing from it are dropped, and so are
    ids unknown to the itinerary. An id that belongs to another day moves the
    stop here, so cross-day drags persist; a strictly per-day filter would drop
    such ids and lose the stop. Unknown dayIds are skipped.
    """
    by_id = {day.get("id"): day for day in days}
    all_stops = {
        stop.get("id"): stop for day in days for stop in day.get("stops") or [] if stop.get("id")
    }
    claimed: set[str] = set()
    reordered_days: set[str] = set()

    for ordering in orderings:
        day = by_id.get(ordering.get("dayId"))
        if day is None:
            continue
        ordered = []
        for stop_id in ordering.get("stopIds") or []:
            if stop_id in all_stops and stop_id not in claimed:
                claimed.add(stop_id)
                ordered.append(all_stops[stop_id])
        day["stops"] = ordered
        reordered_days.add(day.get("id"))

    for day in days:
        if day.get("id") not in reordered_days:
            day["stops"] = [s for s in day.get("stops") or [] if s.get("id") not in claimed]
        day["stops"] = renumber(day.get("stops") or [])
    return days


class ItineraryStore:
    def __init__(self, collection=None) -> None:
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            try:
                self._collection = get_itineraries_collection()
            except ValueError as e:
                raise PersistenceError("Database is not configured", details=str(e)) from e
        return self._collection

    # ---- Create / read ----

    async def create(
        self,
        title: str,
        days: list[dict],
        owner_id: str,
        config: dict[str, Any] | None = None,
    ) -> dict:
        """Persist a fully identified itinerary in one insert."""
        doc = ItineraryDocument(userId=owner_id, title=title, days=days, config=config or {})
        payload = doc.model_dump()
        try:
            result = await self.collection.insert_one(payload)
        except PyMongoError as e:
            raise PersistenceError("Itinerary could not be saved", details=str(e)) from e

        record = doc.model_dump()
        record["id"] = str(result.inserted_id)
        print(f"[ItineraryStore] Itinerary saved: {record['id']}")
        return record

    async def get(self, itinerary_id: str) -> dict:
        oid = _to_object_id(itinerary_id)
        try:
            doc = await self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            raise PersistenceError("Failed to fetch itinerary", details=str(e)) from e
        if not doc:
            raise NotFoundError("Itinerary not found", details={"itineraryId": itinerary_id})
        return _serialize(doc)

    async def list_itineraries(self, owner_id: str | None = None, limit: int = 50) -> list[dict]:
        query = {"userId": owner_id} if owner_id else {}
        try:
            cursor = (
                self.collection.find(query, LIST_PROJECTION).sort("createdAt", -1).limit(limit)
            )
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise PersistenceError("Failed to list itineraries", details=str(e)) from e
        return [_serialize(doc) for doc in docs]

    # ---- Mutations ----

    async def _load_for_update(self, itinerary_id: str, version: int | None) -> dict:
        doc = await self.get(itinerary_id)
        if version is not None and doc.get("version") != version:
            raise ConflictError(
                "Itinerary has been modified since it was read",
                details={"expected": version, "current": doc.get("version")},
            )
        return doc

    async def _write_days(self, doc: dict, days: list[dict]) -> int:
        current = doc.get("version")
        try:
            result = await self.collection.update_one(
                {"_id": ObjectId(doc["id"]), "version": current},
                {
                    "$set": {"days": days, "updatedAt": datetime.utcnow()},
                    "$inc": {"version": 1},
                },
            )
        except PyMongoError as e:
            raise PersistenceError("Failed to save itinerary", details=str(e)) from e

        if result.matched_count == 0:
            raise ConflictError(
                "Itinerary was modified concurrently", details={"itineraryId": doc["id"]}
            )
        return (current or 0) + 1

    async def update_stop(
        self,
        itinerary_id: str,
        stop_id: str,
        fields: dict[str, Any],
        version: int | None = None,
    ) -> int:
        """Apply only the provided name/description/duration_minutes to one stop."""
        doc = await self._load_for_update(itinerary_id, version)
        days = doc.get("days") or []

        location = find_stop(days, stop_id)
        if location is None:
            raise NotFoundError("Stop not found", details={"stopId": stop_id})
        day_idx, stop_idx = location

        updates = {k: v for k, v in fields.items() if k in EDITABLE_STOP_FIELDS and v is not None}
        stops = days[day_idx]["stops"]
        merged = {**stops[stop_idx], **updates}
        validate_stop(merged)
        stops[stop_idx] = merged

        return await self._write_days(doc, days)

    async def delete_stop(
        self, itinerary_id: str, stop_id: str, version: int | None = None
    ) -> int:
        """Remove a stop; a day's last remaining stop cannot be deleted."""
        doc = await self._load_for_update(itinerary_id, version)
        days = doc.get("days") or []

        location = find_stop(days, stop_id)
        if location is None:
            raise NotFoundError("Stop not found", details={"stopId": stop_id})
        day_idx, stop_idx = location

        stops = days[day_idx]["stops"]
        if len(stops) <= 1:
            raise InvariantViolation(
                "每天至少需要一個景點", details={"dayId": days[day_idx].get("id")}
            )
        del stops[stop_idx]
        days[day_idx]["stops"] = renumber(stops)

        return await self._write_days(doc, days)

    async def reorder_stops(
        self,
        itinerary_id: str,
        orderings: list[dict],
        version: int | None = None,
    ) -> int:
        doc = await self._load_for_update(itinerary_id, version)
        days = doc.get("days") or []
        non_empty = {day.get("id") for day in days if day.get("stops")}

        days = apply_reorder(days, orderings)
        emptied = [day.get("id") for day in days if day.get("id") in non_empty and not day["stops"]]
        if emptied:
            raise InvariantViolation("每天至少需要一個景點", details={"dayIds": emptied})
        return await self._write_days(doc, days)


_store: ItineraryStore | None = None


def get_store() -> ItineraryStore:
    global _store
    if _store is None:
        _store = ItineraryStore()
    return _store


__all__ = ["ItineraryStore", "apply_reorder", "find_stop", "get_store", "renumber"]
