"""
Itinerary models: the schema a generated itinerary must satisfy, and the
document persisted to MongoDB once identifiers have been assigned.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, ValidationError

from travel_agent.core.errors import SchemaValidationError


# ====== Generated shape ======


class Stop(BaseModel):
    name: StrictStr = Field(..., description="Place or activity name")
    description: StrictStr = Field(..., description="What to do there")
    duration_minutes: StrictInt | StrictFloat = Field(..., description="Planned time in minutes")


class Day(BaseModel):
    day: StrictInt | StrictFloat = Field(..., description="1-based day number")
    theme: StrictStr | None = Field(default=None, description="Optional theme for the day")
    stops: list[Stop]


class Itinerary(BaseModel):
    title: StrictStr
    days: list[Day]

    class Config:
        json_schema_extra = {
            "example": {
                "title": "京都賞楓",
                "days": [
                    {
                        "day": 1,
                        "theme": "東山散策",
                        "stops": [
                            {"name": "清水寺", "description": "...", "duration_minutes": 90}
                        ],
                    }
                ],
            }
        }


def _error_path(loc: tuple) -> str:
    return ".".join(str(part) for part in loc)


def validate_itinerary(value: Any) -> Itinerary:
    """
    Validate an arbitrary parsed value against the itinerary schema.
    Raises SchemaValidationError naming the first offending field path,
    e.g. "days.0.stops.2.duration_minutes".
    """
    if not isinstance(value, dict):
        raise SchemaValidationError("", f"expected an object, got {type(value).__name__}")
    try:
        return Itinerary.model_validate(value)
    except ValidationError as e:
        first = e.errors()[0]
        raise SchemaValidationError(_error_path(first.get("loc", ())), first.get("msg", "invalid"))


def validate_stop(value: dict) -> Stop:
    try:
        return Stop.model_validate(value)
    except ValidationError as e:
        first = e.errors()[0]
        raise SchemaValidationError(_error_path(first.get("loc", ())), first.get("msg", "invalid"))


# ====== Persisted shape ======


class StoredStop(Stop):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    orderIndex: int = Field(default=0, description="0-based position within its day")


class StoredDay(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    day: int | float
    theme: str | None = None
    stops: list[StoredStop] = Field(default_factory=list)


class GenerationConfig(BaseModel):
    """Free-form metadata describing how an itinerary was produced."""

    generatedWith: str | None = Field(default=None, description="Originating prompt")
    totalDays: int | None = Field(default=None, description="Requested day count")
    createdAt: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    isStreamed: bool = False


class ItineraryDocument(BaseModel):
    """
    Itinerary document persisted in the `itineraries` collection.
    """

    userId: str
    title: str
    days: list[dict[str, Any]] = Field(default_factory=list, description="Days with ids and stop orderIndex")
    config: dict[str, Any] = Field(default_factory=dict)

    # Optimistic concurrency token, incremented on every mutation
    version: int = Field(default=1)

    createdAt: datetime = Field(default_factory=datetime.utcnow)
    updatedAt: datetime = Field(default_factory=datetime.utcnow)


def assign_identifiers(itinerary: Itinerary) -> list[dict]:
    """
    Give every day and stop a fresh id and every stop its zero-based
    orderIndex within its day. Returns the days as plain dicts.
    """
    days = []
    for day in itinerary.days:
        stored = StoredDay(
            day=day.day,
            theme=day.theme,
            stops=[
                StoredStop(**stop.model_dump(), orderIndex=idx)
                for idx, stop in enumerate(day.stops)
            ],
        )
        days.append(stored.model_dump(exclude_none=True))
    return days


# ====== Display helpers ======


def format_duration(minutes: int | float) -> str:
    minutes = int(minutes)
    if minutes < 60:
        return f"{minutes}分鐘"
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours}小時"
    return f"{hours}小時{mins}分鐘"


def day_duration(stops: list[dict]) -> int | float:
    return sum(stop.get("duration_minutes") or 0 for stop in stops)
