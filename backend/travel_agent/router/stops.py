"""
Stops Router
Inline edits of a persisted itinerary: update, delete and reorder stops
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, StrictFloat, StrictInt

from travel_agent.core.errors import ItineraryError
from travel_agent.models.common import ErrorResponse, SuccessResponse
from travel_agent.services.store import ItineraryStore, get_store

router = APIRouter(
    prefix="/stops",
    tags=["Stops"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


class StopUpdateRequest(BaseModel):
    itineraryId: str = Field(..., min_length=1)
    name: str | None = None
    description: str | None = None
    duration_minutes: StrictInt | StrictFloat | None = None
    version: int | None = Field(default=None, description="Version last read by the caller")


class StopDeleteRequest(BaseModel):
    itineraryId: str = Field(..., min_length=1)
    version: int | None = None


class ReorderDay(BaseModel):
    dayId: str
    stopIds: list[str]


class ReorderRequest(BaseModel):
    itineraryId: str = Field(..., min_length=1)
    days: list[ReorderDay]
    version: int | None = None


@router.post("/reorder", response_model=SuccessResponse)
async def reorder_stops(body: ReorderRequest, store: ItineraryStore = Depends(get_store)):
    try:
        version = await store.reorder_stops(
            body.itineraryId, [d.model_dump() for d in body.days], version=body.version
        )
    except ItineraryError:
        raise
    except Exception as e:
        print(f"[reorder_stops] Error: {e}")
        raise ItineraryError("Failed to reorder", details=str(e))
    return SuccessResponse(success=True, version=version)


@router.patch("/{stop_id}", response_model=SuccessResponse)
async def update_stop(
    stop_id: str, body: StopUpdateRequest, store: ItineraryStore = Depends(get_store)
):
    fields = body.model_dump(include={"name", "description", "duration_minutes"}, exclude_unset=True)
    try:
        version = await store.update_stop(body.itineraryId, stop_id, fields, version=body.version)
    except ItineraryError:
        raise
    except Exception as e:
        print(f"[update_stop] Error: {e}")
        raise ItineraryError("Failed to update", details=str(e))
    return SuccessResponse(success=True, version=version)


@router.delete("/{stop_id}", response_model=SuccessResponse)
async def delete_stop(
    stop_id: str, body: StopDeleteRequest, store: ItineraryStore = Depends(get_store)
):
    try:
        version = await store.delete_stop(body.itineraryId, stop_id, version=body.version)
    except ItineraryError:
        raise
    except Exception as e:
        print(f"[delete_stop] Error: {e}")
        raise ItineraryError("Failed to delete", details=str(e))
    return SuccessResponse(success=True, version=version)
