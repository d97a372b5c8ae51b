"""
Itinerary Router
Read access to persisted itineraries
"""

from fastapi import APIRouter, Depends, Query

from travel_agent.core.errors import ItineraryError
from travel_agent.services.store import ItineraryStore, get_store

router = APIRouter(tags=["Itineraries"])


@router.get("/itinerary/{itinerary_id}")
async def get_itinerary(itinerary_id: str, store: ItineraryStore = Depends(get_store)):
    try:
        itinerary = await store.get(itinerary_id)
    except ItineraryError:
        raise
    except Exception as e:
        print(f"[get_itinerary] Error: {e}")
        raise ItineraryError("Failed to fetch", details=str(e))

    return {
        "success": True,
        "id": itinerary["id"],
        "data": {"title": itinerary.get("title"), "days": itinerary.get("days") or []},
        "config": itinerary.get("config"),
        "createdAt": itinerary.get("createdAt"),
        "version": itinerary.get("version"),
    }


@router.get("/itineraries")
async def list_itineraries(
    userId: str | None = Query(default=None, description="Only itineraries owned by this id"),
    limit: int = Query(default=50, ge=1, le=200),
    store: ItineraryStore = Depends(get_store),
):
    """
    Saved itineraries, newest first.
    """
    items = await store.list_itineraries(owner_id=userId, limit=limit)
    return {
        "success": True,
        "data": [
            {
                "id": item["id"],
                "title": item.get("title"),
                "createdAt": item.get("createdAt"),
                "config": item.get("config"),
            }
            for item in items
        ],
    }
