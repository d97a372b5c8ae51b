"""
Models package for itinerary schemas and database documents
"""

from travel_agent.models.common import ErrorResponse, SuccessResponse
from travel_agent.models.itinerary import (
    Day,
    Itinerary,
    ItineraryDocument,
    Stop,
    StoredDay,
    StoredStop,
)

__all__ = [
    "Day",
    "ErrorResponse",
    "Itinerary",
    "ItineraryDocument",
    "Stop",
    "StoredDay",
    "StoredStop",
    "SuccessResponse",
]
