"""
Common API models
"""

from typing import Any

from pydantic import BaseModel, Field


class SuccessResponse(BaseModel):
    """
    Acknowledgement returned by the stop mutation endpoints
    """

    success: bool = Field(default=True)
    version: int | None = Field(default=None, description="Itinerary version after the write")

    class Config:
        json_schema_extra = {"example": {"success": True, "version": 2}}


class ErrorResponse(BaseModel):
    error: str
    details: Any | None = None
