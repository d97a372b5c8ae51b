"""
Generate Router
Creates itineraries from a natural-language prompt, streamed or in one response
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from travel_agent.agents.itinerary_generator import ItineraryGenerator, get_generator
from travel_agent.core.auth import Owner, get_current_owner
from travel_agent.core.config import MAX_DAYS, MIN_DAYS
from travel_agent.core.errors import ItineraryError
from travel_agent.services.generation import (
    GENERATION_FAILED,
    TERMINAL_STATES,
    GenerationSession,
    format_sse,
)
from travel_agent.services.store import ItineraryStore, get_store

router = APIRouter(tags=["Generate"])


class GenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, description="Trip request in natural language")
    days: int = Field(..., ge=MIN_DAYS, le=MAX_DAYS, description="Number of days to plan")
    userId: str | None = Field(default=None, description="Owner id for unauthenticated callers")


def resolve_owner_id(owner: Owner, user_id: str | None) -> str:
    """A bearer token wins; otherwise an explicit userId, otherwise the guest session."""
    if not owner.is_guest:
        return owner.user_id
    return user_id or owner.user_id


@router.post("/generate-stream")
async def generate_stream(
    body: GenerateRequest,
    owner: Owner = Depends(get_current_owner),
    generator: ItineraryGenerator = Depends(get_generator),
    store: ItineraryStore = Depends(get_store),
):
    """
    Stream an itinerary as Server-Sent Events.
    Each `chunk` event carries the full text accumulated so far; the stream
    ends with a single `complete` or `error` event.
    """
    session = GenerationSession(
        generator, store, body.prompt, body.days, resolve_owner_id(owner, body.userId)
    )
    print(f"[generate_stream] {body.days} days for: {body.prompt}")

    async def event_generator():
        try:
            async for event in session.events():
                yield format_sse(event)
        except Exception as e:
            print(f"[generate_stream] Error: {type(e).__name__}: {e}")
            if session.state not in TERMINAL_STATES:
                yield format_sse({"type": "error", "error": GENERATION_FAILED, "details": str(e)})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/generate")
async def generate(
    body: GenerateRequest,
    owner: Owner = Depends(get_current_owner),
    generator: ItineraryGenerator = Depends(get_generator),
    store: ItineraryStore = Depends(get_store),
):
    session = GenerationSession(
        generator, store, body.prompt, body.days, resolve_owner_id(owner, body.userId)
    )
    print(f"[generate] {body.days} days for: {body.prompt}")
    try:
        result = await session.run()
    except ItineraryError:
        raise
    except Exception as e:
        print(f"[generate] Error: {e}")
        raise ItineraryError("Failed to generate", details=str(e))

    return {"message": "Itinerary generated", "id": result["id"], "data": result["data"]}
