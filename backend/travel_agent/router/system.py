from fastapi import APIRouter

from travel_agent.core.config import APP_VERSION

router = APIRouter(tags=["System"])


@router.get("/")
def root():
    return {"success": True, "msg": "AI Travel Agent API. POST /api/v1/generate-stream to plan a trip."}


@router.get("/health")
def health_check():
    return {"status": "healthy", "service": "travel_agent-server", "version": APP_VERSION}
