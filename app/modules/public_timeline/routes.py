from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.public_timeline.schemas import PublicTimelineRequest
from app.modules.public_timeline.service import PublicTimelineService
from app.modules.locations.schemas import ViewportResponse
from app.core.clock import Clock, get_clock
from supabase import Client

router = APIRouter(prefix="/public", tags=["public"])


def get_public_timeline_service(supabase: Client = Depends(get_supabase)) -> PublicTimelineService:
    return PublicTimelineService(supabase)


@router.post("/users/{username}/timeline", response_model=ViewportResponse)
async def get_public_timeline(
    username: str,
    data: PublicTimelineRequest,
    service: PublicTimelineService = Depends(get_public_timeline_service),
    clock: Clock = Depends(get_clock)
):
    """Shared timeline of a user in a map viewport; no authentication required"""
    return service.get_timeline(username, data, clock.now())
