from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.group_timeline.schemas import (
    LatestLocationsRequest, GroupLocationsQueryRequest, GroupLocationsQueryResponse
)
from app.modules.group_timeline.service import GroupTimelineService
from app.modules.locations.schemas import LocationResponse
from app.core.dependencies import get_current_user_id
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/groups", tags=["group-timeline"])


def get_group_timeline_service(supabase: Client = Depends(get_supabase)) -> GroupTimelineService:
    return GroupTimelineService(supabase)


@router.post("/{group_id}/locations/latest", response_model=List[LocationResponse])
async def get_latest_locations(
    group_id: str,
    data: LatestLocationsRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupTimelineService = Depends(get_group_timeline_service),
    clock: Clock = Depends(get_clock)
):
    """Latest location of each visible member (active members only)"""
    return service.get_latest_locations(group_id, current_user["id"], data.include_user_ids, clock.now())


@router.post("/{group_id}/locations/query", response_model=GroupLocationsQueryResponse)
async def query_locations(
    group_id: str,
    data: GroupLocationsQueryRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupTimelineService = Depends(get_group_timeline_service),
    clock: Clock = Depends(get_clock)
):
    """Viewport query over visible members; several members are limited to a single day"""
    return service.query_locations(group_id, current_user["id"], data, clock.now())
