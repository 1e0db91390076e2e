from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_supabase
from app.modules.timeline import date_ranges
from app.modules.timeline.schemas import (
    ChronologicalResponse, StatsResponse, HasDataResponse, NavigationResponse
)
from app.modules.timeline.service import ChronologicalService, viewer_today
from app.modules.locations.schemas import DateType
from app.modules.users.service import UserService
from app.core.dependencies import get_current_user_id
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import Dict, Optional
from datetime import date
from dataclasses import asdict

router = APIRouter(prefix="/chronological", tags=["timeline"])


def get_chronological_service(supabase: Client = Depends(get_supabase)) -> ChronologicalService:
    return ChronologicalService(supabase)


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("", response_model=ChronologicalResponse)
async def get_chronological(
    date_type: DateType = Query(...),
    year: int = Query(...),
    month: Optional[int] = None,
    day: Optional[int] = None,
    current_user: Dict = Depends(get_current_user_id),
    service: ChronologicalService = Depends(get_chronological_service),
    clock: Clock = Depends(get_clock)
):
    """The caller's locations for one day, month or year, oldest first"""
    return service.get_timeline(current_user["id"], date_type, year, month, day, clock.now())


@router.get("/has-data", response_model=HasDataResponse)
async def has_data_for_date(
    target_date: date = Query(..., alias="date"),
    current_user: Dict = Depends(get_current_user_id),
    service: ChronologicalService = Depends(get_chronological_service)
):
    return HasDataResponse(has_data=service.has_data_for_date(current_user["id"], target_date))


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    date_type: DateType = Query(...),
    year: int = Query(...),
    month: Optional[int] = None,
    day: Optional[int] = None,
    current_user: Dict = Depends(get_current_user_id),
    service: ChronologicalService = Depends(get_chronological_service)
):
    date_range = date_ranges.resolve(date_type, year, month, day)
    return StatsResponse(stats=service.stats(current_user["id"], date_range))


@router.get("/nav-availability", response_model=NavigationResponse)
async def get_navigation_availability(
    date_type: DateType = Query(...),
    year: int = Query(...),
    month: Optional[int] = None,
    day: Optional[int] = None,
    current_user: Dict = Depends(get_current_user_id),
    service: ChronologicalService = Depends(get_chronological_service),
    users: UserService = Depends(get_user_service),
    clock: Clock = Depends(get_clock)
):
    """Which prev/next moves are offered; next never leads past the caller's local today"""
    today = viewer_today(users.find_user_by_id(current_user["id"]), clock.now())
    availability = service.navigation_availability(date_type, year, month, day, today)
    return NavigationResponse(**asdict(availability))
