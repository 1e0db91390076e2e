from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.locations.schemas import (
    LocationCreate, LocationUpdate, LocationResponse,
    ViewportRequest, ViewportResponse, BulkDeleteRequest, BulkDeleteResponse
)
from app.modules.locations.service import LocationService, validate_bbox
from app.modules.realtime.service import RealtimePublisher, get_publisher
from app.modules.timeline import date_ranges
from app.core.dependencies import get_current_user_id
from app.core.exceptions import NotFound
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/locations", tags=["locations"])


def get_location_service(
    supabase: Client = Depends(get_supabase),
    publisher: RealtimePublisher = Depends(get_publisher)
) -> LocationService:
    return LocationService(supabase, publisher)


@router.post("", response_model=LocationResponse, status_code=201)
async def log_location(
    data: LocationCreate,
    current_user: Dict = Depends(get_current_user_id),
    service: LocationService = Depends(get_location_service),
    clock: Clock = Depends(get_clock)
):
    """Record a location for the caller and notify subscribers"""
    return service.create_location(current_user["id"], data, clock.now())


@router.post("/viewport", response_model=ViewportResponse)
async def query_viewport(
    data: ViewportRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: LocationService = Depends(get_location_service),
    clock: Clock = Depends(get_clock)
):
    """The caller's own locations inside a map viewport, optionally limited to a day, month or year"""
    bbox = validate_bbox(data.min_lng, data.min_lat, data.max_lng, data.max_lat)
    start = end = None
    if data.date_type is not None:
        start, end = date_ranges.resolve(data.date_type, data.year, data.month, data.day)
    records = service.query_viewport(bbox, [current_user["id"]], start, end)
    results = service.annotate(records, clock.now())
    return ViewportResponse(results=results, total_items=len(results), zoom_level=data.zoom_level)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_locations(
    data: BulkDeleteRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: LocationService = Depends(get_location_service)
):
    return BulkDeleteResponse(deleted=service.delete_locations(current_user["id"], data.location_ids))


@router.get("/{location_id}", response_model=LocationResponse)
async def get_location(
    location_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: LocationService = Depends(get_location_service),
    clock: Clock = Depends(get_clock)
):
    location = service.get_owned_location(current_user["id"], location_id)
    return service.annotate([location], clock.now())[0]


@router.put("/{location_id}", response_model=LocationResponse)
async def update_location(
    location_id: int,
    data: LocationUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: LocationService = Depends(get_location_service),
    clock: Clock = Depends(get_clock)
):
    """Edit one of the caller's locations"""
    location = service.update_location(current_user["id"], location_id, data)
    return service.annotate([location], clock.now())[0]


@router.delete("/{location_id}", status_code=204)
async def delete_location(
    location_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: LocationService = Depends(get_location_service)
):
    if service.delete_locations(current_user["id"], [location_id]) == 0:
        raise NotFound("Location not found")
    return None
