from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.hidden_areas.schemas import HiddenAreaCreate, HiddenAreaResponse
from app.modules.hidden_areas.service import HiddenAreaService
from app.core.dependencies import get_current_user_id
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import Dict, List

router = APIRouter(prefix="/users/me/hidden-areas", tags=["hidden-areas"])


def get_hidden_area_service(supabase: Client = Depends(get_supabase)) -> HiddenAreaService:
    return HiddenAreaService(supabase)


@router.get("", response_model=List[HiddenAreaResponse])
async def list_hidden_areas(
    current_user: Dict = Depends(get_current_user_id),
    service: HiddenAreaService = Depends(get_hidden_area_service)
):
    return service.list_for_user(current_user["id"])


@router.post("", response_model=HiddenAreaResponse, status_code=201)
async def create_hidden_area(
    data: HiddenAreaCreate,
    current_user: Dict = Depends(get_current_user_id),
    service: HiddenAreaService = Depends(get_hidden_area_service),
    clock: Clock = Depends(get_clock)
):
    """Keep locations inside a polygon off the caller's public timeline"""
    return service.create(current_user["id"], data, clock.now())


@router.delete("/{area_id}", status_code=204)
async def delete_hidden_area(
    area_id: int,
    current_user: Dict = Depends(get_current_user_id),
    service: HiddenAreaService = Depends(get_hidden_area_service)
):
    service.delete(current_user["id"], area_id)
    return None
