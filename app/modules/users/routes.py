from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.users.schemas import UserProfileResponse, UserSettingsUpdate
from app.modules.users.service import UserService
from app.core.dependencies import get_current_user_id
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("/me", response_model=UserProfileResponse)
async def get_my_profile(
    current_user: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Get the caller's profile and timeline settings"""
    return service.get_user_by_id(current_user["id"])


@router.put("/me/settings", response_model=UserProfileResponse)
async def update_my_settings(
    data: UserSettingsUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
    clock: Clock = Depends(get_clock)
):
    """Update public timeline sharing, live threshold and time zone"""
    return service.update_settings(current_user["id"], data, clock.now())
