from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.core.dependencies import get_current_user_id
from app.modules.users.service import UserService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("/me")
async def get_current_user(
    current_user: Dict = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
):
    """Current caller identity plus the profile the timeline and map features read."""
    profile = users.find_user_by_id(current_user["id"])
    return {**current_user, "profile": profile.model_dump() if profile else None}
