from supabase import Client
from app.modules.users.schemas import UserProfileResponse, UserSettingsUpdate
from app.config.settings import settings
from app.core.clock import to_iso
from app.core.exceptions import NotFound
from typing import Dict, Iterable, Optional
from fastapi import HTTPException
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def resolve_threshold_minutes(profile: Optional[UserProfileResponse]) -> int:
    """Live window for a subject: their own setting, else the application default."""
    if profile is not None and profile.location_time_threshold_minutes is not None:
        return profile.location_time_threshold_minutes
    return settings.default_location_time_threshold_minutes


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def find_user_by_id(self, user_id: str) -> Optional[UserProfileResponse]:
        try:
            result = self.supabase.table("user_profiles")\
                .select("*")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()
            return UserProfileResponse(**result.data[0]) if result.data else None
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_user_by_id(self, user_id: str) -> UserProfileResponse:
        """Get user profile by ID"""
        profile = self.find_user_by_id(user_id)
        if profile is None:
            raise NotFound("User not found")
        return profile

    def find_user_by_username(self, username: str) -> Optional[UserProfileResponse]:
        try:
            result = self.supabase.table("user_profiles")\
                .select("*")\
                .eq("username", username)\
                .limit(1)\
                .execute()
            return UserProfileResponse(**result.data[0]) if result.data else None
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_users_by_ids(self, user_ids: Iterable[str]) -> Dict[str, UserProfileResponse]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        try:
            result = self.supabase.table("user_profiles")\
                .select("*")\
                .in_("id", ids)\
                .execute()
            return {row["id"]: UserProfileResponse(**row) for row in result.data or []}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_thresholds(self, user_ids: Iterable[str]) -> Dict[str, int]:
        """Live window per subject; users without a profile get the default."""
        ids = list(dict.fromkeys(user_ids))
        profiles = self.get_users_by_ids(ids)
        return {uid: resolve_threshold_minutes(profiles.get(uid)) for uid in ids}

    def update_settings(self, user_id: str, data: UserSettingsUpdate, now: datetime) -> UserProfileResponse:
        """Update timeline sharing and liveness settings"""
        update_data = data.model_dump(exclude_none=True)
        if not update_data:
            return self.get_user_by_id(user_id)
        update_data["updated_at"] = to_iso(now)
        try:
            result = self.supabase.table("user_profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise NotFound("User not found")
        logger.info(f"Updated settings for user {user_id}: {sorted(update_data)}")
        return UserProfileResponse(**result.data[0])

