from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.timespan import is_valid_threshold


class UserProfileResponse(BaseModel):
    id: str
    username: str
    display_name: Optional[str] = None
    is_timeline_public: bool = False
    public_timeline_time_threshold: Optional[str] = None
    location_time_threshold_minutes: Optional[int] = None
    time_zone: str = "UTC"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSettingsUpdate(BaseModel):
    display_name: Optional[str] = None
    is_timeline_public: Optional[bool] = None
    public_timeline_time_threshold: Optional[str] = None
    location_time_threshold_minutes: Optional[int] = Field(default=None, ge=1, le=1440)
    time_zone: Optional[str] = None

    @field_validator("public_timeline_time_threshold")
    @classmethod
    def check_threshold(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_threshold(value):
            raise ValueError("Threshold must be 'now' or a number followed by h, d, w, m or y (0.1h to 20y)")
        return value

    @field_validator("time_zone")
    @classmethod
    def check_time_zone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {value}")
        return value
