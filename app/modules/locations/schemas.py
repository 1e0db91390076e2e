from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class Liveness(str, Enum):
    LIVE = "live"
    LATEST = "latest"
    HISTORICAL = "historical"


class DateType(str, Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class LocationCreate(BaseModel):
    local_timestamp: datetime
    time_zone_id: str = "UTC"
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None
    location_type: Optional[str] = None
    activity_type_id: Optional[int] = None
    address: Optional[str] = None
    full_address: Optional[str] = None
    street_name: Optional[str] = None
    post_code: Optional[str] = None
    place: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None


class LocationUpdate(BaseModel):
    local_timestamp: Optional[datetime] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    location_type: Optional[str] = None
    activity_type_id: Optional[int] = None
    address: Optional[str] = None
    full_address: Optional[str] = None
    street_name: Optional[str] = None
    post_code: Optional[str] = None
    place: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None


class LocationResponse(BaseModel):
    id: int
    user_id: str
    timestamp: datetime
    local_timestamp: datetime
    time_zone_id: Optional[str] = None
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None
    location_type: Optional[str] = None
    activity_type_id: Optional[int] = None
    address: Optional[str] = None
    full_address: Optional[str] = None
    street_name: Optional[str] = None
    post_code: Optional[str] = None
    place: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None
    # Derived per query, never stored
    liveness: Liveness = Liveness.HISTORICAL
    is_latest_location: bool = False
    location_time_threshold_minutes: Optional[int] = None

    class Config:
        from_attributes = True


class ViewportRequest(BaseModel):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float
    zoom_level: float = 0
    date_type: Optional[DateType] = None
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None


class ViewportResponse(BaseModel):
    results: List[LocationResponse]
    total_items: int
    zoom_level: float


class BulkDeleteRequest(BaseModel):
    location_ids: List[int] = Field(min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: int
