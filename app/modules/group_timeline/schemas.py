from pydantic import BaseModel, Field
from typing import List, Optional
from app.modules.locations.schemas import DateType, LocationResponse


class LatestLocationsRequest(BaseModel):
    include_user_ids: Optional[List[str]] = None


class GroupLocationsQueryRequest(BaseModel):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float
    zoom_level: float = 0
    user_ids: Optional[List[str]] = None
    date_type: Optional[DateType] = None
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    page_size: Optional[int] = Field(default=None, ge=1)
    continuation_token: Optional[str] = None


class GroupLocationsQueryResponse(BaseModel):
    results: List[LocationResponse]
    total_items: int
    page_size: int
    has_more: bool
    is_truncated: bool
    next_page_token: Optional[str] = None
    zoom_level: float
