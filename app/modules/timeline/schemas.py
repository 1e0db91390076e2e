from pydantic import BaseModel
from typing import List, Optional
from app.modules.locations.schemas import DateType, LocationResponse


class ChronologicalResponse(BaseModel):
    success: bool = True
    data: List[LocationResponse]
    total_items: int
    date_type: DateType
    year: int
    month: Optional[int] = None
    day: Optional[int] = None


class LocationStats(BaseModel):
    total_locations: int = 0
    countries_visited: int = 0
    regions_visited: int = 0
    cities_visited: int = 0


class StatsResponse(BaseModel):
    success: bool = True
    stats: LocationStats


class HasDataResponse(BaseModel):
    has_data: bool


class NavigationResponse(BaseModel):
    success: bool = True
    can_navigate_prev_day: bool
    can_navigate_next_day: bool
    can_navigate_prev_month: bool
    can_navigate_next_month: bool
    can_navigate_prev_year: bool
    can_navigate_next_year: bool
