from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import Polygon


def parse_polygon(value: str) -> Polygon:
    try:
        geometry = wkt.loads(value)
    except (ShapelyError, ValueError) as e:
        raise ValueError(f"Area is not valid WKT: {e}")
    if not isinstance(geometry, Polygon) or geometry.is_empty or not geometry.is_valid:
        raise ValueError("Area must be a valid polygon")
    return geometry


class HiddenAreaCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    area_wkt: str

    @field_validator("area_wkt")
    @classmethod
    def check_area(cls, value: str) -> str:
        parse_polygon(value)
        return value


class HiddenAreaResponse(BaseModel):
    id: int
    user_id: str
    name: str
    description: Optional[str] = None
    area_wkt: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
