"""
Areas a user keeps off their public timeline, such as home or work.

Locations inside any of the owner's polygons are dropped from anonymous
views. The owner's own views and group maps are not affected.
"""

from supabase import Client
from app.modules.hidden_areas.schemas import HiddenAreaCreate, HiddenAreaResponse, parse_polygon
from app.modules.locations.schemas import LocationResponse
from app.core.clock import to_iso
from app.core.exceptions import NotFound
from shapely.geometry import Point, Polygon
from typing import List
from fastapi import HTTPException
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def outside_hidden_areas(records: List[LocationResponse], areas: List[Polygon]) -> List[LocationResponse]:
    """Records whose point is not strictly inside any area; a point on an edge stays visible"""
    if not areas:
        return list(records)
    return [
        r for r in records
        if not any(area.contains(Point(r.longitude, r.latitude)) for area in areas)
    ]


class HiddenAreaService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_for_user(self, user_id: str) -> List[HiddenAreaResponse]:
        try:
            result = self.supabase.table("hidden_areas")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("id")\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return [HiddenAreaResponse(**row) for row in result.data or []]

    def polygons_for_user(self, user_id: str) -> List[Polygon]:
        polygons = []
        for area in self.list_for_user(user_id):
            try:
                polygons.append(parse_polygon(area.area_wkt))
            except ValueError as e:
                logger.error(f"Skipping unreadable hidden area {area.id} of user {user_id}: {e}")
        return polygons

    def create(self, user_id: str, data: HiddenAreaCreate, now: datetime) -> HiddenAreaResponse:
        try:
            result = self.supabase.table("hidden_areas").insert({
                "user_id": user_id,
                "name": data.name,
                "description": data.description,
                "area_wkt": data.area_wkt,
                "created_at": to_iso(now),
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create hidden area")
        logger.info(f"User {user_id} added hidden area {data.name}")
        return HiddenAreaResponse(**result.data[0])

    def delete(self, user_id: str, area_id: int) -> None:
        try:
            result = self.supabase.table("hidden_areas")\
                .delete()\
                .eq("id", area_id)\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise NotFound("Hidden area not found")
        logger.info(f"User {user_id} deleted hidden area {area_id}")
