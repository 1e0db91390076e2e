from supabase import Client
from app.modules.locations.schemas import LocationCreate, LocationUpdate, LocationResponse
from app.modules.locations import liveness
from app.modules.users.service import UserService
from app.core.clock import to_iso
from app.core.exceptions import NotFound, ValidationError
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, TYPE_CHECKING
from fastapi import HTTPException
from datetime import datetime
import logging

if TYPE_CHECKING:
    from app.modules.realtime.service import RealtimePublisher

logger = logging.getLogger(__name__)

# PostgREST caps a single response, so long ranges are read in pages
_PAGE_SIZE = 1000


class BoundingBox(NamedTuple):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float


def validate_bbox(min_lng: float, min_lat: float, max_lng: float, max_lat: float) -> BoundingBox:
    if not (-180 <= min_lng <= 180 and -180 <= max_lng <= 180):
        raise ValidationError("Longitude must be between -180 and 180")
    if not (-90 <= min_lat <= 90 and -90 <= max_lat <= 90):
        raise ValidationError("Latitude must be between -90 and 90")
    if min_lng > max_lng or min_lat > max_lat:
        raise ValidationError("Bounding box minimum must not exceed maximum")
    return BoundingBox(min_lng, min_lat, max_lng, max_lat)


class LocationService:
    """Geo-temporal store access for location records, plus liveness annotation of results."""

    def __init__(self, supabase: Client, publisher: Optional["RealtimePublisher"] = None):
        self.supabase = supabase
        self.publisher = publisher

    def _fetch_all(self, build_query: Callable) -> List[dict]:
        rows: List[dict] = []
        offset = 0
        while True:
            result = build_query().range(offset, offset + _PAGE_SIZE - 1).execute()
            page = result.data or []
            rows.extend(page)
            if len(page) < _PAGE_SIZE:
                return rows
            offset += _PAGE_SIZE

    def create_location(self, user_id: str, data: LocationCreate, now: datetime) -> LocationResponse:
        """Store a new location, annotated, and notify the owner's and their groups' subscribers"""
        row = data.model_dump()
        row["local_timestamp"] = to_iso(data.local_timestamp)
        row["timestamp"] = to_iso(now)
        row["user_id"] = user_id
        try:
            result = self.supabase.table("locations").insert(row).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to store location")
        location = LocationResponse(**result.data[0])
        logger.info(f"Stored location {location.id} for user {user_id}")
        annotated = self.annotate_or_default([location], now)[0]
        if self.publisher is not None:
            self.publisher.location_logged(user_id, annotated)
        return annotated

    def get_location(self, location_id: int) -> LocationResponse:
        try:
            result = self.supabase.table("locations")\
                .select("*")\
                .eq("id", location_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise NotFound("Location not found")
        return LocationResponse(**result.data[0])

    def get_owned_location(self, user_id: str, location_id: int) -> LocationResponse:
        """Another user's location is reported as missing rather than forbidden"""
        location = self.get_location(location_id)
        if location.user_id != user_id:
            raise NotFound("Location not found")
        return location

    def update_location(self, user_id: str, location_id: int, data: LocationUpdate) -> LocationResponse:
        self.get_owned_location(user_id, location_id)
        update_data = data.model_dump(exclude_none=True)
        if "local_timestamp" in update_data:
            update_data["local_timestamp"] = to_iso(data.local_timestamp)
        if not update_data:
            return self.get_location(location_id)
        try:
            result = self.supabase.table("locations")\
                .update(update_data)\
                .eq("id", location_id)\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise NotFound("Location not found")
        return LocationResponse(**result.data[0])

    def delete_locations(self, user_id: str, location_ids: List[int]) -> int:
        """Hard-delete the caller's own locations; ids owned by someone else are ignored"""
        ids = list(dict.fromkeys(location_ids))
        if not ids:
            return 0
        try:
            result = self.supabase.table("locations")\
                .delete()\
                .eq("user_id", user_id)\
                .in_("id", ids)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        deleted = [row["id"] for row in result.data or []]
        logger.info(f"Deleted {len(deleted)} location(s) for user {user_id}")
        if deleted and self.publisher is not None:
            self.publisher.locations_deleted(user_id, deleted)
        return len(deleted)

    def query_range(self, owner_id: str, start: datetime, end: datetime) -> List[LocationResponse]:
        """Records in [start, end), ascending by capture time"""
        try:
            rows = self._fetch_all(lambda: self.supabase.table("locations")
                                   .select("*")
                                   .eq("user_id", owner_id)
                                   .gte("local_timestamp", to_iso(start))
                                   .lt("local_timestamp", to_iso(end))
                                   .order("local_timestamp")
                                   .order("id"))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return [LocationResponse(**row) for row in rows]

    def query_geo_columns(self, owner_id: str, start: datetime, end: datetime) -> List[dict]:
        """Only the reverse-geocoded columns, for aggregate stats"""
        try:
            return self._fetch_all(lambda: self.supabase.table("locations")
                                   .select("id, country, region, place")
                                   .eq("user_id", owner_id)
                                   .gte("local_timestamp", to_iso(start))
                                   .lt("local_timestamp", to_iso(end))
                                   .order("id"))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def has_data(self, owner_id: str, start: datetime, end: datetime) -> bool:
        try:
            result = self.supabase.table("locations")\
                .select("id")\
                .eq("user_id", owner_id)\
                .gte("local_timestamp", to_iso(start))\
                .lt("local_timestamp", to_iso(end))\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return bool(result.data)

    def get_latest(self, owner_id: str, not_after: Optional[datetime] = None) -> Optional[LocationResponse]:
        """Most recent record (highest id wins a timestamp tie), optionally capped at not_after"""
        try:
            query = self.supabase.table("locations")\
                .select("*")\
                .eq("user_id", owner_id)
            if not_after is not None:
                query = query.lte("local_timestamp", to_iso(not_after))
            result = query.order("local_timestamp", desc=True)\
                .order("id", desc=True)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return LocationResponse(**result.data[0]) if result.data else None

    def get_latest_ids(self, owner_ids: Iterable[str]) -> Dict[str, Optional[int]]:
        latest_ids = {}
        for owner_id in dict.fromkeys(owner_ids):
            latest = self.get_latest(owner_id)
            latest_ids[owner_id] = latest.id if latest else None
        return latest_ids

    def query_viewport(
        self,
        bbox: BoundingBox,
        owner_ids: List[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        not_after: Optional[datetime] = None,
    ) -> List[LocationResponse]:
        """
        Records whose point lies inside the box (edges included), for the given
        owners and optional [start, end) window, capped at not_after inclusive.
        Newest first. No decimation; clustering is left to the map client.
        """
        if not owner_ids:
            return []

        def build():
            query = self.supabase.table("locations")\
                .select("*")\
                .in_("user_id", owner_ids)\
                .gte("longitude", bbox.min_lng)\
                .lte("longitude", bbox.max_lng)\
                .gte("latitude", bbox.min_lat)\
                .lte("latitude", bbox.max_lat)
            if start is not None:
                query = query.gte("local_timestamp", to_iso(start))
            if end is not None:
                query = query.lt("local_timestamp", to_iso(end))
            if not_after is not None:
                query = query.lte("local_timestamp", to_iso(not_after))
            return query.order("local_timestamp", desc=True).order("id", desc=True)

        try:
            rows = self._fetch_all(build)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return [LocationResponse(**row) for row in rows]

    def annotate(self, records: List[LocationResponse], now: datetime) -> List[LocationResponse]:
        """Liveness per record, using each subject's own threshold"""
        if not records:
            return []
        owner_ids = list(dict.fromkeys(r.user_id for r in records))
        thresholds = UserService(self.supabase).get_thresholds(owner_ids)
        latest_ids = self.get_latest_ids(owner_ids)
        return liveness.annotate(records, thresholds, latest_ids, now)

    def annotate_or_default(self, records: List[LocationResponse], now: datetime) -> List[LocationResponse]:
        """Annotation for records that are already stored; a lookup failure leaves the default classification"""
        try:
            return self.annotate(records, now)
        except Exception as e:
            logger.error(f"Failed to annotate {len(records)} location(s): {e}")
            return list(records)

    def latest_annotated(self, owner_id: str, threshold_minutes: int, now: datetime) -> Optional[LocationResponse]:
        latest = self.get_latest(owner_id)
        if latest is None:
            return None
        return latest.model_copy(update={
            "liveness": liveness.classify(latest.local_timestamp, threshold_minutes, now, is_latest=True),
            "is_latest_location": True,
            "location_time_threshold_minutes": threshold_minutes,
        })
