from supabase import Client
from app.modules.timeline import date_ranges
from app.modules.timeline.date_ranges import DateRange, NavigationAvailability
from app.modules.timeline.schemas import ChronologicalResponse, LocationStats
from app.modules.locations.schemas import DateType
from app.modules.locations.service import LocationService
from app.modules.users.schemas import UserProfileResponse
from typing import Optional
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

logger = logging.getLogger(__name__)


def viewer_today(profile: Optional[UserProfileResponse], now: datetime) -> date:
    """Calendar date at `now` in the viewer's own time zone"""
    tz_name = profile.time_zone if profile is not None and profile.time_zone else "UTC"
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown time zone {tz_name!r}; falling back to UTC")
        tz = ZoneInfo("UTC")
    return now.astimezone(tz).date()


class ChronologicalService:
    """Day, month and year views over one owner's locations"""

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.locations = LocationService(supabase)

    def get_timeline(
        self,
        owner_id: str,
        date_type: DateType,
        year: int,
        month: Optional[int],
        day: Optional[int],
        now: datetime,
    ) -> ChronologicalResponse:
        date_range = date_ranges.resolve(date_type, year, month, day)
        records = self.query_range(owner_id, date_range, now)
        return ChronologicalResponse(
            data=records,
            total_items=len(records),
            date_type=date_type,
            year=year,
            month=month,
            day=day,
        )

    def query_range(self, owner_id: str, date_range: DateRange, now: datetime):
        records = self.locations.query_range(owner_id, date_range.start, date_range.end)
        return self.locations.annotate(records, now)

    def stats(self, owner_id: str, date_range: DateRange) -> LocationStats:
        countries, regions, cities = set(), set(), set()
        total = 0
        for row in self.locations.query_geo_columns(owner_id, date_range.start, date_range.end):
            total += 1
            if row.get("country"):
                countries.add(row["country"])
            if row.get("region"):
                regions.add(row["region"])
            if row.get("place"):
                cities.add(row["place"])
        return LocationStats(
            total_locations=total,
            countries_visited=len(countries),
            regions_visited=len(regions),
            cities_visited=len(cities),
        )

    def has_data(self, owner_id: str, date_range: DateRange) -> bool:
        return self.locations.has_data(owner_id, date_range.start, date_range.end)

    def has_data_for_date(self, owner_id: str, day: date) -> bool:
        return self.has_data(owner_id, date_ranges.resolve(DateType.DAY, day.year, day.month, day.day))

    def navigation_availability(
        self,
        date_type: DateType,
        year: int,
        month: Optional[int],
        day: Optional[int],
        today: date,
    ) -> NavigationAvailability:
        return date_ranges.navigation_availability(date_type, year, month, day, today)
