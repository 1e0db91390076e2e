from supabase import Client
from app.modules.public_timeline.schemas import PublicTimelineRequest
from app.modules.hidden_areas.service import HiddenAreaService, outside_hidden_areas
from app.modules.locations import liveness
from app.modules.locations.schemas import ViewportResponse
from app.modules.locations.service import LocationService, validate_bbox
from app.modules.users.service import UserService, resolve_threshold_minutes
from app.core.exceptions import NotFound
from app.core.timespan import parse_threshold
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class PublicTimelineService:
    """Anonymous view of a user's shared timeline, held back by their delay threshold and hidden areas"""

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.users = UserService(supabase)
        self.locations = LocationService(supabase)
        self.hidden_areas = HiddenAreaService(supabase)

    def get_timeline(self, username: str, request: PublicTimelineRequest, now: datetime) -> ViewportResponse:
        profile = self.users.find_user_by_username(username)
        if profile is None or not profile.is_timeline_public:
            raise NotFound("User not found or timeline is not public")
        bbox = validate_bbox(request.min_lng, request.min_lat, request.max_lng, request.max_lat)

        try:
            cutoff = now - parse_threshold(profile.public_timeline_time_threshold)
        except ValueError:
            logger.warning(f"User {profile.id} has an invalid public threshold; hiding timeline")
            raise NotFound("User not found or timeline is not public")

        records = self.locations.query_viewport(bbox, [profile.id], not_after=cutoff)
        records = outside_hidden_areas(records, self.hidden_areas.polygons_for_user(profile.id))
        # Latest is judged among the records visible at the cutoff, not the true latest
        latest = self.locations.get_latest(profile.id, not_after=cutoff)
        annotated = liveness.annotate(
            records,
            {profile.id: resolve_threshold_minutes(profile)},
            {profile.id: latest.id if latest else None},
            now,
        )
        return ViewportResponse(results=annotated, total_items=len(annotated), zoom_level=request.zoom_level)
