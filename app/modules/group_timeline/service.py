from supabase import Client
from app.config.settings import settings
from app.modules.group_timeline.access import AccessService, GroupAccessContext, visible_subjects
from app.modules.group_timeline.schemas import GroupLocationsQueryRequest, GroupLocationsQueryResponse
from app.modules.locations import liveness
from app.modules.locations.schemas import DateType, LocationResponse
from app.modules.locations.service import LocationService, validate_bbox
from app.modules.timeline import date_ranges
from app.modules.timeline.date_ranges import DateRange
from app.core.clock import ensure_utc
from app.core.exceptions import Forbidden, ValidationError
from typing import List, Optional, Tuple
from datetime import datetime
import base64
import binascii
import logging

logger = logging.getLogger(__name__)


def encode_continuation_token(record: LocationResponse) -> str:
    raw = f"{ensure_utc(record.local_timestamp).isoformat()}|{record.id}"
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_continuation_token(token: str) -> Tuple[datetime, int]:
    try:
        raw = base64.urlsafe_b64decode(token.encode()).decode()
        timestamp, record_id = raw.rsplit("|", 1)
        return ensure_utc(datetime.fromisoformat(timestamp)), int(record_id)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ValidationError("Invalid continuation token")


def effective_date_range(
    subject_count: int,
    date_type: Optional[DateType],
    year: Optional[int],
    month: Optional[int],
    day: Optional[int],
    now: datetime,
) -> DateRange:
    """
    Several subjects are only ever queried one day at a time: a full
    year/month/day is honoured as that day, anything else becomes today (UTC).
    A single subject may use any granularity; no filter at all means today.
    """
    today = ensure_utc(now).date()
    if subject_count > 1:
        if year is not None and month is not None and day is not None:
            return date_ranges.resolve(DateType.DAY, year, month, day)
        return date_ranges.resolve(DateType.DAY, today.year, today.month, today.day)
    if date_type is None:
        return date_ranges.resolve(DateType.DAY, today.year, today.month, today.day)
    return date_ranges.resolve(date_type, year, month, day)


class GroupTimelineService:
    """Group map: latest positions and viewport queries over visible members"""

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.access = AccessService(supabase)
        self.locations = LocationService(supabase)

    def _select_subjects(self, context: GroupAccessContext, requested: Optional[List[str]]) -> List[str]:
        allowed = visible_subjects(context)
        if not requested:
            return sorted(allowed)
        requested = list(dict.fromkeys(requested))
        hidden = [user_id for user_id in requested if user_id not in allowed]
        if hidden:
            raise Forbidden("You are not allowed to view the locations of one or more requested users")
        return requested

    def get_latest_locations(
        self,
        group_id: str,
        viewer_id: str,
        include_user_ids: Optional[List[str]],
        now: datetime,
    ) -> List[LocationResponse]:
        """One liveness-annotated latest record per visible subject that has any"""
        context = self.access.require_member(group_id, viewer_id)
        results = []
        for user_id in self._select_subjects(context, include_user_ids):
            threshold = context.thresholds.get(user_id, settings.default_location_time_threshold_minutes)
            latest = self.locations.latest_annotated(user_id, threshold, now)
            if latest is not None:
                results.append(latest)
        return results

    def query_locations(
        self,
        group_id: str,
        viewer_id: str,
        request: GroupLocationsQueryRequest,
        now: datetime,
    ) -> GroupLocationsQueryResponse:
        context = self.access.require_member(group_id, viewer_id)
        bbox = validate_bbox(request.min_lng, request.min_lat, request.max_lng, request.max_lat)
        subjects = self._select_subjects(context, request.user_ids)
        page_size = min(
            request.page_size or settings.group_query_default_page_size,
            settings.group_query_max_page_size,
        )
        date_range = effective_date_range(
            len(subjects), request.date_type, request.year, request.month, request.day, now
        )

        records = self.locations.query_viewport(bbox, subjects, date_range.start, date_range.end)
        total_items = len(records)
        if request.continuation_token:
            cursor = decode_continuation_token(request.continuation_token)
            records = [r for r in records if (ensure_utc(r.local_timestamp), r.id) < cursor]

        page = records[:page_size]
        has_more = len(records) > page_size
        latest_ids = self.locations.get_latest_ids(r.user_id for r in page)
        annotated = liveness.annotate(page, context.thresholds, latest_ids, now)
        logger.debug(
            f"Group {group_id} query by {viewer_id}: {len(subjects)} subject(s), "
            f"{date_range.start.date()}..{date_range.end.date()}, {len(page)}/{total_items} record(s)"
        )
        return GroupLocationsQueryResponse(
            results=annotated,
            total_items=total_items,
            page_size=page_size,
            has_more=has_more,
            is_truncated=has_more,
            next_page_token=encode_continuation_token(page[-1]) if has_more else None,
            zoom_level=request.zoom_level,
        )
