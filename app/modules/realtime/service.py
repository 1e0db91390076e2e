"""
Publishing side of the realtime layer.

Services call the publisher after their write has been committed. A publish
failure is logged and never rolls back or fails the write that triggered it.
"""

from supabase import Client
from fastapi import Depends
from app.database.supabase_client import get_supabase
from app.modules.realtime.broker import HEARTBEAT_FRAME, SseBroker, Subscription, format_frame, get_broker
from app.modules.realtime.events import RealtimeEvent
from app.modules.realtime.topics import GroupTopic, MembershipTopic, Topic, UserLocationTopic
from app.modules.groups.schemas import is_org_group
from app.modules.locations.liveness import LivenessRecheckTimer
from app.modules.locations.schemas import Liveness, LocationResponse
from app.core.clock import Clock
from typing import AsyncIterator, List, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from app.modules.locations.service import LocationService

logger = logging.getLogger(__name__)


class RealtimePublisher:
    def __init__(self, broker: SseBroker, supabase: Client):
        self.broker = broker
        self.supabase = supabase

    def publish(self, topic: Topic, event: RealtimeEvent) -> int:
        try:
            delivered = self.broker.publish(topic, event.to_payload())
        except Exception as e:
            logger.error(f"Failed to publish {event.type} on {topic.channel}: {e}")
            return 0
        logger.debug(f"Published {event.type} on {topic.channel} to {delivered} subscriber(s)")
        return delivered

    def _username(self, user_id: str):
        result = self.supabase.table("user_profiles")\
            .select("username")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0]["username"] if result.data else None

    def _visible_group_ids(self, user_id: str) -> List[str]:
        """Active groups whose map may show this user's locations"""
        memberships = self.supabase.table("group_members")\
            .select("group_id, org_peer_visibility_access_disabled")\
            .eq("user_id", user_id)\
            .eq("status", "Active")\
            .execute()
        rows = memberships.data or []
        if not rows:
            return []
        groups = self.supabase.table("groups")\
            .select("id, group_type, is_archived")\
            .in_("id", [row["group_id"] for row in rows])\
            .execute()
        group_types = {g["id"]: g for g in groups.data or [] if not g.get("is_archived")}
        visible = []
        for row in rows:
            group = group_types.get(row["group_id"])
            if group is None:
                continue
            if is_org_group(group.get("group_type")) and row.get("org_peer_visibility_access_disabled"):
                continue
            visible.append(row["group_id"])
        return visible

    def _fan_out(self, user_id: str, event: RealtimeEvent) -> None:
        try:
            username = self._username(user_id)
            group_ids = self._visible_group_ids(user_id)
        except Exception as e:
            logger.error(f"Failed to resolve realtime topics for user {user_id}: {e}")
            return
        if username:
            self.publish(UserLocationTopic(username), event.model_copy(update={"username": username}))
        for group_id in group_ids:
            self.publish(GroupTopic(group_id), event.model_copy(update={"username": username}))

    def location_logged(self, user_id: str, location: LocationResponse) -> None:
        event = RealtimeEvent.location(
            location_id=location.id,
            user_id=user_id,
            username=None,
            timestamp_utc=location.local_timestamp,
            is_live=location.liveness == Liveness.LIVE,
            location_type=location.location_type,
        )
        self._fan_out(user_id, event)

    def locations_deleted(self, user_id: str, location_ids: List[int]) -> None:
        self._fan_out(user_id, RealtimeEvent.location_deleted(user_id, list(location_ids)))

    def group_event(self, group_id: str, event: RealtimeEvent) -> int:
        return self.publish(GroupTopic(group_id), event)

    def membership_event(self, user_id: str, event: RealtimeEvent) -> int:
        return self.publish(MembershipTopic(user_id), event)


def get_publisher(
    broker: SseBroker = Depends(get_broker),
    supabase: Client = Depends(get_supabase)
) -> RealtimePublisher:
    return RealtimePublisher(broker, supabase)


async def location_update_frames(
    broker: SseBroker,
    subscription: Subscription,
    subject_id: str,
    threshold_minutes: int,
    locations: "LocationService",
    clock: Clock,
    heartbeat_seconds: float,
    is_disconnected=None,
) -> AsyncIterator[str]:
    """
    Frames for one subject's location stream. Besides relayed events, a
    liveness-expired frame is pushed when the subject's latest record leaves
    its live window, so clients re-classify without polling.
    """

    async def expire() -> None:
        latest = locations.latest_annotated(subject_id, threshold_minutes, clock.now())
        if latest is not None:
            subscription.offer(format_frame(RealtimeEvent.liveness_expired(subject_id, latest.id).to_payload()))

    timer = LivenessRecheckTimer(expire)

    def refresh() -> None:
        try:
            latest = locations.latest_annotated(subject_id, threshold_minutes, clock.now())
        except Exception as e:
            logger.error(f"Failed to load latest location for {subject_id}: {e}")
            timer.cancel()
            return
        timer.reschedule([latest] if latest is not None else [], clock.now())

    stream = broker.stream(subscription, heartbeat_seconds, is_disconnected)
    refresh()
    try:
        async for frame in stream:
            yield frame
            if frame != HEARTBEAT_FRAME:
                refresh()
    finally:
        timer.cancel()
        await stream.aclose()
        broker.unsubscribe(subscription)
