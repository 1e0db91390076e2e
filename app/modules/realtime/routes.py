from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from app.database.supabase_client import get_supabase
from app.config.settings import settings
from app.modules.realtime.broker import SseBroker, get_broker
from app.modules.realtime.service import location_update_frames
from app.modules.realtime.topics import GroupTopic, MembershipTopic, UserLocationTopic
from app.modules.group_timeline.access import AccessService
from app.modules.locations.service import LocationService
from app.modules.users.service import UserService, resolve_threshold_minutes
from app.core.dependencies import get_access_cache, get_current_user_id, get_optional_user
from app.core.exceptions import Forbidden, NotFound
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sse", tags=["realtime"])

_SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def get_access_service(
    supabase: Client = Depends(get_supabase),
    cache: Dict[str, Any] = Depends(get_access_cache)
) -> AccessService:
    return AccessService(supabase, cache)


def _event_stream(frames) -> StreamingResponse:
    return StreamingResponse(frames, media_type="text/event-stream", headers=_SSE_HEADERS)


@router.get("/stream/location-update/{username}")
async def stream_location_updates(
    username: str,
    request: Request,
    current_user: Optional[Dict] = Depends(get_optional_user),
    access: AccessService = Depends(get_access_service),
    broker: SseBroker = Depends(get_broker),
    supabase: Client = Depends(get_supabase),
    clock: Clock = Depends(get_clock)
):
    """Location events of one user, for viewers allowed to see them right now"""
    subject = UserService(supabase).find_user_by_username(username)
    if subject is None:
        raise NotFound("User not found")
    viewer_id = current_user["id"] if current_user else None
    if not access.can_view_user(viewer_id, subject.id, clock.now()):
        raise Forbidden("You are not allowed to follow this user's locations")

    subscription = broker.subscribe(UserLocationTopic(subject.username))
    logger.info(f"Viewer {viewer_id or 'anonymous'} subscribed to locations of {subject.username}")
    return _event_stream(location_update_frames(
        broker,
        subscription,
        subject.id,
        resolve_threshold_minutes(subject),
        LocationService(supabase),
        clock,
        settings.sse_heartbeat_seconds,
        request.is_disconnected,
    ))


@router.get("/group/{group_id}")
async def stream_group_events(
    group_id: str,
    request: Request,
    current_user: Dict = Depends(get_current_user_id),
    access: AccessService = Depends(get_access_service),
    broker: SseBroker = Depends(get_broker)
):
    """Location and membership events of a group (active members only)"""
    access.require_member(group_id, current_user["id"])
    subscription = broker.subscribe(GroupTopic(group_id))
    return _event_stream(broker.stream(subscription, settings.sse_heartbeat_seconds, request.is_disconnected))


@router.get("/membership")
async def stream_membership_events(
    request: Request,
    current_user: Dict = Depends(get_current_user_id),
    broker: SseBroker = Depends(get_broker)
):
    """Invitations and removals addressed to the caller"""
    subscription = broker.subscribe(MembershipTopic(current_user["id"]))
    return _event_stream(broker.stream(subscription, settings.sse_heartbeat_seconds, request.is_disconnected))
