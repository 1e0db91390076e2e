from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.groups.schemas import (
    GroupCreate, GroupUpdate, GroupResponse, GroupMemberResponse,
    PeerVisibilityRequest, PeerVisibilityResponse
)
from app.modules.groups.service import GroupService
from app.modules.realtime.service import RealtimePublisher, get_publisher
from app.core.dependencies import get_current_user_id, check_group_member
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/groups", tags=["groups"])


def get_group_service(
    supabase: Client = Depends(get_supabase),
    publisher: RealtimePublisher = Depends(get_publisher)
) -> GroupService:
    return GroupService(supabase, publisher)


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    group_data: GroupCreate,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
    clock: Clock = Depends(get_clock)
):
    """Create a new group owned by the caller"""
    return service.create_group(group_data, current_user["id"], clock.now())


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """List groups the caller owns or is an active member of"""
    return service.list_groups_for_user(current_user["id"])


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
    supabase: Client = Depends(get_supabase)
):
    """Get group by ID (only if user is a member)"""
    check_group_member(group_id, current_user, supabase)
    return service.get_group(group_id)


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    group_data: GroupUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
    clock: Clock = Depends(get_clock)
):
    """Update group (owner only)"""
    return service.update_group(group_id, current_user["id"], group_data, clock.now())


@router.delete("/{group_id}", status_code=204)
async def delete_group(
    group_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Delete group with its memberships and invitations (owner only)"""
    service.delete_group(group_id, current_user["id"])
    return None


@router.get("/{group_id}/members", response_model=List[GroupMemberResponse])
async def list_members(
    group_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Active members with their peer-visibility flags"""
    return service.list_members(group_id, current_user["id"])


@router.delete("/{group_id}/members/{user_id}", status_code=204)
async def remove_member(
    group_id: str,
    user_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
    clock: Clock = Depends(get_clock)
):
    """Remove a member from the group (owner only)"""
    service.remove_member(group_id, current_user["id"], user_id, clock.now())
    return None


@router.post("/{group_id}/leave", status_code=204)
async def leave_group(
    group_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
    clock: Clock = Depends(get_clock)
):
    service.leave_group(group_id, current_user["id"], clock.now())
    return None


@router.post("/{group_id}/members/{user_id}/org-peer-visibility-access", response_model=PeerVisibilityResponse)
async def set_peer_visibility(
    group_id: str,
    user_id: str,
    data: PeerVisibilityRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Hide or show a member's locations to peers on the group map"""
    disabled = service.set_peer_visibility(group_id, current_user["id"], user_id, data.disabled)
    return PeerVisibilityResponse(disabled=disabled)
