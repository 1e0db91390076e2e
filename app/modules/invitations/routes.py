from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.invitations.schemas import InvitationCreate, InvitationResponse
from app.modules.invitations.service import InvitationService
from app.modules.groups.schemas import GroupMemberResponse
from app.modules.realtime.service import RealtimePublisher, get_publisher
from app.core.dependencies import get_current_user_id
from app.core.clock import Clock, get_clock
from supabase import Client
from typing import List, Dict

router = APIRouter(tags=["invitations"])


def get_invitation_service(
    supabase: Client = Depends(get_supabase),
    publisher: RealtimePublisher = Depends(get_publisher)
) -> InvitationService:
    return InvitationService(supabase, publisher)


@router.post("/groups/{group_id}/invitations", response_model=InvitationResponse, status_code=201)
async def create_invitation(
    group_id: str,
    data: InvitationCreate,
    current_user: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service),
    clock: Clock = Depends(get_clock)
):
    """Invite a user to the group (owner only)"""
    return service.invite(group_id, current_user["id"], data, clock.now())


@router.get("/groups/{group_id}/invitations", response_model=List[InvitationResponse])
async def list_group_invitations(
    group_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service),
    clock: Clock = Depends(get_clock)
):
    """Pending invitations of a group (owner only)"""
    return service.list_pending_for_group(group_id, current_user["id"], clock.now())


@router.get("/invitations", response_model=List[InvitationResponse])
async def list_my_invitations(
    current_user: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service),
    clock: Clock = Depends(get_clock)
):
    """Pending invitations addressed to the caller"""
    return service.list_pending_for_user(current_user["id"], clock.now())


@router.post("/invitations/{token}/accept", response_model=GroupMemberResponse)
async def accept_invitation(
    token: str,
    current_user: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service),
    clock: Clock = Depends(get_clock)
):
    return service.accept(token, current_user["id"], clock.now())


@router.post("/invitations/{token}/decline", response_model=InvitationResponse)
async def decline_invitation(
    token: str,
    current_user: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service),
    clock: Clock = Depends(get_clock)
):
    return service.decline(token, current_user["id"], clock.now())


@router.delete("/invitations/{invitation_id}", response_model=InvitationResponse)
async def revoke_invitation(
    invitation_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service),
    clock: Clock = Depends(get_clock)
):
    """Revoke a pending invitation (group owner only)"""
    return service.revoke(invitation_id, current_user["id"], clock.now())
