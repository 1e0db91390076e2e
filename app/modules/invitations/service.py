from supabase import Client
from app.modules.invitations.schemas import InvitationCreate, InvitationResponse, InvitationStatus
from app.modules.groups.schemas import GroupMemberResponse, MemberRole, MembershipStatus
from app.modules.groups.service import GroupService
from app.modules.users.service import UserService
from app.modules.realtime.events import RealtimeEvent
from app.core.clock import ensure_utc, to_iso
from app.core.exceptions import AlreadyMember, Conflict, DuplicateInvitation, Forbidden, NotFound
from typing import List, Optional, TYPE_CHECKING
from fastapi import HTTPException
from datetime import datetime
import logging
import secrets

if TYPE_CHECKING:
    from app.modules.realtime.service import RealtimePublisher

logger = logging.getLogger(__name__)


def _is_unique_violation(error: Exception) -> bool:
    message = str(error)
    return "23505" in message or "duplicate key" in message.lower()


class InvitationService:
    def __init__(self, supabase: Client, publisher: Optional["RealtimePublisher"] = None):
        self.supabase = supabase
        self.publisher = publisher
        self.groups = GroupService(supabase, publisher)

    def _find_by(self, column: str, value: str) -> Optional[InvitationResponse]:
        try:
            result = self.supabase.table("group_invitations")\
                .select("*")\
                .eq(column, value)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return InvitationResponse(**result.data[0]) if result.data else None

    def _find_pending(self, group_id: str, invitee_user_id: str) -> Optional[InvitationResponse]:
        try:
            result = self.supabase.table("group_invitations")\
                .select("*")\
                .eq("group_id", group_id)\
                .eq("invitee_user_id", invitee_user_id)\
                .eq("status", InvitationStatus.PENDING.value)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return InvitationResponse(**result.data[0]) if result.data else None

    def _is_expired(self, invitation: InvitationResponse, now: datetime) -> bool:
        return invitation.expires_at is not None and ensure_utc(invitation.expires_at) <= ensure_utc(now)

    def _transition(self, invitation: InvitationResponse, status: InvitationStatus, now: datetime) -> InvitationResponse:
        """Move a Pending invitation to a terminal status; a concurrent responder gets Conflict"""
        try:
            result = self.supabase.table("group_invitations")\
                .update({"status": status.value, "responded_at": to_iso(now)})\
                .eq("id", invitation.id)\
                .eq("status", InvitationStatus.PENDING.value)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise Conflict("Invitation is no longer pending")
        return InvitationResponse(**result.data[0])

    def _load_pending(self, invitation: Optional[InvitationResponse], now: datetime) -> InvitationResponse:
        if invitation is None:
            raise NotFound("Invitation not found")
        if invitation.status != InvitationStatus.PENDING:
            raise Conflict(f"Invitation is already {invitation.status.value.lower()}")
        if self._is_expired(invitation, now):
            self._transition(invitation, InvitationStatus.EXPIRED, now)
            raise Conflict("Invitation has expired")
        return invitation

    def invite(self, group_id: str, inviter_id: str, data: InvitationCreate, now: datetime) -> InvitationResponse:
        """Owner invites a user. The invitee must exist and must not already be active or invited."""
        group = self.groups.require_owner(group_id, inviter_id)
        if group.is_archived:
            raise NotFound("Group not found")
        UserService(self.supabase).get_user_by_id(data.invitee_user_id)

        if self.groups.get_active_membership(group_id, data.invitee_user_id) is not None:
            raise AlreadyMember()
        pending = self._find_pending(group_id, data.invitee_user_id)
        if pending is not None:
            if not self._is_expired(pending, now):
                raise DuplicateInvitation()
            self._transition(pending, InvitationStatus.EXPIRED, now)

        try:
            result = self.supabase.table("group_invitations").insert({
                "group_id": group_id,
                "inviter_user_id": inviter_id,
                "invitee_user_id": data.invitee_user_id,
                "token": secrets.token_urlsafe(32),
                "status": InvitationStatus.PENDING.value,
                "expires_at": to_iso(data.expires_at) if data.expires_at else None,
                "created_at": to_iso(now),
            }).execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise DuplicateInvitation()
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create invitation")

        invitation = InvitationResponse(**result.data[0])
        logger.info(f"User {inviter_id} invited {data.invitee_user_id} to group {group_id}")
        if self.publisher is not None:
            self.publisher.group_event(group_id, RealtimeEvent.invite_created(invitation.id))
            self.publisher.membership_event(
                data.invitee_user_id, RealtimeEvent.invited(group_id, invitation.id, group.name)
            )
        return invitation

    def list_pending_for_user(self, user_id: str, now: datetime) -> List[InvitationResponse]:
        try:
            result = self.supabase.table("group_invitations")\
                .select("*")\
                .eq("invitee_user_id", user_id)\
                .eq("status", InvitationStatus.PENDING.value)\
                .order("created_at", desc=True)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        invitations = [InvitationResponse(**row) for row in result.data or []]
        return [i for i in invitations if not self._is_expired(i, now)]

    def list_pending_for_group(self, group_id: str, actor_id: str, now: datetime) -> List[InvitationResponse]:
        self.groups.require_owner(group_id, actor_id)
        try:
            result = self.supabase.table("group_invitations")\
                .select("*")\
                .eq("group_id", group_id)\
                .eq("status", InvitationStatus.PENDING.value)\
                .order("created_at", desc=True)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        invitations = [InvitationResponse(**row) for row in result.data or []]
        return [i for i in invitations if not self._is_expired(i, now)]

    def _activate_membership(
        self, group_id: str, user_id: str, existing: Optional[GroupMemberResponse], now: datetime
    ) -> GroupMemberResponse:
        """Insert a membership, or revive a Left/Removed row for the same (group, user)"""
        try:
            if existing is None:
                result = self.supabase.table("group_members").insert({
                    "group_id": group_id,
                    "user_id": user_id,
                    "role": MemberRole.MEMBER.value,
                    "status": MembershipStatus.ACTIVE.value,
                    "joined_at": to_iso(now),
                    "org_peer_visibility_access_disabled": False,
                }).execute()
            else:
                if existing.status == MembershipStatus.ACTIVE:
                    return existing
                result = self.supabase.table("group_members")\
                    .update({
                        "status": MembershipStatus.ACTIVE.value,
                        "role": MemberRole.MEMBER.value,
                        "joined_at": to_iso(now),
                        "left_at": None,
                    })\
                    .eq("id", existing.id)\
                    .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to activate membership")
        return GroupMemberResponse(**result.data[0])

    def _undo_membership(self, previous: Optional[GroupMemberResponse], activated: GroupMemberResponse) -> None:
        """Put the membership back the way it was before an accept that did not go through"""
        if previous is not None and previous.status == MembershipStatus.ACTIVE:
            return
        try:
            if previous is None:
                self.supabase.table("group_members")\
                    .delete()\
                    .eq("id", activated.id)\
                    .execute()
            else:
                self.supabase.table("group_members")\
                    .update({
                        "status": previous.status.value,
                        "role": previous.role.value,
                        "joined_at": to_iso(previous.joined_at),
                        "left_at": to_iso(previous.left_at) if previous.left_at else None,
                    })\
                    .eq("id", activated.id)\
                    .execute()
        except Exception as e:
            logger.error(f"Failed to undo membership {activated.id} in group {activated.group_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    def accept(self, token: str, user_id: str, now: datetime) -> GroupMemberResponse:
        """
        Join the group through a pending invitation. The membership is written
        first and the invitation only leaves Pending once it exists, so a failed
        write can be retried with the same token.
        """
        invitation = self._find_by("token", token)
        if invitation is not None and invitation.invitee_user_id != user_id:
            raise Forbidden("This invitation was sent to another user")
        invitation = self._load_pending(invitation, now)
        self.groups.get_group(invitation.group_id)

        previous = self.groups.get_membership(invitation.group_id, user_id)
        membership = self._activate_membership(invitation.group_id, user_id, previous, now)
        try:
            self._transition(invitation, InvitationStatus.ACCEPTED, now)
        except HTTPException:
            self._undo_membership(previous, membership)
            raise
        logger.info(f"User {user_id} joined group {invitation.group_id}")
        if self.publisher is not None:
            self.publisher.group_event(invitation.group_id, RealtimeEvent.member_joined(user_id, invitation.id))
        return membership

    def decline(self, token: str, user_id: str, now: datetime) -> InvitationResponse:
        invitation = self._find_by("token", token)
        if invitation is not None and invitation.invitee_user_id != user_id:
            raise Forbidden("This invitation was sent to another user")
        invitation = self._transition(self._load_pending(invitation, now), InvitationStatus.DECLINED, now)
        logger.info(f"User {user_id} declined invitation {invitation.id}")
        if self.publisher is not None:
            self.publisher.group_event(invitation.group_id, RealtimeEvent.invite_declined(user_id, invitation.id))
        return invitation

    def revoke(self, invitation_id: str, actor_id: str, now: datetime) -> InvitationResponse:
        invitation = self._find_by("id", invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found")
        self.groups.require_owner(invitation.group_id, actor_id)
        invitation = self._transition(self._load_pending(invitation, now), InvitationStatus.REVOKED, now)
        logger.info(f"User {actor_id} revoked invitation {invitation.id}")
        if self.publisher is not None:
            self.publisher.group_event(invitation.group_id, RealtimeEvent.invite_revoked(invitation.id))
        return invitation
