from supabase import Client
from app.modules.groups.schemas import (
    GroupCreate, GroupUpdate, GroupResponse, GroupMemberResponse,
    MemberRole, MembershipStatus, is_org_group
)
from app.modules.realtime.events import RealtimeEvent
from app.modules.users.service import UserService
from app.core.clock import to_iso
from app.core.exceptions import Conflict, Forbidden, NotFound
from typing import List, Optional, TYPE_CHECKING
from fastapi import HTTPException
from datetime import datetime
import logging

if TYPE_CHECKING:
    from app.modules.realtime.service import RealtimePublisher

logger = logging.getLogger(__name__)


class GroupService:
    def __init__(self, supabase: Client, publisher: Optional["RealtimePublisher"] = None):
        self.supabase = supabase
        self.publisher = publisher

    def create_group(self, group_data: GroupCreate, owner_id: str, now: datetime) -> GroupResponse:
        """Create a new group with the creator as its Owner member"""
        try:
            existing = self.supabase.table("groups")\
                .select("id")\
                .eq("owner_user_id", owner_id)\
                .eq("name", group_data.name)\
                .limit(1)\
                .execute()
            if existing.data:
                raise Conflict("Group with the same name already exists for owner")

            result = self.supabase.table("groups").insert({
                "name": group_data.name,
                "description": group_data.description,
                "group_type": group_data.group_type,
                "owner_user_id": owner_id,
                "is_archived": False,
                "created_at": to_iso(now),
                "updated_at": to_iso(now),
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create group")

            self.supabase.table("group_members").insert({
                "group_id": result.data[0]["id"],
                "user_id": owner_id,
                "role": MemberRole.OWNER.value,
                "status": MembershipStatus.ACTIVE.value,
                "joined_at": to_iso(now),
                "org_peer_visibility_access_disabled": False,
            }).execute()
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        group = GroupResponse(**result.data[0])
        logger.info(f"User {owner_id} created group {group.id}")
        return group

    def find_group(self, group_id: str) -> Optional[GroupResponse]:
        try:
            result = self.supabase.table("groups")\
                .select("*")\
                .eq("id", group_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return GroupResponse(**result.data[0]) if result.data else None

    def get_group(self, group_id: str, include_archived: bool = False) -> GroupResponse:
        group = self.find_group(group_id)
        if group is None or (group.is_archived and not include_archived):
            raise NotFound("Group not found")
        return group

    def list_groups_for_user(self, user_id: str) -> List[GroupResponse]:
        """Groups the user owns or is an active member of"""
        try:
            member_ids = self.active_group_ids(user_id)
            owned = self.supabase.table("groups")\
                .select("*")\
                .eq("owner_user_id", user_id)\
                .execute()
            rows = {row["id"]: row for row in owned.data or []}
            if member_ids:
                member_of = self.supabase.table("groups")\
                    .select("*")\
                    .in_("id", member_ids)\
                    .execute()
                rows.update({row["id"]: row for row in member_of.data or []})
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        groups = [GroupResponse(**row) for row in rows.values() if not row.get("is_archived")]
        return sorted(groups, key=lambda g: g.created_at, reverse=True)

    def update_group(self, group_id: str, actor_id: str, group_data: GroupUpdate, now: datetime) -> GroupResponse:
        self.require_owner(group_id, actor_id)
        update_data = group_data.model_dump(exclude_none=True)
        update_data["updated_at"] = to_iso(now)
        try:
            result = self.supabase.table("groups")\
                .update(update_data)\
                .eq("id", group_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise NotFound("Group not found")
        return GroupResponse(**result.data[0])

    def delete_group(self, group_id: str, actor_id: str) -> bool:
        """Delete group with its memberships and invitations"""
        self.require_owner(group_id, actor_id)
        try:
            self.supabase.table("group_invitations")\
                .delete()\
                .eq("group_id", group_id)\
                .execute()
            self.supabase.table("group_members")\
                .delete()\
                .eq("group_id", group_id)\
                .execute()
            result = self.supabase.table("groups")\
                .delete()\
                .eq("id", group_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        logger.info(f"User {actor_id} deleted group {group_id}")
        return len(result.data) > 0

    def get_membership(self, group_id: str, user_id: str) -> Optional[GroupMemberResponse]:
        """Membership row in any status"""
        try:
            result = self.supabase.table("group_members")\
                .select("*")\
                .eq("group_id", group_id)\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return GroupMemberResponse(**result.data[0]) if result.data else None

    def get_active_membership(self, group_id: str, user_id: str) -> Optional[GroupMemberResponse]:
        membership = self.get_membership(group_id, user_id)
        if membership is None or membership.status != MembershipStatus.ACTIVE:
            return None
        return membership

    def active_group_ids(self, user_id: str) -> List[str]:
        try:
            result = self.supabase.table("group_members")\
                .select("group_id")\
                .eq("user_id", user_id)\
                .eq("status", MembershipStatus.ACTIVE.value)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return [row["group_id"] for row in result.data or []]

    def is_owner(self, group_id: str, user_id: str) -> bool:
        """Owner via groups.owner_user_id or an Active membership with the Owner role"""
        group = self.find_group(group_id)
        if group is None:
            return False
        if group.owner_user_id == user_id:
            return True
        membership = self.get_active_membership(group_id, user_id)
        return membership is not None and membership.role == MemberRole.OWNER

    def require_owner(self, group_id: str, user_id: str) -> GroupResponse:
        group = self.get_group(group_id, include_archived=True)
        if not self.is_owner(group_id, user_id):
            raise Forbidden("Owner permissions required")
        return group

    def list_active_members(self, group_id: str) -> List[GroupMemberResponse]:
        try:
            result = self.supabase.table("group_members")\
                .select("*")\
                .eq("group_id", group_id)\
                .eq("status", MembershipStatus.ACTIVE.value)\
                .order("joined_at")\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return [GroupMemberResponse(**row) for row in result.data or []]

    def list_members(self, group_id: str, viewer_id: str) -> List[GroupMemberResponse]:
        """
        Administrative member listing for active members. Peer-visibility
        opt-outs only hide members from the map, not from this list.
        """
        self.get_group(group_id)
        if self.get_active_membership(group_id, viewer_id) is None and not self.is_owner(group_id, viewer_id):
            raise Forbidden("You must be a member of this group")
        members = self.list_active_members(group_id)
        profiles = UserService(self.supabase).get_users_by_ids(m.user_id for m in members)
        return [
            m.model_copy(update={
                "username": profiles[m.user_id].username if m.user_id in profiles else None,
                "display_name": profiles[m.user_id].display_name if m.user_id in profiles else None,
            })
            for m in members
        ]

    def _end_membership(self, membership: GroupMemberResponse, status: MembershipStatus, now: datetime) -> None:
        try:
            result = self.supabase.table("group_members")\
                .update({"status": status.value, "left_at": to_iso(now)})\
                .eq("id", membership.id)\
                .eq("status", MembershipStatus.ACTIVE.value)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise Conflict("Membership is no longer active")

    def remove_member(self, group_id: str, actor_id: str, target_user_id: str, now: datetime) -> None:
        """Owner removes a member. The row is kept with status Removed."""
        group = self.require_owner(group_id, actor_id)
        if target_user_id == group.owner_user_id:
            raise Conflict("The group owner cannot be removed")
        membership = self.get_active_membership(group_id, target_user_id)
        if membership is None:
            raise NotFound("Membership not found")
        self._end_membership(membership, MembershipStatus.REMOVED, now)
        logger.info(f"User {actor_id} removed {target_user_id} from group {group_id}")
        if self.publisher is not None:
            self.publisher.group_event(group_id, RealtimeEvent.member_removed(target_user_id))
            self.publisher.membership_event(target_user_id, RealtimeEvent.removed(group_id, group.name))

    def leave_group(self, group_id: str, user_id: str, now: datetime) -> None:
        group = self.get_group(group_id, include_archived=True)
        if group.owner_user_id == user_id:
            raise Conflict("The group owner cannot leave; delete the group instead")
        membership = self.get_active_membership(group_id, user_id)
        if membership is None:
            raise NotFound("Membership not found")
        self._end_membership(membership, MembershipStatus.LEFT, now)
        logger.info(f"User {user_id} left group {group_id}")
        if self.publisher is not None:
            self.publisher.group_event(group_id, RealtimeEvent.member_left(user_id))

    def set_peer_visibility(self, group_id: str, actor_id: str, target_user_id: str, disabled: bool) -> bool:
        """
        Toggle a member's opt-out from peer visibility. Only the member
        themself or the group owner may change it. The flag is stored on the
        membership row and only takes effect in organisation-type groups.
        """
        group = self.get_group(group_id)
        if actor_id != target_user_id and not self.is_owner(group_id, actor_id):
            raise Forbidden("Only the member or the group owner can change peer visibility")
        membership = self.get_active_membership(group_id, target_user_id)
        if membership is None:
            raise Forbidden("Target user is not an active member of this group")
        try:
            result = self.supabase.table("group_members")\
                .update({"org_peer_visibility_access_disabled": disabled})\
                .eq("id", membership.id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise NotFound("Membership not found")
        if not is_org_group(group.group_type):
            logger.info(f"Peer visibility flag set in non-organisation group {group_id}; it has no effect on the map")
        logger.info(f"User {actor_id} set peer visibility for {target_user_id} in group {group_id}: disabled={disabled}")
        if self.publisher is not None:
            self.publisher.group_event(group_id, RealtimeEvent.visibility_changed(target_user_id, disabled))
        return bool(result.data[0]["org_peer_visibility_access_disabled"])
