from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class RealtimeEvent(BaseModel):
    """
    Payload for every SSE topic. 'type' is the discriminator; the remaining
    fields are only present when relevant to that type.

    Group topic types: location, location-deleted, visibility-changed,
    member-joined, member-left, member-removed, invite-created,
    invite-declined, invite-revoked.
    Membership topic types: invited, removed.
    Location topic types: location, location-deleted, liveness-expired.
    """

    type: str
    user_id: Optional[str] = None
    username: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    location_id: Optional[int] = None
    location_ids: Optional[list] = None
    timestamp_utc: Optional[datetime] = None
    is_live: Optional[bool] = None
    location_type: Optional[str] = None
    disabled: Optional[bool] = None
    invitation_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def location(cls, location_id: int, user_id: str, username: Optional[str], timestamp_utc: datetime,
                 is_live: bool, location_type: Optional[str] = None) -> "RealtimeEvent":
        return cls(type="location", location_id=location_id, user_id=user_id, username=username,
                   timestamp_utc=timestamp_utc, is_live=is_live, location_type=location_type)

    @classmethod
    def location_deleted(cls, user_id: str, location_ids: list) -> "RealtimeEvent":
        return cls(type="location-deleted", user_id=user_id, location_ids=location_ids)

    @classmethod
    def liveness_expired(cls, user_id: str, location_id: int) -> "RealtimeEvent":
        return cls(type="liveness-expired", user_id=user_id, location_id=location_id)

    @classmethod
    def visibility_changed(cls, user_id: str, disabled: bool) -> "RealtimeEvent":
        return cls(type="visibility-changed", user_id=user_id, disabled=disabled)

    @classmethod
    def member_joined(cls, user_id: str, invitation_id: Optional[str] = None) -> "RealtimeEvent":
        return cls(type="member-joined", user_id=user_id, invitation_id=invitation_id)

    @classmethod
    def member_left(cls, user_id: str) -> "RealtimeEvent":
        return cls(type="member-left", user_id=user_id)

    @classmethod
    def member_removed(cls, user_id: str) -> "RealtimeEvent":
        return cls(type="member-removed", user_id=user_id)

    @classmethod
    def invite_created(cls, invitation_id: str) -> "RealtimeEvent":
        return cls(type="invite-created", invitation_id=invitation_id)

    @classmethod
    def invite_declined(cls, user_id: str, invitation_id: str) -> "RealtimeEvent":
        return cls(type="invite-declined", user_id=user_id, invitation_id=invitation_id)

    @classmethod
    def invite_revoked(cls, invitation_id: str) -> "RealtimeEvent":
        return cls(type="invite-revoked", invitation_id=invitation_id)

    @classmethod
    def invited(cls, group_id: str, invitation_id: str, group_name: Optional[str] = None) -> "RealtimeEvent":
        return cls(type="invited", group_id=group_id, invitation_id=invitation_id, group_name=group_name)

    @classmethod
    def removed(cls, group_id: str, group_name: Optional[str] = None) -> "RealtimeEvent":
        return cls(type="removed", group_id=group_id, group_name=group_name)
