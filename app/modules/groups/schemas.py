from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

# Group types whose members may hide themselves from peers on the shared map
ORG_GROUP_TYPES = {"organization", "organisation", "friends"}


def is_org_group(group_type: Optional[str]) -> bool:
    return bool(group_type) and group_type.strip().lower() in ORG_GROUP_TYPES


class MemberRole(str, Enum):
    OWNER = "Owner"
    MEMBER = "Member"


class MembershipStatus(str, Enum):
    ACTIVE = "Active"
    LEFT = "Left"
    REMOVED = "Removed"


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    group_type: Optional[str] = Field(default=None, max_length=50)


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)


class GroupResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner_user_id: str
    group_type: Optional[str] = None
    is_archived: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupMemberResponse(BaseModel):
    id: str
    group_id: str
    user_id: str
    role: MemberRole
    status: MembershipStatus
    joined_at: datetime
    left_at: Optional[datetime] = None
    org_peer_visibility_access_disabled: bool = False
    username: Optional[str] = None
    display_name: Optional[str] = None

    class Config:
        from_attributes = True


class PeerVisibilityRequest(BaseModel):
    disabled: bool


class PeerVisibilityResponse(BaseModel):
    disabled: bool
