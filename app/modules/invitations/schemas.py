from enum import Enum
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class InvitationStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    DECLINED = "Declined"
    REVOKED = "Revoked"
    EXPIRED = "Expired"


class InvitationCreate(BaseModel):
    invitee_user_id: str
    expires_at: Optional[datetime] = None


class InvitationResponse(BaseModel):
    id: str
    group_id: str
    inviter_user_id: str
    invitee_user_id: str
    token: str
    status: InvitationStatus
    expires_at: Optional[datetime] = None
    created_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True
