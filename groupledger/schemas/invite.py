from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from groupledger.schemas.base import CamelModel
from groupledger.schemas.group import GroupSummary, GroupWithMembers, MemberPublic

class InviteCreateRequest(CamelModel):
    invited_by: Optional[str] = None          # required; checked by the service for a 400
    expires_at: Optional[datetime] = None     # None = never expires
    max_uses: Optional[int] = Field(default=None, ge=0)  # None or 0 = unlimited


class InvitePublic(CamelModel):
    id: int
    group_id: int
    invite_code: str
    invited_by: str
    expires_at: Optional[datetime]
    is_active: bool
    current_uses: int
    max_uses: Optional[int]
    created_at: datetime
    revoked_at: Optional[datetime]


class InviteLookup(CamelModel):
    invite: InvitePublic
    group: Optional[GroupSummary]


class JoinRequest(CamelModel):
    member_name: Optional[str] = None
    member_email: Optional[EmailStr] = None


class JoinResult(CamelModel):
    group: GroupWithMembers
    member: MemberPublic


class EmailInviteRequest(CamelModel):
    email: Optional[EmailStr] = None          # required; checked by the service for a 400


class EmailInviteResult(CamelModel):
    success: bool
    message: str
    invite_code: str
