from datetime import datetime
from typing import Optional

from pydantic import EmailStr, field_validator

from groupledger.schemas.base import CamelModel, strip_required

class GroupCreate(CamelModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return strip_required(v, "name")


class MemberCreate(CamelModel):
    name: str
    email: Optional[EmailStr] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return strip_required(v, "name")


class MemberPublic(CamelModel):
    id: int
    group_id: int
    name: str
    email: Optional[str] = None
    joined_at: datetime


class GroupPublic(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime


class GroupSummary(CamelModel):
    id: int
    name: str
    description: Optional[str] = None


class GroupWithMembers(GroupPublic):
    members: list[MemberPublic] = []
    member_count: int = 0


class GroupBalances(CamelModel):
    total_shared: str
    balances: dict[str, str]
