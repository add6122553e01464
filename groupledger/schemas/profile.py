from datetime import datetime
from typing import Optional

from pydantic import EmailStr, field_validator

from groupledger.schemas.base import CamelModel, strip_required


class ProfileCreate(CamelModel):
    public_name: str
    email: Optional[EmailStr] = None
    currency: str = "PKR"
    language: str = "en"
    timezone: str = "Asia/Karachi"

    @field_validator("public_name")
    @classmethod
    def _public_name(cls, v: str) -> str:
        return strip_required(v, "publicName")


class ProfileUpdate(CamelModel):
    public_name: Optional[str] = None
    email: Optional[EmailStr] = None
    currency: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("public_name")
    @classmethod
    def _public_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else strip_required(v, "publicName")


class ProfilePublic(CamelModel):
    id: int
    user_id: str
    public_name: str
    email: Optional[str] = None
    currency: str
    language: str
    timezone: str
    created_at: datetime
    updated_at: datetime
