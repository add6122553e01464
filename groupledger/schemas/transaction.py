from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field, field_validator

from groupledger.schemas.base import CamelModel, strip_required

TransactionType = Literal["expense", "income"]


class TransactionCreate(CamelModel):
    group_id: Optional[int] = None
    type: TransactionType
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    description: str
    category: Optional[str] = None
    date: datetime
    is_shared: bool = False
    paid_by: str

    @field_validator("description")
    @classmethod
    def _description(cls, v: str) -> str:
        return strip_required(v, "description")

    @field_validator("paid_by")
    @classmethod
    def _paid_by(cls, v: str) -> str:
        return strip_required(v, "paidBy")


class TransactionUpdate(CamelModel):
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[datetime] = None
    paid_by: Optional[str] = None

    @field_validator("description")
    @classmethod
    def _description(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else strip_required(v, "description")

    @field_validator("paid_by")
    @classmethod
    def _paid_by(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else strip_required(v, "paidBy")


class SplitPublic(CamelModel):
    id: int
    transaction_id: int
    member_name: str
    amount: Decimal
    is_paid: bool


class TransactionPublic(CamelModel):
    id: int
    group_id: Optional[int] = None
    type: TransactionType
    amount: Decimal
    description: str
    category: Optional[str] = None
    date: datetime
    is_shared: bool
    paid_by: str
    created_at: datetime
    updated_at: datetime


class TransactionWithSplits(TransactionPublic):
    splits: list[SplitPublic] = []


class TransactionFilters(CamelModel):
    """Recognised query filters for listing transactions; all optional."""

    group_id: Optional[int] = None
    search: Optional[str] = None
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    paid_by: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    only_user: bool = False
    only_group_members: bool = False


class MonthlyStats(CamelModel):
    total_income: str
    total_expenses: str
    net_balance: str
