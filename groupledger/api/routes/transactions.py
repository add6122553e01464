from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from groupledger.api.deps import get_broadcaster, get_db
from groupledger.core.auth import Principal, get_current_user
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.transaction import (
    TransactionCreate,
    TransactionFilters,
    TransactionPublic,
    TransactionUpdate,
    TransactionWithSplits,
)
from groupledger.services import transactions as transaction_service

router = APIRouter(prefix="/transactions", tags=["transactions"])


def transaction_filters(
    group_id: Optional[int] = Query(None, alias="groupId"),
    search: Optional[str] = None,
    type: Optional[Literal["expense", "income"]] = None,
    category: Optional[str] = None,
    paid_by: Optional[str] = Query(None, alias="paidBy"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    only_user: bool = Query(False, alias="onlyUser"),
    only_group_members: bool = Query(False, alias="onlyGroupMembers"),
) -> TransactionFilters:
    return TransactionFilters(
        group_id=group_id,
        search=search,
        type=type,
        category=category,
        paid_by=paid_by,
        start_date=start_date,
        end_date=end_date,
        only_user=only_user,
        only_group_members=only_group_members,
    )


@router.post("", response_model=TransactionPublic)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    return transaction_service.create_transaction(db, broadcaster, payload)


@router.get("", response_model=list[TransactionWithSplits])
def list_transactions(
    filters: TransactionFilters = Depends(transaction_filters),
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return transaction_service.list_transactions(db, filters, principal=current_user)


@router.get("/{transaction_id}", response_model=TransactionWithSplits)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return transaction_service.get_transaction_or_404(db, transaction_id)


@router.api_route("/{transaction_id}", methods=["PUT", "PATCH"], response_model=TransactionPublic)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    return transaction_service.update_transaction(db, broadcaster, transaction_id, payload)


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    transaction_service.delete_transaction(db, broadcaster, transaction_id)
    return {"ok": True}
