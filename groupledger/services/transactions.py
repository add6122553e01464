from calendar import monthrange
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from groupledger.core.auth import Principal
from groupledger.core.clock import to_utc_naive
from groupledger.core.config import settings
from groupledger.core.errors import NotFoundError, ValidationError
from groupledger.models.member import GroupMember
from groupledger.models.profile import UserProfile
from groupledger.models.transaction import Transaction
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.transaction import (
    MonthlyStats,
    TransactionCreate,
    TransactionFilters,
    TransactionPublic,
    TransactionUpdate,
)
from groupledger.services.groups import get_group_or_404
from groupledger.services.splits import build_equal_splits, redivide

logger = structlog.get_logger(__name__)


def create_transaction(
    db: Session,
    broadcaster: Broadcaster,
    payload: TransactionCreate,
    broadcast_before_splits: Optional[bool] = None,
) -> Transaction:
    """
    Insert a transaction and, when shared, one equal split per group member.

    The row and its splits are committed together. `transaction_created` is
    published either right after the row is flushed (before any split exists)
    or after the commit, depending on `broadcast_before_splits`.
    """
    if broadcast_before_splits is None:
        broadcast_before_splits = settings.BROADCAST_BEFORE_SPLITS

    if payload.is_shared and payload.group_id is None:
        raise ValidationError("Shared transactions require a groupId")

    group = get_group_or_404(db, payload.group_id) if payload.group_id is not None else None

    tx = Transaction(
        group_id=payload.group_id,
        type=payload.type,
        amount=payload.amount,
        description=payload.description,
        category=(payload.category.strip() or None) if payload.category else None,
        date=to_utc_naive(payload.date),
        is_shared=payload.is_shared,
        paid_by=payload.paid_by,
    )
    db.add(tx)
    db.flush()  # gives tx.id

    if broadcast_before_splits:
        broadcaster.publish("transaction_created", TransactionPublic.model_validate(tx))

    if payload.is_shared and group is not None:
        # an empty group just means no splits
        db.add_all(build_equal_splits(tx.id, payload.amount, group.members, payload.paid_by))

    db.commit()
    db.refresh(tx)

    logger.info(
        "transaction_created",
        transaction_id=tx.id,
        group_id=tx.group_id,
        shared=tx.is_shared,
        splits=len(tx.splits),
    )
    if not broadcast_before_splits:
        broadcaster.publish("transaction_created", TransactionPublic.model_validate(tx))
    return tx


def get_transaction_or_404(db: Session, transaction_id: int) -> Transaction:
    tx = db.get(Transaction, transaction_id)
    if not tx:
        raise NotFoundError("Transaction not found")
    return tx


def list_transactions(
    db: Session,
    filters: TransactionFilters,
    principal: Optional[Principal] = None,
) -> list[Transaction]:
    stmt = select(Transaction).options(selectinload(Transaction.splits))

    if filters.group_id is not None:
        stmt = stmt.where(Transaction.group_id == filters.group_id)
    if filters.type:
        stmt = stmt.where(Transaction.type == filters.type)
    if filters.category:
        stmt = stmt.where(Transaction.category == filters.category)
    if filters.paid_by:
        stmt = stmt.where(Transaction.paid_by == filters.paid_by)
    if filters.start_date:
        stmt = stmt.where(Transaction.date >= to_utc_naive(filters.start_date))
    if filters.end_date:
        stmt = stmt.where(Transaction.date <= to_utc_naive(filters.end_date))
    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(Transaction.description.ilike(pattern), Transaction.paid_by.ilike(pattern))
        )

    if filters.only_user:
        public_name = None
        if principal is not None:
            public_name = db.execute(
                select(UserProfile.public_name).where(UserProfile.user_id == principal.sub)
            ).scalar_one_or_none()
        if public_name is None:
            # no profile: nothing can be "mine"
            return []
        stmt = stmt.where(Transaction.paid_by == public_name)

    if filters.only_group_members:
        stmt = stmt.where(Transaction.paid_by.in_(select(GroupMember.name).distinct()))

    stmt = stmt.order_by(Transaction.date.desc(), Transaction.id.desc())
    return list(db.execute(stmt).scalars().all())


def update_transaction(
    db: Session,
    broadcaster: Broadcaster,
    transaction_id: int,
    payload: TransactionUpdate,
) -> Transaction:
    tx = get_transaction_or_404(db, transaction_id)
    changes = payload.model_dump(exclude_unset=True)

    for field in ("type", "description", "date", "paid_by", "amount"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")

    if "date" in changes:
        changes["date"] = to_utc_naive(changes["date"])
    if "category" in changes and changes["category"] is not None:
        changes["category"] = changes["category"].strip() or None

    amount_changed = "amount" in changes and Decimal(changes["amount"]) != tx.amount
    for field, value in changes.items():
        setattr(tx, field, value)

    if amount_changed:
        # keep sum(splits) == amount; members and paid flags stay as they were
        redivide(tx.splits, tx.amount)

    db.commit()
    db.refresh(tx)

    logger.info("transaction_updated", transaction_id=tx.id, fields=sorted(changes))
    broadcaster.publish("transaction_updated", TransactionPublic.model_validate(tx))
    return tx


def delete_transaction(db: Session, broadcaster: Broadcaster, transaction_id: int) -> None:
    tx = get_transaction_or_404(db, transaction_id)
    db.delete(tx)
    db.commit()

    logger.info("transaction_deleted", transaction_id=transaction_id)
    broadcaster.publish("transaction_deleted", {"transactionId": transaction_id})


def monthly_stats(db: Session, year: int, month: int) -> MonthlyStats:
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")

    start = datetime(year, month, 1)
    end = datetime(year, month, monthrange(year, month)[1], 23, 59, 59, 999999)

    def _total(kind: str) -> Decimal:
        value = db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.type == kind,
                Transaction.date >= start,
                Transaction.date <= end,
            )
        ).scalar_one()
        return Decimal(str(value))

    income = _total("income")
    expenses = _total("expense")
    return MonthlyStats(
        total_income=f"{income:.2f}",
        total_expenses=f"{expenses:.2f}",
        net_balance=f"{income - expenses:.2f}",
    )
