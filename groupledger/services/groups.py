from decimal import Decimal

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from groupledger.core.errors import NotFoundError
from groupledger.models.group import Group
from groupledger.models.member import GroupMember
from groupledger.models.split import TransactionSplit
from groupledger.models.transaction import Transaction
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.group import (
    GroupBalances,
    GroupCreate,
    GroupPublic,
    GroupWithMembers,
    MemberCreate,
    MemberPublic,
)

logger = structlog.get_logger(__name__)


def to_group_with_members(group: Group) -> GroupWithMembers:
    members = [MemberPublic.model_validate(m) for m in group.members]
    return GroupWithMembers(
        id=group.id,
        name=group.name,
        description=group.description,
        created_at=group.created_at,
        members=members,
        member_count=len(members),
    )


def get_group_or_404(db: Session, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if not group:
        raise NotFoundError("Group not found")
    return group


def create_group(db: Session, broadcaster: Broadcaster, payload: GroupCreate) -> Group:
    group = Group(
        name=payload.name,
        description=(payload.description.strip() if payload.description else None),
    )
    db.add(group)
    db.commit()
    db.refresh(group)

    logger.info("group_created", group_id=group.id)
    broadcaster.publish("group_created", GroupPublic.model_validate(group))
    return group


def list_groups(db: Session) -> list[Group]:
    stmt = (
        select(Group)
        .options(selectinload(Group.members))
        .order_by(Group.created_at.desc(), Group.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def add_member(db: Session, broadcaster: Broadcaster, group_id: int, payload: MemberCreate) -> GroupMember:
    get_group_or_404(db, group_id)

    member = GroupMember(group_id=group_id, name=payload.name, email=payload.email)
    db.add(member)
    db.commit()
    db.refresh(member)

    broadcaster.publish(
        "group_member_added",
        {"groupId": group_id, "member": MemberPublic.model_validate(member)},
    )
    return member


def remove_member(db: Session, broadcaster: Broadcaster, group_id: int, member_name: str) -> int:
    """Removes every member of the group carrying that name."""
    get_group_or_404(db, group_id)

    result = db.execute(
        delete(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.name == member_name,
        )
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("Member not found")
    db.commit()

    broadcaster.publish("group_member_removed", {"groupId": group_id, "memberName": member_name})
    return result.rowcount


def delete_group(db: Session, broadcaster: Broadcaster, group_id: int) -> None:
    group = get_group_or_404(db, group_id)

    # members, invites, transactions and their splits go with it
    db.delete(group)
    db.commit()

    logger.info("group_deleted", group_id=group_id)
    broadcaster.publish("group_deleted", {"groupId": group_id})


def group_balances(db: Session, group_id: int) -> GroupBalances:
    get_group_or_404(db, group_id)

    total_shared = db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.group_id == group_id,
            Transaction.is_shared.is_(True),
            Transaction.type == "expense",
        )
    ).scalar_one()

    rows = db.execute(
        select(
            TransactionSplit.member_name,
            func.coalesce(func.sum(TransactionSplit.amount), 0),
        )
        .join(Transaction, Transaction.id == TransactionSplit.transaction_id)
        .where(
            Transaction.group_id == group_id,
            TransactionSplit.is_paid.is_(False),
        )
        .group_by(TransactionSplit.member_name)
    ).all()

    return GroupBalances(
        total_shared=_money(total_shared),
        balances={name: _money(owed) for name, owed in rows},
    )


def _money(value) -> str:
    return f"{Decimal(str(value)):.2f}"
