from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from groupledger.api.deps import get_broadcaster, get_db
from groupledger.core.auth import Principal, get_current_user, require_admin
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.group import (
    GroupBalances,
    GroupCreate,
    GroupPublic,
    GroupWithMembers,
    MemberCreate,
    MemberPublic,
)
from groupledger.schemas.invite import (
    EmailInviteRequest,
    EmailInviteResult,
    InviteCreateRequest,
    InvitePublic,
)
from groupledger.services import groups as group_service
from groupledger.services import invites as invite_service


router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupPublic)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    return group_service.create_group(db, broadcaster, payload)


@router.get("", response_model=list[GroupWithMembers])
def list_groups(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return [group_service.to_group_with_members(g) for g in group_service.list_groups(db)]


@router.get("/{group_id}", response_model=GroupWithMembers)
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return group_service.to_group_with_members(group_service.get_group_or_404(db, group_id))


@router.delete("/{group_id}")
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    admin: Principal = Depends(require_admin),
):
    group_service.delete_group(db, broadcaster, group_id)
    return {"ok": True, "deletedGroupId": group_id}


@router.post("/{group_id}/members", response_model=MemberPublic)
def add_member(
    group_id: int,
    payload: MemberCreate,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    return group_service.add_member(db, broadcaster, group_id, payload)


@router.delete("/{group_id}/members/{member_name}")
def remove_member(
    group_id: int,
    member_name: str,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    removed = group_service.remove_member(db, broadcaster, group_id, member_name)
    return {"ok": True, "removed": removed}


@router.get("/{group_id}/balances", response_model=GroupBalances)
def group_balances(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return group_service.group_balances(db, group_id)


@router.post("/{group_id}/invites", response_model=InvitePublic)
def create_invite(
    group_id: int,
    payload: InviteCreateRequest,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    return invite_service.create_invite(
        db,
        broadcaster,
        group_id,
        invited_by=payload.invited_by,
        max_uses=payload.max_uses,
        expires_at=payload.expires_at,
    )


@router.get("/{group_id}/invites", response_model=list[InvitePublic])
def list_invites(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return invite_service.list_invites(db, group_id)


@router.post("/{group_id}/simple-invite", response_model=InvitePublic)
def create_link_invite(
    group_id: int,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    # shareable link: never expires, unlimited uses
    return invite_service.create_invite(
        db, broadcaster, group_id, invited_by=invite_service.LINK_INVITER, max_uses=None
    )


@router.post("/{group_id}/invite-email", response_model=EmailInviteResult)
def create_email_invite(
    group_id: int,
    payload: EmailInviteRequest,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    invite = invite_service.create_email_invite(db, broadcaster, group_id, payload.email)
    return EmailInviteResult(success=True, message="Email invitation sent", invite_code=invite.invite_code)
