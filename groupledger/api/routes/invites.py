from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from groupledger.api.deps import get_broadcaster, get_db
from groupledger.core.auth import Principal, get_current_user
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.group import GroupSummary, MemberPublic
from groupledger.schemas.invite import InviteLookup, InvitePublic, JoinRequest, JoinResult
from groupledger.services import invites as invite_service
from groupledger.services.groups import to_group_with_members


router = APIRouter(prefix="/invites", tags=["invites"])


# Public: whoever holds the code may look at it and join
@router.get("/{invite_code}", response_model=InviteLookup)
def lookup_invite(invite_code: str, db: Session = Depends(get_db)):
    invite, group = invite_service.lookup_invite(db, invite_code)
    return InviteLookup(
        invite=InvitePublic.model_validate(invite),
        group=(GroupSummary.model_validate(group) if group else None),
    )


@router.post("/{invite_code}/join", response_model=JoinResult)
def join_by_invite(
    invite_code: str,
    payload: JoinRequest,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    group, member = invite_service.redeem_invite(
        db,
        broadcaster,
        invite_code,
        member_name=payload.member_name,
        member_email=payload.member_email,
    )
    return JoinResult(group=to_group_with_members(group), member=MemberPublic.model_validate(member))


@router.patch("/{invite_id}/deactivate")
def deactivate_invite(
    invite_id: int,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    invite_service.deactivate_invite(db, broadcaster, invite_id)
    return {"ok": True, "message": "Invite deactivated successfully"}
