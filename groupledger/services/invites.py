"""
Invite lifecycle: create, look up, redeem, deactivate.

An invite is usable while it is active, not past `expires_at` and, when
`max_uses` is set, has `current_uses < max_uses`. Redemption checks and
consumes a use with one conditional UPDATE, then inserts the member in the
same database transaction, so two callers racing for the last use cannot
both get in.
"""

import secrets
from datetime import datetime
from typing import Optional, Tuple

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from groupledger.core.clock import to_utc_naive, utc_now_naive
from groupledger.core.config import settings
from groupledger.core.errors import InviteRedemptionError, NotFoundError, ValidationError
from groupledger.models.group import Group
from groupledger.models.invite import GroupInvite
from groupledger.models.member import GroupMember
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.group import MemberPublic
from groupledger.schemas.invite import InvitePublic
from groupledger.services.groups import get_group_or_404, to_group_with_members

logger = structlog.get_logger(__name__)

MAX_CODE_ATTEMPTS = 5

LINK_INVITER = "System"
EMAIL_INVITER = "Email System"


def generate_invite_code() -> str:
    return secrets.token_urlsafe(settings.INVITE_CODE_BYTES)


def _code_taken(db: Session, code: str) -> bool:
    return db.execute(
        select(GroupInvite.id).where(GroupInvite.invite_code == code)
    ).first() is not None


def _unique_code(db: Session) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_invite_code()
        if not _code_taken(db, code):
            return code
    # only reachable with a broken RNG or a tiny INVITE_CODE_BYTES
    raise RuntimeError("Could not generate a unique invite code")


def create_invite(
    db: Session,
    broadcaster: Broadcaster,
    group_id: int,
    invited_by: Optional[str],
    max_uses: Optional[int] = None,
    expires_at: Optional[datetime] = None,
) -> GroupInvite:
    invited_by = (invited_by or "").strip()
    if not invited_by:
        raise ValidationError("Invited by name is required")

    get_group_or_404(db, group_id)

    if max_uses is not None and max_uses < 0:
        raise ValidationError("maxUses must not be negative")

    invite = GroupInvite(
        group_id=group_id,
        invite_code=_unique_code(db),
        invited_by=invited_by,
        expires_at=(to_utc_naive(expires_at) if expires_at else None),
        is_active=True,
        max_uses=(max_uses or None),  # 0 means unlimited, like None
        current_uses=0,
        revoked_at=None,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)

    logger.info("invite_created", invite_id=invite.id, group_id=group_id, max_uses=invite.max_uses)
    broadcaster.publish("invite-created", {"invite": InvitePublic.model_validate(invite)})
    return invite


def create_email_invite(
    db: Session, broadcaster: Broadcaster, group_id: int, email: Optional[str]
) -> GroupInvite:
    if not email:
        raise ValidationError("Email is required")

    invite = create_invite(db, broadcaster, group_id, invited_by=EMAIL_INVITER, max_uses=1)
    # no mail transport yet; the code is handed back to the caller
    logger.info("email_invite_issued", email=email, invite_id=invite.id, group_id=group_id)
    return invite


def list_invites(db: Session, group_id: int) -> list[GroupInvite]:
    get_group_or_404(db, group_id)
    stmt = (
        select(GroupInvite)
        .where(GroupInvite.group_id == group_id)
        .order_by(GroupInvite.created_at.desc(), GroupInvite.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def _find_by_code(db: Session, code: str) -> Optional[GroupInvite]:
    return db.execute(
        select(GroupInvite).where(GroupInvite.invite_code == code)
    ).scalar_one_or_none()


def lookup_invite(db: Session, code: str) -> Tuple[GroupInvite, Optional[Group]]:
    """Inactive invites are reported exactly like unknown codes."""
    invite = _find_by_code(db, code)
    if not invite or not invite.is_active:
        raise NotFoundError("Invite not found")
    return invite, db.get(Group, invite.group_id)


def rejection_reason(invite: Optional[GroupInvite], now: datetime) -> Optional[str]:
    if invite is None:
        return "not_found"
    if not invite.is_active:
        return "inactive"
    if invite.expires_at is not None and invite.expires_at <= now:
        return "expired"
    if invite.max_uses is not None and invite.current_uses >= invite.max_uses:
        return "exhausted"
    return None


def redeem_invite(
    db: Session,
    broadcaster: Broadcaster,
    code: str,
    member_name: Optional[str],
    member_email: Optional[str] = None,
) -> Tuple[Group, GroupMember]:
    member_name = (member_name or "").strip()
    if not member_name:
        raise ValidationError("Member name is required")

    now = utc_now_naive()
    invite = _find_by_code(db, code)
    reason = rejection_reason(invite, now)
    if reason:
        logger.info("invite_redemption_rejected", reason=reason)
        raise InviteRedemptionError(reason)

    # check-and-consume in one statement; 0 rows means someone else got the last use
    claimed = db.execute(
        update(GroupInvite)
        .where(
            GroupInvite.id == invite.id,
            GroupInvite.is_active.is_(True),
            or_(GroupInvite.max_uses.is_(None), GroupInvite.current_uses < GroupInvite.max_uses),
            or_(GroupInvite.expires_at.is_(None), GroupInvite.expires_at > now),
        )
        .values(current_uses=GroupInvite.current_uses + 1)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        db.rollback()
        logger.info("invite_redemption_rejected", reason="lost_race", invite_id=invite.id)
        raise InviteRedemptionError("lost_race")

    member = GroupMember(group_id=invite.group_id, name=member_name, email=member_email)
    db.add(member)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(member)
    group = db.get(Group, invite.group_id)

    logger.info("invite_redeemed", invite_id=invite.id, group_id=group.id, member_id=member.id)
    broadcaster.publish(
        "member-joined",
        {
            "group": to_group_with_members(group),
            "member": MemberPublic.model_validate(member),
            "joinedViaInvite": True,
        },
    )
    return group, member


def deactivate_invite(db: Session, broadcaster: Broadcaster, invite_id: int) -> GroupInvite:
    invite = db.get(GroupInvite, invite_id)
    if not invite:
        raise NotFoundError("Invite not found")

    # one-way and idempotent: keep the first revocation time
    if invite.is_active:
        invite.is_active = False
        invite.revoked_at = utc_now_naive()
        db.commit()
        db.refresh(invite)
        logger.info("invite_deactivated", invite_id=invite_id)

    broadcaster.publish("invite-deactivated", {"inviteId": invite_id})
    return invite
