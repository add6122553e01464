from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from groupledger.core.auth import Principal
from groupledger.core.errors import AuthorizationError, NotFoundError, ValidationError
from groupledger.models.profile import UserProfile
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.profile import ProfileCreate, ProfilePublic, ProfileUpdate

logger = structlog.get_logger(__name__)


def _by_public_name(db: Session, public_name: str) -> Optional[UserProfile]:
    return db.execute(
        select(UserProfile).where(UserProfile.public_name == public_name)
    ).scalar_one_or_none()


def get_profile_for_user(db: Session, user_id: str) -> Optional[UserProfile]:
    return db.execute(
        select(UserProfile).where(UserProfile.user_id == user_id)
    ).scalar_one_or_none()


def get_profile_or_404(db: Session, profile_id: int) -> UserProfile:
    profile = db.get(UserProfile, profile_id)
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def create_profile(
    db: Session, broadcaster: Broadcaster, principal: Principal, payload: ProfileCreate
) -> UserProfile:
    if get_profile_for_user(db, principal.sub):
        raise ValidationError("Profile already exists")
    if _by_public_name(db, payload.public_name):
        raise ValidationError("Public name already taken")

    profile = UserProfile(
        user_id=principal.sub,
        public_name=payload.public_name,
        email=payload.email or principal.email,
        currency=payload.currency,
        language=payload.language,
        timezone=payload.timezone,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)

    logger.info("profile_created", profile_id=profile.id)
    broadcaster.publish("profile-created", {"profile": ProfilePublic.model_validate(profile)})
    return profile


def update_profile(
    db: Session,
    broadcaster: Broadcaster,
    principal: Principal,
    profile_id: int,
    payload: ProfileUpdate,
) -> UserProfile:
    profile = get_profile_or_404(db, profile_id)
    if profile.user_id != principal.sub and not principal.is_admin:
        raise AuthorizationError("Cannot edit another user's profile")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("public_name"):
        existing = _by_public_name(db, changes["public_name"])
        if existing and existing.id != profile.id:
            raise ValidationError("Public name already taken")

    for field, value in changes.items():
        if value is None and field != "email":
            continue
        setattr(profile, field, value)

    db.commit()
    db.refresh(profile)

    broadcaster.publish("profile-updated", {"profile": ProfilePublic.model_validate(profile)})
    return profile
