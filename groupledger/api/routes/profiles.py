from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from groupledger.api.deps import get_broadcaster, get_db
from groupledger.core.auth import Principal, get_current_user
from groupledger.core.errors import NotFoundError
from groupledger.realtime.broadcaster import Broadcaster
from groupledger.schemas.profile import ProfileCreate, ProfilePublic, ProfileUpdate
from groupledger.services import profiles as profile_service

router = APIRouter(prefix="/profile", tags=["profile"])


@router.post("", response_model=ProfilePublic)
def create_profile(
    payload: ProfileCreate,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    return profile_service.create_profile(db, broadcaster, current_user, payload)


@router.get("", response_model=ProfilePublic)
def my_profile(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    profile = profile_service.get_profile_for_user(db, current_user.sub)
    if not profile:
        raise NotFoundError("No profile found")
    return profile


@router.get("/{profile_id}", response_model=ProfilePublic)
def get_profile(
    profile_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return profile_service.get_profile_or_404(db, profile_id)


@router.patch("/{profile_id}", response_model=ProfilePublic)
def update_profile(
    profile_id: int,
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    current_user: Principal = Depends(get_current_user),
):
    return profile_service.update_profile(db, broadcaster, current_user, profile_id, payload)
