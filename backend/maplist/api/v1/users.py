from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from maplist.clients.discord import DiscordIdentityProvider, DiscordWebhookNotifier
from maplist.core.errors import Unauthenticated
from maplist.db.session import SessionLocal
from maplist.models.role import Role, UserRole
from maplist.models.user import User
from maplist.schemas.role import AchievementRoleItem, UserRolesUpdateRequest
from maplist.schemas.user import Medals, UserProfileResponse, UserRoleItem
from maplist.services.achievements import roles_for_user
from maplist.services.leaderboard import user_medals
from maplist.services.permissions import update_user_roles
from maplist.services.users import get_or_create_user, get_user


router = APIRouter()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity_provider() -> DiscordIdentityProvider:
    return DiscordIdentityProvider()


def get_notifier() -> DiscordWebhookNotifier:
    return DiscordWebhookNotifier()


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    identity=Depends(get_identity_provider),
) -> User:
    if not authorization:
        raise Unauthenticated("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Expected a Bearer token")

    profile = identity.get_user_profile(token.strip())
    user = get_or_create_user(db, profile)
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is banned")
    return user


def resolve_timestamp(timestamp: Optional[int] = Query(default=None)) -> datetime:
    """Unix ``timestamp`` query parameter, or now."""
    if timestamp is None:
        return datetime.now(timezone.utc)
    if timestamp < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid timestamp")
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _role_items(db: Session, user_id: int) -> list[UserRoleItem]:
    roles = (
        db.query(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.id.asc())
        .all()
    )
    return [UserRoleItem.model_validate(role) for role in roles]


@router.get("/{user_id}", response_model=UserProfileResponse)
def get_user_profile(
    user_id: int,
    include: Optional[str] = Query(default=None),
    as_of: datetime = Depends(resolve_timestamp),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    user = get_user(db, user_id)
    includes = {part.strip() for part in (include or "").split(",") if part.strip()}

    response = UserProfileResponse(
        id=user.id,
        name=user.name,
        nk_oak=user.nk_oak,
        is_banned=user.is_banned,
        has_seen_popup=user.has_seen_popup,
        roles=_role_items(db, user.id),
    )
    if "medals" in includes:
        response.medals = Medals(**user_medals(db, user.id, as_of))
    if "achievement_roles" in includes:
        response.achievement_roles = [
            AchievementRoleItem.model_validate(role) for role in roles_for_user(db, user.id, as_of)
        ]
    return response


@router.patch("/{user_id}/roles", response_model=UserProfileResponse)
def patch_user_roles(
    user_id: int,
    payload: UserRolesUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserProfileResponse:
    update_user_roles(db, current_user, user_id, add=payload.add, remove=payload.remove)
    db.commit()

    user = get_user(db, user_id)
    return UserProfileResponse(
        id=user.id,
        name=user.name,
        nk_oak=user.nk_oak,
        is_banned=user.is_banned,
        has_seen_popup=user.has_seen_popup,
        roles=_role_items(db, user.id),
    )
