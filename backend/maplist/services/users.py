import logging
from typing import Optional

from sqlalchemy.orm import Session

from maplist.clients.discord import UserProfile
from maplist.core.errors import NotFound
from maplist.models.user import User
from maplist.services.permissions import assign_default_roles

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


def find_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_or_create_user(db: Session, profile: UserProfile) -> User:
    """The local account for ``profile``, created with the default roles on first sight."""
    user = find_user(db, profile.id)
    if user:
        return user

    user = User(id=profile.id, name=profile.username, is_banned=False)
    db.add(user)
    db.flush()
    assign_default_roles(db, user)
    db.commit()
    db.refresh(user)

    logger.info("Registered user %s (%s)", user.id, user.name)
    return user


def ensure_users(db: Session, user_ids: list[int]) -> None:
    """Raise ``NotFound`` unless every id belongs to a known user."""
    found = {uid for (uid,) in db.query(User.id).filter(User.id.in_(user_ids)).all()} if user_ids else set()
    missing = [uid for uid in user_ids if uid not in found]
    if missing:
        raise NotFound(f"Unknown users: {', '.join(str(uid) for uid in missing)}")


def mark_rules_read(db: Session, user: User) -> None:
    """The caller commits."""
    if not user.has_seen_popup:
        user.has_seen_popup = True
        db.flush()
        logger.info("User %s read the rules", user.id)
