"""Cosmetic achievement tiers earned from leaderboard standings."""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from maplist.core.errors import NotFound, ValidationError
from maplist.models.achievement import AchievementRole, DiscordRole
from maplist.models.format import LEADERBOARD_TYPES, Format
from maplist.models.user import User
from maplist.services.leaderboard import LeaderboardEntry, has_leaderboard, ranked_leaderboard
from maplist.services.permissions import require_permission

logger = logging.getLogger(__name__)


def configured_pairs(db: Session) -> list[tuple[int, str]]:
    rows = (
        db.query(AchievementRole.lb_format, AchievementRole.lb_type)
        .distinct()
        .order_by(AchievementRole.lb_format.asc(), AchievementRole.lb_type.asc())
        .all()
    )
    return [(lb_format, lb_type) for lb_format, lb_type in rows]


def pick_role(tiers: list[AchievementRole], entry: Optional[LeaderboardEntry]) -> Optional[AchievementRole]:
    """The one tier of a pair that ``entry`` earns, if any.

    First place takes the ``for_first`` tier when there is one; otherwise the
    highest threshold the score reaches wins.
    """
    if entry is None:
        return None
    if entry.placement == 1:
        for tier in tiers:
            if tier.for_first:
                return tier
    reached = [t for t in tiers if not t.for_first and t.threshold <= entry.score]
    if not reached:
        return None
    return max(reached, key=lambda t: t.threshold)


def roles_for_user(db: Session, user_id: int, as_of: datetime) -> list[AchievementRole]:
    earned = []
    for lb_format, lb_type in configured_pairs(db):
        if not has_leaderboard(lb_format, lb_type):
            logger.warning("Skipping achievement tiers without a leaderboard: format=%s type=%s", lb_format, lb_type)
            continue
        tiers = (
            db.query(AchievementRole)
            .filter(AchievementRole.lb_format == lb_format, AchievementRole.lb_type == lb_type)
            .all()
        )
        entries = ranked_leaderboard(db, lb_format, lb_type, as_of)
        entry = next((e for e in entries if e.user_id == user_id), None)
        role = pick_role(tiers, entry)
        if role is not None:
            earned.append(role)
    return earned


def list_achievement_roles(db: Session) -> list[AchievementRole]:
    return (
        db.query(AchievementRole)
        .order_by(
            AchievementRole.lb_format.asc(),
            AchievementRole.lb_type.asc(),
            AchievementRole.for_first.desc(),
            AchievementRole.threshold.asc(),
        )
        .all()
    )


def _validate_tiers(db: Session, lb_format: int, lb_type: str, roles: list[dict[str, Any]]) -> None:
    errors: dict[str, str] = {}

    if not roles:
        errors["roles"] = "At least one role is required"

    has_first = False
    by_threshold: dict[int, list[int]] = {}
    requested_role_ids: dict[str, tuple[int, int]] = {}

    for i, role in enumerate(roles):
        if role.get("for_first"):
            role["threshold"] = 0
            if has_first:
                errors[f"roles.{i}.for_first"] = "Can only have one role for first place"
            has_first = True
        by_threshold.setdefault(role["threshold"], []).append(i)

        linked = role.get("linked_roles") or []
        if not linked:
            errors[f"roles.{i}.linked_roles"] = "At least one linked role is required"
        for j, link in enumerate(linked):
            if not str(link.get("guild_id", "")).isdigit():
                errors[f"roles.{i}.linked_roles.{j}.guild_id"] = "Invalid Guild ID"
            role_id = str(link.get("role_id", ""))
            if not role_id.isdigit():
                errors[f"roles.{i}.linked_roles.{j}.role_id"] = "Invalid Role ID"
                continue
            if role_id in requested_role_ids:
                errors[f"roles.{i}.linked_roles.{j}.role_id"] = "Duplicate Discord role ID"
            else:
                requested_role_ids[role_id] = (i, j)

    for indexes in by_threshold.values():
        if len(indexes) > 1:
            for i in indexes:
                errors[f"roles.{i}.threshold"] = "Duplicate threshold"

    if requested_role_ids and not errors:
        used_elsewhere = (
            db.query(DiscordRole.role_id)
            .filter(
                DiscordRole.role_id.in_(list(requested_role_ids)),
                (DiscordRole.ar_lb_format != lb_format) | (DiscordRole.ar_lb_type != lb_type),
            )
            .all()
        )
        for (role_id,) in used_elsewhere:
            i, j = requested_role_ids[role_id]
            errors[f"roles.{i}.linked_roles.{j}.role_id"] = "This role is already used elsewhere!"

    if errors:
        raise ValidationError("Invalid achievement roles", errors)


def replace_achievement_roles(
    db: Session,
    user: User,
    *,
    lb_format: int,
    lb_type: str,
    roles: list[dict[str, Any]],
) -> list[AchievementRole]:
    """Swap every tier of ``(lb_format, lb_type)`` for ``roles``. The caller commits."""
    if lb_type not in LEADERBOARD_TYPES:
        raise ValidationError("Invalid leaderboard type", {"lb_type": f"Must be one of {', '.join(LEADERBOARD_TYPES)}"})
    if not db.query(Format.id).filter(Format.id == lb_format).first():
        raise NotFound(f"Format {lb_format} not found")
    if not has_leaderboard(lb_format, lb_type):
        raise ValidationError(
            "Invalid leaderboard type",
            {"lb_type": f"Format {lb_format} has no {lb_type} leaderboard"},
        )
    require_permission(db, user.id, lb_format, "edit:achievement_roles")

    roles = [dict(role) for role in roles]
    _validate_tiers(db, lb_format, lb_type, roles)

    existing = (
        db.query(AchievementRole)
        .filter(AchievementRole.lb_format == lb_format, AchievementRole.lb_type == lb_type)
        .all()
    )
    for tier in existing:
        db.delete(tier)
    db.flush()

    created = []
    for role in roles:
        tier = AchievementRole(
            lb_format=lb_format,
            lb_type=lb_type,
            threshold=role["threshold"],
            for_first=bool(role.get("for_first")),
            name=role["name"],
            tooltip_description=role.get("tooltip_description") or None,
            clr_border=role.get("clr_border", 0),
            clr_inner=role.get("clr_inner", 0),
            linked_roles=[
                DiscordRole(guild_id=str(link["guild_id"]), role_id=str(link["role_id"]))
                for link in role["linked_roles"]
            ],
        )
        db.add(tier)
        created.append(tier)
    db.flush()

    logger.info(
        "Achievement roles replaced: format=%s type=%s tiers=%d by user=%s",
        lb_format,
        lb_type,
        len(created),
        user.id,
    )
    return created
