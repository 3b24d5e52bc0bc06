"""Resolves what a user may do from the roles they hold.

A role grants permissions either globally (``format_id`` null) or for one
format. Holding a role also lets a user hand out the roles reachable from it
through ``role_grants``.
"""

import logging
from collections import deque
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from maplist.core.errors import NotFound, PermissionDenied
from maplist.models.role import Role, RoleFormatPermission, RoleGrant, UserRole
from maplist.models.user import User

logger = logging.getLogger(__name__)


def user_role_ids(db: Session, user_id: int) -> set[int]:
    rows = db.query(UserRole.role_id).filter(UserRole.user_id == user_id).all()
    return {role_id for (role_id,) in rows}


def effective_permissions(db: Session, user_id: int, format_id: Optional[int]) -> set[str]:
    """Global grants of every role the user holds plus grants scoped to ``format_id``."""
    role_ids = user_role_ids(db, user_id)
    if not role_ids:
        return set()

    query = db.query(RoleFormatPermission.permission).filter(RoleFormatPermission.role_id.in_(role_ids))
    if format_id is None:
        query = query.filter(RoleFormatPermission.format_id.is_(None))
    else:
        query = query.filter(
            (RoleFormatPermission.format_id.is_(None)) | (RoleFormatPermission.format_id == format_id)
        )
    return {permission for (permission,) in query.all()}


def has_permission(db: Session, user_id: int, format_id: Optional[int], permission: str) -> bool:
    return permission in effective_permissions(db, user_id, format_id)


def require_permission(db: Session, user_id: int, format_id: Optional[int], permission: str) -> None:
    if not has_permission(db, user_id, format_id, permission):
        raise PermissionDenied(permission, format_id)


def formats_with_permission(db: Session, user_id: int, permission: str) -> set[Optional[int]]:
    """Format ids on which the user holds ``permission``. ``None`` stands for a global grant."""
    role_ids = user_role_ids(db, user_id)
    if not role_ids:
        return set()
    rows = (
        db.query(RoleFormatPermission.format_id)
        .filter(
            RoleFormatPermission.role_id.in_(role_ids),
            RoleFormatPermission.permission == permission,
        )
        .all()
    )
    return {format_id for (format_id,) in rows}


def allows_format(permitted: set[Optional[int]], format_id: Optional[int]) -> bool:
    return None in permitted or format_id in permitted


def require_any_format(db: Session, user_id: int, permission: str) -> set[Optional[int]]:
    permitted = formats_with_permission(db, user_id, permission)
    if not permitted:
        raise PermissionDenied(permission)
    return permitted


def grant_graph(db: Session) -> dict[int, set[int]]:
    graph: dict[int, set[int]] = {}
    for required, can_grant in db.query(RoleGrant.role_required, RoleGrant.role_can_grant).all():
        graph.setdefault(required, set()).add(can_grant)
    return graph


def grantable_roles(db: Session, granter_id: int) -> set[int]:
    """Every role reachable from the granter's roles through the grant graph.

    Breadth-first with a visited set, so deeper or cyclic graphs are fine.
    """
    graph = grant_graph(db)
    seen = set(user_role_ids(db, granter_id))
    reachable: set[int] = set()
    queue = deque(seen)
    while queue:
        role_id = queue.popleft()
        for target in graph.get(role_id, ()):
            reachable.add(target)
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return reachable


def can_grant(db: Session, granter_id: int, target_role_id: int) -> bool:
    return target_role_id in grantable_roles(db, granter_id)


def assign_default_roles(db: Session, user: User) -> None:
    defaults = db.query(Role).filter(Role.assign_on_create.is_(True)).all()
    held = user_role_ids(db, user.id)
    for role in defaults:
        if role.id not in held:
            db.add(UserRole(user_id=user.id, role_id=role.id))
    db.flush()


def update_user_roles(
    db: Session,
    granter: User,
    target_user_id: int,
    *,
    add: Iterable[int] = (),
    remove: Iterable[int] = (),
) -> set[int]:
    """Add and remove roles on a user. Either every change applies or none does.

    Returns the target's role ids afterwards. The caller commits.
    """
    add = set(add)
    remove = set(remove)

    target = db.query(User).filter(User.id == target_user_id).first()
    if not target:
        raise NotFound(f"User {target_user_id} not found")

    requested = add | remove
    known = {role_id for (role_id,) in db.query(Role.id).filter(Role.id.in_(requested)).all()} if requested else set()
    missing = requested - known
    if missing:
        raise NotFound(f"Unknown roles: {', '.join(str(r) for r in sorted(missing))}")

    grantable = grantable_roles(db, granter.id)
    for role_id in sorted(requested):
        if role_id not in grantable:
            raise PermissionDenied(
                "grant:role",
                message=f"You cannot grant or revoke role {role_id}",
            )

    held = user_role_ids(db, target_user_id)
    for role_id in add - held - remove:
        db.add(UserRole(user_id=target_user_id, role_id=role_id))
    if remove:
        (
            db.query(UserRole)
            .filter(UserRole.user_id == target_user_id, UserRole.role_id.in_(remove))
            .delete(synchronize_session=False)
        )
    db.flush()

    logger.info(
        "Roles updated: granter=%s target=%s added=%s removed=%s",
        granter.id,
        target_user_id,
        sorted(add),
        sorted(remove),
    )
    return user_role_ids(db, target_user_id)
