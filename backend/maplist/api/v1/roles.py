from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from maplist.api.v1.users import get_current_user, get_db
from maplist.models.role import Role
from maplist.models.user import User
from maplist.schemas.role import AchievementRoleItem, AchievementRolesUpdateRequest, RoleItem
from maplist.services.achievements import list_achievement_roles, replace_achievement_roles


router = APIRouter()


@router.get("", response_model=list[RoleItem])
def list_roles(db: Session = Depends(get_db)) -> list[RoleItem]:
    roles = db.query(Role).order_by(Role.id.asc()).all()
    return [
        RoleItem(
            id=role.id,
            name=role.name,
            internal=role.internal,
            assign_on_create=role.assign_on_create,
            can_grant=sorted(r.id for r in role.can_grant),
        )
        for role in roles
    ]


@router.get("/achievement", response_model=list[AchievementRoleItem])
def get_achievement_roles(db: Session = Depends(get_db)) -> list[AchievementRoleItem]:
    return [AchievementRoleItem.model_validate(role) for role in list_achievement_roles(db)]


@router.put("/achievement", response_model=list[AchievementRoleItem])
def put_achievement_roles(
    payload: AchievementRolesUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[AchievementRoleItem]:
    replace_achievement_roles(
        db,
        current_user,
        lb_format=payload.lb_format,
        lb_type=payload.lb_type,
        roles=[role.model_dump() for role in payload.roles],
    )
    db.commit()
    return [
        AchievementRoleItem.model_validate(role)
        for role in list_achievement_roles(db)
        if role.pair == (payload.lb_format, payload.lb_type)
    ]
