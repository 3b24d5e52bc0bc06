import pytest
from sqlalchemy.orm import Session

from maplist.core.errors import NotFound, PermissionDenied
from maplist.db.seed import (
    BASIC_PERMS,
    BOTB_CURATOR,
    BOTB_OWNER,
    CAN_SUBMIT,
    EXPERT_LIST_MODERATOR,
    MAPLIST_MODERATOR,
    MAPLIST_OWNER,
    NOSTALGIA_VERIFIER,
    REQUIRES_RECORDINGS,
    TECHNICIAN,
)
from maplist.models.role import RoleGrant
from maplist.services.permissions import (
    assign_default_roles,
    can_grant,
    effective_permissions,
    formats_with_permission,
    has_permission,
    require_permission,
    update_user_roles,
    user_role_ids,
)


def test_format_scoped_and_global_grants_combine(db: Session, factory) -> None:
    factory.user(10, roles=(MAPLIST_OWNER,))

    on_maplist = effective_permissions(db, 10, 1)
    assert {"edit:map", "edit:config", "edit:achievement_roles", "create:user", "ban:user"} <= on_maplist

    on_experts = effective_permissions(db, 10, 51)
    assert on_experts == {"create:user", "ban:user"}


def test_technician_holds_everything_everywhere(db: Session, factory) -> None:
    factory.user(10, roles=(TECHNICIAN,))

    for format_id in (1, 2, 11, 51, 52):
        assert has_permission(db, 10, format_id, "edit:completion")
        assert has_permission(db, 10, format_id, "delete:map")


def test_user_without_roles_has_nothing(db: Session, factory) -> None:
    factory.user(10)

    assert effective_permissions(db, 10, 1) == set()
    assert formats_with_permission(db, 10, "edit:map") == set()


def test_formats_with_permission(db: Session, factory) -> None:
    factory.user(10, roles=(MAPLIST_MODERATOR,))
    factory.user(20, roles=(TECHNICIAN,))
    factory.user(30, roles=(MAPLIST_MODERATOR, EXPERT_LIST_MODERATOR))
    factory.user(40, roles=(NOSTALGIA_VERIFIER,))

    assert formats_with_permission(db, 10, "edit:config") == {1, 2}
    assert formats_with_permission(db, 20, "edit:config") == {None}
    assert formats_with_permission(db, 30, "edit:config") == {1, 2, 51}
    assert formats_with_permission(db, 40, "edit:completion") == {11}


def test_global_only_roles(db: Session, factory) -> None:
    factory.user(10, roles=(REQUIRES_RECORDINGS, CAN_SUBMIT))

    assert effective_permissions(db, 10, 1) == {
        "require:completion_submission:recording",
        "create:map_submission",
        "create:completion_submission",
    }


def test_require_permission_names_what_is_missing(db: Session, factory) -> None:
    factory.user(10, roles=(MAPLIST_MODERATOR,))

    require_permission(db, 10, 1, "edit:map")
    with pytest.raises(PermissionDenied) as exc:
        require_permission(db, 10, 51, "edit:map")
    assert exc.value.permission == "edit:map"
    assert exc.value.format_id == 51
    assert "edit:map" in exc.value.message


def test_can_grant_follows_seeded_edges(db: Session, factory) -> None:
    factory.user(10, roles=(TECHNICIAN,))
    factory.user(20, roles=(MAPLIST_MODERATOR,))

    assert can_grant(db, 10, MAPLIST_OWNER)
    assert can_grant(db, 10, CAN_SUBMIT)
    assert not can_grant(db, 10, BOTB_OWNER)
    assert can_grant(db, 20, REQUIRES_RECORDINGS)
    assert not can_grant(db, 20, MAPLIST_OWNER)
    assert not can_grant(db, 20, MAPLIST_MODERATOR)


def test_can_grant_walks_deeper_graphs(db: Session, factory) -> None:
    factory.user(10, roles=(TECHNICIAN,))
    db.add(RoleGrant(role_required=MAPLIST_MODERATOR, role_can_grant=BOTB_OWNER))
    db.commit()

    assert can_grant(db, 10, BOTB_OWNER)
    assert can_grant(db, 10, BOTB_CURATOR)


def test_can_grant_tolerates_cycles(db: Session, factory) -> None:
    factory.user(10, roles=(MAPLIST_MODERATOR,))
    db.add(RoleGrant(role_required=CAN_SUBMIT, role_can_grant=MAPLIST_MODERATOR))
    db.commit()

    assert can_grant(db, 10, MAPLIST_MODERATOR)
    assert not can_grant(db, 10, TECHNICIAN)


def test_new_users_get_default_roles(db: Session, factory) -> None:
    user = factory.user(10)
    assign_default_roles(db, user)
    db.commit()

    assert user_role_ids(db, 10) == {CAN_SUBMIT, BASIC_PERMS}
    assert has_permission(db, 10, None, "edit:self")


def test_update_user_roles(db: Session, factory) -> None:
    granter = factory.user(10, roles=(MAPLIST_OWNER,))
    factory.user(20, roles=(CAN_SUBMIT,))

    roles = update_user_roles(db, granter, 20, add=[MAPLIST_MODERATOR], remove=[CAN_SUBMIT])
    db.commit()

    assert roles == {MAPLIST_MODERATOR}


def test_update_user_roles_is_all_or_nothing(db: Session, factory) -> None:
    granter = factory.user(10, roles=(MAPLIST_OWNER,))
    factory.user(20)

    with pytest.raises(PermissionDenied):
        update_user_roles(db, granter, 20, add=[MAPLIST_MODERATOR, TECHNICIAN])
    db.rollback()

    assert user_role_ids(db, 20) == set()


def test_update_user_roles_unknown_role_or_user(db: Session, factory) -> None:
    granter = factory.user(10, roles=(TECHNICIAN,))
    factory.user(20)

    with pytest.raises(NotFound):
        update_user_roles(db, granter, 20, add=[999])
    with pytest.raises(NotFound):
        update_user_roles(db, granter, 404, add=[CAN_SUBMIT])
