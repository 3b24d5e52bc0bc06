from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from maplist.db.seed import BASIC_PERMS, CAN_SUBMIT, MAPLIST_MODERATOR, MAPLIST_OWNER, REQUIRES_RECORDINGS, TECHNICIAN
from maplist.models.achievement import AchievementRole
from maplist.services.achievements import replace_achievement_roles


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _auth(user_id: int) -> dict:
    return {"Authorization": f"Bearer {user_id}"}


def test_first_request_registers_the_user(client: TestClient, db: Session) -> None:
    resp = client.put("/config", json={"config": {}}, headers=_auth(77))
    assert resp.status_code == 403

    profile = client.get("/users/77").json()
    assert profile["name"] == "player77"
    assert [r["id"] for r in profile["roles"]] == [CAN_SUBMIT, BASIC_PERMS]


def test_unknown_user(client: TestClient) -> None:
    resp = client.get("/users/404")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_banned_user_is_refused(client: TestClient, factory, db: Session) -> None:
    user = factory.user(10, roles=(TECHNICIAN,))
    user.is_banned = True
    db.commit()

    assert client.put("/config", json={"config": {}}, headers=_auth(10)).status_code == 403


def test_profile_includes(client: TestClient, factory, db: Session) -> None:
    admin = factory.user(1, roles=(TECHNICIAN,))
    factory.user(10)
    factory.map("TOP001", curver=1)
    factory.map("MAP002", curver=2)
    factory.completion("TOP001", [10], black_border=True, lcc=300)
    factory.completion("MAP002", [10], no_geraldo=True)
    replace_achievement_roles(
        db,
        admin,
        lb_format=1,
        lb_type="points",
        roles=[
            {
                "threshold": 0,
                "for_first": True,
                "name": "Champion",
                "linked_roles": [{"guild_id": "1000", "role_id": "501"}],
            }
        ],
    )
    db.commit()

    plain = client.get("/users/10").json()
    assert plain["medals"] is None
    assert plain["achievement_roles"] is None

    body = client.get("/users/10?include=medals,achievement_roles").json()
    assert body["medals"] == {"wins": 2, "black_border": 1, "no_geraldo": 1, "current_lcc": 1}
    assert [r["name"] for r in body["achievement_roles"]] == ["Champion"]

    before = int((T0 - timedelta(days=1)).timestamp())
    old = client.get(f"/users/10?include=medals,achievement_roles&timestamp={before}").json()
    assert old["medals"] == {"wins": 0, "black_border": 0, "no_geraldo": 0, "current_lcc": 0}
    assert old["achievement_roles"] == []


def test_patch_roles(client: TestClient, factory) -> None:
    factory.user(1, roles=(MAPLIST_OWNER,))
    factory.user(10, roles=(CAN_SUBMIT,))

    resp = client.patch("/users/10/roles", json={"add": [MAPLIST_MODERATOR], "remove": [CAN_SUBMIT]}, headers=_auth(1))
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()["roles"]] == [MAPLIST_MODERATOR]


def test_patch_roles_is_all_or_nothing(client: TestClient, factory, db: Session) -> None:
    factory.user(1, roles=(MAPLIST_MODERATOR,))
    factory.user(10)

    resp = client.patch(
        "/users/10/roles",
        json={"add": [REQUIRES_RECORDINGS, MAPLIST_OWNER]},
        headers=_auth(1),
    )
    assert resp.status_code == 403
    assert client.get("/users/10").json()["roles"] == []


def test_patch_roles_needs_auth(client: TestClient, factory) -> None:
    factory.user(10)

    assert client.patch("/users/10/roles", json={"add": [CAN_SUBMIT]}).status_code == 401
    assert client.patch("/users/404/roles", json={"add": [CAN_SUBMIT]}, headers=_auth(10)).status_code == 404


def test_profile_skips_tiers_without_a_leaderboard(client: TestClient, factory, db: Session) -> None:
    factory.user(10)
    factory.map("TOP001", curver=1)
    factory.completion("TOP001", [10], format_id=52)
    db.add(AchievementRole(lb_format=52, lb_type="points", threshold=1, for_first=False, name="Stale"))
    db.commit()

    resp = client.get("/users/10?include=achievement_roles")

    assert resp.status_code == 200
    assert resp.json()["achievement_roles"] == []


def test_read_rules(client: TestClient, factory) -> None:
    factory.user(10)
    assert client.get("/users/10").json()["has_seen_popup"] is False

    assert client.put("/read-rules", headers=_auth(10)).status_code == 204
    assert client.put("/read-rules", headers=_auth(10)).status_code == 204

    assert client.get("/users/10").json()["has_seen_popup"] is True
    assert client.put("/read-rules").status_code == 401
