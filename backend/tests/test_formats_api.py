from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from maplist.db.seed import MAPLIST_MODERATOR, MAPLIST_OWNER, TECHNICIAN


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _auth(user_id: int) -> dict:
    return {"Authorization": f"Bearer {user_id}"}


def _settings(**changes) -> dict:
    body = {
        "hidden": False,
        "run_submission_status": "open",
        "map_submission_status": "open_chimps",
        "run_submission_wh": None,
        "map_submission_wh": None,
        "emoji": None,
    }
    body.update(changes)
    return body


def _board(factory) -> None:
    for user_id in (10, 20, 30):
        factory.user(user_id)
    factory.map("TOP001", curver=1)
    factory.map("LAST50", curver=50)
    factory.completion("TOP001", [10])
    factory.completion("TOP001", [20], black_border=True)
    factory.completion("LAST50", [30], created_on=T0 + timedelta(hours=2))


def test_list_formats(client: TestClient) -> None:
    resp = client.get("/formats")
    assert resp.status_code == 200
    assert [(f["id"], f["hidden"]) for f in resp.json()] == [
        (1, False),
        (2, True),
        (11, False),
        (51, False),
        (52, False),
    ]


def test_points_leaderboard(client: TestClient, factory) -> None:
    _board(factory)

    resp = client.get("/formats/1/leaderboard")
    assert resp.status_code == 200
    body = resp.json()
    assert [(i["user"]["id"], i["user"]["name"], i["score"], i["placement"]) for i in body["data"]] == [
        (20, "player20", 300, 1),
        (10, "player10", 100, 2),
        (30, "player30", 5, 3),
    ]
    assert body["meta"] == {"current_page": 1, "last_page": 1, "per_page": 50, "total": 3}


def test_leaderboard_pages(client: TestClient, factory) -> None:
    _board(factory)

    body = client.get("/formats/1/leaderboard?per_page=2&page=2").json()
    assert [i["user"]["id"] for i in body["data"]] == [30]
    assert body["meta"] == {"current_page": 2, "last_page": 2, "per_page": 2, "total": 3}

    assert client.get("/formats/1/leaderboard?page=0").status_code == 422
    assert client.get("/formats/1/leaderboard?per_page=101").status_code == 422


def test_leaderboard_as_of(client: TestClient, factory) -> None:
    _board(factory)
    before = int((T0 + timedelta(hours=1)).timestamp())

    body = client.get(f"/formats/1/leaderboard?timestamp={before}").json()
    assert [i["user"]["id"] for i in body["data"]] == [20, 10]


def test_count_leaderboards(client: TestClient, factory) -> None:
    _board(factory)

    body = client.get("/formats/1/leaderboard?value=black_border").json()
    assert [(i["user"]["id"], i["score"], i["placement"]) for i in body["data"]] == [(20, 1, 1)]


def test_unknown_leaderboards(client: TestClient) -> None:
    assert client.get("/formats/52/leaderboard").status_code == 404
    assert client.get("/formats/999/leaderboard?value=lccs").status_code == 404

    resp = client.get("/formats/1/leaderboard?value=wins")
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


def test_list_formats_shows_submission_status(client: TestClient) -> None:
    formats = client.get("/formats").json()
    statuses = {f["id"]: (f["run_submission_status"], f["map_submission_status"]) for f in formats}

    assert statuses == {
        1: ("open", "open_chimps"),
        2: ("closed", "closed"),
        11: ("lcc_only", "open"),
        51: ("open", "open_chimps"),
        52: ("lcc_only", "open"),
    }
    assert "run_submission_wh" not in formats[0]


def test_format_settings_need_edit_format(client: TestClient, factory) -> None:
    factory.user(1, roles=(MAPLIST_OWNER,))
    factory.user(2, roles=(MAPLIST_MODERATOR,))

    resp = client.get("/formats/1", headers=_auth(1))
    assert resp.status_code == 200
    assert resp.json()["run_submission_wh"] is None

    resp = client.get("/formats/1", headers=_auth(2))
    assert resp.status_code == 403
    assert resp.json()["details"] == {"permission": "edit:format", "format_id": 1}

    assert client.get("/formats/51", headers=_auth(1)).status_code == 403
    assert client.get("/formats/999", headers=_auth(1)).status_code == 404
    assert client.get("/formats/1").status_code == 401


def test_update_format(client: TestClient, factory) -> None:
    factory.user(1, roles=(MAPLIST_OWNER,))
    hook = "https://discord.test/api/webhooks/1/abc"

    resp = client.put(
        "/formats/1",
        json=_settings(hidden=True, run_submission_status="lcc_only", run_submission_wh=hook, emoji="<:ml:1>"),
        headers=_auth(1),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["hidden"] is True
    assert body["run_submission_status"] == "lcc_only"
    assert body["run_submission_wh"] == hook
    assert body["emoji"] == "<:ml:1>"

    listed = {f["id"]: f for f in client.get("/formats").json()}
    assert listed[1]["hidden"] is True
    assert client.get("/formats/1", headers=_auth(1)).json()["run_submission_wh"] == hook


def test_update_format_rejects_bad_settings(client: TestClient, factory) -> None:
    factory.user(1, roles=(TECHNICIAN,))
    factory.user(2, roles=(MAPLIST_MODERATOR,))

    for bad in (
        {"run_submission_status": "sometimes"},
        {"map_submission_status": "lcc_only"},
        {"run_submission_wh": "not a url"},
        {"emoji": "x" * 256},
    ):
        assert client.put("/formats/1", json=_settings(**bad), headers=_auth(1)).status_code == 422, bad
    assert client.put("/formats/1", json=_settings(), headers=_auth(2)).status_code == 403
    assert client.put("/formats/999", json=_settings(), headers=_auth(1)).status_code == 404
