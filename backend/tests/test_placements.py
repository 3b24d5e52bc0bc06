from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from maplist.core.errors import ConflictingRank, ValidationError
from maplist.db.seed import TECHNICIAN
from maplist.models.map import MapListMeta
from maplist.services import maps as maps_service
from maplist.services.maps import create_map, delete_map, update_map
from maplist.services.placements import rerank, rerank_placements, shift_window
from maplist.services.versioning import active_query, version_count


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=1)


def _placements(db: Session, as_of: datetime, field: str = "placement_curver") -> dict[str, int]:
    db.expire_all()
    return {
        meta.code: getattr(meta, field)
        for meta in active_query(db, MapListMeta, as_of).all()
        if getattr(meta, field) is not None
    }


def _assert_contiguous(db: Session, as_of: datetime) -> None:
    for field in ("placement_curver", "placement_allver"):
        values = sorted(_placements(db, as_of, field).values())
        assert values == list(range(1, len(values) + 1)), field


def test_shift_window_ranges() -> None:
    assert shift_window(None, None) is None
    assert shift_window(None, 3) == (3, None, 1)
    assert shift_window(3, None) == (4, None, -1)
    assert shift_window(3, 7) == (4, 7, -1)
    assert shift_window(7, 3) == (3, 6, 1)


def test_same_rank_move_is_rejected() -> None:
    with pytest.raises(ConflictingRank):
        shift_window(4, 4)


def test_removal_shifts_following_maps_up(db: Session, factory) -> None:
    factory.map("MAP01", curver=3)
    factory.map("MAP02", curver=4)
    factory.map("MAP03", curver=5)

    rerank(db, "curver", 3, None, "MAP01", T1)
    db.commit()

    placements = _placements(db, T1)
    assert placements["MAP02"] == 3
    assert placements["MAP03"] == 4


def test_insertion_shifts_maps_at_and_after_the_rank(db: Session, factory) -> None:
    factory.map("MAP01", curver=3)
    factory.map("MAP02", curver=4)
    factory.map("MAP03", curver=5)

    rerank(db, "curver", None, 3, "NEWMAP", T1)
    db.commit()

    assert _placements(db, T1) == {"MAP01": 4, "MAP02": 5, "MAP03": 6}


def test_move_down_the_list(db: Session, factory) -> None:
    factory.map("MAP01", curver=1)
    factory.map("MAP02", curver=4)
    factory.map("MAP03", curver=5)
    factory.map("MOVER", curver=7)
    factory.map("MAP05", curver=7)

    rerank(db, "curver", 3, 7, "MOVER", T1)
    db.commit()

    assert _placements(db, T1) == {"MAP01": 1, "MAP02": 3, "MAP03": 4, "MOVER": 7, "MAP05": 6}


def test_move_up_the_list(db: Session, factory) -> None:
    factory.map("MAP01", curver=1)
    factory.map("MOVER", curver=3)
    factory.map("MAP03", curver=3)
    factory.map("MAP04", curver=6)
    factory.map("MAP05", curver=9)

    rerank(db, "curver", 7, 3, "MOVER", T1)
    db.commit()

    assert _placements(db, T1) == {"MAP01": 1, "MOVER": 3, "MAP03": 4, "MAP04": 7, "MAP05": 9}


def test_both_null_writes_nothing(db: Session, factory) -> None:
    factory.map("MAP01", curver=1)
    before = version_count(db, MapListMeta)

    assert rerank(db, "curver", None, None, "MAP01", T1) == []
    db.commit()

    assert version_count(db, MapListMeta) == before


def test_unranked_and_deleted_maps_are_untouched(db: Session, factory) -> None:
    factory.map("MAP01", curver=1)
    factory.map("UNRANK", curver=None, difficulty=2)
    gone = factory.map("GONE01", curver=2)
    gone.deleted_on = T0
    db.commit()

    written = rerank(db, "curver", None, 1, "NEWMAP", T1)
    db.commit()

    assert [m.code for m in written] == ["MAP01"]


def test_existing_rows_are_never_modified(db: Session, factory) -> None:
    for i, code in enumerate(["MAP01", "MAP02", "MAP03"], start=1):
        factory.map(code, curver=i, allver=i)
    before = {(m.id, m.code, m.placement_curver, m.placement_allver) for m in db.query(MapListMeta).all()}

    rerank(db, "curver", 1, None, "MAP01", T1)
    db.commit()
    db.expire_all()

    rows = db.query(MapListMeta).all()
    after = {(m.id, m.code, m.placement_curver, m.placement_allver) for m in rows}
    assert before <= after
    assert len(rows) == len(before) + 2
    # The old state is still readable.
    assert _placements(db, T0) == {"MAP01": 1, "MAP02": 2, "MAP03": 3}


def test_both_dimensions_share_one_revision(db: Session, factory) -> None:
    factory.map("MAP01", curver=1, allver=2)
    before = version_count(db, MapListMeta)

    written = rerank_placements(db, {"curver": (None, 1), "allver": (None, 1)}, "NEWMAP", T1)
    db.commit()

    assert len(written) == 1
    assert version_count(db, MapListMeta) == before + 1
    assert _placements(db, T1, "placement_curver") == {"MAP01": 2}
    assert _placements(db, T1, "placement_allver") == {"MAP01": 3}


def test_auxiliary_fields_are_copied_forward(db: Session, factory) -> None:
    factory.map("MAP01", curver=1, difficulty=3, botb_difficulty=1, remake_of=7)

    (written,) = rerank(db, "curver", None, 1, "NEWMAP", T1)
    db.commit()

    assert written.placement_curver == 2
    assert (written.difficulty, written.botb_difficulty, written.remake_of) == (3, 1, 7)
    assert written.deleted_on is None


def test_unknown_dimension_is_rejected(db: Session) -> None:
    with pytest.raises(ValidationError):
        rerank(db, "sideways", None, 1, "NEWMAP", T1)


def test_rankings_stay_contiguous_through_map_lifecycle(db: Session, factory) -> None:
    staff = factory.user(1000, roles=(TECHNICIAN,))
    steps = [T0 + timedelta(hours=h) for h in range(1, 10)]

    for i, code in enumerate(["MAP01", "MAP02", "MAP03", "MAP04"]):
        create_map(db, staff, {"code": code, "name": code, "placement_curver": 1, "placement_allver": i + 1}, steps[i])
        db.commit()
        _assert_contiguous(db, steps[i])
    assert _placements(db, steps[3]) == {"MAP04": 1, "MAP03": 2, "MAP02": 3, "MAP01": 4}

    update_map(db, staff, "MAP04", {"placement_curver": 4}, steps[4])
    db.commit()
    _assert_contiguous(db, steps[4])
    assert _placements(db, steps[4]) == {"MAP03": 1, "MAP02": 2, "MAP01": 3, "MAP04": 4}

    update_map(db, staff, "MAP01", {"placement_curver": None, "placement_allver": 2}, steps[5])
    db.commit()
    _assert_contiguous(db, steps[5])
    assert _placements(db, steps[5]) == {"MAP03": 1, "MAP02": 2, "MAP04": 3}
    assert _placements(db, steps[5], "placement_allver") == {"MAP02": 1, "MAP01": 2, "MAP03": 3, "MAP04": 4}

    delete_map(db, staff, "MAP02", steps[6])
    db.commit()
    _assert_contiguous(db, steps[6])
    assert _placements(db, steps[6]) == {"MAP03": 1, "MAP04": 2}

    # Earlier snapshots are unaffected by later moves.
    assert _placements(db, steps[3]) == {"MAP04": 1, "MAP03": 2, "MAP02": 3, "MAP01": 4}


def test_placement_past_the_end_is_rejected(db: Session, factory) -> None:
    staff = factory.user(1000, roles=(TECHNICIAN,))
    factory.map("MAP01", curver=1)

    with pytest.raises(ValidationError) as exc:
        create_map(db, staff, {"code": "MAP02", "name": "x", "placement_curver": 3}, T1)
    assert "placement_curver" in exc.value.details


def test_failed_write_leaves_no_shifted_revisions(db: Session, factory, monkeypatch) -> None:
    staff = factory.user(1000, roles=(TECHNICIAN,))
    for i, code in enumerate(["MAP01", "MAP02", "MAP03"]):
        factory.map(code, curver=i + 1)
    rows_before = version_count(db, MapListMeta)
    real_rerank = maps_service.rerank_placements
    written = []

    def rerank_then_fail(session, moves, ignore_code, as_of):
        written.extend(real_rerank(session, moves, ignore_code, as_of))
        session.flush()
        raise RuntimeError("storage went away")

    monkeypatch.setattr(maps_service, "rerank_placements", rerank_then_fail)

    with pytest.raises(RuntimeError):
        update_map(db, staff, "MAP03", {"placement_curver": 1}, T1)
    assert len(written) == 2
    db.rollback()

    assert version_count(db, MapListMeta) == rows_before
    assert _placements(db, T1) == {"MAP01": 1, "MAP02": 2, "MAP03": 3}
