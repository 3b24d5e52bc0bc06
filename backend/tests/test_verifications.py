import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from maplist.models.verification import Verification
from maplist.services.verifications import (
    _insert_if_absent,
    map_verifiers,
    record_verifications,
    verified_map_codes,
)


def _setup(factory) -> None:
    for user_id in (10, 20, 30):
        factory.user(user_id)
    factory.map("MAP001", curver=1)
    factory.map("MAP002", curver=2)


def test_first_acceptance_records_current_and_first_ever(db: Session, factory) -> None:
    _setup(factory)

    created = record_verifications(db, "MAP001", 1, [20, 10])
    db.commit()

    assert sorted((v.user_id, v.version) for v in created) == [(10, None), (10, 441), (20, None), (20, 441)]
    assert map_verifiers(db, "MAP001") == [10, 20]
    assert map_verifiers(db, "MAP001", 441) == [10, 20]


def test_later_acceptances_add_nothing(db: Session, factory) -> None:
    _setup(factory)
    record_verifications(db, "MAP001", 1, [10])
    db.commit()

    assert record_verifications(db, "MAP001", 51, [20, 30]) == []
    assert record_verifications(db, "MAP001", 1, [10]) == []
    db.commit()

    assert db.query(Verification).count() == 2


def test_all_versions_list_never_verifies(db: Session, factory) -> None:
    _setup(factory)

    assert record_verifications(db, "MAP001", 2, [10]) == []
    assert verified_map_codes(db, ["MAP001"]) == set()


def test_new_game_version_is_not_backfilled(db: Session, factory) -> None:
    _setup(factory)
    record_verifications(db, "MAP001", 1, [10])
    db.commit()

    factory.config("current_btd6_ver", 442)

    assert map_verifiers(db, "MAP001", 442) == []
    # Still verified through its first-ever verifiers.
    assert verified_map_codes(db, ["MAP001", "MAP002"]) == {"MAP001"}

    created = record_verifications(db, "MAP001", 1, [20])
    db.commit()

    assert [(v.user_id, v.version) for v in created] == [(20, 442)]
    assert map_verifiers(db, "MAP001") == [10]


def test_verified_map_codes_ignores_older_versions(db: Session, factory) -> None:
    _setup(factory)
    db.add(Verification(map_code="MAP002", user_id=10, version=400))
    db.commit()

    assert verified_map_codes(db, ["MAP002"]) == set()


def test_repeated_insert_keeps_one_row(db: Session, factory) -> None:
    _setup(factory)

    first = _insert_if_absent(db, "MAP001", 10, None)
    again = _insert_if_absent(db, "MAP001", 10, None)
    versioned = _insert_if_absent(db, "MAP001", 10, 441)
    versioned_again = _insert_if_absent(db, "MAP001", 10, 441)
    db.commit()

    assert first is not None and versioned is not None
    assert again is None and versioned_again is None
    assert sorted((v.user_id, v.version) for v in db.query(Verification).all()) == [(10, None), (10, 441)]


def test_duplicate_first_ever_verifier_is_refused(db: Session, factory) -> None:
    _setup(factory)
    db.add(Verification(map_code="MAP001", user_id=10, version=None))
    db.commit()

    db.add(Verification(map_code="MAP001", user_id=10, version=None))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

    db.add(Verification(map_code="MAP001", user_id=20, version=None))
    db.commit()
    assert map_verifiers(db, "MAP001") == [10, 20]
