"""Verifier bookkeeping run when a completion is accepted.

A map keeps its first-ever verifiers (``version`` null) and the first
verifiers of each game version. Rows are written once, at acceptance time;
changing ``current_btd6_ver`` later does not backfill anything.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from maplist.models.format import MAPLIST_ALL_VERSIONS
from maplist.models.verification import Verification
from maplist.services.config_vars import load_vars

logger = logging.getLogger(__name__)

INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def current_game_version(db: Session) -> Optional[int]:
    return load_vars(db, ["current_btd6_ver"]).get("current_btd6_ver")


def _version_filter(query, version: Optional[int]):
    if version is None:
        return query.filter(Verification.version.is_(None))
    return query.filter(Verification.version == version)


def _has_verifiers(db: Session, map_code: str, version: Optional[int]) -> bool:
    query = db.query(Verification.id).filter(Verification.map_code == map_code)
    return _version_filter(query, version).first() is not None


def _insert_if_absent(db: Session, map_code: str, user_id: int, version: Optional[int]) -> Optional[Verification]:
    """Insert one verifier row, or nothing when a concurrent writer got there first."""
    dialect = db.get_bind().dialect.name
    if dialect not in INSERTS:
        raise RuntimeError(f"Unsupported database dialect: {dialect}")
    stmt = (
        INSERTS[dialect](Verification)
        .values(map_code=map_code, user_id=user_id, version=version)
        .on_conflict_do_nothing()
        .returning(Verification)
    )
    return db.scalars(stmt).first()


def record_verifications(db: Session, map_code: str, format_id: int, player_ids: Iterable[int]) -> list[Verification]:
    """Make the players verifiers of ``map_code`` wherever the map has none yet.

    Completions filed under the all-versions list never verify. Returns the
    rows written; the caller commits.
    """
    if format_id == MAPLIST_ALL_VERSIONS:
        return []

    version = current_game_version(db)
    targets = [None] if version is None else [version, None]
    missing = [target for target in targets if not _has_verifiers(db, map_code, target)]

    created = []
    for target in missing:
        for user_id in sorted(set(player_ids)):
            verification = _insert_if_absent(db, map_code, user_id, target)
            if verification is not None:
                created.append(verification)
    db.flush()

    if created:
        logger.info(
            "Verifications recorded for map=%s: %s",
            map_code,
            [(v.user_id, v.version) for v in created],
        )
    return created


def verified_map_codes(db: Session, map_codes: Iterable[str]) -> set[str]:
    """Codes among ``map_codes`` verified for the current game version or ever."""
    version = current_game_version(db)
    condition = Verification.version.is_(None)
    if version is not None:
        condition = or_(condition, Verification.version == version)
    rows = (
        db.query(Verification.map_code)
        .filter(Verification.map_code.in_(list(map_codes)), condition)
        .distinct()
        .all()
    )
    return {code for (code,) in rows}


def map_verifiers(db: Session, map_code: str, version: Optional[int] = None) -> list[int]:
    query = db.query(Verification.user_id).filter(Verification.map_code == map_code)
    return sorted(user_id for (user_id,) in _version_filter(query, version).all())
