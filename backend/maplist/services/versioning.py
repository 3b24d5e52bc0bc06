"""Append-only storage helpers for the bitemporal metadata tables.

Every edit of ``map_list_meta`` or ``completions_meta`` inserts a new row; a
row is never updated after it is written. The state of an entity as of ``T``
is its row with the greatest ``(created_on, id)`` among rows created at or
before ``T``.
"""

from datetime import datetime
from typing import Any, Optional, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Subquery

from maplist.models.completion import CompletionMeta
from maplist.models.map import MapListMeta


T = TypeVar("T", MapListMeta, CompletionMeta)

_KEY_COLUMNS = {
    MapListMeta: "code",
    CompletionMeta: "completion_id",
}

# Fields carried forward onto a new completion revision; players are attached separately.
_COMPLETION_META_FIELDS = (
    "completion_id",
    "format_id",
    "black_border",
    "no_geraldo",
    "lcc_id",
    "accepted_by_id",
    "deleted_on",
)


def active_versions(model: type[T], as_of: datetime) -> Subquery:
    """Subquery holding the active row of every key as of ``as_of``.

    Deleted rows are included; callers filter on ``deleted_on`` themselves so
    that "deleted" and "never existed" stay distinguishable.
    """
    key_column = getattr(model, _KEY_COLUMNS[model])
    ranked = (
        select(
            model.id.label("id"),
            func.row_number()
            .over(partition_by=key_column, order_by=(model.created_on.desc(), model.id.desc()))
            .label("rn"),
        )
        .where(model.created_on <= as_of)
        .subquery()
    )
    return select(ranked.c.id).where(ranked.c.rn == 1).subquery()


def active_query(db: Session, model: type[T], as_of: datetime, include_deleted: bool = False):
    """``Query`` over the active rows of ``model`` as of ``as_of``."""
    latest = active_versions(model, as_of)
    query = db.query(model).join(latest, latest.c.id == model.id)
    if not include_deleted:
        query = query.filter(or_(model.deleted_on.is_(None), model.deleted_on > as_of))
    return query


def get_active(db: Session, model: type[T], key: Any, as_of: datetime) -> Optional[T]:
    """Active row for ``key`` as of ``as_of``, deleted or not; ``None`` if it never existed."""
    key_column = getattr(model, _KEY_COLUMNS[model])
    return (
        db.query(model)
        .filter(key_column == key, model.created_on <= as_of)
        .order_by(model.created_on.desc(), model.id.desc())
        .first()
    )


def is_live(row: Optional[T], as_of: datetime) -> bool:
    if row is None:
        return False
    if row.deleted_on is None:
        return True
    deleted_on = row.deleted_on
    # SQLite hands timestamps back without tzinfo.
    if deleted_on.tzinfo is None and as_of.tzinfo is not None:
        as_of = as_of.replace(tzinfo=None)
    return deleted_on > as_of


def insert_version(db: Session, model: type[T], fields: dict[str, Any], created_on: datetime) -> T:
    row = model(**fields, created_on=created_on)
    db.add(row)
    db.flush()
    return row


def copy_forward(db: Session, row: T, created_on: datetime, **changes: Any) -> T:
    """Write a new revision of ``row`` with ``changes`` applied on top of its fields."""
    names = MapListMeta.VERSIONED_FIELDS if isinstance(row, MapListMeta) else _COMPLETION_META_FIELDS
    fields = {name: getattr(row, name) for name in names}
    fields.update(changes)
    return insert_version(db, type(row), fields, created_on)


def version_count(db: Session, model: type[T]) -> int:
    return db.query(func.count(model.id)).scalar() or 0


def history(db: Session, model: type[T], key: Any) -> list[T]:
    """Every revision of ``key``, oldest first."""
    key_column = getattr(model, _KEY_COLUMNS[model])
    return (
        db.query(model)
        .filter(key_column == key)
        .order_by(model.created_on.asc(), model.id.asc())
        .all()
    )
