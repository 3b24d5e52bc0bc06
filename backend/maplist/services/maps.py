"""Map lifecycle on top of the append-only ``map_list_meta`` table.

Which list-specific fields a user may set depends on the formats they hold a
permission on. Creating, moving or deleting a ranked map reranks the others in
the same session, so the caller's commit persists both or neither.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from maplist.core.errors import NotFound, ValidationError
from maplist.models.format import (
    BEST_OF_THE_BEST,
    EXPERT_LIST,
    MAPLIST,
    MAPLIST_ALL_VERSIONS,
    NOSTALGIA_PACK,
)
from maplist.models.map import Map, MapListMeta
from maplist.models.user import User
from maplist.services.config_vars import load_vars
from maplist.services.permissions import allows_format, require_any_format
from maplist.services.placements import DIMENSIONS, changed_moves, rerank_placements
from maplist.services.versioning import active_query, copy_forward, get_active, insert_version, is_live

logger = logging.getLogger(__name__)

# List-specific field -> the format whose permissions govern it.
FIELD_FORMATS = {
    "placement_curver": MAPLIST,
    "placement_allver": MAPLIST_ALL_VERSIONS,
    "difficulty": EXPERT_LIST,
    "botb_difficulty": BEST_OF_THE_BEST,
    "remake_of": NOSTALGIA_PACK,
}

FORMAT_SORT_FIELDS = {
    MAPLIST: "placement_curver",
    MAPLIST_ALL_VERSIONS: "placement_allver",
    EXPERT_LIST: "difficulty",
    BEST_OF_THE_BEST: "botb_difficulty",
    NOSTALGIA_PACK: "remake_of",
}


def is_valid_map(meta: MapListMeta, format_id: int, map_count: Optional[int]) -> bool:
    """Whether ``meta`` carries what ``format_id`` needs to list the map."""
    if format_id in (MAPLIST, MAPLIST_ALL_VERSIONS):
        placement = getattr(meta, FORMAT_SORT_FIELDS[format_id])
        return placement is not None and map_count is not None and 1 <= placement <= map_count
    if format_id == EXPERT_LIST:
        return meta.difficulty is not None and meta.difficulty >= 0
    if format_id == BEST_OF_THE_BEST:
        return meta.botb_difficulty is not None and meta.botb_difficulty >= 0
    if format_id == NOSTALGIA_PACK:
        return meta.remake_of is not None
    return False


def valid_maps(db: Session, format_id: int, as_of: datetime) -> dict[str, MapListMeta]:
    """Live maps listed by ``format_id`` as of ``as_of``, keyed by code."""
    map_count = None
    if format_id in (MAPLIST, MAPLIST_ALL_VERSIONS):
        map_count = load_vars(db, ["map_count"], format_id).get("map_count")
    metas = active_query(db, MapListMeta, as_of).all()
    return {m.code: m for m in metas if is_valid_map(m, format_id, map_count)}


def list_maps(db: Session, format_id: int, as_of: datetime) -> list[MapListMeta]:
    if format_id not in FORMAT_SORT_FIELDS:
        raise NotFound(f"Format {format_id} has no map list")
    field = FORMAT_SORT_FIELDS[format_id]
    return sorted(valid_maps(db, format_id, as_of).values(), key=lambda m: (getattr(m, field), m.code))


def get_map(db: Session, code: str, as_of: datetime) -> tuple[Map, MapListMeta]:
    meta = get_active(db, MapListMeta, code, as_of)
    if not is_live(meta, as_of):
        raise NotFound(f"Map {code} not found")
    return meta.map, meta


def _ranked_count(db: Session, column_name: str, ignore_code: str, as_of: datetime) -> int:
    column = getattr(MapListMeta, column_name)
    return (
        active_query(db, MapListMeta, as_of)
        .filter(column.isnot(None), MapListMeta.code != ignore_code)
        .with_entities(func.count(MapListMeta.id))
        .scalar()
        or 0
    )


def _validate_fields(db: Session, code: str, fields: dict[str, Any], as_of: datetime) -> None:
    errors = {}
    for column_name in DIMENSIONS.values():
        placement = fields.get(column_name)
        if placement is None:
            continue
        # The mover may take any rank from 1 to one past the other ranked maps.
        highest = _ranked_count(db, column_name, code, as_of) + 1
        if not 1 <= placement <= highest:
            errors[column_name] = f"Must be between 1 and {highest}"
    for column_name in ("difficulty", "botb_difficulty"):
        value = fields.get(column_name)
        if value is not None and value < -1:
            errors[column_name] = "Must be -1 or more"
    if errors:
        raise ValidationError("Invalid map fields", errors)


def _list_fields(
    data: dict[str, Any],
    permitted: set[Optional[int]],
    previous: Optional[MapListMeta],
) -> dict[str, Any]:
    """List-specific fields for a new revision.

    Fields on formats the user holds no permission on keep their previous
    value, or stay empty for a new map.
    """
    fields = {}
    for column_name, format_id in FIELD_FORMATS.items():
        if allows_format(permitted, format_id) and column_name in data:
            fields[column_name] = data[column_name]
        else:
            fields[column_name] = getattr(previous, column_name) if previous is not None else None
    return fields


def _heros(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return ";".join(value)


def create_map(db: Session, user: User, data: dict[str, Any], now: datetime) -> MapListMeta:
    permitted = require_any_format(db, user.id, "create:map")

    code = data["code"]
    if db.query(Map).filter(Map.code == code).first():
        raise ValidationError("Map already exists", {"code": f"Map {code} already exists"})

    fields = _list_fields(data, permitted, None)
    _validate_fields(db, code, fields, now)

    db.add(Map(code=code, name=data["name"], map_preview_url=data.get("map_preview_url")))
    db.flush()
    meta = insert_version(
        db,
        MapListMeta,
        {"code": code, "optimal_heros": _heros(data.get("optimal_heros")), "deleted_on": None, **fields},
        now,
    )
    rerank_placements(db, changed_moves(None, meta), code, now)

    logger.info("Map %s created by user=%s", code, user.id)
    return meta


def update_map(db: Session, user: User, code: str, data: dict[str, Any], now: datetime) -> MapListMeta:
    permitted = require_any_format(db, user.id, "edit:map")

    current = get_active(db, MapListMeta, code, now)
    if not is_live(current, now):
        raise NotFound(f"Map {code} not found")

    fields = _list_fields(data, permitted, current)
    _validate_fields(db, code, fields, now)

    map_row = current.map
    if data.get("name") is not None:
        map_row.name = data["name"]
    if "map_preview_url" in data:
        map_row.map_preview_url = data["map_preview_url"]

    changes = dict(fields)
    if "optimal_heros" in data:
        changes["optimal_heros"] = _heros(data["optimal_heros"])
    meta = copy_forward(db, current, now, **changes)
    rerank_placements(db, changed_moves(current, meta), code, now)

    logger.info("Map %s updated by user=%s", code, user.id)
    return meta


def delete_map(db: Session, user: User, code: str, now: datetime) -> MapListMeta:
    require_any_format(db, user.id, "delete:map")

    current = get_active(db, MapListMeta, code, now)
    if not is_live(current, now):
        raise NotFound(f"Map {code} not found")

    meta = copy_forward(db, current, now, deleted_on=now)
    rerank_placements(db, changed_moves(current, meta), code, now)

    logger.info("Map %s deleted by user=%s", code, user.id)
    return meta
