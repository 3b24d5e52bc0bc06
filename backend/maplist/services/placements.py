"""Keeps the two map rankings contiguous when one map changes rank.

A map moving from rank ``from_pos`` to ``to_pos`` (either may be ``None`` for
an insertion or a removal) shifts every other live map in between by one.
Shifted maps get a new ``map_list_meta`` revision dated ``as_of``; existing
revisions are never touched. Nothing here commits: callers write the moving
map and call ``rerank_placements`` inside one transaction.
"""

import logging
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from maplist.core.errors import ConflictingRank, ValidationError
from maplist.models.map import MapListMeta
from maplist.services.versioning import active_query, copy_forward

logger = logging.getLogger(__name__)

DIMENSIONS = {
    "curver": "placement_curver",
    "allver": "placement_allver",
}

Move = tuple[Optional[int], Optional[int]]


def shift_window(from_pos: Optional[int], to_pos: Optional[int]) -> Optional[tuple[int, Optional[int], int]]:
    """Return ``(low, high, delta)`` for a move; ``high`` None means unbounded.

    ``None`` when nothing has to shift. Placements in ``[low, high]`` move by
    ``delta``.
    """
    if from_pos is None and to_pos is None:
        return None
    if from_pos is not None and from_pos == to_pos:
        raise ConflictingRank(f"Cannot move a map from rank {from_pos} to the same rank")
    if from_pos is None:
        return to_pos, None, 1
    if to_pos is None:
        return from_pos + 1, None, -1
    if from_pos < to_pos:
        return from_pos + 1, to_pos, -1
    return to_pos, from_pos - 1, 1


def _validate(dimension: str, move: Move) -> None:
    if dimension not in DIMENSIONS:
        raise ValidationError("Unknown ranking dimension", {"dimension": f"Unknown dimension {dimension!r}"})
    for label, pos in zip(("from_pos", "to_pos"), move):
        if pos is not None and pos < 1:
            raise ValidationError("Placements start at 1", {f"{dimension}.{label}": "Must be at least 1"})


def rerank_placements(
    db: Session,
    moves: Mapping[str, Move],
    ignore_code: str,
    as_of: datetime,
) -> list[MapListMeta]:
    """Shift the other maps for every ``dimension -> (from_pos, to_pos)`` in ``moves``.

    A map affected in several dimensions gets a single new revision carrying
    all of its shifts. Returns the revisions written.
    """
    windows = {}
    for dimension, move in moves.items():
        _validate(dimension, move)
        window = shift_window(*move)
        if window is not None:
            windows[DIMENSIONS[dimension]] = window

    if not windows:
        return []

    conditions = []
    for column_name, (low, high, _delta) in windows.items():
        column = getattr(MapListMeta, column_name)
        condition = column >= low
        if high is not None:
            condition = and_(condition, column <= high)
        conditions.append(condition)

    affected = (
        active_query(db, MapListMeta, as_of)
        .filter(MapListMeta.code != ignore_code)
        .filter(or_(*conditions))
        .order_by(MapListMeta.code.asc())
        .all()
    )

    written: list[MapListMeta] = []
    for meta in affected:
        changes = {}
        for column_name, (low, high, delta) in windows.items():
            placement = getattr(meta, column_name)
            if placement is None or placement < low or (high is not None and placement > high):
                continue
            changes[column_name] = placement + delta
        if changes:
            written.append(copy_forward(db, meta, as_of, **changes))

    logger.info(
        "Reranked maps: moves=%s ignore_code=%s shifted=%d",
        dict(moves),
        ignore_code,
        len(written),
    )
    return written


def rerank(
    db: Session,
    dimension: str,
    from_pos: Optional[int],
    to_pos: Optional[int],
    ignore_code: str,
    as_of: datetime,
) -> list[MapListMeta]:
    return rerank_placements(db, {dimension: (from_pos, to_pos)}, ignore_code, as_of)


def changed_moves(before: Optional[MapListMeta], after: Optional[MapListMeta]) -> dict[str, Move]:
    """Moves implied by replacing ``before`` with ``after`` (either may be absent or deleted)."""
    moves = {}
    for dimension, column_name in DIMENSIONS.items():
        old = getattr(before, column_name) if before is not None and before.deleted_on is None else None
        new = getattr(after, column_name) if after is not None and after.deleted_on is None else None
        if old != new:
            moves[dimension] = (old, new)
    return moves
