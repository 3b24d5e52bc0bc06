"""Leaderboards derived on demand from the active completion versions.

Every figure is computed as of a timestamp, reading only rows created at or
before it. A completion counts for each of its players.
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from sqlalchemy.orm import Session

from maplist.core.errors import NotFound, ValidationError
from maplist.models.completion import Completion, CompletionMeta, CompPlayer, LeastCostChimps
from maplist.models.format import (
    EXPERT_LIST,
    LEADERBOARD_TYPES,
    MAPLIST,
    MAPLIST_ALL_VERSIONS,
    Format,
    FormatRuleSubset,
)
from maplist.models.map import MapListMeta
from maplist.services.config_vars import difficulty_vars, load_vars
from maplist.services.maps import valid_maps
from maplist.services.versioning import active_query

Score = Union[int, float]

RANK_CURVE_FORMATS = {
    MAPLIST: "placement_curver",
    MAPLIST_ALL_VERSIONS: "placement_allver",
}
POINTS_FORMATS = (MAPLIST, MAPLIST_ALL_VERSIONS, EXPERT_LIST)

DEFAULT_PER_PAGE = 50
MAX_PER_PAGE = 100


@dataclass
class Run:
    """One player's share of an accepted completion version."""

    meta_id: int
    completion_id: int
    map_code: str
    format_id: int
    user_id: int
    black_border: bool
    no_geraldo: bool
    lcc_id: Optional[int]
    leftover: Optional[int]
    submitted_on: datetime


@dataclass
class MapFlags:
    black_border: bool = False
    no_geraldo: bool = False
    combo_in_same_run: bool = False
    current_lcc: bool = False


@dataclass
class LeaderboardEntry:
    user_id: int
    score: Score
    placement: int = 0


@dataclass
class PageMeta:
    current_page: int
    last_page: int
    per_page: int
    total: int

    def as_dict(self) -> dict[str, int]:
        return {
            "current_page": self.current_page,
            "last_page": self.last_page,
            "per_page": self.per_page,
            "total": self.total,
        }


@dataclass
class _LccCandidate:
    lcc_id: int
    leftover: int
    submitted_on: datetime
    completion_id: int
    meta_id: int

    def sort_key(self):
        return (-self.leftover, self.submitted_on, self.completion_id)


def round_half_up(value: float, digits: int) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def rank_curve_points(
    placement: Optional[int],
    *,
    top: float,
    bottom: float,
    slope: float,
    map_count: int,
    decimal_digits: int = 0,
) -> float:
    """Points of the map at ``placement`` on a ranked list of ``map_count`` maps.

    The top map is worth ``top``, the last ``bottom``, with ``slope`` bending
    the curve in between. Unranked maps are worth nothing.
    """
    if placement is None or not 1 <= placement <= map_count:
        return 0.0
    if map_count == 1:
        return round_half_up(top, decimal_digits)
    exponent = (1 + (1 - placement) / (map_count - 1)) ** slope
    return round_half_up(bottom * (top / bottom) ** exponent, decimal_digits)


def maplist_map_score(base: float, flags: MapFlags, *, multi_bb: float, multi_gerry: float, extra_lcc: float) -> float:
    if flags.combo_in_same_run:
        multiplier = multi_bb * multi_gerry
    else:
        # floored at 1: an unflagged run still scores the base points
        multiplier = max(
            (multi_bb if flags.black_border else 0) + (multi_gerry if flags.no_geraldo else 0),
            1,
        )
    return base * multiplier + (extra_lcc if flags.current_lcc else 0)


def expert_map_score(base: float, flags: MapFlags, *, bb_multi: float, nogerry_extra: float, lcc_extra: float) -> float:
    return (
        base * (bb_multi if flags.black_border else 1)
        + (nogerry_extra if flags.no_geraldo else 0)
        + (lcc_extra if flags.current_lcc else 0)
    )


def assign_placements(scores: dict[int, Score]) -> list[LeaderboardEntry]:
    """Sort by score then user id, both descending, with competition ranking.

    Tied scores share a placement and the next score skips the slots they
    used: ``[10, 10, 7]`` places ``[1, 1, 3]``.
    """
    entries = [LeaderboardEntry(user_id=user_id, score=score) for user_id, score in scores.items()]
    entries.sort(key=lambda e: (e.score, e.user_id), reverse=True)
    previous = None
    for position, entry in enumerate(entries, start=1):
        if previous is not None and entry.score == previous.score:
            entry.placement = previous.placement
        else:
            entry.placement = position
        previous = entry
    return entries


def paginate(entries: list, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> tuple[list, PageMeta]:
    if page < 1:
        raise ValidationError("Invalid page", {"page": "Must be at least 1"})
    if not 1 <= per_page <= MAX_PER_PAGE:
        raise ValidationError("Invalid page size", {"per_page": f"Must be between 1 and {MAX_PER_PAGE}"})
    total = len(entries)
    last_page = max(1, math.ceil(total / per_page))
    start = (page - 1) * per_page
    return entries[start:start + per_page], PageMeta(
        current_page=page,
        last_page=last_page,
        per_page=per_page,
        total=total,
    )


def eligible_formats(db: Session, format_id: int) -> set[int]:
    """``format_id`` plus every format whose completions also count for it."""
    children = db.query(FormatRuleSubset.format_child).filter(FormatRuleSubset.format_parent == format_id).all()
    return {format_id} | {child for (child,) in children}


def accepted_runs(
    db: Session,
    as_of: datetime,
    format_ids: Optional[set[int]] = None,
    user_id: Optional[int] = None,
) -> list[Run]:
    """One ``Run`` per player of every active, accepted, live completion version."""
    query = (
        active_query(db, CompletionMeta, as_of)
        .join(Completion, Completion.id == CompletionMeta.completion_id)
        .join(CompPlayer, CompPlayer.run == CompletionMeta.id)
        .outerjoin(LeastCostChimps, LeastCostChimps.id == CompletionMeta.lcc_id)
        .filter(CompletionMeta.accepted_by_id.isnot(None))
    )
    if format_ids is not None:
        query = query.filter(CompletionMeta.format_id.in_(format_ids))
    if user_id is not None:
        query = query.filter(CompPlayer.user_id == user_id)

    rows = query.with_entities(
        CompletionMeta.id,
        CompletionMeta.completion_id,
        Completion.map_code,
        CompletionMeta.format_id,
        CompPlayer.user_id,
        CompletionMeta.black_border,
        CompletionMeta.no_geraldo,
        CompletionMeta.lcc_id,
        LeastCostChimps.leftover,
        Completion.submitted_on,
    ).all()
    return [Run(*row) for row in rows]


def current_lccs(
    db: Session,
    as_of: datetime,
    map_codes: Optional[set[str]] = None,
) -> dict[tuple[str, int], _LccCandidate]:
    """Best LCC of every ``(map_code, format_id)``.

    Highest leftover wins, then the earliest submission, then the lowest
    completion id.
    """
    query = (
        active_query(db, CompletionMeta, as_of)
        .join(Completion, Completion.id == CompletionMeta.completion_id)
        .join(LeastCostChimps, LeastCostChimps.id == CompletionMeta.lcc_id)
        .filter(CompletionMeta.accepted_by_id.isnot(None))
    )
    if map_codes is not None:
        query = query.filter(Completion.map_code.in_(map_codes))
    rows = query.with_entities(
        CompletionMeta.id,
        CompletionMeta.completion_id,
        Completion.map_code,
        CompletionMeta.format_id,
        CompletionMeta.lcc_id,
        LeastCostChimps.leftover,
        Completion.submitted_on,
    ).all()

    best: dict[tuple[str, int], _LccCandidate] = {}
    for meta_id, completion_id, map_code, format_id, lcc_id, leftover, submitted_on in rows:
        candidate = _LccCandidate(lcc_id, leftover, submitted_on, completion_id, meta_id)
        key = (map_code, format_id)
        current = best.get(key)
        if current is None or candidate.sort_key() < current.sort_key():
            best[key] = candidate
    return best


def is_current_lcc(db: Session, meta: CompletionMeta, map_code: str, as_of: datetime) -> bool:
    if meta.lcc_id is None:
        return False
    best = current_lccs(db, as_of, {map_code}).get((map_code, meta.format_id))
    return best is not None and best.lcc_id == meta.lcc_id


def fold_runs(runs: list[Run], lccs: dict[tuple[str, int], _LccCandidate]) -> dict[tuple[int, str], MapFlags]:
    """Fold every run of a user on a map into one set of flags."""
    flags: dict[tuple[int, str], MapFlags] = defaultdict(MapFlags)
    for run in runs:
        f = flags[(run.user_id, run.map_code)]
        f.black_border = f.black_border or run.black_border
        f.no_geraldo = f.no_geraldo or run.no_geraldo
        f.combo_in_same_run = f.combo_in_same_run or (run.black_border and run.no_geraldo)
        best = lccs.get((run.map_code, run.format_id))
        if run.lcc_id is not None and best is not None and best.lcc_id == run.lcc_id:
            f.current_lcc = True
    return flags


def _points_scores(db: Session, format_id: int, as_of: datetime) -> dict[int, Score]:
    maps = valid_maps(db, format_id, as_of)
    runs = [r for r in accepted_runs(db, as_of, eligible_formats(db, format_id)) if r.map_code in maps]
    flags = fold_runs(runs, current_lccs(db, as_of, set(maps)))
    scores: dict[int, Score] = defaultdict(float)

    if format_id in RANK_CURVE_FORMATS:
        cfg = load_vars(db, None, format_id)
        placement_field = RANK_CURVE_FORMATS[format_id]
        base_points = {
            code: rank_curve_points(
                getattr(meta, placement_field),
                top=cfg["points_top_map"],
                bottom=cfg["points_bottom_map"],
                slope=cfg["formula_slope"],
                map_count=cfg["map_count"],
                decimal_digits=cfg["decimal_digits"],
            )
            for code, meta in maps.items()
        }
        for (user_id, map_code), f in flags.items():
            scores[user_id] += maplist_map_score(
                base_points[map_code],
                f,
                multi_bb=cfg["points_multi_bb"],
                multi_gerry=cfg["points_multi_gerry"],
                extra_lcc=cfg["points_extra_lcc"],
            )
        return dict(scores)

    cfg = load_vars(db, ["exp_bb_multi", "exp_lcc_extra"], format_id)
    tier_points = difficulty_vars(db, "exp_points_", format_id)
    tier_nogerry = difficulty_vars(db, "exp_nogerry_points_", format_id)
    for (user_id, map_code), f in flags.items():
        tier = maps[map_code].difficulty
        # Tiers without configured points do not score.
        if tier not in tier_points:
            continue
        scores[user_id] += expert_map_score(
            tier_points[tier],
            f,
            bb_multi=cfg["exp_bb_multi"],
            nogerry_extra=tier_nogerry.get(tier, 0),
            lcc_extra=cfg["exp_lcc_extra"],
        )
    return dict(scores)


def _count_scores(db: Session, format_id: int, value_type: str, as_of: datetime) -> dict[int, Score]:
    maps = valid_maps(db, format_id, as_of)
    formats = eligible_formats(db, format_id)
    runs = [r for r in accepted_runs(db, as_of, formats) if r.map_code in maps]
    counted: dict[int, set[str]] = defaultdict(set)

    if value_type == "lccs":
        lccs = current_lccs(db, as_of, set(maps))
        best_per_map: dict[str, _LccCandidate] = {}
        for (map_code, lcc_format), candidate in lccs.items():
            if lcc_format not in formats:
                continue
            current = best_per_map.get(map_code)
            if current is None or candidate.sort_key() < current.sort_key():
                best_per_map[map_code] = candidate
        for run in runs:
            best = best_per_map.get(run.map_code)
            if best is not None and run.meta_id == best.meta_id:
                counted[run.user_id].add(run.map_code)
    else:
        for run in runs:
            if getattr(run, value_type):
                counted[run.user_id].add(run.map_code)

    return {user_id: len(codes) for user_id, codes in counted.items()}


def has_leaderboard(format_id: int, value_type: str) -> bool:
    if value_type == "points":
        return format_id in POINTS_FORMATS
    return value_type in LEADERBOARD_TYPES


def compute_scores(db: Session, format_id: int, value_type: str, as_of: datetime) -> dict[int, Score]:
    if value_type not in LEADERBOARD_TYPES:
        raise ValidationError("Invalid leaderboard type", {"value": f"Must be one of {', '.join(LEADERBOARD_TYPES)}"})
    if not db.query(Format.id).filter(Format.id == format_id).first():
        raise NotFound(f"Format {format_id} not found")
    if value_type == "points":
        if format_id not in POINTS_FORMATS:
            raise NotFound(f"Format {format_id} has no points leaderboard")
        return _points_scores(db, format_id, as_of)
    return _count_scores(db, format_id, value_type, as_of)


def ranked_leaderboard(db: Session, format_id: int, value_type: str, as_of: datetime) -> list[LeaderboardEntry]:
    return assign_placements(compute_scores(db, format_id, value_type, as_of))


def build_leaderboard(
    db: Session,
    format_id: int,
    value_type: str,
    as_of: datetime,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
) -> tuple[list[LeaderboardEntry], PageMeta]:
    return paginate(ranked_leaderboard(db, format_id, value_type, as_of), page, per_page)


def user_medals(db: Session, user_id: int, as_of: datetime) -> dict[str, int]:
    """Per-map medal counts of a user over every format."""
    live_maps = {code for (code,) in active_query(db, MapListMeta, as_of).with_entities(MapListMeta.code).all()}
    runs = [r for r in accepted_runs(db, as_of, user_id=user_id) if r.map_code in live_maps]
    flags = fold_runs(runs, current_lccs(db, as_of, {r.map_code for r in runs}))
    return {
        "wins": len(flags),
        "black_border": sum(1 for f in flags.values() if f.black_border),
        "no_geraldo": sum(1 for f in flags.values() if f.no_geraldo),
        "current_lcc": sum(1 for f in flags.values() if f.current_lcc),
    }
