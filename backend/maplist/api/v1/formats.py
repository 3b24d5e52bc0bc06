from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from maplist.api.v1.users import get_current_user, get_db, resolve_timestamp
from maplist.models.format import Format
from maplist.models.user import User
from maplist.schemas.format import (
    FormatDetail,
    FormatItem,
    FormatUpdateRequest,
    LeaderboardItem,
    LeaderboardResponse,
    LeaderboardUser,
    PageMetaResponse,
)
from maplist.services.formats import get_format_settings, update_format
from maplist.services.leaderboard import DEFAULT_PER_PAGE, MAX_PER_PAGE, build_leaderboard


router = APIRouter()


@router.get("", response_model=list[FormatItem])
def list_formats(db: Session = Depends(get_db)) -> list[FormatItem]:
    formats = db.query(Format).order_by(Format.id.asc()).all()
    return [FormatItem.model_validate(f) for f in formats]


@router.get("/{format_id}", response_model=FormatDetail)
def get_format_detail(
    format_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FormatDetail:
    return FormatDetail.model_validate(get_format_settings(db, current_user, format_id))


@router.put("/{format_id}", response_model=FormatDetail)
def put_format(
    format_id: int,
    payload: FormatUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FormatDetail:
    fmt = update_format(db, current_user, format_id, payload.model_dump())
    db.commit()
    db.refresh(fmt)
    return FormatDetail.model_validate(fmt)


@router.get("/{format_id}/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(
    format_id: int,
    value: str = Query(default="points"),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
    as_of: datetime = Depends(resolve_timestamp),
    db: Session = Depends(get_db),
) -> LeaderboardResponse:
    entries, meta = build_leaderboard(db, format_id, value, as_of, page=page, per_page=per_page)

    user_ids = [e.user_id for e in entries]
    names = dict(db.query(User.id, User.name).filter(User.id.in_(user_ids)).all()) if user_ids else {}

    return LeaderboardResponse(
        data=[
            LeaderboardItem(
                user=LeaderboardUser(id=e.user_id, name=names.get(e.user_id, "")),
                score=e.score,
                placement=e.placement,
            )
            for e in entries
        ],
        meta=PageMetaResponse(**meta.as_dict()),
    )
