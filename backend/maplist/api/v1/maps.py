from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from maplist.api.v1.completions import completion_detail
from maplist.api.v1.users import get_current_user, get_db, get_notifier, resolve_timestamp
from maplist.models.map import Map, MapListMeta
from maplist.models.user import User
from maplist.schemas.completion import CompletionDetail, CompletionSubmitRequest
from maplist.schemas.map import MapCreateRequest, MapDetail, MapListItem, MapUpdateRequest
from maplist.services.completions import announce_submission, submit_completion
from maplist.services.maps import FORMAT_SORT_FIELDS, create_map, delete_map, get_map, list_maps, update_map
from maplist.services.verifications import verified_map_codes


router = APIRouter()


def _detail(db: Session, map_row: Map, meta: MapListMeta) -> MapDetail:
    return MapDetail(
        code=map_row.code,
        name=map_row.name,
        map_preview_url=map_row.map_preview_url,
        placement_curver=meta.placement_curver,
        placement_allver=meta.placement_allver,
        difficulty=meta.difficulty,
        botb_difficulty=meta.botb_difficulty,
        remake_of=meta.remake_of,
        optimal_heros=meta.optimal_heros.split(";") if meta.optimal_heros else [],
        is_verified=map_row.code in verified_map_codes(db, [map_row.code]),
    )


@router.get("", response_model=list[MapListItem])
def get_maps(
    format: int = Query(default=1),
    as_of: datetime = Depends(resolve_timestamp),
    db: Session = Depends(get_db),
) -> list[MapListItem]:
    metas = list_maps(db, format, as_of)
    verified = verified_map_codes(db, [m.code for m in metas])
    field = FORMAT_SORT_FIELDS[format]
    return [
        MapListItem(
            code=meta.code,
            name=meta.map.name,
            placement=getattr(meta, field),
            is_verified=meta.code in verified,
            map_preview_url=meta.map.map_preview_url,
        )
        for meta in metas
    ]


@router.post("", response_model=MapDetail, status_code=status.HTTP_201_CREATED)
def post_map(
    payload: MapCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MapDetail:
    meta = create_map(db, current_user, payload.model_dump(), datetime.now(timezone.utc))
    db.commit()
    db.refresh(meta)
    return _detail(db, meta.map, meta)


@router.get("/{code}", response_model=MapDetail)
def get_map_detail(
    code: str,
    as_of: datetime = Depends(resolve_timestamp),
    db: Session = Depends(get_db),
) -> MapDetail:
    map_row, meta = get_map(db, code, as_of)
    return _detail(db, map_row, meta)


@router.put("/{code}", response_model=MapDetail)
def put_map(
    code: str,
    payload: MapUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MapDetail:
    meta = update_map(db, current_user, code, payload.model_dump(exclude_unset=True), datetime.now(timezone.utc))
    db.commit()
    db.refresh(meta)
    return _detail(db, meta.map, meta)


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
def remove_map(
    code: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    delete_map(db, current_user, code, datetime.now(timezone.utc))
    db.commit()


@router.post(
    "/{code}/completions/submit",
    response_model=CompletionDetail,
    status_code=status.HTTP_201_CREATED,
)
def submit_map_completion(
    code: str,
    payload: CompletionSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier=Depends(get_notifier),
) -> CompletionDetail:
    now = datetime.now(timezone.utc)
    meta = submit_completion(db, current_user, code, payload.model_dump(), now)
    db.commit()
    if announce_submission(db, meta, current_user, notifier):
        db.commit()
    return completion_detail(db, meta, now)
