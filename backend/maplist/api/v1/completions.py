import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from maplist.api.v1.users import get_current_user, get_db, get_notifier, resolve_timestamp
from maplist.core.errors import ValidationError
from maplist.models.completion import CompletionMeta
from maplist.models.user import User
from maplist.schemas.completion import (
    CompletionCreateRequest,
    CompletionDetail,
    CompletionPage,
    CompletionUpdateRequest,
    LccIn,
)
from maplist.services.completions import (
    PENDING_PER_PAGE,
    accept_completion,
    create_completion,
    delete_completion,
    get_completion,
    notify_submission,
    pending_completions,
    recent_completions,
    update_completion,
)
from maplist.services.leaderboard import is_current_lcc


logger = logging.getLogger(__name__)

router = APIRouter()


def completion_detail(db: Session, meta: CompletionMeta, as_of: datetime) -> CompletionDetail:
    completion = meta.completion
    return CompletionDetail(
        id=completion.id,
        map=completion.map_code,
        format_id=meta.format_id,
        players=sorted(meta.player_ids),
        black_border=meta.black_border,
        no_geraldo=meta.no_geraldo,
        lcc=LccIn(leftover=meta.lcc.leftover) if meta.lcc else None,
        is_current_lcc=is_current_lcc(db, meta, completion.map_code, as_of),
        accepted_by_id=meta.accepted_by_id,
        submitted_on=completion.submitted_on,
        subm_notes=completion.subm_notes,
        video_proof_url=[p.proof_url for p in completion.proofs],
        created_on=meta.created_on,
    )


def _notify_accepted(db: Session, meta: CompletionMeta, notifier) -> None:
    if notify_submission(db, meta.completion, meta.format_id, notifier):
        db.commit()
        logger.info("Submission message updated for completion %s", meta.completion_id)


def parse_formats(formats: Optional[str]) -> Optional[list[int]]:
    """Comma separated format ids, or ``None`` when the filter is absent."""
    if formats is None:
        return None
    parts = [part.strip() for part in formats.split(",") if part.strip()]
    if not all(part.isdigit() for part in parts):
        raise ValidationError("Invalid formats", {"formats": "Must be a comma separated list of format ids"})
    return [int(part) for part in parts]


@router.get("/recent", response_model=list[CompletionDetail])
def get_recent_completions(
    formats: Optional[str] = Query(default=None),
    as_of: datetime = Depends(resolve_timestamp),
    db: Session = Depends(get_db),
) -> list[CompletionDetail]:
    metas = recent_completions(db, as_of, parse_formats(formats))
    return [completion_detail(db, meta, as_of) for meta in metas]


@router.get("/unapproved", response_model=CompletionPage)
def get_unapproved_completions(
    formats: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=PENDING_PER_PAGE, ge=1, le=100),
    as_of: datetime = Depends(resolve_timestamp),
    db: Session = Depends(get_db),
) -> CompletionPage:
    metas, total = pending_completions(db, as_of, parse_formats(formats), page=page, per_page=per_page)
    return CompletionPage(
        completions=[completion_detail(db, meta, as_of) for meta in metas],
        total=total,
        pages=math.ceil(total / per_page),
    )


@router.get("/{completion_id}", response_model=CompletionDetail)
def get_completion_detail(
    completion_id: int,
    as_of: datetime = Depends(resolve_timestamp),
    db: Session = Depends(get_db),
) -> CompletionDetail:
    return completion_detail(db, get_completion(db, completion_id, as_of), as_of)


@router.post("", response_model=CompletionDetail, status_code=status.HTTP_201_CREATED)
def post_completion(
    payload: CompletionCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CompletionDetail:
    now = datetime.now(timezone.utc)
    meta = create_completion(db, current_user, payload.model_dump(), now)
    db.commit()
    return completion_detail(db, meta, now)


@router.put("/{completion_id}", response_model=CompletionDetail)
def put_completion(
    completion_id: int,
    payload: CompletionUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier=Depends(get_notifier),
) -> CompletionDetail:
    now = datetime.now(timezone.utc)
    meta, newly_accepted = update_completion(db, current_user, completion_id, payload.model_dump(), now)
    db.commit()
    if newly_accepted:
        _notify_accepted(db, meta, notifier)
    return completion_detail(db, meta, now)


@router.put("/{completion_id}/accept", response_model=CompletionDetail)
def put_completion_accept(
    completion_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier=Depends(get_notifier),
) -> CompletionDetail:
    now = datetime.now(timezone.utc)
    meta = accept_completion(db, current_user, completion_id, now)
    db.commit()
    _notify_accepted(db, meta, notifier)
    return completion_detail(db, meta, now)


@router.delete("/{completion_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_completion(
    completion_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    delete_completion(db, current_user, completion_id, datetime.now(timezone.utc))
    db.commit()
