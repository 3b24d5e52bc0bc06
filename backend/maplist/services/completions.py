"""Completion submission, review and listing.

Players submit runs that wait for staff review; staff can also record runs
directly. A completion's metadata is append-only like a map's: every edit,
acceptance or deletion writes a new ``completions_meta`` revision with its
own player list.
"""

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from maplist.clients.discord import PENDING_COLOR
from maplist.core.errors import NotFound, PermissionDenied, ValidationError
from maplist.models.completion import Completion, CompletionMeta, CompletionProof, CompPlayer, LeastCostChimps
from maplist.models.format import EXPERT_LIST, MAPLIST, Format
from maplist.models.map import MapListMeta
from maplist.models.user import User
from maplist.services.maps import valid_maps
from maplist.services.permissions import allows_format, formats_with_permission, has_permission, require_permission
from maplist.services.users import ensure_users
from maplist.services.verifications import record_verifications
from maplist.services.versioning import active_query, copy_forward, get_active, insert_version, is_live

logger = logging.getLogger(__name__)

RECENT_FORMATS = (MAPLIST, EXPERT_LIST)
RECENT_LIMIT = 5
PENDING_PER_PAGE = 50


class Notifier(Protocol):
    def update_message(self, webhook_url: str, message_id: str, payload: dict[str, Any], fail: bool = False) -> bool:
        ...

    def post_message(self, webhook_url: str, payload: dict[str, Any]) -> Optional[str]:
        ...


def get_completion(db: Session, completion_id: int, as_of: datetime) -> CompletionMeta:
    meta = get_active(db, CompletionMeta, completion_id, as_of)
    if not is_live(meta, as_of):
        raise NotFound(f"Completion {completion_id} not found")
    return meta


def _require_on_format(db: Session, user: User, permission: str, format_id: int) -> None:
    if not allows_format(formats_with_permission(db, user.id, permission), format_id):
        raise PermissionDenied(permission, format_id)


def _validate_payload(db: Session, user: User, data: dict[str, Any], now: datetime) -> list[int]:
    players = list(dict.fromkeys(data.get("players") or []))
    if not players:
        raise ValidationError("A completion needs players", {"players": "At least one player is required"})
    if user.id in players:
        raise ValidationError(
            "You cannot submit a completion that includes yourself.",
            {"players": "Cannot include yourself"},
        )
    if not db.query(Format.id).filter(Format.id == data["format_id"]).first():
        raise ValidationError("Unknown format", {"format_id": f"Format {data['format_id']} does not exist"})
    lcc = data.get("lcc")
    if lcc is not None and lcc.get("leftover", -1) < 0:
        raise ValidationError("Invalid LCC", {"lcc.leftover": "Must be 0 or more"})
    ensure_users(db, players)
    return players


def _new_lcc(db: Session, lcc: Optional[dict[str, Any]]) -> Optional[int]:
    if lcc is None:
        return None
    row = LeastCostChimps(leftover=lcc["leftover"])
    db.add(row)
    db.flush()
    return row.id


def _attach_players(db: Session, meta: CompletionMeta, player_ids: list[int]) -> None:
    for user_id in player_ids:
        db.add(CompPlayer(run=meta.id, user_id=user_id))
    db.flush()
    db.refresh(meta)


def create_completion(db: Session, user: User, data: dict[str, Any], now: datetime) -> CompletionMeta:
    """Record a completion on behalf of its players; it is accepted by its creator."""
    format_id = data["format_id"]
    _require_on_format(db, user, "edit:completion", format_id)
    players = _validate_payload(db, user, data, now)

    map_meta = get_active(db, MapListMeta, data["map"], now)
    if not is_live(map_meta, now):
        raise NotFound(f"Map {data['map']} not found")

    completion = Completion(map_code=data["map"], submitted_on=now, subm_notes=data.get("subm_notes"))
    db.add(completion)
    db.flush()

    meta = insert_version(
        db,
        CompletionMeta,
        {
            "completion_id": completion.id,
            "format_id": format_id,
            "black_border": bool(data.get("black_border")),
            "no_geraldo": bool(data.get("no_geraldo")),
            "lcc_id": _new_lcc(db, data.get("lcc")),
            "accepted_by_id": user.id,
            "deleted_on": None,
        },
        now,
    )
    _attach_players(db, meta, players)
    record_verifications(db, completion.map_code, format_id, players)

    logger.info("Completion %s created on map %s by user=%s", completion.id, completion.map_code, user.id)
    return meta


def submit_completion(db: Session, user: User, map_code: str, data: dict[str, Any], now: datetime) -> CompletionMeta:
    """File a run of ``user`` for staff review. The caller commits."""
    format_id = data["format_id"]
    fmt = db.get(Format, format_id)
    if fmt is None:
        raise ValidationError("Unknown format", {"format_id": f"Format {format_id} does not exist"})
    require_permission(db, user.id, format_id, "create:completion_submission")

    lcc = data.get("lcc")
    if fmt.run_submission_status == "closed":
        raise ValidationError("Submissions are closed", {"format_id": "This format is not accepting submissions"})
    if fmt.run_submission_status == "lcc_only" and lcc is None:
        raise ValidationError("Submissions are LCC only", {"lcc": "This format only accepts LCC runs"})

    map_meta = get_active(db, MapListMeta, map_code, now)
    if not is_live(map_meta, now):
        raise NotFound(f"Map {map_code} not found")
    if map_code not in valid_maps(db, format_id, now):
        raise ValidationError("Map not on this list", {"map": f"Map {map_code} is not part of {fmt.name}"})

    proofs = [str(url) for url in data.get("video_proof_url") or []]
    if not proofs and has_permission(db, user.id, format_id, "require:completion_submission:recording"):
        raise ValidationError("A recording is required", {"video_proof_url": "You must submit a recording"})

    completion = Completion(
        map_code=map_code,
        submitted_on=now,
        subm_notes=data.get("subm_notes"),
        proofs=[CompletionProof(proof_url=url) for url in proofs],
    )
    db.add(completion)
    db.flush()

    meta = insert_version(
        db,
        CompletionMeta,
        {
            "completion_id": completion.id,
            "format_id": format_id,
            "black_border": bool(data.get("black_border")),
            "no_geraldo": bool(data.get("no_geraldo")),
            "lcc_id": _new_lcc(db, lcc),
            "accepted_by_id": None,
            "deleted_on": None,
        },
        now,
    )
    _attach_players(db, meta, [user.id])

    logger.info("Completion %s submitted on map %s by user=%s", completion.id, map_code, user.id)
    return meta


def update_completion(
    db: Session,
    user: User,
    completion_id: int,
    data: dict[str, Any],
    now: datetime,
) -> tuple[CompletionMeta, bool]:
    """Write a new revision. Returns it and whether this edit accepted the completion."""
    current = get_active(db, CompletionMeta, completion_id, now)
    if current is None:
        raise NotFound(f"Completion {completion_id} not found")
    if not is_live(current, now):
        raise ValidationError("Cannot update a deleted completion.", {"id": "Completion is deleted"})

    format_id = data["format_id"]
    _require_on_format(db, user, "edit:completion", current.format_id)
    _require_on_format(db, user, "edit:completion", format_id)

    if user.id in current.player_ids:
        raise PermissionDenied("edit:completion", format_id, message="You cannot modify your own completion.")
    if user.id in (data.get("players") or []):
        raise PermissionDenied("edit:completion", format_id, message="You cannot add yourself to the players list.")
    players = _validate_payload(db, user, data, now)

    accepted_by_id = current.accepted_by_id
    newly_accepted = accepted_by_id is None and bool(data.get("accept"))
    if newly_accepted:
        accepted_by_id = user.id

    meta = insert_version(
        db,
        CompletionMeta,
        {
            "completion_id": completion_id,
            "format_id": format_id,
            "black_border": data["black_border"] if data.get("black_border") is not None else current.black_border,
            "no_geraldo": data["no_geraldo"] if data.get("no_geraldo") is not None else current.no_geraldo,
            "lcc_id": _new_lcc(db, data.get("lcc")),
            "accepted_by_id": accepted_by_id,
            "deleted_on": None,
        },
        now,
    )
    _attach_players(db, meta, players)
    if newly_accepted:
        record_verifications(db, meta.completion.map_code, format_id, players)

    logger.info("Completion %s updated by user=%s", completion_id, user.id)
    return meta, newly_accepted


def accept_completion(db: Session, user: User, completion_id: int, now: datetime) -> CompletionMeta:
    current = get_completion(db, completion_id, now)
    _require_on_format(db, user, "edit:completion", current.format_id)
    if current.accepted_by_id is not None:
        raise ValidationError("Completion already accepted", {"id": "Completion is already accepted"})
    if user.id in current.player_ids:
        raise PermissionDenied("edit:completion", current.format_id, message="You cannot accept your own completion.")

    player_ids = current.player_ids
    meta = copy_forward(db, current, now, accepted_by_id=user.id)
    _attach_players(db, meta, player_ids)
    record_verifications(db, meta.completion.map_code, meta.format_id, player_ids)

    logger.info("Completion %s accepted by user=%s", completion_id, user.id)
    return meta


def delete_completion(db: Session, user: User, completion_id: int, now: datetime) -> CompletionMeta:
    current = get_completion(db, completion_id, now)
    _require_on_format(db, user, "delete:completion", current.format_id)

    player_ids = current.player_ids
    meta = copy_forward(db, current, now, deleted_on=now)
    _attach_players(db, meta, player_ids)

    logger.info("Completion %s deleted by user=%s", completion_id, user.id)
    return meta


def notify_submission(db: Session, completion: Completion, format_id: int, notifier: Notifier, fail: bool = False) -> bool:
    """Recolour the submission message of ``completion``; clears the stored payload on success.

    Never raises. The caller commits.
    """
    stored = completion.subm_wh_payload
    if not stored:
        return False
    if ";" not in stored:
        logger.warning("Invalid webhook payload format on completion %s", completion.id)
        return False

    message_id, raw = stored.split(";", 1)
    try:
        payload = json.loads(raw)
    except ValueError:
        payload = None
    if not isinstance(payload, dict) or not payload.get("embeds"):
        logger.warning("Invalid webhook payload JSON on completion %s", completion.id)
        return False

    fmt = db.query(Format).filter(Format.id == format_id).first()
    if not fmt or not fmt.run_submission_wh:
        return False

    if not notifier.update_message(fmt.run_submission_wh, message_id, payload, fail=fail):
        return False
    completion.subm_wh_payload = None
    db.flush()
    return True


def _submission_payload(completion: Completion, meta: CompletionMeta, fmt: Format, user: User) -> dict[str, Any]:
    flags = [label for flag, label in ((meta.black_border, "Black Border"), (meta.no_geraldo, "No Optimal Hero")) if flag]
    fields = [{"name": "Format", "value": fmt.name, "inline": True}]
    if flags:
        fields.append({"name": "Flags", "value": ", ".join(flags), "inline": True})
    if meta.lcc is not None:
        fields.append({"name": "LCC", "value": f"Leftover: {meta.lcc.leftover}", "inline": True})
    if completion.subm_notes:
        fields.append({"name": "Notes", "value": completion.subm_notes[:1024]})
    for proof in completion.proofs:
        fields.append({"name": "Recording", "value": proof.proof_url})

    return {
        "embeds": [
            {
                "title": f"{completion.map_code} - {fmt.name}",
                "author": {"name": user.name},
                "fields": fields,
                "color": PENDING_COLOR,
            }
        ]
    }


def announce_submission(db: Session, meta: CompletionMeta, user: User, notifier: Notifier) -> bool:
    """Post a pending submission to its format's webhook and keep the message for later edits.

    Never raises. The caller commits.
    """
    fmt = db.get(Format, meta.format_id)
    if fmt is None or not fmt.run_submission_wh:
        return False

    completion = meta.completion
    payload = _submission_payload(completion, meta, fmt, user)
    message_id = notifier.post_message(fmt.run_submission_wh, payload)
    if message_id is None:
        return False
    completion.subm_wh_payload = f"{message_id};{json.dumps(payload)}"
    db.flush()
    return True


def _live_metas(db: Session, as_of: datetime, format_ids: Optional[Iterable[int]]):
    query = active_query(db, CompletionMeta, as_of).join(Completion, Completion.id == CompletionMeta.completion_id)
    if format_ids is not None:
        query = query.filter(CompletionMeta.format_id.in_(list(format_ids)))
    return query


def recent_completions(
    db: Session,
    as_of: datetime,
    format_ids: Optional[Iterable[int]] = None,
    limit: int = RECENT_LIMIT,
) -> list[CompletionMeta]:
    """Latest accepted runs, newest submission first."""
    if format_ids is None:
        format_ids = RECENT_FORMATS
    return (
        _live_metas(db, as_of, format_ids)
        .filter(CompletionMeta.accepted_by_id.isnot(None))
        .order_by(Completion.submitted_on.desc(), Completion.id.desc())
        .limit(limit)
        .all()
    )


def pending_completions(
    db: Session,
    as_of: datetime,
    format_ids: Optional[Iterable[int]] = None,
    page: int = 1,
    per_page: int = PENDING_PER_PAGE,
) -> tuple[list[CompletionMeta], int]:
    """One page of runs waiting for review, newest submission first, and the total count."""
    query = _live_metas(db, as_of, format_ids).filter(CompletionMeta.accepted_by_id.is_(None))
    total = query.count()
    metas = (
        query.order_by(Completion.submitted_on.desc(), Completion.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return metas, total
