import logging
from typing import Any

from sqlalchemy.orm import Session

from maplist.core.errors import NotFound, ValidationError
from maplist.models.format import MAP_SUBMISSION_STATUSES, RUN_SUBMISSION_STATUSES, Format
from maplist.models.user import User
from maplist.services.permissions import require_permission

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "hidden",
    "run_submission_status",
    "map_submission_status",
    "run_submission_wh",
    "map_submission_wh",
    "emoji",
)


def get_format(db: Session, format_id: int) -> Format:
    fmt = db.get(Format, format_id)
    if fmt is None:
        raise NotFound(f"Format {format_id} not found")
    return fmt


def get_format_settings(db: Session, user: User, format_id: int) -> Format:
    """A format with its webhooks, for those who may edit it."""
    fmt = get_format(db, format_id)
    require_permission(db, user.id, format_id, "edit:format")
    return fmt


def update_format(db: Session, user: User, format_id: int, data: dict[str, Any]) -> Format:
    """Overwrite the editable settings of a format. The caller commits."""
    fmt = get_format_settings(db, user, format_id)

    errors = {}
    if data["run_submission_status"] not in RUN_SUBMISSION_STATUSES:
        errors["run_submission_status"] = f"Must be one of {', '.join(RUN_SUBMISSION_STATUSES)}"
    if data["map_submission_status"] not in MAP_SUBMISSION_STATUSES:
        errors["map_submission_status"] = f"Must be one of {', '.join(MAP_SUBMISSION_STATUSES)}"
    if errors:
        raise ValidationError("Invalid format settings", errors)

    for field in EDITABLE_FIELDS:
        value = data.get(field)
        if field.endswith("_wh") and value is not None:
            value = str(value)
        setattr(fmt, field, value)
    db.flush()

    logger.info(
        "Format %s updated by user=%s: hidden=%s runs=%s maps=%s",
        format_id,
        user.id,
        fmt.hidden,
        fmt.run_submission_status,
        fmt.map_submission_status,
    )
    return fmt
