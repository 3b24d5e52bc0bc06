import logging
from typing import Any, Iterable, Optional, Union

from sqlalchemy.orm import Session

from maplist.core.errors import PermissionDenied
from maplist.models.config import Config, ConfigFormat
from maplist.models.user import User
from maplist.services.permissions import allows_format, formats_with_permission

logger = logging.getLogger(__name__)

ConfigValue = Union[int, float, str]


def cast_value(value: Any, type_: str) -> ConfigValue:
    """Cast ``value`` to a config type. Raises ``ValueError`` when it does not fit."""
    if type_ == "int":
        if isinstance(value, bool):
            raise ValueError("booleans are not ints")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"{value!r} is not an integer")
            return int(value)
        return int(str(value).strip())
    if type_ == "float":
        if isinstance(value, bool):
            raise ValueError("booleans are not floats")
        return float(str(value).strip())
    if type_ == "string":
        return str(value)
    raise ValueError(f"Unknown config type {type_!r}")


def _configs(db: Session, names: Optional[Iterable[str]], format_id: Optional[int]):
    query = db.query(Config)
    if names is not None:
        query = query.filter(Config.name.in_(list(names)))
    if format_id is not None:
        query = query.join(ConfigFormat, ConfigFormat.config_name == Config.name).filter(
            ConfigFormat.format_id == format_id
        )
    return query.order_by(Config.name.asc()).all()


def load_vars(
    db: Session,
    names: Optional[Iterable[str]] = None,
    format_id: Optional[int] = None,
) -> dict[str, ConfigValue]:
    """Config values cast to their declared type, optionally limited to ``format_id``'s variables."""
    return {c.name: cast_value(c.value, c.type) for c in _configs(db, names, format_id)}


def difficulty_vars(db: Session, prefix: str, format_id: int) -> dict[int, ConfigValue]:
    """``{difficulty: value}`` for the per-tier variables named ``<prefix><tier>``."""
    rows = (
        db.query(Config)
        .join(ConfigFormat, ConfigFormat.config_name == Config.name)
        .filter(
            ConfigFormat.format_id == format_id,
            Config.name.like(f"{prefix}%"),
            Config.difficulty.isnot(None),
        )
        .all()
    )
    return {c.difficulty: cast_value(c.value, c.type) for c in rows}


def list_config(db: Session, format_id: Optional[int] = None) -> list[Config]:
    return _configs(db, None, format_id)


def update_config(db: Session, user: User, values: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Write the config values ``user`` may edit; report the rest as errors.

    Returns ``{"errors": {key: message}, "data": {key: cast value}}``. Valid
    keys are written even when others fail. The caller commits.
    """
    permitted = formats_with_permission(db, user.id, "edit:config")
    if not permitted:
        raise PermissionDenied("edit:config")

    configs = {c.name: c for c in db.query(Config).filter(Config.name.in_(list(values))).all()} if values else {}

    errors: dict[str, str] = {}
    data: dict[str, ConfigValue] = {}
    for key, raw in values.items():
        config = configs.get(key)
        if config is None or not any(allows_format(permitted, f) for f in config.format_ids or [None]):
            errors[key] = "Invalid key"
            continue
        try:
            data[key] = cast_value(raw, config.type)
        except (TypeError, ValueError):
            errors[key] = "Invalid value"

    for key, value in data.items():
        configs[key].value = str(value)
    db.flush()

    if data:
        logger.info("Config updated by user=%s: %s", user.id, data)
    return {"errors": errors, "data": data}
