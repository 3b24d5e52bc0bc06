from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from maplist.api.v1.users import get_current_user, get_db
from maplist.models.user import User
from maplist.schemas.config import ConfigItem, ConfigUpdateRequest, ConfigUpdateResponse
from maplist.services.config_vars import cast_value, list_config, update_config


router = APIRouter()


@router.get("", response_model=list[ConfigItem])
def get_config(
    format_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ConfigItem]:
    return [
        ConfigItem(
            name=c.name,
            value=cast_value(c.value, c.type),
            type=c.type,
            difficulty=c.difficulty,
            description=c.description,
            formats=c.format_ids,
        )
        for c in list_config(db, format_id)
    ]


@router.put("", response_model=ConfigUpdateResponse)
def put_config(
    payload: ConfigUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConfigUpdateResponse:
    result = update_config(db, current_user, payload.config)
    db.commit()
    return ConfigUpdateResponse(**result)
