from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from maplist.api.v1.users import get_current_user, get_db
from maplist.models.user import User
from maplist.services.users import mark_rules_read


router = APIRouter()


@router.put("/read-rules", status_code=status.HTTP_204_NO_CONTENT)
def put_read_rules(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    mark_rules_read(db, current_user)
    db.commit()
