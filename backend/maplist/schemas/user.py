from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from maplist.schemas.role import AchievementRoleItem


class UserRoleItem(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class Medals(BaseModel):
    wins: int = 0
    black_border: int = 0
    no_geraldo: int = 0
    current_lcc: int = 0


class UserProfileResponse(BaseModel):
    id: int
    name: str
    nk_oak: Optional[str] = None
    is_banned: bool = False
    has_seen_popup: bool = False
    roles: List[UserRoleItem] = Field(default_factory=list)
    medals: Optional[Medals] = None
    achievement_roles: Optional[List[AchievementRoleItem]] = None
