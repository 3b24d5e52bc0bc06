from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoleItem(BaseModel):
    id: int
    name: str
    internal: bool
    assign_on_create: bool
    can_grant: List[int] = Field(default_factory=list)


class LinkedRole(BaseModel):
    guild_id: str
    role_id: str

    model_config = ConfigDict(from_attributes=True)


class AchievementRoleIn(BaseModel):
    threshold: int = Field(default=0, ge=0)
    for_first: bool = False
    name: str = Field(min_length=1, max_length=32)
    tooltip_description: Optional[str] = Field(default=None, max_length=128)
    clr_border: int = Field(ge=0, le=0xFFFFFF)
    clr_inner: int = Field(ge=0, le=0xFFFFFF)
    linked_roles: List[LinkedRole] = Field(min_length=1)


class AchievementRolesUpdateRequest(BaseModel):
    lb_format: int
    lb_type: str
    roles: List[AchievementRoleIn] = Field(min_length=1)


class AchievementRoleItem(BaseModel):
    lb_format: int
    lb_type: str
    threshold: int
    for_first: bool
    name: str
    tooltip_description: Optional[str] = None
    clr_border: int
    clr_inner: int
    linked_roles: List[LinkedRole] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class UserRolesUpdateRequest(BaseModel):
    add: List[int] = Field(default_factory=list)
    remove: List[int] = Field(default_factory=list)
