from typing import List, Optional

from pydantic import BaseModel, Field


class MapCreateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=10)
    name: str = Field(min_length=1, max_length=255)
    map_preview_url: Optional[str] = None
    placement_curver: Optional[int] = None
    placement_allver: Optional[int] = None
    difficulty: Optional[int] = None
    botb_difficulty: Optional[int] = None
    remake_of: Optional[int] = None
    optimal_heros: List[str] = Field(default_factory=list)


class MapUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    map_preview_url: Optional[str] = None
    placement_curver: Optional[int] = None
    placement_allver: Optional[int] = None
    difficulty: Optional[int] = None
    botb_difficulty: Optional[int] = None
    remake_of: Optional[int] = None
    optimal_heros: Optional[List[str]] = None


class MapDetail(BaseModel):
    code: str
    name: str
    map_preview_url: Optional[str] = None
    placement_curver: Optional[int] = None
    placement_allver: Optional[int] = None
    difficulty: Optional[int] = None
    botb_difficulty: Optional[int] = None
    remake_of: Optional[int] = None
    optimal_heros: List[str] = Field(default_factory=list)
    is_verified: bool = False


class MapListItem(BaseModel):
    code: str
    name: str
    placement: Optional[int] = None
    is_verified: bool = False
    map_preview_url: Optional[str] = None
