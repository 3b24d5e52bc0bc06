from datetime import datetime
from typing import List, Optional

from pydantic import AnyHttpUrl, BaseModel, Field


class LccIn(BaseModel):
    leftover: int = Field(ge=0)


class CompletionCreateRequest(BaseModel):
    map: str
    format_id: int
    players: List[int] = Field(min_length=1)
    black_border: bool = False
    no_geraldo: bool = False
    lcc: Optional[LccIn] = None
    subm_notes: Optional[str] = None


class CompletionSubmitRequest(BaseModel):
    format_id: int
    black_border: bool = False
    no_geraldo: bool = False
    lcc: Optional[LccIn] = None
    subm_notes: Optional[str] = Field(default=None, max_length=5000)
    video_proof_url: List[AnyHttpUrl] = Field(default_factory=list, max_length=5)


class CompletionUpdateRequest(BaseModel):
    format_id: int
    players: List[int] = Field(min_length=1)
    black_border: Optional[bool] = None
    no_geraldo: Optional[bool] = None
    lcc: Optional[LccIn] = None
    accept: bool = False


class CompletionDetail(BaseModel):
    id: int
    map: str
    format_id: int
    players: List[int] = Field(default_factory=list)
    black_border: bool
    no_geraldo: bool
    lcc: Optional[LccIn] = None
    is_current_lcc: bool = False
    accepted_by_id: Optional[int] = None
    submitted_on: datetime
    subm_notes: Optional[str] = None
    video_proof_url: List[str] = Field(default_factory=list)
    created_on: datetime


class CompletionPage(BaseModel):
    completions: List[CompletionDetail] = Field(default_factory=list)
    total: int
    pages: int
