from typing import List, Literal, Optional, Union

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field


RunSubmissionStatus = Literal["closed", "open", "lcc_only"]
MapSubmissionStatus = Literal["closed", "open", "open_chimps"]


class FormatItem(BaseModel):
    id: int
    name: str
    hidden: bool
    run_submission_status: RunSubmissionStatus
    map_submission_status: MapSubmissionStatus
    emoji: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FormatDetail(FormatItem):
    run_submission_wh: Optional[str] = None
    map_submission_wh: Optional[str] = None


class FormatUpdateRequest(BaseModel):
    hidden: bool
    run_submission_status: RunSubmissionStatus
    map_submission_status: MapSubmissionStatus
    run_submission_wh: Optional[AnyHttpUrl] = None
    map_submission_wh: Optional[AnyHttpUrl] = None
    emoji: Optional[str] = Field(default=None, max_length=255)


class LeaderboardUser(BaseModel):
    id: int
    name: str


class LeaderboardItem(BaseModel):
    user: LeaderboardUser
    score: Union[int, float]
    placement: int


class PageMetaResponse(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int


class LeaderboardResponse(BaseModel):
    data: List[LeaderboardItem] = Field(default_factory=list)
    meta: PageMetaResponse
