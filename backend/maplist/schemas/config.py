from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class ConfigItem(BaseModel):
    name: str
    value: Union[int, float, str]
    type: str
    difficulty: Optional[int] = None
    description: str
    formats: List[int] = Field(default_factory=list)


class ConfigUpdateRequest(BaseModel):
    config: dict[str, Any]


class ConfigUpdateResponse(BaseModel):
    errors: dict[str, str] = Field(default_factory=dict)
    data: dict[str, Union[int, float, str]] = Field(default_factory=dict)
