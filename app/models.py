from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Report(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    description: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    photo: Optional[str] = None
    created_at: str = Field(default="", alias="createdAt")
    resolved: bool = False

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)
